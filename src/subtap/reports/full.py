#
# src/subtap/reports/full.py
#
"""
FullReport prints the name of every test and the outcome of every
assertion as they happen.
"""

from subtap.protocol.events import Assertion, TestFrame
from subtap.reports.base import SYMBOL_PASS, BaseReport
from subtap.reports.stacks import truncate_assertion_stacks


class FullReport(BaseReport):
    def begin_test(self, stack: list[TestFrame], frame: TestFrame) -> None:
        super().begin_test(stack, frame)
        self._print_test_context(stack)

    def assertion_passed(self, stack: list[TestFrame], assertion: Assertion) -> None:
        self._print_test_context(stack)
        self.maker.line(len(stack), f"{SYMBOL_PASS} {self._make_assertion(assertion)}")

    def assertion_failed(self, stack: list[TestFrame], assertion: Assertion) -> None:
        self._print_test_context(stack)
        truncate_assertion_stacks(assertion, self.config.unstack_paths)
        self._print_failed_assertion(stack, "fail", assertion)


# 🔼⚙️
