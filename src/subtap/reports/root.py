#
# src/subtap/reports/root.py
#
"""
RootTestReport (the 'tally' format) prints the outcome of each root test
and the details of each failed assertion. Passing nested tests only show
through the status of their root test. When an assertion fails inside a
nested test, the names of the enclosing tests are printed too.

While a test runs, the current terminal line is overwritten with the name
of the running nested test or the latest passing assertion, as feedback
that the run is alive.
"""

from subtap.protocol.events import TestFrame, TestResults
from subtap.reports.base import SYMBOL_PASS, SYMBOL_PENDING, BaseReport


class RootTestReport(BaseReport):
    def begin_test(self, stack: list[TestFrame], frame: TestFrame) -> None:
        super().begin_test(stack, frame)
        if len(stack) == 1:
            self._print_test_context(stack)
        else:
            self.maker.temp_line(len(stack) - 1, self._make_name(SYMBOL_PENDING, frame))

    def close_test(self, stack: list[TestFrame], results: TestResults) -> None:
        super().close_test(stack, results)
        if len(stack) == 1 and not self._root_failed:
            self._print_up_line()
            self.maker.line(0, self._make_name(SYMBOL_PASS, stack[0], "pass"))


# 🔼⚙️
