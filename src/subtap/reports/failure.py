#
# src/subtap/reports/failure.py
#
"""
FailureReport prints only failed assertions, with the names of the tests
that contain them. Test names and passing assertions appear briefly as
temporary lines.
"""

from subtap.protocol.events import TestFrame
from subtap.reports.base import SYMBOL_PENDING, BaseReport


class FailureReport(BaseReport):
    def begin_test(self, stack: list[TestFrame], frame: TestFrame) -> None:
        super().begin_test(stack, frame)
        self.maker.temp_line(len(stack) - 1, self._make_name(SYMBOL_PENDING, frame))

    def _print_up_line(self) -> None:
        # test names are never written as permanent lines
        pass


# 🔼⚙️
