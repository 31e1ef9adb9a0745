#
# src/subtap/reports/protocols.py
#
"""
Defines the interface between the report state machine and the reports.
"""
from typing import Protocol, runtime_checkable

from subtap.protocol.events import Assertion, Counts, TestFrame, TestResults


@runtime_checkable
class Report(Protocol):
    """
    Receives a test-centric view of the TAP stream. The stack holds the
    frames of the tests currently running; its length is the depth of the
    callback. Reports read Counts but never change them.
    """

    def begin_test(self, stack: list[TestFrame], frame: TestFrame) -> None: ...

    def comment(self, stack: list[TestFrame], text: str) -> None: ...

    def extra(self, stack: list[TestFrame], text: str) -> None: ...

    def assertion_passed(self, stack: list[TestFrame], assertion: Assertion) -> None: ...

    def assertion_failed(self, stack: list[TestFrame], assertion: Assertion) -> None: ...

    def close_test(self, stack: list[TestFrame], results: TestResults) -> None:
        """Called with the closing test still on top of the stack."""
        ...

    def close_report(
        self, stack: list[TestFrame], results: TestResults, counts: Counts
    ) -> None: ...

    def bailout(self, stack: list[TestFrame], reason: str, counts: Counts) -> None: ...


# 🔼⚙️
