#
# src/subtap/protocol/states.py
#
"""
The report state machine, as a dispatch table.

Each (state, event kind) pair that the protocol allows maps to a handler.
A pair missing from the table is a protocol violation. Handlers hold no
state of their own; they update the printer they are given and call its
report.
"""

import re
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

from subtap.exceptions import ConfigurationError, ProtocolError
from subtap.protocol.events import Assertion, Counts, EventKind, TapEvent, TestFrame, TestResults

if TYPE_CHECKING:
    from subtap.protocol.printer import ReportPrinter

MIN_TAP_VERSION = 13
REGEX_TEST_NAME = re.compile(r"^(?:# Subtest: )(.+?)( \(.+:[0-9]+\))?$", re.IGNORECASE)


class ParseState(Enum):
    INITIAL = "initial"
    AWAIT_TEST_NAME = "await_test_name"
    RECEIVE_TEST = "receive_test"
    AWAIT_TAP_RESULTS = "await_tap_results"


Handler = Callable[["ReportPrinter", Any], None]


def _on_version(printer: "ReportPrinter", version: int) -> None:
    if version < MIN_TAP_VERSION:
        raise ConfigurationError(f"Requires TAP v.{MIN_TAP_VERSION} or newer")
    printer.counts = Counts()
    printer.state = ParseState.RECEIVE_TEST


def _on_test_name(printer: "ReportPrinter", comment: str) -> None:
    match = REGEX_TEST_NAME.match(comment.strip())
    if match is None:
        raise ProtocolError(f'expected test name, got "{comment}"')
    stack = printer.stack
    frame = TestFrame(name=match.group(1), location=match.group(2) if not stack else None)
    stack.append(frame)
    if len(stack) == 1:
        printer.counts.root_tests += 1
    else:
        printer.counts.nested_tests += 1
    printer.report.begin_test(stack, frame)
    printer.state = ParseState.RECEIVE_TEST


def _on_assert(printer: "ReportPrinter", assertion: Assertion) -> None:
    printer.counts.assertions += 1
    if assertion.ok:
        printer.report.assertion_passed(printer.stack, assertion)
    else:
        printer.counts.failed_assertions += 1
        printer.report.assertion_failed(printer.stack, assertion)


def _on_comment(printer: "ReportPrinter", comment: str) -> None:
    printer.report.comment(printer.stack, comment)


def _on_extra(printer: "ReportPrinter", extra: str) -> None:
    printer.report.extra(printer.stack, extra)


def _on_child(printer: "ReportPrinter", data: Any) -> None:
    printer.state = ParseState.AWAIT_TEST_NAME


def _on_complete(printer: "ReportPrinter", results: TestResults) -> None:
    stack = printer.stack
    if not stack:
        printer.report.close_report(stack, results, printer.counts)
        printer.finished = True
        return
    if not results.ok:
        if len(stack) == 1:
            printer.counts.failed_root_tests += 1
        else:
            printer.counts.failed_nested_tests += 1
    printer.report.close_test(stack, results)
    stack.pop()
    printer.state = ParseState.AWAIT_TAP_RESULTS


def _on_plan(printer: "ReportPrinter", plan: Any) -> None:
    pass


def _on_tap_results(printer: "ReportPrinter", assertion: Assertion) -> None:
    # the result line the parent level writes for the test just closed
    printer.state = ParseState.RECEIVE_TEST


def _on_bailout(printer: "ReportPrinter", reason: str) -> None:
    printer.bailed = True
    printer.report.bailout(printer.stack, reason, printer.counts)


HANDLERS: dict[tuple[ParseState, EventKind], Handler] = {
    (ParseState.INITIAL, EventKind.VERSION): _on_version,
    (ParseState.AWAIT_TEST_NAME, EventKind.COMMENT): _on_test_name,
    (ParseState.RECEIVE_TEST, EventKind.ASSERT): _on_assert,
    (ParseState.RECEIVE_TEST, EventKind.COMMENT): _on_comment,
    (ParseState.RECEIVE_TEST, EventKind.EXTRA): _on_extra,
    (ParseState.RECEIVE_TEST, EventKind.CHILD): _on_child,
    (ParseState.RECEIVE_TEST, EventKind.COMPLETE): _on_complete,
    (ParseState.RECEIVE_TEST, EventKind.PLAN): _on_plan,
    (ParseState.AWAIT_TAP_RESULTS, EventKind.ASSERT): _on_tap_results,
}


def violation_message(state: ParseState, kind: EventKind) -> str:
    if state is ParseState.INITIAL:
        return "Stream must begin with TAP version"
    if state is ParseState.AWAIT_TAP_RESULTS:
        return f"Expecting 'assert' event for test, got '{kind.value}'"
    return f"unexpected '{kind.value}' event"


def handle_event(printer: "ReportPrinter", event: TapEvent) -> None:
    """Routes one event through the table for the printer's current state."""
    if event.kind is EventKind.BAILOUT:
        _on_bailout(printer, event.data)
        return
    handler = HANDLERS.get((printer.state, event.kind))
    if handler is None:
        raise ProtocolError(violation_message(printer.state, event.kind))
    handler(printer, event.data)


# 🔼⚙️
