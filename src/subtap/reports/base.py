#
# src/subtap/reports/base.py
#
"""
BaseReport holds the behavior the report variants share. It composes a
LineMaker for output and a DiffRenderer for found/wanted values; variants
override individual callbacks, never more than one level deep.
"""

import re
import sys
from typing import TextIO

import structlog
import yaml

from subtap.config.models import ReportConfig
from subtap.protocol.events import Assertion, Counts, TestFrame, TestResults
from subtap.render.diff import DiffRenderer
from subtap.render.lines import LineMaker
from subtap.reports.stacks import truncate_assertion_stacks

log = structlog.get_logger("reports.base")

SYMBOL_PENDING = "-"
SYMBOL_PASS = "✓"
SYMBOL_FAIL = "✗"
REGEX_FAILURE_ABORT = re.compile(r"Aborted after \d+ failed", re.IGNORECASE)


class BaseReport:
    """Default report behavior; passing assertions show as temporary lines."""

    def __init__(self, stream: TextIO | None = None, config: ReportConfig | None = None):
        self.config = config if config is not None else ReportConfig()
        self.maker = LineMaker(
            stream if stream is not None else sys.stdout,
            tab_size=self.config.tab_size,
            style_mode=self.config.style_mode,
            color_system=self.config.color_system,
            canonical=self.config.canonical,
        )
        self.diff = DiffRenderer(self.maker, self.config)
        self._depth_shown = 0  # depth of the test names currently on screen
        self._root_failed = False
        self._bailed = False

    # --- Report interface ---

    def begin_test(self, stack: list[TestFrame], frame: TestFrame) -> None:
        if len(stack) == 1:
            self._root_failed = False

    def comment(self, stack: list[TestFrame], text: str) -> None:
        pass

    def extra(self, stack: list[TestFrame], text: str) -> None:
        pass

    def assertion_passed(self, stack: list[TestFrame], assertion: Assertion) -> None:
        text = f"{SYMBOL_PASS} {self._make_assertion(assertion)}"
        self.maker.temp_line(len(stack), text)

    def assertion_failed(self, stack: list[TestFrame], assertion: Assertion) -> None:
        if stack:
            if not self._root_failed:
                self._print_up_line()
                root = stack[0]
                text = self._color("fail", self._bold(SYMBOL_FAIL))
                text += " " + self._color("fail-emph", self._bold(root.name))
                if root.location:
                    text += self._color("fail-emph", root.location)
                self.maker.line(0, text)
                self._depth_shown = 1
            self._root_failed = True
        self._print_test_context(stack)
        truncate_assertion_stacks(assertion, self.config.unstack_paths)
        self._print_failed_assertion(stack, "fail" if stack else "fail-emph", assertion)

    def close_test(self, stack: list[TestFrame], results: TestResults) -> None:
        if self._depth_shown == len(stack):
            self._depth_shown -= 1

    def close_report(self, stack: list[TestFrame], results: TestResults, counts: Counts) -> None:
        if counts.failed_assertions == 0:
            self._passed_closing(counts)
        else:
            self._failed_closing(counts)

    def bailout(self, stack: list[TestFrame], reason: str, counts: Counts) -> None:
        if self._bailed:
            return
        self._bailed = True
        self._print_test_context(stack)
        level = len(stack)
        if REGEX_FAILURE_ABORT.search(reason):
            level = 1  # only root test failures trigger the abort
        self.maker.line(level, self._bold(self._color("fail", f"{SYMBOL_FAIL} BAIL OUT! {reason}")))
        self._failed_closing(counts)

    # --- shared helpers ---

    def _bold(self, text: str) -> str:
        return self.maker.style("bold", text)

    def _color(self, style_id: str, text: str) -> str:
        return self.maker.color(style_id, text)

    def _make_assertion(self, assertion: Assertion) -> str:
        result = "passed" if assertion.ok else "FAILED"
        return f"{result}.{assertion.id} - {assertion.name}"

    def _make_name(self, bullet: str, frame: TestFrame, color: str | None = None) -> str:
        text = self._bold(f"{bullet} {frame.name}")
        if color:
            text = self._color(color, text)
        if frame.location:
            text += self._color(color, frame.location) if color else frame.location
        return text

    def _print_test_context(self, stack: list[TestFrame]) -> None:
        """Shows the names of enclosing tests not yet on screen."""
        while self._depth_shown < len(stack):
            frame = stack[self._depth_shown]
            self.maker.line(self._depth_shown, self._make_name(SYMBOL_PENDING, frame))
            self._depth_shown += 1

    def _print_up_line(self) -> None:
        self.maker.up_line()

    def _print_failed_assertion(
        self, stack: list[TestFrame], style_id: str, assertion: Assertion
    ) -> None:
        level = len(stack)
        text = self._make_assertion(assertion)
        if assertion.time_ms is not None:
            text += f" # time={assertion.time_ms:g}ms"
        text = self._bold(self._color(style_id, text))
        text = self._bold(self._color("fail", f"{SYMBOL_FAIL} ")) + text
        self.maker.line(level, text)

        diag = assertion.diag
        if diag is None:
            return
        if "found" in diag:
            self.diff.render(level + 1, assertion)
        if diag:
            dumped = yaml.safe_dump(
                diag,
                indent=self.config.tab_size,
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
            )
            self.maker.multiline(level + 1, dumped)

    def _passed_closing(self, counts: Counts) -> None:
        text = (
            f"Passed all {counts.root_tests} root tests, "
            f"all {counts.assertions} assertions"
        )
        self.maker.blank_line()
        self.maker.line(0, self._bold(self._color("pass", text)))
        self.maker.blank_line()

    def _failed_closing(self, counts: Counts) -> None:
        text = (
            f"Failed {counts.failed_root_tests} of {counts.root_tests} root tests, "
            f"{counts.failed_assertions} of {counts.assertions} assertions"
        )
        self.maker.blank_line()
        self.maker.line(0, self._bold(self._color("fail", text)))
        self.maker.blank_line()


# 🔼⚙️
