#
# src/subtap/protocol/decoder.py
#
"""
Turns raw TAP text into TapEvents.

Individual lines are lexed by tap.py. This module adds what a line lexer
cannot know: chunk buffering, nesting by four-space indentation (emitted as
'child' and 'complete' events), YAML diagnostic blocks attached to the
preceding assert, and per-level totals.
"""

import re
import textwrap
from typing import Any

import structlog
import yaml
from attrs import mutable, field
from tap.parser import Parser

from subtap.protocol.events import Assertion, EventKind, Plan, TapEvent, TestResults

log = structlog.get_logger("protocol.decoder")

INDENT = "    "
YAML_OFFSET = "  "
REGEX_VERSION = re.compile(r"^TAP version (\d+)\s*$", re.IGNORECASE)
REGEX_TIME = re.compile(r"time=\s*([0-9.]+)\s*(ms|s)?", re.IGNORECASE)
REGEX_DESCRIPTION_DASH = re.compile(r"^-\s*")
ESCAPED_HASH = "\\#"
HASH_PLACEHOLDER = "\x00"


@mutable(slots=True)
class _Level:
    count: int = field(default=0)
    passed: int = field(default=0)
    failed: int = field(default=0)
    todo: int = field(default=0)
    skip: int = field(default=0)
    plan: Plan | None = field(default=None)

    def results(self, bailed: bool = False) -> TestResults:
        plan_ok = self.plan is None or self.plan.count == self.count
        return TestResults(
            ok=self.failed == 0 and plan_ok and not bailed,
            count=self.count,
            passed=self.passed,
            failed=self.failed,
            todo=self.todo,
            skip=self.skip,
            plan=self.plan,
            bailed=bailed,
        )


class TapDecoder:
    """Incremental TAP 13 decoder: feed() chunks, then end()."""

    def __init__(self):
        self._lexer = Parser()
        self._buffer = ""
        self._levels: list[_Level] = [_Level()]
        self._pending: Assertion | None = None
        self._pending_indent = ""
        self._yaml_lines: list[str] | None = None
        self._seen_version = False
        self._bailed = False
        self._ended = False

    @property
    def depth(self) -> int:
        """Current nesting depth; the root level is 0."""
        return len(self._levels) - 1

    def feed(self, chunk: str) -> list[TapEvent]:
        if self._ended:
            return []
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")
        events: list[TapEvent] = []
        for line in lines:
            events.extend(self._decode_line(line.rstrip("\r")))
        return events

    def end(self) -> list[TapEvent]:
        """Flushes buffered text and closes every open level."""
        if self._ended:
            return []
        events: list[TapEvent] = []
        if self._buffer:
            events.extend(self._decode_line(self._buffer.rstrip("\r")))
            self._buffer = ""
        if self._yaml_lines is not None:
            self._finish_yaml()
        events.extend(self._flush_pending())
        if not self._bailed:
            while self.depth > 0:
                events.append(self._close_level())
            events.append(TapEvent(EventKind.COMPLETE, self._levels[0].results()))
        self._ended = True
        return events

    # --- line handling ---

    def _decode_line(self, line: str) -> list[TapEvent]:
        if self._bailed:
            return []
        if self._yaml_lines is not None:
            if line.strip() == "..." and line.startswith(self._pending_indent):
                self._finish_yaml()
                return self._flush_pending()
            self._yaml_lines.append(line)
            return []
        if not line.strip():
            return []

        events: list[TapEvent] = []
        if self._pending is not None:
            if line == self._pending_indent + "---":
                self._yaml_lines = []
                return []
            events.extend(self._flush_pending())

        depth, body = self._split_indent(line)
        # tap.py ends a description at any '#', escaped or not
        lexed = self._lex(body.replace(ESCAPED_HASH, HASH_PLACEHOLDER))
        category = lexed.category if lexed is not None else "unknown"

        if category == "unknown":
            events.append(TapEvent(EventKind.EXTRA, line))
            return events
        if category == "bail":
            self._bailed = True
            events.append(TapEvent(EventKind.BAILOUT, (lexed.reason or "").strip()))
            return events

        while depth > self.depth:
            self._levels.append(_Level())
            events.append(TapEvent(EventKind.CHILD))
        while depth < self.depth:
            events.append(self._close_level())

        if category == "version":
            if not self._seen_version:
                self._seen_version = True
                events.append(TapEvent(EventKind.VERSION, int(lexed.version)))
        elif category == "diagnostic":
            events.append(TapEvent(EventKind.COMMENT, lexed.text.replace(HASH_PLACEHOLDER, ESCAPED_HASH)))
        elif category == "plan":
            plan = self._make_plan(lexed)
            self._levels[-1].plan = plan
            events.append(TapEvent(EventKind.PLAN, plan))
        elif category == "test":
            self._pending = self._make_assertion(lexed)
            self._pending_indent = INDENT * depth + YAML_OFFSET
        return events

    def _lex(self, body: str) -> Any:
        try:
            return self._lexer.parse_line(body)
        except ValueError:
            # tap.py rejects declared versions below 13; report the number
            match = REGEX_VERSION.match(body)
            if match is None:
                raise
            return _LowVersion(int(match.group(1)))

    @staticmethod
    def _split_indent(line: str) -> tuple[int, str]:
        depth = 0
        while line.startswith(INDENT, depth * len(INDENT)):
            depth += 1
        return depth, line[depth * len(INDENT):]

    # --- builders ---

    def _make_assertion(self, result: Any) -> Assertion:
        level = self._levels[-1]
        number = result.number if result.number else level.count + 1
        name = REGEX_DESCRIPTION_DASH.sub("", (result.description or "").strip())
        name = name.replace(HASH_PLACEHOLDER, "#")
        directive = result.directive
        time_ms = None
        todo = skip = None
        if directive is not None and directive.text:
            if directive.todo:
                todo = directive.reason or "todo"
            elif directive.skip:
                skip = directive.reason or "skip"
            else:
                match = REGEX_TIME.search(directive.text)
                if match:
                    time_ms = float(match.group(1))
                    if (match.group(2) or "ms").lower() == "s":
                        time_ms *= 1000
        return Assertion(
            id=int(number), name=name, ok=bool(result.ok), todo=todo, skip=skip, time_ms=time_ms
        )

    @staticmethod
    def _make_plan(lexed: Any) -> Plan:
        directive = lexed.directive
        skip_reason = directive.reason if directive is not None and directive.skip else None
        return Plan(start=1, end=int(lexed.expected_tests), skip_reason=skip_reason)

    def _finish_yaml(self) -> None:
        text = textwrap.dedent("\n".join(self._yaml_lines or []))
        self._yaml_lines = None
        try:
            diag = yaml.safe_load(text) if text.strip() else None
        except yaml.YAMLError as e:
            log.warning("Unparseable YAML diagnostics", error=str(e), emoji_key="tap")
            diag = {"diagnostics": text}
        if diag is not None and not isinstance(diag, dict):
            diag = {"diagnostics": diag}
        if self._pending is not None:
            self._pending.diag = diag

    def _flush_pending(self) -> list[TapEvent]:
        assertion = self._pending
        if assertion is None:
            return []
        self._pending = None
        level = self._levels[-1]
        level.count += 1
        if assertion.todo:
            level.todo += 1
        elif assertion.skip:
            level.skip += 1
        if assertion.ok or assertion.todo:
            level.passed += 1
        else:
            level.failed += 1
        return [TapEvent(EventKind.ASSERT, assertion)]

    def _close_level(self) -> TapEvent:
        level = self._levels.pop()
        return TapEvent(EventKind.COMPLETE, level.results())


@mutable(slots=True)
class _LowVersion:
    version: int = field()
    category: str = field(default="version", init=False)


# 🔼⚙️
