#
# src/subtap/harness/core.py
#
"""
The assertion API that test files use, and the TAP 13 it emits.

A Test writes its result lines through a TapWriter. Nested tests announce
themselves with '# Subtest: name' inside the child's indentation, write
their plan, and are then summarized by a result line in the parent that
carries '# time=Xms'. Failed assertions carry a YAML diagnostic block.
"""

import asyncio
import inspect
import math
import os
import re
import sys
import textwrap
import time
import traceback
from collections.abc import Callable
from typing import Any, TextIO

import structlog
import yaml
from attrs import define, field

from subtap.runtime.call_stack import display_path, error_location, format_frames, user_frames

log = structlog.get_logger("harness.core")

INDENT = "    "
YAML_OFFSET = "  "


class BailOut(Exception):
    """Unwinds the test file once 'Bail out!' has been written."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


@define(frozen=True, slots=True)
class HarnessOptions:
    catch_exceptions: bool = field(default=False)
    bail_on_fail: bool = field(default=False)
    cwd: str = field(factory=os.getcwd)


class TapWriter:
    """Hands each piece of TAP text to a send function, one call per write."""

    def __init__(self, send: Callable[[str], None]):
        self._send = send

    @classmethod
    def to_stream(cls, stream: TextIO | None = None) -> "TapWriter":
        stream = stream if stream is not None else sys.stdout

        def send(text: str) -> None:
            stream.write(text)
            stream.flush()

        return cls(send)

    def write(self, text: str) -> None:
        if text:
            self._send(text)


def to_plain(value: Any) -> Any:
    """Converts a value into something yaml.safe_dump can write."""
    if value is None or isinstance(value, bool | int | str):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else repr(value)
    if isinstance(value, dict):
        return {str(key): to_plain(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [to_plain(item) for item in value]
    if isinstance(value, set | frozenset):
        return [to_plain(item) for item in sorted(value, key=repr)]
    if inspect.isfunction(value) or inspect.ismethod(value):
        try:
            return textwrap.dedent(inspect.getsource(value)).rstrip("\n")
        except (OSError, TypeError):
            return repr(value)
    return repr(value)


class Test:
    """One test level: the root of a file, or a nested test."""

    __test__ = False

    def __init__(
        self,
        name: str,
        writer: TapWriter,
        options: HarnessOptions | None = None,
        depth: int = 0,
    ):
        self.name = name
        self.writer = writer
        self.options = options if options is not None else HarnessOptions()
        self.depth = depth
        self.count = 0
        self.failed = 0
        self.ended = False

    @property
    def passing(self) -> bool:
        return self.failed == 0

    @property
    def indent(self) -> str:
        return INDENT * self.depth

    # --- assertions ---

    def ok(self, value: Any, name: str = "should be truthy") -> bool:
        return self._assert(bool(value), name, {"found": value, "wanted": True, "compare": "=="})

    def not_ok(self, value: Any, name: str = "should be falsy") -> bool:
        return self._assert(not value, name, {"found": value, "wanted": False, "compare": "=="})

    def equal(self, found: Any, wanted: Any, name: str = "should be equal") -> bool:
        ok = type(found) is type(wanted) and found == wanted
        return self._assert(ok, name, {"found": found, "wanted": wanted, "compare": "==="})

    def not_equal(self, found: Any, do_not_want: Any, name: str = "should not be equal") -> bool:
        ok = not (type(found) is type(do_not_want) and found == do_not_want)
        return self._assert(ok, name, {"found": found, "doNotWant": do_not_want, "compare": "!=="})

    def same(self, found: Any, wanted: Any, name: str = "should be equivalent") -> bool:
        return self._assert(found == wanted, name, {"found": found, "wanted": wanted, "compare": "=="})

    def match(self, found: Any, pattern: str | re.Pattern, name: str = "should match pattern") -> bool:
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        ok = isinstance(found, str) and regex.search(found) is not None
        return self._assert(ok, name, {"found": found, "pattern": regex.pattern, "compare": "match"})

    def raises(
        self,
        fn: Callable[[], Any],
        expected: type[BaseException] = Exception,
        name: str = "expected to throw",
    ) -> bool:
        try:
            fn()
        except expected:
            return self._assert(True, name)
        except Exception as e:
            found = f"{type(e).__name__}: {e}"
            return self._assert(False, name, {"found": found, "wanted": expected.__name__})
        return self._assert(False, name, {"found": "no exception", "wanted": expected.__name__})

    def pass_(self, name: str = "(passed)") -> bool:
        return self._assert(True, name)

    def fail(self, name: str = "(failed)", **diag: Any) -> bool:
        return self._assert(False, name, diag)

    def comment(self, text: str) -> None:
        self.writer.write("".join(f"{self.indent}# {line}\n" for line in str(text).splitlines() or [""]))

    # --- nesting ---

    def test(self, name: str, fn: Callable[["Test"], Any] | None = None) -> Any:
        """Runs fn as a nested test. Without fn, returns a decorator."""
        if fn is None:

            def decorator(func: Callable[["Test"], Any]) -> Callable[["Test"], Any]:
                self.run_subtest(name, func)
                return func

            return decorator
        return self.run_subtest(name, fn)

    def run_subtest(self, name: str, fn: Callable[["Test"], Any]) -> bool:
        child = Test(name, self.writer, self.options, depth=self.depth + 1)
        child.writer.write(f"{child.indent}# Subtest: {name}\n")
        started = time.perf_counter()
        try:
            result = fn(child)
            if inspect.isawaitable(result):
                asyncio.run(_await(result))
        except BailOut:
            raise
        except Exception as e:
            if not self.options.catch_exceptions:
                raise
            child.threw(e)
        child.end()
        elapsed_ms = (time.perf_counter() - started) * 1000
        self._write_result(child.passing, name, f"time={elapsed_ms:.3f}ms")
        return child.passing

    def threw(self, error: Exception) -> bool:
        """Records an exception raised by the test body as a failed assertion."""
        diag: dict[str, Any] = {}
        file, line, column = error_location(error)
        if file is not None:
            diag["at"] = {"file": display_path(file, self.options.cwd), "line": line, "column": column}
        stack = format_frames(user_frames(traceback.extract_tb(error.__traceback__)), self.options.cwd)
        if stack:
            diag["stack"] = stack
        return self._assert(False, f"{type(error).__name__}: {error}", diag, locate=False)

    def end(self) -> None:
        if self.ended:
            return
        self.ended = True
        self.writer.write(f"{self.indent}1..{self.count}\n")

    def bail_out(self, reason: str = "") -> None:
        log.info("Bailing out", reason=reason, emoji_key="bail")
        self.writer.write(f"Bail out! {reason}".rstrip() + "\n")
        raise BailOut(reason)

    # --- output ---

    def _assert(self, ok: bool, name: str, diag: dict[str, Any] | None = None, locate: bool = True) -> bool:
        self.count += 1
        text = f"{self.indent}{'ok' if ok else 'not ok'} {self.count}"
        if name:
            text += f" - {_escape_name(name)}"
        text += "\n"
        if not ok:
            self.failed += 1
            diag = dict(diag or {})
            if locate:
                diag.update(self._call_site())
            text += self._format_diag(diag)
        self.writer.write(text)
        if not ok and self.options.bail_on_fail:
            self.bail_out(name)
        return ok

    def _write_result(self, ok: bool, name: str, directive: str) -> None:
        self.count += 1
        if not ok:
            self.failed += 1
        status = "ok" if ok else "not ok"
        self.writer.write(f"{self.indent}{status} {self.count} - {_escape_name(name)} # {directive}\n")

    def _call_site(self) -> dict[str, Any]:
        frames = user_frames(traceback.extract_stack())
        if not frames:
            return {}
        frame = frames[0]
        diag: dict[str, Any] = {
            "at": {"file": display_path(frame.filename, self.options.cwd), "line": frame.lineno}
        }
        if frame.line:
            diag["source"] = frame.line
        diag["stack"] = format_frames(frames, self.options.cwd)
        return diag

    def _format_diag(self, diag: dict[str, Any]) -> str:
        if not diag:
            return ""
        margin = self.indent + YAML_OFFSET
        body = yaml.safe_dump(
            to_plain(diag), sort_keys=False, allow_unicode=True, default_flow_style=False
        )
        return f"{margin}---\n" + textwrap.indent(body, margin, lambda line: True) + f"{margin}...\n"


def _escape_name(name: str) -> str:
    # a '#' would start a directive and a newline would end the line
    return str(name).replace("#", "\\#").replace("\n", " ")


async def _await(awaitable: Any) -> Any:
    return await awaitable


# 🔼⚙️
