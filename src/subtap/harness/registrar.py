#
# src/subtap/harness/registrar.py
#
"""
Registration of root tests.

Test files call the module-level test() function. Inside a worker it
delegates to the NumberedRegistrar that the worker installed, which numbers
root tests across the whole run, skips unselected ones, appends the test's
location to its name and bails out once too many root tests have failed.
Outside a worker, a registrar writing plain TAP to stdout is created on
first use.
"""

import atexit
import os
import re
import sys
import traceback
from collections.abc import Callable
from typing import Any

import structlog

from subtap.config.models import TestSelection
from subtap.harness.core import HarnessOptions, TapWriter, Test
from subtap.runtime.call_stack import user_frames
from subtap.telemetry import StructLogger

log: StructLogger = structlog.get_logger("harness.registrar")

TestFunction = Callable[[Test], Any]

_registrar: "NumberedRegistrar | None" = None


def default_location_pattern(cwd: str | None = None) -> str:
    cwd = (cwd or os.getcwd()).rstrip(os.sep) + os.sep
    return "^" + re.escape(cwd) + "(.+:[0-9]+)$"


class NumberedRegistrar:
    """Runs root tests on behalf of test files, numbering them run-wide."""

    def __init__(
        self,
        root: Test,
        prior_test_number: int = 0,
        selection: TestSelection | None = None,
        location_pattern: str = "",
        failed_tests: int = 0,
        max_failed_tests: int = 0,
    ):
        self.root = root
        self.test_number = prior_test_number
        self.selection = selection
        self.location_regex = re.compile(location_pattern or default_location_pattern(root.options.cwd))
        self.failed_tests = failed_tests
        self.max_failed_tests = max_failed_tests

    def register(self, name: str, fn: TestFunction, location: str | None = None) -> bool | None:
        """Runs fn as the next root test; returns None when it isn't selected."""
        self.test_number += 1
        number = self.test_number
        if self.selection is not None and not self.selection.contains(number):
            log.debug("Skipping unselected root test", number=number, name=name)
            return None

        display_name = f"[{number}] {name}"
        location = location if location is not None else self.caller_location()
        if location:
            display_name += f" ({location})"

        passed = self.root.run_subtest(display_name, fn)
        if not passed:
            self.failed_tests += 1
            log.debug("Root test failed", number=number, failed_tests=self.failed_tests)
            if self.max_failed_tests and self.failed_tests >= self.max_failed_tests:
                self.root.bail_out(f"Aborted after {self.failed_tests} failed root tests")
        return passed

    def caller_location(self) -> str | None:
        """'path:line' of the innermost call from test code, relative to cwd."""
        frames = user_frames(traceback.extract_stack())
        if not frames:
            return None
        frame = frames[0]
        match = self.location_regex.match(f"{os.path.abspath(frame.filename)}:{frame.lineno}")
        return match.group(1) if match else None


def install_registrar(registrar: NumberedRegistrar | None) -> None:
    global _registrar
    _registrar = registrar


def current_registrar() -> NumberedRegistrar:
    global _registrar
    if _registrar is None:
        _registrar = _standalone_registrar()
    return _registrar


def _standalone_registrar() -> NumberedRegistrar:
    writer = TapWriter.to_stream(sys.stdout)
    writer.write("TAP version 13\n")
    root = Test("", writer, HarnessOptions())

    def finish() -> None:
        if not root.ended:
            root.end()

    atexit.register(finish)
    return NumberedRegistrar(root)


def test(name: str, fn: TestFunction | None = None) -> Any:
    """Runs fn as a root test. Without fn, returns a decorator."""
    if fn is None:

        def decorator(func: TestFunction) -> TestFunction:
            current_registrar().register(name, func)
            return func

        return decorator
    return current_registrar().register(name, fn)


test.__test__ = False  # type: ignore[attr-defined]


# 🔼⚙️
