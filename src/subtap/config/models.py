#
# config/models.py
#
"""
Attrs-based data models for subtap run and report configuration.
"""

import os
import re
from enum import Enum
from typing import Any

from attrs import define, field

from subtap.render.styles import StyleMode

STDIO_DESTINATIONS = ("each", "end", "mix", "none")


# --- Validators ---
def _validate_positive_int(inst: Any, attr: Any, value: int) -> None:
    """Validator ensures integer is positive."""
    if not isinstance(value, int) or value <= 0:
        raise ValueError(f"Field '{attr.name}' must be positive integer, got {value}")


def _validate_non_negative_int(inst: Any, attr: Any, value: int) -> None:
    if not isinstance(value, int) or value < 0:
        raise ValueError(f"Field '{attr.name}' must be a non-negative integer, got {value}")


def _validate_stdio_dest(inst: Any, attr: Any, value: str) -> None:
    """Validator for worker stdio destinations: a named policy or a file path."""
    if value not in STDIO_DESTINATIONS and not os.path.isabs(value):
        raise ValueError(
            f"Field '{attr.name}' must be one of {list(STDIO_DESTINATIONS)} "
            f"or an absolute file path, got '{value}'"
        )


class OutputFormat(str, Enum):
    """What the supervisor does with the TAP stream it collects."""

    ALL = "all"
    TALLY = "tally"
    FAIL = "fail"
    JSON = "json"
    TAP = "tap"


@define(frozen=True, slots=True)
class DiffMarks:
    """How the differing span of a found/wanted pair is emphasized."""

    bold: bool = field(default=False)
    color: bool = field(default=False)
    first_char: bool = field(default=False)

    @property
    def any(self) -> bool:
        return self.bold or self.color or self.first_char


@define(frozen=True, slots=True)
class TestSelection:
    """Root test numbers chosen with -r, as inclusive (first, last) ranges."""

    __test__ = False  # keeps pytest from collecting this class

    ranges: tuple[tuple[int, int], ...] = field()

    def contains(self, number: int) -> bool:
        return any(first <= number <= last for first, last in self.ranges)

    @property
    def last(self) -> int:
        """Highest test number the selection names."""
        return max(last for _, last in self.ranges)

    def __str__(self) -> str:
        return ",".join(
            str(first) if first == last else f"{first}..{last}"
            for first, last in self.ranges
        )


@define(frozen=True, slots=True)
class ReportConfig:
    """Settings that shape the rendered report."""

    tab_size: int = field(default=2, validator=_validate_positive_int)
    style_mode: StyleMode = field(default=StyleMode.ALL, converter=StyleMode)
    color_system: str | None = field(default="256")
    canonical: bool = field(default=False)
    min_results_width: int = field(default=20, validator=_validate_positive_int)
    min_results_margin: int = field(default=80, validator=_validate_positive_int)
    show_function_source: bool = field(default=False)
    interleave_diffs: bool = field(default=False)
    block_marks: DiffMarks = field(factory=lambda: DiffMarks(bold=True, color=True, first_char=True))
    interleaved_marks: DiffMarks = field(factory=lambda: DiffMarks(color=True))
    unstack_paths: tuple[str, ...] = field(factory=tuple, converter=tuple)
    cwd: str = field(factory=os.getcwd)


@define(frozen=True, slots=True)
class RunConfig:
    """Settings for a supervised run over a list of test files."""

    file_paths: tuple[str, ...] = field(converter=tuple)
    selection: TestSelection | None = field(default=None)
    max_failed_tests: int = field(default=0, validator=_validate_non_negative_int)
    bail_on_fail: bool = field(default=False)
    catch_exceptions: bool = field(default=False)
    timeout_ms: int = field(default=3000, validator=_validate_non_negative_int)
    python_args: tuple[str, ...] = field(factory=tuple, converter=tuple)
    worker_args: tuple[str, ...] = field(factory=tuple, converter=tuple)
    stdout_dest: str = field(default="end", validator=_validate_stdio_dest)
    stderr_dest: str = field(default="each", validator=_validate_stdio_dest)
    output_format: OutputFormat = field(default=OutputFormat.TALLY, converter=OutputFormat)
    cwd: str = field(factory=os.getcwd)

    @property
    def location_pattern(self) -> str:
        """Regex extracting a cwd-relative 'path:line' from 'abs/path:line'."""
        return "^" + re.escape(self.cwd.rstrip(os.sep) + os.sep) + "(.+:[0-9]+)$"

    def relative_path(self, path: str) -> str:
        prefix = self.cwd.rstrip(os.sep) + os.sep
        return path[len(prefix):] if path.startswith(prefix) else path


# 🔼⚙️
