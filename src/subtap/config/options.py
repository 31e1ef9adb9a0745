#
# src/subtap/config/options.py
#
"""
Parsers that turn command line option strings into configuration values.
Each raises ConfigurationError with a message fit for the user.
"""

import os
import re

import structlog

from subtap.config.models import STDIO_DESTINATIONS, DiffMarks, TestSelection
from subtap.exceptions import ConfigurationError
from subtap.render.styles import StyleMode

log = structlog.get_logger("config.options")

REGEX_VALID_SELECTION = re.compile(r"^\d+(\.\.\d+)?(,\d+(\.\.\d+)?)*$")
REGEX_WRAP = re.compile(r"^(\d+):(\d+)$")
REGEX_MARKS = re.compile(r"^[BCF_]*(:[BCF_]*)?$")

CANONICAL_OFFSET = 10


def parse_selection(text: str) -> TestSelection:
    """Parses '-r' syntax: comma-delimited numbers and inclusive 'N..M' ranges."""
    if not REGEX_VALID_SELECTION.match(text):
        raise ConfigurationError(
            '-r requires one or more comma-delimited numbers or ranges ("N..M")'
        )
    ranges: list[tuple[int, int]] = []
    for term in text.split(","):
        first_text, _, last_text = term.partition("..")
        first = int(first_text)
        last = int(last_text) if last_text else first
        if first == 0 or last == 0:
            raise ConfigurationError("root test number 0 is not valid in -r")
        if last < first:
            raise ConfigurationError(f"range {term} in -r is backwards")
        ranges.append((first, last))
    log.debug("Parsed test selection", selection=text, ranges=ranges)
    return TestSelection(tuple(ranges))


def parse_wrap(text: str) -> tuple[int, int]:
    """Parses '--wrap M:N' into (minimum results width, results margin)."""
    match = REGEX_WRAP.match(text)
    if not match:
        raise ConfigurationError("--wrap requires two integers of the form M:N")
    min_width, margin = int(match.group(1)), int(match.group(2))
    if min_width == 0 or margin == 0:
        raise ConfigurationError("--wrap values must be greater than zero")
    return min_width, margin


def _marks_from_flags(flags: str) -> DiffMarks:
    return DiffMarks(bold="B" in flags, color="C" in flags, first_char="F" in flags)


def parse_marks(text: str) -> tuple[DiffMarks, DiffMarks]:
    """Parses '--mark BLOCK[:INTERLEAVED]' flags (B bold, C color, F first char, _ none)."""
    flags = text.upper()
    if not REGEX_MARKS.match(flags):
        raise ConfigurationError(
            "--mark takes flags B, C, F or _, optionally followed by ':' and more flags"
        )
    block_flags, _, interleaved_flags = flags.partition(":")
    block = _marks_from_flags(block_flags)
    interleaved = _marks_from_flags(interleaved_flags) if ":" in flags else block
    return block, interleaved


def parse_color_mode(mode: int) -> tuple[StyleMode, bool]:
    """Splits '-c' into a style mode and whether output is canonicalized."""
    canonical = mode >= CANONICAL_OFFSET
    base = mode - CANONICAL_OFFSET if canonical else mode
    try:
        return StyleMode(base), canonical
    except ValueError as e:
        raise ConfigurationError(
            f"invalid color mode {mode}; use 0, 1 or 2, plus 10 for canonical output", e
        ) from e


def normalize_stdio_dest(option: str, value: str, cwd: str) -> str:
    """Returns a named stdio policy, or an absolute path for './x' and '/x' values."""
    lowered = value.lower()
    if lowered in STDIO_DESTINATIONS:
        return lowered
    if not value.startswith(("/", ".")):
        raise ConfigurationError(f"invalid --{option} value (-h for help)")
    return os.path.abspath(os.path.join(cwd, value))


# 🔼⚙️
