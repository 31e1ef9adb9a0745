#
# src/subtap/render/diff.py
#
"""
Renders the found/wanted values of a failed assertion and highlights
exactly where they diverge.

Three layouts are available: a pair of padded single lines, a pair of
labeled multi-line blocks, and (with interleave_diffs) a line diff that
interleaves wanted rows with found rows.
"""

import difflib

import structlog
from attrs import define, field

from subtap.config.models import DiffMarks, ReportConfig
from subtap.protocol.events import Assertion
from subtap.render.lines import LineMaker
from subtap.render.styles import StyleMode
from subtap.render.values import (
    TypedValue,
    normalize_value,
    with_visible_newlines,
)

log = structlog.get_logger("render.diff")

LABEL_FOUND = "found:"
LABEL_WANTED = "wanted:"
LABEL_DO_NOT_WANT = "doNotWant:"
LABEL_DIFF = "diff:"
SYMBOL_WANTED_LINE = "→"
SYMBOL_FOUND_LINE = "✗"
VALUE_KEYS = ("found", "wanted", "doNotWant")


@define(frozen=True, slots=True)
class Divergence:
    """Span [start, *_end) that differs in each of two strings."""

    start: int = field()
    found_end: int = field()
    wanted_end: int = field()


def find_divergence(found: str, wanted: str, line_scoped: bool = False) -> Divergence | None:
    """Locates the differing span of found and wanted, or None if identical.

    The span starts at the first differing character. Its end is found by
    matching characters backward from the ends of the strings (or, with
    line_scoped, from the ends of the lines holding the start) without
    crossing the start. When one string extends the other, the span is
    empty in the shorter string.
    """
    shorter = min(len(found), len(wanted))
    start = 0
    while start < shorter and found[start] == wanted[start]:
        start += 1
    if start == shorter and len(found) == len(wanted):
        return None

    found_end, wanted_end = len(found), len(wanted)
    if line_scoped:
        found_end = _line_end(found, start)
        wanted_end = _line_end(wanted, start)
    while (
        found_end > start
        and wanted_end > start
        and found[found_end - 1] == wanted[wanted_end - 1]
    ):
        found_end -= 1
        wanted_end -= 1
    return Divergence(start, found_end, wanted_end)


def _line_end(text: str, index: int) -> int:
    newline = text.find("\n", index)
    return len(text) if newline < 0 else newline


class DiffRenderer:
    """Writes the found/wanted section of a failed assertion through a LineMaker."""

    def __init__(self, maker: LineMaker, config: ReportConfig):
        self.maker = maker
        self.config = config

    def render(self, indent_level: int, assertion: Assertion) -> None:
        """Prints the values of assertion.diag and removes them from it."""
        diag = assertion.diag
        if not diag or "found" not in diag:
            return

        found = self._normalize(diag["found"], False)
        expected_key = next((key for key in ("wanted", "doNotWant") if key in diag), None)

        if expected_key is None:
            self._print_found_only(indent_level, with_visible_newlines(found))
        else:
            expected = self._normalize(diag[expected_key], found.quoted)
            if expected.quoted and found.kind == "string" and not found.quoted:
                found = self._normalize(diag["found"], True)
            label = LABEL_WANTED if expected_key == "wanted" else LABEL_DO_NOT_WANT
            highlight = expected_key == "wanted"
            if (
                self.config.interleave_diffs
                and highlight
                and found.diffable
                and found.kind == expected.kind
            ):
                self._print_interleaved(indent_level, found, expected)
            else:
                self._print_pair(
                    indent_level,
                    with_visible_newlines(found),
                    with_visible_newlines(expected),
                    label,
                    highlight,
                )

        for key in VALUE_KEYS:
            diag.pop(key, None)

    # --- layouts ---

    def _print_found_only(self, indent_level: int, found: TypedValue) -> None:
        left_margin = indent_level * self.config.tab_size
        single_width = self.config.min_results_margin - left_margin - len(LABEL_FOUND) - 1
        if not found.multiline and len(found.text) < single_width:
            text = self._pad(found.text, single_width, "found")
            self.maker.line(indent_level, f"{LABEL_FOUND} {self.maker.color('found', text)}")
        else:
            self._print_block(indent_level, LABEL_FOUND, found.text, "found")

    def _print_pair(
        self,
        indent_level: int,
        found: TypedValue,
        expected: TypedValue,
        label: str,
        highlight: bool,
    ) -> None:
        left_margin = indent_level * self.config.tab_size
        label_width = max(len(LABEL_FOUND), len(label)) + 1
        single_width = self.config.min_results_margin - left_margin - label_width
        marks = self.config.block_marks

        if (
            not found.multiline
            and not expected.multiline
            and len(found.text) < single_width
            and len(expected.text) < single_width
        ):
            divergence = find_divergence(found.text, expected.text) if highlight else None
            found_text, expected_text = self._mark_pair(
                found.text, expected.text, divergence, marks
            )
            found_text = self._pad(found_text, single_width, "found", len(found.text))
            expected_text = self._pad(expected_text, single_width, "wanted", len(expected.text))
            self.maker.line(
                indent_level,
                LABEL_FOUND.ljust(label_width) + self.maker.color("found", found_text),
            )
            self.maker.line(
                indent_level,
                label.ljust(label_width) + self.maker.color("wanted", expected_text),
            )
            return

        divergence = (
            find_divergence(found.text, expected.text, line_scoped=True) if highlight else None
        )
        found_text, expected_text = self._mark_pair(found.text, expected.text, divergence, marks)
        self._print_block(indent_level, LABEL_FOUND, found_text, "found")
        self._print_block(indent_level, label, expected_text, "wanted")

    def _print_interleaved(
        self, indent_level: int, found: TypedValue, wanted: TypedValue
    ) -> None:
        wanted_lines = wanted.text.split("\n")
        found_lines = found.text.split("\n")
        matcher = difflib.SequenceMatcher(None, wanted_lines, found_lines, autojunk=False)
        marks = self.config.interleaved_marks
        width = self._row_width(indent_level)

        self.maker.line(indent_level, f"{LABEL_DIFF} |")
        for tag, w_start, w_stop, f_start, f_stop in matcher.get_opcodes():
            if tag == "equal":
                for line in wanted_lines[w_start:w_stop]:
                    self._print_row(indent_level + 1, " ", line, None, width)
                continue
            wanted_text = "\n".join(wanted_lines[w_start:w_stop])
            found_text = "\n".join(found_lines[f_start:f_stop])
            if tag == "replace":
                divergence = find_divergence(found_text, wanted_text)
                found_text, wanted_text = self._mark_pair(
                    found_text, wanted_text, divergence, marks
                )
            if w_stop > w_start:
                for line in wanted_text.split("\n"):
                    self._print_row(indent_level + 1, SYMBOL_WANTED_LINE, line, "wanted", width)
            if f_stop > f_start:
                for line in found_text.split("\n"):
                    self._print_row(indent_level + 1, SYMBOL_FOUND_LINE, line, "found", width)

    # --- helpers ---

    def _normalize(self, value, must_quote: bool) -> TypedValue:
        return normalize_value(
            value,
            must_quote=must_quote,
            indent=self.config.tab_size,
            show_function_source=self.config.show_function_source,
        )

    def _block_width(self, indent_level: int) -> int:
        value_margin = (indent_level + 1) * self.config.tab_size
        return max(self.config.min_results_width, self.config.min_results_margin - value_margin)

    def _row_width(self, indent_level: int) -> int:
        return max(self.config.min_results_width, self._block_width(indent_level) - 2)

    def _print_block(self, indent_level: int, label: str, text: str, style_id: str) -> None:
        self.maker.line(indent_level, f"{label} |")
        wrapped = self.maker.color_wrap(style_id, text, self._block_width(indent_level))
        self.maker.multiline(indent_level + 1, wrapped)

    def _print_row(
        self, level: int, symbol: str, text: str, style_id: str | None, width: int
    ) -> None:
        if style_id is None:
            wrapped = self.maker.wrap(text, width)
        else:
            wrapped = self.maker.color_wrap(style_id, text, width)
        for index, piece in enumerate(wrapped.split("\n")):
            prefix = symbol if index == 0 else " "
            self.maker.line(level, f"{prefix} {piece}")

    def _pad(self, text: str, width: int, style_id: str, printed: int | None = None) -> str:
        """Surrounds a short value with spaces so its background reads well."""
        if self.maker.style_mode < StyleMode.ALL:
            return text
        printed = len(text) if printed is None else printed
        text = " " + text
        if printed + 1 < width:
            text += self.maker.color(style_id, " ")
        return text

    def _mark_pair(
        self,
        found: str,
        wanted: str,
        divergence: Divergence | None,
        marks: DiffMarks,
    ) -> tuple[str, str]:
        if divergence is None or not marks.any:
            return found, wanted
        return (
            self.mark_span(found, divergence.start, divergence.found_end, marks, "found"),
            self.mark_span(wanted, divergence.start, divergence.wanted_end, marks, "wanted"),
        )

    def mark_span(
        self, text: str, start: int, end: int, marks: DiffMarks, block_style: str
    ) -> str:
        """Emphasizes text[start:end] inside a block painted with block_style.

        Each emphasis ends with a reset, so the block style is reopened after
        it and around every newline inside the span.
        """
        if start >= end:
            return text
        maker = self.maker
        normal = maker.escape("normal")
        restart = maker.escape(block_style)
        emphasis = (maker.escape("bold") if marks.bold else "") + (
            maker.escape("fail") if marks.color else ""
        )
        inverse = maker.escape("inverse") if marks.first_char else ""

        def styled(seq: str, chars: str) -> str:
            if not seq or not chars:
                return chars
            chars = chars.replace("\n", f"{normal}\n{restart}{seq}")
            return f"{seq}{chars}{normal}{restart}"

        span = text[start:end]
        if inverse and span[0] != "\n":
            marked = styled(emphasis + inverse, span[0]) + styled(emphasis, span[1:])
        else:
            marked = styled(emphasis, span)
        return text[:start] + marked + text[end:]


# 🔼⚙️
