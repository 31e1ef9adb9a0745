#
# tests/unit/test_diff.py
#
"""
Tests for value normalization, divergence detection and the found/wanted
layouts.
"""

import io

import pytest
from attrs import evolve

from subtap.config import DiffMarks, ReportConfig
from subtap.protocol.events import Assertion
from subtap.render.diff import DiffRenderer, Divergence, find_divergence
from subtap.render.lines import LineMaker
from subtap.render.styles import StyleMode
from subtap.render.values import (
    is_ambiguous_string,
    normalize_value,
    truncate_function,
    with_visible_newlines,
)


def render(config: ReportConfig, diag: dict, level: int = 1) -> tuple[str, dict]:
    stream = io.StringIO()
    maker = LineMaker(
        stream,
        tab_size=config.tab_size,
        style_mode=config.style_mode,
        color_system=config.color_system,
    )
    assertion = Assertion(id=1, name="x", ok=False, diag=diag)
    DiffRenderer(maker, config).render(level, assertion)
    return stream.getvalue(), assertion.diag


class TestNormalizeValue:
    """Projection of decoded values onto printable text."""

    def test_none_bool_and_numbers(self) -> None:
        assert normalize_value(None).text == "None"
        assert normalize_value(None).kind == "null"
        assert normalize_value(True).text == "True"
        assert normalize_value(2.5).text == "2.5"
        assert normalize_value(7).kind == "number"

    def test_ambiguous_strings_are_quoted(self) -> None:
        value = normalize_value("42")
        assert value.text == "'42'"
        assert value.quoted

    def test_plain_string_is_bare_unless_quote_required(self) -> None:
        assert normalize_value("hello").text == "hello"
        assert normalize_value("hello", must_quote=True).text == "'hello'"

    def test_structured_values_are_sorted_json(self) -> None:
        value = normalize_value({"b": 1, "a": [1, 2]}, indent=2)
        assert value.kind == "structured"
        assert value.text == '{\n  "a": [\n    1,\n    2\n  ],\n  "b": 1\n}'

    def test_function_source_is_cut_to_its_signature(self) -> None:
        source = "def add(a, b):\n    return a + b"
        value = normalize_value(source)
        assert value.kind == "function"
        assert value.text == "def add(a, b)"
        assert normalize_value(source, show_function_source=True).text == source

    def test_functions_inside_structures_are_truncated(self) -> None:
        value = normalize_value({"fn": "lambda x: x + 1"})
        assert '"fn": "lambda x"' in value.text

    @pytest.mark.parametrize(
        "text,expected",
        [("None", True), ("false", True), ("1e3", True), ("1O", True), ("  ", True), ("abc", False)],
    )
    def test_is_ambiguous_string(self, text: str, expected: bool) -> None:
        assert is_ambiguous_string(text) is expected

    def test_truncate_function_leaves_other_text(self) -> None:
        assert truncate_function("not a function") == "not a function"

    def test_visible_newlines(self) -> None:
        value = with_visible_newlines(normalize_value("a\nb"))
        assert value.text == "a⏎\nb"
        structured = normalize_value([1])
        assert with_visible_newlines(structured) is structured


class TestFindDivergence:
    """The differing span of two strings."""

    def test_identical_strings(self) -> None:
        assert find_divergence("same", "same") is None

    def test_single_character_difference(self) -> None:
        assert find_divergence("abc", "abd") == Divergence(2, 3, 3)

    def test_extension_is_empty_in_shorter_string(self) -> None:
        assert find_divergence("ab", "abcdef") == Divergence(2, 2, 6)

    def test_end_matching_never_crosses_start(self) -> None:
        assert find_divergence("aXa", "aa") == Divergence(1, 2, 1)

    def test_line_scoped_search_stops_at_line_end(self) -> None:
        found = "one\ntwo\nend"
        wanted = "one\ntoo\nend"
        assert find_divergence(found, wanted) == Divergence(5, 6, 6)
        assert find_divergence(found, wanted, line_scoped=True) == Divergence(5, 6, 6)
        assert find_divergence("ab\nzz", "ac\nzz", line_scoped=True) == Divergence(1, 2, 2)


class TestDiffRenderer:
    """Layouts of found/wanted values, without styling."""

    def test_single_line_pair(self, plain_config: ReportConfig) -> None:
        output, diag = render(plain_config, {"found": "abc", "wanted": "abd", "compare": "==="})
        assert output == "  found:  abc\n  wanted: abd\n"
        assert diag == {"compare": "==="}

    def test_found_only(self, plain_config: ReportConfig) -> None:
        output, diag = render(plain_config, {"found": "text", "pattern": "^x"})
        assert output == "  found: text\n"
        assert diag == {"pattern": "^x"}

    def test_do_not_want(self, plain_config: ReportConfig) -> None:
        output, diag = render(plain_config, {"found": 1, "doNotWant": 1})
        assert output == "  found:     1\n  doNotWant: 1\n"
        assert diag == {}

    def test_wanted_is_quoted_when_found_is(self, plain_config: ReportConfig) -> None:
        output, _ = render(plain_config, {"found": "1", "wanted": "one"})
        assert "found:  '1'" in output
        assert "wanted: 'one'" in output

    def test_found_is_quoted_when_wanted_is(self, plain_config: ReportConfig) -> None:
        output, _ = render(plain_config, {"found": "one", "wanted": "1"})
        assert "found:  'one'" in output
        assert "wanted: '1'" in output

    def test_multiline_values_render_as_blocks(self, plain_config: ReportConfig) -> None:
        output, _ = render(plain_config, {"found": "a\nb", "wanted": "a\nc"})
        assert output == "  found: |\n    a⏎\n    b\n  wanted: |\n    a⏎\n    c\n"

    def test_long_values_wrap_in_blocks(self, plain_config: ReportConfig) -> None:
        config = evolve(plain_config, min_results_width=10, min_results_margin=14)
        output, _ = render(config, {"found": "x" * 25, "wanted": "y"}, level=0)
        lines = output.split("\n")
        assert lines[0] == "found: |"
        assert lines[1:4] == ["  " + "x" * 12, "  " + "x" * 12, "  x"]

    def test_interleaved_diff(self, plain_config: ReportConfig) -> None:
        config = evolve(plain_config, interleave_diffs=True)
        output, _ = render(config, {"found": "a\nb\nc", "wanted": "a\nx\nc"})
        assert output == "  diff: |\n      a\n    → x\n    ✗ b\n      c\n"

    def test_interleaved_diff_needs_matching_kinds(self, plain_config: ReportConfig) -> None:
        config = evolve(plain_config, interleave_diffs=True)
        output, _ = render(config, {"found": 1, "wanted": "a\nb"})
        assert "diff:" not in output

    def test_divergence_is_marked_in_color(self) -> None:
        config = ReportConfig(
            style_mode=StyleMode.ALL,
            color_system="256",
            block_marks=DiffMarks(bold=True),
        )
        output, _ = render(config, {"found": "abc", "wanted": "abd"})
        found_line = output.split("\n")[0]
        assert "ab\x1b[1mc\x1b[0m" in found_line

    def test_interleaved_replace_marks_the_divergence(self) -> None:
        config = ReportConfig(
            style_mode=StyleMode.ALL,
            color_system="256",
            interleave_diffs=True,
            interleaved_marks=DiffMarks(bold=True),
        )
        output, _ = render(config, {"found": "a\nbXd\nc", "wanted": "a\nbYd\nc"})
        assert "b\x1b[1mX\x1b[0m\x1b[48;5;225md" in output
        assert "b\x1b[1mY\x1b[0m\x1b[48;5;194md" in output
        assert output.count("\x1b[1m") == 2
