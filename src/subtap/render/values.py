#
# src/subtap/render/values.py
#
"""
Normalization of found/wanted values into printable text.
"""

import json
import re
from typing import Any

from attrs import define, evolve, field

NEWLINE_SYMBOL = "⏎"
NEWLINE_SUB = NEWLINE_SYMBOL + "\n"

REGEX_FUNCTION_SIG = re.compile(
    r"^(?:async\s+)?def\s+[A-Za-z_]\w*\s*\([^)]*\)\s*(?:->\s*[^:\n]+)?:"
    r"|^lambda\b[^:\n]*:"
)
AMBIGUOUS_WORDS = frozenset({"None", "null", "True", "False", "true", "false"})


@define(frozen=True, slots=True)
class TypedValue:
    """A found or wanted value projected to text for one rendering."""

    kind: str = field()  # string, number, bool, null, structured or function
    text: str = field()
    quoted: bool = field(default=False)

    @property
    def multiline(self) -> bool:
        return "\n" in self.text

    @property
    def diffable(self) -> bool:
        """Whether the value can be compared line by line."""
        return self.kind in ("string", "structured")


def truncate_function(value: str, show_source: bool = False) -> str:
    """Cuts Python function source down to its signature."""
    if show_source:
        return value
    match = REGEX_FUNCTION_SIG.match(value)
    if not match:
        return value
    return match.group(0)[:-1].rstrip()


def is_ambiguous_string(text: str) -> bool:
    """True when text would read as something other than a string if bare."""
    if text in AMBIGUOUS_WORDS or text.strip() == "":
        return True
    for candidate in (text, text.replace("O", "0")):
        try:
            float(candidate)
        except ValueError:
            continue
        return True
    return False


def _truncate_nested(value: Any, show_source: bool) -> Any:
    if isinstance(value, str):
        return truncate_function(value, show_source)
    if isinstance(value, dict):
        return {key: _truncate_nested(item, show_source) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_truncate_nested(item, show_source) for item in value]
    return value


def normalize_value(
    value: Any,
    must_quote: bool = False,
    indent: int = 2,
    show_function_source: bool = False,
) -> TypedValue:
    """Projects a decoded diagnostic value onto a TypedValue."""
    if value is None:
        return TypedValue("null", "None")
    if isinstance(value, bool):
        return TypedValue("bool", str(value))
    if isinstance(value, (int, float)):
        return TypedValue("number", repr(value))
    if isinstance(value, (dict, list, tuple)):
        text = json.dumps(
            _truncate_nested(value, show_function_source),
            indent=indent,
            sort_keys=True,
            ensure_ascii=False,
            default=str,
        )
        return TypedValue("structured", text)
    if not isinstance(value, str):
        return TypedValue("string", str(value))

    truncated = truncate_function(value, show_function_source)
    if truncated != value or REGEX_FUNCTION_SIG.match(value):
        return TypedValue("function", truncated)
    if must_quote or is_ambiguous_string(value):
        return TypedValue("string", f"'{value}'", quoted=True)
    return TypedValue("string", value)


def with_visible_newlines(value: TypedValue) -> TypedValue:
    """Marks each newline of a string value with a visible symbol."""
    if value.kind != "string" or "\n" not in value.text:
        return value
    return evolve(value, text=value.text.replace("\n", NEWLINE_SUB))


# 🔼⚙️
