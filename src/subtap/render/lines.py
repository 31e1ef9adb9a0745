#
# src/subtap/render/lines.py
#
"""
LineMaker formats lines for a terminal.

Callers style text as if escape sequences were always available; the style
mode decides which sequences actually reach the output:

- StyleMode.OFF: no escape sequences that style text
- StyleMode.MONOCHROME: emphasis but no color
- StyleMode.ALL: everything

Every styled string ends in the 'normal' sequence, so nesting one style
inside another ends the outer style at the end of the inner one.

LineMaker also clears to the end of a terminal line when the line may hold
leftover text, provided callers use temp_line() and up_line() for rewrites.
Methods with 'line' in their name write to the stream as well as return the
text they produced.
"""

import re
import sys
from typing import TextIO

from subtap.exceptions import RenderError
from subtap.render.styles import STYLE_MAP, StyleMode, color_map_for

MAX_SPACES = 512
REGEX_ESCAPE = re.compile(r"\x1b[^a-zA-Z]*[a-zA-Z]")
REGEX_CANONICAL = re.compile(r"(\r|\x1b\[F|\x1b)")
CANONICAL_TOKENS = {"\r": "\\r\n", "\x1b[F": "\\^", "\x1b": "\\e"}


def canonicalize(text: str) -> str:
    """Makes carriage returns, cursor-ups and escapes visible for recording."""
    return REGEX_CANONICAL.sub(lambda match: CANONICAL_TOKENS[match.group(0)], text)


def printed_length(text: str) -> int:
    """Number of characters text occupies on a terminal."""
    return len(REGEX_ESCAPE.sub("", text))


def spaces(count: int) -> str:
    if count > MAX_SPACES:
        raise RenderError(f"Excessive space request ({count} spaces) may indicate error")
    return " " * max(count, 0)


class LineMaker:
    """Stateful renderer of indented, styled and wrapped terminal lines."""

    def __init__(
        self,
        stream: TextIO | None = None,
        tab_size: int = 2,
        style_mode: StyleMode = StyleMode.ALL,
        color_system: str | None = "256",
        canonical: bool = False,
    ):
        self.stream = stream if stream is not None else sys.stdout
        self.tab_size = tab_size
        self.style_mode = StyleMode(style_mode)
        self.canonical = canonical
        self._style_map = dict(STYLE_MAP)
        self._color_ids: frozenset[str] = frozenset()

        if self.style_mode > StyleMode.MONOCHROME:
            color_map = color_map_for(color_system)
            if color_map is None:
                self.style_mode = StyleMode.MONOCHROME
            else:
                self._style_map.update(color_map)
                self._color_ids = frozenset(color_map)

        # whether the terminal line at the cursor holds no earlier text
        self._line_is_clear = True
        # lines the cursor sits above the bottom-most line written
        self._up_line_count = 0

    # --- styling ---

    def escape(self, style_id: str) -> str:
        """The sequence for style_id as the style mode permits, else ''."""
        if self.style_mode == StyleMode.OFF:
            return ""
        if style_id in self._color_ids or style_id not in self._style_map:
            if self.style_mode <= StyleMode.MONOCHROME:
                return ""
        return self._style_map.get(style_id, "")

    def style(self, style_id: str, text: str) -> str:
        esc = self.escape(style_id)
        return esc + text + self._style_map["normal"] if esc else text

    def color(self, style_id: str, text: str) -> str:
        if self.style_mode <= StyleMode.MONOCHROME:
            return text
        return self.style(style_id, text)

    def style_wrap(self, style_id: str, text: str, width: int) -> str:
        """Wraps text at width, each line styled and right-padded to width."""
        return self._wrap(style_id, text, width)

    def color_wrap(self, style_id: str, text: str, width: int) -> str:
        """Like style_wrap() but only when colors are on.

        With a background color, multiple lines appear as a colored box.
        """
        if self.style_mode <= StyleMode.MONOCHROME:
            return self._wrap(None, text, width)
        return self._wrap(style_id, text, width)

    def wrap(self, text: str, width: int) -> str:
        """Wraps text at width without adding style or padding."""
        return self._wrap(None, text, width)

    # --- output ---

    def margin(self, level: int) -> str:
        return spaces(level * self.tab_size)

    def spaces(self, count: int) -> str:
        return spaces(count)

    def line(self, level: int, text: str) -> str:
        return self._write(self.margin(level) + text + self._eol() + self._lf())

    def temp_line(self, level: int, text: str) -> str:
        """A line ending in a carriage return, so the next line overwrites it."""
        return self._write(self.margin(level) + text + self._eol() + self._cr())

    def blank_line(self) -> str:
        return self._write(self._eol() + self._lf())

    def multiline(self, level: int, text: str) -> str:
        """Writes each "\\n"-terminated line of text at the given level."""
        lines = text.split("\n")
        if lines[-1] == "":
            lines.pop()
        margin = self.margin(level)
        out = "".join(margin + line + self._eol() + self._lf() for line in lines)
        return self._write(out)

    def up_line(self) -> str:
        """Moves the cursor to the start of the prior line."""
        self._line_is_clear = False
        self._up_line_count += 1
        return self._write(self._style_map["up_line"])

    # --- internals ---

    def _eol(self) -> str:
        return "" if self._line_is_clear else self._style_map["clear_end"]

    def _cr(self) -> str:
        self._line_is_clear = False
        return "\r"

    def _lf(self) -> str:
        if self._up_line_count == 0:
            self._line_is_clear = True
        else:
            self._up_line_count -= 1
            self._line_is_clear = False
        return "\n"

    def _wrap(self, style_id: str | None, text: str, width: int) -> str:
        esc = (self.escape(style_id) or None) if style_id is not None else None
        normal = self._style_map["normal"]
        out: list[str] = []
        for source_line in text.split("\n"):
            if width > 0:
                pieces = self._wrap_line(source_line, width)
            else:
                pieces = [(source_line, REGEX_ESCAPE.search(source_line) is not None)]
            for piece, includes_esc in pieces:
                if width > 0 and includes_esc:
                    piece += normal
                if esc is not None:
                    if width > 0:
                        printed = printed_length(piece)
                        if printed < width:
                            if includes_esc:
                                piece += esc
                            piece += spaces(width - printed)
                    piece = esc + piece + normal
                out.append(piece)
        return "\n".join(out)

    def _wrap_line(self, line: str, width: int) -> list[tuple[str, bool]]:
        """Cuts line into pieces of at most width printed characters.

        Escape sequences are never split. The sequences opened since the
        last 'normal' reset are reopened at the start of the next piece.
        """
        normal = self._style_map["normal"]
        pieces: list[tuple[str, bool]] = []
        current = ""
        printed = 0
        includes_esc = False
        carry = ""
        pos = 0
        while pos < len(line):
            match = REGEX_ESCAPE.match(line, pos)
            if match:
                sequence = match.group(0)
                current += sequence
                includes_esc = True
                carry = "" if sequence == normal else carry + sequence
                pos = match.end()
                continue
            if printed == width:
                pieces.append((current, includes_esc))
                current = carry
                includes_esc = bool(carry)
                printed = 0
            current += line[pos]
            printed += 1
            pos += 1
        pieces.append((current, includes_esc))
        return pieces

    def _write(self, text: str) -> str:
        self.stream.write(canonicalize(text) if self.canonical else text)
        return text


# 🔼⚙️
