#
# src/subtap/render/styles.py
#
"""
Escape sequences and color maps used by the report renderer.

Style names are looked up in STYLE_MAP first and then overlaid with one of
the color maps, chosen by the terminal's color system as rich detects it.
"""

from enum import IntEnum
from typing import TextIO

from rich.console import Console


class StyleMode(IntEnum):
    """Degree to which escape sequences reach the output."""

    OFF = 0
    MONOCHROME = 1
    ALL = 2


STYLE_MAP = {
    "bold": "\x1b[1m",
    "clear_end": "\x1b[K",
    "inverse": "\x1b[7m",
    "normal": "\x1b[0m",
    "underline": "\x1b[4m",
    "up_line": "\x1b[F",
}

# see the xterm 256 color chart for the numbered colors
COLORMAP_16 = {
    "fail": "\x1b[31m",  # dark red
    "fail-emph": "\x1b[97m\x1b[101m",  # bright white on bright red
    "found": "\x1b[103m",  # bright yellow
    "pass": "\x1b[32m",  # dark green
    "wanted": "\x1b[106m",  # bright cyan
}

COLORMAP_256 = {
    "fail": "\x1b[31m",  # dark red
    "fail-emph": "\x1b[38;5;124m\x1b[48;5;224m",  # dark red on light red
    "found": "\x1b[48;5;225m",  # light pink
    "pass": "\x1b[38;5;022m",  # dark green
    "wanted": "\x1b[48;5;194m",  # light green
}

COLOR_SYSTEM_MAPS = {
    "standard": COLORMAP_16,
    "windows": COLORMAP_16,
    "256": COLORMAP_256,
    "truecolor": COLORMAP_256,
}


def detect_color_system(stream: TextIO) -> str | None:
    """Returns rich's color system name for the stream, or None without color."""
    return Console(file=stream).color_system


def color_map_for(color_system: str | None) -> dict[str, str] | None:
    if color_system is None:
        return None
    return COLOR_SYSTEM_MAPS.get(color_system)


# 🔼⚙️
