#
# config/__init__.py
#
"""
Configuration handling sub-package for subtap.

Exports the configuration models and the option parsers that build them.
"""

from .models import (
    DiffMarks,
    OutputFormat,
    ReportConfig,
    RunConfig,
    TestSelection,
)
from .options import (
    normalize_stdio_dest,
    parse_color_mode,
    parse_marks,
    parse_selection,
    parse_wrap,
)

__all__ = [
    "DiffMarks",
    "OutputFormat",
    "ReportConfig",
    "RunConfig",
    "TestSelection",
    "normalize_stdio_dest",
    "parse_color_mode",
    "parse_marks",
    "parse_selection",
    "parse_wrap",
]

# 🔼⚙️
