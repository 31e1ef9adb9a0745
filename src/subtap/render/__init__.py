#
# src/subtap/render/__init__.py
#
"""
Terminal rendering: styled line output, value normalization and diffs.
"""
from .lines import LineMaker, canonicalize, printed_length
from .styles import StyleMode

__all__ = ["LineMaker", "StyleMode", "canonicalize", "printed_length"]

# 🔼⚙️
