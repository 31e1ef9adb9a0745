#
# src/subtap/reports/__init__.py
#
"""
Report variants rendered from the TAP event stream.
"""
from .base import BaseReport
from .failure import FailureReport
from .full import FullReport
from .protocols import Report
from .root import RootTestReport

__all__ = [
    "BaseReport",
    "FailureReport",
    "FullReport",
    "Report",
    "RootTestReport",
]

# 🔼⚙️
