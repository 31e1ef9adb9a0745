#
# src/subtap/protocol/__init__.py
#
"""
TAP decoding and the report state machine.
"""
from .decoder import TapDecoder
from .events import Assertion, Counts, EventKind, Plan, TapEvent, TestFrame, TestResults
from .states import ParseState

__all__ = [
    "Assertion",
    "Counts",
    "EventKind",
    "ParseState",
    "Plan",
    "TapDecoder",
    "TapEvent",
    "TestFrame",
    "TestResults",
]

# 🔼⚙️
