#
# src/subtap/protocol/events.py
#
"""
Data carried by decoded TAP events, and the run-wide tallies kept by the
report state machine.
"""

from enum import Enum
from typing import Any

from attrs import asdict, define, field, mutable


class EventKind(str, Enum):
    VERSION = "version"
    COMMENT = "comment"
    ASSERT = "assert"
    PLAN = "plan"
    EXTRA = "extra"
    CHILD = "child"
    COMPLETE = "complete"
    BAILOUT = "bailout"


@define(frozen=True, slots=True)
class TapEvent:
    """One decoded event. The data type depends on the kind."""

    kind: EventKind = field()
    data: Any = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        data = self.data
        if hasattr(data, "__attrs_attrs__"):
            data = asdict(data)
        return {"event": self.kind.value, "data": data}


@mutable(slots=True)
class Assertion:
    """One 'ok'/'not ok' line with its optional YAML diagnostics."""

    id: int = field()
    name: str = field()
    ok: bool = field()
    todo: str | None = field(default=None)
    skip: str | None = field(default=None)
    time_ms: float | None = field(default=None)
    diag: dict[str, Any] | None = field(default=None)


@define(frozen=True, slots=True)
class Plan:
    start: int = field()
    end: int = field()
    skip_reason: str | None = field(default=None)

    @property
    def count(self) -> int:
        return max(self.end - self.start + 1, 0)


@define(frozen=True, slots=True)
class TestResults:
    """Totals for one completed test level."""

    __test__ = False

    ok: bool = field()
    count: int = field(default=0)
    passed: int = field(default=0)
    failed: int = field(default=0)
    todo: int = field(default=0)
    skip: int = field(default=0)
    plan: Plan | None = field(default=None)
    bailed: bool = field(default=False)


@mutable(slots=True)
class TestFrame:
    """One active nesting level of a running test."""

    __test__ = False

    name: str = field()
    location: str | None = field(default=None)  # " (file:line)", root tests only


@mutable(slots=True)
class Counts:
    """Run-wide tallies. Only the state machine changes them, and only upward."""

    root_tests: int = field(default=0)
    nested_tests: int = field(default=0)
    assertions: int = field(default=0)
    failed_root_tests: int = field(default=0)
    failed_nested_tests: int = field(default=0)
    failed_assertions: int = field(default=0)


# 🔼⚙️
