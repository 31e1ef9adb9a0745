#
# src/subtap/runtime/messages.py
#
"""
Messages exchanged between the supervisor and its workers.

Each message travels as one line of JSON with an "event" key naming its
type. Worker to supervisor: ready, chunk, error, done. Supervisor to
worker: config.
"""

import json
from typing import Any, TypeAlias

from attrs import asdict, define, field, fields

from subtap.exceptions import ProtocolError


@define(frozen=True, slots=True)
class Ready:
    event = "ready"


@define(frozen=True, slots=True)
class Config:
    """Everything a worker needs to run one test file."""

    event = "config"

    file_path: str = field()
    prior_test_number: int = field(default=0)
    location_pattern: str = field(default="")
    selected_tests: str = field(default="")
    failed_tests: int = field(default=0)
    max_failed_tests: int = field(default=0)
    catch_exceptions: bool = field(default=False)
    bail_on_fail: bool = field(default=False)
    cwd: str = field(default="")


@define(frozen=True, slots=True)
class Chunk:
    event = "chunk"

    text: str = field()


@define(frozen=True, slots=True)
class Error:
    """An exception that escaped the test file."""

    event = "error"

    stack: str = field()
    file: str | None = field(default=None)
    line: int | None = field(default=None)
    column: int | None = field(default=None)


@define(frozen=True, slots=True)
class Done:
    event = "done"

    last_test_number: int = field()
    failed_tests: int = field(default=0)


Message: TypeAlias = Ready | Config | Chunk | Error | Done

MESSAGE_TYPES: dict[str, type] = {
    cls.event: cls for cls in (Ready, Config, Chunk, Error, Done)
}


def encode_message(message: Message) -> bytes:
    payload: dict[str, Any] = {"event": message.event}
    payload.update(asdict(message))
    return (json.dumps(payload, ensure_ascii=False) + "\n").encode("utf-8")


def decode_message(line: bytes | str) -> Message:
    try:
        if isinstance(line, bytes):
            line = line.decode("utf-8")
        payload = json.loads(line)
        cls = MESSAGE_TYPES[payload.pop("event")]
    except (ValueError, KeyError, AttributeError, TypeError) as e:
        raise ProtocolError(f"malformed worker message: {line.strip()[:80]!r}", e) from e
    names = {attribute.name for attribute in fields(cls)}
    try:
        return cls(**{key: value for key, value in payload.items() if key in names})
    except TypeError as e:
        raise ProtocolError(f"incomplete '{cls.event}' worker message", e) from e


# 🔼⚙️
