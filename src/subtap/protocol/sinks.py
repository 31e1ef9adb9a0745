#
# src/subtap/protocol/sinks.py
#
"""
Destinations for the TAP text that the supervisor relays from its workers.
"""

import json
import sys
from typing import Protocol, TextIO, runtime_checkable

import structlog

from subtap.protocol.decoder import TapDecoder
from subtap.protocol.events import EventKind, TapEvent
from subtap.reports.stacks import truncate_assertion_stacks

log = structlog.get_logger("protocol.sinks")


@runtime_checkable
class TapSink(Protocol):
    """Anything that consumes relayed TAP text."""

    terminated: bool

    def write(self, chunk: str) -> None:
        """Consumes the next piece of TAP text."""
        ...

    def end(self) -> None:
        """Signals that no more text is coming."""
        ...

    def abort(self) -> None:
        """Stops output because the run is ending abnormally."""
        ...

    @property
    def failed(self) -> bool:
        """Whether the TAP seen so far reports a failure."""
        ...


class RawTapSink:
    """Relays TAP text unchanged, while decoding it to learn the outcome."""

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream if stream is not None else sys.stdout
        self.terminated = False
        self._decoder = TapDecoder()
        self._failed = False

    @property
    def failed(self) -> bool:
        return self._failed

    def write(self, chunk: str) -> None:
        self.stream.write(chunk)
        self._observe(self._decoder.feed(chunk))

    def end(self) -> None:
        self._observe(self._decoder.end())
        self.stream.flush()

    def abort(self) -> None:
        self.terminated = True

    def _observe(self, events: list[TapEvent]) -> None:
        for event in events:
            if event.kind is EventKind.BAILOUT:
                self._failed = True
            elif event.kind is EventKind.ASSERT and not event.data.ok:
                self._failed = True


class JsonEventSink:
    """Writes decoded events as a JSON array of {"event", "data"} objects."""

    def __init__(
        self,
        stream: TextIO | None = None,
        indent: int = 2,
        unstack_paths: tuple[str, ...] = (),
    ):
        self.stream = stream if stream is not None else sys.stdout
        self.indent = indent
        self.unstack_paths = unstack_paths
        self.terminated = False
        self._decoder = TapDecoder()
        self._started = False
        self._closed = False
        self._failed = False

    @property
    def failed(self) -> bool:
        return self._failed

    def write(self, chunk: str) -> None:
        if not self.terminated:
            self._dump(self._decoder.feed(chunk))

    def end(self) -> None:
        if not self.terminated:
            self._dump(self._decoder.end())
        self._close()

    def abort(self) -> None:
        self.terminated = True
        self._close()

    def _dump(self, events: list[TapEvent]) -> None:
        for event in events:
            if event.kind is EventKind.ASSERT:
                if not event.data.ok:
                    self._failed = True
                    truncate_assertion_stacks(event.data, self.unstack_paths)
            elif event.kind is EventKind.BAILOUT:
                self._failed = True
            self.stream.write(",\n" if self._started else "[\n")
            self._started = True
            self.stream.write(
                json.dumps(event.to_dict(), indent=self.indent, ensure_ascii=False, default=str)
            )

    def _close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.stream.write("\n]\n" if self._started else "[]\n")
        self.stream.flush()


# 🔼⚙️
