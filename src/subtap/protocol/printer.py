#
# src/subtap/protocol/printer.py
#
"""
ReportPrinter decodes relayed TAP text and drives a Report through the
state machine in subtap.protocol.states.
"""

import sys
import traceback
from typing import TextIO

import structlog

from subtap.exceptions import SubtapError
from subtap.protocol.decoder import TapDecoder
from subtap.protocol.events import Counts, TapEvent, TestFrame
from subtap.protocol.states import ParseState, handle_event
from subtap.reports.protocols import Report
from subtap.telemetry import StructLogger

log: StructLogger = structlog.get_logger("protocol.printer")


class ReportPrinter:
    """Owns the test stack, the counts and the parse state of one run.

    The first exception raised while handling an event terminates the
    printer: it is printed once and every later event is ignored, so one
    internal error does not cascade into misleading report output.
    """

    def __init__(
        self,
        report: Report,
        decoder: TapDecoder | None = None,
        error_stream: TextIO | None = None,
    ):
        self.report = report
        self.decoder = decoder if decoder is not None else TapDecoder()
        self.error_stream = error_stream
        self.stack: list[TestFrame] = []
        self.counts = Counts()
        self.state = ParseState.INITIAL
        self.terminated = False
        self.finished = False
        self.bailed = False
        self.error: BaseException | None = None

    @property
    def failed(self) -> bool:
        return self.bailed or self.error is not None or self.counts.failed_assertions > 0

    def write(self, chunk: str) -> None:
        if self.terminated:
            return
        self._run(lambda: self.decoder.feed(chunk))

    def end(self) -> None:
        if self.terminated:
            return
        self._run(self.decoder.end)

    def abort(self) -> None:
        """Stops reporting without closing the report."""
        self.terminated = True

    def _run(self, decode) -> None:
        try:
            events = decode()
        except Exception as e:
            self._terminate(e)
            return
        for event in events:
            self._dispatch(event)

    def _dispatch(self, event: TapEvent) -> None:
        if self.terminated:
            return
        try:
            handle_event(self, event)
        except Exception as e:
            self._terminate(e)

    def _terminate(self, error: Exception) -> None:
        self.terminated = True
        self.error = error
        log.error(
            "Report printing terminated",
            state=self.state.value,
            depth=len(self.stack),
            error=str(error),
            emoji_key="report",
        )
        stream = self.error_stream if self.error_stream is not None else sys.stderr
        stream.write(f"\n*** {error} ***\n")
        if not isinstance(error, SubtapError):
            stream.write("".join(traceback.format_exception(error)))
        stream.flush()


# 🔼⚙️
