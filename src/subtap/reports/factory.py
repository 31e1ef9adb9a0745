#
# src/subtap/reports/factory.py
#
"""
Factory for the sink that consumes a run's TAP stream.
"""
import sys
from typing import TextIO

import structlog

from subtap.config.models import OutputFormat, ReportConfig
from subtap.exceptions import ConfigurationError
from subtap.protocol.printer import ReportPrinter
from subtap.protocol.sinks import JsonEventSink, RawTapSink, TapSink
from subtap.reports.failure import FailureReport
from subtap.reports.full import FullReport
from subtap.reports.root import RootTestReport

log = structlog.get_logger("reports.factory")

REPORT_MAP = {
    OutputFormat.ALL: FullReport,
    OutputFormat.TALLY: RootTestReport,
    OutputFormat.FAIL: FailureReport,
}


def make_sink(
    output_format: OutputFormat | str,
    config: ReportConfig,
    stream: TextIO | None = None,
    error_stream: TextIO | None = None,
) -> TapSink:
    """
    Factory function returning the TapSink for an output format.
    """
    try:
        output_format = OutputFormat(output_format)
    except ValueError as e:
        log.error("Unsupported output format specified", output_format=output_format)
        raise ConfigurationError(
            f"unrecognized output format '{output_format}'. "
            f"Available formats: {[f.value for f in OutputFormat]}",
            e,
        ) from e

    stream = stream if stream is not None else sys.stdout
    log.debug("Instantiating output sink", output_format=output_format.value)
    if output_format is OutputFormat.TAP:
        return RawTapSink(stream)
    if output_format is OutputFormat.JSON:
        return JsonEventSink(stream, indent=config.tab_size, unstack_paths=config.unstack_paths)
    report = REPORT_MAP[output_format](stream, config)
    return ReportPrinter(report, error_stream=error_stream)


# 🔼⚙️
