# src/subtap/cli/main.py

"""
Main CLI entry point for subtap using Click.

Collects the test files matching the given patterns, runs each in its own
worker process and renders the combined TAP as the selected report.
"""

import asyncio
import glob
import os
import sys

import click
import structlog

from subtap import __version__
from subtap.cli.utils import logging_options, setup_logging_from_context
from subtap.config.models import OutputFormat, ReportConfig, RunConfig
from subtap.config.options import (
    normalize_stdio_dest,
    parse_color_mode,
    parse_marks,
    parse_selection,
    parse_wrap,
)
from subtap.exceptions import ConfigurationError, SubtapError
from subtap.render.styles import StyleMode, detect_color_system
from subtap.reports.factory import make_sink
from subtap.runtime.supervisor import TestSupervisor
from subtap.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.main")

DEFAULT_PATTERNS = ("test/*.py", "tests/*.py")
COLOR_SYSTEM_CHOICES = {"16": "standard", "256": "256"}


def expand_patterns(patterns: tuple[str, ...], cwd: str) -> list[str]:
    """Absolute paths of the files matching each pattern, in order, without repeats."""
    explicit = bool(patterns)
    file_paths: list[str] = []
    for pattern in patterns or DEFAULT_PATTERNS:
        matches = sorted(glob.glob(os.path.join(cwd, pattern), recursive=True))
        matches = [path for path in matches if os.path.isfile(path)]
        if not matches and explicit:
            raise ConfigurationError(f"no files match pattern {pattern}")
        for path in matches:
            path = os.path.abspath(path)
            if path not in file_paths:
                file_paths.append(path)
    return file_paths


def resolve_color_system(colors: str, canonical: bool) -> str | None:
    if colors in COLOR_SYSTEM_CHOICES:
        return COLOR_SYSTEM_CHOICES[colors]
    if canonical:
        return "256"
    return detect_color_system(sys.stdout)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "-V", "--version", package_name="subtap")
@click.argument("patterns", nargs=-1)
@click.option("--all", "output_format", flag_value=OutputFormat.ALL.value, help="Report every test and assertion.")
@click.option(
    "--tally",
    "output_format",
    flag_value=OutputFormat.TALLY.value,
    default=True,
    help="Report root tests and failures (default).",
)
@click.option("--fail", "output_format", flag_value=OutputFormat.FAIL.value, help="Report failures only.")
@click.option("--json", "output_format", flag_value=OutputFormat.JSON.value, help="Emit decoded TAP events as JSON.")
@click.option("--tap", "output_format", flag_value=OutputFormat.TAP.value, help="Emit the raw TAP stream.")
@click.option("-b", "--bail", is_flag=True, help="Bail out on the first failed assertion.")
@click.option(
    "-m", "--max-failures", type=click.IntRange(min=0), default=0, show_default=True,
    help="Bail out after this many failed root tests (0 for no limit).",
)
@click.option(
    "-c", "--color", "color_mode", type=int, default=None,
    help="0 no styling, 1 monochrome, 2 color; add 10 for canonical output. Default by terminal.",
)
@click.option(
    "--colors", type=click.Choice(["auto", "16", "256"]), default="auto", show_default=True,
    help="Color palette to use when colors are on.",
)
@click.option("-d", "--diff", "interleave_diffs", is_flag=True, help="Interleave diffs of found and wanted values.")
@click.option("-e", "--catch", "catch_exceptions", is_flag=True, help="Report exceptions as failed assertions.")
@click.option("-f", "--full-functions", is_flag=True, help="Show the full source of function values.")
@click.option("-r", "--run", "selection", default=None, help="Root tests to run, e.g. 1,3..5.")
@click.option(
    "-t", "--timeout", "timeout_ms", type=click.IntRange(min=0), default=3000, show_default=True,
    help="Millis of worker inactivity before the run times out (0 disables).",
)
@click.option("--tab", "tab_size", type=click.IntRange(min=1), default=2, show_default=True, help="Spaces per indent level.")
@click.option("--wrap", default="20:80", show_default=True, help="Minimum results width and results margin, M:N.")
@click.option("--mark", default="BCF:C", show_default=True, help="Divergence marks for blocks[:interleaved diffs].")
@click.option("--stdout", "stdout_dest", default="end", show_default=True, help="each, end, mix, none or a ./path.")
@click.option("--stderr", "stderr_dest", default="each", show_default=True, help="each, end, mix, none or a ./path.")
@click.option("--python-arg", "python_args", multiple=True, help="Argument for each worker's interpreter.")
@click.option("--worker-arg", "worker_args", multiple=True, help="Argument passed to each test file in sys.argv.")
@click.option("--unstack", "unstack_paths", multiple=True, help="Cut stack traces at frames under this path.")
@logging_options
@click.pass_context
def cli(
    ctx: click.Context,
    patterns: tuple[str, ...],
    output_format: str,
    bail: bool,
    max_failures: int,
    color_mode: int | None,
    colors: str,
    interleave_diffs: bool,
    catch_exceptions: bool,
    full_functions: bool,
    selection: str | None,
    timeout_ms: int,
    tab_size: int,
    wrap: str,
    mark: str,
    stdout_dest: str,
    stderr_dest: str,
    python_args: tuple[str, ...],
    worker_args: tuple[str, ...],
    unstack_paths: tuple[str, ...],
    log_level: str | None,
    log_file: str | None,
    json_logs: bool | None,
):
    """
    Subtap: runs Python test files in isolated workers and reports their TAP.

    PATTERNS are globs relative to the working directory; they default to
    test/*.py and tests/*.py.
    """
    ctx.ensure_object(dict)

    ctx.obj["LOG_LEVEL"] = log_level
    ctx.obj["LOG_FILE"] = log_file
    ctx.obj["JSON_LOGS"] = json_logs if json_logs is not None else False

    setup_logging_from_context(ctx, default_log_level="WARNING")

    cwd = os.getcwd()
    try:
        if color_mode is None:
            style_mode = StyleMode.ALL if detect_color_system(sys.stdout) else StyleMode.OFF
            canonical = False
        else:
            style_mode, canonical = parse_color_mode(color_mode)
        min_width, margin = parse_wrap(wrap)
        block_marks, interleaved_marks = parse_marks(mark)
        report_config = ReportConfig(
            tab_size=tab_size,
            style_mode=style_mode,
            color_system=resolve_color_system(colors, canonical),
            canonical=canonical,
            min_results_width=min_width,
            min_results_margin=margin,
            show_function_source=full_functions,
            interleave_diffs=interleave_diffs,
            block_marks=block_marks,
            interleaved_marks=interleaved_marks,
            unstack_paths=unstack_paths,
            cwd=cwd,
        )
        run_config = RunConfig(
            file_paths=expand_patterns(patterns, cwd),
            selection=parse_selection(selection) if selection is not None else None,
            max_failed_tests=max_failures,
            bail_on_fail=bail,
            catch_exceptions=catch_exceptions,
            timeout_ms=timeout_ms,
            python_args=python_args,
            worker_args=worker_args,
            stdout_dest=normalize_stdio_dest("stdout", stdout_dest, cwd),
            stderr_dest=normalize_stdio_dest("stderr", stderr_dest, cwd),
            output_format=output_format,
            cwd=cwd,
        )
        sink = make_sink(run_config.output_format, report_config, sys.stdout, sys.stderr)
    except ConfigurationError as e:
        log.debug("Invalid configuration", error=str(e))
        click.echo(f"*** {e} ***", err=True)
        ctx.exit(1)

    log.debug(
        "Configuration resolved",
        files=len(run_config.file_paths),
        output_format=run_config.output_format.value,
        style_mode=report_config.style_mode.name,
        color_system=report_config.color_system,
    )
    supervisor = TestSupervisor(run_config, sink, stdout=sys.stdout, stderr=sys.stderr)
    try:
        exit_code = asyncio.run(supervisor.run())
    except KeyboardInterrupt:
        click.echo("\n*** interrupted ***", err=True)
        ctx.exit(130)
    except SubtapError as e:
        log.error("Test run failed", error=str(e), emoji_key="error")
        click.echo(f"\n*** {e} ***", err=True)
        ctx.exit(1)
    ctx.exit(exit_code)


if __name__ == "__main__":
    cli()

# 🔼⚙️
