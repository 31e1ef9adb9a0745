#
# tests/conftest.py
#
import io
import textwrap
from pathlib import Path

import pytest

from subtap.config import ReportConfig
from subtap.protocol.printer import ReportPrinter
from subtap.render.styles import StyleMode
from subtap.reports import RootTestReport


@pytest.fixture
def plain_config() -> ReportConfig:
    """Report settings that produce no escape sequences apart from cursor control."""
    return ReportConfig(style_mode=StyleMode.OFF, color_system=None, cwd="/work")


@pytest.fixture
def render_tap(plain_config: ReportConfig):
    """Feeds TAP text through a ReportPrinter and returns (output, errors, printer)."""

    def render(tap: str, report_class=RootTestReport, config: ReportConfig | None = None):
        stream = io.StringIO()
        errors = io.StringIO()
        printer = ReportPrinter(report_class(stream, config or plain_config), error_stream=errors)
        printer.write(textwrap.dedent(tap).lstrip("\n"))
        printer.end()
        return stream.getvalue(), errors.getvalue(), printer

    return render


@pytest.fixture
def write_test_file(tmp_path: Path):
    """Writes a dedented test file under tmp_path and returns its absolute path."""

    def write(name: str, source: str) -> str:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source).lstrip("\n"), encoding="utf-8")
        return str(path)

    return write
