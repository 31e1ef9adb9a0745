#
# tests/unit/test_supervisor.py
#
"""
Tests for TestSupervisor, running real worker processes over small test files.
"""

import asyncio
import io
import re
from unittest.mock import AsyncMock, MagicMock

import pytest

from subtap.config import RunConfig, parse_selection
from subtap.protocol.sinks import RawTapSink
from subtap.runtime.messages import Config, Ready, decode_message
from subtap.runtime.supervisor import TestSupervisor, WorkerSession

PASSING = """
from subtap.harness import test

test("adds", lambda t: t.equal(1 + 1, 2))
"""

SECOND_PASSING = """
from subtap.harness import test


@test("subtracts")
def _(t):
    t.equal(3 - 1, 2)
"""

FAILING = """
from subtap.harness import test

test("breaks", lambda t: t.equal(1, 2))
"""

LINGERING = """
import threading
import time

from subtap.harness import test

test("adds", lambda t: t.equal(1 + 1, 2))

threading.Thread(target=time.sleep, args=(30,)).start()
"""

GARBLED = """
import os
import time

os.write(int(os.environ["SUBTAP_IPC_FD"]), b"garbage\\n")
time.sleep(30)
"""


async def supervise(tmp_path, file_paths: list[str], **options) -> tuple[int, str, str, str]:
    """Runs file_paths and returns (exit code, tap, stdout, stderr)."""
    options.setdefault("timeout_ms", 20000)
    config = RunConfig(file_paths=file_paths, cwd=str(tmp_path), **options)
    tap, stdout, stderr = io.StringIO(), io.StringIO(), io.StringIO()
    supervisor = TestSupervisor(config, RawTapSink(tap), stdout=stdout, stderr=stderr)
    exit_code = await supervisor.run()
    return exit_code, tap.getvalue(), stdout.getvalue(), stderr.getvalue()


class TestRelay:
    """Joining the TAP of several workers into one stream."""

    @pytest.mark.asyncio
    async def test_files_become_one_numbered_stream(self, tmp_path, write_test_file) -> None:
        files = [write_test_file("a.py", PASSING), write_test_file("b.py", SECOND_PASSING)]
        exit_code, tap, _, stderr = await supervise(tmp_path, files)

        assert exit_code == 0, stderr
        assert tap.startswith("TAP version 13\n")
        assert tap.count("TAP version") == 1
        assert "    # Subtest: [1] adds (a.py:3)\n" in tap
        assert re.search(r"^    # Subtest: \[2\] subtracts \(b\.py:\d+\)$", tap, re.MULTILINE)
        assert re.search(r"^ok 2 - \[2\] subtracts \(b\.py:\d+\) # time=", tap, re.MULTILINE)
        assert re.search(r"^\d+\.\.\d+", tap, re.MULTILINE) is None

    @pytest.mark.asyncio
    async def test_failures_set_the_exit_code(self, tmp_path, write_test_file) -> None:
        files = [write_test_file("a.py", FAILING)]
        exit_code, tap, _, _ = await supervise(tmp_path, files)
        assert exit_code == 1
        assert "    not ok 1 - should be equal\n" in tap

    @pytest.mark.asyncio
    async def test_failure_budget_stops_later_files(self, tmp_path, write_test_file) -> None:
        files = [write_test_file("a.py", FAILING), write_test_file("b.py", PASSING)]
        exit_code, tap, _, _ = await supervise(tmp_path, files, max_failed_tests=1)
        assert exit_code == 1
        assert "Bail out! Aborted after 1 failed root tests\n" in tap
        assert "adds" not in tap


class TestMessageHandling:
    """Supervisor replies to worker messages."""

    @pytest.mark.asyncio
    async def test_config_is_sent_when_the_worker_is_ready(self, tmp_path) -> None:
        file_path = str(tmp_path / "a.py")
        config = RunConfig(file_paths=[file_path], cwd=str(tmp_path), max_failed_tests=2)
        supervisor = TestSupervisor(config, RawTapSink(io.StringIO()))
        stdin = MagicMock()
        stdin.drain = AsyncMock()
        session = WorkerSession(file_path=file_path, prior_test_number=4)
        session.process = MagicMock(stdin=stdin)

        await supervisor._handle_message(session, Ready())

        sent = decode_message(stdin.write.call_args.args[0])
        assert isinstance(sent, Config)
        assert sent.file_path == file_path
        assert sent.prior_test_number == 4
        assert sent.max_failed_tests == 2
        stdin.close.assert_called_once()


class TestErrors:
    """Errors that end a run early."""

    @pytest.mark.asyncio
    async def test_uncaught_exception_shows_source(self, tmp_path, write_test_file) -> None:
        files = [write_test_file("a.py", "x = 1\nraise RuntimeError('boom')\n")]
        exit_code, _, _, stderr = await supervise(tmp_path, files)
        assert exit_code == 1
        assert "\na.py:2:1\nraise RuntimeError('boom')\n^\n" in stderr
        assert "RuntimeError: boom\n" in stderr

    @pytest.mark.asyncio
    async def test_silent_worker_times_out(self, tmp_path, write_test_file) -> None:
        files = [write_test_file("slow.py", "import time\ntime.sleep(10)\n")]
        exit_code, _, _, stderr = await supervise(tmp_path, files, timeout_ms=300)
        assert exit_code == 1
        assert "*** slow.py timed out after 300 millis of inactivity ***" in stderr

    @pytest.mark.asyncio
    async def test_worker_lingering_after_done_times_out(self, tmp_path, write_test_file) -> None:
        files = [write_test_file("lingering.py", LINGERING)]
        exit_code, tap, _, stderr = await asyncio.wait_for(
            supervise(tmp_path, files, timeout_ms=2000), timeout=15
        )
        assert exit_code == 1
        assert "# Subtest: [1] adds" in tap
        assert "*** lingering.py timed out after 2000 millis of inactivity ***" in stderr

    @pytest.mark.asyncio
    async def test_malformed_message_stops_the_worker(self, tmp_path, write_test_file) -> None:
        files = [write_test_file("garbled.py", GARBLED)]
        exit_code, _, _, stderr = await asyncio.wait_for(supervise(tmp_path, files), timeout=15)
        assert exit_code == 1
        assert "*** malformed worker message: 'garbage' ***" in stderr

    @pytest.mark.asyncio
    async def test_file_without_tests(self, tmp_path, write_test_file) -> None:
        files = [write_test_file("empty.py", "VALUE = 1\n")]
        exit_code, _, _, stderr = await supervise(tmp_path, files)
        assert exit_code == 1
        assert "*** no tests found ***" in stderr

    @pytest.mark.asyncio
    async def test_selection_beyond_last_test(self, tmp_path, write_test_file) -> None:
        files = [write_test_file("a.py", PASSING), write_test_file("b.py", SECOND_PASSING)]
        exit_code, tap, _, stderr = await supervise(tmp_path, files, selection=parse_selection("3"))
        assert exit_code == 1
        assert "*** root test 3 not found ***" in stderr
        assert "adds" not in tap


class TestOutputCapture:
    """Worker stdout and stderr blocks."""

    @pytest.mark.asyncio
    async def test_stdout_is_saved_for_the_end(self, tmp_path, write_test_file) -> None:
        source = PASSING + 'print("hello from a")\n'
        files = [write_test_file("a.py", source)]
        exit_code, _, stdout, _ = await supervise(tmp_path, files)
        assert exit_code == 0
        assert stdout == "---- BEGIN stdout (a.py) ----\nhello from a\n---- end stdout ----\n"

    @pytest.mark.asyncio
    async def test_discarded_output(self, tmp_path, write_test_file) -> None:
        source = PASSING + 'print("dropped")\n'
        files = [write_test_file("a.py", source)]
        exit_code, _, stdout, _ = await supervise(tmp_path, files, stdout_dest="none")
        assert exit_code == 0
        assert stdout == ""
