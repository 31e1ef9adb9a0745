#
# src/subtap/runtime/supervisor.py
#
"""
TestSupervisor runs test files one at a time, each in its own worker
process, and relays their TAP into a single sink.

Root test numbers and the failed-root-test count carry from one worker to
the next, so the sink sees one continuous stream: the version line of the
first file, every file's tests, and none of the per-file root plans.
"""

import asyncio
import os
import re
import sys
from typing import IO, Any, TextIO

import structlog
from attrs import field, mutable

from subtap.config.models import RunConfig
from subtap.exceptions import ProtocolError, SubtapError, WorkerError, WorkerTimeoutError
from subtap.protocol.sinks import TapSink
from subtap.runtime.call_stack import format_error_excerpt
from subtap.runtime.messages import Chunk, Config, Done, Error, Message, Ready, decode_message, encode_message
from subtap.runtime.worker import IPC_FD_ENV
from subtap.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.supervisor")

WORKER_MODULE = "subtap.runtime.worker"
SIGTERM_TIMEOUT = 1.0  # seconds between terminate() and kill()
MESSAGE_LIMIT = 16 * 1024 * 1024

REGEX_BAIL_OUT = re.compile(r"^bail out!", re.IGNORECASE)
REGEX_ROOT_PLAN = re.compile(r"^\d+\.\.\d+")
REGEX_VERSION = re.compile(r"^TAP version", re.IGNORECASE)


@mutable(slots=True)
class RunState:
    """Progress of a run across all of its test files."""

    file_paths: tuple[str, ...] = field()
    file_index: int = field(default=0)
    test_number: int = field(default=0)
    failed_tests: int = field(default=0)
    skipping: bool = field(default=False)
    bailed: bool = field(default=False)
    aborted: bool = field(default=False)
    timed_out: bool = field(default=False)
    errors: list[str] = field(factory=list)
    saved_stdio: list[tuple[TextIO, str]] = field(factory=list)


@mutable(slots=True)
class WorkerSession:
    """One worker process and the file it runs."""

    file_path: str = field()
    prior_test_number: int = field(default=0)
    failed_tests: int = field(default=0)
    process: asyncio.subprocess.Process | None = field(default=None)
    got_pulse: bool = field(default=False)
    timer: asyncio.TimerHandle | None = field(default=None)
    kill_timer: asyncio.TimerHandle | None = field(default=None)
    timed_out: bool = field(default=False)
    done: bool = field(default=False)
    error: Error | None = field(default=None)


class TestSupervisor:
    """Runs every file of a RunConfig and feeds the TAP into sink."""

    __test__ = False

    def __init__(
        self,
        config: RunConfig,
        sink: TapSink,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ):
        self.config = config
        self.sink = sink
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stderr = stderr if stderr is not None else sys.stderr
        self.state = RunState(file_paths=config.file_paths)
        self._session: WorkerSession | None = None

    async def run(self) -> int:
        """Runs all files and returns the process exit code."""
        state = self.state
        log.info("Starting test run", files=len(state.file_paths), emoji_key="start")
        try:
            for index, file_path in enumerate(state.file_paths):
                if state.bailed or state.aborted:
                    break
                state.file_index = index
                await self._run_file(file_path)
            if not state.bailed and not state.aborted:
                self._check_completion()
        except (asyncio.CancelledError, KeyboardInterrupt):
            log.warning("Test run interrupted, stopping worker", emoji_key="stop")
            self._kill_worker()
            raise

        if state.aborted or (state.errors and not state.bailed):
            self.sink.abort()
        else:
            self.sink.end()
        for stream, block in state.saved_stdio:
            stream.write(block)
        for message in state.errors:
            self.stderr.write(message)
        self.stdout.flush()
        self.stderr.flush()
        return self.exit_code

    @property
    def exit_code(self) -> int:
        state = self.state
        failed = state.errors or state.bailed or state.aborted or state.timed_out or self.sink.failed
        return 1 if failed else 0

    # --- one worker ---

    async def _run_file(self, file_path: str) -> None:
        state = self.state
        session = WorkerSession(
            file_path=file_path,
            prior_test_number=state.test_number,
            failed_tests=state.failed_tests,
        )
        self._session = session
        run_log = log.bind(file_path=self.config.relative_path(file_path))
        run_log.debug("Spawning worker")

        stdout_target, stdout_file = self._stdio_target(self.config.stdout_dest)
        stderr_target, stderr_file = self._stdio_target(self.config.stderr_dest)
        read_fd, write_fd = os.pipe()
        try:
            session.process = await asyncio.create_subprocess_exec(
                sys.executable,
                *self.config.python_args,
                "-m",
                WORKER_MODULE,
                *self.config.worker_args,
                stdin=asyncio.subprocess.PIPE,
                stdout=stdout_target,
                stderr=stderr_target,
                cwd=self.config.cwd,
                env=dict(os.environ, **{IPC_FD_ENV: str(write_fd)}),
                pass_fds=(write_fd,),
            )
        except OSError as e:
            os.close(read_fd)
            raise WorkerError(f"could not start worker for {file_path}: {e}", file_path=file_path) from e
        finally:
            os.close(write_fd)
            for opened in (stdout_file, stderr_file):
                if opened is not None:
                    opened.close()

        process = session.process
        captures = [
            asyncio.create_task(_read_all(pipe)) if pipe is not None else None
            for pipe in (process.stdout, process.stderr)
        ]
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader(limit=MESSAGE_LIMIT)
        transport, _ = await loop.connect_read_pipe(
            lambda: asyncio.StreamReaderProtocol(reader), os.fdopen(read_fd, "rb", 0)
        )
        self._arm_heartbeat(session)
        try:
            try:
                await self._pump_messages(session, reader)
            except SubtapError as e:
                run_log.error("Bad message from worker", error=str(e), emoji_key="error")
                self._record_error(e)
                self._abort()
            if state.aborted and process.returncode is None:
                self._stop_worker(session)
            await process.wait()
        except BaseException:
            self._force_kill(session)
            await process.wait()
            raise
        finally:
            for timer in (session.timer, session.kill_timer):
                if timer is not None:
                    timer.cancel()
            transport.close()
        outputs = [await task if task is not None else "" for task in captures]

        run_log.debug("Worker exited", returncode=process.returncode, done=session.done)
        if not (session.done or session.error or session.timed_out or state.aborted):
            self._record_error(
                WorkerError(
                    f"worker for {self.config.relative_path(file_path)} exited with code "
                    f"{process.returncode} before finishing",
                    file_path=file_path,
                )
            )
            self._abort()
        self._save_output("stdout", self.config.stdout_dest, outputs[0], self.stdout, file_path)
        self._save_output("stderr", self.config.stderr_dest, outputs[1], self.stderr, file_path)
        self._session = None

    async def _send_config(self, session: WorkerSession) -> None:
        config = self.config
        message = Config(
            file_path=session.file_path,
            prior_test_number=session.prior_test_number,
            location_pattern=config.location_pattern,
            selected_tests=str(config.selection) if config.selection is not None else "",
            failed_tests=session.failed_tests,
            max_failed_tests=config.max_failed_tests,
            catch_exceptions=config.catch_exceptions,
            bail_on_fail=config.bail_on_fail,
            cwd=config.cwd,
        )
        stdin = session.process.stdin
        try:
            stdin.write(encode_message(message))
            await stdin.drain()
            stdin.close()
        except (BrokenPipeError, ConnectionResetError):
            log.debug("Worker closed stdin before reading its config", file_path=session.file_path)

    async def _pump_messages(self, session: WorkerSession, reader: asyncio.StreamReader) -> None:
        while True:
            try:
                line = await reader.readline()
            except ValueError as e:
                raise ProtocolError(f"worker message exceeds {MESSAGE_LIMIT} bytes", e) from e
            if not line:
                return
            session.got_pulse = True
            await self._handle_message(session, decode_message(line))
            if self.state.aborted:
                return

    async def _handle_message(self, session: WorkerSession, message: Message) -> None:
        state = self.state
        if isinstance(message, Chunk):
            self._relay_chunk(message.text)
        elif isinstance(message, Ready):
            log.debug("Worker ready", file_path=session.file_path)
            await self._send_config(session)
        elif isinstance(message, Done):
            session.done = True
            state.test_number = message.last_test_number
            state.failed_tests = message.failed_tests
        elif isinstance(message, Error):
            session.error = message
            self._abort()
            state.errors.append(
                format_error_excerpt(
                    message.stack, message.file, message.line, message.column, self.config.cwd
                )
            )
        else:
            raise ProtocolError(f"unexpected '{message.event}' message from worker")

    def _relay_chunk(self, text: str) -> None:
        state = self.state
        if REGEX_BAIL_OUT.match(text):
            state.bailed = True
        elif REGEX_ROOT_PLAN.match(text):
            state.skipping = True
        if not state.skipping:
            self.sink.write(text)
            if self.sink.terminated:
                log.debug("Sink terminated, aborting run")
                self._abort()
        if REGEX_VERSION.match(text):
            state.skipping = False

    # --- heartbeat ---

    def _arm_heartbeat(self, session: WorkerSession) -> None:
        if not self.config.timeout_ms:
            return
        session.got_pulse = False
        loop = asyncio.get_running_loop()
        session.timer = loop.call_later(self.config.timeout_ms / 1000, self._on_heartbeat, session)

    def _on_heartbeat(self, session: WorkerSession) -> None:
        process = session.process
        if process is None or process.returncode is not None:
            return
        if session.got_pulse:
            self._arm_heartbeat(session)
            return
        session.timed_out = True
        self.state.timed_out = True
        log.warning("Worker timed out", file_path=session.file_path, emoji_key="timeout")
        self._record_error(
            WorkerTimeoutError(self.config.relative_path(session.file_path), self.config.timeout_ms)
        )
        self._abort()
        self._force_kill(session)

    # --- stopping ---

    def _abort(self) -> None:
        if not self.state.aborted:
            self.state.aborted = True
            self.sink.abort()

    def _stop_worker(self, session: WorkerSession) -> None:
        process = session.process
        if process is None or process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            return
        loop = asyncio.get_running_loop()
        session.kill_timer = loop.call_later(SIGTERM_TIMEOUT, self._force_kill, session)

    def _force_kill(self, session: WorkerSession) -> None:
        process = session.process
        if process is not None and process.returncode is None:
            log.debug("Killing worker", file_path=session.file_path)
            try:
                process.kill()
            except ProcessLookupError:
                pass

    def _kill_worker(self) -> None:
        if self._session is not None:
            self._force_kill(self._session)

    # --- output ---

    def _record_error(self, error: SubtapError) -> None:
        self.state.errors.append(f"\n*** {error} ***\n")

    def _check_completion(self) -> None:
        state = self.state
        selection = self.config.selection
        if state.test_number == 0:
            self._record_error(SubtapError("no tests found"))
        elif selection is not None and selection.last > state.test_number:
            first = state.test_number + 1
            if first == selection.last:
                self._record_error(SubtapError(f"root test {first} not found"))
            else:
                self._record_error(SubtapError(f"root tests {first}..{selection.last} not found"))

    def _stdio_target(self, dest: str) -> tuple[Any, IO[bytes] | None]:
        if dest in ("each", "end"):
            return asyncio.subprocess.PIPE, None
        if dest == "mix":
            return None, None
        if dest == "none":
            return asyncio.subprocess.DEVNULL, None
        opened = open(dest, "ab")
        return opened, opened

    def _save_output(self, name: str, dest: str, text: str, stream: TextIO, file_path: str) -> None:
        if dest not in ("each", "end") or not text:
            return
        if not text.endswith("\n"):
            text += "\n"
        block = (
            f"---- BEGIN {name} ({self.config.relative_path(file_path)}) ----\n"
            f"{text}"
            f"---- end {name} ----\n"
        )
        if dest == "each":
            stream.write(block)
            stream.flush()
        else:
            self.state.saved_stdio.append((stream, block))


async def _read_all(pipe: asyncio.StreamReader) -> str:
    data = await pipe.read()
    return data.decode("utf-8", errors="replace")


# 🔼⚙️
