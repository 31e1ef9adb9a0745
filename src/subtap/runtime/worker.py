#
# src/subtap/runtime/worker.py
#
"""
Worker process entry point: python -m subtap.runtime.worker

Runs one test file per process. The worker announces itself on the message
channel (the fd named by SUBTAP_IPC_FD), reads its Config as one JSON line
on stdin, runs the file with the harness registrar installed, relays every
piece of TAP as a chunk message and finishes with a done message. The
file's own stdout and stderr are left alone for the supervisor to capture.
"""

import logging
import os
import runpy
import sys
import traceback
from typing import BinaryIO

import structlog

from subtap.config.options import parse_selection
from subtap.exceptions import ProtocolError
from subtap.harness.core import BailOut, HarnessOptions, TapWriter, Test
from subtap.harness.registrar import NumberedRegistrar, install_registrar
from subtap.runtime.call_stack import error_location, format_frames, user_frames
from subtap.runtime.messages import Chunk, Config, Done, Error, Message, Ready, decode_message, encode_message
from subtap.telemetry import StructLogger, setup_logging

log: StructLogger = structlog.get_logger("runtime.worker")

IPC_FD_ENV = "SUBTAP_IPC_FD"
LOG_LEVEL_ENV = "SUBTAP_LOG_LEVEL"


class MessageChannel:
    """Writes messages to the supervisor, one JSON line each."""

    def __init__(self, stream: BinaryIO):
        self.stream = stream

    @classmethod
    def from_environment(cls) -> "MessageChannel":
        try:
            fd = int(os.environ[IPC_FD_ENV])
        except (KeyError, ValueError) as e:
            raise ProtocolError(f"{IPC_FD_ENV} must name the supervisor's message pipe", e) from e
        return cls(open(fd, "wb", buffering=0))

    def send(self, message: Message) -> None:
        self.stream.write(encode_message(message))


def read_config(stream: BinaryIO) -> Config:
    message = decode_message(stream.readline())
    if not isinstance(message, Config):
        raise ProtocolError(f"expected 'config' message, got '{message.event}'")
    return message


def describe_error(error: BaseException, cwd: str) -> Error:
    file, line, column = error_location(error)
    frames = user_frames(traceback.extract_tb(error.__traceback__))
    stack = f"{type(error).__name__}: {error}\n" + format_frames(frames, cwd)
    return Error(stack=stack, file=file, line=line, column=column)


def run_file(config: Config, channel: MessageChannel) -> NumberedRegistrar:
    """Runs config.file_path, sending its TAP to channel."""
    writer = TapWriter(lambda text: channel.send(Chunk(text=text)))
    writer.write("TAP version 13\n")
    options = HarnessOptions(
        catch_exceptions=config.catch_exceptions,
        bail_on_fail=config.bail_on_fail,
        cwd=config.cwd or os.getcwd(),
    )
    root = Test("", writer, options)
    registrar = NumberedRegistrar(
        root,
        prior_test_number=config.prior_test_number,
        selection=parse_selection(config.selected_tests) if config.selected_tests else None,
        location_pattern=config.location_pattern,
        failed_tests=config.failed_tests,
        max_failed_tests=config.max_failed_tests,
    )
    install_registrar(registrar)

    file_path = os.path.abspath(config.file_path)
    sys.path.insert(0, os.path.dirname(file_path))
    sys.argv = [file_path, *sys.argv[1:]]
    log.debug("Running test file", file_path=file_path, prior_test_number=config.prior_test_number)
    try:
        runpy.run_path(file_path, run_name="__main__")
    except BailOut as e:
        log.debug("Test file bailed out", reason=e.reason)
        return registrar
    except SystemExit as e:
        if e.code not in (0, None):
            raise
    root.end()
    return registrar


def main() -> int:
    level = logging.getLevelName(os.environ.get(LOG_LEVEL_ENV, "WARNING").upper())
    setup_logging(level=level if isinstance(level, int) else logging.WARNING)
    channel = MessageChannel.from_environment()
    channel.send(Ready())
    config = read_config(sys.stdin.buffer)
    registrar: NumberedRegistrar | None = None
    try:
        registrar = run_file(config, channel)
    except (Exception, SystemExit) as e:
        log.debug("Test file raised", error=str(e))
        channel.send(describe_error(e, config.cwd or os.getcwd()))
        return 1
    finally:
        sys.stdout.flush()
        sys.stderr.flush()
    channel.send(Done(last_test_number=registrar.test_number, failed_tests=registrar.failed_tests))
    return 0


if __name__ == "__main__":
    sys.exit(main())


# 🔼⚙️
