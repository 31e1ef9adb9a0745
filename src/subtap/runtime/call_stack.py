#
# src/subtap/runtime/call_stack.py
#
"""
Helpers for locating and describing calls in Python stack traces.
"""

import linecache
import os
import traceback
from collections.abc import Iterable

from attrs import define, field

import subtap

RUNNER_PATH = os.path.dirname(os.path.abspath(subtap.__file__))


@define(frozen=True, slots=True)
class CallSourceInfo:
    file: str = field()
    line: int = field()
    column: int = field()
    source: str = field()  # without the trailing newline


def is_runner_frame(filename: str) -> bool:
    return os.path.abspath(filename).startswith(RUNNER_PATH + os.sep)


def display_path(filename: str, cwd: str | None = None) -> str:
    """The path relative to cwd when it lies beneath cwd, else unchanged."""
    cwd = (cwd or os.getcwd()).rstrip(os.sep) + os.sep
    return filename[len(cwd):] if filename.startswith(cwd) else filename


def user_frames(frames: Iterable[traceback.FrameSummary]) -> list[traceback.FrameSummary]:
    """Deepest-first frames of test code, stopping at the first runner frame outward."""
    result = []
    for frame in reversed(list(frames)):
        if is_runner_frame(frame.filename):
            if result:
                break
            continue
        result.append(frame)
    return result


def format_frames(frames: Iterable[traceback.FrameSummary], cwd: str | None = None) -> str:
    return "".join(
        f"{frame.name} ({display_path(frame.filename, cwd)}:{frame.lineno})\n" for frame in frames
    )


def error_location(error: BaseException) -> tuple[str | None, int | None, int | None]:
    """File, line and 1-based column of the deepest test-code call in error."""
    if isinstance(error, SyntaxError) and error.filename:
        return error.filename, error.lineno, error.offset or 1
    frames = user_frames(traceback.extract_tb(error.__traceback__))
    if not frames:
        return None, None, None
    frame = frames[0]
    column = (frame.colno + 1) if getattr(frame, "colno", None) is not None else 1
    return frame.filename, frame.lineno, column


def get_call_source_info(file: str | None, line: int | None, column: int | None) -> CallSourceInfo | None:
    """Reads the source line of a call, or returns None if it can't be read."""
    if not file or not line:
        return None
    source = linecache.getline(file, line)
    if not source:
        return None
    return CallSourceInfo(file=file, line=line, column=column or 1, source=source.rstrip("\n"))


def format_error_excerpt(
    stack: str, file: str | None, line: int | None, column: int | None, cwd: str | None = None
) -> str:
    """'file:line:column', the source line and a caret under the column, then the stack."""
    message = "\n"
    info = get_call_source_info(file, line, column)
    if info is not None:
        message += (
            f"{display_path(info.file, cwd)}:{info.line}:{info.column}\n"
            f"{info.source}\n"
            f"{' ' * (info.column - 1)}^\n"
        )
    message += stack
    if not message.endswith("\n"):
        message += "\n"
    return message


# 🔼⚙️
