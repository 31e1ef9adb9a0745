# src/subtap/exceptions.py

"""
Exception hierarchy for subtap.

Assertion failures are not errors; they travel through the report. These
classes cover everything that stops a run.
"""


class SubtapError(Exception):
    """Base class for all subtap errors."""

    def __init__(self, message: str, details: Exception | None = None):
        self.details = details
        super().__init__(message)
        if details is not None and hasattr(self, "add_note"):
            self.add_note(f"Original error: {type(details).__name__}: {details}")


class ConfigurationError(SubtapError):
    """Bad command line input, or a test selection that cannot be resolved."""

    pass


class ProtocolError(SubtapError):
    """A TAP event arrived in a state that cannot accept it."""

    pass


class RenderError(SubtapError):
    """A rendering primitive received a request that indicates a caller bug."""

    pass


class WorkerError(SubtapError):
    """An exception escaped a test file running in a worker process."""

    def __init__(
        self,
        message: str,
        file_path: str | None = None,
        line: int | None = None,
        column: int | None = None,
        stack: str | None = None,
    ):
        self.file_path = file_path
        self.line = line
        self.column = column
        self.stack = stack
        super().__init__(message)


class WorkerTimeoutError(WorkerError):
    """A worker sent nothing for longer than the heartbeat timeout."""

    def __init__(self, file_path: str, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(
            f"{file_path} timed out after {timeout_ms} millis of inactivity",
            file_path=file_path,
        )


# 🔼⚙️
