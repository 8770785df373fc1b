"""Exception hierarchy for failed child processes."""

from __future__ import annotations

import warnings
from typing import Any

OUTPUT_NAMES = ("stdout", "stderr")


class UncapturedOutputWarning(UserWarning):
    """Output of a piped stream was read although it was never captured."""


class UncapturedOutputMixin:
    """Warns when ``stdout``/``stderr`` is read but was piped without capture.

    Such a value is always None, which is easy to mistake for "no output".
    """

    uncaptured: tuple[str, ...] = ()

    def __getattribute__(self, name: str) -> Any:
        if name in OUTPUT_NAMES and name in object.__getattribute__(self, "uncaptured"):
            warnings.warn(
                f"{name} was not captured; set the encoding or max_buffer option to capture it",
                UncapturedOutputWarning,
                stacklevel=2,
            )
        return object.__getattribute__(self, name)


class ProcessPromiseError(Exception):
    """Base class for all errors raised by process_promise."""


class ChildProcessFailure(UncapturedOutputMixin, ProcessPromiseError):
    """A child process completed unsuccessfully.

    Carries the same output fields as a successful ChildProcessResult so
    callers can inspect what was captured up to the failure point.
    """

    def __init__(
        self,
        message: str,
        *,
        exit_code: int | None = None,
        signal: str | None = None,
        killed: bool = False,
        killed_by_capture: bool = False,
        stdout: str | bytes | None = None,
        stderr: str | bytes | None = None,
        command: str | None = None,
        uncaptured: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code
        self.signal = signal
        self.killed = killed
        self.killed_by_capture = killed_by_capture
        self.stdout = stdout
        self.stderr = stderr
        self.command = command
        self.uncaptured = tuple(uncaptured)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.message!r}, exit_code={self.exit_code!r}, "
            f"signal={self.signal!r}, killed={self.killed!r})"
        )


class SpawnError(ChildProcessFailure):
    """The process could not be created, or its channel failed."""

    def __init__(self, message: str, *, errno: int | None = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.errno = errno


class NonZeroExitError(ChildProcessFailure):
    """The process ran to completion with a non-zero exit status."""


class SignalTerminationError(ChildProcessFailure):
    """The process was terminated by a signal."""


class OverflowTerminationError(SignalTerminationError):
    """The process was terminated because captured output exceeded max_buffer."""

    def __init__(self, message: str, *, stream: str | None = None, **kwargs) -> None:
        kwargs.setdefault("killed_by_capture", True)
        super().__init__(message, **kwargs)
        self.stream = stream


class ProcessTimeoutError(SignalTerminationError):
    """The process outlived its timeout and was terminated."""

    def __init__(self, message: str, *, timeout: float | None = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.timeout = timeout


class AdapterMisuseError(ProcessPromiseError):
    """A wrapped primitive broke its contract of returning a process handle."""
