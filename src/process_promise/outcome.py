"""Outcome types and termination classification."""

from __future__ import annotations

from dataclasses import dataclass, field

from process_promise.errors import (
    ChildProcessFailure,
    NonZeroExitError,
    OverflowTerminationError,
    ProcessTimeoutError,
    SignalTerminationError,
    SpawnError,
    UncapturedOutputMixin,
)

Output = str | bytes | None


@dataclass(frozen=True)
class ChildProcessResult(UncapturedOutputMixin):
    """Value a successful child process settles to.

    ``stdout``/``stderr`` are None when the stream was not piped or capture
    was not enabled, bytes in raw mode, and str when an encoding was given.
    Reading a stream that was piped but not captured warns with
    UncapturedOutputWarning.
    """

    stdout: Output
    stderr: Output
    exit_code: int | None = 0
    signal: str | None = None
    killed: bool = False
    uncaptured: tuple[str, ...] = field(default=(), repr=False, compare=False)


def classify_termination(
    *,
    stdout: Output,
    stderr: Output,
    exit_code: int | None = None,
    signal: str | None = None,
    error: BaseException | None = None,
    overflow_stream: str | None = None,
    timed_out: bool = False,
    timeout: float | None = None,
    command: str | None = None,
    uncaptured: tuple[str, ...] = (),
) -> ChildProcessResult | ChildProcessFailure:
    """Turn a terminal notification into exactly one outcome.

    Precedence: channel error, output overflow, timeout, signal, exit code.
    A process killed by overflow or timeout may still report a clean exit if
    it finished before the signal landed; it is a failure all the same.
    """
    killed = signal is not None
    fields = {
        "exit_code": exit_code,
        "signal": signal,
        "killed": killed,
        "stdout": stdout,
        "stderr": stderr,
        "command": command,
        "uncaptured": uncaptured,
    }

    if error is not None:
        if isinstance(error, ChildProcessFailure):
            error.stdout = stdout
            error.stderr = stderr
            error.uncaptured = uncaptured
            return error
        failure = SpawnError(str(error), errno=getattr(error, "errno", None), **fields)
        failure.__cause__ = error
        return failure

    if overflow_stream is not None:
        return OverflowTerminationError(
            f"{overflow_stream} max_buffer length exceeded",
            stream=overflow_stream,
            **fields,
        )

    if timed_out:
        return ProcessTimeoutError(f"Process timed out after {timeout} seconds", timeout=timeout, **fields)

    if signal is not None:
        fields["exit_code"] = None
        return SignalTerminationError(f"Process was killed with {signal}", **fields)

    if exit_code is not None and exit_code != 0:
        return NonZeroExitError(f"Process exited with code {exit_code}", **fields)

    return ChildProcessResult(
        stdout=stdout,
        stderr=stderr,
        exit_code=exit_code,
        signal=None,
        killed=False,
        uncaptured=uncaptured,
    )
