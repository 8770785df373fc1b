"""Callback-style exec primitives.

These start a process with piped stdio, capture and decode its output under a
max_buffer cap, and deliver a single ``callback(error, stdout, stderr)`` when
it finishes. Unlike a bare spawn, capture is always on: output defaults to
utf-8 text capped at DEFAULT_MAX_BUFFER bytes per stream.
"""

from __future__ import annotations

import logging
import os
import signal
import threading
from collections.abc import Callable, Sequence

from process_promise.child_process import ChildProcess
from process_promise.config import DEFAULT_MAX_BUFFER, CaptureConfig, SignalLike
from process_promise.errors import ChildProcessFailure
from process_promise.outcome import ChildProcessResult, Output, classify_termination
from process_promise.output_capture import attach_captures

logger = logging.getLogger(__name__)

ExecCallback = Callable[[ChildProcessFailure | None, Output, Output], None]


def _run_with_callback(
    args: str | Sequence[str],
    callback: ExecCallback,
    *,
    shell: bool | str,
    encoding: str | None,
    max_buffer: int,
    kill_signal: SignalLike,
    timeout: float | None,
    cwd: str | os.PathLike[str] | None,
    env: dict[str, str] | None,
) -> ChildProcess:
    config = CaptureConfig(
        encoding=encoding if encoding is not None else "utf-8",
        max_buffer=max_buffer,
        kill_signal=kill_signal,
    )
    child = ChildProcess(
        args,
        shell=shell,
        stdio="pipe",
        cwd=cwd,
        env=env,
        timeout=timeout,
        kill_signal=config.kill_signal,
    )

    def _on_overflow(stream: str) -> None:
        logger.warning("Killing %s with %s: %s exceeded max_buffer", child.command, config.kill_signal.name, stream)
        child.kill(config.kill_signal)

    captures = attach_captures(child, config, _on_overflow)
    done_lock = threading.Lock()
    done = False

    def _finish(exit_code: int | None, sig: str | None, error: BaseException | None) -> None:
        nonlocal done
        with done_lock:
            if done:
                return
            done = True
        captures.detach()
        child.remove_listener("close", _on_close)
        child.remove_listener("error", _on_error)

        stdout, stderr = captures.finalize(config.text_encoding)
        outcome = classify_termination(
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            signal=sig,
            error=error,
            overflow_stream=captures.overflowed_stream(),
            timed_out=child.timed_out,
            timeout=child.timeout,
            command=child.command,
        )
        if isinstance(outcome, ChildProcessResult):
            callback(None, stdout, stderr)
        else:
            callback(outcome, stdout, stderr)

    def _on_close(exit_code: int | None, sig: str | None) -> None:
        _finish(exit_code, sig, None)

    def _on_error(error: BaseException) -> None:
        _finish(None, None, error)

    child.on("close", _on_close)
    child.on("error", _on_error)
    child.start()
    return child


def exec_callback(
    command: str,
    *,
    callback: ExecCallback,
    encoding: str | None = "utf-8",
    max_buffer: int = DEFAULT_MAX_BUFFER,
    kill_signal: SignalLike = signal.SIGTERM,
    timeout: float | None = None,
    cwd: str | os.PathLike[str] | None = None,
    env: dict[str, str] | None = None,
    shell: bool | str = True,
) -> ChildProcess:
    """Run a shell command line and report its captured output to ``callback``.

    Args:
        command: Command line interpreted by the shell.
        callback: Called once with ``(error, stdout, stderr)``; ``error`` is None
            on a zero exit, otherwise a ChildProcessFailure.
        encoding: Codec for stdout/stderr, or "raw" for bytes.
        max_buffer: Per-stream byte cap; exceeding it kills the process.
        kill_signal: Signal used on overflow or timeout.
        timeout: Seconds before the process is killed.
        cwd: Working directory.
        env: Child environment.
        shell: True for the default shell, or the path of a shell executable.

    Returns:
        The live ChildProcess.
    """
    return _run_with_callback(
        command,
        callback,
        shell=shell,
        encoding=encoding,
        max_buffer=max_buffer,
        kill_signal=kill_signal,
        timeout=timeout,
        cwd=cwd,
        env=env,
    )


def exec_file_callback(
    file: str | os.PathLike[str],
    args: Sequence[str] | None = None,
    *,
    callback: ExecCallback,
    encoding: str | None = "utf-8",
    max_buffer: int = DEFAULT_MAX_BUFFER,
    kill_signal: SignalLike = signal.SIGTERM,
    timeout: float | None = None,
    cwd: str | os.PathLike[str] | None = None,
    env: dict[str, str] | None = None,
) -> ChildProcess:
    """Run an executable directly, without a shell, reporting to ``callback``.

    Takes the same options as exec_callback() except ``shell``.
    """
    return _run_with_callback(
        [os.fspath(file), *(args or [])],
        callback,
        shell=False,
        encoding=encoding,
        max_buffer=max_buffer,
        kill_signal=kill_signal,
        timeout=timeout,
        cwd=cwd,
        env=env,
    )
