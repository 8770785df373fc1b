"""Public entry points: spawn, fork, exec_command and exec_file.

Each starts a process and returns a ChildProcessPromise: the live handle,
awaitable for its outcome. Process-level failures (a missing executable, a
non-zero exit, a signal) are only ever delivered through the awaitable.
"""

from __future__ import annotations

import os
import signal
import sys
from collections.abc import Sequence
from pathlib import Path

from process_promise.child_process import ChildProcess, StdioSpec
from process_promise.config import DEFAULT_MAX_BUFFER, CaptureConfig, SignalLike
from process_promise.execution import exec_callback, exec_file_callback
from process_promise.promise import ChildProcessPromise, promisify_process


def spawn(
    command: str,
    args: Sequence[str] | None = None,
    *,
    encoding: str | None = None,
    max_buffer: int | None = None,
    kill_signal: SignalLike = signal.SIGTERM,
    stdio: StdioSpec | None = "pipe",
    cwd: str | os.PathLike[str] | None = None,
    env: dict[str, str] | None = None,
    shell: bool | str = False,
    timeout: float | None = None,
) -> ChildProcessPromise:
    """
    Start ``command`` with ``args`` and return it as a ChildProcessPromise.

    Output is only captured when ``encoding`` or ``max_buffer`` is given;
    otherwise the outcome's stdout/stderr are None and the streams are left
    for the caller to consume.

    Args:
        command: Program to run (or a command line when ``shell`` is set).
        args: Program arguments.
        encoding: Codec for captured output, or "raw" for bytes.
        max_buffer: Per-stream capture cap in bytes; overflow kills the process.
        kill_signal: Signal sent on overflow or timeout.
        stdio: Stream dispositions. Only piped streams exist on the handle.
        cwd: Working directory.
        env: Child environment.
        shell: Run through the shell; a string names the shell executable.
        timeout: Seconds before the process is killed with ``kill_signal``.
    """
    config = CaptureConfig(encoding=encoding, max_buffer=max_buffer, kill_signal=kill_signal)
    argv: str | list[str] = [command, *(args or [])]
    if shell:
        argv = " ".join(argv)
    child = ChildProcess(
        argv,
        shell=shell,
        stdio=stdio,
        cwd=cwd,
        env=env,
        timeout=timeout,
        kill_signal=config.kill_signal,
    )
    return promisify_process(child, config)


def _fork_argv(module_path: str | os.PathLike[str], cwd: str | os.PathLike[str] | None) -> list[str]:
    path = Path(module_path)
    base = Path(cwd) if cwd is not None else Path.cwd()
    if path.suffix == ".py" or (base / path).exists():
        return [os.fspath(module_path)]
    # dotted module name, run like `python -m package.module`
    return ["-m", os.fspath(module_path)]


def fork(
    module_path: str | os.PathLike[str],
    args: Sequence[str] | None = None,
    *,
    silent: bool = False,
    exec_path: str | None = None,
    exec_argv: Sequence[str] | None = None,
    encoding: str | None = None,
    max_buffer: int | None = None,
    kill_signal: SignalLike = signal.SIGTERM,
    stdio: StdioSpec | None = None,
    cwd: str | os.PathLike[str] | None = None,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
) -> ChildProcessPromise:
    """
    Run a Python entry point in a separate interpreter.

    ``module_path`` is a script path, or a module name that is run with
    ``-m`` when no such file exists. The child inherits this process's stdio
    unless ``silent`` is set (pipe stdout/stderr) or ``stdio`` is given.

    Args:
        module_path: Script path or dotted module name.
        args: Arguments passed to the entry point.
        silent: Pipe the child's stdout and stderr instead of inheriting them.
        exec_path: Interpreter to use. Defaults to sys.executable.
        exec_argv: Interpreter options placed before the entry point.
        encoding: Codec for captured output, or "raw" for bytes.
        max_buffer: Per-stream capture cap in bytes.
        kill_signal: Signal sent on overflow or timeout.
        stdio: Explicit stream dispositions; overrides ``silent``.
        cwd: Working directory.
        env: Child environment. None inherits the parent's.
        timeout: Seconds before the process is killed.
    """
    if stdio is None:
        stdio = ("pipe", "pipe", "pipe") if silent else ("inherit", "inherit", "inherit")

    # Force unbuffered output so chunks arrive as the child writes them
    child_env = dict(os.environ if env is None else env)
    child_env["PYTHONUNBUFFERED"] = "1"

    argv = [
        exec_path or sys.executable,
        *(exec_argv or []),
        *_fork_argv(module_path, cwd),
        *(args or []),
    ]
    config = CaptureConfig(encoding=encoding, max_buffer=max_buffer, kill_signal=kill_signal)
    child = ChildProcess(
        argv,
        stdio=stdio,
        cwd=cwd,
        env=child_env,
        timeout=timeout,
        kill_signal=config.kill_signal,
    )
    return promisify_process(child, config)


def exec_command(
    command: str,
    *,
    encoding: str | None = "utf-8",
    max_buffer: int = DEFAULT_MAX_BUFFER,
    kill_signal: SignalLike = signal.SIGTERM,
    timeout: float | None = None,
    cwd: str | os.PathLike[str] | None = None,
    env: dict[str, str] | None = None,
    shell: bool | str = True,
) -> ChildProcessPromise:
    """
    Run a shell command line; output is always captured.

    Stdout and stderr are decoded with ``encoding`` (bytes for "raw") and
    capped at ``max_buffer`` bytes each.
    """
    return ChildProcessPromise.from_callback(
        exec_callback,
        command,
        encoding=encoding,
        max_buffer=max_buffer,
        kill_signal=kill_signal,
        timeout=timeout,
        cwd=cwd,
        env=env,
        shell=shell,
    )


def exec_file(
    file: str | os.PathLike[str],
    args: Sequence[str] | None = None,
    *,
    encoding: str | None = "utf-8",
    max_buffer: int = DEFAULT_MAX_BUFFER,
    kill_signal: SignalLike = signal.SIGTERM,
    timeout: float | None = None,
    cwd: str | os.PathLike[str] | None = None,
    env: dict[str, str] | None = None,
) -> ChildProcessPromise:
    """Run an executable directly, without a shell; output is always captured."""
    return ChildProcessPromise.from_callback(
        exec_file_callback,
        file,
        args,
        encoding=encoding,
        max_buffer=max_buffer,
        kill_signal=kill_signal,
        timeout=timeout,
        cwd=cwd,
        env=env,
    )
