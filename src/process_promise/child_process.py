"""Live child process handle.

ChildProcess starts a process with subprocess.Popen and turns its lifecycle
into events: every piped output stream is drained by a ReadableStream thread
emitting ``data`` chunks, and a ProcessWatcher thread emits ``exit`` when the
process ends and ``close`` once all of its output has been delivered.

```python
child = ChildProcess(["ls", "-la"])
child.stdout.on("data", lambda chunk: print(chunk.decode(), end=""))
child.on("close", lambda code, sig: print("done", code, sig))
child.start()
child.wait()
```
"""

from __future__ import annotations

import logging
import os
import shlex
import signal
import subprocess
import threading
from collections.abc import Callable, Sequence
from typing import IO, Any, Protocol

from process_promise.config import SignalLike, signal_name, to_signal
from process_promise.events import EventEmitter
from process_promise.process_utils import signal_process_tree
from process_promise.process_watcher import ProcessWatcher
from process_promise.streams import ReadableStream

logger = logging.getLogger(__name__)

StdioItem = str | int | IO[Any] | None
StdioSpec = str | Sequence[StdioItem]

_DISPOSITIONS: dict[str, Any] = {
    "pipe": subprocess.PIPE,
    "inherit": None,
    "ignore": subprocess.DEVNULL,
}


class ProcessHandle(Protocol):
    """Capabilities of a live process that ChildProcessPromise relies on."""

    pid: int | None
    stdin: IO[bytes] | None
    stdout: Any
    stderr: Any
    command: str
    closed: bool
    exit_code: int | None
    signal_code: str | None
    error: BaseException | None
    timed_out: bool
    timeout: float | None

    def kill(self, sig: SignalLike = ...) -> bool: ...
    def on(self, event: str, listener: Callable[..., Any]) -> Callable[..., Any]: ...
    def remove_listener(self, event: str, listener: Callable[..., Any]) -> None: ...


def _normalize_item(item: StdioItem, fd: int) -> Any:
    if isinstance(item, str):
        if item == "ipc":
            error_msg = "IPC channels are not supported"
            raise ValueError(error_msg)
        if item not in _DISPOSITIONS:
            error_msg = f"Invalid stdio disposition for fd {fd}: {item!r}"
            raise ValueError(error_msg)
        return _DISPOSITIONS[item]
    if item is None or isinstance(item, int) or hasattr(item, "fileno"):
        return item
    error_msg = f"Invalid stdio value for fd {fd}: {item!r}"
    raise TypeError(error_msg)


def normalize_stdio(stdio: StdioSpec | None) -> tuple[Any, Any, Any]:
    """Translate a stdio spec into Popen (stdin, stdout, stderr) arguments.

    ``stdio`` is either one disposition applied to all three streams, or a
    three-item sequence. Dispositions: "pipe", "inherit", "ignore"; items may
    also be None (inherit), a file descriptor, or a file object.
    """
    if stdio is None:
        stdio = "pipe"
    if isinstance(stdio, str):
        stdio = (stdio, stdio, stdio)
    items = list(stdio)
    if len(items) != 3:
        error_msg = f"stdio must have exactly 3 entries, got {len(items)}"
        raise ValueError(error_msg)
    stdin, stdout, stderr = (_normalize_item(item, fd) for fd, item in enumerate(items))
    return stdin, stdout, stderr


def _command_str(args: str | Sequence[str]) -> str:
    if isinstance(args, str):
        return args
    if os.name == "nt":
        return subprocess.list2cmdline(args)
    return shlex.join(args)


class ChildProcess(EventEmitter):
    """
    An event-emitting handle around a single subprocess.Popen.

    Events:
        spawn(): the process started and its streams are being pumped.
        error(exc): the process could not be started or waited for.
        exit(code, signal): the process ended; output may still be in flight.
        close(code, signal): the process ended and every output stream hit EOF.

    Exactly one of ``error`` or ``close`` is emitted as the terminal event.
    Process creation failures are never raised from the constructor; they
    are recorded in ``error`` and emitted once the handle is started.
    """

    def __init__(
        self,
        args: str | Sequence[str],
        *,
        shell: bool | str = False,
        stdio: StdioSpec | None = None,
        cwd: str | os.PathLike[str] | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
        kill_signal: SignalLike = signal.SIGTERM,
        auto_start: bool = False,
    ) -> None:
        """
        Start the process.

        Args:
            args: Program and arguments, or a command line when ``shell`` is set.
            shell: Run through the system shell; a string names the shell executable.
            stdio: Stream dispositions, see normalize_stdio(). Defaults to "pipe".
            cwd: Working directory for the child.
            env: Environment for the child. None inherits the parent's.
            timeout: Seconds after which the watcher kills the process with ``kill_signal``.
            kill_signal: Signal used when the timeout expires.
            auto_start: Start pumping events immediately. By default nothing is
                read until start() is called, so listeners (or a wrapping
                ChildProcessPromise) can subscribe without missing output.
        """
        super().__init__()
        if timeout is not None and timeout <= 0:
            error_msg = f"timeout must be positive, got {timeout}"
            raise ValueError(error_msg)

        if not shell and isinstance(args, str):
            args = [args]
        if shell and not isinstance(args, str):
            args = _command_str(args)
        self.args = args
        self.shell = bool(shell)
        self.command = _command_str(args)
        self.timeout = timeout
        self.kill_signal = to_signal(kill_signal)

        self.error: BaseException | None = None
        self.exit_code: int | None = None
        self.signal_code: str | None = None
        self.killed: bool = False
        self.timed_out: bool = False

        self._done = threading.Event()
        self._start_lock = threading.Lock()
        self._started = False

        stdin_spec, stdout_spec, stderr_spec = normalize_stdio(stdio)
        popen_kwargs: dict[str, Any] = {}
        if isinstance(shell, str):
            popen_kwargs["executable"] = shell

        self.popen: subprocess.Popen[bytes] | None = None
        try:
            self.popen = subprocess.Popen(  # noqa: S603
                args,
                shell=self.shell,
                cwd=cwd,
                env=env,
                stdin=stdin_spec,
                stdout=stdout_spec,
                stderr=stderr_spec,
                **popen_kwargs,
            )
        except OSError as e:
            logger.debug("Failed to spawn %s: %s", self.command, e)
            self.error = e

        self.stdin: IO[bytes] | None = self.popen.stdin if self.popen is not None else None
        self.stdout: ReadableStream | None = None
        self.stderr: ReadableStream | None = None
        if self.popen is not None:
            if self.popen.stdout is not None:
                self.stdout = ReadableStream(self.popen.stdout, "stdout")
            if self.popen.stderr is not None:
                self.stderr = ReadableStream(self.popen.stderr, "stderr")
            logger.debug("Spawned pid=%s: %s", self.popen.pid, self.command)

        self._watcher = ProcessWatcher(self)
        if auto_start:
            self.start()

    def __repr__(self) -> str:
        return f"<ChildProcess pid={self.pid} command={self.command!r}>"

    def start(self) -> None:
        """Begin dispatching events. Safe to call more than once."""
        with self._start_lock:
            if self._started:
                return
            self._started = True

        if self.popen is None:
            self._done.set()
            self.emit("error", self.error)
            return

        self.emit("spawn")
        for stream in (self.stdout, self.stderr):
            if stream is not None:
                stream.start(f"PP{stream.name}-{self.pid}")
        self._watcher.start()

    @property
    def pid(self) -> int | None:
        return self.popen.pid if self.popen is not None else None

    @property
    def stdio(self) -> tuple[IO[bytes] | None, ReadableStream | None, ReadableStream | None]:
        return self.stdin, self.stdout, self.stderr

    @property
    def closed(self) -> bool:
        """True once the terminal event has been recorded."""
        return self._done.is_set()

    @property
    def returncode(self) -> int | None:
        if self.popen is None:
            return None
        return self.popen.returncode

    def poll(self) -> int | None:
        if self.popen is None:
            return None
        return self.popen.poll()

    def wait(self, timeout: float | None = None) -> int | None:
        """Block until the terminal event and return the Popen return code.

        Raises:
            subprocess.TimeoutExpired: If ``timeout`` elapses first.
        """
        if not self._done.wait(timeout):
            raise subprocess.TimeoutExpired(self.command, timeout or 0)
        return self.returncode

    def kill(self, sig: SignalLike = signal.SIGTERM) -> bool:
        """
        Send ``sig`` to the process.

        A process started through a shell is signalled together with its
        descendants, so commands the shell launched cannot keep the output
        pipes open after the shell is gone.

        Returns:
            True if the signal was delivered, False if the process already
            exited or was never started.
        """
        sig = to_signal(sig)
        if self.popen is None or self.popen.returncode is not None:
            return False

        if self.shell:
            delivered = signal_process_tree(self.popen.pid, sig)
        else:
            try:
                self.popen.send_signal(sig)
                delivered = True
            except ProcessLookupError:
                delivered = False
            except OSError as e:
                logger.warning("Failed to send %s to %s: %s", sig.name, self.popen.pid, e)
                delivered = False

        if delivered:
            self.killed = True
            logger.debug("Sent %s to pid=%s", sig.name, self.popen.pid)
        return delivered

    def terminate(self) -> bool:
        return self.kill(signal.SIGTERM)

    def _mark_timed_out(self) -> None:
        self.timed_out = True

    def _on_exit(self, returncode: int) -> None:
        if returncode < 0:
            self.signal_code = signal_name(-returncode)
        else:
            self.exit_code = returncode
        logger.debug("Process %s exited: code=%s signal=%s", self.pid, self.exit_code, self.signal_code)
        self.emit("exit", self.exit_code, self.signal_code)

        # close only after every data event has been delivered
        for stream in (self.stdout, self.stderr):
            if stream is not None:
                stream.join()
        self._done.set()
        self.emit("close", self.exit_code, self.signal_code)

    def _on_watch_error(self, error: BaseException) -> None:
        self.error = error
        self._done.set()
        self.emit("error", error)
