"""Awaitable adapter around a live child process.

ChildProcessPromise is both the process handle it wraps (every attribute is
forwarded: ``pid``, ``stdin``, ``stdout``, ``kill()``, ``on()``, ...) and an
awaitable that settles exactly once with a ChildProcessResult or a
ChildProcessFailure.

## Usage

```python
proc = spawn("git", ["status"], encoding="utf-8")
proc.stdout.on("data", handle_chunk)   # live stream access
result = await proc                    # or proc.result(timeout=10)
print(result.stdout)
```

Failures are delivered through the awaitable, never from the spawning call:

```python
try:
    await spawn("false", max_buffer=1024)
except NonZeroExitError as e:
    print(e.exit_code, e.stdout)
```
"""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
from collections.abc import Callable, Generator
from concurrent.futures import Future
from typing import Any

from process_promise.config import CaptureConfig
from process_promise.errors import AdapterMisuseError, ChildProcessFailure
from process_promise.outcome import ChildProcessResult, Output, classify_termination
from process_promise.output_capture import AttachedCaptures, attach_captures

logger = logging.getLogger(__name__)


class _State(enum.Enum):
    RUNNING = "running"
    SETTLED = "settled"


class ChildProcessPromise:
    """
    A live process handle that is also awaitable for its outcome.

    Construct it around a process handle (see promisify_process()),
    or through from_callback() for callback-style primitives that capture
    output themselves. Settlement is backed by a concurrent.futures.Future so
    the outcome can be awaited from any event loop, blocked on from any
    thread, and observed any number of times.
    """

    def __init__(self, child: Any = None, config: CaptureConfig | None = None) -> None:
        self._child = child
        self._config = config if config is not None else CaptureConfig()
        self._future: Future[ChildProcessResult] = Future()
        self._lock = threading.Lock()
        self._state = _State.RUNNING
        self._captures: AttachedCaptures | None = None
        if child is not None:
            self._wire(child)

    @classmethod
    def from_callback(cls, primitive: Callable[..., Any], *args: Any, **kwargs: Any) -> ChildProcessPromise:
        """Wrap a callback-style primitive such as exec_callback().

        ``primitive`` is called with ``*args``, ``**kwargs`` and a ``callback``
        keyword receiving ``(error, stdout, stderr)``. It must return the live
        handle; output arrives already capped and decoded.

        Raises:
            AdapterMisuseError: If the primitive returned no handle.
        """
        promise = cls()

        def _callback(error: ChildProcessFailure | None, stdout: Output, stderr: Output) -> None:
            promise._settle_from_callback(error, stdout, stderr)  # noqa: SLF001

        child = primitive(*args, callback=_callback, **kwargs)
        if child is None:
            error_msg = "unexpected error: child has not been initialized"
            raise AdapterMisuseError(error_msg)
        promise._child = child  # noqa: SLF001
        return promise

    def _wire(self, child: Any) -> None:
        self._captures = attach_captures(child, self._config, self._on_overflow)
        child.on("error", self._on_error)
        child.on("close", self._on_close)

        # The handle may have finished before we subscribed.
        if getattr(child, "closed", False):
            error = getattr(child, "error", None)
            if error is not None:
                self._on_error(error)
            else:
                self._on_close(child.exit_code, child.signal_code)

        start = getattr(child, "start", None)
        if start is not None:
            start()

    def _unwire(self) -> None:
        if self._captures is not None:
            self._captures.detach()
        if self._child is not None:
            self._child.remove_listener("error", self._on_error)
            self._child.remove_listener("close", self._on_close)

    def _on_overflow(self, stream: str) -> None:
        logger.warning(
            "Killing %s with %s: %s exceeded max_buffer",
            getattr(self._child, "command", self._child),
            self._config.kill_signal.name,
            stream,
        )
        self._child.kill(self._config.kill_signal)

    def _on_error(self, error: BaseException) -> None:
        self._settle(error=error)

    def _on_close(self, exit_code: int | None, signal: str | None) -> None:
        self._settle(exit_code=exit_code, signal=signal)

    def _enter_settled(self) -> bool:
        with self._lock:
            if self._state is _State.SETTLED:
                return False
            self._state = _State.SETTLED
            return True

    def _settle(
        self,
        *,
        exit_code: int | None = None,
        signal: str | None = None,
        error: BaseException | None = None,
    ) -> None:
        if not self._enter_settled():
            return
        self._unwire()

        captures = self._captures
        stdout: Output = None
        stderr: Output = None
        overflow_stream = None
        uncaptured: tuple[str, ...] = ()
        if captures is not None:
            stdout, stderr = captures.finalize(self._config.text_encoding)
            overflow_stream = captures.overflowed_stream()
            uncaptured = captures.uncaptured

        child = self._child
        outcome = classify_termination(
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            signal=signal,
            error=error,
            overflow_stream=overflow_stream,
            timed_out=getattr(child, "timed_out", False),
            timeout=getattr(child, "timeout", None),
            command=getattr(child, "command", None),
            uncaptured=uncaptured,
        )
        self._resolve(outcome)

    def _settle_from_callback(self, error: ChildProcessFailure | None, stdout: Output, stderr: Output) -> None:
        if not self._enter_settled():
            return
        if error is not None:
            error.stdout = stdout
            error.stderr = stderr
            self._resolve(error)
        else:
            self._resolve(ChildProcessResult(stdout=stdout, stderr=stderr, exit_code=0, signal=None, killed=False))

    def _resolve(self, outcome: ChildProcessResult | BaseException) -> None:
        if isinstance(outcome, BaseException):
            logger.debug("Process settled with failure: %s", outcome)
            self._future.set_exception(outcome)
        else:
            self._future.set_result(outcome)

    # Handle surface

    @property
    def child(self) -> Any:
        """The wrapped process handle."""
        return self._child

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        child = self._child
        if child is None:
            raise AttributeError(name)
        return getattr(child, name)

    def __repr__(self) -> str:
        state = "settled" if self._future.done() else "running"
        return f"<ChildProcessPromise {state} child={self._child!r}>"

    # Awaitable surface

    def __await__(self) -> Generator[Any, None, ChildProcessResult]:
        return asyncio.wrap_future(self._future).__await__()

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: float | None = None) -> ChildProcessResult:
        """Block until settled and return the result, raising the failure if any.

        Raises:
            ChildProcessFailure: If the process failed.
            concurrent.futures.TimeoutError: If ``timeout`` elapses first.
        """
        return self._future.result(timeout)

    def exception(self, timeout: float | None = None) -> BaseException | None:
        return self._future.exception(timeout)

    def add_done_callback(self, fn: Callable[[ChildProcessPromise], Any]) -> None:
        """Call ``fn(self)`` once settled (immediately if already settled)."""
        self._future.add_done_callback(lambda _future: fn(self))


def promisify_process(child: Any, config: CaptureConfig | None = None) -> ChildProcessPromise:
    """Wrap a process handle into a ChildProcessPromise and start it.

    Pass a handle that has not been started yet (a ChildProcess is created
    unstarted by default): output read before wrapping cannot be captured,
    so such streams settle as None.

    Args:
        child: A ChildProcess, or any object implementing ProcessHandle.
        config: Capture settings. None disables output capture.
    """
    return ChildProcessPromise(child, config)
