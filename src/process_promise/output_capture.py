"""Bounded per-stream output accumulation.

An OutputCapture collects the chunks a child process writes to one of its
output pipes, up to a byte cap. The chunk that crosses the cap is truncated
so the captured prefix is exact, and the owner is told once so it can stop
the process.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from process_promise.child_process import ProcessHandle
    from process_promise.config import CaptureConfig

logger = logging.getLogger(__name__)

STREAM_NAMES = ("stdout", "stderr")


class OutputCapture:
    """Append-only chunk buffer for a single output stream."""

    def __init__(self, max_buffer: int, on_overflow: Callable[[str], None], name: str = "stdout") -> None:
        self.name = name
        self.max_buffer = max_buffer
        self._on_overflow = on_overflow
        self._chunks: list[bytes] = []
        self.total: int = 0
        self.overflowed: bool = False
        self.finalized: bool = False

    def on_chunk(self, data: bytes | str) -> None:
        # a listener snapshot taken by emit() may still deliver after finalize
        if self.overflowed or self.finalized:
            return
        if isinstance(data, str):
            data = data.encode("utf-8")

        remaining = max(0, self.max_buffer - self.total)
        if len(data) <= remaining:
            if data:
                self._chunks.append(bytes(data))
            self.total += len(data)
            return

        if remaining:
            self._chunks.append(bytes(data[:remaining]))
        self.total = self.max_buffer
        self.overflowed = True
        logger.debug("%s exceeded max_buffer of %d bytes", self.name, self.max_buffer)
        self._on_overflow(self.name)

    def finalize(self, encoding: str | None) -> str | bytes:
        """Join the captured chunks; decode them when ``encoding`` is given.

        Later chunks are ignored, so repeated calls return the same value.
        """
        self.finalized = True
        data = b"".join(self._chunks)
        if encoding is None:
            return data
        return data.decode(encoding, errors="replace")


@dataclass
class AttachedCaptures:
    """Captures wired onto a handle's output streams, with their listeners."""

    stdout: OutputCapture | None
    stderr: OutputCapture | None
    _subscriptions: list[tuple[Any, Callable[[bytes | str], None]]]
    uncaptured: tuple[str, ...] = ()

    def detach(self) -> None:
        for stream, listener in self._subscriptions:
            stream.remove_listener("data", listener)
        self._subscriptions.clear()

    def overflowed_stream(self) -> str | None:
        for capture in (self.stdout, self.stderr):
            if capture is not None and capture.overflowed:
                return capture.name
        return None

    def finalize(self, encoding: str | None) -> tuple[str | bytes | None, str | bytes | None]:
        """Finalized (stdout, stderr); None for streams that were never captured."""
        stdout = self.stdout.finalize(encoding) if self.stdout is not None else None
        stderr = self.stderr.finalize(encoding) if self.stderr is not None else None
        return stdout, stderr


def _already_delivered(handle: ProcessHandle, stream: Any) -> bool:
    """True if some of ``stream``'s output may have been emitted already."""
    if getattr(handle, "closed", False):
        return True
    return bool(getattr(stream, "bytes_read", 0) or getattr(stream, "closed", False))


def attach_captures(
    handle: ProcessHandle,
    config: CaptureConfig,
    on_overflow: Callable[[str], None],
) -> AttachedCaptures:
    """Subscribe one OutputCapture to each piped output stream of ``handle``.

    Nothing is attached when capture is disabled or a stream is absent, so
    the corresponding output finalizes to None rather than an empty value.
    The same holds for a stream that was read before attaching: a partial
    capture would pass for the whole output.
    """
    captures: dict[str, OutputCapture | None] = dict.fromkeys(STREAM_NAMES)
    subscriptions: list[tuple[Any, Callable[[bytes | str], None]]] = []
    piped = [name for name in STREAM_NAMES if getattr(handle, name, None) is not None]
    if not config.capture_enabled:
        return AttachedCaptures(None, None, subscriptions, uncaptured=tuple(piped))

    for name in piped:
        stream = getattr(handle, name)
        if _already_delivered(handle, stream):
            logger.warning("Not capturing %s: output was read before the process was wrapped", name)
            continue
        capture = OutputCapture(config.effective_max_buffer, on_overflow, name=name)
        stream.on("data", capture.on_chunk)
        captures[name] = capture
        subscriptions.append((stream, capture.on_chunk))
    return AttachedCaptures(captures["stdout"], captures["stderr"], subscriptions)
