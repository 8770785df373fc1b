"""Readable stream over a child process pipe.

A ReadableStream drains one of a child's output pipes on a dedicated thread
so the pipe never fills and blocks the child, and forwards every chunk as a
``data`` event.
"""

import logging
import threading
import warnings
from typing import IO

from process_promise.events import EventEmitter

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class ReadableStream(EventEmitter):
    """Event-emitting reader for a binary pipe.

    Events:
        data(chunk: bytes): a chunk read from the pipe, in pipe order.
        end(): the pipe reached EOF (emitted exactly once).
        error(exc): reading failed with something other than a closed pipe.
        close(): the pipe was closed; no further events follow.
    """

    def __init__(self, file: IO[bytes], name: str) -> None:
        super().__init__()
        self.name = name
        self._file = file
        self._thread: threading.Thread | None = None
        self._end_emitted = False
        self.bytes_read = 0

    def __repr__(self) -> str:
        return f"<ReadableStream {self.name}>"

    @property
    def closed(self) -> bool:
        return self._file.closed

    def fileno(self) -> int:
        return self._file.fileno()

    def start(self, thread_name: str | None = None) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self.run, name=thread_name or f"RS-{self.name}", daemon=True)
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _emit_end_once(self) -> None:
        if not self._end_emitted:
            self._end_emitted = True
            self.emit("end")

    def _read_chunk(self) -> bytes:
        read1 = getattr(self._file, "read1", None)
        if read1 is not None:
            return read1(CHUNK_SIZE)
        return self._file.read(CHUNK_SIZE)

    def _pump(self) -> None:
        while True:
            chunk = self._read_chunk()
            if not chunk:  # EOF reached
                break
            self.bytes_read += len(chunk)
            self.emit("data", chunk)

    def _handle_io_error(self, e: ValueError | OSError) -> None:
        # Normal shutdown scenarios include closed file descriptors.
        error_str = str(e)
        if any(msg in error_str for msg in ["closed file", "Bad file descriptor"]):
            logger.debug("%s reader encountered closed file: %s", self.name, e)
        else:
            logger.warning("%s reader encountered error: %s", self.name, e)
            self.emit("error", e)

    def _cleanup(self) -> None:
        if not self._file.closed:
            try:
                self._file.close()
            except (ValueError, OSError) as err:
                warnings.warn(f"{self.name} reader could not close pipe: {err}", stacklevel=2)

    def run(self) -> None:
        """Read the pipe until EOF, then emit ``end`` and ``close``."""
        try:
            self._pump()
        except (ValueError, OSError) as e:
            self._handle_io_error(e)
        finally:
            self._emit_end_once()
            self._cleanup()
            logger.debug("%s reached EOF after %d bytes", self.name, self.bytes_read)
            self.emit("close")
