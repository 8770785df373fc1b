"""Capture configuration and signal helpers."""

from __future__ import annotations

import codecs
import signal
from dataclasses import dataclass, field

DEFAULT_MAX_BUFFER = 1024 * 1024
RAW_ENCODING = "raw"

SignalLike = signal.Signals | int | str


def to_signal(value: SignalLike) -> signal.Signals:
    """Normalize a signal given as enum, number or name ("SIGINT" or "INT")."""
    if isinstance(value, signal.Signals):
        return value
    if isinstance(value, bool):
        error_msg = f"Invalid signal: {value!r}"
        raise TypeError(error_msg)
    if isinstance(value, int):
        try:
            return signal.Signals(value)
        except ValueError:
            error_msg = f"Unknown signal number: {value}"
            raise ValueError(error_msg) from None
    if isinstance(value, str):
        name = value.upper()
        if not name.startswith("SIG"):
            name = f"SIG{name}"
        try:
            return signal.Signals[name]
        except KeyError:
            error_msg = f"Unknown signal name: {value!r}"
            raise ValueError(error_msg) from None
    error_msg = f"signal must be signal.Signals, int or str, got {type(value).__name__}"
    raise TypeError(error_msg)


def signal_name(signum: int) -> str:
    """Return the symbolic name for a signal number, e.g. 15 -> "SIGTERM"."""
    try:
        return signal.Signals(signum).name
    except ValueError:
        return f"SIG{signum}"


@dataclass(frozen=True)
class CaptureConfig:
    """Immutable output-capture settings for one adapter.

    Capture is opt-in: output is only buffered when ``encoding`` or
    ``max_buffer`` is given, so that a process producing unbounded output
    does not grow memory unless asked to.

    Args:
        encoding: None or "raw" for bytes output, otherwise a codec name used
            to decode the captured bytes.
        max_buffer: Per-stream byte cap. Defaults to DEFAULT_MAX_BUFFER when
            capture is enabled by ``encoding`` alone.
        kill_signal: Signal sent to the process when a stream overflows.
    """

    encoding: str | None = None
    max_buffer: int | None = None
    kill_signal: signal.Signals = field(default=signal.SIGTERM)

    def __post_init__(self) -> None:
        if self.max_buffer is not None:
            if isinstance(self.max_buffer, bool) or not isinstance(self.max_buffer, int):
                error_msg = f"max_buffer must be an int, got {type(self.max_buffer).__name__}"
                raise TypeError(error_msg)
            if self.max_buffer < 0:
                error_msg = f"max_buffer must be >= 0, got {self.max_buffer}"
                raise ValueError(error_msg)
        if self.encoding is not None and self.encoding != RAW_ENCODING:
            try:
                codecs.lookup(self.encoding)
            except LookupError:
                error_msg = f"Unknown encoding: {self.encoding!r}"
                raise ValueError(error_msg) from None
        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "kill_signal", to_signal(self.kill_signal))

    @property
    def capture_enabled(self) -> bool:
        return self.encoding is not None or self.max_buffer is not None

    @property
    def effective_max_buffer(self) -> int:
        return self.max_buffer if self.max_buffer is not None else DEFAULT_MAX_BUFFER

    @property
    def text_encoding(self) -> str | None:
        """Codec used to decode captured output, or None for raw bytes."""
        if self.encoding is None or self.encoding == RAW_ENCODING:
            return None
        return self.encoding
