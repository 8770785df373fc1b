"""Awaitable child processes with bounded output capture."""

from __future__ import annotations

__version__ = "1.0.0"

from process_promise.api import exec_command, exec_file, fork, spawn
from process_promise.child_process import ChildProcess, ProcessHandle
from process_promise.config import DEFAULT_MAX_BUFFER, RAW_ENCODING, CaptureConfig
from process_promise.errors import (
    AdapterMisuseError,
    ChildProcessFailure,
    NonZeroExitError,
    OverflowTerminationError,
    ProcessPromiseError,
    ProcessTimeoutError,
    SignalTerminationError,
    SpawnError,
    UncapturedOutputWarning,
)
from process_promise.execution import exec_callback, exec_file_callback
from process_promise.outcome import ChildProcessResult
from process_promise.output_capture import OutputCapture
from process_promise.promise import ChildProcessPromise, promisify_process

__all__ = [
    "DEFAULT_MAX_BUFFER",
    "RAW_ENCODING",
    "AdapterMisuseError",
    "CaptureConfig",
    "ChildProcess",
    "ChildProcessFailure",
    "ChildProcessPromise",
    "ChildProcessResult",
    "NonZeroExitError",
    "OutputCapture",
    "OverflowTerminationError",
    "ProcessHandle",
    "ProcessPromiseError",
    "ProcessTimeoutError",
    "SignalTerminationError",
    "SpawnError",
    "UncapturedOutputWarning",
    "exec_callback",
    "exec_command",
    "exec_file",
    "exec_file_callback",
    "fork",
    "promisify_process",
    "spawn",
]
