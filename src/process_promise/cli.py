"""Command line entry point.

Runs one command through spawn() with output capture and reports how it
ended:

    python -m process_promise.cli --max-buffer 4096 -- git status
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from process_promise import __version__
from process_promise.api import spawn
from process_promise.config import DEFAULT_MAX_BUFFER, to_signal
from process_promise.errors import ChildProcessFailure, SpawnError
from process_promise.outcome import Output

logger = logging.getLogger("process_promise.cli")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="process-promise",
        description="Run a command, capture its output and report how it terminated.",
    )
    parser.add_argument("--encoding", default="utf-8", help='Output codec, or "raw" for bytes (default: utf-8)')
    parser.add_argument(
        "--max-buffer",
        type=int,
        default=DEFAULT_MAX_BUFFER,
        help=f"Per-stream capture cap in bytes (default: {DEFAULT_MAX_BUFFER})",
    )
    parser.add_argument("--kill-signal", default="SIGTERM", help="Signal sent on overflow or timeout")
    parser.add_argument("--timeout", type=float, default=None, help="Kill the command after this many seconds")
    parser.add_argument("--shell", action="store_true", help="Run the command through the shell")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Command and arguments")
    args = parser.parse_args(argv)
    if args.command and args.command[0] == "--":
        args.command = args.command[1:]
    return args


def _write(stream, data: Output) -> None:
    if data is None:
        return
    if isinstance(data, bytes):
        stream.buffer.write(data)
    else:
        stream.write(data)
    stream.flush()


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        print(f"process-promise {__version__}")
        return 0

    promise = spawn(
        args.command[0],
        args.command[1:],
        encoding=args.encoding,
        max_buffer=args.max_buffer,
        kill_signal=to_signal(args.kill_signal),
        stdio=("inherit", "pipe", "pipe"),
        shell=args.shell,
        timeout=args.timeout,
    )
    try:
        result = promise.result()
    except SpawnError as e:
        logger.error("%s", e)
        return 1
    except ChildProcessFailure as e:
        _write(sys.stdout, e.stdout)
        _write(sys.stderr, e.stderr)
        logger.warning("%s", e)
        if e.signal is not None:
            return 128 + to_signal(e.signal).value
        return e.exit_code or 1

    _write(sys.stdout, result.stdout)
    _write(sys.stderr, result.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
