#!/usr/bin/env python3
"""Spawn Demo - Streams a child's output live while awaiting its outcome."""

import asyncio
import sys

from process_promise import ChildProcessFailure, spawn

CHILD = """
import sys, time
for i in range(3):
    print(f"tick {i}", flush=True)
    time.sleep(0.2)
sys.stderr.write("done\\n")
"""


async def demo_live_and_awaited() -> None:
    """Print chunks as they arrive, then print the captured result."""
    print("Spawn Demo")
    print("=" * 50)

    proc = spawn(sys.executable, ["-c", CHILD], encoding="utf-8", max_buffer=64 * 1024)
    print(f"Started pid {proc.pid}")
    proc.stdout.on("data", lambda chunk: print(f"  live: {chunk.decode().rstrip()}"))

    result = await proc
    print(f"Exit code: {result.exit_code}")
    print(f"Captured stdout: {result.stdout!r}")
    print(f"Captured stderr: {result.stderr!r}")


async def demo_overflow() -> None:
    """Show the process being stopped once its output exceeds max_buffer."""
    print()
    print("Overflow Demo")
    print("=" * 50)
    flood = "import sys, time\nwhile True:\n    sys.stdout.write('x' * 4096)\n    sys.stdout.flush()\n    time.sleep(0.01)"
    try:
        await spawn(sys.executable, ["-c", flood], max_buffer=10_000)
    except ChildProcessFailure as e:
        print(f"{type(e).__name__}: {e}")
        print(f"Signal: {e.signal}, captured {len(e.stdout)} bytes")


if __name__ == "__main__":
    asyncio.run(demo_live_and_awaited())
    asyncio.run(demo_overflow())
