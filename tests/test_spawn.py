"""Integration tests for spawn() and fork().

These tests run real Python child processes rather than mocks.
"""

import asyncio
import errno
import signal
import sys
import tempfile
import time
import unittest
from pathlib import Path

from process_promise import (
    CaptureConfig,
    ChildProcess,
    NonZeroExitError,
    OverflowTerminationError,
    ProcessTimeoutError,
    SignalTerminationError,
    SpawnError,
    UncapturedOutputWarning,
    fork,
    promisify_process,
    spawn,
)

HELLO = "import sys; sys.stdout.write('hello'); sys.stdout.flush(); sys.stderr.write('world'); sys.stderr.flush()"
EXIT_2 = HELLO + "; sys.exit(2)"
WAIT_FOR_SIGNAL = (
    "import signal, sys, time; signal.signal(signal.SIGINT, signal.SIG_DFL); "
    "sys.stdout.write('hello'); sys.stdout.flush(); sys.stderr.write('world'); sys.stderr.flush(); "
    "time.sleep(30)"
)
FLOOD = "import sys, time; sys.stdout.write('x' * 1000); sys.stdout.flush(); time.sleep(30)"

RESULT_TIMEOUT = 30


def _wait_until(predicate, timeout: float = 10.0) -> None:
    deadline = time.time() + timeout
    while not predicate():
        if time.time() > deadline:
            raise TimeoutError("condition not reached")
        time.sleep(0.01)


class TestSpawnClassification(unittest.TestCase):
    """End-to-end termination classification."""

    def test_resolves_with_process_output(self):
        """Clean exit with capture enabled resolves with both streams."""
        result = spawn(sys.executable, ["-c", HELLO], max_buffer=200 * 1024).result(RESULT_TIMEOUT)

        self.assertEqual(result.exit_code, 0)
        self.assertIsNone(result.signal)
        self.assertFalse(result.killed)
        self.assertEqual(result.stdout, b"hello")
        self.assertEqual(result.stderr, b"world")

    def test_rejects_with_exit_code(self):
        proc = spawn(sys.executable, ["-c", EXIT_2], max_buffer=200 * 1024)
        with self.assertRaises(NonZeroExitError) as ctx:
            proc.result(RESULT_TIMEOUT)

        error = ctx.exception
        self.assertEqual(error.message, "Process exited with code 2")
        self.assertEqual(error.exit_code, 2)
        self.assertIsNone(error.signal)
        self.assertEqual(error.stdout, b"hello")
        self.assertEqual(error.stderr, b"world")

    @unittest.skipIf(sys.platform == "win32", "POSIX signals required")
    def test_rejects_with_signal(self):
        proc = spawn(sys.executable, ["-c", WAIT_FOR_SIGNAL], max_buffer=200 * 1024)
        _wait_until(lambda: proc.stdout.bytes_read >= 5 and proc.stderr.bytes_read >= 5)
        self.assertTrue(proc.kill("SIGINT"))

        with self.assertRaises(SignalTerminationError) as ctx:
            proc.result(RESULT_TIMEOUT)

        error = ctx.exception
        self.assertEqual(error.message, "Process was killed with SIGINT")
        self.assertIsNone(error.exit_code)
        self.assertEqual(error.signal, "SIGINT")
        self.assertTrue(error.killed)
        self.assertFalse(error.killed_by_capture)
        self.assertEqual(error.stdout, b"hello")
        self.assertEqual(error.stderr, b"world")

    @unittest.skipIf(sys.platform == "win32", "POSIX signals required")
    def test_kills_child_when_max_buffer_exceeded(self):
        proc = spawn(sys.executable, ["-c", FLOOD], max_buffer=1)
        with self.assertRaises(OverflowTerminationError) as ctx:
            proc.result(RESULT_TIMEOUT)

        error = ctx.exception
        self.assertEqual(error.stdout, b"x")
        self.assertEqual(error.stderr, b"")
        self.assertIsNone(error.exit_code)
        self.assertEqual(error.signal, "SIGTERM")
        self.assertTrue(error.killed)
        self.assertTrue(error.killed_by_capture)

    @unittest.skipIf(sys.platform == "win32", "POSIX signals required")
    def test_overflow_uses_kill_signal(self):
        proc = spawn(sys.executable, ["-c", FLOOD], max_buffer=10, kill_signal=signal.SIGKILL)
        error = proc.exception(RESULT_TIMEOUT)

        self.assertIsInstance(error, OverflowTerminationError)
        self.assertEqual(error.signal, "SIGKILL")
        self.assertEqual(error.stdout, b"x" * 10)

    def test_no_capture_without_encoding_or_max_buffer(self):
        result = spawn(sys.executable, ["-c", HELLO]).result(RESULT_TIMEOUT)

        self.assertEqual(result.exit_code, 0)
        with self.assertWarns(UncapturedOutputWarning):
            self.assertIsNone(result.stdout)
        with self.assertWarns(UncapturedOutputWarning):
            self.assertIsNone(result.stderr)

    def test_text_encoding_round_trip(self):
        text = "héllo wörld ✓"
        code = f"import sys; sys.stdout.buffer.write({text!r}.encode('utf-8'))"
        result = spawn(sys.executable, ["-c", code], encoding="utf-8").result(RESULT_TIMEOUT)

        self.assertEqual(result.stdout, text)
        self.assertEqual(result.stderr, "")

    def test_raw_encoding_returns_bytes(self):
        result = spawn(sys.executable, ["-c", HELLO], encoding="raw").result(RESULT_TIMEOUT)
        self.assertEqual(result.stdout, b"hello")

    def test_spawn_failure_is_delivered_through_the_outcome(self):
        proc = spawn("definitely-not-a-real-program-pp", max_buffer=100)
        with self.assertRaises(SpawnError) as ctx:
            proc.result(RESULT_TIMEOUT)

        self.assertEqual(ctx.exception.errno, errno.ENOENT)
        self.assertIsNone(ctx.exception.exit_code)
        self.assertIsNone(ctx.exception.signal)
        self.assertIsNone(proc.pid)

    def test_timeout_kills_process(self):
        proc = spawn(sys.executable, ["-c", "import time; time.sleep(30)"], timeout=0.5)
        with self.assertRaises(ProcessTimeoutError) as ctx:
            proc.result(RESULT_TIMEOUT)

        self.assertTrue(proc.timed_out)
        self.assertEqual(ctx.exception.timeout, 0.5)
        self.assertTrue(ctx.exception.killed)


class TestSpawnStreams(unittest.TestCase):
    """Stream disposition and live handle access."""

    def test_ignored_streams_are_absent(self):
        proc = spawn(sys.executable, ["-c", HELLO], stdio="ignore", max_buffer=100)
        result = proc.result(RESULT_TIMEOUT)

        self.assertIsNone(proc.stdin)
        self.assertIsNone(proc.stdout)
        self.assertIsNone(result.stdout)
        self.assertIsNone(result.stderr)

    def test_mixed_dispositions(self):
        proc = spawn(sys.executable, ["-c", HELLO], stdio=("ignore", "pipe", "ignore"), encoding="utf-8")
        result = proc.result(RESULT_TIMEOUT)

        self.assertEqual(result.stdout, "hello")
        self.assertIsNone(result.stderr)

    def test_invalid_stdio_raises(self):
        with self.assertRaises(ValueError):
            spawn(sys.executable, ["-c", HELLO], stdio="ipc")
        with self.assertRaises(ValueError):
            spawn(sys.executable, ["-c", HELLO], stdio=("pipe", "pipe"))

    def test_stdin_is_writable(self):
        proc = spawn(sys.executable, ["-c", "import sys; sys.stdout.write(sys.stdin.read())"], encoding="utf-8")
        proc.stdin.write(b"ping")
        proc.stdin.close()

        self.assertEqual(proc.result(RESULT_TIMEOUT).stdout, "ping")

    def test_caller_can_subscribe_to_data_while_capturing(self):
        chunks: list[bytes] = []
        code = "import sys, time; sys.stdin.read(); sys.stdout.write('streamed'); sys.stdout.flush()"
        proc = spawn(sys.executable, ["-c", code], encoding="utf-8")
        proc.stdout.on("data", chunks.append)
        proc.stdin.close()

        result = proc.result(RESULT_TIMEOUT)
        self.assertEqual(b"".join(chunks), b"streamed")
        self.assertEqual(result.stdout, "streamed")

    def test_await_from_asyncio(self):
        async def _run():
            return await spawn(sys.executable, ["-c", HELLO], encoding="utf-8")

        result = asyncio.run(_run())
        self.assertEqual((result.stdout, result.stderr), ("hello", "world"))

    @unittest.skipIf(sys.platform == "win32", "POSIX shell required")
    def test_shell_command(self):
        result = spawn("echo $PP_GREETING", shell=True, env={"PP_GREETING": "hi"}, encoding="utf-8").result(
            RESULT_TIMEOUT
        )
        self.assertEqual(result.stdout, "hi\n")


class TestPromisifyProcess(unittest.TestCase):
    """Wrapping a ChildProcess created by the caller."""

    def test_wrapping_a_new_child_captures_all_output(self):
        child = ChildProcess([sys.executable, "-c", HELLO])
        result = promisify_process(child, CaptureConfig(encoding="utf-8")).result(RESULT_TIMEOUT)

        self.assertEqual(result.stdout, "hello")
        self.assertEqual(result.stderr, "world")

    def test_wrapping_a_finished_child_reports_absent_output(self):
        """Output already delivered is absent, never a made-up empty capture."""
        child = ChildProcess([sys.executable, "-c", HELLO], auto_start=True)
        child.wait(RESULT_TIMEOUT)

        with self.assertLogs("process_promise.output_capture", level="WARNING"):
            proc = promisify_process(child, CaptureConfig(encoding="utf-8"))
        result = proc.result(RESULT_TIMEOUT)

        self.assertEqual(result.exit_code, 0)
        self.assertIsNone(result.stdout)
        self.assertIsNone(result.stderr)

    def test_wrapping_a_finished_failed_child_keeps_its_exit_code(self):
        child = ChildProcess([sys.executable, "-c", EXIT_2], auto_start=True)
        child.wait(RESULT_TIMEOUT)

        with self.assertLogs("process_promise.output_capture", level="WARNING"):
            error = promisify_process(child, CaptureConfig(max_buffer=100)).exception(RESULT_TIMEOUT)

        self.assertIsInstance(error, NonZeroExitError)
        self.assertEqual(error.exit_code, 2)
        self.assertIsNone(error.stdout)


class TestFork(unittest.TestCase):
    """fork() runs Python entry points in a separate interpreter."""

    def test_fork_script_with_args(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            script = Path(temp_dir) / "child.py"
            script.write_text("import sys\nprint(' '.join(sys.argv[1:]))\n", encoding="utf-8")

            result = fork(script, ["a", "b"], silent=True, encoding="utf-8").result(RESULT_TIMEOUT)

        self.assertEqual(result.stdout.strip(), "a b")
        self.assertEqual(result.stderr, "")

    def test_fork_module_name(self):
        result = fork("platform", silent=True, encoding="utf-8").result(RESULT_TIMEOUT)
        self.assertTrue(result.stdout.strip())

    def test_fork_sets_unbuffered_environment(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            script = Path(temp_dir) / "env_child.py"
            script.write_text("import os\nprint(os.environ.get('PYTHONUNBUFFERED'))\n", encoding="utf-8")
            result = fork(script, silent=True, encoding="utf-8").result(RESULT_TIMEOUT)

        self.assertEqual(result.stdout.strip(), "1")

    def test_fork_inherits_stdio_by_default(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            script = Path(temp_dir) / "quiet.py"
            script.write_text("pass\n", encoding="utf-8")
            proc = fork(script, max_buffer=100)
            result = proc.result(RESULT_TIMEOUT)

        self.assertIsNone(proc.stdout)
        self.assertIsNone(result.stdout)
        self.assertIsNone(result.stderr)

    def test_fork_exit_code(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            script = Path(temp_dir) / "fail.py"
            script.write_text("import sys\nsys.exit(4)\n", encoding="utf-8")
            error = fork(script, silent=True).exception(RESULT_TIMEOUT)

        self.assertIsInstance(error, NonZeroExitError)
        self.assertEqual(error.exit_code, 4)


if __name__ == "__main__":
    unittest.main()
