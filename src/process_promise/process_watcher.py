"""Process watcher module.

This module contains the ProcessWatcher class that waits for a child process
to exit in a background thread and reports the exit back to its handle.
"""

import contextlib
import logging
import subprocess
import threading
from typing import TYPE_CHECKING

from process_promise.process_utils import get_process_tree_info

if TYPE_CHECKING:
    from process_promise.child_process import ChildProcess

logger = logging.getLogger(__name__)


class ProcessWatcher:
    """Background watcher that blocks on a process until it terminates."""

    def __init__(self, child: "ChildProcess") -> None:
        self._child = child
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        name: str = "PPWatcher"
        with contextlib.suppress(AttributeError, TypeError):
            if self._child.pid is not None:
                name = f"PPWatcher-{self._child.pid}"

        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def _wait_for_exit(self) -> int:
        proc = self._child.popen
        assert proc is not None
        timeout = self._child.timeout
        if timeout is None:
            return proc.wait()

        try:
            return proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            # Enforce per-process timeout independently of any awaiter
            logger.warning(
                "Process timeout after %s seconds (watcher), killing: %s",
                timeout,
                self._child.command,
            )
            logger.debug("%s", get_process_tree_info(proc.pid))
            self._child._mark_timed_out()  # noqa: SLF001
            self._child.kill(self._child.kill_signal)
            return proc.wait()

    def _run(self) -> None:
        thread_name = threading.current_thread().name
        try:
            returncode = self._wait_for_exit()
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("Watcher thread error in %s: %s", thread_name, e)
            self._child._on_watch_error(e)  # noqa: SLF001
            return
        self._child._on_exit(returncode)  # noqa: SLF001

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def thread(self) -> threading.Thread | None:
        return self._thread
