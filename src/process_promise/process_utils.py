"""Process utilities for signalling and inspecting process trees."""

from __future__ import annotations

import contextlib
import logging
import signal

import psutil

logger = logging.getLogger(__name__)


def get_process_tree_info(pid: int) -> str:
    """Get information about a process and its children."""
    try:
        process = psutil.Process(pid)
        info = [f"Process {pid} ({process.name()})"]
        info.append(f"Status: {process.status()}")
        info.append(f"CPU Times: {process.cpu_times()}")

        children = process.children(recursive=True)
        if children:
            info.append("Child processes:")
            for child in children:
                with contextlib.suppress(psutil.Error):
                    info.append(f"  Child {child.pid} ({child.name()}) status={child.status()}")

        return "\n".join(info)
    except psutil.Error:
        return f"Could not get process info for PID {pid}"


def signal_process_tree(pid: int, sig: signal.Signals) -> bool:
    """Send ``sig`` to every descendant of ``pid``, then to ``pid`` itself.

    Children are signalled first so that a shell parent cannot respawn or
    outlive them. Returns True if the signal reached the parent process.
    """
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return False

    try:
        children = parent.children(recursive=True)
    except psutil.Error as e:
        logger.warning("Could not list children of %s: %s", pid, e)
        children = []

    for child in children:
        with contextlib.suppress(psutil.NoSuchProcess):
            child.send_signal(sig)

    try:
        parent.send_signal(sig)
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied as e:
        logger.warning("Error signalling process tree %s with %s: %s", pid, sig.name, e)
        return False
    return True
