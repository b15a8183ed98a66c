"""Process utilities for terminating and inspecting process trees."""

from __future__ import annotations

import contextlib
import logging
import subprocess
import time
import warnings
from typing import Any

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
            info.append("\nChild processes:")
            for child in children:
                info.append(f"  Child {child.pid} ({child.name()})")
                info.append(f"    Status: {child.status()}")

        return "\n".join(info)
    except (OSError, psutil.Error):
        return f"Could not get process info for PID {pid}"


def _list_descendants(pid: int) -> list[psutil.Process]:
    try:
        return psutil.Process(pid).children(recursive=True)
    except (OSError, psutil.Error):
        return []


def terminate_process_tree(proc: subprocess.Popen[Any], grace: float) -> int | None:
    """Terminate a spawned process and all its descendants, escalating to a kill.

    Every process in the tree first receives a graceful termination signal. Any
    that are still alive after ``grace`` seconds are killed unconditionally.
    The direct child is reaped through ``proc`` so its return code stays
    accurate; descendants are handled through psutil. Processes that already
    exited are ignored, so calling this twice is safe.

    Returns:
        The return code of ``proc`` once reaped, or None if it could not be reaped.
    """
    descendants = _list_descendants(proc.pid)
    deadline = time.monotonic() + grace

    for child in descendants:
        with contextlib.suppress(psutil.NoSuchProcess):
            child.terminate()
    with contextlib.suppress(ProcessLookupError, PermissionError, OSError):
        proc.terminate()

    try:
        proc.wait(timeout=max(grace, 0.0))
    except subprocess.TimeoutExpired:
        logger.debug("Process %s ignored termination, killing", proc.pid)
        with contextlib.suppress(ProcessLookupError, PermissionError, OSError):
            proc.kill()

    if descendants:
        try:
            _, alive = psutil.wait_procs(descendants, timeout=max(deadline - time.monotonic(), 0.0))
        except (OSError, psutil.Error) as e:
            warnings.warn(f"Error waiting for process tree of {proc.pid}: {e}", UserWarning, stacklevel=2)
            alive = descendants
        for child in alive:
            logger.debug("Descendant %s of %s ignored termination, killing", child.pid, proc.pid)
            with contextlib.suppress(psutil.NoSuchProcess):
                child.kill()

    try:
        return proc.wait(timeout=max(grace, 1.0))
    except subprocess.TimeoutExpired:
        warnings.warn(f"Process {proc.pid} could not be reaped after kill", UserWarning, stacklevel=2)
        return None
