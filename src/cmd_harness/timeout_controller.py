"""Timeout policy applied to a running process."""

from __future__ import annotations

import subprocess
import time
from typing import Any

from cmd_harness.process_utils import terminate_process_tree

# Grace period between the termination signal and the kill when no io-wait budget applies
DEFAULT_TERMINATE_GRACE = 3.0


class TimeoutController:
    """Holds the exit-timeout deadline and io-wait hang detection for one process.

    All times are taken from ``time.monotonic()`` so the checks are unaffected by
    wall clock adjustments and never depend on the child's cooperation.
    """

    def __init__(self, exit_timeout: float, io_wait_timeout: float | None = None) -> None:
        self.exit_timeout = exit_timeout
        self.io_wait_timeout = io_wait_timeout
        self._started_at: float | None = None

    def start(self, now: float | None = None) -> None:
        self._started_at = time.monotonic() if now is None else now

    @property
    def started_at(self) -> float | None:
        return self._started_at

    def elapsed(self, now: float | None = None) -> float:
        if self._started_at is None:
            return 0.0
        now = time.monotonic() if now is None else now
        return now - self._started_at

    def exit_timeout_expired(self, now: float | None = None) -> bool:
        """True once the process has been running longer than the exit-timeout."""
        if self._started_at is None:
            return False
        return self.elapsed(now) > self.exit_timeout

    def io_wait_expired(self, last_activity: float, budget: float | None, now: float | None = None) -> bool:
        """True if nothing happened since ``last_activity`` for longer than ``budget``.

        A None budget disables hang detection.
        """
        if budget is None:
            return False
        now = time.monotonic() if now is None else now
        return (now - last_activity) > budget

    def grace_period(self, budget: float | None = None) -> float:
        if budget is not None:
            return budget
        if self.io_wait_timeout is not None:
            return self.io_wait_timeout
        return DEFAULT_TERMINATE_GRACE

    def escalate(self, proc: subprocess.Popen[Any], grace: float) -> int | None:
        """Send a graceful termination signal, then kill whatever survives ``grace`` seconds."""
        return terminate_process_tree(proc, grace)
