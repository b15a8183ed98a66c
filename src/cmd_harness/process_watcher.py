"""Process watcher module.

This module contains the ProcessWatcher class that supervises a spawned process
from a background thread: it records natural exit and enforces the exit-timeout
even when nobody is waiting on the process.
"""

import _thread
import contextlib
import logging
import subprocess
import threading
import time
import traceback
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cmd_harness.spawn_process import SpawnProcess

logger = logging.getLogger(__name__)

WATCH_INTERVAL = 0.1


class ProcessWatcher:
    """Background watcher that polls a process until it reaches a terminal state."""

    def __init__(self, spawn_process: "SpawnProcess") -> None:
        self._sp = spawn_process
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        name: str = "CHWatcher"
        with contextlib.suppress(AttributeError, TypeError):
            if self._sp.pid is not None:
                name = f"CHWatcher-{self._sp.pid}"

        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        thread_id = threading.current_thread().ident
        thread_name = threading.current_thread().name
        try:
            while not self._sp.finished:
                if self._sp.poll() is not None:
                    self._sp.record_exit()
                    break
                if self._sp.timeout_controller.exit_timeout_expired():
                    self._sp.expire("exit-timeout")
                    break
                time.sleep(WATCH_INTERVAL)
        except KeyboardInterrupt:
            logger.warning("Thread %s (%s) caught KeyboardInterrupt", thread_id, thread_name)
            traceback.print_exc()
            _thread.interrupt_main()
            raise
        except (OSError, subprocess.SubprocessError, RuntimeError) as e:
            logger.warning("Watcher thread error in %s: %s", thread_name, e)
            traceback.print_exc()

    @property
    def thread(self) -> threading.Thread | None:
        return self._thread
