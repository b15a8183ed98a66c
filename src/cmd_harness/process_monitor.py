"""Process monitor: the ordered registry of every command started in a scenario."""

from __future__ import annotations

import threading
import time
import warnings
from typing import TYPE_CHECKING

from cmd_harness.errors import ProcessNotFoundError, ProcessStateError

if TYPE_CHECKING:
    from cmd_harness.announcer import Announcer
    from cmd_harness.process_protocol import CommandProcess


class ProcessMonitor:
    """Thread-safe, append-only registry of (label, process) entries.

    Entries keep their registration order and are never removed. Registering a
    label again appends a new entry; lookups by label resolve to the most recent
    one through a latest-index table.
    """

    def __init__(self, announcer: Announcer | None = None) -> None:
        self._lock = threading.RLock()
        self._entries: list[tuple[str, CommandProcess]] = []
        self._latest: dict[str, int] = {}
        self.announcer = announcer

    def register(self, label: str, proc: CommandProcess) -> None:
        """Append a process under ``label``."""
        with self._lock:
            self._latest[label] = len(self._entries)
            self._entries.append((label, proc))

    @property
    def processes(self) -> list[tuple[str, CommandProcess]]:
        """Snapshot of all entries in registration order."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_process(self, label: str) -> CommandProcess:
        """Return the most recently registered process with this label.

        Raises:
            ProcessNotFoundError: If no process was registered under ``label``.
        """
        with self._lock:
            index = self._latest.get(label)
            if index is None:
                error_message = f"No process named {label!r} has been started"
                raise ProcessNotFoundError(error_message)
            return self._entries[index][1]

    @property
    def last_process(self) -> CommandProcess:
        """Return the most recently registered process, whatever its label.

        Raises:
            ProcessNotFoundError: If nothing was registered yet.
        """
        with self._lock:
            if not self._entries:
                error_message = "No process has been started"
                raise ProcessNotFoundError(error_message)
            return self._entries[-1][1]

    def output_from(self, label: str) -> str:
        return self.get_process(label).output

    def stdout_from(self, label: str) -> str:
        return self.get_process(label).stdout

    def stderr_from(self, label: str) -> str:
        return self.get_process(label).stderr

    def all_stdout(self) -> str:
        """Stdout of every registered process, in registration order."""
        return "".join(proc.stdout for _, proc in self.processes)

    def all_stderr(self) -> str:
        """Stderr of every registered process, in registration order."""
        return "".join(proc.stderr for _, proc in self.processes)

    def all_output(self) -> str:
        """Output (stdout then stderr) of every registered process, in registration order."""
        return "".join(proc.output for _, proc in self.processes)

    def last_exit_status(self) -> int | None:
        """Exit status of the last process; None if it timed out.

        Raises:
            ProcessNotFoundError: If nothing was registered yet.
            ProcessStateError: If the last process has not finished.
        """
        proc = self.last_process
        if not proc.finished:
            error_message = f"Process {proc.label!r} has not finished yet"
            raise ProcessStateError(error_message)
        return proc.exit_status

    def stop_process(self, proc: CommandProcess) -> int | None:
        return proc.stop(announcer=self.announcer)

    def stop_processes(self) -> None:
        """Stop every process in registration order. Finished processes are skipped cheaply."""
        for _, proc in self.processes:
            self.stop_process(proc)

    def terminate_processes(self) -> None:
        """Terminate every process in registration order. Safe to call repeatedly."""
        for _, proc in self.processes:
            proc.terminate()

    def list_active(self) -> list[CommandProcess]:
        """List all processes that have not finished."""
        return [p for _, p in self.processes if not p.finished]

    def dump_active(self) -> None:
        """Dump information about processes that are still running."""
        active = self.list_active()
        if not active:
            warnings.warn(
                "NO ACTIVE SUBPROCESSES DETECTED - MAIN PROCESS LIKELY HUNG",
                UserWarning,
                stacklevel=2,
            )
            return

        warnings.warn("STUCK SUBPROCESS COMMANDS:", UserWarning, stacklevel=2)

        now = time.time()
        mono_now = time.monotonic()
        for idx, p in enumerate(active, 1):
            pid = getattr(p, "pid", None)
            start = getattr(p, "start_time", None)
            time_last_output = getattr(p, "time_last_output", None)
            last_out = time_last_output() if callable(time_last_output) else None
            duration_str = f"{(now - start):.1f}s" if start is not None else "?"
            since_out_str = f"{(mono_now - last_out):.1f}s" if last_out is not None else "no-output"

            warnings.warn(
                f"  {idx}. label={p.label} pid={pid} duration={duration_str} last_output={since_out_str}",
                UserWarning,
                stacklevel=2,
            )
