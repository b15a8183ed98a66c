"""Lifecycle states and the capabilities shared by every spawned command."""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from cmd_harness.announcer import Announcer


class ProcessState(enum.Enum):
    """Lifecycle states of a spawned command."""

    PENDING = "pending"
    RUNNING = "running"
    EXITED = "exited"  # Process exited on its own
    TIMED_OUT = "timed_out"  # Killed after exceeding exit-timeout or io-wait
    TERMINATED = "terminated"  # Terminated on request

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessState.EXITED, ProcessState.TIMED_OUT, ProcessState.TERMINATED)


class CommandProcess(Protocol):
    """Capabilities the process registry and scenario rely on."""

    label: str

    @property
    def state(self) -> ProcessState: ...

    @property
    def finished(self) -> bool: ...

    @property
    def stdout(self) -> str: ...

    @property
    def stderr(self) -> str: ...

    @property
    def output(self) -> str: ...

    @property
    def exit_status(self) -> int | None: ...

    @property
    def timed_out(self) -> bool: ...

    def successfully_executed(self) -> bool: ...

    def has_exit_status(self, status: int) -> bool: ...

    def run(self) -> CommandProcess: ...

    def write(self, data: str | bytes) -> CommandProcess: ...

    def close_io(self, name: str) -> CommandProcess: ...

    def stop(self, io_wait: float | None = None, announcer: Announcer | None = None) -> int | None: ...

    def terminate(self) -> None: ...
