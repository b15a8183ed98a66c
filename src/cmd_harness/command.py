"""Immutable description of one command invocation."""

from __future__ import annotations

import os
import shlex
import types
from collections.abc import Mapping
from dataclasses import dataclass


def _snapshot(environment: Mapping[str, str] | None) -> Mapping[str, str]:
    source = os.environ if environment is None else environment
    return types.MappingProxyType({str(k): str(v) for k, v in source.items()})


@dataclass(frozen=True)
class Command:
    """A command line plus everything needed to spawn it.

    The environment is copied when the Command is created, so later changes to
    the caller's environment store never reach a child spawned from it.

    Attributes:
        cmdline: Command line string, split with shell-like rules (no shell is used).
        exit_timeout: Seconds the process may run before it is forcibly killed.
        io_wait_timeout: Seconds without output during stop() before the process
            is considered hung. None disables hang detection.
        working_directory: Directory to run in. None means the current directory.
        environment: Child environment, snapshotted read-only. None copies os.environ.
    """

    cmdline: str
    exit_timeout: float
    io_wait_timeout: float | None = None
    working_directory: str | None = None
    environment: Mapping[str, str] | None = None

    def __post_init__(self) -> None:
        if self.exit_timeout <= 0:
            error_message = f"exit_timeout must be positive, got {self.exit_timeout}"
            raise ValueError(error_message)
        if self.io_wait_timeout is not None and self.io_wait_timeout < 0:
            error_message = f"io_wait_timeout must not be negative, got {self.io_wait_timeout}"
            raise ValueError(error_message)
        object.__setattr__(self, "environment", _snapshot(self.environment))
        if self.working_directory is not None:
            object.__setattr__(self, "working_directory", str(self.working_directory))

    @property
    def argv(self) -> list[str]:
        return shlex.split(self.cmdline, posix=os.name != "nt")

    def __str__(self) -> str:
        return self.cmdline
