"""Exception types raised by cmd_harness."""

from __future__ import annotations


class CommandHarnessError(Exception):
    """Base class for all cmd_harness errors."""


class ProcessNotFoundError(CommandHarnessError, LookupError):
    """Raised when no registered process matches the requested label."""


class InputClosedError(CommandHarnessError, OSError):
    """Raised when writing to a process whose input is closed or which has finished."""


class SpawnFailureError(CommandHarnessError, RuntimeError):
    """Raised when the OS could not start the requested executable.

    This is fatal for the current run and is never retried.
    """


class ProcessStateError(CommandHarnessError, RuntimeError):
    """Raised when an operation is not valid for the process's current state."""
