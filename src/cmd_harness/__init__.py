"""Black-box testing support for command-line programs."""

from __future__ import annotations

__version__ = "1.0.0"

from cmd_harness.announcer import Announcer
from cmd_harness.assertions import CommandFailedError, CommandTimedOutError, OutputMismatchError
from cmd_harness.command import Command
from cmd_harness.config import Configuration
from cmd_harness.environment import EnvironmentStore
from cmd_harness.errors import (
    CommandHarnessError,
    InputClosedError,
    ProcessNotFoundError,
    ProcessStateError,
    SpawnFailureError,
)
from cmd_harness.process_monitor import ProcessMonitor
from cmd_harness.process_protocol import CommandProcess, ProcessState
from cmd_harness.process_utils import get_process_tree_info, terminate_process_tree
from cmd_harness.scenario import Scenario
from cmd_harness.spawn_process import SpawnProcess
from cmd_harness.subprocess_runner import subprocess_run
from cmd_harness.timeout_controller import TimeoutController

__all__ = [
    "Announcer",
    "Command",
    "CommandFailedError",
    "CommandHarnessError",
    "CommandProcess",
    "CommandTimedOutError",
    "Configuration",
    "EnvironmentStore",
    "InputClosedError",
    "OutputMismatchError",
    "ProcessMonitor",
    "ProcessNotFoundError",
    "ProcessState",
    "ProcessStateError",
    "Scenario",
    "SpawnFailureError",
    "SpawnProcess",
    "TimeoutController",
    "get_process_tree_info",
    "subprocess_run",
    "terminate_process_tree",
]
