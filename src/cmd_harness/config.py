"""Scenario configuration.

Environment variables:
    CMD_HARNESS_EXIT_TIMEOUT: Seconds a command may run before it is killed (default 15).
    CMD_HARNESS_IO_WAIT_TIMEOUT: Seconds without output during stop() before a
        command counts as hung. "none" or unset disables hang detection.
    CMD_HARNESS_STARTUP_WAIT_TIME: Seconds to sleep after spawning each command (default 0).
    CMD_HARNESS_WORKING_DIRECTORY: Directory commands run in, relative to the root
        directory (default "tmp/cmd-harness").
    CMD_HARNESS_KEEP_ANSI: Keep ANSI escape sequences when comparing output
        (true/1/yes/on).
    CMD_HARNESS_ANNOUNCE: Comma separated announcer channels to echo, e.g.
        "command,stdout".
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from cmd_harness.announcer import CHANNELS

if TYPE_CHECKING:
    from cmd_harness.spawn_process import SpawnProcess

__all__ = ["Configuration", "CommandHook"]

logger = logging.getLogger(__name__)

DEFAULT_EXIT_TIMEOUT = 15.0
DEFAULT_WORKING_DIRECTORY = "tmp/cmd-harness"

# Hooks receive the scenario and the process about to run (or just started)
CommandHook = Callable[[Any, "SpawnProcess"], None]


def _parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_float(name: str, value: str | None, default: float | None) -> float | None:
    if value is None or not value.strip():
        return default
    if value.strip().lower() == "none":
        return None
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number", name, value)
        return default


def _parse_channels(value: str | None) -> tuple[str, ...]:
    if not value or not value.strip():
        return ()
    channels = []
    for item in value.split(","):
        channel = item.strip().lower()
        if not channel:
            continue
        if channel not in CHANNELS:
            logger.warning("Ignoring unknown announcer channel %r", channel)
            continue
        channels.append(channel)
    return tuple(channels)


@dataclass
class Configuration:
    """Defaults and hooks shared by every command of a scenario."""

    root_directory: Path = field(default_factory=Path.cwd)
    working_directory: str = DEFAULT_WORKING_DIRECTORY
    exit_timeout: float = DEFAULT_EXIT_TIMEOUT
    io_wait_timeout: float | None = None
    startup_wait_time: float = 0.0
    keep_ansi: bool = False
    announce_channels: tuple[str, ...] = ()
    _before_command: list[CommandHook] = field(default_factory=list, init=False, repr=False)
    _after_command: list[CommandHook] = field(default_factory=list, init=False, repr=False)

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> Configuration:
        """Build a configuration from CMD_HARNESS_* variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        exit_timeout = _parse_float("CMD_HARNESS_EXIT_TIMEOUT", env.get("CMD_HARNESS_EXIT_TIMEOUT"), DEFAULT_EXIT_TIMEOUT)
        startup_wait_time = _parse_float(
            "CMD_HARNESS_STARTUP_WAIT_TIME", env.get("CMD_HARNESS_STARTUP_WAIT_TIME"), 0.0
        )
        return cls(
            working_directory=env.get("CMD_HARNESS_WORKING_DIRECTORY") or DEFAULT_WORKING_DIRECTORY,
            exit_timeout=exit_timeout if exit_timeout is not None else DEFAULT_EXIT_TIMEOUT,
            io_wait_timeout=_parse_float("CMD_HARNESS_IO_WAIT_TIMEOUT", env.get("CMD_HARNESS_IO_WAIT_TIMEOUT"), None),
            startup_wait_time=startup_wait_time if startup_wait_time is not None else 0.0,
            keep_ansi=_parse_bool(env.get("CMD_HARNESS_KEEP_ANSI")),
            announce_channels=_parse_channels(env.get("CMD_HARNESS_ANNOUNCE")),
        )

    @property
    def working_path(self) -> Path:
        return Path(self.root_directory) / self.working_directory

    def before_command(self, hook: CommandHook) -> CommandHook:
        """Register a hook run before each command is spawned. Usable as a decorator."""
        self._before_command.append(hook)
        return hook

    def after_command(self, hook: CommandHook) -> CommandHook:
        """Register a hook run right after each command was spawned. Usable as a decorator."""
        self._after_command.append(hook)
        return hook

    def run_before_command(self, scenario: Any, process: SpawnProcess) -> None:
        for hook in self._before_command:
            hook(scenario, process)

    def run_after_command(self, scenario: Any, process: SpawnProcess) -> None:
        for hook in self._after_command:
            hook(scenario, process)
