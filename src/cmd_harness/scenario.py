"""Scenario: the entry point a test uses to run commands and inspect their results.

```python
with Scenario() as scenario:
    scenario.run_simple("echo hi")
    scenario.assert_passing_with("hi")

    scenario.run("cat", label="cat")
    scenario.type("hello")
    scenario.close_input()
    scenario.stop_processes()
    assert scenario.stdout_from("cat") == "hello\\n"
```
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from types import TracebackType

from cmd_harness import assertions
from cmd_harness.announcer import Announcer
from cmd_harness.command import Command
from cmd_harness.config import Configuration
from cmd_harness.environment import EnvironmentStore
from cmd_harness.process_monitor import ProcessMonitor
from cmd_harness.spawn_process import SpawnProcess

logger = logging.getLogger(__name__)


class Scenario:
    """Runs commands for one test and keeps every process for later assertions.

    Args:
        config: Timeouts, working directory and hooks. Defaults to Configuration.from_environ().
        announcer: Diagnostics sink. Defaults to one echoing the configured channels.
        environment: Environment for new commands. Defaults to a copy of os.environ.
    """

    def __init__(
        self,
        config: Configuration | None = None,
        announcer: Announcer | None = None,
        environment: EnvironmentStore | None = None,
    ) -> None:
        self.config = config if config is not None else Configuration.from_environ()
        self.announcer = announcer if announcer is not None else Announcer(channels=self.config.announce_channels)
        self.environment = environment if environment is not None else EnvironmentStore()
        self.process_monitor = ProcessMonitor(self.announcer)
        self.commands: list[str] = []
        self.timed_out: bool = False

    def __enter__(self) -> Scenario:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        self.terminate_processes()
        return False

    @property
    def exit_timeout(self) -> float:
        return self.config.exit_timeout

    @property
    def io_wait(self) -> float | None:
        return self.config.io_wait_timeout

    @property
    def working_directory(self) -> Path:
        return self.config.working_path

    def expand_path(self, path: str | os.PathLike[str]) -> Path:
        """Resolve ``path`` relative to the working directory; ``~`` is expanded."""
        expanded = Path(path).expanduser()
        if expanded.is_absolute():
            return expanded
        return (self.working_directory / expanded).resolve()

    def run(
        self,
        cmdline: str,
        timeout: float | None = None,
        label: str | None = None,
        io_wait: float | None = None,
    ) -> SpawnProcess:
        """
        Start ``cmdline`` in the working directory and register it.

        Args:
            cmdline: Command line to run (split with shell-like rules, no shell).
            timeout: Exit-timeout in seconds. Defaults to the configured one.
            label: Name for later lookups. Defaults to the command line itself.
            io_wait: Io-wait budget in seconds. Defaults to the configured one.

        Returns:
            The running process.

        Raises:
            SpawnFailureError: If the command could not be started.
        """
        exit_timeout = timeout if timeout is not None else self.exit_timeout
        io_wait_timeout = io_wait if io_wait is not None else self.io_wait
        self.commands.append(cmdline)

        working_directory = self.working_directory
        working_directory.mkdir(parents=True, exist_ok=True)

        self.announcer.announce("directory", working_directory)
        self.announcer.announce("command", cmdline)
        self.announcer.announce("environment", "PATH", self.environment.get("PATH", ""))
        self.announcer.announce("timeout", "exit-timeout", exit_timeout)

        command = Command(
            cmdline,
            exit_timeout=exit_timeout,
            io_wait_timeout=io_wait_timeout,
            working_directory=str(working_directory),
            environment=self.environment.to_dict(),
        )
        process = SpawnProcess(command, label=label, startup_wait_time=self.config.startup_wait_time)

        self.config.run_before_command(self, process)
        self.process_monitor.register(process.label, process)
        logger.debug("Registered process %r (#%d)", process.label, len(self.process_monitor))
        process.run()
        self.config.run_after_command(self, process)

        return process

    def run_simple(self, cmdline: str, fail_on_error: bool = True, timeout: float | None = None) -> SpawnProcess:
        """
        Run ``cmdline`` and wait for it to finish.

        Raises:
            CommandTimedOutError: If fail_on_error and the command did not finish in time.
            CommandFailedError: If fail_on_error and the command exited non-zero.
        """
        process = self.run(cmdline, timeout)
        self.process_monitor.stop_process(process)
        self.timed_out = process.timed_out

        if fail_on_error:
            assertions.assert_finished_in_time(process)
            assertions.assert_successfully_executed(process)
        return process

    def type(self, text: str) -> None:
        """Send a line of input to the last command; an empty string closes its input."""
        if text == "":
            self.close_input()
            return
        self.last_command.write(text + "\n")

    def close_input(self) -> None:
        self.last_command.close_io("stdin")

    def pipe_in_file(self, path: str | os.PathLike[str]) -> None:
        """Write every line of the file at ``path`` to the last command's input."""
        with self.expand_path(path).open("r", encoding="utf-8") as f:
            for line in f:
                self.last_command.write(line)

    @property
    def last_command(self) -> SpawnProcess:
        return self.process_monitor.last_process  # type: ignore[return-value]

    def get_process(self, label: str) -> SpawnProcess:
        return self.process_monitor.get_process(label)  # type: ignore[return-value]

    @property
    def processes(self) -> list[tuple[str, SpawnProcess]]:
        return self.process_monitor.processes  # type: ignore[return-value]

    def output_from(self, label: str) -> str:
        return self.process_monitor.output_from(label)

    def stdout_from(self, label: str) -> str:
        return self.process_monitor.stdout_from(label)

    def stderr_from(self, label: str) -> str:
        return self.process_monitor.stderr_from(label)

    def all_stdout(self) -> str:
        return self.process_monitor.all_stdout()

    def all_stderr(self) -> str:
        return self.process_monitor.all_stderr()

    def all_output(self) -> str:
        return self.process_monitor.all_output()

    def last_exit_status(self) -> int | None:
        return self.process_monitor.last_exit_status()

    def stop_processes(self) -> None:
        self.process_monitor.stop_processes()

    def terminate_processes(self) -> None:
        self.process_monitor.terminate_processes()

    def set_environment_variable(self, name: str, value: str) -> Scenario:
        self.environment.set(name, value)
        self.announcer.announce("environment", name, self.environment[str(name)])
        return self

    def append_environment_variable(self, name: str, value: str) -> Scenario:
        self.environment.append(name, value)
        self.announcer.announce("environment", name, self.environment[str(name)])
        return self

    def prepend_environment_variable(self, name: str, value: str) -> Scenario:
        self.environment.prepend(name, value)
        self.announcer.announce("environment", name, self.environment[str(name)])
        return self

    def assert_success(self, success: bool) -> None:
        if success:
            assertions.assert_successfully_executed(self.last_command)
        else:
            assertions.assert_not_successfully_executed(self.last_command)

    def assert_exit_status(self, status: int) -> None:
        assertions.assert_exit_status(self.last_command, status)

    def assert_not_exit_status(self, status: int) -> None:
        assertions.assert_not_exit_status(self.last_command, status)

    def assert_passing_with(self, expected: str) -> None:
        self.assert_success(True)
        assertions.assert_partial_output(expected, self.all_output(), keep_ansi=self.config.keep_ansi)

    def assert_partial_output_interactive(self, expected: str) -> None:
        """Check the stdout of the last command so far, without waiting for it to finish."""
        assertions.assert_partial_output(expected, self.last_command.stdout, keep_ansi=self.config.keep_ansi)

    def assert_failing_with(self, expected: str) -> None:
        self.assert_success(False)
        assertions.assert_partial_output(expected, self.all_output(), keep_ansi=self.config.keep_ansi)
