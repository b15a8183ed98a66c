"""Private subprocess runner module.

This module contains the implementation of a subprocess.run() replacement
using SpawnProcess as the backend.
"""

import os
import shlex
import subprocess
from collections.abc import Mapping
from pathlib import Path

from cmd_harness.command import Command
from cmd_harness.spawn_process import SpawnProcess

DEFAULT_TIMEOUT = 60.0


def _to_cmdline(command: str | list[str]) -> str:
    if isinstance(command, str):
        return command
    if os.name == "nt":
        return subprocess.list2cmdline(command)
    return shlex.join(command)


def execute_subprocess_run(
    command: str | list[str],
    cwd: Path | None = None,
    check: bool = False,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
) -> subprocess.CompletedProcess[str]:
    """
    Execute a command with robust output handling, emulating subprocess.run().

    Uses SpawnProcess as the backend to provide:
    - Continuous draining of stdout and stderr to prevent pipe blocking
    - Timeout protection with process tree termination
    - Standard subprocess.CompletedProcess return value

    Args:
        command: Command to execute as string or list of arguments. No shell is used.
        cwd: Working directory for command execution.
        check: If True, raise CalledProcessError for non-zero exit codes.
        timeout: Maximum execution time in seconds. Defaults to DEFAULT_TIMEOUT.
        env: Environment for the command. Defaults to a copy of os.environ.

    Returns:
        CompletedProcess with the decoded stdout, stderr and exit status.

    Raises:
        RuntimeError: If the process times out (wraps TimeoutError).
        CalledProcessError: If check=True and the process exits with a non-zero code.
        SpawnFailureError: If the command could not be started.
    """
    effective_timeout = timeout if timeout is not None else DEFAULT_TIMEOUT
    cmdline = _to_cmdline(command)
    proc = SpawnProcess(
        Command(
            cmdline,
            exit_timeout=effective_timeout,
            working_directory=str(cwd) if cwd is not None else None,
            environment=env,
        )
    ).run()
    proc.close_io("stdin")

    return_code = proc.stop()
    if proc.timed_out:
        error_message = f"CRITICAL: Process timed out after {effective_timeout} seconds: {cmdline}"
        raise RuntimeError(error_message) from TimeoutError(error_message)
    assert return_code is not None

    completed = subprocess.CompletedProcess(
        args=command,
        returncode=return_code,
        stdout=proc.stdout,
        stderr=proc.stderr,
    )

    if check and return_code != 0:
        raise subprocess.CalledProcessError(
            returncode=return_code,
            cmd=command,
            output=proc.stdout,
            stderr=proc.stderr,
        )

    return completed


def subprocess_run(
    command: str | list[str],
    cwd: Path | None = None,
    check: bool = False,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
) -> subprocess.CompletedProcess[str]:
    """Execute a command and wait for it, emulating subprocess.run().

    See execute_subprocess_run() for the arguments and raised errors.
    """
    return execute_subprocess_run(command, cwd, check, timeout, env)
