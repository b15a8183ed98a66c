"""Assertions on command output and completion.

A command that hangs past its timeout fails with CommandTimedOutError, which is
distinct from the CommandFailedError raised for an unexpected exit status, so a
test report can tell "program failed" from "program hung".
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cmd_harness.process_protocol import CommandProcess

_ANSI_SGR = re.compile(r"\x1b\[\d+(?:;\d+)*m")


class OutputMismatchError(AssertionError):
    """Output did not match the expectation."""


class CommandFailedError(AssertionError):
    """A command finished with an unexpected exit status."""


class CommandTimedOutError(AssertionError):
    """A command did not finish within its timeout."""


def unescape(text: str, keep_ansi: bool = False) -> str:
    """Turn literal ``\\n``, ``\\"`` and ``\\e`` into real characters and strip color codes."""
    text = text.replace("\\n", "\n").replace('\\"', '"').replace("\\e", "\x1b")
    if not keep_ansi:
        text = _ANSI_SGR.sub("", text)
    return text


def _describe(process: CommandProcess) -> str:
    return f"Output:\n\n{process.output}\n"


def assert_exact_output(expected: str, actual: str, keep_ansi: bool = False) -> None:
    if unescape(actual, keep_ansi) != unescape(expected, keep_ansi):
        error_message = f"Expected output to be exactly:\n{expected!r}\nbut was:\n{actual!r}"
        raise OutputMismatchError(error_message)


def assert_partial_output(expected: str, actual: str, keep_ansi: bool = False) -> None:
    if unescape(expected, keep_ansi) not in unescape(actual, keep_ansi):
        error_message = f"Expected output to contain:\n{expected!r}\nbut was:\n{actual!r}"
        raise OutputMismatchError(error_message)


def assert_no_partial_output(unexpected: str | re.Pattern[str], actual: str, keep_ansi: bool = False) -> None:
    text = unescape(actual, keep_ansi)
    if isinstance(unexpected, re.Pattern):
        found = unexpected.search(text) is not None
    else:
        found = unexpected in text
    if found:
        error_message = f"Expected output not to contain:\n{unexpected!r}\nbut was:\n{actual!r}"
        raise OutputMismatchError(error_message)


def assert_matching_output(expected: str, actual: str, keep_ansi: bool = False) -> None:
    pattern = re.compile(unescape(expected, keep_ansi), re.MULTILINE | re.DOTALL)
    if pattern.search(unescape(actual, keep_ansi)) is None:
        error_message = f"Expected output to match /{expected}/ but was:\n{actual!r}"
        raise OutputMismatchError(error_message)


def assert_not_matching_output(expected: str, actual: str, keep_ansi: bool = False) -> None:
    pattern = re.compile(unescape(expected, keep_ansi), re.MULTILINE | re.DOTALL)
    if pattern.search(unescape(actual, keep_ansi)) is not None:
        error_message = f"Expected output not to match /{expected}/ but was:\n{actual!r}"
        raise OutputMismatchError(error_message)


def assert_finished_in_time(process: CommandProcess) -> None:
    if process.timed_out:
        error_message = f"Command {process.label!r} did not finish in time. {_describe(process)}"
        raise CommandTimedOutError(error_message)


def _status(process: CommandProcess) -> str:
    return f"{process.exit_status} ({process.state.value})"


def assert_successfully_executed(process: CommandProcess) -> None:
    assert_finished_in_time(process)
    if not process.successfully_executed():
        error_message = f"Expected {process.label!r} to succeed but it ended with {_status(process)}. {_describe(process)}"
        raise CommandFailedError(error_message)


def assert_not_successfully_executed(process: CommandProcess) -> None:
    assert_finished_in_time(process)
    if process.successfully_executed():
        error_message = f"Expected {process.label!r} to fail but it succeeded. {_describe(process)}"
        raise CommandFailedError(error_message)


def assert_exit_status(process: CommandProcess, status: int) -> None:
    assert_finished_in_time(process)
    if not process.has_exit_status(status):
        error_message = (
            f"Expected {process.label!r} to exit with {status} but it ended with {_status(process)}. "
            f"{_describe(process)}"
        )
        raise CommandFailedError(error_message)


def assert_not_exit_status(process: CommandProcess, status: int) -> None:
    assert_finished_in_time(process)
    if process.has_exit_status(status):
        error_message = f"Exit status was {status} which was not expected. {_describe(process)}"
        raise CommandFailedError(error_message)
