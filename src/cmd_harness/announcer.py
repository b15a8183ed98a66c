"""Diagnostics sink for announcing what a scenario is doing.

Announcements are purely observational: they are always logged at debug level
and echoed to the user only for channels that have been activated.

```python
announcer = Announcer(channels=["command", "stdout"])
announcer.announce("command", "echo hi")   # prints "$ echo hi"
announcer.announce("directory", "/tmp")    # logged only
```
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

logger = logging.getLogger(__name__)

CHANNELS = ("directory", "command", "environment", "timeout", "stdout", "stderr")

# Type alias for echo callbacks
EchoCallback = Callable[[str], None]


class EchoCallbackNull:
    """Null object implementation of EchoCallback that discards all output."""

    def __call__(self, line: str) -> None:
        """Discard the input line without doing anything."""


def normalize_echo_callback(echo: bool | EchoCallback) -> EchoCallback:
    """Normalize echo parameter to a callback function.

    Args:
        echo: Either a boolean or a callback function.
              True converts to print function, False to EchoCallbackNull.

    Returns:
        Callback function that handles output lines.
    """
    if echo is True:
        return print
    if echo is False:
        return EchoCallbackNull()
    if callable(echo):
        return echo

    error_msg = f"echo must be bool or callable, got {type(echo).__name__}"
    raise TypeError(error_msg)


def _format_block(name: str, content: str) -> str:
    marker = name.upper()
    return f"<<-{marker}\n{content}\n{marker}"


class Announcer:
    """Formats announcements per channel and forwards activated ones to an echo callback."""

    def __init__(self, echo: bool | EchoCallback = True, channels: Iterable[str] = ()) -> None:
        self._echo = normalize_echo_callback(echo)
        self._activated: set[str] = set()
        self.activate(*channels)

    @staticmethod
    def _validate(channel: str) -> str:
        if channel not in CHANNELS:
            error_msg = f"Unknown announcement channel {channel!r}, expected one of {', '.join(CHANNELS)}"
            raise ValueError(error_msg)
        return channel

    def activate(self, *channels: str) -> "Announcer":
        for channel in channels:
            self._activated.add(self._validate(channel))
        return self

    def deactivate(self, *channels: str) -> "Announcer":
        for channel in channels:
            self._activated.discard(self._validate(channel))
        return self

    def activated(self, channel: str) -> bool:
        return self._validate(channel) in self._activated

    def format(self, channel: str, *args: object) -> str:
        """Render an announcement without emitting it."""
        self._validate(channel)
        values = [str(a) for a in args]
        if channel == "directory":
            return f"$ cd {values[0]}"
        if channel == "command":
            return f"$ {values[0]}"
        if channel == "environment":
            name, value = values[0], values[1] if len(values) > 1 else ""
            return f'$ export {name}="{value}"'
        if channel == "timeout":
            name, value = values[0], values[1] if len(values) > 1 else ""
            return f"# {name}: {value} seconds"
        return _format_block(channel, values[0] if values else "")

    def announce(self, channel: str, *args: object) -> None:
        """Announce a value on ``channel``.

        Args:
            channel: One of CHANNELS.
            *args: The value, or a (name, value) pair for environment and timeout.
        """
        message = self.format(channel, *args)
        logger.debug("[%s] %s", channel, message)
        if channel in self._activated:
            self._echo(message)
