"""Mutable environment for commands started in a scenario."""

from __future__ import annotations

import os
from collections.abc import Mapping


class EnvironmentStore:
    """Environment variables handed to new commands.

    Commands receive a copy via to_dict(), so changes made here only affect
    commands started afterwards.
    """

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        source = os.environ if initial is None else initial
        self._env: dict[str, str] = {str(k): str(v) for k, v in source.items()}

    def set(self, name: str, value: str) -> None:
        self._env[str(name)] = str(value)

    def append(self, name: str, value: str) -> None:
        """Append ``value`` to the current value of ``name`` (plain concatenation)."""
        name = str(name)
        self._env[name] = self._env.get(name, "") + str(value)

    def prepend(self, name: str, value: str) -> None:
        """Prepend ``value`` to the current value of ``name`` (plain concatenation)."""
        name = str(name)
        self._env[name] = str(value) + self._env.get(name, "")

    def delete(self, name: str) -> None:
        self._env.pop(str(name), None)

    def get(self, name: str, default: str | None = None) -> str | None:
        return self._env.get(name, default)

    def __getitem__(self, name: str) -> str:
        return self._env[name]

    def __contains__(self, name: object) -> bool:
        return name in self._env

    def to_dict(self) -> dict[str, str]:
        return dict(self._env)
