"""In-process flag storage for tests and ephemeral deployments."""

from __future__ import annotations

import copy
from typing import Any

from technodog.interfaces.flag_storage import IFlagStorage


class MemoryFlagStorage(IFlagStorage):
    """Dict-backed :class:`IFlagStorage`; state is lost on restart."""

    def __init__(self, initial: dict[str, dict[str, Any]] | None = None) -> None:
        self._data: dict[str, dict[str, Any]] = copy.deepcopy(initial or {})

    def read(self, key: str) -> dict[str, Any] | None:
        value = self._data.get(key)
        return dict(value) if value is not None else None

    def write(self, key: str, value: dict[str, Any]) -> None:
        self._data[key] = dict(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def get_provider_name(self) -> str:
        return "memory"
