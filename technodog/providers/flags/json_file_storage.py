"""JSON-file flag storage, the server-side stand-in for browser local storage.

The whole file is one JSON object mapping storage keys to blobs.  Writes go
to a temporary sibling file and are renamed into place so a crash never
leaves a half-written file behind.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import structlog

from technodog.interfaces.flag_storage import IFlagStorage

logger = structlog.get_logger(logger_name=__name__)


class JsonFileFlagStorage(IFlagStorage):
    """File-backed :class:`IFlagStorage`.

    Parameters
    ----------
    path:
        Location of the JSON file.  Parent directories are created on the
        first write.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def read(self, key: str) -> dict[str, Any] | None:
        data = self._load()
        value = data.get(key)
        return value if isinstance(value, dict) else None

    def write(self, key: str, value: dict[str, Any]) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)
        logger.debug("flag_storage_write", key=key, path=str(self._path))

    def remove(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._dump(data)
            logger.debug("flag_storage_remove", key=key, path=str(self._path))

    def get_provider_name(self) -> str:
        return "json_file"

    # ------------------------------------------------------------------

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        with open(self._path, encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}

    def _dump(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        os.replace(tmp_path, self._path)
