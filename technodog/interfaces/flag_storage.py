"""Abstract base class for feature-flag persistence.

Mirrors browser local storage: string keys mapping to JSON objects, with
no server authority.  Two processes pointing at different storage can
legitimately disagree about the current flags.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class IFlagStorage(ABC):
    """Contract for the key/blob store behind the feature flag service.

    Implementations signal failure with ``OSError`` (I/O) or ``ValueError``
    (an unreadable blob, including ``json.JSONDecodeError``); ``write`` may
    also raise ``TypeError`` for a value that cannot be serialised.  The
    flag service catches exactly these, logs, and degrades to defaults.
    """

    @abstractmethod
    def read(self, key: str) -> dict[str, Any] | None:
        """Return the blob stored under *key*, or ``None`` if absent."""

    @abstractmethod
    def write(self, key: str, value: dict[str, Any]) -> None:
        """Replace the blob stored under *key*."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete *key*.  No-op when absent."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this storage backend."""
