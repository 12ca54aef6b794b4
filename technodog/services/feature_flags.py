"""Feature flag service for the knowledge layer.

Reads and writes :class:`KnowledgeFeatureFlags` through an
:class:`IFlagStorage` backend.  Stored overrides are merged over the
defaults on every read, one flag at a time: flags added later pick up
their default, unknown keys in an old blob are ignored, and a value that
does not parse as a boolean falls back to its default without taking the
other overrides with it.

Storage problems never propagate: a blob that cannot be read yields the
defaults, and a failed write is logged and dropped.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import ValidationError

from technodog.interfaces.flag_storage import IFlagStorage
from technodog.models.flags import (
    ADMIN_PRESET,
    FLAGS_STORAGE_KEY,
    SAFE_PRESET,
    KnowledgeFeatureFlags,
)

logger = structlog.get_logger(logger_name=__name__)


def _valid_overrides(stored: dict[str, Any]) -> dict[str, bool]:
    """Keep each stored flag that parses; a bad value only loses its own key."""
    overrides: dict[str, bool] = {}
    for field_name, info in KnowledgeFeatureFlags.model_fields.items():
        key = info.alias if info.alias in stored else field_name
        if key not in stored:
            continue
        try:
            parsed = KnowledgeFeatureFlags.model_validate({field_name: stored[key]})
        except ValidationError:
            logger.warning("feature_flag_value_dropped", flag=key, value=stored[key])
            continue
        overrides[field_name] = getattr(parsed, field_name)
    return overrides


class FeatureFlagService:
    """Get, set and reset knowledge-layer feature flags.

    Parameters
    ----------
    storage:
        Backend holding the persisted overrides.
    storage_key:
        Key the overrides are stored under.
    """

    def __init__(self, storage: IFlagStorage, storage_key: str = FLAGS_STORAGE_KEY) -> None:
        self._storage = storage
        self._key = storage_key

    # ------------------------------------------------------------------
    # Read / write
    # ------------------------------------------------------------------

    def get(self) -> KnowledgeFeatureFlags:
        """Return the defaults merged with the persisted overrides."""
        try:
            stored = self._storage.read(self._key)
        except (OSError, ValueError) as exc:
            logger.warning("feature_flags_read_failed", error=str(exc))
            return KnowledgeFeatureFlags()
        if not stored:
            return KnowledgeFeatureFlags()
        return KnowledgeFeatureFlags.model_validate(_valid_overrides(stored))

    def set(self, flag: str, value: bool) -> KnowledgeFeatureFlags:
        """Set one flag (field name or storage alias) and persist the full set.

        Raises
        ------
        KeyError
            If *flag* is not a known flag name.
        """
        return self.set_many({flag: value})

    def set_many(self, updates: dict[str, bool]) -> KnowledgeFeatureFlags:
        """Apply several flag changes at once and persist the merged set."""
        resolved = {
            KnowledgeFeatureFlags.field_for(name): bool(value) for name, value in updates.items()
        }
        flags = self.get().model_copy(update=resolved)
        self._persist(flags)
        logger.info("feature_flags_updated", updates=resolved)
        return flags

    def reset(self) -> KnowledgeFeatureFlags:
        """Remove the persisted overrides; subsequent reads return defaults."""
        try:
            self._storage.remove(self._key)
        except (OSError, ValueError) as exc:
            logger.warning("feature_flags_reset_failed", error=str(exc))
        logger.info("feature_flags_reset")
        return KnowledgeFeatureFlags()

    def enable_admin_mode(self) -> KnowledgeFeatureFlags:
        """Turn on cache, evidence UI and admin dashboard."""
        return self.set_many(ADMIN_PRESET)

    def disable_all(self) -> KnowledgeFeatureFlags:
        """Apply the safe preset: features off, shadow mode and validator on."""
        return self.set_many(SAFE_PRESET)

    # ------------------------------------------------------------------
    # Convenience predicates
    # ------------------------------------------------------------------

    def is_cache_enabled(self) -> bool:
        return self.get().knowledge_cache_enabled

    def is_enrichment_enabled(self) -> bool:
        return self.get().knowledge_enrichment_enabled

    def is_evidence_ui_enabled(self) -> bool:
        return self.get().knowledge_evidence_ui_enabled

    def is_admin_enabled(self) -> bool:
        return self.get().knowledge_admin_dashboard_enabled

    def is_shadow_mode(self) -> bool:
        return self.get().knowledge_shadow_mode

    def is_zero_hallucination_enabled(self) -> bool:
        return self.get().knowledge_zero_hallucination_enabled

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def log_shadow_activity(self, action: str, details: dict[str, Any]) -> bool:
        """Emit a ``shadow_mode_activity`` event if shadow mode is on.

        Returns whether the event was logged.
        """
        if not self.is_shadow_mode():
            return False
        logger.info("shadow_mode_activity", action=action, details=details)
        return True

    def summary(self) -> str:
        """Return one ``NAME: ON|OFF`` line per flag."""
        return "\n".join(
            f"{name}: {'ON' if value else 'OFF'}"
            for name, value in self.get().to_storage().items()
        )

    def _persist(self, flags: KnowledgeFeatureFlags) -> None:
        try:
            self._storage.write(self._key, flags.to_storage())
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("feature_flags_write_failed", error=str(exc))
