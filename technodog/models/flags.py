"""Knowledge-layer feature flags.

The persisted blob uses the upper-case names the web client writes to local
storage (``KNOWLEDGE_CACHE_ENABLED`` ...); Python code uses the snake_case
field names.  Pydantic aliases bridge the two.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

FLAGS_STORAGE_KEY = "technodog_knowledge_flags"


class KnowledgeFeatureFlags(BaseModel):
    """The fixed set of knowledge-layer switches.

    Defaults are the safe rollout state: every feature off, shadow logging
    and zero-hallucination enforcement on.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    knowledge_cache_enabled: bool = Field(
        default=False,
        alias="KNOWLEDGE_CACHE_ENABLED",
        description="Serve and store knowledge lookups through the cache table.",
    )
    knowledge_enrichment_enabled: bool = Field(
        default=False,
        alias="KNOWLEDGE_ENRICHMENT_ENABLED",
        description="Allow scheduled processing of the artist enrichment queue.",
    )
    knowledge_evidence_ui_enabled: bool = Field(
        default=False,
        alias="KNOWLEDGE_EVIDENCE_UI_ENABLED",
        description="Show per-fact evidence and confidence in the UI.",
    )
    knowledge_admin_dashboard_enabled: bool = Field(
        default=False,
        alias="KNOWLEDGE_ADMIN_DASHBOARD_ENABLED",
        description="Expose the knowledge admin dashboard.",
    )
    knowledge_shadow_mode: bool = Field(
        default=True,
        alias="KNOWLEDGE_SHADOW_MODE",
        description="Log what the knowledge layer would do without changing output.",
    )
    knowledge_zero_hallucination_enabled: bool = Field(
        default=True,
        alias="KNOWLEDGE_ZERO_HALLUCINATION_ENABLED",
        description="Only surface facts that carry a source and evidence.",
    )

    @classmethod
    def field_for(cls, name: str) -> str:
        """Resolve a flag given either its field name or its storage alias.

        Raises
        ------
        KeyError
            If *name* is not a known flag.
        """
        if name in cls.model_fields:
            return name
        for field_name, info in cls.model_fields.items():
            if info.alias == name:
                return field_name
        raise KeyError(name)

    def to_storage(self) -> dict[str, bool]:
        """Return the blob persisted under :data:`FLAGS_STORAGE_KEY`."""
        return self.model_dump(by_alias=True)


# Preset applied by ``enable_admin_mode()``.
ADMIN_PRESET: dict[str, bool] = {
    "knowledge_cache_enabled": True,
    "knowledge_evidence_ui_enabled": True,
    "knowledge_admin_dashboard_enabled": True,
}

# Preset applied by ``disable_all()``.
SAFE_PRESET: dict[str, bool] = {
    "knowledge_cache_enabled": False,
    "knowledge_enrichment_enabled": False,
    "knowledge_evidence_ui_enabled": False,
    "knowledge_admin_dashboard_enabled": False,
    "knowledge_shadow_mode": True,
    "knowledge_zero_hallucination_enabled": True,
}
