"""Unit tests for FeatureFlagService and the flag storage backends."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from technodog.models.flags import FLAGS_STORAGE_KEY, KnowledgeFeatureFlags
from technodog.providers.flags.json_file_storage import JsonFileFlagStorage
from technodog.providers.flags.memory_storage import MemoryFlagStorage
from technodog.services.feature_flags import FeatureFlagService


class TestDefaults:
    def test_defaults_are_safe_rollout_state(self, flags: FeatureFlagService) -> None:
        current = flags.get()
        assert current.knowledge_cache_enabled is False
        assert current.knowledge_enrichment_enabled is False
        assert current.knowledge_evidence_ui_enabled is False
        assert current.knowledge_admin_dashboard_enabled is False
        assert current.knowledge_shadow_mode is True
        assert current.knowledge_zero_hallucination_enabled is True

    def test_storage_names_are_upper_case(self) -> None:
        stored = KnowledgeFeatureFlags().to_storage()
        assert "KNOWLEDGE_CACHE_ENABLED" in stored
        assert len(stored) == 6


class TestSetAndMerge:
    def test_set_by_field_name(self, flags: FeatureFlagService) -> None:
        flags.set("knowledge_cache_enabled", True)
        assert flags.is_cache_enabled() is True

    def test_set_by_storage_name(self, flags: FeatureFlagService) -> None:
        flags.set("KNOWLEDGE_ENRICHMENT_ENABLED", True)
        assert flags.is_enrichment_enabled() is True

    def test_unknown_flag_raises_key_error(self, flags: FeatureFlagService) -> None:
        with pytest.raises(KeyError):
            flags.set("not_a_flag", True)

    def test_partial_blob_merges_over_defaults(self) -> None:
        storage = MemoryFlagStorage({FLAGS_STORAGE_KEY: {"KNOWLEDGE_CACHE_ENABLED": True}})
        service = FeatureFlagService(storage)
        assert service.is_cache_enabled() is True
        assert service.is_shadow_mode() is True

    def test_unknown_keys_in_blob_ignored(self) -> None:
        storage = MemoryFlagStorage(
            {FLAGS_STORAGE_KEY: {"KNOWLEDGE_CACHE_ENABLED": True, "LEGACY_FLAG": True}}
        )
        assert FeatureFlagService(storage).is_cache_enabled() is True

    def test_unparseable_value_only_drops_its_own_flag(self) -> None:
        storage = MemoryFlagStorage(
            {
                FLAGS_STORAGE_KEY: {
                    "KNOWLEDGE_CACHE_ENABLED": True,
                    "KNOWLEDGE_SHADOW_MODE": "maybe",
                }
            }
        )
        service = FeatureFlagService(storage)
        assert service.is_cache_enabled() is True
        assert service.is_shadow_mode() is True

    def test_write_after_bad_value_keeps_other_overrides(self) -> None:
        storage = MemoryFlagStorage(
            {
                FLAGS_STORAGE_KEY: {
                    "KNOWLEDGE_CACHE_ENABLED": True,
                    "KNOWLEDGE_SHADOW_MODE": "maybe",
                }
            }
        )
        FeatureFlagService(storage).set("knowledge_admin_dashboard_enabled", True)
        blob = storage.read(FLAGS_STORAGE_KEY)
        assert blob is not None
        assert blob["KNOWLEDGE_CACHE_ENABLED"] is True
        assert blob["KNOWLEDGE_ADMIN_DASHBOARD_ENABLED"] is True
        assert blob["KNOWLEDGE_SHADOW_MODE"] is True

    def test_field_names_in_blob_are_accepted(self) -> None:
        storage = MemoryFlagStorage({FLAGS_STORAGE_KEY: {"knowledge_enrichment_enabled": "true"}})
        assert FeatureFlagService(storage).is_enrichment_enabled() is True

    def test_set_many_persists_full_set(self) -> None:
        storage = MemoryFlagStorage()
        service = FeatureFlagService(storage)
        service.set_many({"knowledge_cache_enabled": True, "knowledge_shadow_mode": False})
        blob = storage.read(FLAGS_STORAGE_KEY)
        assert blob is not None
        assert blob["KNOWLEDGE_CACHE_ENABLED"] is True
        assert blob["KNOWLEDGE_SHADOW_MODE"] is False
        assert len(blob) == 6


class TestPresets:
    def test_reset_restores_defaults(self, flags: FeatureFlagService) -> None:
        flags.set("knowledge_cache_enabled", True)
        flags.reset()
        assert flags.get() == KnowledgeFeatureFlags()

    def test_admin_mode(self, flags: FeatureFlagService) -> None:
        flags.enable_admin_mode()
        assert flags.is_cache_enabled() is True
        assert flags.is_evidence_ui_enabled() is True
        assert flags.is_admin_enabled() is True

    def test_disable_all_turns_features_off(self, flags: FeatureFlagService) -> None:
        flags.enable_admin_mode()
        flags.disable_all()
        current = flags.get()
        assert current.knowledge_cache_enabled is False
        assert current.knowledge_admin_dashboard_enabled is False
        assert current.knowledge_zero_hallucination_enabled is True


class TestShadowLogging:
    def test_logs_only_in_shadow_mode(self, flags: FeatureFlagService) -> None:
        assert flags.log_shadow_activity("cache_lookup", {"q": "x"}) is True
        flags.set("knowledge_shadow_mode", False)
        assert flags.log_shadow_activity("cache_lookup", {"q": "x"}) is False

    def test_summary_lists_every_flag(self, flags: FeatureFlagService) -> None:
        lines = flags.summary().splitlines()
        assert "KNOWLEDGE_SHADOW_MODE: ON" in lines
        assert "KNOWLEDGE_CACHE_ENABLED: OFF" in lines


class TestJsonFileFlagStorage:
    def test_round_trip_through_file(self, tmp_path: Path) -> None:
        path = tmp_path / "flags" / "knowledge_flags.json"
        FeatureFlagService(JsonFileFlagStorage(path)).set("knowledge_cache_enabled", True)

        reloaded = FeatureFlagService(JsonFileFlagStorage(path))
        assert reloaded.is_cache_enabled() is True

    def test_corrupt_file_yields_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "knowledge_flags.json"
        path.write_text("{not json", encoding="utf-8")
        assert FeatureFlagService(JsonFileFlagStorage(path)).get() == KnowledgeFeatureFlags()

    def test_reset_on_corrupt_file_does_not_raise(self, tmp_path: Path) -> None:
        path = tmp_path / "knowledge_flags.json"
        path.write_text("{not json", encoding="utf-8")
        assert FeatureFlagService(JsonFileFlagStorage(path)).reset() == KnowledgeFeatureFlags()

    def test_reset_removes_key(self, tmp_path: Path) -> None:
        path = tmp_path / "knowledge_flags.json"
        service = FeatureFlagService(JsonFileFlagStorage(path))
        service.set("knowledge_cache_enabled", True)
        service.reset()
        data = json.loads(path.read_text(encoding="utf-8"))
        assert FLAGS_STORAGE_KEY not in data
