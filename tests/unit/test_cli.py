"""Unit tests for the operator CLI (technodog.cli.commands)."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from technodog.cli import commands
from technodog.models.enrichment import (
    EnrichmentResult,
    EnrichmentStage,
    QueuedArtist,
    QueueProcessResult,
    RunStatus,
)
from technodog.models.flags import FLAGS_STORAGE_KEY
from technodog.models.knowledge import KnowledgeIngestionResult, KnowledgeSource, SourceType
from technodog.utils.errors import NotFoundError


@pytest.fixture
def flags_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "flags.json"
    monkeypatch.setenv("FEATURE_FLAGS_PATH", str(path))
    return path


def _exit_code(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc_info:
        commands.main(argv)
    return int(exc_info.value.code)


# ======================================================================
# Parser
# ======================================================================


class TestParser:
    def test_repeatable_options(self) -> None:
        args = commands._build_parser().parse_args(
            ["ingest", "--query", "Tresor", "--query", "Jeff Mills", "--no-entities"]
        )
        assert args.query == ["Tresor", "Jeff Mills"]
        assert args.no_entities is True
        assert args.no_embeddings is False

    def test_process_queue_defaults(self) -> None:
        args = commands._build_parser().parse_args(["process-queue"])
        assert args.limit == 5
        assert args.scheduled is False

    @pytest.mark.parametrize(("raw", "expected"), [("on", True), ("TRUE", True), ("0", False)])
    def test_parse_bool(self, raw: str, expected: bool) -> None:
        assert commands._parse_bool(raw) is expected

    def test_parse_bool_rejects_garbage(self) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            commands._parse_bool("maybe")

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _exit_code([]) == 1
        assert "usage:" in capsys.readouterr().out


# ======================================================================
# Flags
# ======================================================================


class TestFlagsCommand:
    def test_show_defaults(self, flags_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _exit_code(["flags"]) == 0
        out = capsys.readouterr().out
        assert "KNOWLEDGE_CACHE_ENABLED: OFF" in out
        assert "KNOWLEDGE_ZERO_HALLUCINATION_ENABLED: ON" in out

    def test_set_persists(self, flags_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _exit_code(["flags", "set", "KNOWLEDGE_CACHE_ENABLED", "on"]) == 0
        assert "KNOWLEDGE_CACHE_ENABLED: ON" in capsys.readouterr().out
        stored = json.loads(flags_file.read_text())
        assert stored[FLAGS_STORAGE_KEY]["KNOWLEDGE_CACHE_ENABLED"] is True

    def test_unknown_flag(self, flags_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _exit_code(["flags", "set", "NOT_A_FLAG", "on"]) == 1
        assert "unknown flag" in capsys.readouterr().err

    def test_admin_then_reset(self, flags_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _exit_code(["flags", "admin"]) == 0
        assert "KNOWLEDGE_ADMIN_DASHBOARD_ENABLED: ON" in capsys.readouterr().out
        assert _exit_code(["flags", "reset"]) == 0
        assert "KNOWLEDGE_ADMIN_DASHBOARD_ENABLED: OFF" in capsys.readouterr().out


# ======================================================================
# Async handlers (components mocked)
# ======================================================================


def _args(**values: object) -> argparse.Namespace:
    return argparse.Namespace(**values)


def _ingest_args(**overrides: object) -> argparse.Namespace:
    values: dict[str, object] = {
        "query": None,
        "file": None,
        "title": None,
        "url": None,
        "no_entities": False,
        "no_embeddings": False,
    }
    values.update(overrides)
    return argparse.Namespace(**values)


class TestHandlers:
    @pytest.mark.asyncio
    async def test_ingest_builds_sources(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        notes = tmp_path / "detroit.txt"
        notes.write_text("Detroit techno notes", encoding="utf-8")
        service = MagicMock()
        service.ingest = AsyncMock(
            return_value=KnowledgeIngestionResult(documents_created=2, entities_created=1)
        )

        code = await commands._handle_ingest(
            _ingest_args(query=["Tresor"], file=str(notes), no_embeddings=True),
            {"ingestion_service": service},
        )

        assert code == 0
        sources: list[KnowledgeSource] = service.ingest.call_args.args[0]
        assert [s.type for s in sources] == [SourceType.WIKIPEDIA, SourceType.MANUAL]
        assert sources[1].title == "detroit"
        assert service.ingest.call_args.kwargs == {
            "extract_entities": True,
            "generate_embeddings": False,
        }
        assert "Documents created:    2" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_ingest_without_sources(self, capsys: pytest.CaptureFixture[str]) -> None:
        code = await commands._handle_ingest(
            _ingest_args(),
            {"ingestion_service": MagicMock()},
        )
        assert code == 1
        assert "--query or --file" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_ingest_reports_errors(self) -> None:
        service = MagicMock()
        service.ingest = AsyncMock(
            return_value=KnowledgeIngestionResult(errors=["Failed to fetch Wikipedia: x"])
        )
        code = await commands._handle_ingest(
            _ingest_args(query=["x"]),
            {"ingestion_service": service},
        )
        assert code == 2

    @pytest.mark.asyncio
    async def test_enrich_prints_progress_and_result(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        async def _enrich(
            artist_id: str, objectives: object, on_progress: Any
        ) -> EnrichmentResult:
            on_progress("run-1", EnrichmentStage.RESEARCH, 0.0, "Researching Jeff Mills")
            return EnrichmentResult(
                run_id="run-1",
                artist_id=artist_id,
                artist_name="Jeff Mills",
                status=RunStatus.FAILED,
                errors=["research stage failed: boom"],
            )

        orchestrator = MagicMock()
        orchestrator.enrich_artist = AsyncMock(side_effect=_enrich)

        code = await commands._handle_enrich(
            _args(artist_id="artist-jeff-mills", objective=None), {"orchestrator": orchestrator}
        )

        out = capsys.readouterr().out
        assert code == 2
        assert "[  0.0%] research" in out
        assert '"status": "failed"' in out

    @pytest.mark.asyncio
    async def test_queue_duplicate(self, capsys: pytest.CaptureFixture[str]) -> None:
        orchestrator = MagicMock()
        orchestrator.queue_artist = AsyncMock(return_value=QueuedArtist(queued=False))
        code = await commands._handle_queue(
            _args(artist_id="artist-jeff-mills", priority=0, reason="manual_request"),
            {"orchestrator": orchestrator},
        )
        assert code == 0
        assert "already waiting" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_process_queue_skipped(self, capsys: pytest.CaptureFixture[str]) -> None:
        orchestrator = MagicMock()
        orchestrator.process_queue = AsyncMock(return_value=QueueProcessResult(skipped=True))
        code = await commands._handle_process_queue(
            _args(limit=5, scheduled=True), {"orchestrator": orchestrator}
        )
        assert code == 0
        assert "disabled by feature flag" in capsys.readouterr().out
        orchestrator.process_queue.assert_awaited_once_with(limit=5, scheduled=True)

    @pytest.mark.asyncio
    async def test_cache_cleanup_wording(self, capsys: pytest.CaptureFixture[str]) -> None:
        cache = MagicMock()
        cache.clear_expired_cache = AsyncMock(return_value=1)
        await commands._handle_cache_cleanup(_args(), {"knowledge_cache": cache})
        assert "Removed 1 expired cache entry" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_run_turns_domain_errors_into_exit_code(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        orchestrator = MagicMock()
        orchestrator.queue_artist = AsyncMock(side_effect=NotFoundError("Artist not found: x"))
        cache = MagicMock()
        cache.tasks.drain = AsyncMock()
        http_client = MagicMock()
        http_client.aclose = AsyncMock()
        components = {
            "orchestrator": orchestrator,
            "knowledge_cache": cache,
            "http_client": http_client,
        }

        import technodog.main as app_main

        monkeypatch.setattr(app_main, "_build_all", lambda _settings: components)
        monkeypatch.setattr(app_main, "initialize_stores", AsyncMock())

        code = await commands._run(
            _args(command="queue", artist_id="x", priority=0, reason="manual_request"),
            MagicMock(),
        )

        assert code == 1
        assert "Artist not found: x" in capsys.readouterr().err
        http_client.aclose.assert_awaited_once()
