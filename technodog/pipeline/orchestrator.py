"""Artist enrichment orchestrator.

Runs the four enrichment stages for one artist, strictly in order::

    research -> extraction -> verification -> synthesis

ARCHITECTURE NOTE (for junior developers):
    Every stage is an in-process service with a typed result
    (``ResearchStageResult``, ``ExtractionStageResult``, ...).  The
    orchestrator never talks to providers directly; it only sequences the
    stage services, records the run in ``artist_enrichment_runs`` and
    broadcasts progress through the injected :class:`ProgressTracker`.

    Each stage follows the same pattern:
        1. Broadcast progress for the stage
        2. Call the stage service
        3. Fold its counts into the run stats and its errors into the run
        4. Pause before the next stage

    Run status:
        success  every stage finished without reporting errors
        partial  every stage finished, at least one reported errors
        failed   a stage raised; the message is stored on the run

    ``enrich_artist`` never raises for a stage failure; only an unknown
    artist aborts the call.  The queue (``queue_artist`` /
    ``process_queue``) retries an artist whose run failed until it has
    been attempted three times.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any
from uuid import uuid4

import structlog

from technodog.interfaces.enrichment_store import IEnrichmentStore
from technodog.models.enrichment import (
    CanonicalArtist,
    EnrichmentDashboard,
    EnrichmentResult,
    EnrichmentRun,
    EnrichmentStage,
    EnrichmentStatusReport,
    QueuedArtist,
    QueueItem,
    QueueProcessResult,
    QueueStatus,
    RunStatus,
)
from technodog.pipeline.progress_tracker import ProgressTracker
from technodog.services.enrichment.extraction import ExtractionService
from technodog.services.enrichment.research import ResearchService
from technodog.services.enrichment.synthesis import PROFILE_DOCUMENT_TYPE, SynthesisService
from technodog.services.enrichment.verification import VerificationService
from technodog.services.feature_flags import FeatureFlagService
from technodog.utils.errors import NotFoundError
from technodog.utils.logging import get_logger, run_context
from technodog.utils.timestamps import utcnow

DEFAULT_OBJECTIVES: tuple[str, ...] = ("bio", "discography", "labels")
MAX_QUEUE_ATTEMPTS = 3

_RESEARCH_LIMIT = 10
_EXTRACTION_LIMIT = 5
_VERIFICATION_LIMIT = 20
_STATUS_RUNS = 10
_DASHBOARD_RUNS = 20
_TOP_SOURCES = 10


class EnrichmentOrchestrator:
    """Sequences the enrichment stages and manages the enrichment queue.

    Parameters
    ----------
    store:
        Enrichment persistence (runs, queue, dashboard counts).
    research, extraction, verification, synthesis:
        The four stage services.
    progress_tracker:
        Receives one update per stage.
    flags:
        Gates scheduled queue processing on ``knowledge_enrichment_enabled``.
    stage_pause_seconds, queue_pause_seconds:
        Fixed pauses between stages and between queue items.
    max_attempts:
        Attempts after which a failing queue item is marked ``failed``.
    sleep:
        Injectable sleep coroutine (tests pass a no-op).
    """

    def __init__(
        self,
        store: IEnrichmentStore,
        research: ResearchService,
        extraction: ExtractionService,
        verification: VerificationService,
        synthesis: SynthesisService,
        progress_tracker: ProgressTracker,
        flags: FeatureFlagService | None = None,
        stage_pause_seconds: float = 2.0,
        queue_pause_seconds: float = 5.0,
        max_attempts: int = MAX_QUEUE_ATTEMPTS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._research = research
        self._extraction = extraction
        self._verification = verification
        self._synthesis = synthesis
        self._progress_tracker = progress_tracker
        self._flags = flags
        self._stage_pause_seconds = stage_pause_seconds
        self._queue_pause_seconds = queue_pause_seconds
        self._max_attempts = max(1, max_attempts)
        self._sleep = sleep
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Single artist
    # ------------------------------------------------------------------

    async def enrich_artist(
        self,
        artist_id: str,
        objectives: list[str] | None = None,
        run_type: str = "full",
        on_progress: Callable | None = None,
    ) -> EnrichmentResult:
        """Run research, extraction, verification and synthesis for one artist.

        Parameters
        ----------
        artist_id:
            Canonical artist to enrich.
        objectives:
            Research objectives; defaults to bio, discography and labels.
        run_type:
            Free-form label stored on the run record.
        on_progress:
            Optional ``(run_id, stage, progress, message)`` listener.

        Raises
        ------
        NotFoundError
            If the artist does not exist.  Stage failures never raise.
        """
        artist = await self._store.get_artist(artist_id)
        if artist is None:
            raise NotFoundError(f"Artist not found: {artist_id}")

        objectives = list(objectives) if objectives else list(DEFAULT_OBJECTIVES)
        run = EnrichmentRun(run_id=str(uuid4()), artist_id=artist_id, run_type=run_type)
        await self._store.create_run(run)
        if on_progress is not None:
            self._progress_tracker.register_listener(run.run_id, on_progress)

        self._logger.info(
            "enrichment_started",
            run_id=run.run_id,
            artist_id=artist_id,
            artist=artist.canonical_name,
            objectives=objectives,
        )

        try:
            status, stats, errors = await self._run_stages(run, artist, objectives)
            return await self._finish_run(run, artist, status, stats, errors)
        finally:
            self._progress_tracker.clear(run.run_id)

    async def _run_stages(
        self, run: EnrichmentRun, artist: CanonicalArtist, objectives: list[str]
    ) -> tuple[RunStatus, dict[str, Any], list[str]]:
        """Run the four stages in order; a raising stage ends the run as FAILED."""
        artist_id = artist.artist_id
        stats: dict[str, Any] = {}
        errors: list[str] = []
        status = RunStatus.SUCCESS
        current = EnrichmentStage.RESEARCH

        with run_context(run.run_id, artist_id):
            try:
                await self._progress(
                    run.run_id, current, 0.0, f"Researching {artist.canonical_name}"
                )
                research = await self._research.research_artist(
                    artist_id,
                    artist.canonical_name,
                    artist.aliases,
                    objectives,
                    limit=_RESEARCH_LIMIT,
                )
                stats["research"] = research.model_dump(exclude={"errors"})
                errors.extend(research.errors)
                await self._sleep(self._stage_pause_seconds)

                current = EnrichmentStage.EXTRACTION
                await self._progress(run.run_id, current, 25.0, "Extracting claims")
                extraction = await self._extraction.extract_batch(
                    artist_id, limit=_EXTRACTION_LIMIT
                )
                stats["extraction"] = extraction.model_dump(exclude={"errors"})
                errors.extend(extraction.errors)
                await self._sleep(self._stage_pause_seconds)

                current = EnrichmentStage.VERIFICATION
                await self._progress(run.run_id, current, 50.0, "Verifying claims")
                verification = await self._verification.verify_artist(
                    artist_id, limit=_VERIFICATION_LIMIT
                )
                stats["verification"] = verification.model_dump(exclude={"errors"})
                errors.extend(verification.errors)
                await self._sleep(self._stage_pause_seconds)

                current = EnrichmentStage.SYNTHESIS
                await self._progress(run.run_id, current, 75.0, "Synthesising profile")
                synthesis = await self._synthesis.generate_rag_docs(
                    artist_id, include_partial=True, force_regenerate=True
                )
                stats["synthesis"] = synthesis.model_dump(exclude={"errors"})
                errors.extend(synthesis.errors)

                if errors:
                    status = RunStatus.PARTIAL
                await self._progress(run.run_id, current, 100.0, f"Enrichment {status.value}")
            except Exception as exc:
                status = RunStatus.FAILED
                message = f"{current.value} stage failed: {exc}"
                errors.append(message)
                self._logger.error(
                    "enrichment_stage_failed",
                    stage=current.value,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
        return status, stats, errors

    async def _finish_run(
        self,
        run: EnrichmentRun,
        artist: CanonicalArtist,
        status: RunStatus,
        stats: dict[str, Any],
        errors: list[str],
    ) -> EnrichmentResult:
        artist_id = artist.artist_id
        latest = await self._store.get_run(run.run_id)
        merged_stats = {**(latest.stats if latest else {}), **stats}
        await self._store.update_run(
            run.run_id,
            status=status,
            stats=merged_stats,
            errors=errors,
            finished_at=utcnow(),
        )
        self._logger.info(
            "enrichment_finished",
            run_id=run.run_id,
            artist_id=artist_id,
            status=status.value,
            errors=len(errors),
        )
        return EnrichmentResult(
            run_id=run.run_id,
            artist_id=artist_id,
            artist_name=artist.canonical_name,
            status=status,
            stats=merged_stats,
            errors=errors,
        )

    async def _progress(
        self, run_id: str, stage: EnrichmentStage, progress: float, message: str
    ) -> None:
        await self._progress_tracker.update(run_id, stage, progress, message)

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    async def queue_artist(
        self, artist_id: str, priority: int = 0, reason: str = "manual_request"
    ) -> QueuedArtist:
        """Add *artist_id* to the queue unless it already has a pending entry."""
        if await self._store.get_artist(artist_id) is None:
            raise NotFoundError(f"Artist not found: {artist_id}")

        item = QueueItem(
            queue_id=str(uuid4()), artist_id=artist_id, priority=priority, reason=reason
        )
        queued = await self._store.enqueue(item)
        self._logger.info(
            "artist_queued" if queued else "artist_already_queued",
            artist_id=artist_id,
            priority=priority,
        )
        return QueuedArtist(queued=queued, queue_id=item.queue_id if queued else None)

    async def process_queue(self, limit: int = 5, scheduled: bool = False) -> QueueProcessResult:
        """Enrich up to *limit* pending artists, highest priority first.

        Scheduled invocations are skipped while the
        ``knowledge_enrichment_enabled`` flag is off; manual ones always run.
        """
        if scheduled and (self._flags is None or not self._flags.is_enrichment_enabled()):
            self._logger.info("queue_processing_disabled")
            return QueueProcessResult(skipped=True)

        items = await self._store.list_pending(limit)
        completed = failed = requeued = 0
        results: list[dict[str, Any]] = []

        for index, item in enumerate(items):
            if index:
                await self._sleep(self._queue_pause_seconds)

            attempts = item.attempts + 1
            await self._store.update_queue_item(
                item.queue_id,
                QueueStatus.PROCESSING,
                attempts=attempts,
                last_attempt_at=utcnow(),
            )

            error: str | None = None
            entry: dict[str, Any] = {"queue_id": item.queue_id, "artist_id": item.artist_id}
            try:
                result = await self.enrich_artist(item.artist_id)
            except Exception as exc:
                error = str(exc)
            else:
                entry.update(result.model_dump(mode="json"))
                if result.status == RunStatus.FAILED:
                    error = "; ".join(result.errors) or "Enrichment failed"

            if error is None:
                await self._store.update_queue_item(item.queue_id, QueueStatus.COMPLETED)
                completed += 1
                entry["success"] = True
            else:
                exhausted = attempts >= self._max_attempts
                await self._store.update_queue_item(
                    item.queue_id,
                    QueueStatus.FAILED if exhausted else QueueStatus.PENDING,
                    last_error=error,
                )
                if exhausted:
                    failed += 1
                else:
                    requeued += 1
                entry.update(success=False, error=error)
                self._logger.warning(
                    "queue_item_failed",
                    queue_id=item.queue_id,
                    artist_id=item.artist_id,
                    attempts=attempts,
                    exhausted=exhausted,
                    error=error,
                )
            results.append(entry)

        self._logger.info(
            "queue_processed",
            processed=len(items),
            completed=completed,
            failed=failed,
            requeued=requeued,
        )
        return QueueProcessResult(
            processed=len(items),
            completed=completed,
            failed=failed,
            requeued=requeued,
            results=results,
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def status(self) -> EnrichmentStatusReport:
        return EnrichmentStatusReport(
            queue=await self._store.count_queue_by_status(),
            recent_runs=await self._store.list_recent_runs(_STATUS_RUNS),
        )

    async def dashboard(self) -> EnrichmentDashboard:
        """Aggregate counts for the enrichment admin view."""
        claims_by_status = {
            k: v for k, v in (await self._store.count_claims_by_status()).items() if v
        }
        total_artists = await self._store.count_artists()
        with_verified = await self._store.count_artists_with_verified_claims()

        return EnrichmentDashboard(
            queue=await self._store.count_queue_by_status(),
            claims={
                "total": sum(claims_by_status.values()),
                "by_status": claims_by_status,
            },
            documents={
                "raw": await self._store.count_raw_documents(),
                "enriched": await self._store.count_artist_documents(PROFILE_DOCUMENT_TYPE),
            },
            artists={
                "total": total_artists,
                "with_verified_claims": with_verified,
                "needing_enrichment": max(0, total_artists - with_verified),
            },
            top_sources=await self._store.top_source_domains(_TOP_SOURCES),
            recent_runs=await self._store.list_recent_runs(_DASHBOARD_RUNS),
        )

