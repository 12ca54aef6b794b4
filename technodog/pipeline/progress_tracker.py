"""Enrichment progress tracking with callback-based listener notification.

Tracks the current stage and progress percentage of each enrichment run
and broadcasts updates to listener callbacks registered for that run.

# ─── HOW PROGRESS TRACKING WORKS (Junior Developer Guide) ─────────────
#
# Observer pattern:
#
#   EnrichmentOrchestrator ──update()──→ ProgressTracker ──callback()──→ listener
#
#   1. The orchestrator calls tracker.update(run_id, stage, progress, msg)
#   2. ProgressTracker stores the snapshot and calls the run's listeners
#   3. A listener (CLI printer, log sink, test probe) reacts to the update
#
#   - Listeners are keyed by run_id, so concurrent runs never see each
#     other's updates
#   - A listener that raises is logged and skipped; the run carries on
#   - Both sync and async callbacks are supported
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from technodog.models.enrichment import EnrichmentStage
from technodog.utils.logging import get_logger


@dataclass
class _RunStatus:
    """Internal, never-serialised snapshot of one run's progress."""

    stage: EnrichmentStage = EnrichmentStage.RESEARCH
    progress: float = 0.0
    message: str = ""


class ProgressTracker:
    """Tracks and broadcasts enrichment progress via callbacks."""

    def __init__(self) -> None:
        self._statuses: dict[str, _RunStatus] = {}
        self._listeners: dict[str, list[Callable]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def update(
        self,
        run_id: str,
        stage: EnrichmentStage,
        progress: float,
        message: str,
    ) -> None:
        """Record a progress update and notify the run's listeners.

        Parameters
        ----------
        run_id:
            The enrichment run to update.
        stage:
            The stage currently executing.
        progress:
            Completion percentage (0.0 to 100.0); clamped.
        message:
            Human-readable status message.
        """
        progress = max(0.0, min(100.0, progress))
        self._statuses[run_id] = _RunStatus(stage=stage, progress=progress, message=message)

        self._logger.debug(
            "progress_update",
            run_id=run_id,
            stage=stage.value,
            progress=round(progress, 1),
            message=message,
        )

        for callback in list(self._listeners.get(run_id, [])):
            try:
                result = callback(run_id, stage, progress, message)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    run_id=run_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )

    def register_listener(self, run_id: str, callback: Callable) -> None:
        """Register ``callback(run_id, stage, progress, message)`` for *run_id*."""
        listeners = self._listeners.setdefault(run_id, [])
        if callback not in listeners:
            listeners.append(callback)

    def unregister_listener(self, run_id: str, callback: Callable) -> None:
        listeners = self._listeners.get(run_id, [])
        if callback in listeners:
            listeners.remove(callback)
        if not listeners:
            self._listeners.pop(run_id, None)

    def clear(self, run_id: str) -> None:
        """Forget *run_id*: its last status and any listeners still attached."""
        self._statuses.pop(run_id, None)
        self._listeners.pop(run_id, None)

    def get_status(self, run_id: str) -> dict:
        """Return ``{"stage", "progress", "message"}`` for *run_id*.

        Only runs still in flight are tracked; unknown or cleared runs
        report the first stage at 0 %.
        """
        status = self._statuses.get(run_id) or _RunStatus()
        return {
            "stage": status.stage.value,
            "progress": status.progress,
            "message": status.message,
        }
