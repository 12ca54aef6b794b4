"""Enrichment pipeline orchestration for the techno.dog knowledge layer."""

from technodog.pipeline.orchestrator import EnrichmentOrchestrator
from technodog.pipeline.progress_tracker import ProgressTracker

__all__ = [
    "EnrichmentOrchestrator",
    "ProgressTracker",
]
