"""Artist enrichment stages.

research -> extraction -> verification -> synthesis, sequenced by
:class:`technodog.pipeline.orchestrator.EnrichmentOrchestrator`.
"""

from technodog.services.enrichment.extraction import ExtractionService
from technodog.services.enrichment.research import ResearchService, generate_search_queries
from technodog.services.enrichment.synthesis import SynthesisService
from technodog.services.enrichment.verification import VerificationService

__all__ = [
    "ExtractionService",
    "ResearchService",
    "SynthesisService",
    "VerificationService",
    "generate_search_queries",
]
