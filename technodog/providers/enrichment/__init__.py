"""Artist enrichment persistence."""

from technodog.providers.enrichment.sqlite_enrichment_store import SQLiteEnrichmentStore

__all__ = ["SQLiteEnrichmentStore"]
