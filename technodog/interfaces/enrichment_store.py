"""Abstract base class for artist enrichment persistence.

One store covers every table the enrichment pipeline touches: canonical
artists and aliases, the source-domain registry, raw documents, claims and
their source links, synthesised artist documents, enrichment runs and the
enrichment queue.  Stage services depend on this contract only, so tests
run the whole pipeline against a temporary SQLite file.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from technodog.models.enrichment import (
    ArtistDocument,
    CanonicalArtist,
    Claim,
    ClaimSource,
    EnrichmentRun,
    QueueItem,
    QueueStatus,
    RawDocument,
    RunStatus,
    SourceDomain,
    VerificationStatus,
)


class IEnrichmentStore(ABC):
    """Contract for enrichment persistence.

    Methods raise :class:`~technodog.utils.errors.StorageError` on failure;
    the stage services decide whether that becomes a per-item error string.
    """

    async def initialize(self) -> None:  # noqa: B027
        """Create backing tables if needed.  Default is a no-op."""

    # -- Artists ---------------------------------------------------------

    @abstractmethod
    async def get_artist(self, artist_id: str) -> CanonicalArtist | None:
        """Return the canonical artist with its aliases, or ``None``."""

    @abstractmethod
    async def upsert_artist(self, artist: CanonicalArtist) -> None:
        """Insert or replace a canonical artist and its aliases."""

    @abstractmethod
    async def list_artists_with_verified_claims(self, limit: int) -> list[str]:
        """Return ids of artists that have at least one verified claim."""

    @abstractmethod
    async def count_artists(self) -> int: ...

    @abstractmethod
    async def count_artists_with_verified_claims(self) -> int: ...

    @abstractmethod
    async def count_artists_with_documents(self, document_type: str) -> int: ...

    # -- Source domains --------------------------------------------------

    @abstractmethod
    async def get_domain(self, domain: str) -> SourceDomain | None:
        """Return registry metadata for *domain*, or ``None`` if unknown."""

    @abstractmethod
    async def upsert_domain(self, domain: SourceDomain) -> None: ...

    @abstractmethod
    async def top_source_domains(self, limit: int) -> list[dict[str, Any]]:
        """Return ``[{"domain", "count"}]`` for the most-scraped domains."""

    # -- Raw documents ---------------------------------------------------

    @abstractmethod
    async def find_raw_document(self, url: str, content_hash: str) -> str | None:
        """Return the id of a raw document with this url and content hash."""

    @abstractmethod
    async def insert_raw_document(self, document: RawDocument) -> None: ...

    @abstractmethod
    async def get_raw_document(self, raw_doc_id: str) -> RawDocument | None: ...

    @abstractmethod
    async def list_unprocessed_raw_documents(
        self, artist_id: str, limit: int
    ) -> list[RawDocument]:
        """Newest raw documents for *artist_id* that no claim source references."""

    @abstractmethod
    async def count_raw_documents(self, artist_id: str | None = None) -> int: ...

    # -- Claims ----------------------------------------------------------

    @abstractmethod
    async def insert_claim(self, claim: Claim) -> None: ...

    @abstractmethod
    async def insert_claim_source(self, source: ClaimSource) -> None: ...

    @abstractmethod
    async def get_claim(self, claim_id: str) -> Claim | None: ...

    @abstractmethod
    async def list_claims(
        self,
        artist_id: str,
        statuses: Sequence[VerificationStatus] | None = None,
        limit: int = 100,
        order_by_confidence: bool = False,
    ) -> list[Claim]:
        """List an artist's claims, optionally filtered by status.

        Ordered by confidence (descending) when *order_by_confidence*,
        otherwise by creation time (oldest first).
        """

    @abstractmethod
    async def list_claim_sources(self, claim_id: str) -> list[ClaimSource]: ...

    @abstractmethod
    async def update_claim_verification(
        self,
        claim_id: str,
        status: VerificationStatus,
        confidence: float,
        verification_model: str | None,
        verified_at: datetime,
    ) -> None: ...

    @abstractmethod
    async def mark_claim_disputed(self, claim_id: str, contradicts_claim_id: str) -> None: ...

    @abstractmethod
    async def count_claims_by_status(self, artist_id: str | None = None) -> dict[str, int]: ...

    @abstractmethod
    async def count_claims_by_type(self, artist_id: str) -> dict[str, int]: ...

    # -- Artist documents ------------------------------------------------

    @abstractmethod
    async def get_latest_artist_document(
        self, artist_id: str, document_type: str
    ) -> ArtistDocument | None: ...

    @abstractmethod
    async def delete_artist_documents(self, artist_id: str, source_system: str) -> int: ...

    @abstractmethod
    async def insert_artist_document(self, document: ArtistDocument) -> None: ...

    @abstractmethod
    async def count_artist_documents(self, document_type: str | None = None) -> int: ...

    # -- Runs ------------------------------------------------------------

    @abstractmethod
    async def create_run(self, run: EnrichmentRun) -> None: ...

    @abstractmethod
    async def update_run(
        self,
        run_id: str,
        status: RunStatus | None = None,
        stats: dict[str, Any] | None = None,
        errors: list[str] | None = None,
        finished_at: datetime | None = None,
        models_used: list[str] | None = None,
    ) -> None:
        """Update the given fields of a run; ``None`` leaves a field unchanged."""

    @abstractmethod
    async def get_run(self, run_id: str) -> EnrichmentRun | None: ...

    @abstractmethod
    async def get_latest_run(self, artist_id: str) -> EnrichmentRun | None: ...

    @abstractmethod
    async def list_recent_runs(self, limit: int) -> list[dict[str, Any]]:
        """Most recent runs, newest first, each with an ``artist_name`` key."""

    # -- Queue -----------------------------------------------------------

    @abstractmethod
    async def enqueue(self, item: QueueItem) -> bool:
        """Insert a pending item; return ``False`` if the artist is already pending."""

    @abstractmethod
    async def list_pending(self, limit: int) -> list[QueueItem]:
        """Pending items ordered by priority (desc) then age (oldest first)."""

    @abstractmethod
    async def update_queue_item(
        self,
        queue_id: str,
        status: QueueStatus,
        attempts: int | None = None,
        last_attempt_at: datetime | None = None,
        last_error: str | None = None,
    ) -> None: ...

    @abstractmethod
    async def get_queue_item(self, queue_id: str) -> QueueItem | None: ...

    @abstractmethod
    async def count_queue_by_status(self) -> dict[str, int]: ...
