"""Knowledge ingestion models.

Sources go in, documents and entities come out.  Result models serialise
with camelCase aliases (``documentsCreated`` ...) because that is the wire
format of the ``knowledge-ingest`` entry point; Python code uses the
snake_case names.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class SourceType(str, Enum):  # noqa: UP042
    """Where a knowledge source comes from."""

    WIKIPEDIA = "wikipedia"
    DISCOGS = "discogs"
    RESIDENT_ADVISOR = "resident_advisor"
    MANUAL = "manual"


class EntityType(str, Enum):  # noqa: UP042
    """Fixed entity taxonomy the extraction prompt is constrained to."""

    ARTIST = "artist"
    LABEL = "label"
    RECORD_LABEL = "record_label"
    CLUB = "club"
    VENUE = "venue"
    FESTIVAL = "festival"
    PROMOTER = "promoter"
    COLLECTIVE = "collective"
    CREW = "crew"
    AGENCY = "agency"
    CITY = "city"
    SCENE = "scene"
    COUNTRY = "country"
    REGION = "region"
    RELEASE = "release"
    TRACK = "track"
    ALBUM = "album"
    EP = "ep"
    EVENT = "event"
    PARTY = "party"
    RAVE = "rave"
    RADIO_SHOW = "radio_show"
    PODCAST = "podcast"
    MIX = "mix"
    DOCUMENTARY = "documentary"
    GEAR = "gear"
    SYNTHESIZER = "synthesizer"
    DRUM_MACHINE = "drum_machine"
    GENRE = "genre"
    SUBGENRE = "subgenre"
    MOVEMENT = "movement"
    ERA = "era"
    OTHER = "other"


class KnowledgeSource(BaseModel):
    """Descriptor of one thing to ingest.

    For ``wikipedia`` sources ``query`` is looked up; for every other type
    the caller supplies ``content`` and ``title`` directly.
    """

    model_config = ConfigDict(frozen=True)

    type: SourceType
    query: str | None = None
    url: str | None = None
    content: str | None = None
    title: str | None = None


class KnowledgeEntity(BaseModel):
    """An entity extracted from source text."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    type: EntityType = EntityType.OTHER
    description: str | None = None
    aliases: list[str] = Field(default_factory=list)
    city: str | None = None
    country: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            normalized = value.strip().lower().replace(" ", "_")
            if normalized in EntityType._value2member_map_:
                return normalized
            return EntityType.OTHER
        return value

    @field_validator("aliases", mode="before")
    @classmethod
    def _coerce_aliases(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class EntityRelationship(BaseModel):
    """A directed connection between two named entities."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source: str = Field(alias="from")
    target: str = Field(alias="to")
    type: str


class ExtractionResult(BaseModel):
    """Structured knowledge pulled from one article."""

    model_config = ConfigDict(frozen=True)

    entities: list[KnowledgeEntity] = Field(default_factory=list)
    facts: list[str] = Field(default_factory=list)
    relationships: list[EntityRelationship] = Field(default_factory=list)


class WikipediaArticle(BaseModel):
    """Plain-text extract of a Wikipedia page."""

    model_config = ConfigDict(frozen=True)

    title: str
    content: str
    url: str


class KnowledgeDocument(BaseModel):
    """One chunk row of the shared ``documents`` table."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    title: str
    content: str
    source: str
    embedding: list[float] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    chunk_index: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class KnowledgeIngestionResult(_CamelModel):
    """Counts for one ``ingest`` call plus per-source error strings.

    There is no single pass/fail verdict: partial failures leave some
    chunks stored and are reported through ``errors``.
    """

    documents_created: int = 0
    entities_created: int = 0
    embeddings_generated: int = 0
    errors: list[str] = Field(default_factory=list)


class KnowledgeStats(_CamelModel):
    """Row counts of the knowledge tables."""

    documents: int = 0
    entities: int = 0
    documents_with_embeddings: int = 0


class SuggestedTopic(BaseModel):
    """A curated topic that has not been ingested yet."""

    model_config = ConfigDict(frozen=True)

    query: str
    type: SourceType = SourceType.WIKIPEDIA


class TopicSuggestions(_CamelModel):
    """Result of ``suggest-topics``."""

    topics: list[SuggestedTopic] = Field(default_factory=list)
    already_ingested: int = 0
