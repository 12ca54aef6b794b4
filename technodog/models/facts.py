"""Fact provenance models used by the zero-hallucination validator.

A fact shown to readers either carries full provenance (:class:`ValidFact`),
is replaced by a placeholder (:class:`UnverifiedFact`), or is reported as a
conflict between sources (:class:`ConflictingFact`).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class FactStatus(str, Enum):  # noqa: UP042
    VERIFIED = "verified"
    UNVERIFIED = "unverified"
    CONFLICT = "conflict"


class UnverifiedReason(str, Enum):  # noqa: UP042
    NO_SOURCE = "no_source"
    NO_EVIDENCE = "no_evidence"
    LOW_CONFIDENCE = "low_confidence"
    MISSING_DATA = "missing_data"


class FactCandidate(BaseModel):
    """A fact as it arrives from storage, every field optional."""

    model_config = ConfigDict(frozen=True)

    predicate: str | None = None
    value: Any = None
    source_url: str | None = None
    source_name: str | None = None
    evidence_snippet: str | None = None
    fetched_at: str | None = None
    confidence: float | None = None
    status: FactStatus | None = None


class ValidFact(BaseModel):
    kind: Literal["valid"] = "valid"
    predicate: str
    value: Any
    source_url: str
    source_name: str
    evidence_snippet: str
    fetched_at: str
    confidence: float
    status: FactStatus = FactStatus.UNVERIFIED


class UnverifiedFact(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["unverified"] = "unverified"
    predicate: str
    value: None = None
    reason: UnverifiedReason
    display_text: Literal["Unknown", "Unverified"]


class ConflictingFact(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["conflict"] = "conflict"
    predicate: str
    status: FactStatus = FactStatus.CONFLICT
    values: list[ValidFact] = Field(default_factory=list)
    display_text: str


FactResult = Union[ValidFact, UnverifiedFact, ConflictingFact]
