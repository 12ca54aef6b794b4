"""Zero-hallucination fact validator.

A fact may only be shown to readers when it carries full provenance: a
source URL, an evidence snippet, a fetch timestamp, and a confidence of at
least 0.3.  Anything less is replaced by an :class:`UnverifiedFact`
placeholder.  When several sources state the same predicate, agreeing
values are promoted to ``verified`` and disagreeing values are surfaced
as a :class:`ConflictingFact` instead of picking a winner silently.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, Literal
from urllib.parse import urlparse

from technodog.models.facts import (
    ConflictingFact,
    FactCandidate,
    FactResult,
    FactStatus,
    UnverifiedFact,
    UnverifiedReason,
    ValidFact,
)
from technodog.utils.timestamps import from_db_time, utcnow

MIN_CONFIDENCE_THRESHOLD = 0.3


def _source_name(url: str) -> str:
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        hostname = None
    if not hostname:
        return "Unknown Source"
    return hostname[4:] if hostname.startswith("www.") else hostname


def _unverified(
    predicate: str | None,
    reason: UnverifiedReason,
    display_text: Literal["Unknown", "Unverified"] = "Unverified",
) -> UnverifiedFact:
    return UnverifiedFact(
        predicate=predicate or "unknown", reason=reason, display_text=display_text
    )


def validate_fact(fact: FactCandidate | Mapping[str, Any]) -> FactResult:
    """Check one fact's provenance.

    Checks run in order (source, evidence, timestamp, confidence) and the
    first failure decides the reason.
    """
    if not isinstance(fact, FactCandidate):
        fact = FactCandidate.model_validate(fact)

    if not fact.source_url:
        return _unverified(fact.predicate, UnverifiedReason.NO_SOURCE, "Unknown")
    if not fact.evidence_snippet:
        return _unverified(fact.predicate, UnverifiedReason.NO_EVIDENCE)
    if not fact.fetched_at:
        return _unverified(fact.predicate, UnverifiedReason.MISSING_DATA)
    if (fact.confidence or 0.0) < MIN_CONFIDENCE_THRESHOLD:
        return _unverified(fact.predicate, UnverifiedReason.LOW_CONFIDENCE)

    return ValidFact(
        predicate=fact.predicate or "unknown",
        value=fact.value,
        source_url=fact.source_url,
        source_name=fact.source_name or _source_name(fact.source_url),
        evidence_snippet=fact.evidence_snippet,
        fetched_at=fact.fetched_at,
        confidence=fact.confidence if fact.confidence is not None else 0.5,
        status=fact.status or FactStatus.UNVERIFIED,
    )


def _value_key(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, default=str)


def validate_facts(facts: Iterable[FactCandidate | Mapping[str, Any]]) -> list[FactResult]:
    """Validate facts grouped by predicate, resolving agreement and conflict.

    Returns one result per predicate, in order of first appearance.
    """
    by_predicate: dict[str, list[FactCandidate]] = {}
    for raw in facts:
        fact = raw if isinstance(raw, FactCandidate) else FactCandidate.model_validate(raw)
        by_predicate.setdefault(fact.predicate or "unknown", []).append(fact)

    results: list[FactResult] = []
    for predicate, group in by_predicate.items():
        valid = [r for r in (validate_fact(f) for f in group) if isinstance(r, ValidFact)]

        if not valid:
            results.append(_unverified(predicate, UnverifiedReason.NO_EVIDENCE, "Unknown"))
        elif len(valid) == 1:
            results.append(valid[0])
        elif len({_value_key(f.value) for f in valid}) > 1:
            results.append(
                ConflictingFact(
                    predicate=predicate,
                    values=valid,
                    display_text=f"Conflicting information from {len(valid)} sources",
                )
            )
        else:
            best = max(valid, key=lambda f: f.confidence)
            results.append(best.model_copy(update={"status": FactStatus.VERIFIED}))
    return results


def is_valid_fact(result: FactResult) -> bool:
    return isinstance(result, ValidFact)


def format_confidence(confidence: float) -> str:
    """``0.856`` -> ``"86%"``."""
    return f"{int(confidence * 100 + 0.5)}%"


def confidence_label(confidence: float) -> Literal["high", "medium", "low"]:
    if confidence >= 0.8:
        return "high"
    if confidence >= 0.5:
        return "medium"
    return "low"


def format_fetched_time(fetched_at: str, now: datetime | None = None) -> str:
    """Describe an ISO timestamp relative to *now* ("today", "3 weeks ago")."""
    try:
        fetched = from_db_time(fetched_at)
    except ValueError:
        return "unknown"
    if fetched is None:
        return "unknown"
    days = ((now or utcnow()) - fetched).days

    if days <= 0:
        return "today"
    if days == 1:
        return "yesterday"
    if days < 7:
        return f"{days} days ago"
    if days < 30:
        return f"{days // 7} weeks ago"
    if days < 365:
        return f"{days // 30} months ago"
    return f"{days // 365} years ago"
