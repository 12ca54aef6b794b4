"""Verification stage: LLM fact-checking and contradiction detection.

Junior Developer Guide
----------------------
A claim's status is only ever changed by an LLM verdict, and only in the
forward direction allowed by :func:`~technodog.models.enrichment.can_transition`::

    unverified -> partially_verified | disputed | verified
    partially_verified -> disputed | verified
    disputed -> verified

A verdict that would move a claim backwards (for example ``verified`` ->
``unverified``) is logged as ``claim_transition_rejected`` and dropped; the
stored claim is left untouched.  A verdict that repeats the current status
refreshes the confidence score and verification timestamp.

The model is given a baseline of "known facts": the artist's top verified
claims or, before any exist, the canonical profile row.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from pydantic import ValidationError

from technodog.interfaces.enrichment_store import IEnrichmentStore
from technodog.interfaces.llm_provider import ILLMProvider
from technodog.models.enrichment import (
    Claim,
    ClaimVerdict,
    ClaimVerification,
    Contradiction,
    VerificationStageResult,
    VerificationStatus,
    can_transition,
)
from technodog.utils.errors import (
    ConfigurationError,
    NotFoundError,
    TechnoDogError,
    VerificationError,
)
from technodog.utils.llm_json import parse_json_object
from technodog.utils.timestamps import utcnow

logger = structlog.get_logger(logger_name=__name__)

_KNOWN_FACTS_LIMIT = 20
_CONTRADICTION_CLAIMS_LIMIT = 50

_SYSTEM_PROMPT = "You are a fact-checking assistant. Always respond with valid JSON."

_VERIFICATION_PROMPT = """You are a meticulous fact-checker specializing in electronic music and techno artists.

Your task is to verify claims about an artist by:
1. Checking if the claim is supported by the provided sources
2. Assessing source quality and reliability
3. Detecting any contradictions with known facts
4. Assigning a verification status and confidence score

VERIFICATION RULES:
- A claim is "verified" if supported by 2+ independent sources OR 1 high-authority primary source
- A claim is "partially_verified" if supported by 1 source of moderate quality
- A claim is "disputed" if there are contradicting claims or sources
- A claim remains "unverified" if there's insufficient evidence

KNOWN FACTS ABOUT THIS ARTIST (treat as baseline truth):
{known_facts}

CLAIM TO VERIFY:
{claim}

SUPPORTING SOURCES:
{sources}

Return JSON:
{{
  "verification_status": "verified" | "partially_verified" | "disputed" | "unverified",
  "confidence_score": 0.0-1.0,
  "reasoning": "Brief explanation of verification decision",
  "contradictions": ["List any contradicting claims or facts"],
  "source_quality_assessment": "Assessment of source reliability"
}}"""

_CONTRADICTION_PROMPT = """You are analyzing a set of claims about an artist to detect contradictions.

CLAIMS:
{claims}

For each potential contradiction, identify:
1. The conflicting claims (by their IDs)
2. The nature of the conflict
3. Which claim (if any) is more likely correct based on source quality

Return JSON:
{{
  "contradictions": [
    {{
      "claim_a_id": "id",
      "claim_b_id": "id",
      "conflict_type": "date" | "fact" | "attribution" | "value",
      "description": "What specifically contradicts",
      "recommended_resolution": "Which claim to trust and why"
    }}
  ]
}}"""


class VerificationService:
    """Judges claims with an LLM and records forward-only status changes.

    Parameters
    ----------
    store:
        Enrichment persistence.
    llm:
        Fact-checking model; ``None`` makes every call raise
        :class:`ConfigurationError`.
    pause_seconds:
        Delay between claims in batch verification.
    sleep:
        Injectable sleep coroutine.
    """

    def __init__(
        self,
        store: IEnrichmentStore,
        llm: ILLMProvider | None,
        pause_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._llm = llm
        self._pause_seconds = pause_seconds
        self._sleep = sleep

    def _require_llm(self) -> ILLMProvider:
        if self._llm is None:
            raise ConfigurationError(
                "No LLM provider configured for claim verification "
                "(set OPENAI_API_KEY or ANTHROPIC_API_KEY)"
            )
        return self._llm

    async def _ask(self, prompt: str) -> dict[str, Any]:
        llm = self._require_llm()
        try:
            response = await llm.complete(
                system_prompt=_SYSTEM_PROMPT,
                user_prompt=prompt,
                temperature=0.3,
                json_output=True,
            )
            return parse_json_object(response)
        except (json.JSONDecodeError, ValueError) as exc:
            raise VerificationError(
                f"Failed to extract JSON from LLM response: {exc}",
                provider_name=llm.get_provider_name(),
            ) from exc
        except ConfigurationError:
            raise
        except TechnoDogError as exc:
            raise VerificationError(exc.message, provider_name=exc.provider_name) from exc

    # ------------------------------------------------------------------
    # Prompt context
    # ------------------------------------------------------------------

    async def _known_facts(self, artist_id: str) -> str:
        verified = await self._store.list_claims(
            artist_id,
            statuses=[VerificationStatus.VERIFIED],
            limit=_KNOWN_FACTS_LIMIT,
            order_by_confidence=True,
        )
        if verified:
            return "\n".join(
                f"- [{c.claim_type.value}] {c.claim_text} (confidence: {c.confidence_score})"
                for c in verified
            )

        artist = await self._store.get_artist(artist_id)
        if artist is None:
            return "No verified facts available yet."
        return (
            f"Name: {artist.canonical_name}\n"
            f"Country: {artist.country or 'Unknown'}\n"
            f"City: {artist.city or 'Unknown'}\n"
            f"Genre: {artist.primary_genre or 'Techno'}\n"
            f"Active Years: {artist.active_years or 'Unknown'}"
        )

    async def _claim_sources(self, claim_id: str) -> str:
        sources = await self._store.list_claim_sources(claim_id)
        if not sources:
            return "No sources available."
        return "\n\n".join(
            f"Source: {s.domain} (quality: {s.source_quality_score})\n"
            f"URL: {s.url}\n"
            f'Evidence: "{s.quote_snippet or ""}"'
            for s in sources
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def verify_claim(self, claim_id: str) -> ClaimVerification:
        """Ask the LLM for a verdict on one claim and apply it if allowed.

        Raises
        ------
        ConfigurationError
            If no LLM provider is configured.
        NotFoundError
            If the claim does not exist.
        VerificationError
            If the LLM call fails or its answer cannot be parsed.
        """
        llm = self._require_llm()
        claim = await self._store.get_claim(claim_id)
        if claim is None:
            raise NotFoundError(f"Claim not found: {claim_id}")

        prompt = _VERIFICATION_PROMPT.format(
            known_facts=await self._known_facts(claim.artist_id),
            claim=f"[{claim.claim_type.value}] {claim.claim_text}",
            sources=await self._claim_sources(claim_id),
        )
        parsed = await self._ask(prompt)
        try:
            verdict = ClaimVerdict.model_validate(parsed)
        except ValidationError as exc:
            raise VerificationError(f"Invalid verdict: {exc}") from exc

        applied = await self._apply_verdict(claim, verdict, llm.get_model_name())
        if verdict.verification_status == VerificationStatus.DISPUTED and verdict.contradictions:
            logger.info(
                "claim_disputed",
                claim_id=claim_id,
                contradictions=verdict.contradictions,
            )
        return ClaimVerification(claim_id=claim_id, verdict=verdict, applied=applied)

    async def _apply_verdict(self, claim: Claim, verdict: ClaimVerdict, model: str) -> bool:
        current = claim.verification_status
        target = verdict.verification_status
        if target != current and not can_transition(current, target):
            logger.warning(
                "claim_transition_rejected",
                claim_id=claim.claim_id,
                current=current.value,
                proposed=target.value,
            )
            return False
        await self._store.update_claim_verification(
            claim.claim_id,
            status=target,
            confidence=verdict.confidence_score,
            verification_model=model,
            verified_at=utcnow(),
        )
        logger.debug(
            "claim_verified",
            claim_id=claim.claim_id,
            status=target.value,
            confidence=verdict.confidence_score,
        )
        return True

    async def verify_batch(self, artist_id: str, limit: int = 10) -> VerificationStageResult:
        """Verify the artist's oldest *limit* unverified claims.

        A claim that fails verification counts as ``unverified`` and its
        error is reported.
        """
        results, errors = await self._verify_unverified(artist_id, limit)
        counts = _count_statuses([r.verdict for r in results])
        return VerificationStageResult(
            claims_verified=len(results),
            errors=errors,
            **counts,
        )

    async def _verify_unverified(
        self, artist_id: str, limit: int
    ) -> tuple[list[ClaimVerification], list[str]]:
        self._require_llm()
        claims = await self._store.list_claims(
            artist_id, statuses=[VerificationStatus.UNVERIFIED], limit=limit
        )
        results: list[ClaimVerification] = []
        errors: list[str] = []
        for index, claim in enumerate(claims):
            if index:
                await self._sleep(self._pause_seconds)
            try:
                results.append(await self.verify_claim(claim.claim_id))
            except ConfigurationError:
                raise
            except TechnoDogError as exc:
                logger.warning("claim_verification_failed", claim_id=claim.claim_id, error=str(exc))
                errors.append(f"Verify error {claim.claim_id}: {exc.message}")
                results.append(
                    ClaimVerification(
                        claim_id=claim.claim_id,
                        verdict=ClaimVerdict(confidence_score=0.0, reasoning=f"Error: {exc.message}"),
                        error=exc.message,
                    )
                )
        return results, errors

    async def detect_contradictions(self, artist_id: str) -> list[Contradiction]:
        """Find conflicting claims and mark the first of each pair disputed."""
        self._require_llm()
        claims = await self._store.list_claims(artist_id, limit=_CONTRADICTION_CLAIMS_LIMIT)
        if len(claims) < 2:
            return []

        by_id = {c.claim_id: c for c in claims}
        claims_text = "\n\n".join(
            f"ID: {c.claim_id}\nType: {c.claim_type.value}\nClaim: {c.claim_text}\n"
            f"Structured: {json.dumps(c.value_structured or {})}"
            for c in claims
        )
        parsed = await self._ask(_CONTRADICTION_PROMPT.format(claims=claims_text))

        found: list[Contradiction] = []
        for item in parsed.get("contradictions") or []:
            try:
                contradiction = Contradiction.model_validate(item)
            except ValidationError:
                logger.debug("contradiction_dropped", item=item)
                continue
            claim_a = by_id.get(contradiction.claim_a_id)
            if claim_a is None or contradiction.claim_b_id not in by_id:
                logger.debug("contradiction_unknown_claim", item=item)
                continue
            found.append(contradiction)

            if claim_a.verification_status == VerificationStatus.DISPUTED or can_transition(
                claim_a.verification_status, VerificationStatus.DISPUTED
            ):
                await self._store.mark_claim_disputed(claim_a.claim_id, contradiction.claim_b_id)
            else:
                logger.warning(
                    "claim_transition_rejected",
                    claim_id=claim_a.claim_id,
                    current=claim_a.verification_status.value,
                    proposed=VerificationStatus.DISPUTED.value,
                )

        logger.info("contradictions_detected", artist_id=artist_id, count=len(found))
        return found

    async def verify_artist(self, artist_id: str, limit: int = 20) -> VerificationStageResult:
        """Full verification pass: verify, detect contradictions, update the run."""
        results, errors = await self._verify_unverified(artist_id, limit)
        verdicts = [r.verdict for r in results if r.error is None]

        contradictions: list[Contradiction] = []
        try:
            contradictions = await self.detect_contradictions(artist_id)
        except ConfigurationError:
            raise
        except TechnoDogError as exc:
            logger.warning("contradiction_detection_failed", artist_id=artist_id, error=str(exc))
            errors.append(f"Contradiction error: {exc.message}")

        counts = _count_statuses(verdicts)
        latest = await self._store.get_latest_run(artist_id)
        if latest is not None:
            await self._store.update_run(
                latest.run_id,
                stats={
                    **latest.stats,
                    "verified_claims": counts["verified"],
                    "disputed_claims": counts["disputed"],
                    "contradictions_found": len(contradictions),
                },
                models_used=sorted({*latest.models_used, self._require_llm().get_model_name()}),
            )

        result = VerificationStageResult(
            claims_verified=len(verdicts),
            contradictions_found=len(contradictions),
            errors=errors,
            **counts,
        )
        logger.info(
            "verification_stage_complete",
            artist_id=artist_id,
            claims=result.claims_verified,
            verified=result.verified,
            disputed=result.disputed,
            contradictions=result.contradictions_found,
        )
        return result


def _count_statuses(verdicts: list[ClaimVerdict]) -> dict[str, int]:
    counts = {status.value: 0 for status in VerificationStatus}
    for verdict in verdicts:
        counts[verdict.verification_status.value] += 1
    return counts
