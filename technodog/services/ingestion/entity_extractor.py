"""LLM-based entity extraction for knowledge ingestion.

Turns an article into entities (constrained to the fixed taxonomy in
:class:`~technodog.models.knowledge.EntityType`), free-text facts and
named relationships.  Extraction is best effort: any LLM or parsing
failure yields an empty :class:`ExtractionResult` and ingestion carries on
with chunking and storage.

Models often list the same artist twice in one reply ("DJ Rush" and
"Rush", or a name that is also another item's alias).  Such items are
folded together with a rapidfuzz ``token_sort_ratio`` comparison before
they reach the store, which only deduplicates on exact name and type.
"""

from __future__ import annotations

import json
import re

import structlog
from pydantic import ValidationError
from rapidfuzz import fuzz

from technodog.interfaces.llm_provider import ILLMProvider
from technodog.models.knowledge import (
    EntityRelationship,
    EntityType,
    ExtractionResult,
    KnowledgeEntity,
)
from technodog.utils.errors import TechnoDogError
from technodog.utils.llm_json import parse_json_object

logger = structlog.get_logger(logger_name=__name__)

# Only the head of an article is sent to the model.
_MAX_CONTENT_CHARS = 8000

# token_sort_ratio score (0-100) at which two same-type names are one entity.
_DUPLICATE_NAME_SCORE = 90

_SYSTEM_PROMPT = (
    "You are a techno music knowledge extraction expert. Extract structured "
    "information from the provided content.\n\n"
    "Return a JSON object with:\n"
    "- entities: Array of { name, type, description, aliases, city, country }\n"
    "  - type must be one of: "
    + ", ".join(t.value for t in EntityType)
    + "\n"
    "- facts: Array of key facts as strings\n"
    "- relationships: Array of { from, to, type } describing connections\n\n"
    "Focus on techno music culture. Be precise and factual."
)


def _match_key(name: str) -> str:
    """Lower-case *name* without a leading "DJ" and with single spaces."""
    stripped = re.sub(r"^dj\s+", "", name.strip().lower())
    return re.sub(r"\s+", " ", stripped)


def _same_entity(first: KnowledgeEntity, second: KnowledgeEntity) -> bool:
    if first.type is not second.type:
        return False
    first_keys = {_match_key(first.name), *(_match_key(a) for a in first.aliases)}
    second_key = _match_key(second.name)
    if second_key in first_keys:
        return True
    return fuzz.token_sort_ratio(_match_key(first.name), second_key) >= _DUPLICATE_NAME_SCORE


def merge_duplicate_entities(entities: list[KnowledgeEntity]) -> list[KnowledgeEntity]:
    """Fold same-type entities whose names match into the first occurrence.

    The later item's name joins the survivor's aliases when it is spelled
    differently, and empty description or location fields are filled in.
    Order of first occurrence is preserved.
    """
    merged: list[KnowledgeEntity] = []
    for entity in entities:
        for index, kept in enumerate(merged):
            if not _same_entity(kept, entity):
                continue
            aliases = list(kept.aliases)
            for alias in [entity.name, *entity.aliases]:
                if alias != kept.name and alias not in aliases:
                    aliases.append(alias)
            merged[index] = kept.model_copy(
                update={
                    "aliases": aliases,
                    "description": kept.description or entity.description,
                    "city": kept.city or entity.city,
                    "country": kept.country or entity.country,
                }
            )
            logger.debug("entity_merged", name=kept.name, duplicate=entity.name)
            break
        else:
            merged.append(entity)
    return merged


class KnowledgeEntityExtractor:
    """Extracts entities, facts and relationships from article text."""

    def __init__(self, llm: ILLMProvider) -> None:
        self._llm = llm

    async def extract(self, content: str) -> ExtractionResult:
        """Return the structured knowledge found in *content*.

        Never raises; malformed items are dropped individually.
        """
        user_prompt = (
            "Extract entities and knowledge from this content:\n\n"
            f"{content[:_MAX_CONTENT_CHARS]}"
        )
        try:
            response = await self._llm.complete(
                system_prompt=_SYSTEM_PROMPT,
                user_prompt=user_prompt,
                temperature=0.1,
                json_output=True,
            )
            parsed = parse_json_object(response)
        except (TechnoDogError, json.JSONDecodeError, ValueError) as exc:
            logger.warning("entity_extraction_failed", error=str(exc))
            return ExtractionResult()

        entities: list[KnowledgeEntity] = []
        for item in parsed.get("entities") or []:
            try:
                entities.append(KnowledgeEntity.model_validate(item))
            except ValidationError:
                logger.debug("entity_dropped", item=item)

        relationships: list[EntityRelationship] = []
        for item in parsed.get("relationships") or []:
            try:
                relationships.append(EntityRelationship.model_validate(item))
            except ValidationError:
                logger.debug("relationship_dropped", item=item)

        entities = merge_duplicate_entities(entities)
        facts = [str(f) for f in parsed.get("facts") or [] if f]

        logger.info(
            "entity_extraction_complete",
            entities=len(entities),
            facts=len(facts),
            relationships=len(relationships),
        )
        return ExtractionResult(entities=entities, facts=facts, relationships=relationships)
