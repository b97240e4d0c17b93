from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any

from ..places.models import LatLng, Place
from .errors import ValidationError
from .models import RankedPlace, UserPreferences
from .scoring import rank_by_relevance
from .strategy import ModelOutputError, parse_model_json

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 0.3
MODEL_DEFAULT_CONFIDENCE = 0.7
FALLBACK_REASONING = "fallback ranking"
_MODEL_DEFAULT_REASONING = "Ranked by AI based on your query, context and preferences"
_BUSYNESS = {"low", "medium", "high"}


@dataclass
class RankingResult:
    places: list[RankedPlace]
    confidence: float
    reasoning: str
    degraded: bool = False
    dropped_ids: list[str] = field(default_factory=list)


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(high, max(low, value))


def _as_score(value: Any) -> float | None:
    # bool is an int subclass; "true" is not a score
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return _clamp(float(value))


def _extract_entries(parsed: Any) -> list[Any]:
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        entries = parsed.get("rankedPlaces", parsed.get("ranked_places"))
        if isinstance(entries, list):
            return entries
    raise ModelOutputError("Model output has no rankedPlaces array")


def _entry_tags(entry: dict[str, Any]) -> list[str]:
    tags = entry.get("tags", entry.get("recommendationTags"))
    if not isinstance(tags, list):
        return []
    return [str(t) for t in tags if isinstance(t, (str, int, float)) and not isinstance(t, bool)]


def _entry_busyness(entry: dict[str, Any]) -> str:
    value = entry.get("estimatedBusyness", entry.get("estimatedBusyTime"))
    if isinstance(value, str) and value.lower() in _BUSYNESS:
        return value.lower()
    return "medium"


def _entry_reasoning(entry: dict[str, Any]) -> str:
    value = entry.get("reasoning", entry.get("aiReasoning"))
    return value if isinstance(value, str) else ""


def _parse_model_ranking(text: str, candidates: list[Place]) -> RankingResult:
    parsed = parse_model_json(text)
    entries = _extract_entries(parsed)

    order = {place.id: index for index, place in enumerate(candidates)}
    by_id = {place.id: place for place in candidates}

    accepted: list[tuple[int, RankedPlace]] = []
    seen: set[str] = set()
    dropped: list[str] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        raw_id = entry.get("id", entry.get("fsq_id"))
        place_id = str(raw_id) if raw_id is not None else ""
        score = _as_score(entry.get("relevanceScore"))
        if place_id not in by_id or place_id in seen or score is None:
            dropped.append(place_id)
            continue
        seen.add(place_id)
        ranked = RankedPlace(
            **by_id[place_id].model_dump(),
            relevance_score=score,
            reasoning=_entry_reasoning(entry),
            tags=_entry_tags(entry),
            estimated_busyness=_entry_busyness(entry),
        )
        accepted.append((order[place_id], ranked))

    if dropped:
        logger.warning("Dropped %d model ranking entries: %s", len(dropped), dropped)
    if not accepted:
        raise ModelOutputError("No model ranking entry matched a candidate")

    # Score descending, candidate order on ties
    accepted.sort(key=lambda pair: (-pair[1].relevance_score, pair[0]))

    confidence = MODEL_DEFAULT_CONFIDENCE
    reasoning = _MODEL_DEFAULT_REASONING
    if isinstance(parsed, dict):
        parsed_confidence = _as_score(parsed.get("confidence"))
        if parsed_confidence is not None:
            confidence = parsed_confidence
        if isinstance(parsed.get("reasoning"), str) and parsed["reasoning"].strip():
            reasoning = parsed["reasoning"]

    return RankingResult(
        places=[ranked for _, ranked in accepted],
        confidence=confidence,
        reasoning=reasoning,
        dropped_ids=dropped,
    )


def _unique_by_id(candidates: list[Place]) -> list[Place]:
    seen: set[str] = set()
    unique: list[Place] = []
    for place in candidates:
        if place.id not in seen:
            seen.add(place.id)
            unique.append(place)
    return unique


def fallback_ranking(
    candidates: list[Place],
    user_location: LatLng | None = None,
    preferences: UserPreferences | None = None,
) -> RankingResult:
    places = [
        RankedPlace(
            **place.model_dump(),
            relevance_score=relevance,
            reasoning=FALLBACK_REASONING,
            tags=[],
            estimated_busyness="medium",
        )
        for place, relevance in rank_by_relevance(candidates, user_location, preferences)
    ]
    return RankingResult(
        places=places,
        confidence=FALLBACK_CONFIDENCE,
        reasoning=FALLBACK_REASONING,
        degraded=True,
    )


def reconcile(
    model_output: str | None,
    candidates: list[Place],
    user_location: LatLng | None = None,
    preferences: UserPreferences | None = None,
) -> RankingResult:
    """
    Validate a model ranking against the candidate set, repairing what can
    be repaired and falling back to the relevance scorer otherwise.

    Malformed model output never raises. Only an empty candidate set does.
    """
    if not candidates:
        raise ValidationError("Cannot rank an empty candidate set")

    candidates = _unique_by_id(candidates)
    if model_output is None or not model_output.strip():
        logger.info("No model ranking available, using fallback ranking")
        return fallback_ranking(candidates, user_location, preferences)

    try:
        return _parse_model_ranking(model_output, candidates)
    except ModelOutputError:
        logger.warning("Model ranking unusable, using fallback ranking", exc_info=True)
        return fallback_ranking(candidates, user_location, preferences)
