from __future__ import annotations

import json

import pytest

from recommender.places.models import LatLng, Place, PlaceCategory
from recommender.recommendations.errors import ValidationError
from recommender.recommendations.models import UserPreferences
from recommender.recommendations.strategy import ModelOutputError, parse_model_json, strip_code_fences
from recommender.recommendations.validator import (
    FALLBACK_CONFIDENCE,
    FALLBACK_REASONING,
    MODEL_DEFAULT_CONFIDENCE,
    reconcile,
)

ORIGIN = LatLng(lat=40.7128, lng=-74.0060)
COFFEE_PREFS = UserPreferences(categories=["Coffee"], price_range=[1, 2], max_distance=1000)

CANDIDATES = [
    Place(id="A", name="Bean There", distance=100, rating=8, price=2,
          categories=[PlaceCategory(id="13035", name="Coffee")]),
    Place(id="B", name="Le Grand", distance=900, rating=9, price=4,
          categories=[PlaceCategory(id="13065", name="Fine Dining")]),
    Place(id="C", name="Corner Deli", distance=400, rating=7, price=1),
]
CANDIDATE_IDS = {p.id for p in CANDIDATES}


def _ranking(*entries, **top_level) -> str:
    return json.dumps({"rankedPlaces": list(entries), **top_level})


def _assert_id_integrity(result):
    ids = [p.id for p in result.places]
    assert set(ids) <= CANDIDATE_IDS
    assert len(ids) == len(set(ids))


def _assert_sorted(result):
    scores = [p.relevance_score for p in result.places]
    assert scores == sorted(scores, reverse=True)


# ── Model ranking accepted ───────────────────────────────────────────────


def test_valid_model_ranking_is_used():
    output = _ranking(
        {"id": "B", "relevanceScore": 0.9, "reasoning": "Great for a celebration",
         "tags": ["upscale"], "estimatedBusyness": "high"},
        {"id": "A", "relevanceScore": 0.6},
        confidence=0.85,
        reasoning="Matched the dinner intent",
    )
    result = reconcile(output, CANDIDATES, ORIGIN, COFFEE_PREFS)

    assert [p.id for p in result.places] == ["B", "A"]
    assert result.confidence == 0.85
    assert result.reasoning == "Matched the dinner intent"
    assert result.degraded is False
    top = result.places[0]
    assert top.reasoning == "Great for a celebration"
    assert top.tags == ["upscale"]
    assert top.estimated_busyness == "high"
    assert top.name == "Le Grand"


def test_unranked_candidates_are_not_appended():
    result = reconcile(_ranking({"id": "C", "relevanceScore": 0.4}), CANDIDATES)
    assert [p.id for p in result.places] == ["C"]


def test_model_defaults_when_top_level_fields_missing():
    result = reconcile(_ranking({"id": "A", "relevanceScore": 0.5}), CANDIDATES)
    assert result.confidence == MODEL_DEFAULT_CONFIDENCE
    assert result.reasoning


def test_entry_field_aliases_and_repairs():
    output = json.dumps([
        {"fsq_id": "A", "relevanceScore": 1.7, "aiReasoning": "close by",
         "recommendationTags": ["quick"], "estimatedBusyTime": "weird"},
        {"id": "B", "relevanceScore": -3, "reasoning": 42},
    ])
    result = reconcile(output, CANDIDATES)

    first, second = result.places
    assert first.id == "A"
    assert first.relevance_score == 1.0
    assert first.reasoning == "close by"
    assert first.tags == ["quick"]
    assert first.estimated_busyness == "medium"
    assert second.relevance_score == 0.0
    assert second.reasoning == ""
    assert second.tags == []


def test_snake_case_ranked_places_key():
    output = json.dumps({"ranked_places": [{"id": "C", "relevanceScore": 0.2}]})
    assert [p.id for p in reconcile(output, CANDIDATES).places] == ["C"]


# ── Id integrity ─────────────────────────────────────────────────────────


def test_unknown_and_duplicate_ids_are_dropped():
    output = _ranking(
        {"id": "A", "relevanceScore": 0.8},
        {"id": "Z", "relevanceScore": 0.99},
        {"id": "A", "relevanceScore": 0.95},
        {"id": "B", "relevanceScore": 0.5},
    )
    result = reconcile(output, CANDIDATES)

    _assert_id_integrity(result)
    assert [p.id for p in result.places] == ["A", "B"]
    assert result.places[0].relevance_score == 0.8
    assert result.dropped_ids == ["Z", "A"]


@pytest.mark.parametrize("bad_score", [None, "0.9", True, float("nan"), float("inf")])
def test_entries_without_finite_numeric_score_are_dropped(bad_score):
    entries = [{"id": "A", "relevanceScore": 0.4}]
    if bad_score is not None:
        entries.append({"id": "B", "relevanceScore": bad_score})
    else:
        entries.append({"id": "B"})
    # json.dumps writes NaN/Infinity, which json.loads reads back as floats
    result = reconcile(json.dumps({"rankedPlaces": entries}), CANDIDATES)
    assert [p.id for p in result.places] == ["A"]


def test_duplicate_candidates_are_ranked_once():
    candidates = CANDIDATES + [CANDIDATES[0]]
    result = reconcile(None, candidates)
    _assert_id_integrity(result)
    assert len(result.places) == 3


# ── Ordering ─────────────────────────────────────────────────────────────


def test_equal_scores_keep_candidate_order():
    output = _ranking(
        {"id": "C", "relevanceScore": 0.5},
        {"id": "B", "relevanceScore": 0.7},
        {"id": "A", "relevanceScore": 0.5},
    )
    result = reconcile(output, CANDIDATES)
    assert [p.id for p in result.places] == ["B", "A", "C"]
    _assert_sorted(result)


# ── Malformed model output ───────────────────────────────────────────────


@pytest.mark.parametrize(
    "output",
    [
        None,
        "",
        "   ",
        "I think Bean There is best!",
        "{not json",
        json.dumps({"rankedPlaces": "A,B"}),
        json.dumps({"something": []}),
        json.dumps("A"),
        json.dumps({"rankedPlaces": [{"id": "Z", "relevanceScore": 0.9}]}),
        json.dumps({"rankedPlaces": ["A", 3, None]}),
    ],
)
def test_malformed_output_falls_back(output):
    result = reconcile(output, CANDIDATES, ORIGIN, COFFEE_PREFS)

    assert result.degraded is True
    assert result.confidence == FALLBACK_CONFIDENCE
    assert result.confidence < 0.5
    assert result.reasoning == FALLBACK_REASONING
    assert [p.id for p in result.places] == ["A", "C", "B"]
    _assert_id_integrity(result)
    _assert_sorted(result)


def test_fenced_output_with_unknown_id_falls_back():
    output = '```json\n{"rankedPlaces":[{"id":"Z","relevanceScore":0.9}]}\n```'
    candidates = CANDIDATES[:2]
    result = reconcile(output, candidates, ORIGIN, COFFEE_PREFS)

    assert result.degraded is True
    assert [p.id for p in result.places] == ["A", "B"]
    assert result.places[0].relevance_score == pytest.approx(0.93)
    assert result.places[1].relevance_score == pytest.approx(0.21)
    assert all(p.reasoning == FALLBACK_REASONING for p in result.places)
    assert all(p.tags == [] and p.estimated_busyness == "medium" for p in result.places)


def test_fenced_valid_output_is_parsed():
    output = '```json\n{"rankedPlaces":[{"id":"B","relevanceScore":0.9}]}\n```'
    result = reconcile(output, CANDIDATES)
    assert result.degraded is False
    assert [p.id for p in result.places] == ["B"]


def test_empty_candidates_raise():
    with pytest.raises(ValidationError):
        reconcile('{"rankedPlaces": []}', [])


# ── Fence helpers ────────────────────────────────────────────────────────


@pytest.mark.parametrize("depth", [5000, 100_000])
def test_deeply_nested_output_falls_back(depth):
    result = reconcile("[" * depth + "]" * depth, CANDIDATES)

    assert result.degraded is True
    assert result.confidence == FALLBACK_CONFIDENCE
    assert {p.id for p in result.places} == CANDIDATE_IDS


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('```\n[1, 2]\n```') == "[1, 2]"
    assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'


def test_parse_model_json_raises_model_output_error():
    with pytest.raises(ModelOutputError):
        parse_model_json("```json\nnope\n```")
