from __future__ import annotations

import pytest

from recommender.places.models import LatLng, Place, PlaceCategory
from recommender.recommendations.models import UserPreferences
from recommender.recommendations.scoring import rank_by_relevance, score

ORIGIN = LatLng(lat=40.7128, lng=-74.0060)

COFFEE_PREFS = UserPreferences(categories=["Coffee"], price_range=[1, 2], max_distance=1000)


def _place(pid: str, **fields) -> Place:
    categories = [PlaceCategory(id=str(i), name=n) for i, n in enumerate(fields.pop("categories", []))]
    return Place(id=pid, name=f"Place {pid}", categories=categories, **fields)


PLACE_A = _place("A", distance=100, rating=8, price=2, categories=["Coffee"])
PLACE_B = _place("B", distance=900, rating=9, price=4, categories=["Fine Dining"])


def test_scenario_scores():
    assert score(PLACE_A, ORIGIN, COFFEE_PREFS) == pytest.approx(0.93)
    assert score(PLACE_B, ORIGIN, COFFEE_PREFS) == pytest.approx(0.21)


def test_scenario_order():
    ranked = rank_by_relevance([PLACE_B, PLACE_A], ORIGIN, COFFEE_PREFS)
    assert [p.id for p, _ in ranked] == ["A", "B"]


def test_missing_fields_contribute_nothing():
    assert score(_place("bare"), ORIGIN, COFFEE_PREFS) == 0.0


def test_distance_beyond_max_is_zero_not_negative():
    far = _place("far", distance=5000)
    assert score(far, ORIGIN, COFFEE_PREFS) == 0.0


def test_category_match_is_case_insensitive_substring():
    place = _place("c", categories=["Specialty COFFEE Shop"])
    assert score(place, ORIGIN, COFFEE_PREFS) == pytest.approx(0.3)


def test_partial_category_match_is_fractional():
    prefs = UserPreferences(categories=["coffee", "bakery"], max_distance=1000)
    place = _place("c", categories=["Coffee Shop"])
    assert score(place, ORIGIN, prefs) == pytest.approx(0.15)


def test_score_clamped_to_unit_interval():
    perfect = _place("p", distance=0, rating=10, price=1, categories=["Coffee"])
    assert score(perfect, ORIGIN, COFFEE_PREFS) == pytest.approx(1.0)
    assert score(perfect, ORIGIN, COFFEE_PREFS) <= 1.0


def test_scores_are_deterministic():
    candidates = [PLACE_A, PLACE_B, _place("C", distance=300, rating=6.5, price=1)]
    first = rank_by_relevance(candidates, ORIGIN, COFFEE_PREFS)
    second = rank_by_relevance(candidates, ORIGIN, COFFEE_PREFS)
    assert first == second


def test_ties_keep_input_order():
    twins = [_place(pid, rating=7) for pid in ("x", "y", "z")]
    ranked = rank_by_relevance(twins, ORIGIN)
    assert [p.id for p, _ in ranked] == ["x", "y", "z"]


def test_default_preferences_used_when_absent():
    place = _place("d", distance=500, price=3)
    # default max_distance 1000, price range [1, 4]
    assert rank_by_relevance([place], None)[0][1] == pytest.approx(0.15 + 0.2)
