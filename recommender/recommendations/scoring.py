from __future__ import annotations

from ..places.models import LatLng, Place
from .models import UserPreferences

DISTANCE_WEIGHT = 0.3
PRICE_WEIGHT = 0.2
CATEGORY_WEIGHT = 0.3
RATING_WEIGHT = 0.2


def _distance_score(place: Place, preferences: UserPreferences) -> float:
    if place.distance is None:
        return 0.0
    return max(0.0, 1.0 - place.distance / preferences.max_distance)


def _price_match(place: Place, preferences: UserPreferences) -> bool:
    if place.price is None:
        return False
    low, high = preferences.price_range
    return low <= place.price <= high


def _category_score(place: Place, preferences: UserPreferences) -> float:
    if not preferences.categories or not place.categories:
        return 0.0
    place_names = [c.name.lower() for c in place.categories]
    matches = sum(
        1
        for pref in preferences.categories
        if any(pref.lower() in name for name in place_names)
    )
    return matches / len(preferences.categories)


def score(
    place: Place,
    user_location: LatLng | None,
    preferences: UserPreferences,
) -> float:
    """
    Deterministic relevance of ``place`` for a user, in ``[0, 1]``.

    ``place.distance`` is measured by the search provider from the query
    origin, which is ``user_location``; the location is therefore not
    re-measured here.
    """
    total = DISTANCE_WEIGHT * _distance_score(place, preferences)
    if _price_match(place, preferences):
        total += PRICE_WEIGHT
    total += CATEGORY_WEIGHT * _category_score(place, preferences)
    if place.rating is not None:
        total += RATING_WEIGHT * (place.rating / 10.0)
    return min(1.0, max(0.0, total))


def rank_by_relevance(
    candidates: list[Place],
    user_location: LatLng | None,
    preferences: UserPreferences | None = None,
) -> list[tuple[Place, float]]:
    """Score every candidate and sort best-first; ties keep input order."""
    prefs = preferences or UserPreferences.default()
    scored = [(place, score(place, user_location, prefs)) for place in candidates]
    # sorted() is stable, so equal scores stay in candidate order
    return sorted(scored, key=lambda pair: pair[1], reverse=True)
