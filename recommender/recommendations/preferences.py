from __future__ import annotations

import logging
from collections import Counter
from typing import TYPE_CHECKING, Any

import numpy as np

from ..llm.prompts import build_preference_prompt
from .models import FeedbackItem, PreferredHours, UserPreferences
from .strategy import ModelOutputError, ModelWithFallback, TextModel, parse_model_json

if TYPE_CHECKING:
    from ..auth.users import UserStore
    from ..history.feedback import FeedbackStore

logger = logging.getLogger(__name__)

POSITIVE_RATING = 4
MIN_INTENT_OCCURRENCES = 2
MAX_CATEGORIES = 5
MIN_DISTANCE = 100
_IGNORED_INTENTS = {"general", "details"}


def _is_number(value: Any) -> bool:
    """Finite int or float; bool and inf/nan are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isinstance(value, int) or bool(np.isfinite(value))


# ---------------------------------------------------------------------------
# Rule-based estimate
# ---------------------------------------------------------------------------


class RulePreferenceEstimator:
    """Infers preferences from positively rated feedback."""

    def __call__(self, feedback: list[FeedbackItem]) -> UserPreferences:
        default = UserPreferences.default()
        positive = [f for f in feedback if f.rating >= POSITIVE_RATING]
        if not positive:
            return default

        intent_counts = Counter(
            f.context.intent for f in positive if f.context.intent not in _IGNORED_INTENTS
        )
        categories = [i for i, n in intent_counts.most_common() if n >= MIN_INTENT_OCCURRENCES]

        category_counts: Counter[str] = Counter()
        prices: list[int] = []
        distances: list[float] = []
        for item in positive:
            if item.place is None:
                continue
            category_counts.update(item.place.categories)
            if item.place.price is not None:
                prices.append(item.place.price)
            if item.place.distance is not None:
                distances.append(item.place.distance)

        for name, _ in category_counts.most_common():
            if name not in categories:
                categories.append(name)

        price_range = default.price_range
        if prices:
            price_range = [max(1, min(prices)), min(4, max(prices))]

        max_distance = default.max_distance
        if distances:
            max_distance = max(MIN_DISTANCE, round(float(np.percentile(distances, 75))))

        hours = [f.context.current_time.hour for f in positive]
        preferred_hours = PreferredHours(start=min(hours), end=max(hours))

        return UserPreferences(
            categories=categories[:MAX_CATEGORIES],
            price_range=price_range,
            max_distance=max_distance,
            preferred_hours=preferred_hours,
        )


# ---------------------------------------------------------------------------
# Model-backed estimate
# ---------------------------------------------------------------------------


def _field_categories(parsed: dict[str, Any], default: list[str]) -> list[str]:
    value = parsed.get("categories")
    if not isinstance(value, list):
        return default
    return [c.strip() for c in value if isinstance(c, str) and c.strip()][:MAX_CATEGORIES]


def _field_price_range(parsed: dict[str, Any], default: list[int]) -> list[int]:
    value = parsed.get("priceRange", parsed.get("price_range"))
    if not isinstance(value, list) or len(value) != 2 or not all(_is_number(v) for v in value):
        return default
    low, high = int(value[0]), int(value[1])
    if not (1 <= low <= high <= 4):
        return default
    return [low, high]


def _field_max_distance(parsed: dict[str, Any], default: float) -> float:
    value = parsed.get("maxDistance", parsed.get("max_distance"))
    if not _is_number(value) or value <= 0:
        return default
    return float(value)


def _field_hours(parsed: dict[str, Any], default: PreferredHours) -> PreferredHours:
    value = parsed.get("preferredHours", parsed.get("preferred_hours"))
    if not isinstance(value, dict):
        return default
    start, end = value.get("start"), value.get("end")
    if not (_is_number(start) and _is_number(end)):
        return default
    if not (0 <= start <= 23 and 0 <= end <= 23):
        return default
    return PreferredHours(start=int(start), end=int(end))


class ModelPreferenceEstimator:
    """Asks the model; each missing or invalid field keeps its default."""

    def __init__(self, model: TextModel) -> None:
        self.model = model

    def __call__(self, feedback: list[FeedbackItem]) -> UserPreferences:
        parsed = parse_model_json(self.model(build_preference_prompt(feedback)))
        if not isinstance(parsed, dict):
            raise ModelOutputError("Preference output is not a JSON object")

        default = UserPreferences.default()
        return UserPreferences(
            categories=_field_categories(parsed, default.categories),
            price_range=_field_price_range(parsed, default.price_range),
            max_distance=_field_max_distance(parsed, default.max_distance),
            preferred_hours=_field_hours(parsed, default.preferred_hours),
        )


class PreferenceEstimator:
    """Folds feedback history into a preference profile; never raises."""

    def __init__(self, model: TextModel | None = None) -> None:
        primary = ModelPreferenceEstimator(model) if model is not None else None
        self._estimate = ModelWithFallback(primary, RulePreferenceEstimator(), "preference estimate")

    def estimate(self, feedback: list[FeedbackItem]) -> UserPreferences:
        if not feedback:
            return UserPreferences.default()
        try:
            return self._estimate(feedback)
        except Exception:
            logger.warning("Preference estimate failed, using defaults", exc_info=True)
            return UserPreferences.default()


def refresh_user_preferences(
    user_id: str,
    users: UserStore,
    feedback: FeedbackStore,
    estimator: PreferenceEstimator,
    limit: int = 50,
) -> UserPreferences | None:
    """
    Re-estimate a user's profile from recent feedback and store it.

    Runs after feedback submission. Store failures are logged, not raised.
    """
    try:
        preferences = estimator.estimate(feedback.for_user(user_id, limit=limit))
        users.update_preferences(user_id, preferences)
    except Exception:
        logger.warning("Could not refresh preferences for user %s", user_id, exc_info=True)
        return None
    return preferences
