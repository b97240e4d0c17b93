from __future__ import annotations

from datetime import datetime

from .models import Urgency, UserContext

DEFAULT_INTENT = "general"

# Checked in order; the first group with a matching keyword wins.
_INTENT_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("dining", ("eat", "food", "restaurant")),
    ("drinks", ("drink", "bar", "coffee")),
    ("shopping", ("shop", "buy", "store")),
    ("entertainment", ("fun", "activity", "entertainment")),
    ("work", ("work", "office", "meeting")),
)


def classify(query: str | None) -> str:
    """Map a free-text query to a coarse intent label."""
    if not query:
        return DEFAULT_INTENT

    lower = query.lower()
    for intent, keywords in _INTENT_KEYWORDS:
        if any(keyword in lower for keyword in keywords):
            return intent
    return DEFAULT_INTENT


def build_user_context(
    query: str | None,
    now: datetime | None = None,
    group_size: int = 1,
    urgency: Urgency = "medium",
    duration_minutes: int | None = None,
    intent: str | None = None,
) -> UserContext:
    now = now or datetime.now()
    return UserContext(
        intent=intent or classify(query),
        current_time=now,
        # isoweekday: Monday=1 .. Sunday=7, stored as Sunday=0
        day_of_week=now.isoweekday() % 7,
        group_size=group_size,
        urgency=urgency,
        duration_minutes=duration_minutes,
    )
