from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any

from .feedback import FeedbackStore
from .store import TIMEFRAME_DAYS, SearchHistoryStore


def popular_searches(
    history: SearchHistoryStore,
    timeframe: str = "week",
    limit: int = 10,
) -> list[dict[str, Any]]:
    days = TIMEFRAME_DAYS.get(timeframe, TIMEFRAME_DAYS["week"])
    start = datetime.now(timezone.utc) - timedelta(days=days)
    counter: Counter[str] = Counter(e.query for e in history.since(start) if e.query)
    return [{"query": q, "count": c} for q, c in counter.most_common(limit)]


def user_analytics(
    history: SearchHistoryStore,
    feedback: FeedbackStore,
    user_id: str,
) -> dict[str, Any]:
    searches = history.for_user(user_id, limit=10_000)
    total = len(searches)

    intent_counter: Counter[str] = Counter(s.user_context.intent for s in searches)
    results = [len(s.results) for s in searches]

    items = feedback.for_user(user_id, limit=10_000)
    positive = sum(1 for f in items if f.rating >= 4)

    return {
        "total_searches": total,
        "unique_queries": len({s.query for s in searches}),
        "avg_results_per_search": round(sum(results) / total, 2) if total else 0.0,
        "top_intents": [{"name": n, "count": c} for n, c in intent_counter.most_common(5)],
        "feedback_summary": {
            "total": len(items),
            "positive": positive,
            "negative": len(items) - positive,
            "satisfaction_rate": round(positive / len(items) * 100, 1) if items else 0.0,
        },
    }


def cleanup_expired(
    history: SearchHistoryStore,
    feedback: FeedbackStore,
    days_to_keep: int = 90,
) -> dict[str, int]:
    """Retention sweep across the append-only stores."""
    return {
        "search_history": history.delete_older_than(days_to_keep),
        "feedback": feedback.delete_older_than(days_to_keep),
    }
