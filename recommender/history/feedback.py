from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError as SchemaError

from ..recommendations.errors import PersistenceFailure
from ..recommendations.models import ActionType, FeedbackItem, PlaceSnapshot, UserContext

logger = logging.getLogger(__name__)


class FeedbackStore:
    """Append-only feedback records."""

    def __init__(self) -> None:
        self._feedback: list[FeedbackItem] = []
        self._lock = threading.Lock()

    def record(
        self,
        user_id: str,
        place_id: str,
        rating: int,
        context: UserContext,
        comment: str | None = None,
        action_taken: ActionType | None = None,
        place: PlaceSnapshot | None = None,
        timestamp: datetime | None = None,
    ) -> FeedbackItem:
        try:
            item = FeedbackItem(
                id=uuid.uuid4().hex,
                user_id=user_id,
                place_id=place_id,
                rating=rating,
                comment=comment,
                context=context,
                action_taken=action_taken,
                place=place,
                timestamp=timestamp or datetime.now(timezone.utc),
            )
        except SchemaError as exc:
            raise PersistenceFailure(
                "Invalid feedback record",
                details=exc.errors(include_url=False, include_context=False, include_input=False),
            ) from exc
        with self._lock:
            self._feedback.append(item)
        logger.info("Feedback saved: user=%s place=%s rating=%d", user_id, place_id, rating)
        return item

    def for_user(self, user_id: str, limit: int = 50) -> list[FeedbackItem]:
        """Newest first."""
        with self._lock:
            items = [f for f in self._feedback if f.user_id == user_id]
        items.sort(key=lambda f: f.timestamp, reverse=True)
        return items[:limit]

    def count_for_user(self, user_id: str) -> int:
        with self._lock:
            return sum(1 for f in self._feedback if f.user_id == user_id)

    def for_place(self, user_id: str, place_id: str) -> FeedbackItem | None:
        """The user's latest feedback for a place."""
        with self._lock:
            items = [f for f in self._feedback if f.user_id == user_id and f.place_id == place_id]
        return max(items, key=lambda f: f.timestamp) if items else None

    def all(self) -> list[FeedbackItem]:
        with self._lock:
            return list(self._feedback)

    def delete_older_than(self, days: int) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        with self._lock:
            before = len(self._feedback)
            self._feedback = [f for f in self._feedback if f.timestamp >= cutoff]
            deleted = before - len(self._feedback)
        logger.info("Cleaned up %d feedback records older than %s", deleted, cutoff.isoformat())
        return deleted

    def clear(self) -> None:
        with self._lock:
            self._feedback.clear()
