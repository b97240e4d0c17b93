from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError as SchemaError

from ..places.models import LatLng
from ..recommendations.errors import PersistenceFailure
from ..recommendations.models import SearchFilters, SearchHistoryEntry, UserContext

logger = logging.getLogger(__name__)

TIMEFRAME_DAYS = {"day": 1, "week": 7, "month": 30}


class SearchHistoryStore:
    """Append-only search log, time-ordered per user."""

    def __init__(self) -> None:
        self._entries: list[SearchHistoryEntry] = []
        self._lock = threading.Lock()

    def log_search(
        self,
        user_id: str,
        query: str,
        center: LatLng,
        filters: SearchFilters,
        results: list[str],
        user_context: UserContext,
        timestamp: datetime | None = None,
    ) -> SearchHistoryEntry:
        try:
            entry = SearchHistoryEntry(
                id=uuid.uuid4().hex,
                user_id=user_id,
                query=query,
                center=center,
                filters=filters,
                results=results,
                user_context=user_context,
                timestamp=timestamp or datetime.now(timezone.utc),
            )
        except SchemaError as exc:
            raise PersistenceFailure(
                "Invalid search history entry",
                details=exc.errors(include_url=False, include_context=False, include_input=False),
            ) from exc
        with self._lock:
            self._entries.append(entry)
        logger.info("Search logged: user=%s query=%r", user_id, query)
        return entry

    def for_user(self, user_id: str, limit: int = 20) -> list[SearchHistoryEntry]:
        """Newest first."""
        with self._lock:
            entries = [e for e in self._entries if e.user_id == user_id]
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries[:limit]

    def since(self, start: datetime) -> list[SearchHistoryEntry]:
        with self._lock:
            return [e for e in self._entries if e.timestamp >= start]

    def delete_older_than(self, days: int) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        with self._lock:
            before = len(self._entries)
            self._entries = [e for e in self._entries if e.timestamp >= cutoff]
            deleted = before - len(self._entries)
        logger.info("Cleaned up %d search history entries older than %s", deleted, cutoff.isoformat())
        return deleted

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
