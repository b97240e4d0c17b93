from __future__ import annotations

import hashlib
import json
import threading
import time
from collections import OrderedDict
from typing import Any

DEFAULT_TTL = 300  # 5 minutes
MAX_ENTRIES = 1000

_entries: OrderedDict[str, tuple[float, Any]] = OrderedDict()
_lock = threading.Lock()
_stats = {"hits": 0, "misses": 0, "evictions": 0}


def cache_key(params: dict) -> str:
    """Stable key for a provider query, independent of parameter order."""
    normalized = json.dumps(params, sort_keys=True, default=str)
    return hashlib.sha256(normalized.encode()).hexdigest()[:16]


def cache_get(params: dict, ttl: int = DEFAULT_TTL) -> Any | None:
    key = cache_key(params)
    with _lock:
        entry = _entries.get(key)
        if entry is not None and time.time() - entry[0] < ttl:
            _stats["hits"] += 1
            return entry[1]
        if entry is not None:
            del _entries[key]
        _stats["misses"] += 1
        return None


def cache_set(params: dict, value: Any) -> None:
    key = cache_key(params)
    with _lock:
        _entries[key] = (time.time(), value)
        _entries.move_to_end(key)
        # Oldest writes go first
        while len(_entries) > MAX_ENTRIES:
            _entries.popitem(last=False)
            _stats["evictions"] += 1


def purge_expired(ttl: int = DEFAULT_TTL) -> int:
    cutoff = time.time() - ttl
    with _lock:
        expired = [key for key, (created_at, _) in _entries.items() if created_at <= cutoff]
        for key in expired:
            del _entries[key]
    return len(expired)


def get_cache_stats() -> dict:
    with _lock:
        hits, misses = _stats["hits"], _stats["misses"]
        total = hits + misses
        return {
            "size": len(_entries),
            "hits": hits,
            "misses": misses,
            "evictions": _stats["evictions"],
            "hit_rate": round(hits / total * 100, 1) if total > 0 else 0.0,
        }


def clear_cache() -> None:
    with _lock:
        _entries.clear()
        for name in _stats:
            _stats[name] = 0
