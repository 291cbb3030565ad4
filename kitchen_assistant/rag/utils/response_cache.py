"""
Response Cache

Small TTL + LRU cache for complete workflow results, keyed on the query,
the allergy set, the session and the personalization profile. Guarded by
an asyncio.Lock.
"""

import asyncio
import copy
import hashlib
import json
import time
from collections import OrderedDict
from typing import Any, Dict, Iterable, Optional, Tuple


def cache_key(
    query: str,
    allergies: Iterable[str],
    session_id: Optional[str],
    profile: Optional[Dict[str, Any]] = None,
) -> str:
    normalized = " ".join(query.lower().split())
    profile_part = json.dumps(profile or {}, sort_keys=True, default=str)
    raw = "|".join([normalized, ",".join(sorted(set(allergies))), session_id or "", profile_part])
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class ResponseCache:
    """
    Bounded cache of workflow results.

    Entries expire after ``ttl_seconds``; beyond ``max_size`` the least
    recently used entry is evicted. Stored and returned values are copies.
    """

    def __init__(self, ttl_seconds: float, max_size: int, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, Dict[str, Any]]]" = OrderedDict()
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._clock() - stored_at > self.ttl_seconds:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return copy.deepcopy(value)

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        if self.ttl_seconds <= 0 or self.max_size <= 0:
            return
        async with self._lock:
            self._entries[key] = (self._clock(), copy.deepcopy(value))
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
