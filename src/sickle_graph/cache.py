# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import json
import re
import time
from typing import Any, Callable, Dict, Mapping, NamedTuple, Optional, Pattern, Union


class _Miss:
    """Sentinel returned by QueryCache.get() when no fresh entry exists."""

    def __repr__(self) -> str:
        return "MISS"

    def __bool__(self) -> bool:
        return False


MISS = _Miss()


class CacheEntry(NamedTuple):
    result: Any
    stored_at: float


class QueryCache:
    """
    A time-bounded memoization store for query results, keyed by
    (statement text, parameters).

    Expiry is lazy: stale entries stay in memory until they are read,
    overwritten or invalidated, but a stale entry is never returned.
    The cache is private to one adapter instance and lost on restart.
    """

    def __init__(self, ttl_seconds: float = 60, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    @staticmethod
    def make_key(query: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """
        Builds the cache key from the exact statement text and a canonical
        serialization of its parameters (sorted keys, so ordering never matters).
        """
        serialized = json.dumps(params or {}, sort_keys=True, separators=(",", ":"), default=str)
        return f"{query}-{serialized}"

    def get(self, key: str, ttl: Optional[float] = None) -> Any:
        """Returns the stored result if it is younger than `ttl` seconds, else MISS."""
        entry = self._entries.get(key)
        if entry is None:
            return MISS
        ttl = self.ttl_seconds if ttl is None else ttl
        if self._clock() - entry.stored_at < ttl:
            return entry.result
        return MISS

    def put(self, key: str, result: Any) -> None:
        """Stores `result` under `key` with the current timestamp, overwriting any previous entry."""
        self._entries[key] = CacheEntry(result, self._clock())

    def invalidate(self, pattern: Union[str, Pattern, None] = None) -> int:
        """
        With no pattern, clears the cache. With a pattern (a regular expression
        or compiled regex), removes only the keys it matches.
        Returns the number of entries removed.
        """
        if pattern is None:
            removed = len(self._entries)
            self._entries.clear()
            return removed
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        doomed = [key for key in self._entries if regex.search(key)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not MISS
