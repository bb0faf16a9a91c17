import time
from typing import Any, Callable, Dict, Iterable, Optional

from classpulse.domain.models import CacheEntry

DEFAULT_TTL_MS = 60_000


def epoch_ms() -> int:
    return int(time.time() * 1000)


def fingerprint(subject_id: str, ids: Iterable[str], delimiter: str = ",") -> str:
    """Deterministic cache key for a subject and an unordered id set."""
    return f"{subject_id}:{delimiter.join(sorted(str(item) for item in ids))}"


class ShortLivedCache:
    """In-memory map of fingerprint -> entry, valid for ``ttl_ms`` after it was set.

    Expired entries stay in the map until ``clear``; they are simply never
    served. Not thread-safe, one instance per event loop.
    """

    def __init__(self, ttl_ms: int = DEFAULT_TTL_MS, clock: Callable[[], int] = epoch_ms) -> None:
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.timestamp < self.ttl_ms:
            return entry
        return None

    def set(self, key: str, data: Any) -> CacheEntry:
        entry = CacheEntry(key=key, data=data, timestamp=self._clock())
        self._entries[key] = entry
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
