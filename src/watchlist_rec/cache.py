"""Per-user, time-bounded store of the last computed recommendation set."""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Mapping, Sequence

from .models import ScoredRecommendation
from .profile import PreferenceProfile
from .config import CACHE_TTL_HOURS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    recommendations: Mapping[str, tuple[ScoredRecommendation, ...]]
    profile: PreferenceProfile
    written_at: datetime


class ResultCache:
    """
    In-memory cache keyed by user ID.

    Entries expire `ttl` after they were written, measured with the injected
    clock so expiry is deterministic under test.
    """

    def __init__(
        self,
        ttl: timedelta = timedelta(hours=CACHE_TTL_HOURS),
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is None:
                return None
            age = self._clock() - entry.written_at
            if age >= self.ttl:
                logger.debug(f"Cache entry for {user_id} expired (age {age})")
                del self._entries[user_id]
                return None
            return entry

    def set(
        self,
        user_id: str,
        recommendations: Mapping[str, Sequence[ScoredRecommendation]],
        profile: PreferenceProfile,
    ) -> CacheEntry:
        entry = CacheEntry(
            recommendations={category: tuple(recs) for category, recs in recommendations.items()},
            profile=profile,
            written_at=self._clock(),
        )
        with self._lock:
            self._entries[user_id] = entry
        return entry

    def invalidate(self, user_id: str) -> bool:
        with self._lock:
            return self._entries.pop(user_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
