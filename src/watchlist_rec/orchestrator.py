"""
Recommendation pipeline driver.

cache check -> profile build -> per-category (queries -> filter -> detail
fetch + score -> discovery -> rank) -> cache write. Runs for the same user
are serialized; runs for different users are independent, each with its own
throttled catalog client.
"""

import logging
import threading
from contextlib import ExitStack, contextmanager
from datetime import datetime
from typing import Callable, Iterable

from .cache import ResultCache
from .catalog import CatalogClient, CatalogError, ThrottledCatalogClient
from .discovery import DiscoveryAugmenter
from .exclusions import ExclusionPatterns, build_exclusion_patterns, build_exclusion_set
from .filtering import filter_candidates
from .models import ExclusionItem, MediaKind, ScoredRecommendation
from .profile import PreferenceProfile, build_profile
from .queries import generate_queries
from .scoring import ScoringEngine
from .stores import ExclusionStore, WatchHistoryStore
from .config import (
    CATALOG_MIN_INTERVAL,
    MAX_ACCEPTED_PER_CATEGORY,
    DISCOVERY_TRIGGER_COUNT,
    MIN_RECOMMENDATION_SCORE,
    DEFAULT_REASON,
    ENGINE_VERSION,
)

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = (MediaKind.MOVIE, MediaKind.SERIES)


def rank_recommendations(
    recommendations: Iterable[ScoredRecommendation],
    limit: int = MAX_ACCEPTED_PER_CATEGORY,
) -> list[ScoredRecommendation]:
    """Highest score first; equal scores keep discovery order (sorted() is stable)."""
    return sorted(recommendations, key=lambda r: -r.score)[:limit]


class _UserLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class RecommendationOrchestrator:
    """Single entry point for generating and invalidating recommendations."""

    def __init__(
        self,
        history_store: WatchHistoryStore,
        exclusion_store: ExclusionStore,
        catalog: CatalogClient,
        cache: ResultCache | None = None,
        scoring_engine: ScoringEngine | None = None,
        discovery: DiscoveryAugmenter | None = None,
        min_interval: float = CATALOG_MIN_INTERVAL,
        client_factory: Callable[[], ThrottledCatalogClient] | None = None,
        current_year: int | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.history_store = history_store
        self.exclusion_store = exclusion_store
        self.catalog = catalog
        self.cache = cache or ResultCache(clock=clock)
        self.scoring_engine = scoring_engine or ScoringEngine()
        self.discovery = discovery or DiscoveryAugmenter()
        self.client_factory = client_factory or (lambda: ThrottledCatalogClient(catalog, min_interval))
        self._current_year = current_year
        self._clock = clock

        self._user_locks: dict[str, _UserLock] = {}
        self._user_locks_guard = threading.Lock()
        self._latched_users: set[str] = set()
        self._last_fallback = False

    @contextmanager
    def _user_lock(self, user_id: str):
        """
        Hold the user's lock for the duration of the block.

        Entries are reference-counted (holders plus waiters) and removed once
        unused, so the table only holds users with work in flight.
        """
        with self._user_locks_guard:
            entry = self._user_locks.get(user_id)
            if entry is None:
                entry = self._user_locks[user_id] = _UserLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._user_locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._user_locks[user_id]

    def current_year(self) -> int:
        return self._current_year if self._current_year is not None else self._clock().year

    def generate_recommendations(
        self,
        user_id: str,
        categories: Iterable[MediaKind | str] | MediaKind | str = DEFAULT_CATEGORIES,
    ) -> dict[str, list[ScoredRecommendation]]:
        """
        Ranked recommendations per category, served from cache when fresh.

        Catalog failures degrade to partial (possibly empty) results; only
        errors from the history or exclusion stores propagate.
        """
        if isinstance(categories, str):
            categories = (categories,)
        kinds = list(dict.fromkeys(MediaKind.parse(c) for c in categories))

        with self._user_lock(user_id):
            entry = self.cache.get(user_id)
            if entry is not None and all(k.value in entry.recommendations for k in kinds):
                logger.info(f"Using cached recommendations for {user_id}")
                return {k.value: list(entry.recommendations[k.value]) for k in kinds}

            logger.info(f"Generating recommendations for {user_id}: {[k.value for k in kinds]}")
            history = self.history_store.list(user_id)
            not_interested_ids = self.exclusion_store.list_ids(user_id)
            not_interested = self.exclusion_store.list_items(user_id)

            profile = build_profile(history)
            excluded = build_exclusion_set(history, not_interested_ids)
            patterns = build_exclusion_patterns(not_interested, history)

            client = self.client_factory()
            # Latch survives cache expiry; only invalidate_user_cache clears it
            if user_id in self._latched_users:
                logger.warning(f"Catalog fallback still latched for {user_id}, skipping catalog lookups")
                client.fallback_mode = True
            year = self.current_year()
            results: dict[str, list[ScoredRecommendation]] = {}
            for kind in kinds:
                results[kind.value] = self._generate_category(kind, profile, patterns, excluded, client, year)

            if client.fallback_mode:
                self._latched_users.add(user_id)
            self._last_fallback = client.fallback_mode
            self.cache.set(user_id, results, profile)

            logger.info(
                f"Generated recommendations for {user_id}: "
                f"{ {category: len(recs) for category, recs in results.items()} }"
                + (" (fallback mode)" if client.fallback_mode else "")
            )
            return {category: list(recs) for category, recs in results.items()}

    def _generate_category(
        self,
        kind: MediaKind,
        profile: PreferenceProfile,
        patterns: ExclusionPatterns,
        excluded: frozenset[str],
        client: ThrottledCatalogClient,
        year: int,
    ) -> list[ScoredRecommendation]:
        queries = generate_queries(profile, kind, year)
        logger.debug(f"Queries for {kind.value}: {queries}")

        accepted: list[ScoredRecommendation] = []
        accepted_ids: set[str] = set()

        for query in queries:
            if len(accepted) >= MAX_ACCEPTED_PER_CATEGORY:
                break
            if client.fallback_mode:
                logger.info("Skipping remaining searches due to rate limit fallback mode")
                break

            try:
                results = client.search(query)
            except CatalogError as e:
                logger.error(f"Search failed for {query!r}: {e}")
                continue
            if results is None:
                break
            if not results:
                logger.debug(f"No results for {query!r}")
                continue

            for summary in filter_candidates(results, kind, excluded, profile):
                if len(accepted) >= MAX_ACCEPTED_PER_CATEGORY:
                    break
                if summary.item_id in accepted_ids:
                    continue

                try:
                    detail = client.details(summary.item_id)
                except CatalogError as e:
                    logger.error(f"Failed to get details for {summary.item_id}: {e}")
                    continue
                if detail is None:
                    break

                if detail.year is not None and detail.year > year:
                    continue
                if detail.item_id in excluded or detail.item_id in accepted_ids:
                    continue

                scored = self.scoring_engine.score(detail, profile, patterns)
                if scored.score < MIN_RECOMMENDATION_SCORE:
                    logger.debug(f"Dropping {detail.item_id}: score {scored.score:.3f}")
                    continue

                accepted.append(ScoredRecommendation.from_detail(
                    detail,
                    score=scored.score,
                    confidence=scored.confidence,
                    reasoning=scored.reasoning or [DEFAULT_REASON],
                ))
                accepted_ids.add(detail.item_id)

        if len(accepted) < DISCOVERY_TRIGGER_COUNT and not client.fallback_mode:
            pick = self.discovery.augment(client, profile, kind, excluded, year, existing_ids=accepted_ids)
            if pick is not None:
                accepted.append(pick)

        return rank_recommendations(accepted)

    def add_not_interested(
        self,
        user_id: str,
        item_id: str,
        kind: MediaKind | str = MediaKind.MOVIE,
        genres: Iterable[str] = (),
        directors: Iterable[str] = (),
        actors: Iterable[str] = (),
    ) -> None:
        """Mark an item as not interesting; the tags feed rejection-rate statistics."""
        item = ExclusionItem(
            item_id=item_id,
            kind=MediaKind.parse(kind),
            genres=tuple(genres),
            directors=tuple(directors),
            actors=tuple(actors),
        )
        with self._user_lock(user_id):
            self.exclusion_store.add(user_id, item)
            self.invalidate_user_cache(user_id)

    def remove_not_interested(self, user_id: str, item_id: str) -> None:
        with self._user_lock(user_id):
            self.exclusion_store.remove(user_id, item_id)
            self.invalidate_user_cache(user_id)

    def invalidate_user_cache(self, user_id: str) -> None:
        """Drop the cached result and clear the user's fallback latch."""
        with self._user_lock(user_id):
            self.cache.invalidate(user_id)
            self._latched_users.discard(user_id)
        logger.info(f"User cache cleared for {user_id}")

    def clear_all_caches(self) -> None:
        """
        Drop every cached result and latch.

        Waits for in-flight runs (users holding or awaiting a lock when the
        clear starts) so none of them writes back afterwards. Locks are taken
        in sorted order; runs only ever hold their own user's lock.
        """
        with self._user_locks_guard:
            active_users = sorted(self._user_locks)
        with ExitStack() as stack:
            for user_id in active_users:
                stack.enter_context(self._user_lock(user_id))
            self.cache.clear()
            self._latched_users.clear()
            self._last_fallback = False
        logger.info("All caches cleared")

    def is_fallback_active(self, user_id: str) -> bool:
        """Whether the user's most recent run tripped the rate-limit latch."""
        return user_id in self._latched_users

    def engine_info(self) -> dict:
        usage_stats = getattr(self.catalog, "usage_stats", None)
        cache_size = len(self.cache)
        return {
            "cache_size": cache_size,
            "last_analysis": "Available" if cache_size > 0 else None,
            "version": ENGINE_VERSION,
            "fallback_mode": self._last_fallback,
            "catalog_usage": usage_stats() if callable(usage_stats) else None,
        }
