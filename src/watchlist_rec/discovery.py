"""
Discovery picks: one candidate from a genre the user rarely watches, to keep
recommendations from converging on the same few genres.
"""

import logging
from typing import Iterable

from .catalog import CatalogError, ThrottledCatalogClient
from .models import MediaKind, ScoredRecommendation
from .profile import PreferenceProfile
from .config import (
    DISCOVERY_GENRES,
    DISCOVERY_MAX_GENRE_WEIGHT,
    DISCOVERY_SCORE,
    DISCOVERY_CONFIDENCE,
)

logger = logging.getLogger(__name__)


class DiscoveryAugmenter:
    """Injects at most one fixed-score candidate per call; bypasses the scoring engine."""

    def __init__(self, genres: Iterable[str] = DISCOVERY_GENRES):
        self.genres = tuple(genres)

    def pick_genre(self, profile: PreferenceProfile) -> str | None:
        """Least-preferred eligible genre; earlier entries win ties."""
        candidates = [
            (profile.genre_weight(genre), index, genre)
            for index, genre in enumerate(self.genres)
            if profile.genre_weight(genre) < DISCOVERY_MAX_GENRE_WEIGHT
        ]
        if not candidates:
            return None
        return min(candidates)[2]

    def augment(
        self,
        client: ThrottledCatalogClient,
        profile: PreferenceProfile,
        kind: MediaKind,
        excluded_ids: frozenset[str] | set[str],
        current_year: int,
        existing_ids: Iterable[str] = (),
    ) -> ScoredRecommendation | None:
        genre = self.pick_genre(profile)
        if genre is None:
            logger.debug("No underrepresented genre available for discovery")
            return None

        skip = set(excluded_ids) | set(existing_ids)
        try:
            results = client.search(f"best {genre.lower()}")
            if not results:
                return None

            summary = next((r for r in results if r.kind == kind and r.item_id not in skip), None)
            if summary is None:
                return None

            detail = client.details(summary.item_id)
        except CatalogError as e:
            logger.error(f"Discovery search failed for {genre}: {e}")
            return None

        if detail is None or detail.item_id in skip:
            return None
        if detail.year is not None and detail.year > current_year:
            logger.debug(f"Discovery candidate {detail.item_id} is not released yet")
            return None

        logger.debug(f"Discovery pick for {kind.value}: {detail.title} ({genre})")
        return ScoredRecommendation.from_detail(
            detail,
            score=DISCOVERY_SCORE,
            confidence=DISCOVERY_CONFIDENCE,
            reasoning=[f"Discovery: explore {genre}"],
            is_discovery=True,
        )
