"""
Exclusion handling: which catalog IDs to skip, and which tags the user rejects.

The skip-set is applied unconditionally before scoring. Rejection rates feed
the avoidance factor of the scoring engine.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from .models import ExclusionItem, WatchHistoryItem

logger = logging.getLogger(__name__)


def build_exclusion_set(
    history: Iterable[WatchHistoryItem],
    not_interested_ids: Iterable[str],
) -> frozenset[str]:
    """Union of watched catalog IDs and explicit not-interested IDs."""
    watched = {item.item_id for item in history if item.item_id}
    excluded = frozenset(watched | {i for i in not_interested_ids if i})
    logger.debug(f"Exclusion set: {len(watched)} watched, {len(excluded)} total")
    return excluded


@dataclass
class ExclusionPatterns:
    """Per-tag rejection rates in [0, 1]; missing tags mean 0."""
    rejected_genres: dict[str, float] = field(default_factory=dict)
    rejected_directors: dict[str, float] = field(default_factory=dict)
    rejected_actors: dict[str, float] = field(default_factory=dict)
    total_rejected: int = 0

    def genre_rate(self, genre: str) -> float:
        return self.rejected_genres.get(genre, 0.0)

    def director_rate(self, director: str) -> float:
        return self.rejected_directors.get(director, 0.0)

    def actor_rate(self, actor: str) -> float:
        return self.rejected_actors.get(actor, 0.0)


def _rates(rejected_counts: dict[str, int], seen_counts: dict[str, int]) -> dict[str, float]:
    return {
        tag: rejected / seen_counts[tag]
        for tag, rejected in rejected_counts.items()
        if seen_counts[tag] > 0
    }


def build_exclusion_patterns(
    rejected: Iterable[ExclusionItem],
    history: Iterable[WatchHistoryItem] = (),
) -> ExclusionPatterns:
    """
    Compute rejection rates from not-interested marks.

    rate(tag) = times_rejected_with_tag / times_seen_with_tag, where an item is
    "seen" with a tag if it was either rejected or watched with that tag.
    """
    rejected = list(rejected)
    if not rejected:
        return ExclusionPatterns()

    dimensions = ('genres', 'directors', 'actors')
    rejected_counts = {d: defaultdict(int) for d in dimensions}
    seen_counts = {d: defaultdict(int) for d in dimensions}

    for item in rejected:
        for dim in dimensions:
            for tag in set(getattr(item, dim)):
                rejected_counts[dim][tag] += 1
                seen_counts[dim][tag] += 1

    for item in history:
        for dim in dimensions:
            for tag in set(getattr(item, dim)):
                # Only tags that were ever rejected need a denominator
                if tag in rejected_counts[dim]:
                    seen_counts[dim][tag] += 1

    return ExclusionPatterns(
        rejected_genres=_rates(rejected_counts['genres'], seen_counts['genres']),
        rejected_directors=_rates(rejected_counts['directors'], seen_counts['directors']),
        rejected_actors=_rates(rejected_counts['actors'], seen_counts['actors']),
        total_rejected=len(rejected),
    )
