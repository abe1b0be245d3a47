import logging
from typing import Iterable

from .models import CandidateSummary, MediaKind
from .profile import PreferenceProfile
from .config import (
    QUERY_GENRE_MIN_WEIGHT,
    FILTER_CONTENT_GENRES,
    FILTER_EXCLUDE_KEYWORDS,
    FILTER_MODERN_CUTOFF_YEAR,
    FILTER_CLASSIC_ERAS,
    FILTER_CLASSIC_MIN_WEIGHT,
    MAX_RESULTS_PER_QUERY,
)

logger = logging.getLogger(__name__)


def is_relevant(summary: CandidateSummary, profile: PreferenceProfile) -> bool:
    """Title/year heuristics applied before spending a detail fetch."""
    title = summary.title.lower()
    liked_genres = {g.lower() for g, _ in profile.top('genre', QUERY_GENRE_MIN_WEIGHT)}

    # Fans of action/thriller/crime rarely want family or romance titles
    if liked_genres & FILTER_CONTENT_GENRES:
        if any(keyword in title for keyword in FILTER_EXCLUDE_KEYWORDS):
            return False

    if summary.year is not None and summary.year < FILTER_MODERN_CUTOFF_YEAR:
        has_classic_taste = any(
            profile.era_weights.get(era, 0.0) > FILTER_CLASSIC_MIN_WEIGHT
            for era in FILTER_CLASSIC_ERAS
        )
        if not has_classic_taste:
            return False

    return True


def filter_candidates(
    summaries: Iterable[CandidateSummary],
    kind: MediaKind,
    excluded_ids: frozenset[str] | set[str],
    profile: PreferenceProfile,
    limit: int = MAX_RESULTS_PER_QUERY,
) -> list[CandidateSummary]:
    """
    Narrow one query's search results:
    1. matching media kind
    2. not in the exclusion set
    3. passes is_relevant()
    4. at most `limit` survivors, in search order
    """
    summaries = list(summaries)
    kept = [
        s for s in summaries
        if s.kind == kind and s.item_id not in excluded_ids and is_relevant(s, profile)
    ][:limit]
    logger.debug(f"Filtered {len(summaries)} search results down to {len(kept)}")
    return kept
