import logging
from collections import defaultdict
from dataclasses import dataclass, field
from statistics import mean, pstdev
from typing import Iterable

from .models import WatchHistoryItem, decade_label
from .utils import clamp
from .config import (
    HISTORY_SAMPLE_TRIGGER,
    HISTORY_RECENT_SAMPLE,
    HISTORY_TOP_RATED_SAMPLE,
    HISTORY_TOP_RATED_MIN,
    GENRE_RATING_BLEND,
    GENRE_FREQUENCY_SCALE,
    ERA_RATING_BLEND,
    ERA_FREQUENCY_SCALE,
    COUNTRY_RATING_BLEND,
    COUNTRY_FREQUENCY_SCALE,
    TALENT_MIN_OCCURRENCES,
    TALENT_MIN_MEAN_RATING,
    MAX_ACTORS_CONSIDERED,
    DIRECTOR_FREQUENCY_DIVISOR,
    DIRECTOR_FREQUENCY_BONUS_CAP,
    ACTOR_FREQUENCY_DIVISOR,
    ACTOR_FREQUENCY_BONUS_CAP,
    DEFAULT_GENRE_WEIGHTS,
    DEFAULT_ERA_WEIGHTS,
    DEFAULT_COUNTRY_WEIGHTS,
    DEFAULT_RATING_THRESHOLD,
    DEFAULT_AVERAGE_RATING,
    DEFAULT_RATING_STDDEV,
)

logger = logging.getLogger(__name__)


@dataclass
class PreferenceProfile:
    """Weighted summary of a user's viewing preferences. All weights lie in [0, 1]."""
    genre_weights: dict[str, float] = field(default_factory=dict)
    era_weights: dict[str, float] = field(default_factory=dict)
    director_weights: dict[str, float] = field(default_factory=dict)
    actor_weights: dict[str, float] = field(default_factory=dict)
    country_weights: dict[str, float] = field(default_factory=dict)
    rating_threshold: float = DEFAULT_RATING_THRESHOLD
    average_rating: float = DEFAULT_AVERAGE_RATING
    rating_stddev: float = DEFAULT_RATING_STDDEV
    history_size: int = 0
    is_default: bool = False

    def top(self, dimension: str, min_weight: float = 0.0, limit: int | None = None) -> list[tuple[str, float]]:
        """
        Entries of one weight map strictly above min_weight.

        Ordered by weight descending, ties broken by key ascending, so the
        result never depends on dict insertion order.
        """
        weights: dict[str, float] = getattr(self, f"{dimension}_weights")
        ranked = sorted(
            ((key, weight) for key, weight in weights.items() if weight > min_weight),
            key=lambda kv: (-kv[1], kv[0]),
        )
        return ranked[:limit] if limit is not None else ranked

    def genre_weight(self, genre: str) -> float:
        """Case-insensitive genre lookup (catalogs disagree on capitalization)."""
        if genre in self.genre_weights:
            return self.genre_weights[genre]
        lowered = genre.lower()
        for key, weight in self.genre_weights.items():
            if key.lower() == lowered:
                return weight
        return 0.0


def default_profile() -> PreferenceProfile:
    """Moderate profile used when there is no history to learn from."""
    return PreferenceProfile(
        genre_weights=dict(DEFAULT_GENRE_WEIGHTS),
        era_weights=dict(DEFAULT_ERA_WEIGHTS),
        country_weights=dict(DEFAULT_COUNTRY_WEIGHTS),
        rating_threshold=DEFAULT_RATING_THRESHOLD,
        average_rating=DEFAULT_AVERAGE_RATING,
        rating_stddev=DEFAULT_RATING_STDDEV,
        history_size=0,
        is_default=True,
    )


def _history_key(item: WatchHistoryItem) -> object:
    return item.item_id if item.item_id else (item.title, item.year)


def sample_history(items: list[WatchHistoryItem]) -> list[WatchHistoryItem]:
    """
    Bound the cost of large histories.

    Items are expected newest-first. Above HISTORY_SAMPLE_TRIGGER items we keep
    the most recent slice plus the highest user-rated slice (>= 7), deduplicated
    by catalog ID, so neither recency nor quality dominates on its own.
    """
    if len(items) <= HISTORY_SAMPLE_TRIGGER:
        return list(items)

    recent = items[:HISTORY_RECENT_SAMPLE]
    highest_rated = sorted(
        (i for i in items if i.user_rating and i.user_rating >= HISTORY_TOP_RATED_MIN),
        key=lambda i: -i.user_rating,
    )[:HISTORY_TOP_RATED_SAMPLE]

    combined = list(recent)
    seen = {_history_key(i) for i in recent}
    for item in highest_rated:
        key = _history_key(item)
        if key not in seen:
            seen.add(key)
            combined.append(item)

    logger.debug(f"Sampled {len(combined)} of {len(items)} history items")
    return combined


def _rating_score(avg_rating: float) -> float:
    """Map ratings 5-10 onto 0-1; anything at or below 5 is 0."""
    return max(0.0, (avg_rating - 5) / 5)


def _group_ratings(
    items: Iterable[WatchHistoryItem],
    values_for,
) -> dict[str, list[float]]:
    groups: dict[str, list[float]] = defaultdict(list)
    for item in items:
        rating = item.effective_rating
        # An item contributes once per distinct value
        for value in dict.fromkeys(values_for(item)):
            if value:
                groups[value].append(rating)
    return groups


def _blended_weights(
    groups: dict[str, list[float]],
    history_size: int,
    rating_blend: float,
    frequency_scale: float,
) -> dict[str, float]:
    weights = {}
    for value, ratings in groups.items():
        frequency = len(ratings) / history_size
        frequency_weight = min(frequency * frequency_scale, 1.0)
        weight = _rating_score(mean(ratings)) * rating_blend + frequency_weight * (1 - rating_blend)
        weights[value] = clamp(weight)
    return weights


def _talent_weights(
    groups: dict[str, list[float]],
    frequency_divisor: float,
    bonus_cap: float,
) -> dict[str, float]:
    """People need repeat appearances with good ratings before they count."""
    weights = {}
    for name, ratings in groups.items():
        if len(ratings) < TALENT_MIN_OCCURRENCES:
            continue
        avg_rating = mean(ratings)
        if avg_rating < TALENT_MIN_MEAN_RATING:
            continue
        bonus = min(len(ratings) / frequency_divisor, bonus_cap)
        weights[name] = clamp(_rating_score(avg_rating) + bonus)
    return weights


def _country_weights(groups: dict[str, list[float]], history_size: int) -> dict[str, float]:
    eligible = {
        country: ratings for country, ratings in groups.items()
        if len(ratings) >= TALENT_MIN_OCCURRENCES and mean(ratings) >= TALENT_MIN_MEAN_RATING
    }
    return _blended_weights(eligible, history_size, COUNTRY_RATING_BLEND, COUNTRY_FREQUENCY_SCALE)


def build_profile(history: list[WatchHistoryItem]) -> PreferenceProfile:
    """
    Build a preference profile from a user's watch history.

    Per dimension, items are grouped by value (multi-valued fields count once
    per value) and each group is weighted by its mean rating and frequency:

    - Genre:    0.7 * rating_score + 0.3 * min(freq * 3, 1)
    - Era:      0.6 * rating_score + 0.4 * min(freq * 2, 1)
    - Country:  0.7 * rating_score + 0.3 * min(freq * 2, 1)
    - Director: rating_score + min(count / 10, 0.5)
    - Actor:    rating_score + min(count / 8, 0.3), top 3 billed only

    where rating_score = max(0, (mean_rating - 5) / 5). Directors, actors and
    countries need at least 2 items averaging 6.5 or better. Every weight is
    clamped to [0, 1].

    An empty or unusable history yields default_profile(); this never raises.
    """
    items = [i for i in (history or []) if isinstance(i, WatchHistoryItem)]
    if not items:
        logger.debug("Empty watch history, using default profile")
        return default_profile()

    items = sample_history(items)
    history_size = len(items)

    ratings = [i.rating for i in items if i.rating is not None]
    average_rating = mean(ratings) if ratings else DEFAULT_AVERAGE_RATING
    # Population std dev keeps small samples deterministic
    rating_stddev = pstdev(ratings) if ratings else DEFAULT_RATING_STDDEV
    rating_threshold = max(1.0, average_rating - rating_stddev)

    genre_groups = _group_ratings(items, lambda i: i.genres)
    era_groups = _group_ratings(
        items, lambda i: [decade_label(i.year)] if isinstance(i.year, int) and i.year > 0 else []
    )
    director_groups = _group_ratings(items, lambda i: i.directors)
    actor_groups = _group_ratings(items, lambda i: i.actors[:MAX_ACTORS_CONSIDERED])
    country_groups = _group_ratings(items, lambda i: i.countries)

    profile = PreferenceProfile(
        genre_weights=_blended_weights(genre_groups, history_size, GENRE_RATING_BLEND, GENRE_FREQUENCY_SCALE),
        era_weights=_blended_weights(era_groups, history_size, ERA_RATING_BLEND, ERA_FREQUENCY_SCALE),
        director_weights=_talent_weights(director_groups, DIRECTOR_FREQUENCY_DIVISOR, DIRECTOR_FREQUENCY_BONUS_CAP),
        actor_weights=_talent_weights(actor_groups, ACTOR_FREQUENCY_DIVISOR, ACTOR_FREQUENCY_BONUS_CAP),
        country_weights=_country_weights(country_groups, history_size),
        rating_threshold=rating_threshold,
        average_rating=average_rating,
        rating_stddev=rating_stddev,
        history_size=history_size,
    )

    logger.debug(
        f"Built profile from {history_size} items: "
        f"top genres {profile.top('genre', limit=3)}, "
        f"top eras {profile.top('era', limit=2)}, "
        f"threshold {rating_threshold:.2f}, average {average_rating:.2f}"
    )
    return profile
