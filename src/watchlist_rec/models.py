"""Data records passed between pipeline stages."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .config import FALLBACK_ITEM_RATING, IMDB_TITLE_URL


class MediaKind(str, Enum):
    """Catalog media kinds; values match the provider's `Type` field."""
    MOVIE = "movie"
    SERIES = "series"

    @classmethod
    def parse(cls, value: "str | MediaKind") -> "MediaKind":
        if isinstance(value, MediaKind):
            return value
        normalized = str(value).strip().lower()
        if normalized == "tv":
            return cls.SERIES
        return cls(normalized)


def decade_label(year: int) -> str:
    """Map a release year onto its decade label, e.g. 1994 -> '1990s'."""
    return f"{(year // 10) * 10}s"


@dataclass(frozen=True)
class WatchHistoryItem:
    """A previously watched or rated item, as read from the history store."""
    title: str
    item_id: str | None = None
    genres: tuple[str, ...] = ()
    year: int | None = None
    countries: tuple[str, ...] = ()
    directors: tuple[str, ...] = ()
    actors: tuple[str, ...] = ()
    user_rating: float | None = None
    catalog_rating: float | None = None
    created_at: datetime | None = None

    @property
    def rating(self) -> float | None:
        """User rating when present, otherwise the catalog rating."""
        if self.user_rating:
            return float(self.user_rating)
        if self.catalog_rating:
            return float(self.catalog_rating)
        return None

    @property
    def effective_rating(self) -> float:
        rating = self.rating
        return rating if rating is not None else FALLBACK_ITEM_RATING


@dataclass(frozen=True)
class CandidateSummary:
    """Search hit: enough to filter cheaply before paying for a detail fetch."""
    item_id: str
    title: str
    year: int | None
    kind: MediaKind
    poster: str | None = None


@dataclass(frozen=True)
class CandidateDetail:
    """Full catalog record for one candidate."""
    item_id: str
    title: str
    year: int | None = None
    genres: tuple[str, ...] = ()
    rating: float | None = None
    directors: tuple[str, ...] = ()
    actors: tuple[str, ...] = ()
    countries: tuple[str, ...] = ()
    poster: str | None = None
    kind: MediaKind = MediaKind.MOVIE


@dataclass(frozen=True)
class ScoredRecommendation:
    """A ranked result; the only artifact stored in the result cache."""
    item_id: str
    title: str
    year: int | None
    genres: tuple[str, ...]
    rating: float | None
    poster: str | None
    kind: MediaKind
    score: float
    confidence: float
    reasoning: tuple[str, ...] = ()
    is_discovery: bool = False

    @property
    def reason(self) -> str:
        return ". ".join(self.reasoning)

    @property
    def url(self) -> str:
        return IMDB_TITLE_URL.format(self.item_id)

    @classmethod
    def from_detail(
        cls,
        detail: CandidateDetail,
        score: float,
        confidence: float,
        reasoning: list[str] | tuple[str, ...],
        is_discovery: bool = False,
    ) -> "ScoredRecommendation":
        return cls(
            item_id=detail.item_id,
            title=detail.title,
            year=detail.year,
            genres=detail.genres,
            rating=detail.rating,
            poster=detail.poster,
            kind=detail.kind,
            score=score,
            confidence=confidence,
            reasoning=tuple(reasoning),
            is_discovery=is_discovery,
        )


@dataclass(frozen=True)
class ExclusionItem:
    """
    A "not interested" mark.

    Tag fields are optional; when recorded they feed rejection-rate statistics.
    """
    item_id: str
    kind: MediaKind = MediaKind.MOVIE
    genres: tuple[str, ...] = ()
    directors: tuple[str, ...] = ()
    actors: tuple[str, ...] = ()
    created_at: datetime | None = field(default=None, compare=False)
