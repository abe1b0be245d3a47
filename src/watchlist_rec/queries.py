"""Turn a preference profile into a short, ranked list of catalog search strings."""

import logging

from .models import MediaKind
from .profile import PreferenceProfile
from .config import (
    QUERY_GENRE_MIN_WEIGHT,
    QUERY_ERA_MIN_WEIGHT,
    QUERY_DIRECTOR_MIN_WEIGHT,
    QUERY_TOP_GENRES,
    QUERY_TOP_ERAS,
    QUERY_TOP_DIRECTORS,
    QUERY_QUALITY_THRESHOLD,
    MAX_QUERIES,
)

logger = logging.getLogger(__name__)

# (plain term, qualified term, "best" term) per media kind
_GENRE_TEMPLATES = {
    MediaKind.MOVIE: ("{} movie", "{} film high rated", "best {} movies"),
    MediaKind.SERIES: ("{} series", "{} tv show", "best {} series"),
}


def cold_profile_queries(kind: MediaKind, current_year: int) -> list[str]:
    """Quality-seeking searches for profiles without a clear genre signal."""
    if kind == MediaKind.SERIES:
        return [f"best series {current_year}", f"top tv {current_year - 1}", "acclaimed series"]
    return [f"best movies {current_year}", f"top rated {current_year - 1}", "critically acclaimed"]


def generate_queries(
    profile: PreferenceProfile,
    kind: MediaKind | str,
    current_year: int,
) -> list[str]:
    """
    Build at most MAX_QUERIES search strings, most targeted first.

    Identical profiles always produce identical lists: weighted entries are
    ranked by weight descending with the key as tie-breaker.
    """
    kind = MediaKind.parse(kind)

    top_genres = [g.lower() for g, _ in profile.top('genre', QUERY_GENRE_MIN_WEIGHT, QUERY_TOP_GENRES)]
    top_eras = [e for e, _ in profile.top('era', QUERY_ERA_MIN_WEIGHT, QUERY_TOP_ERAS)]
    top_directors = [d for d, _ in profile.top('director', QUERY_DIRECTOR_MIN_WEIGHT, QUERY_TOP_DIRECTORS)]

    logger.debug(
        f"Query inputs for {kind.value}: genres={top_genres} eras={top_eras} "
        f"directors={top_directors} threshold={profile.rating_threshold:.2f}"
    )

    if not top_genres:
        logger.debug("No strong genre preference, using quality-based searches")
        return cold_profile_queries(kind, current_year)

    plain, qualified, best = _GENRE_TEMPLATES[kind]
    terms: list[str] = []

    for genre in top_genres[:2]:
        terms.append(plain.format(genre))
        terms.append(qualified.format(genre))

    if len(top_genres) >= 2:
        terms.append(f"{top_genres[0]} {top_genres[1]}")

    if top_directors:
        terms.append(top_directors[0])

    terms.append(f"{top_genres[0]} {current_year}")

    if profile.rating_threshold >= QUERY_QUALITY_THRESHOLD:
        terms.append(best.format(top_genres[0]))

    # Dedupe, keeping first occurrence
    return list(dict.fromkeys(terms))[:MAX_QUERIES]
