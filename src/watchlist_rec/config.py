"""
Configuration constants for the watchlist recommendation pipeline.

This module centralizes all magic numbers and configurable parameters.
Values that depend on the deployment (provider quota, cache lifetime, API
credentials) can be overridden via environment variables.
"""
import os
import logging

logger = logging.getLogger(__name__)


def _get_float_env(key: str, default: float, min_val: float = 0) -> float:
    """
    Safely parse float from environment variable with validation.

    Args:
        key: Environment variable name
        default: Default value if not set or invalid
        min_val: Minimum allowed value

    Returns:
        Validated float value
    """
    try:
        val = float(os.environ.get(key, default))
        if val < min_val:
            logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
            return min_val
        return val
    except ValueError:
        logger.warning(f"Invalid {key}='{os.environ.get(key)}', using default {default}")
        return default


def _get_int_env(key: str, default: int, min_val: int = 1) -> int:
    """
    Safely parse integer from environment variable with validation.

    Args:
        key: Environment variable name
        default: Default value if not set or invalid
        min_val: Minimum allowed value

    Returns:
        Validated integer value
    """
    try:
        val = int(os.environ.get(key, default))
        if val < min_val:
            logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
            return min_val
        return val
    except ValueError:
        logger.warning(f"Invalid {key}='{os.environ.get(key)}', using default {default}")
        return default


# Catalog provider (OMDb-compatible)
OMDB_API_KEY = os.environ.get("OMDB_API_KEY", "")
OMDB_BASE_URL = os.environ.get("OMDB_BASE_URL", "https://www.omdbapi.com/")
IMDB_TITLE_URL = "https://www.imdb.com/title/{}/"

# Throttling and HTTP
CATALOG_MIN_INTERVAL = _get_float_env("WATCHREC_CATALOG_MIN_INTERVAL", 0.2, min_val=0.0)
HTTP_TIMEOUT = _get_float_env("WATCHREC_HTTP_TIMEOUT", 30.0, min_val=1.0)
MAX_HTTP_RETRIES = _get_int_env("WATCHREC_MAX_HTTP_RETRIES", 3, min_val=1)
RETRY_INITIAL_DELAY = 1.0

# Result cache
CACHE_TTL_HOURS = _get_float_env("WATCHREC_CACHE_TTL_HOURS", 24.0, min_val=0.0)

ENGINE_VERSION = "1.0.0-dynamic"

# History sampling
HISTORY_SAMPLE_TRIGGER = 100   # Histories above this size get sampled
HISTORY_RECENT_SAMPLE = 50
HISTORY_TOP_RATED_SAMPLE = 50
HISTORY_TOP_RATED_MIN = 7.0
FALLBACK_ITEM_RATING = 7.0     # Used when an item has neither user nor catalog rating

# Profile blends: weight = rating_score * blend + frequency_weight * (1 - blend)
GENRE_RATING_BLEND = 0.7
GENRE_FREQUENCY_SCALE = 3.0
ERA_RATING_BLEND = 0.6
ERA_FREQUENCY_SCALE = 2.0
COUNTRY_RATING_BLEND = 0.7
COUNTRY_FREQUENCY_SCALE = 2.0

# Talent / country floors (avoid one-off noise)
TALENT_MIN_OCCURRENCES = 2
TALENT_MIN_MEAN_RATING = 6.5
MAX_ACTORS_CONSIDERED = 3
DIRECTOR_FREQUENCY_DIVISOR = 10.0
DIRECTOR_FREQUENCY_BONUS_CAP = 0.5
ACTOR_FREQUENCY_DIVISOR = 8.0
ACTOR_FREQUENCY_BONUS_CAP = 0.3

# Profile used when history is empty
DEFAULT_GENRE_WEIGHTS = {'Drama': 0.7, 'Comedy': 0.6, 'Action': 0.5, 'Thriller': 0.4}
DEFAULT_ERA_WEIGHTS = {'2020s': 0.8, '2010s': 0.7, '2000s': 0.5, '1990s': 0.3}
DEFAULT_COUNTRY_WEIGHTS = {'USA': 0.8, 'UK': 0.4}
DEFAULT_RATING_THRESHOLD = 6.5
DEFAULT_AVERAGE_RATING = 7.0
DEFAULT_RATING_STDDEV = 1.0

# Query generation thresholds
QUERY_GENRE_MIN_WEIGHT = 0.3
QUERY_ERA_MIN_WEIGHT = 0.4
QUERY_DIRECTOR_MIN_WEIGHT = 0.5
QUERY_TOP_GENRES = 3
QUERY_TOP_ERAS = 2
QUERY_TOP_DIRECTORS = 2
QUERY_QUALITY_THRESHOLD = 7.5
MAX_QUERIES = 6

# Candidate filtering
FILTER_CONTENT_GENRES = {'action', 'thriller', 'crime'}
FILTER_EXCLUDE_KEYWORDS = (
    'kids', 'children', 'family', 'baby', 'cartoon', 'disney',
    'teenage', 'teen', 'high school', 'college', 'romance',
    'wedding', 'christmas', 'holiday', 'musical', 'sing',
)
FILTER_MODERN_CUTOFF_YEAR = 2000
FILTER_CLASSIC_ERAS = ('1980s', '1990s')
FILTER_CLASSIC_MIN_WEIGHT = 0.3
MAX_RESULTS_PER_QUERY = 2

# Scoring weights (must total 1.0)
FACTOR_WEIGHTS = {
    'genre': 0.35,
    'era': 0.25,
    'quality': 0.20,
    'avoidance': 0.15,
    'talent': 0.05,
}

# Orchestration limits
MAX_ACCEPTED_PER_CATEGORY = 10
DISCOVERY_TRIGGER_COUNT = 8
MIN_RECOMMENDATION_SCORE = 0.3
DEFAULT_REASON = "Recommended based on your viewing history."

# Discovery
DISCOVERY_GENRES = ('Documentary', 'Animation', 'Musical', 'Western', 'Film-Noir')
DISCOVERY_MAX_GENRE_WEIGHT = 0.2
DISCOVERY_SCORE = 0.4
DISCOVERY_CONFIDENCE = 0.6
