"""
Catalog access: the provider contract, an OMDb adapter, and the throttled
wrapper the orchestrator uses for every external lookup.
"""

import logging
import re
import time
from typing import Any, Callable, Protocol, TypeVar

import httpx

from .models import CandidateDetail, CandidateSummary, MediaKind
from .utils import retry_with_backoff
from .config import (
    OMDB_API_KEY,
    OMDB_BASE_URL,
    HTTP_TIMEOUT,
    MAX_HTTP_RETRIES,
    RETRY_INITIAL_DELAY,
    CATALOG_MIN_INTERVAL,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')


class CatalogError(Exception):
    """Base class for catalog provider failures."""


class RateLimitedError(CatalogError):
    """Provider quota exhausted; further calls in this run would fail too."""


class NotFoundError(CatalogError):
    """Unknown ID or no matches."""


class TransientCatalogError(CatalogError):
    """Network, timeout or server-side failure for a single request."""


class CatalogClient(Protocol):
    def search(self, query: str) -> list[CandidateSummary]: ...

    def details(self, item_id: str) -> CandidateDetail: ...


_RATE_LIMIT_MARKERS = ("request limit reached", "limit reached")
_MISSING = "N/A"


def _is_rate_limit_message(message: str | None) -> bool:
    if not message:
        return False
    lowered = message.lower()
    return any(marker in lowered for marker in _RATE_LIMIT_MARKERS)


def _present(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text == _MISSING:
        return None
    return text


def _split_list(value: Any) -> tuple[str, ...]:
    """Split provider lists like 'Crime, Drama' into clean tuples."""
    text = _present(value)
    if not text:
        return ()
    return tuple(dict.fromkeys(part.strip() for part in text.split(",") if part.strip()))


def parse_year(value: Any) -> int | None:
    """Leading four-digit year; handles ranges like '2019–2023' and '2021–'."""
    text = _present(value)
    if not text:
        return None
    match = re.search(r"\d{4}", text)
    return int(match.group(0)) if match else None


def parse_rating(value: Any) -> float | None:
    text = _present(value)
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _parse_kind(value: Any) -> MediaKind | None:
    try:
        return MediaKind.parse(value)
    except ValueError:
        return None


def parse_search_payload(payload: dict) -> list[CandidateSummary]:
    """Map an OMDb search response onto summaries, skipping unsupported types."""
    summaries = []
    for entry in payload.get("Search") or []:
        item_id = _present(entry.get("imdbID"))
        kind = _parse_kind(entry.get("Type"))
        if not item_id or kind is None:
            logger.debug(f"Skipping search entry {entry.get('imdbID')!r} of type {entry.get('Type')!r}")
            continue
        summaries.append(CandidateSummary(
            item_id=item_id,
            title=_present(entry.get("Title")) or item_id,
            year=parse_year(entry.get("Year")),
            kind=kind,
            poster=_present(entry.get("Poster")),
        ))
    return summaries


def parse_detail_payload(payload: dict) -> CandidateDetail:
    """Map an OMDb title record onto a CandidateDetail."""
    item_id = _present(payload.get("imdbID"))
    if not item_id:
        raise NotFoundError("Detail payload has no imdbID")
    return CandidateDetail(
        item_id=item_id,
        title=_present(payload.get("Title")) or item_id,
        year=parse_year(payload.get("Year")),
        genres=_split_list(payload.get("Genre")),
        rating=parse_rating(payload.get("imdbRating")),
        directors=_split_list(payload.get("Director")),
        actors=_split_list(payload.get("Actors")),
        countries=_split_list(payload.get("Country")),
        poster=_present(payload.get("Poster")),
        kind=_parse_kind(payload.get("Type")) or MediaKind.MOVIE,
    )


class OMDbCatalogClient:
    """
    Catalog provider backed by the OMDb HTTP API.

    Raises RateLimitedError when the quota is exhausted (never retried),
    NotFoundError for unknown titles, and TransientCatalogError once
    timeouts/transport/5xx failures exhaust their retries.
    """

    def __init__(
        self,
        api_key: str = OMDB_API_KEY,
        base_url: str = OMDB_BASE_URL,
        client: httpx.Client | None = None,
        max_retries: int = MAX_HTTP_RETRIES,
        retry_delay: float = RETRY_INITIAL_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.client = client or httpx.Client(
            headers={"Accept": "application/json", "User-Agent": "watchlist-rec/0.1"},
            follow_redirects=True,
            timeout=HTTP_TIMEOUT,
        )
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep
        self.request_count = 0

    def _request(self, params: dict[str, str]) -> dict:
        try:
            resp = self.client.get(self.base_url, params={"apikey": self.api_key, **params})
        except httpx.TimeoutException as e:
            raise TransientCatalogError(f"Timeout calling catalog with {params}: {e}") from e
        except httpx.HTTPError as e:
            raise TransientCatalogError(f"Request error calling catalog with {params}: {e}") from e

        try:
            payload = resp.json()
        except ValueError:
            payload = {}

        error_message = payload.get("Error") if isinstance(payload, dict) else None

        if resp.status_code == 429 or _is_rate_limit_message(error_message):
            raise RateLimitedError(error_message or f"HTTP {resp.status_code}")
        if resp.status_code >= 500:
            raise TransientCatalogError(f"HTTP {resp.status_code} from catalog")
        if resp.status_code >= 400:
            raise CatalogError(f"HTTP {resp.status_code} from catalog: {error_message or resp.text[:200]}")
        if not isinstance(payload, dict) or not payload:
            raise TransientCatalogError("Catalog returned a non-JSON body")
        if payload.get("Response") == "False":
            raise NotFoundError(error_message or "Not found")

        self.request_count += 1
        return payload

    def _get(self, params: dict[str, str]) -> dict:
        fetch = retry_with_backoff(
            max_retries=self.max_retries,
            initial_delay=self.retry_delay,
            exceptions=(TransientCatalogError,),
            sleep=self._sleep,
        )(self._request)
        return fetch(params)

    def search(self, query: str) -> list[CandidateSummary]:
        logger.debug(f"Catalog search: {query!r}")
        try:
            payload = self._get({"s": query})
        except NotFoundError as e:
            logger.debug(f"No results for {query!r}: {e}")
            return []
        return parse_search_payload(payload)

    def details(self, item_id: str) -> CandidateDetail:
        logger.debug(f"Catalog details: {item_id}")
        return parse_detail_payload(self._get({"i": item_id, "plot": "full"}))

    def usage_stats(self) -> dict:
        return {"request_count": self.request_count}

    def close(self):
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class ThrottledCatalogClient:
    """
    Per-run wrapper enforcing a minimum interval between provider calls.

    The first RateLimitedError latches fallback_mode; from then on every call
    returns None ("unavailable") without touching the network. Only reset()
    clears the latch. Other CatalogErrors propagate to the caller unchanged.
    """

    def __init__(
        self,
        catalog: CatalogClient,
        min_interval: float = CATALOG_MIN_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.catalog = catalog
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self.last_request_at: float | None = None
        self.fallback_mode = False
        self.request_count = 0

    def _throttle(self) -> None:
        if self.last_request_at is not None:
            wait = self.min_interval - (self._clock() - self.last_request_at)
            if wait > 0:
                logger.debug(f"Throttling catalog request, waiting {wait:.3f}s")
                self._sleep(wait)

    def call(self, operation: Callable[..., T], *args) -> T | None:
        if self.fallback_mode:
            logger.debug("Catalog in fallback mode, skipping request")
            return None

        self._throttle()
        self.request_count += 1
        try:
            return operation(*args)
        except RateLimitedError as e:
            logger.warning(f"Catalog rate limit reached, entering fallback mode: {e}")
            self.fallback_mode = True
            return None
        finally:
            # Interval runs from the end of one call to the start of the next
            self.last_request_at = self._clock()

    def search(self, query: str) -> list[CandidateSummary] | None:
        return self.call(self.catalog.search, query)

    def details(self, item_id: str) -> CandidateDetail | None:
        return self.call(self.catalog.details, item_id)

    def reset(self) -> None:
        self.fallback_mode = False
        self.last_request_at = None
