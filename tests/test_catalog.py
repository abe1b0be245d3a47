import httpx
import pytest

from watchlist_rec.catalog import (
    CatalogError,
    NotFoundError,
    OMDbCatalogClient,
    RateLimitedError,
    ThrottledCatalogClient,
    TransientCatalogError,
    parse_rating,
    parse_year,
)
from watchlist_rec.models import MediaKind

BASE_URL = "https://omdb.test/"


def _client(handler, sleeps=None, max_retries=3):
    transport = httpx.MockTransport(handler)
    return OMDbCatalogClient(
        api_key="test-key",
        base_url=BASE_URL,
        client=httpx.Client(transport=transport),
        max_retries=max_retries,
        retry_delay=1.0,
        sleep=(sleeps.append if sleeps is not None else lambda _s: None),
    )


def test_parse_year_and_rating():
    assert parse_year("1979") == 1979
    assert parse_year("2019–2023") == 2019
    assert parse_year("2021–") == 2021
    assert parse_year("N/A") is None
    assert parse_rating("8.5") == 8.5
    assert parse_rating("N/A") is None
    assert parse_rating("bad") is None


def test_search_parses_results_and_skips_other_types():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(dict(request.url.params))
        return httpx.Response(200, json={
            "Search": [
                {"Title": "Alien", "Year": "1979", "imdbID": "tt0078748", "Type": "movie", "Poster": "N/A"},
                {"Title": "Dark", "Year": "2017–2020", "imdbID": "tt5753856", "Type": "series",
                 "Poster": "https://img.test/dark.jpg"},
                {"Title": "Alien: Isolation", "Year": "2014", "imdbID": "tt3000000", "Type": "game"},
            ],
            "totalResults": "3",
            "Response": "True",
        })

    results = _client(handler).search("alien")

    assert seen == [{"apikey": "test-key", "s": "alien"}]
    assert [r.item_id for r in results] == ["tt0078748", "tt5753856"]
    assert results[0].poster is None
    assert results[0].kind == MediaKind.MOVIE
    assert results[1].year == 2017
    assert results[1].kind == MediaKind.SERIES


def test_details_parses_record():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["i"] == "tt0078748"
        assert request.url.params["plot"] == "full"
        return httpx.Response(200, json={
            "Title": "Alien",
            "Year": "1979",
            "Genre": "Horror, Sci-Fi",
            "Director": "Ridley Scott",
            "Actors": "Sigourney Weaver, Tom Skerritt, John Hurt",
            "Country": "United Kingdom, United States",
            "imdbRating": "8.5",
            "imdbID": "tt0078748",
            "Type": "movie",
            "Poster": "https://img.test/alien.jpg",
            "Response": "True",
        })

    catalog = _client(handler)
    detail = catalog.details("tt0078748")

    assert detail.genres == ("Horror", "Sci-Fi")
    assert detail.directors == ("Ridley Scott",)
    assert detail.actors[0] == "Sigourney Weaver"
    assert detail.rating == 8.5
    assert detail.year == 1979
    assert detail.countries == ("United Kingdom", "United States")
    assert catalog.usage_stats() == {"request_count": 1}


def test_not_found_is_empty_search_and_error_on_details():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"Response": "False", "Error": "Movie not found!"})

    catalog = _client(handler)

    assert catalog.search("zzzz") == []
    with pytest.raises(NotFoundError):
        catalog.details("tt0000000")


@pytest.mark.parametrize("response", [
    httpx.Response(429, text="slow down"),
    httpx.Response(401, json={"Response": "False", "Error": "Request limit reached!"}),
])
def test_rate_limit_is_distinguished_and_not_retried(response):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return response

    with pytest.raises(RateLimitedError):
        _client(handler).search("anything")
    assert len(calls) == 1


def test_server_errors_are_retried_with_backoff():
    sleeps = []
    statuses = iter([503, 502])

    def handler(request: httpx.Request) -> httpx.Response:
        status = next(statuses, 200)
        if status != 200:
            return httpx.Response(status)
        return httpx.Response(200, json={"Search": [], "Response": "True"})

    assert _client(handler, sleeps=sleeps).search("retry me") == []
    assert sleeps == [1.0, 2.0]


def test_transient_errors_surface_after_retries():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(TransientCatalogError):
        _client(handler, max_retries=2).details("tt1")
    assert len(calls) == 2


def test_other_client_errors_are_catalog_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"Response": "False", "Error": "Invalid API key!"})

    with pytest.raises(CatalogError) as excinfo:
        _client(handler).search("x")
    assert not isinstance(excinfo.value, RateLimitedError)


class _StubCatalog:
    def __init__(self, error=None):
        self.error = error
        self.calls = 0

    def search(self, query):
        self.calls += 1
        if self.error:
            raise self.error
        return [query]

    def details(self, item_id):
        self.calls += 1
        return item_id


def test_throttle_enforces_min_interval(fake_clock):
    client = ThrottledCatalogClient(_StubCatalog(), min_interval=0.2, clock=fake_clock, sleep=fake_clock.sleep)

    client.search("a")
    client.search("b")
    fake_clock.now += 0.5
    client.details("tt1")

    assert fake_clock.sleeps == [pytest.approx(0.2)]
    assert client.request_count == 3


class _SlowCatalog:
    """Each call takes one second of fake time; records when calls start."""

    def __init__(self, clock, error=None):
        self.clock = clock
        self.error = error
        self.started = []

    def search(self, query):
        self.started.append(self.clock())
        self.clock.now += 1.0
        if self.error:
            raise self.error
        return [query]


def test_throttle_interval_measured_from_end_of_previous_call(fake_clock):
    stub = _SlowCatalog(fake_clock)
    client = ThrottledCatalogClient(stub, min_interval=2.0, clock=fake_clock, sleep=fake_clock.sleep)

    client.search("a")
    client.search("b")

    assert stub.started == [0.0, 3.0]
    assert client.last_request_at == 4.0


def test_failed_calls_still_count_toward_throttle(fake_clock):
    stub = _SlowCatalog(fake_clock, error=TransientCatalogError("boom"))
    client = ThrottledCatalogClient(stub, min_interval=2.0, clock=fake_clock, sleep=fake_clock.sleep)

    with pytest.raises(TransientCatalogError):
        client.search("a")
    assert client.last_request_at == 1.0

    stub.error = None
    client.search("b")
    assert stub.started == [0.0, 3.0]


def test_rate_limit_latches_fallback(fake_clock):
    stub = _StubCatalog(error=RateLimitedError("quota"))
    client = ThrottledCatalogClient(stub, min_interval=0.0, clock=fake_clock, sleep=fake_clock.sleep)

    assert client.search("a") is None
    assert client.fallback_mode

    stub.error = None
    assert client.search("b") is None
    assert client.details("tt1") is None
    assert stub.calls == 1

    client.reset()
    assert client.search("c") == ["c"]


def test_other_errors_propagate_without_latching(fake_clock):
    client = ThrottledCatalogClient(
        _StubCatalog(error=TransientCatalogError("boom")), min_interval=0.0,
        clock=fake_clock, sleep=fake_clock.sleep,
    )

    with pytest.raises(TransientCatalogError):
        client.search("a")
    assert not client.fallback_mode
