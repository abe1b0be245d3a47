import importlib
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Ensure the package under test is importable without installation
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from watchlist_rec.catalog import NotFoundError  # noqa: E402
from watchlist_rec.models import CandidateDetail, CandidateSummary, MediaKind  # noqa: E402
from watchlist_rec.orchestrator import RecommendationOrchestrator  # noqa: E402
from watchlist_rec.stores import InMemoryExclusionStore, InMemoryWatchHistoryStore  # noqa: E402


class FakeCatalog:
    """Scripted catalog: search results and details keyed by query / ID, every call recorded."""

    def __init__(self):
        self.search_results: dict[str, list[CandidateSummary]] = {}
        self.detail_records: dict[str, CandidateDetail] = {}
        self.search_errors: dict[str, Exception] = {}
        self.detail_errors: dict[str, Exception] = {}
        self.calls: list[tuple[str, str]] = []

    def add(self, query: str, *details: CandidateDetail) -> None:
        summaries = self.search_results.setdefault(query, [])
        for detail in details:
            summaries.append(CandidateSummary(
                item_id=detail.item_id,
                title=detail.title,
                year=detail.year,
                kind=detail.kind,
                poster=detail.poster,
            ))
            self.detail_records[detail.item_id] = detail

    @property
    def searches(self) -> list[str]:
        return [arg for op, arg in self.calls if op == "search"]

    @property
    def detail_fetches(self) -> list[str]:
        return [arg for op, arg in self.calls if op == "details"]

    def search(self, query: str) -> list[CandidateSummary]:
        self.calls.append(("search", query))
        if query in self.search_errors:
            raise self.search_errors[query]
        return list(self.search_results.get(query, []))

    def details(self, item_id: str) -> CandidateDetail:
        self.calls.append(("details", item_id))
        if item_id in self.detail_errors:
            raise self.detail_errors[item_id]
        if item_id not in self.detail_records:
            raise NotFoundError(item_id)
        return self.detail_records[item_id]


class FakeClock:
    """Monotonic clock whose sleep() advances time instead of blocking."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fresh_config(monkeypatch):
    """
    Reload config after setting env vars; restores the default values afterwards.
    """
    import watchlist_rec.config as config

    yield lambda: importlib.reload(config)
    monkeypatch.undo()
    importlib.reload(config)


@pytest.fixture
def fake_catalog():
    return FakeCatalog()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def make_detail():
    def _make(item_id, title=None, year=2015, genres=("Drama",), rating=8.0,
              kind=MediaKind.MOVIE, directors=(), actors=(), countries=()):
        return CandidateDetail(
            item_id=item_id,
            title=title or f"Film {item_id}",
            year=year,
            genres=tuple(genres),
            rating=rating,
            directors=tuple(directors),
            actors=tuple(actors),
            countries=tuple(countries),
            kind=kind,
        )
    return _make


@pytest.fixture
def make_orchestrator(fake_catalog):
    """Orchestrator over in-memory stores, no throttle delay, pinned to 2024."""
    def _make(histories=None, catalog=None, **kwargs):
        kwargs.setdefault("min_interval", 0.0)
        kwargs.setdefault("current_year", 2024)
        kwargs.setdefault("clock", lambda: datetime(2024, 6, 1, 12, 0))
        return RecommendationOrchestrator(
            history_store=InMemoryWatchHistoryStore(histories),
            exclusion_store=InMemoryExclusionStore(),
            catalog=catalog or fake_catalog,
            **kwargs,
        )
    return _make
