from watchlist_rec.catalog import ThrottledCatalogClient, TransientCatalogError
from watchlist_rec.discovery import DiscoveryAugmenter
from watchlist_rec.models import MediaKind
from watchlist_rec.profile import PreferenceProfile, default_profile


def _throttled(catalog):
    return ThrottledCatalogClient(catalog, min_interval=0.0)


def test_pick_genre_prefers_least_watched():
    augmenter = DiscoveryAugmenter()

    assert augmenter.pick_genre(default_profile()) == "Documentary"
    assert augmenter.pick_genre(PreferenceProfile(genre_weights={"Documentary": 0.1, "Animation": 0.05})) == "Animation"
    saturated = PreferenceProfile(genre_weights={g: 0.5 for g in augmenter.genres})
    assert augmenter.pick_genre(saturated) is None


def test_augment_returns_fixed_score_pick(fake_catalog, make_detail):
    fake_catalog.add(
        "best documentary",
        make_detail("tt-series", genres=("Documentary",), kind=MediaKind.SERIES),
        make_detail("tt-excluded", genres=("Documentary",)),
        make_detail("tt-doc", title="Deep Ocean", year=2010, genres=("Documentary",)),
    )

    pick = DiscoveryAugmenter().augment(
        _throttled(fake_catalog), default_profile(), MediaKind.MOVIE, {"tt-excluded"}, 2024,
    )

    assert pick.item_id == "tt-doc"
    assert pick.is_discovery
    assert pick.score == 0.4
    assert pick.confidence == 0.6
    assert pick.reasoning == ("Discovery: explore Documentary",)
    assert fake_catalog.detail_fetches == ["tt-doc"]


def test_augment_skips_unreleased_and_keeps_unknown_year(fake_catalog, make_detail):
    fake_catalog.add("best documentary", make_detail("tt-future", year=2030, genres=("Documentary",)))
    augmenter = DiscoveryAugmenter()

    assert augmenter.augment(_throttled(fake_catalog), default_profile(), MediaKind.MOVIE, set(), 2024) is None

    fake_catalog.detail_records["tt-future"] = make_detail("tt-future", year=None, genres=("Documentary",))
    pick = augmenter.augment(_throttled(fake_catalog), default_profile(), MediaKind.MOVIE, set(), 2024)
    assert pick is not None and pick.year is None


def test_augment_swallows_catalog_errors(fake_catalog):
    fake_catalog.search_errors["best documentary"] = TransientCatalogError("down")

    assert DiscoveryAugmenter().augment(
        _throttled(fake_catalog), default_profile(), MediaKind.MOVIE, set(), 2024,
    ) is None


def test_augment_is_silent_in_fallback_mode(fake_catalog, make_detail):
    fake_catalog.add("best documentary", make_detail("tt-doc", genres=("Documentary",)))
    client = _throttled(fake_catalog)
    client.fallback_mode = True

    assert DiscoveryAugmenter().augment(client, default_profile(), MediaKind.MOVIE, set(), 2024) is None
    assert fake_catalog.calls == []
