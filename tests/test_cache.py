from datetime import datetime, timedelta

from watchlist_rec.cache import ResultCache
from watchlist_rec.profile import default_profile


class _Now:
    def __init__(self):
        self.value = datetime(2024, 1, 1, 12, 0)

    def __call__(self):
        return self.value


def test_entries_expire_after_ttl():
    now = _Now()
    cache = ResultCache(ttl=timedelta(hours=24), clock=now)
    cache.set("alice", {"movie": []}, default_profile())

    now.value += timedelta(hours=23, minutes=59)
    entry = cache.get("alice")
    assert entry is not None
    assert entry.recommendations == {"movie": ()}

    now.value += timedelta(minutes=1)
    assert cache.get("alice") is None
    assert len(cache) == 0


def test_invalidate_and_clear():
    cache = ResultCache()
    cache.set("alice", {"movie": []}, default_profile())
    cache.set("bob", {"series": []}, default_profile())

    assert cache.invalidate("alice") is True
    assert cache.invalidate("alice") is False
    assert cache.get("alice") is None
    assert len(cache) == 1

    cache.clear()
    assert len(cache) == 0


def test_stored_lists_are_snapshots():
    cache = ResultCache()
    recs = []
    cache.set("alice", {"movie": recs}, default_profile())
    recs.append("late addition")

    assert cache.get("alice").recommendations["movie"] == ()
