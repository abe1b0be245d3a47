"""
Read-side contracts for the watch-history and exclusion-list collaborators,
plus in-memory implementations for embedding and tests.
"""

import threading
from datetime import datetime
from typing import Iterable, Protocol

from .models import ExclusionItem, MediaKind, WatchHistoryItem


class WatchHistoryStore(Protocol):
    def list(self, user_id: str) -> list[WatchHistoryItem]:
        """History items for a user, newest first."""
        ...


class ExclusionStore(Protocol):
    def list_ids(self, user_id: str) -> set[str]: ...

    def list_items(self, user_id: str) -> list[ExclusionItem]: ...

    def add(self, user_id: str, item: ExclusionItem) -> None: ...

    def remove(self, user_id: str, item_id: str) -> None: ...


class InMemoryWatchHistoryStore:
    def __init__(self, histories: dict[str, Iterable[WatchHistoryItem]] | None = None):
        self._histories: dict[str, list[WatchHistoryItem]] = {
            user_id: list(items) for user_id, items in (histories or {}).items()
        }
        self._lock = threading.Lock()

    def add(self, user_id: str, item: WatchHistoryItem) -> None:
        with self._lock:
            self._histories.setdefault(user_id, []).append(item)

    def list(self, user_id: str) -> list[WatchHistoryItem]:
        with self._lock:
            items = list(self._histories.get(user_id, []))
        # Undated items keep their relative order after dated ones
        return sorted(
            items,
            key=lambda i: i.created_at or datetime.min,
            reverse=True,
        )


class InMemoryExclusionStore:
    def __init__(self):
        self._items: dict[str, dict[str, ExclusionItem]] = {}
        self._lock = threading.Lock()

    def list_ids(self, user_id: str) -> set[str]:
        with self._lock:
            return set(self._items.get(user_id, {}))

    def list_items(self, user_id: str) -> list[ExclusionItem]:
        with self._lock:
            return list(self._items.get(user_id, {}).values())

    def add(self, user_id: str, item: ExclusionItem) -> None:
        if item.created_at is None:
            item = ExclusionItem(
                item_id=item.item_id,
                kind=MediaKind.parse(item.kind),
                genres=item.genres,
                directors=item.directors,
                actors=item.actors,
                created_at=datetime.now(),
            )
        with self._lock:
            self._items.setdefault(user_id, {})[item.item_id] = item

    def remove(self, user_id: str, item_id: str) -> None:
        with self._lock:
            self._items.get(user_id, {}).pop(item_id, None)
