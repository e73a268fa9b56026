# ct_platform/importer/_guard.py
# Existence checks consulted before every library insert.
from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any, Optional, TypeVar

T = TypeVar("T")


def dedupe_by_external_id(items: Iterable[T]) -> list[T]:
    """First occurrence of each external id wins; order is kept."""
    seen: set[int] = set()
    out: list[T] = []
    for it in items:
        key = int(getattr(it, "external_id"))
        if key in seen:
            continue
        seen.add(key)
        out.append(it)
    return out


class ExistenceGuard:
    def __init__(self, store: Any) -> None:
        self.store = store

    def movie_exists(self, external_id: int) -> Optional[int]:
        return self.store.find_movie_entry(external_id)

    def series_exists(self, external_id: int) -> Optional[int]:
        return self.store.find_series_entry(external_id)

    def exists(self, external_id: int, media_kind: str) -> Optional[int]:
        if media_kind == "movie":
            return self.movie_exists(external_id)
        return self.series_exists(external_id)

    def watch_session_exists_on_date(self, entry_id: int, when: datetime) -> bool:
        return bool(self.store.movie_session_exists_on_date(entry_id, when))


__all__ = ["ExistenceGuard", "dedupe_by_external_id"]
