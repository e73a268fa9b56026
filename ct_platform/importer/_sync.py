# ct_platform/importer/_sync.py
# Incremental sync: re-read the source since a cursor and apply only what is missing.
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from ._context import ImportContext, log
from ._items import SESSION_SYNCED, WHY_SYNC, add_watchlist_item, import_movie, run_item, sync_series
from ._types import NotAuthenticated, SyncError, SyncResult


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class SyncEngine:
    def __init__(self, ctx: ImportContext) -> None:
        self.ctx = ctx

    def _require_auth(self) -> None:
        if not self.ctx.source.is_authenticated():
            raise NotAuthenticated()

    def cursor_for(self, when: datetime) -> datetime:
        return _as_utc(when) - self.ctx.cursor_buffer

    def incremental_sync(self) -> SyncResult:
        self._require_auth()
        last = self.ctx.store.get_latest_watch_date()
        if last is None:
            log("no local watch history; skipping incremental sync (run a full import first)", level="INFO", module="SYNC")
            return SyncResult()
        cursor = self.cursor_for(last)
        log(f"incremental sync from {cursor.isoformat()} (last watch {_as_utc(last).isoformat()})", level="INFO", module="SYNC")
        return self.sync_from_date(cursor)

    def resync_since(self, when: datetime) -> SyncResult:
        self._require_auth()
        cursor = self.cursor_for(when)
        log(f"resync from {cursor.isoformat()}", level="INFO", module="SYNC")
        return self.sync_from_date(cursor)

    def sync_from_date(self, cursor: datetime) -> SyncResult:
        try:
            return self._sync_from_date(cursor)
        except Exception as e:
            log(f"sync failed: {e}", level="ERROR", module="SYNC")
            raise SyncError(f"Sync failed: {e}") from e

    def _sync_from_date(self, cursor: datetime) -> SyncResult:
        ctx = self.ctx
        errors: list[str] = []
        new_movies = 0
        new_episodes = 0
        new_watchlist = 0

        # movies
        movies = self._fetch(errors, "movies", lambda: ctx.source.get_watched_movies(cursor))
        if movies is not None:
            log(f"fetched {len(movies)} movie watches", level="DEBUG", module="SYNC")
            for m in movies:
                added = run_item(
                    m.title,
                    lambda: import_movie(ctx, m, None, why_source=WHY_SYNC, session_name=SESSION_SYNCED),
                    errors,
                )
                new_movies += 1 if added else 0

        # episodes
        shows = self._fetch(errors, "series", lambda: ctx.source.get_watched_shows_with_episodes(cursor))
        if shows is not None:
            log(f"fetched {len(shows)} series with {sum(len(s.watched_episodes) for s in shows)} episode watches",
                level="DEBUG", module="SYNC")
            for s in shows:
                new_episodes += run_item(s.title, lambda: sync_series(ctx, s), errors) or 0

        # watchlist
        watchlist = self._fetch(errors, "watchlist", ctx.source.get_watchlist)
        if watchlist is not None:
            for it in watchlist:
                added = run_item(it.title, lambda: add_watchlist_item(ctx, it), errors)
                new_watchlist += 1 if added else 0

        ctx.source.update_last_sync_time()
        result = SyncResult(
            new_movie_watches=new_movies,
            new_episode_watches=new_episodes,
            updated_watchlist_items=new_watchlist,
            errors=tuple(errors),
        )
        log(
            f"sync done: {new_movies} movie watches, {new_episodes} episode watches, "
            f"{new_watchlist} watchlist items, {len(errors)} errors",
            level="SUCCESS" if not errors else "WARN",
            module="SYNC",
        )
        return result

    @staticmethod
    def _fetch(errors: list[str], what: str, fn) -> Optional[list]:
        try:
            return list(fn())
        except Exception as e:
            errors.append(f"Failed to fetch {what}: {e}")
            log(f"fetch {what} failed: {e}", level="WARN", module="SYNC")
            return None


__all__ = ["SyncEngine"]
