# ct_platform/importer/_items.py
# Per-item reconciliation shared by the full importer and the incremental sync.
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any, Optional, TypeVar

from ._binge import apply_binge_correction
from ._context import ImportContext, log
from ._ratings import map_rating
from ._types import (
    EpisodeWatch,
    HistoryItem,
    ImporterError,
    MovieDetails,
    SeriesDetails,
    WatchedSeriesRecord,
)

WHY_IMPORT = "Trakt Import"
WHY_SYNC = "Trakt Sync"
WHY_WATCHLIST = "Trakt Watchlist"

SESSION_IMPORTED = "Imported from Trakt"
SESSION_SYNCED = "Synced from Trakt"

T = TypeVar("T")


def run_item(label: str, fn: Callable[[], T], errors: list[str]) -> Optional[T]:
    """Run one item's mutation; any failure becomes one entry in errors."""
    try:
        return fn()
    except ImporterError as e:
        msg = str(e)
    except Exception as e:
        msg = f"Exception importing {label}: {e}"
    errors.append(msg)
    log(msg, level="WARN")
    return None


# ── metadata + images ─────────────────────────────────────────────────────
def _movie_details(ctx: ImportContext, tmdb_id: int, title: str) -> MovieDetails:
    try:
        return ctx.metadata.get_movie_details(tmdb_id)
    except Exception as e:
        raise ImporterError(f"Failed to fetch movie details for {title}: {e}") from e


def _series_details(ctx: ImportContext, tmdb_id: int, title: str) -> SeriesDetails:
    try:
        return ctx.metadata.get_series_details(tmdb_id)
    except Exception as e:
        raise ImporterError(f"Failed to fetch series details for {title}: {e}") from e


def _cache_images(what: str, fn: Callable[[], Any]) -> None:
    try:
        fn()
    except Exception as e:
        log(f"image cache failed for {what}: {e}", level="WARN")


def _season_numbers(episodes: Sequence[EpisodeWatch]) -> list[int]:
    seen: list[int] = []
    for ep in episodes:
        if ep.season_number not in seen:
            seen.append(ep.season_number)
    return seen


def backfill_seasons(ctx: ImportContext, record: WatchedSeriesRecord, *, only_missing: bool) -> int:
    """Fetch season/episode metadata for the seasons this record touches. Failed seasons are skipped."""
    seasons = _season_numbers(record.watched_episodes)
    if only_missing and seasons:
        known = {s for (s, _e) in ctx.store.get_episode_air_dates(record.external_id)}
        seasons = [s for s in seasons if s not in known]

    saved = 0
    for num in seasons:
        try:
            season = ctx.metadata.get_season_details(record.external_id, num)
        except Exception as e:
            log(f"{record.title}: season {num} fetch failed, skipping: {e}", level="WARN")
            continue
        ctx.store.save_season(record.external_id, season)
        _cache_images(f"{record.title} S{num:02d}", lambda: ctx.images.cache_season_images(season))
        saved += 1
    if seasons:
        log(f"{record.title}: saved {saved}/{len(seasons)} seasons", level="DEBUG")
    return saved


# ── ratings ───────────────────────────────────────────────────────────────
def backfill_rating(ctx: ImportContext, entry_id: int, source_rating: Optional[int]) -> bool:
    if source_rating is None:
        return False
    if ctx.store.get_entry_rating(entry_id) is not None:
        return False
    ctx.store.set_personal_rating(entry_id, map_rating(source_rating))
    return True


# ── movies ────────────────────────────────────────────────────────────────
def record_movie_watch(ctx: ImportContext, entry_id: int, watched_at: Optional[datetime], session_name: str) -> bool:
    if watched_at is None:
        return False
    if ctx.guard.watch_session_exists_on_date(entry_id, watched_at):
        return False
    ctx.store.insert_movie_watch_session(entry_id, session_name, watched_at)
    ctx.store.mark_movie_watched(entry_id, watched_at)
    return True


def import_movie(
    ctx: ImportContext,
    item: HistoryItem,
    rating: Optional[int] = None,
    *,
    why_source: str = WHY_IMPORT,
    session_name: str = SESSION_IMPORTED,
) -> bool:
    """Reconcile one movie. Returns True when a new watch session was recorded."""
    entry_id = ctx.guard.movie_exists(item.external_id)
    if entry_id is not None:
        added = record_movie_watch(ctx, entry_id, item.watched_at, session_name)
        backfill_rating(ctx, entry_id, rating)
        return added

    details = _movie_details(ctx, item.external_id, item.title)
    _cache_images(item.title, lambda: ctx.images.cache_movie_images(details))
    entry_id = ctx.store.insert_movie_entry(details, why_source)
    added = False
    if item.watched_at is not None:
        ctx.store.insert_movie_watch_session(entry_id, session_name, item.watched_at)
        ctx.store.mark_movie_watched(entry_id, item.watched_at)
        added = True
    if rating is not None:
        ctx.store.set_personal_rating(entry_id, map_rating(rating))
    log(f"added movie {item.title} ({why_source})", level="DEBUG")
    return added


# ── episodes ──────────────────────────────────────────────────────────────
def write_episodes_simple(ctx: ImportContext, entry_id: int, episodes: Sequence[EpisodeWatch]) -> int:
    """Source timestamps as-is; episodes without a timestamp are skipped."""
    session_id = ctx.store.get_or_create_default_session(entry_id)
    written = 0
    for ep in episodes:
        if ep.watched_at is None:
            log(f"S{ep.season_number:02d}E{ep.episode_number:02d} has no watched date, skipping", level="DEBUG")
            continue
        if ctx.store.insert_episode_progress(entry_id, session_id, ep.season_number, ep.episode_number, ep.watched_at):
            written += 1
    ctx.store.update_series_watch_status(entry_id)
    return written


def write_episodes_binge_corrected(ctx: ImportContext, entry_id: int, record: WatchedSeriesRecord) -> int:
    """Binge-corrected timestamps; undated episodes are written undated."""
    episodes = apply_binge_correction(
        record.watched_episodes,
        lambda: ctx.store.get_episode_air_dates(record.external_id),
        threshold=ctx.binge_threshold,
    )
    swapped = sum(1 for a, b in zip(record.watched_episodes, episodes) if a.watched_at != b.watched_at)
    if swapped:
        log(f"{record.title}: {swapped} binge-day episodes dated by air date", level="DEBUG")

    session_id = ctx.store.get_or_create_default_session(entry_id)
    written = 0
    for ep in episodes:
        if ctx.store.insert_episode_progress(entry_id, session_id, ep.season_number, ep.episode_number, ep.watched_at):
            written += 1
    ctx.store.update_series_watch_status(entry_id)
    return written


# ── series ────────────────────────────────────────────────────────────────
def import_series_full(ctx: ImportContext, record: WatchedSeriesRecord, rating: Optional[int] = None) -> int:
    """Full-import path for one series. Returns the number of episode rows newly marked watched."""
    entry_id = ctx.guard.series_exists(record.external_id)
    if entry_id is not None:
        backfill_seasons(ctx, record, only_missing=True)
        written = write_episodes_simple(ctx, entry_id, record.watched_episodes)
        backfill_rating(ctx, entry_id, rating)
        return written

    details = _series_details(ctx, record.external_id, record.title)
    _cache_images(record.title, lambda: ctx.images.cache_series_images(details))
    entry_id = ctx.store.insert_series_entry(details, WHY_IMPORT)
    backfill_seasons(ctx, record, only_missing=False)
    written = write_episodes_binge_corrected(ctx, entry_id, record)
    if rating is not None:
        ctx.store.set_personal_rating(entry_id, map_rating(rating))
    log(f"added series {record.title} ({written} episodes)", level="DEBUG")
    return written


def sync_series(ctx: ImportContext, record: WatchedSeriesRecord) -> int:
    """Incremental path for one series: source timestamps, no binge correction."""
    if not record.watched_episodes:
        return 0
    entry_id = ctx.guard.series_exists(record.external_id)
    if entry_id is None:
        details = _series_details(ctx, record.external_id, record.title)
        _cache_images(record.title, lambda: ctx.images.cache_series_images(details))
        entry_id = ctx.store.insert_series_entry(details, WHY_SYNC)
        log(f"added series {record.title} ({WHY_SYNC})", level="DEBUG")
    return write_episodes_simple(ctx, entry_id, record.watched_episodes)


# ── watchlist ─────────────────────────────────────────────────────────────
def add_watchlist_item(ctx: ImportContext, item: HistoryItem) -> bool:
    """Add a watchlisted title without any watch data. True when a new entry was created."""
    if ctx.guard.exists(item.external_id, item.media_kind) is not None:
        return False
    if item.media_kind == "movie":
        movie = _movie_details(ctx, item.external_id, item.title)
        _cache_images(item.title, lambda: ctx.images.cache_movie_images(movie))
        ctx.store.insert_movie_entry(movie, WHY_WATCHLIST)
    else:
        series = _series_details(ctx, item.external_id, item.title)
        _cache_images(item.title, lambda: ctx.images.cache_series_images(series))
        ctx.store.insert_series_entry(series, WHY_WATCHLIST)
    return True


__all__ = [
    "run_item",
    "import_movie",
    "import_series_full",
    "sync_series",
    "add_watchlist_item",
    "backfill_seasons",
    "backfill_rating",
    "record_movie_watch",
    "write_episodes_simple",
    "write_episodes_binge_corrected",
    "WHY_IMPORT",
    "WHY_SYNC",
    "WHY_WATCHLIST",
    "SESSION_IMPORTED",
    "SESSION_SYNCED",
]
