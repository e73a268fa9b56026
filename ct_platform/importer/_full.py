# ct_platform/importer/_full.py
# One-time bulk import of a user's Trakt history, run on the job thread.
from __future__ import annotations

from typing import Callable, TypeVar

from ._context import ImportContext, log
from ._guard import dedupe_by_external_id
from ._items import import_movie, import_series_full, run_item
from ._jobs import JobProgress
from ._types import HistoryItem, ImportOptions, RatingsIndex, WatchedSeriesRecord

T = TypeVar("T")


def _fetch_into(progress: JobProgress, what: str, fn: Callable[[], T], empty: T) -> T:
    try:
        return fn()
    except Exception as e:
        msg = f"Failed to fetch {what}: {e}"
        progress.add_error(msg)
        log(msg, level="ERROR")
        return empty


def gather(
    ctx: ImportContext,
    options: ImportOptions,
    progress: JobProgress,
) -> tuple[list[HistoryItem], list[WatchedSeriesRecord]]:
    movies: list[HistoryItem] = []
    series: list[WatchedSeriesRecord] = []

    if options.import_movies:
        movies.extend(_fetch_into(progress, "watched movies", ctx.source.get_watched_movies, []))
    if options.import_series:
        series.extend(_fetch_into(progress, "watched shows", ctx.source.get_watched_shows_with_episodes, []))
    if options.import_watchlist:
        for it in _fetch_into(progress, "watchlist", ctx.source.get_watchlist, []):
            if it.media_kind == "movie":
                movies.append(it)
            else:
                series.append(WatchedSeriesRecord(external_id=it.external_id, title=it.title))

    return dedupe_by_external_id(movies), dedupe_by_external_id(series)


def run_full_import(ctx: ImportContext, options: ImportOptions, progress: JobProgress) -> None:
    movies, series = gather(ctx, options, progress)

    ratings: RatingsIndex = {}
    if options.import_ratings:
        ratings = _fetch_into(progress, "ratings", ctx.source.get_ratings, {})

    progress.set_total(len(movies) + len(series))
    log(f"importing {len(movies)} movies and {len(series)} series", level="INFO")

    errors: list[str] = []
    for movie in movies:
        if progress.is_cancelled():
            log("import cancelled before next movie", level="INFO")
            return
        progress.begin_item(movie.title)
        run_item(movie.title, lambda: import_movie(ctx, movie, ratings.get((movie.external_id, "movie"))), errors)
        _flush(errors, progress)
        progress.finish_item()

    for show in series:
        if progress.is_cancelled():
            log("import cancelled before next series", level="INFO")
            return
        progress.begin_item(show.title)
        run_item(show.title, lambda: import_series_full(ctx, show, ratings.get((show.external_id, "series"))), errors)
        _flush(errors, progress)
        progress.finish_item()


def _flush(errors: list[str], progress: JobProgress) -> None:
    for msg in errors:
        progress.add_error(msg)
    errors.clear()


__all__ = ["run_full_import", "gather"]
