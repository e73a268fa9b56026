# ct_platform/importer/_preview.py
# Read-only preview of what a full import would bring in.
from __future__ import annotations

from typing import Any, Callable, TypeVar

from ._context import log
from ._guard import ExistenceGuard, dedupe_by_external_id
from ._types import ImportOptions, Preview, PreviewError, PreviewItem, SourceClient

T = TypeVar("T")


def _fetch(what: str, fn: Callable[[], T]) -> T:
    try:
        return fn()
    except Exception as e:
        raise PreviewError(f"Failed to fetch {what}: {e}") from e


def build_preview(source: SourceClient, guard: ExistenceGuard, options: ImportOptions) -> Preview:
    movies: list[Any] = []
    series: list[Any] = []

    if options.import_movies:
        movies.extend(_fetch("watched movies", source.get_watched_movies))
    if options.import_series:
        series.extend(_fetch("watched shows", source.get_watched_shows_with_episodes))
    if options.import_watchlist:
        for it in _fetch("watchlist", source.get_watchlist):
            (movies if it.media_kind == "movie" else series).append(it)

    movie_items = [
        PreviewItem(m.external_id, m.title, "movie", guard.movie_exists(m.external_id) is not None)
        for m in dedupe_by_external_id(movies)
    ]
    series_items = [
        PreviewItem(s.external_id, s.title, "series", guard.series_exists(s.external_id) is not None)
        for s in dedupe_by_external_id(series)
    ]

    total = len(movie_items) + len(series_items)
    in_lib = sum(1 for p in movie_items + series_items if p.in_library)
    log(f"preview: {total} items, {in_lib} already in library", level="INFO")
    return Preview(
        movies=tuple(movie_items),
        series=tuple(series_items),
        total_items=total,
        already_in_library=in_lib,
        new_items=total - in_lib,
    )


__all__ = ["build_preview"]
