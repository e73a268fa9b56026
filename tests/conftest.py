# CineTrack test scripts
from __future__ import annotations

import sys
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from _logging import force_debug  # noqa: E402
from ct_platform.importer import ImportContext, TraktImporter  # noqa: E402
from ct_platform.importer._types import (  # noqa: E402
    EpisodeDetails,
    HistoryItem,
    MovieDetails,
    SeasonDetails,
    SeriesDetails,
    WatchedSeriesRecord,
)
from library.store import LibraryStore  # noqa: E402


@pytest.fixture(autouse=True)
def _quiet_debug():
    force_debug(False)
    yield
    force_debug(None)


@pytest.fixture()
def config_base(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("CONFIG_BASE", str(tmp_path))
    return tmp_path


@pytest.fixture()
def store(tmp_path: Path) -> LibraryStore:
    return LibraryStore.from_url(f"sqlite:///{(tmp_path / 'library.db').as_posix()}")


@dataclass
class FakeSource:
    movies: list[HistoryItem] = field(default_factory=list)
    shows: list[WatchedSeriesRecord] = field(default_factory=list)
    watchlist: list[HistoryItem] = field(default_factory=list)
    ratings: dict[tuple[int, str], int] = field(default_factory=dict)
    authenticated: bool = True
    fail: dict[str, Exception] = field(default_factory=dict)
    since_calls: list[Optional[datetime]] = field(default_factory=list)
    last_sync_updates: int = 0

    def _maybe_fail(self, what: str) -> None:
        if what in self.fail:
            raise self.fail[what]

    def is_authenticated(self) -> bool:
        return self.authenticated

    def get_watched_movies(self, since: Optional[datetime] = None) -> list[HistoryItem]:
        self._maybe_fail("movies")
        self.since_calls.append(since)
        if since is None:
            return list(self.movies)
        return [m for m in self.movies if m.watched_at is not None and m.watched_at >= since]

    def get_watched_shows_with_episodes(self, since: Optional[datetime] = None) -> list[WatchedSeriesRecord]:
        self._maybe_fail("shows")
        if since is None:
            return list(self.shows)
        out: list[WatchedSeriesRecord] = []
        for s in self.shows:
            eps = tuple(e for e in s.watched_episodes if e.watched_at is not None and e.watched_at >= since)
            if eps:
                out.append(WatchedSeriesRecord(s.external_id, s.title, s.last_watched_at, eps))
        return out

    def get_watchlist(self) -> list[HistoryItem]:
        self._maybe_fail("watchlist")
        return list(self.watchlist)

    def get_ratings(self) -> dict[tuple[int, str], int]:
        self._maybe_fail("ratings")
        return dict(self.ratings)

    def update_last_sync_time(self) -> None:
        self.last_sync_updates += 1


@dataclass
class FakeMetadata:
    # (series_id, season) -> {episode_number: air_date}
    seasons: dict[tuple[int, int], dict[int, Optional[date]]] = field(default_factory=dict)
    episodes_per_series: dict[int, int] = field(default_factory=dict)
    failing_movies: set[int] = field(default_factory=set)
    failing_seasons: set[tuple[int, int]] = field(default_factory=set)
    on_movie: Optional[Callable[[int], Any]] = None
    calls: list[str] = field(default_factory=list)

    def get_movie_details(self, tmdb_id: int) -> MovieDetails:
        self.calls.append(f"movie:{tmdb_id}")
        if self.on_movie is not None:
            self.on_movie(tmdb_id)
        if tmdb_id in self.failing_movies:
            raise RuntimeError("HTTP 404")
        return MovieDetails(tmdb_id=tmdb_id, title=f"Movie {tmdb_id}", runtime_minutes=100)

    def get_series_details(self, tmdb_id: int) -> SeriesDetails:
        self.calls.append(f"series:{tmdb_id}")
        return SeriesDetails(
            tmdb_id=tmdb_id,
            name=f"Series {tmdb_id}",
            number_of_seasons=1,
            number_of_episodes=self.episodes_per_series.get(tmdb_id, 10),
        )

    def get_season_details(self, tmdb_id: int, season_number: int) -> SeasonDetails:
        self.calls.append(f"season:{tmdb_id}:{season_number}")
        if (tmdb_id, season_number) in self.failing_seasons:
            raise RuntimeError("HTTP 500")
        eps = self.seasons.get((tmdb_id, season_number), {})
        return SeasonDetails(
            season_number=season_number,
            name=f"Season {season_number}",
            episodes=tuple(EpisodeDetails(episode_number=n, air_date=d) for n, d in sorted(eps.items())),
        )


@pytest.fixture()
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture()
def metadata() -> FakeMetadata:
    return FakeMetadata()


@pytest.fixture()
def ctx(source: FakeSource, metadata: FakeMetadata, store: LibraryStore) -> ImportContext:
    return ImportContext(source=source, metadata=metadata, store=store)


@pytest.fixture()
def importer(ctx: ImportContext) -> TraktImporter:
    return TraktImporter(ctx)
