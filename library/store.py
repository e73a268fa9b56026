# library/store.py
# CineTrack - persistence operations used by the importer, sync engine and Trakt client
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Iterator, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .db import init_db, make_engine, make_session_factory
from .models import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_NOT_STARTED,
    SESSION_COMPLETED,
    Episode,
    EpisodeProgress,
    LibraryEntry,
    Movie,
    Season,
    Series,
    TraktSettings,
    WatchSession,
)

if TYPE_CHECKING:
    from ct_platform.importer._types import MovieDetails, SeasonDetails, SeriesDetails

DEFAULT_SESSION_NAME = "Personal"


class StoreError(Exception):
    pass


@dataclass(frozen=True)
class TraktSettingsView:
    access_token: Optional[str]
    refresh_token: Optional[str]
    expires_at: Optional[datetime]
    last_sync_at: Optional[datetime]
    auto_sync_enabled: bool


# Datetimes are stored naive in UTC and handed out timezone-aware.
def _to_db(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    return dt.replace(tzinfo=timezone.utc)


def _utc_date(dt: datetime) -> date:
    if dt.tzinfo is None:
        return dt.date()
    return dt.astimezone(timezone.utc).date()


def _earliest(a: Optional[datetime], b: Optional[datetime]) -> Optional[datetime]:
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)


def _latest(a: Optional[datetime], b: Optional[datetime]) -> Optional[datetime]:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


class LibraryStore:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._sf = session_factory

    @classmethod
    def from_url(cls, url: str, *, echo: bool = False) -> "LibraryStore":
        engine = make_engine(url, echo=echo)
        init_db(engine)
        return cls(make_session_factory(engine))

    @contextmanager
    def _session(self) -> Iterator[Session]:
        s = self._sf()
        try:
            yield s
            s.commit()
        except SQLAlchemyError as e:
            s.rollback()
            raise StoreError(str(e)) from e
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    # ── existence ─────────────────────────────────────────────────────────
    def find_movie_entry(self, tmdb_id: int) -> Optional[int]:
        with self._session() as s:
            return s.execute(
                select(LibraryEntry.id)
                .join(Movie, LibraryEntry.movie_id == Movie.id)
                .where(Movie.tmdb_id == int(tmdb_id))
            ).scalar_one_or_none()

    def find_series_entry(self, tmdb_id: int) -> Optional[int]:
        with self._session() as s:
            return s.execute(
                select(LibraryEntry.id)
                .join(Series, LibraryEntry.series_id == Series.id)
                .where(Series.tmdb_id == int(tmdb_id))
            ).scalar_one_or_none()

    def movie_session_exists_on_date(self, entry_id: int, when: datetime) -> bool:
        day = _utc_date(when)
        with self._session() as s:
            starts = s.execute(
                select(WatchSession.start_date).where(
                    WatchSession.entry_id == entry_id,
                    WatchSession.start_date.is_not(None),
                )
            ).scalars().all()
        return any(st.date() == day for st in starts)

    # ── entries ───────────────────────────────────────────────────────────
    def insert_movie_entry(self, details: "MovieDetails", why_source: str) -> int:
        with self._session() as s:
            movie = s.execute(select(Movie).where(Movie.tmdb_id == details.tmdb_id)).scalar_one_or_none()
            if movie is None:
                movie = Movie(tmdb_id=details.tmdb_id, title=details.title)
                s.add(movie)
            movie.title = details.title
            movie.original_title = details.original_title
            movie.overview = details.overview
            movie.tagline = details.tagline
            movie.release_date = details.release_date
            movie.runtime_minutes = details.runtime_minutes
            movie.poster_path = details.poster_path
            movie.backdrop_path = details.backdrop_path
            movie.imdb_id = details.imdb_id
            movie.tmdb_rating = details.vote_average
            s.flush()

            existing = s.execute(select(LibraryEntry).where(LibraryEntry.movie_id == movie.id)).scalar_one_or_none()
            if existing is not None:
                return existing.id
            entry = LibraryEntry(media_type="movie", movie_id=movie.id, why_source=why_source,
                                 watch_status=STATUS_NOT_STARTED)
            s.add(entry)
            s.flush()
            return entry.id

    def insert_series_entry(self, details: "SeriesDetails", why_source: str) -> int:
        with self._session() as s:
            series = s.execute(select(Series).where(Series.tmdb_id == details.tmdb_id)).scalar_one_or_none()
            if series is None:
                series = Series(tmdb_id=details.tmdb_id, name=details.name)
                s.add(series)
            series.name = details.name
            series.original_name = details.original_name
            series.overview = details.overview
            series.first_air_date = details.first_air_date
            series.status = details.status
            series.total_seasons = details.number_of_seasons
            series.total_episodes = details.number_of_episodes
            series.poster_path = details.poster_path
            series.backdrop_path = details.backdrop_path
            s.flush()

            existing = s.execute(select(LibraryEntry).where(LibraryEntry.series_id == series.id)).scalar_one_or_none()
            if existing is not None:
                return existing.id
            entry = LibraryEntry(media_type="series", series_id=series.id, why_source=why_source,
                                 watch_status=STATUS_NOT_STARTED)
            s.add(entry)
            s.flush()
            return entry.id

    def count_entries(self, media_type: Optional[str] = None) -> int:
        with self._session() as s:
            q = select(func.count(LibraryEntry.id))
            if media_type:
                q = q.where(LibraryEntry.media_type == media_type)
            return int(s.execute(q).scalar_one())

    def get_entry(self, entry_id: int) -> Optional[LibraryEntry]:
        with self._session() as s:
            return s.get(LibraryEntry, entry_id)

    # ── movie watches ─────────────────────────────────────────────────────
    def insert_movie_watch_session(self, entry_id: int, name: str, watched_at: datetime) -> int:
        at = _to_db(watched_at)
        with self._session() as s:
            ws = WatchSession(entry_id=entry_id, name=name, status=SESSION_COMPLETED,
                              start_date=at, end_date=at, is_default=False)
            s.add(ws)
            s.flush()
            return ws.id

    def count_watch_sessions(self, entry_id: int) -> int:
        with self._session() as s:
            return int(s.execute(
                select(func.count(WatchSession.id)).where(WatchSession.entry_id == entry_id)
            ).scalar_one())

    def mark_movie_watched(self, entry_id: int, watched_at: Optional[datetime]) -> None:
        at = _to_db(watched_at)
        with self._session() as s:
            entry = s.get(LibraryEntry, entry_id)
            if entry is None:
                raise StoreError(f"library entry {entry_id} not found")
            entry.watch_status = STATUS_COMPLETED
            entry.date_first_watched = _earliest(entry.date_first_watched, at)
            entry.date_last_watched = _latest(entry.date_last_watched, at)

    # ── ratings ───────────────────────────────────────────────────────────
    def get_entry_rating(self, entry_id: int) -> Optional[int]:
        with self._session() as s:
            return s.execute(
                select(LibraryEntry.personal_rating).where(LibraryEntry.id == entry_id)
            ).scalar_one_or_none()

    def set_personal_rating(self, entry_id: int, rating: int) -> None:
        with self._session() as s:
            entry = s.get(LibraryEntry, entry_id)
            if entry is None:
                raise StoreError(f"library entry {entry_id} not found")
            entry.personal_rating = int(rating)

    # ── episodes ──────────────────────────────────────────────────────────
    def get_or_create_default_session(self, entry_id: int) -> int:
        with self._session() as s:
            sid = s.execute(
                select(WatchSession.id).where(WatchSession.entry_id == entry_id, WatchSession.is_default.is_(True))
            ).scalars().first()
            if sid is not None:
                return sid
            ws = WatchSession(entry_id=entry_id, name=DEFAULT_SESSION_NAME, is_default=True)
            s.add(ws)
            s.flush()
            return ws.id

    def insert_episode_progress(
        self,
        entry_id: int,
        session_id: int,
        season_number: int,
        episode_number: int,
        watched_at: Optional[datetime],
    ) -> bool:
        """Mark an episode watched; True only when the row was created or flipped to watched."""
        at = _to_db(watched_at)
        with self._session() as s:
            row = s.execute(
                select(EpisodeProgress).where(
                    EpisodeProgress.entry_id == entry_id,
                    EpisodeProgress.session_id == session_id,
                    EpisodeProgress.season_number == season_number,
                    EpisodeProgress.episode_number == episode_number,
                )
            ).scalar_one_or_none()
            if row is None:
                s.add(EpisodeProgress(entry_id=entry_id, session_id=session_id, season_number=season_number,
                                      episode_number=episode_number, is_watched=True, watched_date=at))
                return True
            if row.is_watched:
                return False
            row.is_watched = True
            row.watched_date = at
            return True

    def get_episode_progress(self, entry_id: int) -> dict[tuple[int, int], Optional[datetime]]:
        with self._session() as s:
            rows = s.execute(
                select(EpisodeProgress.season_number, EpisodeProgress.episode_number, EpisodeProgress.watched_date)
                .where(EpisodeProgress.entry_id == entry_id, EpisodeProgress.is_watched.is_(True))
            ).all()
        return {(r[0], r[1]): _from_db(r[2]) for r in rows}

    def update_series_watch_status(self, entry_id: int) -> str:
        """Recompute watch status and first/last watched dates from episode progress."""
        with self._session() as s:
            entry = s.get(LibraryEntry, entry_id)
            if entry is None or entry.series_id is None:
                raise StoreError(f"series entry {entry_id} not found")

            watched, first, last = s.execute(
                select(
                    func.count(EpisodeProgress.id),
                    func.min(EpisodeProgress.watched_date),
                    func.max(EpisodeProgress.watched_date),
                ).where(EpisodeProgress.entry_id == entry_id, EpisodeProgress.is_watched.is_(True))
            ).one()

            series = s.get(Series, entry.series_id)
            known = s.execute(
                select(func.count(Episode.id)).where(Episode.series_id == entry.series_id, Episode.season_number > 0)
            ).scalar_one()
            total = max(int(known or 0), int((series.total_episodes if series else 0) or 0))

            if not watched:
                status = STATUS_NOT_STARTED
            elif total and watched >= total:
                status = STATUS_COMPLETED
            else:
                status = STATUS_IN_PROGRESS

            entry.watch_status = status
            entry.date_first_watched = first
            entry.date_last_watched = last
            return status

    def save_season(self, series_tmdb_id: int, season: "SeasonDetails") -> None:
        with self._session() as s:
            series = s.execute(select(Series).where(Series.tmdb_id == series_tmdb_id)).scalar_one_or_none()
            if series is None:
                raise StoreError(f"series {series_tmdb_id} not in library")
            row = s.execute(
                select(Season).where(Season.series_id == series.id, Season.season_number == season.season_number)
            ).scalar_one_or_none()
            if row is None:
                row = Season(series_id=series.id, season_number=season.season_number)
                s.add(row)
            row.tmdb_season_id = season.tmdb_season_id
            row.name = season.name
            row.air_date = season.air_date
            row.poster_path = season.poster_path
            row.episode_count = len(season.episodes)
            s.flush()

            existing = {
                e.episode_number: e
                for e in s.execute(
                    select(Episode).where(Episode.series_id == series.id, Episode.season_number == season.season_number)
                ).scalars()
            }
            for ep in season.episodes:
                e = existing.get(ep.episode_number)
                if e is None:
                    e = Episode(series_id=series.id, season_id=row.id, season_number=season.season_number,
                                episode_number=ep.episode_number)
                    s.add(e)
                e.name = ep.name
                e.air_date = ep.air_date
                e.runtime_minutes = ep.runtime_minutes
                e.still_path = ep.still_path

    def get_episode_air_dates(self, series_tmdb_id: int) -> dict[tuple[int, int], date]:
        with self._session() as s:
            rows = s.execute(
                select(Episode.season_number, Episode.episode_number, Episode.air_date)
                .join(Series, Episode.series_id == Series.id)
                .where(Series.tmdb_id == series_tmdb_id, Episode.air_date.is_not(None))
            ).all()
        return {(r[0], r[1]): r[2] for r in rows}

    # ── sync cursor ───────────────────────────────────────────────────────
    def get_latest_watch_date(self) -> Optional[datetime]:
        with self._session() as s:
            a = s.execute(select(func.max(WatchSession.start_date))).scalar_one()
            b = s.execute(
                select(func.max(EpisodeProgress.watched_date)).where(EpisodeProgress.is_watched.is_(True))
            ).scalar_one()
            c = s.execute(select(func.max(LibraryEntry.date_last_watched))).scalar_one()
        latest = None
        for v in (a, b, c):
            latest = _latest(latest, v)
        return _from_db(latest)

    # ── trakt settings ────────────────────────────────────────────────────
    def _settings_row(self, s: Session) -> TraktSettings:
        row = s.execute(select(TraktSettings).order_by(TraktSettings.id)).scalars().first()
        if row is None:
            row = TraktSettings(auto_sync_enabled=False)
            s.add(row)
            s.flush()
        return row

    def get_trakt_settings(self) -> TraktSettingsView:
        with self._session() as s:
            row = self._settings_row(s)
            return TraktSettingsView(
                access_token=row.access_token,
                refresh_token=row.refresh_token,
                expires_at=_from_db(row.expires_at),
                last_sync_at=_from_db(row.last_sync_at),
                auto_sync_enabled=bool(row.auto_sync_enabled),
            )

    def save_trakt_tokens(self, access_token: str, refresh_token: Optional[str], expires_at: datetime) -> None:
        with self._session() as s:
            row = self._settings_row(s)
            row.access_token = access_token
            row.refresh_token = refresh_token
            row.expires_at = _to_db(expires_at)

    def clear_trakt_tokens(self) -> None:
        with self._session() as s:
            row = self._settings_row(s)
            row.access_token = None
            row.refresh_token = None
            row.expires_at = None

    def update_trakt_last_sync(self, when: Optional[datetime] = None) -> None:
        with self._session() as s:
            row = self._settings_row(s)
            row.last_sync_at = _to_db(when or datetime.now(timezone.utc))

    def set_auto_sync(self, enabled: bool) -> None:
        with self._session() as s:
            row = self._settings_row(s)
            row.auto_sync_enabled = bool(enabled)


__all__ = ["LibraryStore", "StoreError", "TraktSettingsView", "DEFAULT_SESSION_NAME"]
