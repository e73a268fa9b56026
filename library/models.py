# library/models.py
# CineTrack - relational schema of the local media library
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# watch_status values
STATUS_NOT_STARTED = "not_started"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"

# session status values
SESSION_ACTIVE = "active"
SESSION_COMPLETED = "completed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Movie(Base):
    __tablename__ = "movies"

    id = Column(Integer, primary_key=True)
    tmdb_id = Column(Integer, nullable=False, unique=True, index=True)
    imdb_id = Column(String, nullable=True)
    title = Column(String, nullable=False)
    original_title = Column(String, nullable=True)
    overview = Column(Text, nullable=True)
    tagline = Column(String, nullable=True)
    release_date = Column(Date, nullable=True)
    runtime_minutes = Column(Integer, nullable=True)
    poster_path = Column(String, nullable=True)
    backdrop_path = Column(String, nullable=True)
    tmdb_rating = Column(Float, nullable=True)
    created_at = Column(DateTime, default=_utcnow)


class Series(Base):
    __tablename__ = "series"

    id = Column(Integer, primary_key=True)
    tmdb_id = Column(Integer, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    original_name = Column(String, nullable=True)
    overview = Column(Text, nullable=True)
    first_air_date = Column(Date, nullable=True)
    status = Column(String, nullable=True)
    total_seasons = Column(Integer, default=0)
    total_episodes = Column(Integer, default=0)
    poster_path = Column(String, nullable=True)
    backdrop_path = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow)


class Season(Base):
    __tablename__ = "seasons"
    __table_args__ = (UniqueConstraint("series_id", "season_number"),)

    id = Column(Integer, primary_key=True)
    series_id = Column(Integer, ForeignKey("series.id", ondelete="CASCADE"), nullable=False)
    tmdb_season_id = Column(Integer, nullable=True)
    season_number = Column(Integer, nullable=False)
    name = Column(String, nullable=True)
    air_date = Column(Date, nullable=True)
    episode_count = Column(Integer, default=0)
    poster_path = Column(String, nullable=True)


class Episode(Base):
    __tablename__ = "episodes"
    __table_args__ = (UniqueConstraint("series_id", "season_number", "episode_number"),)

    id = Column(Integer, primary_key=True)
    series_id = Column(Integer, ForeignKey("series.id", ondelete="CASCADE"), nullable=False)
    season_id = Column(Integer, ForeignKey("seasons.id", ondelete="CASCADE"), nullable=False)
    season_number = Column(Integer, nullable=False)
    episode_number = Column(Integer, nullable=False)
    name = Column(String, nullable=True)
    air_date = Column(Date, nullable=True)
    runtime_minutes = Column(Integer, nullable=True)
    still_path = Column(String, nullable=True)


class LibraryEntry(Base):
    __tablename__ = "library_entries"

    id = Column(Integer, primary_key=True)
    media_type = Column(String, nullable=False)           # "movie" | "series"
    movie_id = Column(Integer, ForeignKey("movies.id"), nullable=True, unique=True)
    series_id = Column(Integer, ForeignKey("series.id"), nullable=True, unique=True)
    why_source = Column(String, nullable=True)
    watch_status = Column(String, nullable=False, default=STATUS_NOT_STARTED)
    personal_rating = Column(Integer, nullable=True)      # 1..5
    date_first_watched = Column(DateTime, nullable=True)
    date_last_watched = Column(DateTime, nullable=True)
    date_added = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class WatchSession(Base):
    __tablename__ = "watch_sessions"

    id = Column(Integer, primary_key=True)
    entry_id = Column(Integer, ForeignKey("library_entries.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=True)
    status = Column(String, nullable=False, default=SESSION_ACTIVE)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=_utcnow)


class EpisodeProgress(Base):
    __tablename__ = "episode_progress"
    __table_args__ = (UniqueConstraint("entry_id", "session_id", "season_number", "episode_number"),)

    id = Column(Integer, primary_key=True)
    entry_id = Column(Integer, ForeignKey("library_entries.id", ondelete="CASCADE"), nullable=False)
    session_id = Column(Integer, ForeignKey("watch_sessions.id", ondelete="CASCADE"), nullable=False)
    season_number = Column(Integer, nullable=False)
    episode_number = Column(Integer, nullable=False)
    is_watched = Column(Boolean, nullable=False, default=False)
    watched_date = Column(DateTime, nullable=True)


class TraktSettings(Base):
    __tablename__ = "trakt_settings"

    id = Column(Integer, primary_key=True)
    access_token = Column(String, nullable=True)
    refresh_token = Column(String, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    last_sync_at = Column(DateTime, nullable=True)
    auto_sync_enabled = Column(Boolean, nullable=False, default=False)


__all__ = [
    "Base",
    "Movie",
    "Series",
    "Season",
    "Episode",
    "LibraryEntry",
    "WatchSession",
    "EpisodeProgress",
    "TraktSettings",
    "STATUS_NOT_STARTED",
    "STATUS_IN_PROGRESS",
    "STATUS_COMPLETED",
]
