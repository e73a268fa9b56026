# ct_platform/importer/_types.py
# types, protocols and errors for the watch-history importer.
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal, Optional, Protocol

MediaKind = Literal["movie", "series"]

# (season_number, episode_number) -> air date
AirDateIndex = dict[tuple[int, int], date]
# (tmdb_id, media_kind) -> rating on the source's 1..10 scale
RatingsIndex = dict[tuple[int, str], int]


# ── errors ────────────────────────────────────────────────────────────────
class ImporterError(Exception):
    pass


class ImportAlreadyRunning(ImporterError):
    def __init__(self) -> None:
        super().__init__("An import is already in progress")


class NotAuthenticated(ImporterError):
    def __init__(self) -> None:
        super().__init__("Not authenticated with Trakt")


class PreviewError(ImporterError):
    pass


class SyncError(ImporterError):
    pass


# ── import inputs ─────────────────────────────────────────────────────────
@dataclass(frozen=True)
class ImportOptions:
    import_movies: bool = True
    import_series: bool = True
    import_watchlist: bool = True
    import_ratings: bool = True


@dataclass(frozen=True)
class HistoryItem:
    """One movie or series as the source reports it (watched or watchlisted)."""
    external_id: int
    title: str
    media_kind: MediaKind
    watched_at: Optional[datetime] = None
    source_rating: Optional[int] = None


@dataclass(frozen=True)
class EpisodeWatch:
    season_number: int
    episode_number: int
    watched_at: Optional[datetime] = None


@dataclass(frozen=True)
class WatchedSeriesRecord:
    external_id: int
    title: str
    last_watched_at: Optional[datetime] = None
    watched_episodes: tuple[EpisodeWatch, ...] = ()
    source_rating: Optional[int] = None


# ── metadata records ──────────────────────────────────────────────────────
@dataclass(frozen=True)
class MovieDetails:
    tmdb_id: int
    title: str
    original_title: Optional[str] = None
    overview: Optional[str] = None
    tagline: Optional[str] = None
    release_date: Optional[date] = None
    runtime_minutes: Optional[int] = None
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    imdb_id: Optional[str] = None
    vote_average: Optional[float] = None


@dataclass(frozen=True)
class SeriesDetails:
    tmdb_id: int
    name: str
    original_name: Optional[str] = None
    overview: Optional[str] = None
    first_air_date: Optional[date] = None
    status: Optional[str] = None
    number_of_seasons: int = 0
    number_of_episodes: int = 0
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None


@dataclass(frozen=True)
class EpisodeDetails:
    episode_number: int
    name: Optional[str] = None
    air_date: Optional[date] = None
    runtime_minutes: Optional[int] = None
    still_path: Optional[str] = None


@dataclass(frozen=True)
class SeasonDetails:
    season_number: int
    tmdb_season_id: Optional[int] = None
    name: Optional[str] = None
    air_date: Optional[date] = None
    poster_path: Optional[str] = None
    episodes: tuple[EpisodeDetails, ...] = ()


# ── results ───────────────────────────────────────────────────────────────
@dataclass
class ImportJobState:
    in_progress: bool = False
    current_item_label: Optional[str] = None
    completed_count: int = 0
    total_count: int = 0
    errors: list[str] = field(default_factory=list)
    cancellation_requested: bool = False

    def snapshot(self) -> "ImportJobState":
        return ImportJobState(
            in_progress=self.in_progress,
            current_item_label=self.current_item_label,
            completed_count=self.completed_count,
            total_count=self.total_count,
            errors=list(self.errors),
            cancellation_requested=self.cancellation_requested,
        )


@dataclass(frozen=True)
class SyncResult:
    new_movie_watches: int = 0
    new_episode_watches: int = 0
    updated_watchlist_items: int = 0
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class PreviewItem:
    external_id: int
    title: str
    media_kind: MediaKind
    in_library: bool


@dataclass(frozen=True)
class Preview:
    movies: tuple[PreviewItem, ...]
    series: tuple[PreviewItem, ...]
    total_items: int
    already_in_library: int
    new_items: int


@dataclass(frozen=True)
class SyncStatus:
    is_authenticated: bool
    last_sync_at: Optional[datetime]
    auto_sync_enabled: bool


# ── collaborators ─────────────────────────────────────────────────────────
class SourceClient(Protocol):
    def is_authenticated(self) -> bool: ...
    def get_watched_movies(self, since: Optional[datetime] = None) -> list[HistoryItem]: ...
    def get_watched_shows_with_episodes(self, since: Optional[datetime] = None) -> list[WatchedSeriesRecord]: ...
    def get_watchlist(self) -> list[HistoryItem]: ...
    def get_ratings(self) -> RatingsIndex: ...
    def update_last_sync_time(self) -> None: ...


class MetadataClient(Protocol):
    def get_movie_details(self, tmdb_id: int) -> MovieDetails: ...
    def get_series_details(self, tmdb_id: int) -> SeriesDetails: ...
    def get_season_details(self, tmdb_id: int, season_number: int) -> SeasonDetails: ...


class ImageCache(Protocol):
    def cache_movie_images(self, details: MovieDetails) -> None: ...
    def cache_series_images(self, details: SeriesDetails) -> None: ...
    def cache_season_images(self, season: SeasonDetails) -> None: ...


__all__ = [
    "MediaKind",
    "AirDateIndex",
    "RatingsIndex",
    "ImporterError",
    "ImportAlreadyRunning",
    "NotAuthenticated",
    "PreviewError",
    "SyncError",
    "ImportOptions",
    "HistoryItem",
    "EpisodeWatch",
    "WatchedSeriesRecord",
    "MovieDetails",
    "SeriesDetails",
    "EpisodeDetails",
    "SeasonDetails",
    "ImportJobState",
    "SyncResult",
    "PreviewItem",
    "Preview",
    "SyncStatus",
    "SourceClient",
    "MetadataClient",
    "ImageCache",
]
