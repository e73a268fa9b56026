from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from ct_platform.importer._types import EpisodeDetails, MovieDetails, SeasonDetails, SeriesDetails
from library.models import STATUS_COMPLETED, STATUS_IN_PROGRESS, STATUS_NOT_STARTED
from library.store import StoreError

T0 = datetime(2024, 6, 1, 23, 30, tzinfo=timezone.utc)


def test_movie_entry_is_reused(store) -> None:
    a = store.insert_movie_entry(MovieDetails(1, "One"), "Trakt Import")
    b = store.insert_movie_entry(MovieDetails(1, "One (updated)"), "Trakt Sync")
    assert a == b
    assert store.count_entries() == 1
    assert store.get_entry(a).why_source == "Trakt Import"


def test_session_exists_on_utc_date(store) -> None:
    entry = store.insert_movie_entry(MovieDetails(1, "One"), "Trakt Import")
    store.insert_movie_watch_session(entry, "Imported from Trakt", T0)

    assert store.movie_session_exists_on_date(entry, T0 + timedelta(minutes=40)) is False
    assert store.movie_session_exists_on_date(entry, T0 - timedelta(hours=10)) is True
    plus2 = timezone(timedelta(hours=2))
    assert store.movie_session_exists_on_date(entry, datetime(2024, 6, 2, 1, 0, tzinfo=plus2)) is True


def test_mark_movie_watched_tracks_first_and_last(store) -> None:
    entry = store.insert_movie_entry(MovieDetails(1, "One"), "Trakt Import")
    store.mark_movie_watched(entry, T0)
    store.mark_movie_watched(entry, T0 - timedelta(days=30))
    row = store.get_entry(entry)
    assert row.watch_status == STATUS_COMPLETED
    assert row.date_first_watched == (T0 - timedelta(days=30)).replace(tzinfo=None)
    assert row.date_last_watched == T0.replace(tzinfo=None)
    assert store.get_latest_watch_date() == T0


def test_episode_progress_counts_only_new_watches(store) -> None:
    entry = store.insert_series_entry(SeriesDetails(5, "Show", number_of_episodes=2), "Trakt Import")
    session = store.get_or_create_default_session(entry)
    assert store.get_or_create_default_session(entry) == session

    assert store.insert_episode_progress(entry, session, 1, 1, T0) is True
    assert store.insert_episode_progress(entry, session, 1, 1, T0 + timedelta(days=1)) is False
    assert store.get_episode_progress(entry) == {(1, 1): T0}
    assert store.update_series_watch_status(entry) == STATUS_IN_PROGRESS

    assert store.insert_episode_progress(entry, session, 1, 2, None) is True
    assert store.update_series_watch_status(entry) == STATUS_COMPLETED


def test_series_status_uses_known_episodes(store) -> None:
    entry = store.insert_series_entry(SeriesDetails(6, "Show", number_of_episodes=0), "Trakt Import")
    assert store.update_series_watch_status(entry) == STATUS_NOT_STARTED

    store.save_season(6, SeasonDetails(0, episodes=(EpisodeDetails(1),)))
    store.save_season(6, SeasonDetails(1, episodes=(EpisodeDetails(1), EpisodeDetails(2))))
    session = store.get_or_create_default_session(entry)
    store.insert_episode_progress(entry, session, 1, 1, T0)
    assert store.update_series_watch_status(entry) == STATUS_IN_PROGRESS
    store.insert_episode_progress(entry, session, 1, 2, T0)
    assert store.update_series_watch_status(entry) == STATUS_COMPLETED


def test_save_season_is_an_upsert(store) -> None:
    store.insert_series_entry(SeriesDetails(7, "Show"), "Trakt Import")
    store.save_season(7, SeasonDetails(1, episodes=(EpisodeDetails(1, air_date=None),)))
    store.save_season(7, SeasonDetails(1, episodes=(EpisodeDetails(1, air_date=date(2020, 1, 1)),)))
    assert store.get_episode_air_dates(7) == {(1, 1): date(2020, 1, 1)}


def test_save_season_for_unknown_series(store) -> None:
    with pytest.raises(StoreError):
        store.save_season(404, SeasonDetails(1))


def test_trakt_settings_round_trip(store) -> None:
    expires = datetime(2030, 1, 1, tzinfo=timezone.utc)
    store.save_trakt_tokens("a", "r", expires)
    st = store.get_trakt_settings()
    assert (st.access_token, st.refresh_token, st.expires_at) == ("a", "r", expires)

    store.set_auto_sync(True)
    store.update_trakt_last_sync(T0)
    store.clear_trakt_tokens()
    st = store.get_trakt_settings()
    assert st.access_token is None
    assert st.auto_sync_enabled is True
    assert st.last_sync_at == T0
