# CineTrack test scripts
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import pytest
import requests
import responses
from responses import matchers

from providers.trakt._common import (
    URL_HIST_MOV,
    URL_HIST_SHOWS,
    URL_RATINGS,
    URL_TOKEN,
    URL_WATCHLIST,
    TraktError,
    parse_show_history,
)
from providers.trakt.client import TraktClient

CFG = {
    "trakt": {
        "client_id": "cid",
        "client_secret": "secret",
        "redirect_uri": "urn:ietf:wg:oauth:2.0:oob",
        "timeout": 5,
        "max_retries": 1,
        "history_per_page": 2,
        "min_interval_ms": 0,
    }
}


def _client(store) -> TraktClient:
    return TraktClient(lambda: CFG, store, session=requests.Session())


def _authed(store) -> TraktClient:
    store.save_trakt_tokens("tok", "ref", datetime.now(timezone.utc) + timedelta(hours=1))
    return _client(store)


def _movie_row(tmdb, title, ts):
    return {"watched_at": ts, "movie": {"title": title, "ids": {"trakt": tmdb * 10, "tmdb": tmdb}}}


def _episode_row(tmdb, season, number, ts):
    return {
        "watched_at": ts,
        "show": {"title": f"Show {tmdb}", "ids": {"tmdb": tmdb}},
        "episode": {"season": season, "number": number},
    }


def test_history_is_paginated_and_parsed(store) -> None:
    client = _authed(store)
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            URL_HIST_MOV,
            json=[_movie_row(1, "A", "2024-01-01T10:00:00.000Z"), _movie_row(2, "B", "2024-01-02T10:00:00.000Z")],
            headers={"X-Pagination-Page-Count": "2"},
            match=[matchers.query_param_matcher({"page": "1", "limit": "2"})],
        )
        rsps.add(
            responses.GET,
            URL_HIST_MOV,
            json=[{"watched_at": "2024-01-03T10:00:00.000Z", "movie": {"title": "No tmdb", "ids": {"trakt": 9}}}],
            headers={"X-Pagination-Page-Count": "2"},
            match=[matchers.query_param_matcher({"page": "2", "limit": "2"})],
        )
        items = client.get_watched_movies()

        assert rsps.calls[0].request.headers["Authorization"] == "Bearer tok"
        assert rsps.calls[0].request.headers["trakt-api-key"] == "cid"
        assert rsps.calls[0].request.headers["trakt-api-version"] == "2"

    assert [(i.external_id, i.title, i.media_kind) for i in items] == [(1, "A", "movie"), (2, "B", "movie")]
    assert items[0].watched_at == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


def test_since_is_sent_as_start_at(store) -> None:
    client = _authed(store)
    since = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL_HIST_MOV, json=[], headers={"X-Pagination-Page-Count": "1"})
        assert client.get_watched_movies(since) == []
        q = parse_qs(urlparse(rsps.calls[0].request.url).query)
        assert q["start_at"] == ["2024-03-01T12:00:00.000Z"]


def test_show_history_groups_episodes_and_keeps_earliest_watch(store) -> None:
    client = _authed(store)
    rows = [
        _episode_row(7, 1, 2, "2024-01-05T20:00:00.000Z"),
        _episode_row(7, 1, 1, "2024-01-04T20:00:00.000Z"),
        _episode_row(7, 1, 1, "2023-06-01T20:00:00.000Z"),
    ]
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL_HIST_SHOWS, json=rows, headers={"X-Pagination-Page-Count": "1"})
        shows = client.get_watched_shows_with_episodes()

    assert len(shows) == 1
    show = shows[0]
    assert show.external_id == 7
    assert [(e.season_number, e.episode_number) for e in show.watched_episodes] == [(1, 2), (1, 1)]
    assert show.watched_episodes[1].watched_at == datetime(2023, 6, 1, 20, 0, tzinfo=timezone.utc)
    assert show.last_watched_at == datetime(2024, 1, 5, 20, 0, tzinfo=timezone.utc)


def test_show_history_without_dedupe_keeps_rewatches() -> None:
    rows = [
        _episode_row(7, 1, 1, "2024-01-04T20:00:00.000Z"),
        _episode_row(7, 1, 1, "2023-06-01T20:00:00.000Z"),
    ]
    assert len(parse_show_history(rows, dedupe=False)[0].watched_episodes) == 2


def test_watchlist_and_ratings(store) -> None:
    client = _authed(store)
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            URL_WATCHLIST,
            json=[
                {"type": "movie", "movie": {"title": "M", "ids": {"tmdb": 5}}},
                {"type": "show", "show": {"title": "S", "ids": {"tmdb": 6}}},
                {"type": "season", "season": {"ids": {"tmdb": 99}}},
            ],
            headers={"X-Pagination-Page-Count": "1"},
        )
        rsps.add(
            responses.GET,
            URL_RATINGS,
            json=[
                {"type": "movie", "rating": 8, "movie": {"ids": {"tmdb": 5}}},
                {"type": "show", "rating": 3, "show": {"ids": {"tmdb": 6}}},
                {"type": "episode", "rating": 10, "episode": {"ids": {"tmdb": 1}}},
            ],
            headers={"X-Pagination-Page-Count": "1"},
        )
        wl = client.get_watchlist()
        ratings = client.get_ratings()

    assert [(i.external_id, i.media_kind, i.watched_at) for i in wl] == [(5, "movie", None), (6, "series", None)]
    assert ratings == {(5, "movie"): 8, (6, "series"): 3}


def test_http_error_raises(store) -> None:
    client = _authed(store)
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, URL_HIST_MOV, status=403)
        with pytest.raises(TraktError) as exc:
            client.get_watched_movies()
    assert exc.value.status == 403


def test_reads_without_token_raise(store) -> None:
    client = _client(store)
    assert client.is_authenticated() is False
    with pytest.raises(TraktError):
        client.get_watchlist()


def test_auth_url_and_code_exchange(store) -> None:
    client = _client(store)
    out = client.get_auth_url()
    q = parse_qs(urlparse(out["url"]).query)
    assert q["client_id"] == ["cid"]
    assert q["response_type"] == ["code"]
    assert q["state"] == [out["state"]]

    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.POST,
            URL_TOKEN,
            json={"access_token": "new-tok", "refresh_token": "new-ref", "expires_in": 7776000},
            match=[matchers.json_params_matcher({
                "client_id": "cid",
                "client_secret": "secret",
                "redirect_uri": "urn:ietf:wg:oauth:2.0:oob",
                "code": "abc",
                "grant_type": "authorization_code",
            })],
        )
        client.exchange_code("abc", out["state"])

    st = store.get_trakt_settings()
    assert st.access_token == "new-tok"
    assert st.refresh_token == "new-ref"
    assert st.expires_at > datetime.now(timezone.utc) + timedelta(days=80)
    assert client.is_authenticated() is True


def test_exchange_rejects_unknown_state(store) -> None:
    client = _client(store)
    with pytest.raises(TraktError):
        client.exchange_code("abc", "not-issued")


def test_expired_token_is_refreshed(store) -> None:
    store.save_trakt_tokens("old", "ref", datetime.now(timezone.utc) - timedelta(minutes=5))
    client = _client(store)
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.POST,
            URL_TOKEN,
            json={"access_token": "fresh", "refresh_token": "ref2", "expires_in": 3600},
        )
        rsps.add(responses.GET, URL_WATCHLIST, json=[], headers={"X-Pagination-Page-Count": "1"})
        assert client.get_watchlist() == []
        assert rsps.calls[1].request.headers["Authorization"] == "Bearer fresh"
    assert store.get_trakt_settings().access_token == "fresh"


def test_failed_refresh_means_not_authenticated(store) -> None:
    store.save_trakt_tokens("old", "ref", datetime.now(timezone.utc) - timedelta(minutes=5))
    client = _client(store)
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, URL_TOKEN, status=401, json={"error": "invalid_grant"})
        assert client.is_authenticated() is False


def test_disconnect_clears_tokens(store) -> None:
    client = _authed(store)
    client.disconnect()
    assert store.get_trakt_settings().access_token is None
    assert client.is_authenticated() is False


def test_update_last_sync_time(store) -> None:
    client = _authed(store)
    client.update_last_sync_time()
    assert store.get_trakt_settings().last_sync_at is not None
