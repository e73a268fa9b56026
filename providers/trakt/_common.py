# /providers/trakt/_common.py
# CineTrack - Trakt endpoints, headers and row parsing
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

import os
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from ct_platform.importer._types import EpisodeWatch, HistoryItem, RatingsIndex, WatchedSeriesRecord

BASE = "https://api.trakt.tv"
AUTHORIZE_URL = "https://trakt.tv/oauth/authorize"
URL_TOKEN = f"{BASE}/oauth/token"
URL_HIST_MOV = f"{BASE}/sync/history/movies"
URL_HIST_SHOWS = f"{BASE}/sync/history/shows"
URL_WATCHLIST = f"{BASE}/sync/watchlist"
URL_RATINGS = f"{BASE}/sync/ratings"

OOB_REDIRECT = "urn:ietf:wg:oauth:2.0:oob"

UA = os.environ.get("CT_UA", "CineTrack/1.0 (Trakt)")


class TraktError(Exception):
    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


def build_headers(client_id: str, access_token: str | None = None) -> dict[str, str]:
    h = {
        "Accept": "application/json",
        "Content-Type": "application/json",
        "trakt-api-version": "2",
        "trakt-api-key": str(client_id or "").strip(),
        "User-Agent": UA,
    }
    if access_token:
        h["Authorization"] = f"Bearer {access_token}"
    return h


def iso_z(dt: datetime) -> str:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_ts(v: Any) -> Optional[datetime]:
    if not v:
        return None
    s = str(v).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _tmdb(node: Mapping[str, Any] | None) -> Optional[int]:
    ids = (node or {}).get("ids") or {}
    try:
        v = ids.get("tmdb")
        return int(v) if v not in (None, "") else None
    except (TypeError, ValueError):
        return None


def _int(v: Any) -> Optional[int]:
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def parse_movie_history(rows: Iterable[Mapping[str, Any]]) -> list[HistoryItem]:
    out: list[HistoryItem] = []
    for row in rows:
        mv = row.get("movie")
        tmdb = _tmdb(mv)
        if not isinstance(mv, Mapping) or tmdb is None:
            continue
        out.append(HistoryItem(
            external_id=tmdb,
            title=str(mv.get("title") or ""),
            media_kind="movie",
            watched_at=parse_ts(row.get("watched_at")),
        ))
    return out


def parse_show_history(rows: Iterable[Mapping[str, Any]], *, dedupe: bool) -> list[WatchedSeriesRecord]:
    """
    Group episode history rows by show.

    With dedupe, repeated watches of one episode collapse to the earliest one;
    without it every watch row is kept.
    """
    groups: "OrderedDict[int, dict[str, Any]]" = OrderedDict()
    for row in rows:
        show, ep = row.get("show"), row.get("episode")
        if not isinstance(show, Mapping) or not isinstance(ep, Mapping):
            continue
        tmdb, number = _tmdb(show), _int(ep.get("number"))
        if tmdb is None or number is None:
            continue
        g = groups.setdefault(tmdb, {"title": str(show.get("title") or ""), "eps": []})
        g["eps"].append(EpisodeWatch(_int(ep.get("season")) or 0, number, parse_ts(row.get("watched_at"))))

    out: list[WatchedSeriesRecord] = []
    for tmdb, g in groups.items():
        eps: list[EpisodeWatch] = g["eps"]
        if dedupe:
            best: "OrderedDict[tuple[int, int], EpisodeWatch]" = OrderedDict()
            for e in eps:
                k = (e.season_number, e.episode_number)
                cur = best.get(k)
                if cur is None or (e.watched_at is not None and (cur.watched_at is None or e.watched_at < cur.watched_at)):
                    best[k] = e
            eps = list(best.values())
        stamps = [e.watched_at for e in eps if e.watched_at is not None]
        out.append(WatchedSeriesRecord(
            external_id=tmdb,
            title=g["title"],
            last_watched_at=max(stamps) if stamps else None,
            watched_episodes=tuple(eps),
        ))
    return out


def parse_watchlist(rows: Iterable[Mapping[str, Any]]) -> list[HistoryItem]:
    out: list[HistoryItem] = []
    for row in rows:
        typ = str(row.get("type") or "").lower()
        if typ not in ("movie", "show"):
            continue
        node = row.get(typ)
        tmdb = _tmdb(node)
        if not isinstance(node, Mapping) or tmdb is None:
            continue
        out.append(HistoryItem(
            external_id=tmdb,
            title=str(node.get("title") or ""),
            media_kind="movie" if typ == "movie" else "series",
        ))
    return out


def parse_ratings(rows: Iterable[Mapping[str, Any]]) -> RatingsIndex:
    out: RatingsIndex = {}
    for row in rows:
        typ = str(row.get("type") or "").lower()
        if typ not in ("movie", "show"):
            continue
        tmdb, rating = _tmdb(row.get(typ)), _int(row.get("rating"))
        if tmdb is None or rating is None:
            continue
        out[(tmdb, "movie" if typ == "movie" else "series")] = rating
    return out


__all__ = [
    "BASE",
    "AUTHORIZE_URL",
    "URL_TOKEN",
    "URL_HIST_MOV",
    "URL_HIST_SHOWS",
    "URL_WATCHLIST",
    "URL_RATINGS",
    "OOB_REDIRECT",
    "TraktError",
    "build_headers",
    "iso_z",
    "parse_ts",
    "parse_movie_history",
    "parse_show_history",
    "parse_watchlist",
    "parse_ratings",
]
