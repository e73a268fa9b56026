# providers/metadata/_meta_TMDB.py
# CineTrack - TMDb Metadata Provider
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

import hashlib
import random
import threading
import time
from datetime import date
from typing import Any, Callable

import requests

from _logging import log as _log
from ct_platform.importer._types import EpisodeDetails, MovieDetails, SeasonDetails, SeriesDetails
from providers._http import retry_after_seconds

API_BASE = "https://api.themoviedb.org/3"
IMG_BASE = "https://image.tmdb.org/t/p"


def log(msg: str, level: str = "INFO") -> None:
    _log(msg, level=level, module="META")


class MetadataError(Exception):
    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


def _date(v: Any) -> date | None:
    s = str(v or "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        return None


def _opt_int(v: Any) -> int | None:
    try:
        return int(v) if v is not None else None
    except (TypeError, ValueError):
        return None


class TmdbProvider:
    name = "TMDB"
    UA = "CineTrack/1.0"

    def __init__(
        self,
        load_cfg: Callable[[], dict[str, Any]],
        *,
        session: requests.Session | None = None,
    ) -> None:
        self.load_cfg = load_cfg
        self._http = session or requests.Session()
        self._cache: dict[str, tuple[float, Any]] = {}
        self._cache_lock = threading.Lock()

    # ── config ────────────────────────────────────────────────────────────
    def _apikey(self) -> str:
        cfg = self.load_cfg() or {}
        api_key = str((cfg.get("tmdb") or {}).get("api_key") or "").strip()
        if not api_key:
            raise MetadataError("TMDb API key is missing")
        return api_key

    def _md(self) -> dict[str, Any]:
        return dict((self.load_cfg() or {}).get("metadata") or {})

    def _ttl_seconds(self) -> int:
        try:
            hours = int(self._md().get("ttl_hours", 6))
        except (TypeError, ValueError):
            hours = 6
        return max(1, hours) * 3600

    def _backoff_params(self) -> tuple[int, float, float]:
        md = self._md()
        max_retries = int(md.get("backoff_max_retries", 4))
        base_ms = int(md.get("backoff_base_ms", 500))
        max_ms = int(md.get("backoff_max_ms", 4000))
        return max(0, max_retries), max(0.05, base_ms / 1000.0), max(0.1, max_ms / 1000.0)

    def _retry_delay(self, attempt: int, base_s: float, max_s: float) -> float:
        delay = min(max_s, base_s * (2**attempt))
        return delay + random.uniform(0.0, 0.25)

    # ── transport ─────────────────────────────────────────────────────────
    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{API_BASE}{path}"
        q = dict(params or {})
        q["api_key"] = self._apikey()
        lang = self._md().get("language")
        if lang:
            q.setdefault("language", lang)
        ck = url + "?" + "&".join(sorted(f"{k}={v}" for k, v in q.items()))
        h = hashlib.sha1(ck.encode("utf-8")).hexdigest()

        now = time.time()
        with self._cache_lock:
            hit = self._cache.get(h)
        if hit and (now - hit[0]) < self._ttl_seconds():
            return hit[1]

        max_retries, base_s, max_s = self._backoff_params()
        attempt = 0
        while True:
            try:
                r = self._http.get(
                    url,
                    params=q,
                    headers={"User-Agent": self.UA, "Accept": "application/json"},
                    timeout=15,
                )
            except requests.RequestException as e:
                if attempt >= max_retries:
                    log(f"TMDb request failed (n/a) at {path}: {e}", level="WARN")
                    raise MetadataError(f"TMDb request failed: {e}") from e
                time.sleep(self._retry_delay(attempt, base_s, max_s))
                attempt += 1
                continue

            status = r.status_code
            if (status == 429 or 500 <= status < 600) and attempt < max_retries:
                ra = retry_after_seconds(r.headers.get("Retry-After")) if status == 429 else None
                time.sleep(ra if ra is not None else self._retry_delay(attempt, base_s, max_s))
                attempt += 1
                continue
            if status != 200:
                log(f"TMDb request failed ({status}) at {path}", level="INFO" if status == 404 else "WARN")
                raise MetadataError(f"TMDb {path} -> HTTP {status}", status)

            try:
                data = r.json()
            except ValueError as e:
                raise MetadataError(f"TMDb {path} returned invalid JSON") from e
            with self._cache_lock:
                self._cache[h] = (time.time(), data)
            return data

    # ── details ───────────────────────────────────────────────────────────
    def get_movie_details(self, tmdb_id: int) -> MovieDetails:
        d = self._get(f"/movie/{int(tmdb_id)}")
        return MovieDetails(
            tmdb_id=int(d.get("id") or tmdb_id),
            title=str(d.get("title") or d.get("original_title") or ""),
            original_title=d.get("original_title"),
            overview=d.get("overview"),
            tagline=d.get("tagline"),
            release_date=_date(d.get("release_date")),
            runtime_minutes=_opt_int(d.get("runtime")),
            poster_path=d.get("poster_path"),
            backdrop_path=d.get("backdrop_path"),
            imdb_id=d.get("imdb_id"),
            vote_average=d.get("vote_average"),
        )

    def get_series_details(self, tmdb_id: int) -> SeriesDetails:
        d = self._get(f"/tv/{int(tmdb_id)}")
        return SeriesDetails(
            tmdb_id=int(d.get("id") or tmdb_id),
            name=str(d.get("name") or d.get("original_name") or ""),
            original_name=d.get("original_name"),
            overview=d.get("overview"),
            first_air_date=_date(d.get("first_air_date")),
            status=d.get("status"),
            number_of_seasons=int(d.get("number_of_seasons") or 0),
            number_of_episodes=int(d.get("number_of_episodes") or 0),
            poster_path=d.get("poster_path"),
            backdrop_path=d.get("backdrop_path"),
        )

    def get_season_details(self, tmdb_id: int, season_number: int) -> SeasonDetails:
        d = self._get(f"/tv/{int(tmdb_id)}/season/{int(season_number)}")
        episodes = tuple(
            EpisodeDetails(
                episode_number=int(e.get("episode_number")),
                name=e.get("name"),
                air_date=_date(e.get("air_date")),
                runtime_minutes=_opt_int(e.get("runtime")),
                still_path=e.get("still_path"),
            )
            for e in (d.get("episodes") or [])
            if isinstance(e, dict) and e.get("episode_number") is not None
        )
        return SeasonDetails(
            season_number=int(d.get("season_number", season_number)),
            tmdb_season_id=_opt_int(d.get("id")),
            name=d.get("name"),
            air_date=_date(d.get("air_date")),
            poster_path=d.get("poster_path"),
            episodes=episodes,
        )


__all__ = ["TmdbProvider", "MetadataError", "IMG_BASE", "API_BASE"]
