# providers/metadata/images.py
# CineTrack - local cache of TMDb posters, backdrops and episode stills
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterable, Optional

import requests

from _logging import log as _log
from ct_platform.importer._types import MovieDetails, SeasonDetails, SeriesDetails

from ._meta_TMDB import IMG_BASE

SIZES = {
    "posters": "w500",
    "backdrops": "w1280",
    "stills": "w300",
}


def log(msg: str, level: str = "INFO") -> None:
    _log(msg, level=level, module="IMAGES")


class ImageCache:
    def __init__(self, root: Path, *, enabled: bool = True, session: Optional[requests.Session] = None) -> None:
        self.root = Path(root)
        self.enabled = bool(enabled)
        self._http = session or requests.Session()

    def local_path(self, kind: str, tmdb_path: str) -> Path:
        return self.root / kind / tmdb_path.lstrip("/")

    def download(self, kind: str, tmdb_path: Optional[str]) -> Optional[Path]:
        """Fetch one image if missing. Network and disk errors are logged, not raised."""
        if not self.enabled or not tmdb_path:
            return None
        dest = self.local_path(kind, tmdb_path)
        if dest.exists():
            return dest
        url = f"{IMG_BASE}/{SIZES.get(kind, 'original')}{tmdb_path}"
        try:
            r = self._http.get(url, timeout=20)
            if r.status_code != 200:
                log(f"{url} -> HTTP {r.status_code}", level="WARN")
                return None
            dest.parent.mkdir(parents=True, exist_ok=True)
            tmp = dest.with_suffix(dest.suffix + f".{os.getpid()}.tmp")
            tmp.write_bytes(r.content)
            tmp.replace(dest)
            return dest
        except (requests.RequestException, OSError) as e:
            log(f"download failed for {url}: {e}", level="WARN")
            return None

    def _many(self, kind: str, paths: Iterable[Optional[str]]) -> None:
        for p in paths:
            self.download(kind, p)

    def cache_movie_images(self, details: MovieDetails) -> None:
        self.download("posters", details.poster_path)
        self.download("backdrops", details.backdrop_path)

    def cache_series_images(self, details: SeriesDetails) -> None:
        self.download("posters", details.poster_path)
        self.download("backdrops", details.backdrop_path)

    def cache_season_images(self, season: SeasonDetails) -> None:
        self.download("posters", season.poster_path)
        self._many("stills", (e.still_path for e in season.episodes))

    @classmethod
    def from_config(cls, cfg: dict[str, Any], root: Path) -> "ImageCache":
        lib = cfg.get("library") or {}
        return cls(root, enabled=bool(lib.get("image_cache", True)))


__all__ = ["ImageCache", "SIZES"]
