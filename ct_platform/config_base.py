# ct_platform/config_base.py
# CineTrack - JSON configuration: defaults, deep merge, env overrides, atomic save.
from __future__ import annotations

import copy
import json
import os
import secrets
import threading
import time
from pathlib import Path
from typing import Any, Dict

# ------------------------------------------------------------
# Base dir resolution
# ------------------------------------------------------------
def CONFIG_BASE() -> Path:
    """
    Determine the base directory for config and data files.

    Priority:
      1) $CONFIG_BASE if set
      2) /config (when running in a container that mounts /config)
      3) Project root (one level up from this package)
    """
    env = os.getenv("CONFIG_BASE")
    if env:
        return Path(env)

    if Path("/app").exists():
        return Path("/config")

    return Path(__file__).resolve().parents[1]


DEFAULT_CFG: Dict[str, Any] = {
    # --- Source service ------------------------------------------------------
    "trakt": {
        "client_id": "",                                # From your Trakt app (or $TRAKT_CLIENT_ID)
        "client_secret": "",                            # From your Trakt app (or $TRAKT_CLIENT_SECRET)
        "redirect_uri": "urn:ietf:wg:oauth:2.0:oob",    # OAuth redirect; OOB shows the code on trakt.tv
        "timeout": 15,                                  # HTTP timeout (seconds)
        "max_retries": 3,                               # Retry budget for API calls (429/5xx backoff)
        "history_per_page": 100,                        # Max allowed by Trakt
        "history_max_pages": 10000,                     # Safety cap for huge histories
        "min_interval_ms": 50,                          # Minimum spacing between two requests
    },

    # --- Metadata service ----------------------------------------------------
    "tmdb": {"api_key": ""},                            # TMDb v3 API key (or $TMDB_API_KEY)

    "metadata": {
        "ttl_hours": 6,                                 # In-memory response cache lifetime
        "backoff_max_retries": 4,                       # Retries on 429/5xx
        "backoff_base_ms": 500,
        "backoff_max_ms": 4000,
        "language": "en-US",
    },

    # --- Local library -------------------------------------------------------
    "library": {
        "database_url": "",                             # SQLAlchemy URL; empty = sqlite file under CONFIG_BASE
        "image_cache": True,                            # Download posters/backdrops/stills on import
        "image_dir": "",                                # Empty = <CONFIG_BASE>/images
    },

    # --- Import / sync engine ------------------------------------------------
    "importer": {
        "binge_threshold": 4,                           # More than N episodes on one day = binge day
        "cursor_buffer_hours": 1,                       # Incremental sync re-reads this far before the cursor
    },

    # --- Scheduling ----------------------------------------------------------
    "scheduling": {
        "every_n_hours": 6,                             # Auto-sync interval; the on/off switch lives in the library
    },

    # --- Runtime -------------------------------------------------------------
    "runtime": {
        "debug": False,                                 # Verbose DEBUG lines
        "debug_http": False,                            # Uvicorn access log
    },
}

_ENV_OVERRIDES: tuple[tuple[str, str, str], ...] = (
    ("TRAKT_CLIENT_ID", "trakt", "client_id"),
    ("TRAKT_CLIENT_SECRET", "trakt", "client_secret"),
    ("TRAKT_REDIRECT_URI", "trakt", "redirect_uri"),
    ("TMDB_API_KEY", "tmdb", "api_key"),
    ("DATABASE_URL", "library", "database_url"),
)

MASK = "••••••••"
_SECRET_KEYS = ("client_secret", "api_key", "access_token", "refresh_token")


# ------------------------------------------------------------
# Helpers: paths, IO, merging
# ------------------------------------------------------------
def _cfg_file() -> Path:
    return CONFIG_BASE() / "config.json"

def config_path() -> Path:
    return _cfg_file()


def _read_json(p: Path) -> Dict[str, Any]:
    with p.open("r", encoding="utf-8") as f:
        return json.load(f)


def _write_json_atomic(p: Path, data: Dict[str, Any]) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    suffix = f".{time.time_ns()}.{os.getpid()}.{threading.get_ident()}.{secrets.token_hex(4)}.tmp"
    tmp = p.with_suffix(suffix)

    with tmp.open("w", encoding="utf-8", newline="\n") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write("\n")
    tmp.replace(p)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)  # type: ignore[assignment]
        else:
            out[k] = v
    return out


def _apply_env(cfg: Dict[str, Any]) -> Dict[str, Any]:
    for env, section, key in _ENV_OVERRIDES:
        val = (os.getenv(env) or "").strip()
        if val:
            cfg.setdefault(section, {})[key] = val
    return cfg


def database_url(cfg: Dict[str, Any]) -> str:
    url = str(((cfg.get("library") or {}).get("database_url")) or "").strip()
    if url:
        return url
    return f"sqlite:///{(CONFIG_BASE() / 'cinetrack.db').as_posix()}"


def image_dir(cfg: Dict[str, Any]) -> Path:
    raw = str(((cfg.get("library") or {}).get("image_dir")) or "").strip()
    return Path(raw) if raw else CONFIG_BASE() / "images"


# ------------------------------------------------------------
# Public API
# ------------------------------------------------------------
def load_config() -> Dict[str, Any]:
    """
    Read config.json merged over DEFAULT_CFG; environment variables win.
    An unreadable file counts as empty.
    """
    p = _cfg_file()
    user_cfg: Dict[str, Any] = {}
    if p.exists():
        try:
            user_cfg = _read_json(p)
        except (OSError, ValueError):
            user_cfg = {}
    return _apply_env(_deep_merge(DEFAULT_CFG, user_cfg))


def save_config(cfg: Dict[str, Any]) -> None:
    _write_json_atomic(_cfg_file(), dict(cfg or {}))


def redact_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(cfg or {})

    def _mask(node: Any) -> None:
        if isinstance(node, dict):
            for k, v in node.items():
                if k in _SECRET_KEYS and isinstance(v, str) and v:
                    node[k] = MASK
                else:
                    _mask(v)
        elif isinstance(node, list):
            for it in node:
                _mask(it)

    _mask(out)
    return out


__all__ = [
    "CONFIG_BASE",
    "DEFAULT_CFG",
    "config_path",
    "database_url",
    "image_dir",
    "load_config",
    "save_config",
    "redact_config",
    "MASK",
]
