# /providers/trakt/client.py
# CineTrack - Trakt source client: OAuth, watch history, watchlist, ratings
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

import secrets
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Optional
from urllib.parse import urlencode

import requests

from _logging import log as _log
from providers._http import build_session, request_with_retries, safe_json

from ._common import (
    AUTHORIZE_URL,
    OOB_REDIRECT,
    URL_HIST_MOV,
    URL_HIST_SHOWS,
    URL_RATINGS,
    URL_TOKEN,
    URL_WATCHLIST,
    TraktError,
    build_headers,
    iso_z,
    parse_movie_history,
    parse_ratings,
    parse_show_history,
    parse_watchlist,
)

# expiry is stored this much earlier than Trakt reports
TOKEN_EXPIRY_MARGIN = timedelta(seconds=60)


def log(msg: str, level: str = "INFO") -> None:
    _log(msg, level=level, module="TRAKT")


def _hdr_int(headers: Mapping[str, Any], name: str) -> Optional[int]:
    v = headers.get(name)
    try:
        return int(str(v).strip()) if v is not None else None
    except ValueError:
        return None


class TraktClient:
    def __init__(
        self,
        load_cfg: Callable[[], dict[str, Any]],
        store: Any,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.load_cfg = load_cfg
        self.store = store
        self._session = session
        self._states: set[str] = set()
        self._lock = threading.Lock()

    # ── config ────────────────────────────────────────────────────────────
    def _cfg(self) -> dict[str, Any]:
        return dict((self.load_cfg() or {}).get("trakt") or {})

    def _client_id(self) -> str:
        return str(self._cfg().get("client_id") or "").strip()

    def _client_secret(self) -> str:
        return str(self._cfg().get("client_secret") or "").strip()

    def _redirect_uri(self) -> str:
        return str(self._cfg().get("redirect_uri") or "").strip() or OOB_REDIRECT

    def _http(self) -> requests.Session:
        if self._session is None:
            self._session = build_session("TRAKT", min_interval_ms=int(self._cfg().get("min_interval_ms", 50) or 0))
        return self._session

    def _req(self, method: str, url: str, **kw: Any) -> requests.Response:
        c = self._cfg()
        try:
            return request_with_retries(
                self._http(), method, url,
                timeout=float(c.get("timeout", 15) or 15),
                max_retries=int(c.get("max_retries", 3) or 3),
                **kw,
            )
        except requests.RequestException as e:
            raise TraktError(f"{method} {url} failed: {e}") from e

    # ── tokens ────────────────────────────────────────────────────────────
    def _store_token_response(self, data: Mapping[str, Any]) -> None:
        access = str(data.get("access_token") or "")
        if not access:
            raise TraktError("Trakt token response had no access_token")
        try:
            expires_in = int(data.get("expires_in") or 0)
        except (TypeError, ValueError):
            expires_in = 0
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in) - TOKEN_EXPIRY_MARGIN
        self.store.save_trakt_tokens(access, data.get("refresh_token") or None, expires_at)

    def _post_token(self, payload: dict[str, Any]) -> None:
        payload = {
            "client_id": self._client_id(),
            "client_secret": self._client_secret(),
            "redirect_uri": self._redirect_uri(),
            **payload,
        }
        r = self._req("POST", URL_TOKEN, json=payload, headers=build_headers(self._client_id()))
        if not r.ok:
            raise TraktError(f"Token request failed: HTTP {r.status_code} {r.text[:200]}", r.status_code)
        self._store_token_response(safe_json(r) or {})

    def _refresh(self, refresh_token: str) -> bool:
        try:
            self._post_token({"refresh_token": refresh_token, "grant_type": "refresh_token"})
        except TraktError as e:
            log(f"token refresh failed: {e}", level="WARN")
            return False
        log("access token refreshed", level="INFO")
        return True

    def _access_token(self) -> Optional[str]:
        with self._lock:
            st = self.store.get_trakt_settings()
            if not st.access_token:
                return None
            if st.expires_at is None or datetime.now(timezone.utc) < st.expires_at:
                return st.access_token
            if not st.refresh_token or not self._refresh(st.refresh_token):
                return None
            return self.store.get_trakt_settings().access_token

    def is_authenticated(self) -> bool:
        return self._access_token() is not None

    # ── oauth ─────────────────────────────────────────────────────────────
    def get_auth_url(self) -> dict[str, str]:
        cid = self._client_id()
        if not cid:
            raise TraktError("Trakt client id is not configured")
        state = secrets.token_hex(16)
        with self._lock:
            self._states.add(state)
        q = urlencode({
            "response_type": "code",
            "client_id": cid,
            "redirect_uri": self._redirect_uri(),
            "state": state,
        })
        return {"url": f"{AUTHORIZE_URL}?{q}", "state": state}

    def exchange_code(self, code: str, state: Optional[str] = None) -> None:
        if not (code or "").strip():
            raise TraktError("Authorization code is empty")
        if state is not None:
            with self._lock:
                if state not in self._states:
                    raise TraktError("Unknown OAuth state")
                self._states.discard(state)
        self._post_token({"code": code.strip(), "grant_type": "authorization_code"})
        log("connected to Trakt", level="SUCCESS")

    def disconnect(self) -> None:
        self.store.clear_trakt_tokens()
        log("Trakt tokens cleared", level="INFO")

    # ── reads ─────────────────────────────────────────────────────────────
    def _headers(self) -> dict[str, str]:
        token = self._access_token()
        if not token:
            raise TraktError("Not authenticated with Trakt", 401)
        return build_headers(self._client_id(), token)

    def _get_all(self, url: str, params: Optional[dict[str, Any]] = None) -> list[dict[str, Any]]:
        c = self._cfg()
        per_page = max(1, min(1000, int(c.get("history_per_page", 100) or 100)))
        max_pages = int(c.get("history_max_pages", 10000) or 0)
        headers = self._headers()

        rows: list[dict[str, Any]] = []
        page = 1
        total_pages: Optional[int] = None
        while True:
            r = self._req("GET", url, headers=headers, params={**(params or {}), "page": page, "limit": per_page})
            if r.status_code != 200:
                raise TraktError(f"GET {url} p{page} -> HTTP {r.status_code}", r.status_code)
            if total_pages is None:
                total_pages = _hdr_int(r.headers, "X-Pagination-Page-Count")
            chunk = safe_json(r)
            if not isinstance(chunk, list) or not chunk:
                break
            rows.extend(x for x in chunk if isinstance(x, dict))

            page += 1
            if total_pages is not None and page > total_pages:
                break
            if total_pages is None and len(chunk) < per_page:
                break
            if max_pages and page > max_pages:
                log(f"stopping early at safety cap: max_pages={max_pages}", level="WARN")
                break
        return rows

    def get_watched_movies(self, since: Optional[datetime] = None):
        params = {"start_at": iso_z(since)} if since else None
        items = parse_movie_history(self._get_all(URL_HIST_MOV, params))
        log(f"fetched {len(items)} movie watches" + (f" since {params['start_at']}" if params else ""), level="DEBUG")
        return items

    def get_watched_shows_with_episodes(self, since: Optional[datetime] = None):
        params = {"start_at": iso_z(since)} if since else None
        shows = parse_show_history(self._get_all(URL_HIST_SHOWS, params), dedupe=since is None)
        log(f"fetched {len(shows)} shows with episode history", level="DEBUG")
        return shows

    def get_watchlist(self):
        return parse_watchlist(self._get_all(URL_WATCHLIST))

    def get_ratings(self):
        return parse_ratings(self._get_all(URL_RATINGS))

    def update_last_sync_time(self) -> None:
        self.store.update_trakt_last_sync()


__all__ = ["TraktClient", "TraktError", "TOKEN_EXPIRY_MARGIN"]
