# /providers/_http.py
# CineTrack - shared HTTP helpers for provider clients
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

import json
import threading
import time
from email.utils import parsedate_to_datetime
from typing import Any

import requests

__all__ = [
    "PacedSession",
    "build_session",
    "retry_after_seconds",
    "safe_json",
    "request_with_retries",
]


class PacedSession(requests.Session):
    """requests.Session that keeps a minimum gap between two outgoing requests."""

    def __init__(self, provider: str, min_interval_ms: int = 0, user_agent: str | None = None):
        super().__init__()
        self._provider = provider
        self._min_gap = max(0, int(min_interval_ms)) / 1000.0
        self._gate = threading.Lock()
        self._last = 0.0
        if user_agent:
            self.headers["User-Agent"] = user_agent

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:  # type: ignore[override]
        if self._min_gap:
            with self._gate:
                wait = self._min_gap - (time.monotonic() - self._last)
                if wait > 0:
                    time.sleep(wait)
                self._last = time.monotonic()
        return super().request(method, url, **kwargs)


def build_session(provider: str, *, min_interval_ms: int = 0, user_agent: str | None = None) -> PacedSession:
    return PacedSession(provider, min_interval_ms=min_interval_ms, user_agent=user_agent)


def retry_after_seconds(header: str | None) -> float | None:
    if not header:
        return None
    header = header.strip()
    try:
        return max(0.0, float(header))
    except ValueError:
        pass
    try:
        return max(0.0, parsedate_to_datetime(header).timestamp() - time.time())
    except (TypeError, ValueError):
        return None


def safe_json(resp: requests.Response) -> Any:
    try:
        if not (resp.text or "").strip():
            return {}
        ctype = (resp.headers.get("Content-Type") or "").lower()
        if "json" in ctype:
            return resp.json()
        return json.loads(resp.text)
    except ValueError:
        return {}


def request_with_retries(
    session: requests.Session,
    method: str,
    url: str,
    *,
    timeout: float = 10.0,
    max_retries: int = 3,
    retry_on: tuple[int, ...] = (429, 500, 502, 503, 504),
    backoff_base: float = 0.5,
    **kwargs: Any,
) -> requests.Response:
    """
    Send a request, retrying on retry_on statuses and network errors.

    429 waits at least Retry-After. The last response is returned once the
    budget is spent; a network error on the final attempt is re-raised.
    """
    attempts = max(1, int(max_retries))
    for i in range(attempts):
        last_try = i >= attempts - 1
        try:
            resp = session.request(method, url, timeout=timeout, **kwargs)
        except requests.RequestException:
            if last_try:
                raise
            time.sleep(backoff_base * (2**i))
            continue
        if resp.status_code in retry_on and not last_try:
            wait = backoff_base * (2**i)
            if resp.status_code == 429:
                ra = retry_after_seconds(resp.headers.get("Retry-After"))
                if ra is not None:
                    wait = max(wait, ra)
            time.sleep(wait)
            continue
        return resp
    raise requests.RequestException(f"request failed after retries: {method} {url}")
