# services/scheduling.py
# CineTrack - periodic incremental Trakt sync
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

DEFAULT_EVERY_N_HOURS = 6


def _now_ts() -> int:
    return int(time.time())


def _iso(ts: int) -> str:
    if not ts:
        return ""
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def every_n_hours(cfg: dict[str, Any]) -> int:
    sch = (cfg or {}).get("scheduling") or {}
    try:
        return max(1, int(sch.get("every_n_hours") or DEFAULT_EVERY_N_HOURS))
    except (TypeError, ValueError):
        return DEFAULT_EVERY_N_HOURS


def compute_next_run(now: datetime, cfg: dict[str, Any]) -> datetime:
    anchor = now.replace(second=0, microsecond=0)
    return anchor + timedelta(hours=every_n_hours(cfg))


class AutoSyncScheduler:
    """
    Runs run_sync_fn every N hours while is_enabled_fn() says auto-sync is on.

    A due run is postponed while is_busy_fn() reports a full import in progress.
    """

    def __init__(
        self,
        load_config: Callable[[], dict[str, Any]],
        run_sync_fn: Callable[[], Any],
        is_enabled_fn: Callable[[], bool],
        is_busy_fn: Callable[[], bool] | None = None,
        log_fn: Callable[..., Any] | None = None,
    ) -> None:
        self.load_config_cb = load_config
        self.run_sync_fn = run_sync_fn
        self.is_enabled_fn = is_enabled_fn
        self.is_busy_fn = is_busy_fn or (lambda: False)
        self.log_fn = log_fn

        self._thread: threading.Thread | None = None
        self._stop = threading.Event()
        self._poke = threading.Event()
        self._lock = threading.Lock()
        self._next_ts = 0

        self._status: dict[str, Any] = {
            "running": False,
            "enabled": False,
            "last_tick": 0,
            "last_run_ok": None,
            "last_run_at": 0,
            "next_run_at": 0,
            "next_run_iso": "",
            "last_error": "",
        }

    def _log(self, msg: str, *, level: str = "INFO") -> None:
        if self.log_fn:
            self.log_fn(msg, level=level, module="SCHED")

    def status(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._status)

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._poke.clear()
        self._thread = threading.Thread(target=self._loop, name="AutoSyncScheduler", daemon=True)
        self._thread.start()
        self._log("scheduler thread started")

    def stop(self) -> None:
        self._stop.set()
        self._poke.set()
        t = self._thread
        if t and t.is_alive():
            t.join(timeout=3.0)
        self._log("scheduler thread stopped")

    def refresh(self) -> None:
        """Re-read the toggle and interval now (next run is re-planned)."""
        with self._lock:
            self._next_ts = 0
        self._poke.set()
        if not self._thread or not self._thread.is_alive():
            self.start()

    def trigger(self) -> bool:
        if self.is_busy_fn():
            self._log("auto-sync skipped: import in progress")
            return False
        ok, err = False, ""
        try:
            self.run_sync_fn()
            ok = True
        except Exception as e:
            err = str(e)
            self._log(f"auto-sync failed: {e}", level="ERROR")
        finally:
            with self._lock:
                self._status["last_run_ok"] = ok
                self._status["last_run_at"] = _now_ts()
                self._status["last_error"] = err
        return ok

    def _set_next(self, ts: int) -> None:
        with self._lock:
            self._next_ts = ts
            self._status["next_run_at"] = ts
            self._status["next_run_iso"] = _iso(ts)

    def _loop(self) -> None:
        with self._lock:
            self._status["running"] = True
        try:
            while not self._stop.is_set():
                with self._lock:
                    self._status["last_tick"] = _now_ts()
                    next_ts = self._next_ts

                try:
                    enabled = bool(self.is_enabled_fn())
                except Exception as e:
                    self._log(f"auto-sync toggle unreadable: {e}", level="WARN")
                    enabled = False
                with self._lock:
                    self._status["enabled"] = enabled

                if not enabled:
                    self._set_next(0)
                    self._sleep_or_poke(30.0)
                    continue

                if next_ts <= 0:
                    nxt = compute_next_run(datetime.now(timezone.utc), self.load_config_cb() or {})
                    self._set_next(int(nxt.timestamp()))
                    self._log(f"next auto-sync at {_iso(int(nxt.timestamp()))}")
                    continue

                if _now_ts() >= next_ts:
                    if self.is_busy_fn():
                        self._sleep_or_poke(5.0)
                        continue
                    self.trigger()
                    self._set_next(0)
                    continue

                self._sleep_or_poke(min(30.0, max(0.5, next_ts - _now_ts())))
        finally:
            with self._lock:
                self._status["running"] = False

    def _sleep_or_poke(self, seconds: float) -> None:
        if seconds <= 0:
            return
        self._poke.wait(timeout=seconds)
        self._poke.clear()


__all__ = ["AutoSyncScheduler", "compute_next_run", "every_n_hours"]
