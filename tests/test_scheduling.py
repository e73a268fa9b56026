# CineTrack test scripts
from __future__ import annotations

from datetime import datetime, timezone

from services.scheduling import AutoSyncScheduler, compute_next_run, every_n_hours


def _sched(**kw) -> AutoSyncScheduler:
    calls: list[int] = []
    kw.setdefault("run_sync_fn", lambda: calls.append(1))
    s = AutoSyncScheduler(lambda: {"scheduling": {"every_n_hours": 3}}, is_enabled_fn=lambda: True, **kw)
    s.calls = calls  # type: ignore[attr-defined]
    return s


def test_interval_reading() -> None:
    assert every_n_hours({"scheduling": {"every_n_hours": 12}}) == 12
    assert every_n_hours({"scheduling": {"every_n_hours": 0}}) == 6
    assert every_n_hours({"scheduling": {"every_n_hours": "x"}}) == 6
    assert every_n_hours({}) == 6


def test_compute_next_run() -> None:
    now = datetime(2024, 1, 1, 10, 17, 42, tzinfo=timezone.utc)
    assert compute_next_run(now, {"scheduling": {"every_n_hours": 2}}) == datetime(2024, 1, 1, 12, 17, tzinfo=timezone.utc)


def test_trigger_runs_sync_and_records_status() -> None:
    s = _sched()
    assert s.trigger() is True
    assert s.calls == [1]
    st = s.status()
    assert st["last_run_ok"] is True
    assert st["last_error"] == ""


def test_trigger_skipped_while_import_runs() -> None:
    s = _sched(is_busy_fn=lambda: True)
    assert s.trigger() is False
    assert s.calls == []


def test_trigger_failure_is_recorded() -> None:
    logged: list[tuple[str, str]] = []

    def fail() -> None:
        raise RuntimeError("Not authenticated with Trakt")

    s = _sched(run_sync_fn=fail, log_fn=lambda msg, level="INFO", module=None: logged.append((level, msg)))
    assert s.trigger() is False
    assert s.status()["last_error"] == "Not authenticated with Trakt"
    assert ("ERROR", "auto-sync failed: Not authenticated with Trakt") in logged


def test_start_and_stop_thread() -> None:
    s = _sched()
    s.start()
    s.stop()
    assert s.status()["running"] is False
