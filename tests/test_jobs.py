from __future__ import annotations

import threading

import pytest

from ct_platform.importer import ImportAlreadyRunning, ImportJobManager, ImportOptions


def test_start_rejected_while_running() -> None:
    release = threading.Event()
    started = threading.Event()

    def runner(options, progress) -> None:
        progress.set_total(3)
        progress.begin_item("First")
        started.set()
        release.wait(5)
        progress.finish_item()

    jobs = ImportJobManager(runner)
    jobs.start(ImportOptions())
    assert started.wait(5)

    before = jobs.status()
    with pytest.raises(ImportAlreadyRunning) as exc:
        jobs.start(ImportOptions())
    assert str(exc.value) == "An import is already in progress"
    assert jobs.status() == before

    release.set()
    assert jobs.join(5)
    st = jobs.status()
    assert st.in_progress is False
    assert st.completed_count == 1
    assert st.current_item_label is None


def test_status_is_a_copy() -> None:
    jobs = ImportJobManager(lambda options, progress: None)
    snap = jobs.status()
    snap.errors.append("mutated")
    assert jobs.status().errors == []


def test_cancel_stops_before_next_item() -> None:
    seen: list[int] = []
    first_running = threading.Event()
    go_on = threading.Event()

    def runner(options, progress) -> None:
        progress.set_total(5)
        for i in range(5):
            if progress.is_cancelled():
                return
            progress.begin_item(f"item {i}")
            seen.append(i)
            if i == 0:
                first_running.set()
                go_on.wait(5)
            progress.finish_item()

    jobs = ImportJobManager(runner)
    jobs.start(ImportOptions())
    assert first_running.wait(5)
    jobs.cancel()
    jobs.cancel()
    go_on.set()
    assert jobs.join(5)

    st = jobs.status()
    assert seen == [0]
    assert st.completed_count == 1
    assert st.completed_count <= st.total_count
    assert st.cancellation_requested is True
    assert st.in_progress is False


def test_cancel_when_idle_is_a_no_op() -> None:
    jobs = ImportJobManager(lambda options, progress: None)
    jobs.cancel()
    assert jobs.status().cancellation_requested is False


def test_crash_is_reported_and_clears_running() -> None:
    def runner(options, progress) -> None:
        progress.set_total(2)
        raise RuntimeError("boom")

    jobs = ImportJobManager(runner)
    jobs.start(ImportOptions())
    assert jobs.join(5)
    st = jobs.status()
    assert st.in_progress is False
    assert st.errors == ["Import failed: boom"]
    assert jobs.is_running() is False


def test_completed_never_exceeds_total() -> None:
    def runner(options, progress) -> None:
        progress.set_total(1)
        progress.finish_item()
        progress.finish_item()

    jobs = ImportJobManager(runner)
    jobs.start(ImportOptions())
    assert jobs.join(5)
    assert jobs.status().completed_count == 1


def test_restart_resets_state() -> None:
    def runner(options, progress) -> None:
        progress.set_total(1)
        progress.add_error("bad item")
        progress.finish_item()

    jobs = ImportJobManager(runner)
    jobs.start(ImportOptions())
    assert jobs.join(5)
    assert jobs.status().errors == ["bad item"]

    jobs.start(ImportOptions())
    assert jobs.join(5)
    assert jobs.status().errors == ["bad item"]
    assert jobs.status().completed_count == 1
