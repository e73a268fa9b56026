# ct_platform/importer/_jobs.py
# Single-flight background import job: state, progress, cooperative cancellation.
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

import threading
from typing import Callable, Optional, Protocol

from ._context import log
from ._types import ImportAlreadyRunning, ImportJobState, ImportOptions


class JobProgress(Protocol):
    def set_total(self, total: int) -> None: ...
    def begin_item(self, label: str) -> None: ...
    def finish_item(self) -> None: ...
    def add_error(self, message: str) -> None: ...
    def is_cancelled(self) -> bool: ...


JobRunner = Callable[[ImportOptions, JobProgress], None]


class ImportJobManager:
    """
    Owns the one live ImportJobState.

    start() is rejected while a run is in progress; status() hands out copies;
    cancel() only sets a flag that the runner polls between items.
    """

    def __init__(self, runner: JobRunner) -> None:
        self._runner = runner
        self._lock = threading.Lock()
        self._state = ImportJobState()
        self.thread: Optional[threading.Thread] = None

    # ── control ───────────────────────────────────────────────────────────
    def start(self, options: ImportOptions) -> threading.Thread:
        with self._lock:
            if self._state.in_progress:
                raise ImportAlreadyRunning()
            self._state = ImportJobState(in_progress=True)
            th = threading.Thread(target=self._run, args=(options,), name="TraktImport", daemon=True)
            self.thread = th
        th.start()
        log(f"import started: {options}", level="INFO")
        return th

    def status(self) -> ImportJobState:
        with self._lock:
            return self._state.snapshot()

    def cancel(self) -> None:
        with self._lock:
            if self._state.in_progress and not self._state.cancellation_requested:
                self._state.cancellation_requested = True
                log("import cancellation requested", level="INFO")

    def is_running(self) -> bool:
        with self._lock:
            return self._state.in_progress

    def join(self, timeout: Optional[float] = None) -> bool:
        th = self.thread
        if th is None:
            return True
        th.join(timeout)
        return not th.is_alive()

    def _run(self, options: ImportOptions) -> None:
        try:
            self._runner(options, self)
        except Exception as e:
            self.add_error(f"Import failed: {e}")
            log(f"import crashed: {e}", level="ERROR")
        finally:
            with self._lock:
                self._state.in_progress = False
                self._state.current_item_label = None
                st = self._state.snapshot()
            log(
                f"import finished: {st.completed_count}/{st.total_count} items, {len(st.errors)} errors"
                + (" (cancelled)" if st.cancellation_requested else ""),
                level="SUCCESS" if not st.errors else "WARN",
            )

    # ── progress (runner side) ────────────────────────────────────────────
    def set_total(self, total: int) -> None:
        with self._lock:
            self._state.total_count = max(0, int(total))

    def begin_item(self, label: str) -> None:
        with self._lock:
            self._state.current_item_label = label

    def finish_item(self) -> None:
        with self._lock:
            if self._state.completed_count < self._state.total_count:
                self._state.completed_count += 1

    def add_error(self, message: str) -> None:
        with self._lock:
            self._state.errors.append(message)

    def is_cancelled(self) -> bool:
        with self._lock:
            return self._state.cancellation_requested


__all__ = ["ImportJobManager", "JobProgress", "JobRunner"]
