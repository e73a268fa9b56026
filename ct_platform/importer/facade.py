# ct_platform/importer/facade.py
# Public entry point for preview, background import, and incremental sync.
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

from datetime import datetime
from typing import Optional

from ._context import ImportContext, log
from ._full import run_full_import
from ._jobs import ImportJobManager, JobProgress
from ._preview import build_preview
from ._sync import SyncEngine
from ._types import ImportJobState, ImportOptions, Preview, SyncResult, SyncStatus


class TraktImporter:
    def __init__(self, ctx: ImportContext, *, jobs: Optional[ImportJobManager] = None) -> None:
        self.ctx = ctx
        self.jobs = jobs or ImportJobManager(self._run_job)
        self.sync = SyncEngine(ctx)

    def _run_job(self, options: ImportOptions, progress: JobProgress) -> None:
        run_full_import(self.ctx, options, progress)

    # ── full import ───────────────────────────────────────────────────────
    def get_import_preview(self, options: ImportOptions) -> Preview:
        return build_preview(self.ctx.source, self.ctx.guard, options)

    def start_import(self, options: ImportOptions) -> None:
        self.jobs.start(options)

    def get_import_status(self) -> ImportJobState:
        return self.jobs.status()

    def cancel_import(self) -> None:
        self.jobs.cancel()

    def is_import_running(self) -> bool:
        return self.jobs.is_running()

    # ── incremental sync ──────────────────────────────────────────────────
    def incremental_sync(self) -> SyncResult:
        return self.sync.incremental_sync()

    def resync_since(self, when: datetime) -> SyncResult:
        return self.sync.resync_since(when)

    def get_sync_status(self) -> SyncStatus:
        try:
            authed = bool(self.ctx.source.is_authenticated())
        except Exception as e:
            log(f"auth check failed: {e}", level="WARN", module="SYNC")
            authed = False
        settings = self.ctx.store.get_trakt_settings()
        return SyncStatus(
            is_authenticated=authed,
            last_sync_at=settings.last_sync_at,
            auto_sync_enabled=settings.auto_sync_enabled,
        )

    def set_auto_sync(self, enabled: bool) -> SyncStatus:
        self.ctx.store.set_auto_sync(bool(enabled))
        return self.get_sync_status()


__all__ = ["TraktImporter"]
