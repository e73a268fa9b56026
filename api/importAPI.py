# /api/importAPI.py
# CineTrack - Trakt import and sync endpoints
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from _logging import log
from ct_platform.importer import (
    ImportAlreadyRunning,
    ImportOptions,
    NotAuthenticated,
    PreviewError,
    SyncError,
    TraktImporter,
)

router = APIRouter(prefix="/api/trakt", tags=["trakt-import"])


class OptionsIn(BaseModel):
    import_movies: bool = True
    import_series: bool = True
    import_watchlist: bool = True
    import_ratings: bool = True

    def to_options(self) -> ImportOptions:
        return ImportOptions(
            import_movies=self.import_movies,
            import_series=self.import_series,
            import_watchlist=self.import_watchlist,
            import_ratings=self.import_ratings,
        )


class ResyncIn(BaseModel):
    since: str


class AutoSyncIn(BaseModel):
    enabled: bool


def _importer(request: Request) -> TraktImporter:
    return request.app.state.importer


def _jsonable(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    if isinstance(obj, dict):
        return {k: _jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_jsonable(v) for v in obj]
    return obj


def _fail(status: int, error: str) -> JSONResponse:
    return JSONResponse({"ok": False, "error": error}, status_code=status)


def _parse_since(raw: str) -> datetime:
    s = (raw or "").strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


# ── full import ───────────────────────────────────────────────────────────
@router.post("/import/preview")
def api_import_preview(request: Request, payload: OptionsIn | None = Body(None)) -> Any:
    try:
        preview = _importer(request).get_import_preview((payload or OptionsIn()).to_options())
    except PreviewError as e:
        return _fail(502, str(e))
    return {"ok": True, **_jsonable(asdict(preview))}


@router.post("/import/start")
def api_import_start(request: Request, payload: OptionsIn | None = Body(None)) -> Any:
    try:
        _importer(request).start_import((payload or OptionsIn()).to_options())
    except ImportAlreadyRunning as e:
        return _fail(409, str(e))
    return {"ok": True}


@router.get("/import/status")
def api_import_status(request: Request) -> dict[str, Any]:
    return _jsonable(asdict(_importer(request).get_import_status()))


@router.post("/import/cancel")
def api_import_cancel(request: Request) -> dict[str, Any]:
    _importer(request).cancel_import()
    return {"ok": True}


# ── incremental sync ──────────────────────────────────────────────────────
def _run_sync(fn: Any) -> Any:
    try:
        result = fn()
    except NotAuthenticated as e:
        return _fail(401, str(e))
    except SyncError as e:
        return _fail(500, str(e))
    return {"ok": True, **_jsonable(asdict(result))}


@router.post("/sync")
def api_sync(request: Request) -> Any:
    return _run_sync(_importer(request).incremental_sync)


@router.post("/resync")
def api_resync(request: Request, payload: ResyncIn = Body(...)) -> Any:
    try:
        since = _parse_since(payload.since)
    except ValueError:
        return _fail(400, f"Invalid date: {payload.since}")
    return _run_sync(lambda: _importer(request).resync_since(since))


@router.get("/sync/status")
def api_sync_status(request: Request) -> dict[str, Any]:
    return _jsonable(asdict(_importer(request).get_sync_status()))


@router.post("/sync/auto")
def api_sync_auto(request: Request, payload: AutoSyncIn = Body(...)) -> dict[str, Any]:
    status = _importer(request).set_auto_sync(payload.enabled)
    sched = getattr(request.app.state, "scheduler", None)
    if sched is not None:
        sched.refresh()
    log(f"auto-sync {'enabled' if payload.enabled else 'disabled'}", level="INFO", module="SYNC")
    return {"ok": True, **_jsonable(asdict(status))}


__all__ = ["router"]
