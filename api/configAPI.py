# api/configAPI.py
# CineTrack - read/update config.json with secrets masked
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body
from fastapi.responses import JSONResponse

from ct_platform.config_base import MASK, _deep_merge, load_config, redact_config, save_config

# values the UI echoes back masked are kept as stored
SECRET_PATHS = (
    ("trakt", "client_secret"),
    ("tmdb", "api_key"),
)

router = APIRouter(prefix="/api", tags=["config"])


def _nostore(res: JSONResponse) -> JSONResponse:
    res.headers["Cache-Control"] = "no-store"
    return res


@router.get("/config")
def api_config() -> JSONResponse:
    return _nostore(JSONResponse(redact_config(load_config())))


@router.post("/config")
def api_config_save(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
    current = load_config()
    merged = _deep_merge(current, dict(payload or {}))
    for section, key in SECRET_PATHS:
        val = str(((merged.get(section) or {}).get(key)) or "").strip()
        if val in ("", MASK):
            merged.setdefault(section, {})[key] = (current.get(section) or {}).get(key, "")
    save_config(merged)
    return {"ok": True}


__all__ = ["router"]
