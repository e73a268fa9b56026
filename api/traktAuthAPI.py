# /api/traktAuthAPI.py
# CineTrack - Trakt OAuth endpoints
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from _logging import log
from providers.trakt._common import TraktError

router = APIRouter(prefix="/api/trakt/auth", tags=["trakt-auth"])


class ExchangeIn(BaseModel):
    code: str
    state: Optional[str] = None


def _client(request: Request) -> Any:
    return request.app.state.trakt


@router.get("/url")
def api_auth_url(request: Request) -> Any:
    try:
        return {"ok": True, **_client(request).get_auth_url()}
    except TraktError as e:
        return JSONResponse({"ok": False, "error": str(e)}, status_code=400)


@router.post("/exchange")
def api_auth_exchange(request: Request, payload: ExchangeIn = Body(...)) -> Any:
    try:
        _client(request).exchange_code(payload.code, payload.state)
    except TraktError as e:
        log(f"code exchange failed: {e}", level="WARN", module="AUTH")
        return JSONResponse({"ok": False, "error": str(e)}, status_code=400)
    return {"ok": True}


@router.post("/disconnect")
def api_auth_disconnect(request: Request) -> dict[str, Any]:
    _client(request).disconnect()
    return {"ok": True}


@router.get("/status")
def api_auth_status(request: Request) -> dict[str, Any]:
    return {"ok": True, "authenticated": bool(_client(request).is_authenticated())}


__all__ = ["router"]
