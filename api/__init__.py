from __future__ import annotations

from fastapi import FastAPI

from .configAPI import router as config_router
from .importAPI import router as import_router
from .traktAuthAPI import router as trakt_auth_router

__all__ = [
    "config_router",
    "import_router",
    "trakt_auth_router",
    "register",
]


def register(app: FastAPI) -> None:
    app.include_router(config_router)
    app.include_router(import_router)
    app.include_router(trakt_auth_router)
