# /cinetrack.py
# CineTrack - personal media library with Trakt history import and sync
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI, Request

from _logging import log
from api import register as register_api
from ct_platform.config_base import CONFIG_BASE, database_url, image_dir, load_config
from ct_platform.importer import ImportContext, TraktImporter
from library.store import LibraryStore
from providers.metadata._meta_TMDB import TmdbProvider
from providers.metadata.images import ImageCache
from providers.trakt.client import TraktClient
from services.scheduling import AutoSyncScheduler


def build_importer(
    cfg: dict[str, Any],
    *,
    store: Optional[LibraryStore] = None,
    trakt: Optional[TraktClient] = None,
    tmdb: Optional[TmdbProvider] = None,
    images: Optional[ImageCache] = None,
) -> tuple[TraktImporter, TraktClient, LibraryStore]:
    store = store or LibraryStore.from_url(database_url(cfg))
    trakt = trakt or TraktClient(load_config, store)
    tmdb = tmdb or TmdbProvider(load_config)
    images = images or ImageCache.from_config(cfg, image_dir(cfg))
    ctx = ImportContext.from_config(cfg, source=trakt, metadata=tmdb, store=store, images=images)
    return TraktImporter(ctx), trakt, store


def create_app(importer: Optional[TraktImporter] = None, trakt: Optional[TraktClient] = None) -> FastAPI:
    if importer is None or trakt is None:
        importer, trakt, _store = build_importer(load_config())

    def _auto_sync_on() -> bool:
        st = importer.get_sync_status()
        return st.auto_sync_enabled and st.is_authenticated

    scheduler = AutoSyncScheduler(
        load_config,
        run_sync_fn=importer.incremental_sync,
        is_enabled_fn=_auto_sync_on,
        is_busy_fn=importer.is_import_running,
        log_fn=log,
    )

    # Startup sequence
    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        scheduler.start()
        try:
            yield
        finally:
            scheduler.stop()
            if importer.is_import_running():
                importer.cancel_import()
                importer.jobs.join(timeout=5.0)

    app = FastAPI(title="CineTrack")
    app.router.lifespan_context = _lifespan
    app.state.importer = importer
    app.state.trakt = trakt
    app.state.scheduler = scheduler
    register_api(app)

    # Middleware to disable caching for API responses
    @app.middleware("http")
    async def cache_headers_for_api(request: Request, call_next):
        resp = await call_next(request)
        if request.url.path.startswith("/api/"):
            resp.headers["Cache-Control"] = "no-store"
        return resp

    @app.get("/api/scheduling/status")
    def api_scheduling_status() -> dict[str, Any]:
        return scheduler.status()

    return app


# Entry point
def main(host: str = "0.0.0.0", port: int = 8787) -> None:
    cfg = load_config()
    debug = bool((cfg.get("runtime") or {}).get("debug"))
    debug_http = bool((cfg.get("runtime") or {}).get("debug_http"))

    print("\nCineTrack running:")
    print(f"  Local:   http://127.0.0.1:{port}")
    print(f"  Bind:    {host}:{port}")
    print(f"  Config:  {CONFIG_BASE() / 'config.json'} (JSON)")
    print(f"  Library: {database_url(cfg)}\n")

    uvicorn.run(
        create_app(),
        host=host,
        port=port,
        log_level=("debug" if debug else "warning"),
        access_log=debug_http,
    )


if __name__ == "__main__":
    main()
