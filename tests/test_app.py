# CineTrack test scripts
from __future__ import annotations

from fastapi.testclient import TestClient

from cinetrack import create_app


class _Trakt:
    def is_authenticated(self) -> bool:
        return True


def test_app_wires_routes_and_scheduler(importer, config_base) -> None:
    app = create_app(importer, _Trakt())
    with TestClient(app) as client:
        r = client.get("/api/trakt/sync/status")
        assert r.status_code == 200
        assert r.headers["Cache-Control"] == "no-store"

        sched = client.get("/api/scheduling/status").json()
        assert set(sched) >= {"running", "enabled", "next_run_at"}

    assert app.state.scheduler.status()["running"] is False
