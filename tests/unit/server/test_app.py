"""Tests for server/app.py — app factory, middleware, static assets, lifespan."""
# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from core.config import load_config
from core.runtime import build_runtime
from core.time_utils import days_ago_iso
from server.app import _sweep_sessions, create_app


@pytest.fixture
def runtime(data_dir, http_client):
    rt = build_runtime(load_config(), data_dir, api_key="test-key", http_client=http_client)
    yield rt
    rt.store.close()


@pytest.fixture
async def client(runtime):
    app = create_app(runtime=runtime)
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# ── Wiring ───────────────────────────────────────────────


class TestCreateApp:
    async def test_state_is_populated(self, runtime):
        app = create_app(runtime=runtime)
        assert app.state.runtime is runtime
        assert app.state.store is runtime.store
        assert app.state.orchestrator is runtime.orchestrator

    async def test_health_under_api_prefix(self, client):
        resp = await client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    async def test_generated_asset_is_served(self, client):
        created = (await client.post(
            "/api/sessions", json={"characterDescription": "robot scout"},
        )).json()
        body = (await client.post(
            "/api/generate-texture", json={"sessionId": created["id"]},
        )).json()

        resp = await client.get(body["imageUrl"])
        assert resp.status_code == 200
        assert resp.content == b"bytes:/req-1.png"

    async def test_unhandled_error_is_500(self, client, runtime, monkeypatch):
        async def boom(*args, **kwargs):
            raise RuntimeError("kaboom")

        monkeypatch.setattr(runtime.orchestrator, "run", boom)
        resp = await client.post("/api/pipeline/run", json={})
        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error"}


# ── Middleware ───────────────────────────────────────────


class TestRequestLogging:
    async def test_adds_request_id_header(self, client):
        resp = await client.get("/api/sessions")
        assert len(resp.headers["X-Request-ID"]) > 0

    async def test_respects_existing_request_id(self, client):
        resp = await client.get("/api/sessions", headers={"X-Request-ID": "custom-id-123"})
        assert resp.headers["X-Request-ID"] == "custom-id-123"

    async def test_health_not_logged(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="charforge.request"):
            await client.get("/api/health")
        assert not any("/api/health" in rec.message for rec in caplog.records)

    async def test_normal_path_logged(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="charforge.request"):
            await client.get("/api/sessions")
        assert any("/api/sessions" in rec.message for rec in caplog.records)


# ── Lifespan and retention ───────────────────────────────


class TestLifespan:
    def test_schedules_retention_sweep(self, data_dir):
        rt = build_runtime(load_config(), data_dir, api_key="test-key")
        app = create_app(runtime=rt)
        with TestClient(app) as client:
            assert client.get("/api/health").status_code == 200
            job = app.state.scheduler.get_job("session_retention_sweep")
            assert job is not None
            assert job.args == (rt,)

    async def test_sweep_removes_stale_sessions(self, runtime):
        stale = runtime.store.create_session("old").id
        fresh = runtime.store.create_session("new").id
        runtime.store.conn.execute(
            "UPDATE sessions SET last_accessed = ? WHERE id = ?",
            (days_ago_iso(45), stale),
        )
        runtime.store.conn.commit()

        assert _sweep_sessions(runtime) == 1
        assert runtime.store.get_session(stale) is None
        assert runtime.store.get_session(fresh) is not None

    async def test_sweep_error_is_logged(self, runtime, monkeypatch, caplog):
        def broken(days):
            raise RuntimeError("disk gone")

        monkeypatch.setattr(runtime.store, "cleanup_old_sessions", broken)
        with caplog.at_level(logging.ERROR, logger="charforge.server"):
            assert _sweep_sessions(runtime) == 0
        assert "Retention sweep failed" in caplog.text
