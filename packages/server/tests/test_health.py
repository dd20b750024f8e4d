"""
Tests for the system endpoints and the v1 API root.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_ok(self, anon_client):
        resp = await anon_client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_health_has_security_headers(self, anon_client):
        resp = await anon_client.get("/health")
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert resp.headers["X-Content-Type-Options"] == "nosniff"


class TestReady:
    @pytest.mark.asyncio
    async def test_ready_when_redis_answers(self, anon_client):
        resp = await anon_client.get("/ready")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ready"}

    @pytest.mark.asyncio
    async def test_not_ready_without_redis(self, anon_client):
        with patch("app.main.ping_redis", AsyncMock(return_value=False)):
            resp = await anon_client.get("/ready")
        assert resp.status_code == 503
        assert resp.json() == {"status": "unavailable"}


class TestApiRoot:
    @pytest.mark.asyncio
    async def test_lists_endpoints(self, anon_client):
        resp = await anon_client.get("/api/v1/")
        assert resp.status_code == 200
        data = resp.json()
        assert data["api"] == "v1"
        assert set(data["endpoints"]) == {"/alerts", "/tasks", "/events", "/users"}


class TestCollectionPaths:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/api/v1/alerts", "/api/v1/events", "/api/v1/users"])
    async def test_served_without_trailing_slash(self, client, path):
        resp = await client.get(path)
        assert resp.status_code == 200
        assert "location" not in resp.headers

    @pytest.mark.asyncio
    async def test_alert_list_body(self, client):
        resp = await client.get("/api/v1/alerts")
        assert set(resp.json()) == {"alerts", "summary"}
