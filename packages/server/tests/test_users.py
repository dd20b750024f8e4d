"""
Tests for the user directory endpoints.
"""

from __future__ import annotations

import uuid

import pytest


class TestUserDirectory:
    @pytest.mark.asyncio
    async def test_list_sorted_by_last_name(self, client):
        resp = await client.get("/api/v1/users")
        assert resp.status_code == 200
        assert [u["last_name"] for u in resp.json()] == ["Diaz", "Ng", "Okafor"]

    @pytest.mark.asyncio
    async def test_search(self, client):
        resp = await client.get("/api/v1/users", params={"search": "carol"})
        assert [u["first_name"] for u in resp.json()] == ["Carol"]

    @pytest.mark.asyncio
    async def test_get_user(self, client, users):
        resp = await client.get(f"/api/v1/users/{users['alice'].id}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["email"] == "alice@example.com"
        assert "password_hash" not in data

    @pytest.mark.asyncio
    async def test_unknown_user(self, client):
        resp = await client.get(f"/api/v1/users/{uuid.uuid4()}")
        assert resp.status_code == 404
