from __future__ import annotations

import httpx
import pytest
import pytest_asyncio
from fastapi import status

from speechscore.api.routes import skills as skills_routes
from speechscore.main import app


@pytest_asyncio.fixture
async def client(catalog):
    app.dependency_overrides = {skills_routes._catalog: lambda: catalog}
    asgi_transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=asgi_transport, base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides = {}


@pytest.mark.asyncio
async def test_lists_full_catalog(client):
    response = await client.get("/api/skills")

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert len(body["skills"]) == 110
    assert body["categories"] == [
        "Nervousness",
        "Voice",
        "Body Language",
        "Expressions",
        "Language",
        "Ultimate Level",
    ]
    first = body["skills"][0]
    assert first["id"] == 1
    assert first["isGoodSkill"] is False
    assert first["invertedCategory"] is True


@pytest.mark.asyncio
async def test_filters_by_category(client):
    response = await client.get("/api/skills", params={"category": "Nervousness"})

    skills = response.json()["skills"]
    assert [item["id"] for item in skills] == [1, 2, 3, 4, 5, 6]
    assert all(item["maxScore"] == 10 for item in skills)


@pytest.mark.asyncio
async def test_skills_use_configured_settings(monkeypatch, supabase_env):
    app.dependency_overrides = {}
    monkeypatch.setenv("CATEGORY_RANGES", '{"Voice": [1, 60], "Language": [61, 110]}')
    asgi_transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=asgi_transport, base_url="http://test") as test_client:
        response = await test_client.get("/api/skills")

    assert response.json()["categories"] == ["Voice", "Language"]
