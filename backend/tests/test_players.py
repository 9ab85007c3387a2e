"""
Tests for caller profiles and push token registration.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from pickup.core.security import PLAYER_ID_HEADER
from pickup.models import Player


def headers_for(player_id: int) -> dict:
    return {PLAYER_ID_HEADER: str(player_id)}


@pytest.mark.asyncio
async def test_profile_created_then_renamed(client: AsyncClient):
    response = await client.get("/api/v1/players/me", headers=headers_for(77))
    assert response.status_code == 404

    response = await client.put("/api/v1/players/me", json={"username": "hooper_77"}, headers=headers_for(77))
    assert response.status_code == 200
    assert response.json()["id"] == 77
    assert response.json()["has_push_token"] is False

    response = await client.put("/api/v1/players/me", json={"username": "hooper.77"}, headers=headers_for(77))
    assert response.status_code == 200

    response = await client.get("/api/v1/players/me", headers=headers_for(77))
    assert response.json()["username"] == "hooper.77"


@pytest.mark.asyncio
async def test_duplicate_username(client: AsyncClient, creator):
    response = await client.put("/api/v1/players/me", json={"username": "organizer"}, headers=headers_for(500))
    assert response.status_code == 409
    assert response.json()["detail"] == "Username already taken"


@pytest.mark.asyncio
async def test_username_validation(client: AsyncClient):
    response = await client.put("/api/v1/players/me", json={"username": "no spaces"}, headers=headers_for(5))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_identity_required(client: AsyncClient):
    assert (await client.get("/api/v1/players/me")).status_code == 401
    assert (await client.get("/api/v1/players/me", headers={PLAYER_ID_HEADER: "abc"})).status_code == 401
    assert (await client.get("/api/v1/players/me", headers={PLAYER_ID_HEADER: "-3"})).status_code == 401


@pytest.mark.asyncio
async def test_push_token_registration(client: AsyncClient, db_session):
    await client.put("/api/v1/players/me", json={"username": "tokened"}, headers=headers_for(12))

    response = await client.put(
        "/api/v1/players/me/push-token",
        json={"push_token": "ExponentPushToken[new]"},
        headers=headers_for(12),
    )
    assert response.status_code == 204

    token = await db_session.execute(select(Player.push_token).where(Player.id == 12))
    assert token.scalar_one() == "ExponentPushToken[new]"

    response = await client.get("/api/v1/players/me", headers=headers_for(12))
    assert response.json()["has_push_token"] is True


@pytest.mark.asyncio
async def test_push_token_requires_profile(client: AsyncClient):
    response = await client.put(
        "/api/v1/players/me/push-token",
        json={"push_token": "ExponentPushToken[new]"},
        headers=headers_for(999),
    )
    assert response.status_code == 404
