"""HTTP error rendering, exercised without a database."""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from highlander.exceptions import GameNotFoundError, StorageUnavailableError
from highlander.main import app
from highlander.routes import games as games_routes
from highlander.routes.helpers import get_current_user
from highlander.services.user_service import UserIdentity

PLAYER = UserIdentity(id=2, username="player", is_admin=False)


@pytest_asyncio.fixture()
async def client() -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def _as(user: UserIdentity) -> None:
    async def _override() -> UserIdentity:
        return user

    app.dependency_overrides[get_current_user] = _override


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_missing_identity_is_401(client):
    response = await client.get("/api/games")
    assert response.status_code == 401
    assert response.json()["code"] == "authentication_required"


@pytest.mark.asyncio
async def test_player_cannot_create_game(client):
    _as(PLAYER)
    response = await client.post("/api/games", json={"name": "Calcio", "start_round": 1})
    assert response.status_code == 403
    assert response.json() == {
        "detail": "This action is reserved to administrators.",
        "code": "admin_required",
    }


@pytest.mark.asyncio
async def test_game_rule_error_rendered_with_its_status(client, monkeypatch):
    async def _missing(db, game_id):
        raise GameNotFoundError()

    monkeypatch.setattr(games_routes, "get_game", _missing)
    _as(PLAYER)

    response = await client.get("/api/games/999")
    assert response.status_code == 404
    assert response.json() == {"detail": "Game not found.", "code": "game_not_found"}


@pytest.mark.asyncio
async def test_storage_unavailable_is_generic_503(client, monkeypatch):
    async def _down(db, user):
        raise StorageUnavailableError("list_games_for_user", 3)

    monkeypatch.setattr(games_routes, "list_games_for_user", _down)
    _as(PLAYER)

    response = await client.get("/api/games")
    assert response.status_code == 503
    body = response.json()
    assert body["detail"] == "Service temporarily unavailable"
    assert "list_games_for_user" not in body["detail"]


@pytest.mark.asyncio
async def test_round_out_of_season_rejected(client):
    response = await client.get("/api/matches/39")
    assert response.status_code == 422
