"""
Tests for the HTTP routes, run in-process through httpx's ASGI transport
"""
import pytest
from httpx import ASGITransport, AsyncClient
from unittest.mock import AsyncMock, patch
from main import fastapi_app
from infrastructure.postgres_connection import get_db_session
from infrastructure.auth_config import create_access_token
from models.user import User
from models.message import Message
from config.settings import settings


@pytest.fixture
async def client(session_factory):
    async def override_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_db_session] = override_db_session
    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()


def auth_header(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.mark.unit
class TestAuthRoutes:
    """Test cases for /v1/auth and /v1/users"""

    async def test_join_returns_token(self, client: AsyncClient):
        response = await client.post("/v1/auth/join", json={"name": "  dave  "})

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "dave"
        assert body["token"]

        me = await client.get("/v1/users/me", headers={"Authorization": f"Bearer {body['token']}"})
        assert me.status_code == 200
        assert me.json()["id"] == body["id"]

    async def test_join_rejects_short_name(self, client: AsyncClient):
        response = await client.post("/v1/auth/join", json={"name": "x"})

        assert response.status_code == 422

    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/v1/users/me")

        assert response.status_code == 401
        assert response.json()["error"] == "AuthenticationFailedException"
        assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.unit
class TestMessageRoutes:
    """Test cases for /v1/messages"""

    async def test_history(self, client: AsyncClient, bob: User, alice: User, direct_message: Message):
        response = await client.get(f"/v1/messages/chat/{alice.id}", headers=auth_header(bob))

        assert response.status_code == 200
        body = response.json()
        assert [m["id"] for m in body["messages"]] == [direct_message.id]
        assert body["hasMore"] is False

    async def test_edit_notifies_conversation(self, client: AsyncClient, alice: User, bob: User, direct_message: Message):
        with patch("services.message_notifier.sio.emit", new_callable=AsyncMock) as mock_emit:
            response = await client.put(
                f"/v1/messages/{direct_message.id}",
                json={"content": "Edited"},
                headers=auth_header(alice)
            )

        assert response.status_code == 200
        assert response.json()["isEdited"] is True
        mock_emit.assert_awaited_once()
        assert mock_emit.await_args.args[0] == "message-edited"
        assert mock_emit.await_args.kwargs["room"] == [f"user:{alice.id}", f"user:{bob.id}"]

    async def test_delete_by_other_user_forbidden(self, client: AsyncClient, bob: User, direct_message: Message):
        response = await client.delete(f"/v1/messages/{direct_message.id}", headers=auth_header(bob))

        assert response.status_code == 403

    async def test_delete(self, client: AsyncClient, alice: User, direct_message: Message):
        with patch("services.message_notifier.sio.emit", new_callable=AsyncMock):
            response = await client.delete(f"/v1/messages/{direct_message.id}", headers=auth_header(alice))

        assert response.status_code == 200
        assert response.json()["content"] == settings.DELETED_MESSAGE_PLACEHOLDER

    async def test_reaction_on_unknown_message(self, client: AsyncClient, alice: User):
        response = await client.post("/v1/messages/424242/reactions", json={"emoji": "👍"}, headers=auth_header(alice))

        assert response.status_code == 404

    async def test_reaction_by_non_participant_not_found(
        self,
        client: AsyncClient,
        carol: User,
        direct_message: Message
    ):
        with patch("services.message_notifier.sio.emit", new_callable=AsyncMock) as mock_emit:
            response = await client.post(
                f"/v1/messages/{direct_message.id}/reactions",
                json={"emoji": "👍"},
                headers=auth_header(carol)
            )

        assert response.status_code == 404
        mock_emit.assert_not_awaited()

    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.json() == {"status": "healthy"}
