"""Tests for the REST authentication dependency."""

from __future__ import annotations

from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from typing import Annotated
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID

import pytest

from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from jose import jwt

from api.dependencies import get_db
from api.middleware.auth import get_current_user
from api.middleware.exception_handlers import register_exception_handlers
from models.schemas.auth import UserInfo

USER_ID = UUID("00000000-0000-0000-0000-000000000001")
USER_ROW = {"id": USER_ID, "email": "demo@supportdesk.dev", "display_name": "Demo"}


def make_token(**claims: object) -> str:
    payload: dict[str, object] = {
        "sub": str(USER_ID),
        "type": "access",
        "exp": datetime.now(UTC) + timedelta(minutes=5),
    }
    payload.update(claims)
    return jwt.encode(payload, "test-jwt-secret", algorithm="HS256")


@pytest.fixture
def settings(mock_settings_for_ci: MagicMock) -> Generator[MagicMock, None, None]:
    with patch("api.middleware.auth.get_settings", return_value=mock_settings_for_ci):
        yield mock_settings_for_ci


@pytest.fixture
def client(mock_db_pool: MagicMock, settings: MagicMock) -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/me")
    async def me(user: Annotated[UserInfo, Depends(get_current_user)]) -> dict[str, str]:
        return {"id": str(user.id), "email": user.email}

    app.dependency_overrides[get_db] = lambda: mock_db_pool
    return TestClient(app, raise_server_exceptions=False)


class TestBearerToken:
    def test_valid_token(self, client: TestClient, mock_conn: AsyncMock) -> None:
        mock_conn.fetchrow.return_value = USER_ROW

        response = client.get("/me", headers={"Authorization": f"Bearer {make_token()}"})

        assert response.status_code == 200
        assert response.json() == {"id": str(USER_ID), "email": "demo@supportdesk.dev"}
        assert mock_conn.fetchrow.call_args.args[1] == USER_ID

    def test_invalid_token(self, client: TestClient) -> None:
        response = client.get("/me", headers={"Authorization": "Bearer nonsense"})

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid token"

    def test_subject_must_be_uuid(self, client: TestClient) -> None:
        response = client.get("/me", headers={"Authorization": f"Bearer {make_token(sub='user-42')}"})

        assert response.status_code == 401

    def test_unknown_user(self, client: TestClient, mock_conn: AsyncMock) -> None:
        mock_conn.fetchrow.return_value = None

        response = client.get("/me", headers={"Authorization": f"Bearer {make_token()}"})

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "User not found"


class TestMissingCredentials:
    def test_required_by_default(self, client: TestClient) -> None:
        response = client.get("/me")

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Authentication required"

    def test_test_client_is_not_localhost(
        self, client: TestClient, settings: MagicMock, mock_conn: AsyncMock
    ) -> None:
        settings.allow_localhost_noauth = True

        # TestClient connects as "testclient", which never gets the bypass
        response = client.get("/me")

        assert response.status_code == 401
        mock_conn.fetchrow.assert_not_called()

    @pytest.mark.asyncio
    async def test_localhost_bypass_uses_default_user(
        self, mock_db_pool: MagicMock, mock_conn: AsyncMock, settings: MagicMock
    ) -> None:
        settings.allow_localhost_noauth = True
        mock_conn.fetchrow.return_value = USER_ROW
        request = MagicMock()
        request.client.host = "127.0.0.1"

        user = await get_current_user(request, None, mock_db_pool)

        assert user.id == USER_ID
        assert mock_conn.fetchrow.call_args.args[1] == "demo@supportdesk.dev"
