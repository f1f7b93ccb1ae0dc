from __future__ import annotations

from typing import Any
from uuid import UUID

import asyncpg

from jose import JWTError, jwt

from core.constants import Settings, get_settings
from utils.db_utils import acquire_connection


class AuthService:
    """Validates access tokens and resolves the users they belong to.

    Tokens are issued elsewhere; this service only verifies them.
    """

    def __init__(self, pool: asyncpg.Pool, settings: Settings | None = None):
        self.pool = pool
        self.settings = settings or get_settings()

    async def get_default_user(self) -> asyncpg.Record | None:
        """Retrieve the seeded demo user used by the localhost bypass."""
        return await self.get_user_by_email(self.settings.default_user_email)

    def decode_access_token(self, token: str) -> dict[str, Any]:
        """Decode and validate an access token."""
        return self._decode_token(token, "access")

    async def get_user_by_email(self, email: str) -> asyncpg.Record | None:
        async with acquire_connection(self.pool) as conn:
            return await conn.fetchrow(
                "SELECT * FROM users WHERE email = $1",
                email,
            )

    async def get_user_by_id(self, user_id: UUID) -> asyncpg.Record | None:
        async with acquire_connection(self.pool) as conn:
            return await conn.fetchrow(
                "SELECT * FROM users WHERE id = $1",
                user_id,
            )

    def _decode_token(self, token: str, token_type: str) -> dict[str, Any]:
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                self.settings.jwt_secret,
                algorithms=[self.settings.jwt_algorithm],
            )
        except JWTError as exc:
            raise ValueError("Invalid token") from exc

        if payload.get("type") != token_type:
            raise ValueError("Invalid token type")
        if not payload.get("sub"):
            raise ValueError("Token has no subject")
        return payload

    def user_payload(self, user: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": user["id"],
            "email": user["email"],
            "display_name": user.get("display_name"),
        }
