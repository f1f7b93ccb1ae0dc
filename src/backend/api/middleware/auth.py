from __future__ import annotations

from typing import Annotated
from uuid import UUID

import asyncpg

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.dependencies import get_db
from api.middleware.exception_handlers import AuthenticationError
from api.middleware.request_context import update_request_context
from api.services.auth_service import AuthService
from core.constants import get_settings
from models.schemas.auth import UserInfo

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: Annotated[asyncpg.Pool, Depends(get_db)],
) -> UserInfo:
    """Authenticate incoming REST requests."""
    settings = get_settings()
    auth = AuthService(db, settings)

    if credentials is None:
        if settings.allow_localhost_noauth and _is_localhost(request):
            user = await auth.get_default_user()
            if not user:
                raise AuthenticationError(message="Default user not found")
            return _authenticated(auth, user)
        raise AuthenticationError(message="Authentication required")

    try:
        payload = auth.decode_access_token(credentials.credentials)
        user = await auth.get_user_by_id(UUID(payload["sub"]))
    except ValueError as exc:
        raise AuthenticationError(message="Invalid token") from exc

    if not user:
        raise AuthenticationError(message="User not found")

    return _authenticated(auth, user)


def _authenticated(auth: AuthService, user: asyncpg.Record) -> UserInfo:
    info = UserInfo(**auth.user_payload(user))
    update_request_context(user_id=str(info.id))
    return info


def _is_localhost(request: Request) -> bool:
    """Check if the request originates from localhost."""
    host = request.client.host if request.client else ""
    return host in {"127.0.0.1", "localhost", "::1"}
