"""Bearer-token and admin-key authentication dependencies."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Annotated, Optional

import jwt
from fastapi import Depends, Header, HTTPException, status

from sifu.config import settings

logger = logging.getLogger(__name__)

TOKEN_ALGORITHM = "HS256"

_MISSING_TOKEN_MSG = "Missing authorization header"
_BAD_HEADER_MSG = "Invalid header format. Expected 'Bearer <token>'"
_INVALID_TOKEN_MSG = "Invalid or expired token"
_ADMIN_REQUIRED_MSG = "Admin access required"


@dataclass(frozen=True)
class CurrentUser:
    id: int
    is_admin: bool = False


def create_access_token(user_id: int, *, is_admin: bool = False, secret: Optional[str] = None) -> str:
    key = secret or settings.token_secret
    if not key:
        raise ValueError("TOKEN_SECRET is not configured")
    payload = {"user": {"id": user_id, "is_admin": is_admin}}
    return jwt.encode(payload, key, algorithm=TOKEN_ALGORITHM)


def decode_access_token(token: str) -> CurrentUser:
    if not settings.token_secret:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token authentication not configured on server")
    try:
        payload = jwt.decode(token, settings.token_secret, algorithms=[TOKEN_ALGORITHM])
    except jwt.PyJWTError as exc:
        logger.info("token rejected: %s", exc)
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, _INVALID_TOKEN_MSG) from exc

    user = payload.get("user")
    if not isinstance(user, dict) or not isinstance(user.get("id"), int):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, _INVALID_TOKEN_MSG)
    return CurrentUser(id=user["id"], is_admin=bool(user.get("is_admin", False)))


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, _BAD_HEADER_MSG)
    return token.strip()


async def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
) -> CurrentUser:
    token = _bearer_token(authorization)
    if token is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, _MISSING_TOKEN_MSG)
    return decode_access_token(token)


async def get_optional_user(
    authorization: Annotated[str | None, Header()] = None,
) -> Optional[CurrentUser]:
    token = _bearer_token(authorization)
    if token is None:
        return None
    return decode_access_token(token)


async def require_admin(
    x_admin_key: Annotated[str | None, Header()] = None,
    user: Optional[CurrentUser] = Depends(get_optional_user),
) -> None:
    if user is not None and user.is_admin:
        return
    if (
        x_admin_key is not None
        and settings.admin_api_key is not None
        and secrets.compare_digest(x_admin_key, settings.admin_api_key)
    ):
        return
    if user is None and x_admin_key is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, _MISSING_TOKEN_MSG)
    raise HTTPException(status.HTTP_403_FORBIDDEN, _ADMIN_REQUIRED_MSG)
