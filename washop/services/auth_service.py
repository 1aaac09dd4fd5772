"""Caller identity from the bearer token issued by the auth provider."""

import logging
from typing import Optional

import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from washop import config
from washop.errors import AuthenticationFailed, Unauthorized
from washop.models.shop import UserRole

ADMIN_ROLE = "admin"


def decode_token(token: str) -> dict:
    secret = config.require_env("AUTH_JWT_SECRET")
    # aud выставляет провайдер авторизации, нам он не нужен
    return jwt.decode(
        token, secret, algorithms=[config.AUTH_JWT_ALGORITHM], options={"verify_aud": False}
    )


def resolve_user_id(authorization: Optional[str]) -> str:
    if not authorization:
        raise AuthenticationFailed("Authentication required")

    token = authorization.strip()
    if token.lower().startswith("bearer "):
        token = token[7:].strip()
    if not token:
        raise AuthenticationFailed("Authentication required")

    try:
        payload = decode_token(token)
    except jwt.PyJWTError as e:
        logging.warning("Rejected bearer token: %s", e)
        raise AuthenticationFailed()

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationFailed()
    return str(user_id)


async def is_admin(db: AsyncSession, user_id: str) -> bool:
    result = await db.execute(select(UserRole.id).filter_by(user_id=user_id, role=ADMIN_ROLE))
    return result.first() is not None


async def require_admin(db: AsyncSession, user_id: str) -> None:
    if not await is_admin(db, user_id):
        raise Unauthorized("Admin access required")
