from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from washop.db.session import SessionLocal
from washop.services import auth_service


async def get_db():
    async with SessionLocal() as db:
        yield db


def current_user_id(authorization: Optional[str] = Header(None)) -> str:
    return auth_service.resolve_user_id(authorization)


def optional_user_id(authorization: Optional[str] = Header(None)) -> Optional[str]:
    if not authorization:
        return None
    return auth_service.resolve_user_id(authorization)


async def admin_user_id(
    user_id: str = Depends(current_user_id), db: AsyncSession = Depends(get_db)
) -> str:
    await auth_service.require_admin(db, user_id)
    return user_id
