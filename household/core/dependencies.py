from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from household.db.session import get_db
from household.core.errors import Unauthenticated
from household.core.jwt_config import decode_token, get_token_from_cookie
from household.services.user_service import get_user_by_id

async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)):
    token = get_token_from_cookie(request=request)
    payload = decode_token(token)

    if payload.get("type", "access") != "access":
        raise Unauthenticated("Invalid authentication credentials")

    user_id = payload.get("sub")
    if user_id is None:
        raise Unauthenticated("Invalid authentication credentials")

    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        raise Unauthenticated("Invalid authentication credentials")

    user = await get_user_by_id(db, user_id)

    if user is None:
        raise Unauthenticated("User not found")

    return user
