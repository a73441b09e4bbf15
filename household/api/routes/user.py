from fastapi import APIRouter, Depends, Response, Cookie, status
from sqlalchemy.ext.asyncio import AsyncSession
from household.db.session import get_db
from household.schemas.user import UserCreate, UserOut, UserLogin, UserPublic, UserUpdate
from household.models.user import User
from household.services.user_service import authenticate_user, create_user, edit_user, get_user_by_id, get_user_or_404
from household.services.account_services import delete_user
from household.core.config import settings
from household.core.dependencies import get_current_user
from household.core.errors import Unauthenticated
from household.core.jwt_config import create_access_token, create_refresh_token, decode_token

router = APIRouter()

def _set_auth_cookies(response: Response, access: str, refresh: str):
    response.set_cookie(
        key="refresh_token",
        value=refresh,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )

    response.set_cookie(
        key="access_token",
        value=access,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )

@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def register_user(data:UserCreate, db:AsyncSession = Depends(get_db)):
    return await create_user(db, data)

@router.post("/login", response_model=UserOut)
async def login_user(data:UserLogin, response : Response, db:AsyncSession = Depends(get_db)):
    user = await authenticate_user(db, data.credentials, data.password)

    if not user:
        raise Unauthenticated("Invalid credentials")

    access = create_access_token({"sub": str(user.id)})
    refresh = create_refresh_token({"sub": str(user.id)})

    user.refresh_token = refresh
    await db.commit()

    _set_auth_cookies(response, access, refresh)
    return user

@router.post("/refresh", response_model=UserOut)
async def refresh_token(
    response: Response,
    db: AsyncSession = Depends(get_db),
    refresh_cookie: str | None = Cookie(None, alias="refresh_token")
):
    if refresh_cookie is None:
        raise Unauthenticated("Refresh token missing")

    payload = decode_token(refresh_cookie)
    if payload.get("type") != "refresh" or payload.get("sub") is None:
        raise Unauthenticated("Invalid refresh token")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise Unauthenticated("Invalid refresh token")

    user = await get_user_by_id(db, user_id)

    if not user:
        raise Unauthenticated("User not found")

    if user.refresh_token != refresh_cookie:
        raise Unauthenticated("Refresh token revoked or rotated")

    new_access = create_access_token({"sub": str(user.id)})
    new_refresh = create_refresh_token({"sub" : str(user.id)})

    user.refresh_token = new_refresh
    await db.commit()

    _set_auth_cookies(response, new_access, new_refresh)
    return user

@router.post("/logout")
async def logout_user(response: Response, db: AsyncSession = Depends(get_db), current_user : User = Depends(get_current_user)):
    current_user.refresh_token = None
    await db.commit()

    response.delete_cookie("refresh_token")
    response.delete_cookie("access_token")
    return {"message":"Logged out"}

@router.get("/me", response_model=UserOut)
async def read_users_me(current_user: User = Depends(get_current_user)):
    return current_user

@router.patch("/me", response_model=UserOut)
async def edit(data: UserUpdate, db:AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await edit_user(db, data, user_id=current_user.id)

@router.delete("/me")
async def delete_me(response: Response, db: AsyncSession = Depends(get_db), current_user: User = Depends(get_current_user)):
    result = await delete_user(db, current_user.id)

    response.delete_cookie("refresh_token")
    response.delete_cookie("access_token")
    return result

@router.get("/{user_id}", response_model=UserPublic)
async def get_profile(user_id: int, db: AsyncSession = Depends(get_db), current_user = Depends(get_current_user)):
    return await get_user_or_404(db, user_id)
