import uuid
import jwt
from jwt import ExpiredSignatureError, InvalidTokenError
from datetime import datetime, timedelta, timezone
from fastapi import Request
from household.core.config import settings
from household.core.errors import Unauthenticated

def create_access_token(data: dict, expires_min: int | None = None):
    to_encode = data.copy()
    minutes = expires_min if expires_min is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    to_encode.update({"exp": expire, "type": "access"})

    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm = settings.JWT_ALGO)

def create_refresh_token(data: dict, expires_days: int | None = None):
    to_encode = data.copy()
    days = expires_days if expires_days is not None else settings.REFRESH_TOKEN_EXPIRE_DAYS
    expire = datetime.now(timezone.utc) + timedelta(days=days)
    # jti keeps two tokens minted in the same second distinct for rotation
    to_encode.update({"exp" : expire, "type": "refresh", "jti": uuid.uuid4().hex})

    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm = settings.JWT_ALGO)

def decode_token(token : str):
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms = [settings.JWT_ALGO]
        )

        return payload
    except ExpiredSignatureError:
        raise Unauthenticated("Token has expired")
    except InvalidTokenError:
        raise Unauthenticated("Invalid token")

def get_token_from_cookie(request : Request) -> str:
    token = request.cookies.get("access_token")
    if not token:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header.split(" ", 1)[1]

    if not token:
        raise Unauthenticated("Authentication required.")

    return token.strip()
