from datetime import datetime, timedelta, timezone
from fastapi import Request
from jose import jwt
from splitledger.core.config import settings
from splitledger.core.exceptions import NotAuthenticated


def create_access_token(data: dict, expires_minutes: int | None = None) -> str:
    payload = dict(data)
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    payload["exp"] = expire
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGO)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise NotAuthenticated("Token expired")
    except jwt.JWTError:
        raise NotAuthenticated("Invalid token")


def get_bearer_token(request: Request) -> str:
    auth = request.headers.get("Authorization")
    if not auth or not auth.startswith("Bearer "):
        raise NotAuthenticated("Missing token")
    return auth.split(" ")[1]
