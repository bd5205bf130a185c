from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi.security import HTTPBearer
from jose import jwt
from pydantic import BaseModel

from app.haultrack.core.config import settings

# Tokens are issued by the external auth service; this module only verifies them.
bearer_scheme = HTTPBearer(auto_error=False)

DEFAULT_TOKEN_TTL = timedelta(minutes=60)


class TokenData(BaseModel):
    sub: str
    role: str
    name: str | None = None


def create_access_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or DEFAULT_TOKEN_TTL)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_user_access_token(user, expires_delta: Optional[timedelta] = None) -> str:
    return create_access_token(
        {"sub": str(user.id), "role": user.role, "name": user.name},
        expires_delta=expires_delta,
    )


def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
