"""
Password hashing, JWT access tokens and the authenticated-account dependency.
"""

import base64
import hashlib
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tablebook.core.config import get_settings
from tablebook.core.exceptions import AuthError, AuthErrorKind
from tablebook.infrastructure.redis_client import is_token_revoked

bearer_scheme = HTTPBearer(auto_error=False)


def _password_bytes(password: str) -> bytes:
    # bcrypt reads at most 72 bytes; digest first so every character counts
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("ascii")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed_password.encode("ascii"))
    except ValueError:
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {**data, "iat": now, "exp": expire, "jti": uuid.uuid4().hex}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.InvalidTokenError as exc:  # includes ExpiredSignatureError
        raise _invalid_token() from exc

    if "sub" not in payload or "jti" not in payload:
        raise _invalid_token()
    return payload


def _invalid_token() -> AuthError:
    return AuthError(
        AuthErrorKind.INVALID_TOKEN,
        "Not authenticated",
        code="NOT_AUTHENTICATED",
    )


async def get_token_claims(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict:
    """Decoded claims of a valid, non-revoked bearer token."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _invalid_token()

    claims = decode_access_token(credentials.credentials)
    redis_client = getattr(request.app.state, "redis", None)
    if await is_token_revoked(redis_client, claims["jti"]):
        raise _invalid_token()
    return claims


async def get_current_account_id(claims: dict = Depends(get_token_claims)) -> int:
    try:
        return int(claims["sub"])
    except (TypeError, ValueError) as exc:
        raise _invalid_token() from exc
