"""
Session-cookie auth for the single configured account.

The session cookie holds a signed JWT (python-jose); the configured password
is compared through passlib so the plain value is only touched once, when
it is hashed.
"""

import secrets
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

from fastapi import HTTPException, Request, status
from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import settings

# --- Password hashing ---

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


@lru_cache(maxsize=4)
def _configured_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_credentials(username: str, password: str) -> bool:
    """Compare against AUTH_USERNAME / AUTH_PASSWORD. An empty configured password never matches."""
    if not settings.AUTH_PASSWORD:
        return False
    username_ok = secrets.compare_digest(username.encode(), settings.AUTH_USERNAME.encode())
    password_ok = pwd_context.verify(password, _configured_password_hash(settings.AUTH_PASSWORD))
    return username_ok and password_ok


# --- Session tokens ---

def _get_secret() -> str:
    """Get the signing secret, failing loudly if not configured."""
    if not settings.SECRET_KEY:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="SECRET_KEY not configured; set it in environment variables",
        )
    return settings.SECRET_KEY


def create_session_token(username: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(hours=settings.SESSION_EXPIRE_HOURS)
    payload = {
        "sub": username,
        "exp": expire,
        "type": "session",
    }
    return jwt.encode(payload, _get_secret(), algorithm=settings.JWT_ALGORITHM)


def decode_session_token(token: str) -> Optional[str]:
    """Username for a valid, unexpired session token for the configured account; else None."""
    try:
        payload = jwt.decode(token, _get_secret(), algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != "session":
        return None
    username = payload.get("sub")
    if username != settings.AUTH_USERNAME:
        return None
    return username


def get_session_user(request: Request) -> Optional[str]:
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        return None
    return decode_session_token(token)


# --- FastAPI dependency ---

def get_current_user(request: Request) -> str:
    """FastAPI dependency: returns the logged-in username or raises 401."""
    username = get_session_user(request)
    if username is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return username
