"""
Auth endpoints — login, logout, session.

POST /api/auth/login sets the session cookie; everything else behind the
auth gate (see main.py) needs that cookie.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel

from ..auth import create_session_token, get_current_user, verify_credentials
from ..config import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(BaseModel):
    username: str
    password: str


@router.post("/login")
def login(request: LoginRequest, response: Response):
    """Check credentials and set the session cookie."""
    if not verify_credentials(request.username, request.password):
        logger.warning("Failed login for %r", request.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )

    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=create_session_token(request.username),
        max_age=settings.SESSION_EXPIRE_HOURS * 3600,
        httponly=True,
        samesite="lax",
    )
    return {
        "ok": True,
        "usingDefaultCredentials": settings.using_default_credentials,
    }


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"ok": True}


@router.get("/session")
def session(username: str = Depends(get_current_user)):
    """Who is logged in, and whether the UI should show the default-credentials warning."""
    return {
        "username": username,
        "usingDefaultCredentials": settings.using_default_credentials,
    }
