"""Request dependencies: session resolution and role checks."""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from fastapi import Depends, HTTPException, Request, status

from readspeed.config.app_config import load_app_config
from readspeed.core import auth
from readspeed.db import users_repository as users
from readspeed.db.users_repository import ProfileRecord

logger = structlog.get_logger(__name__)


@dataclass
class CurrentUser:
    """The authenticated caller."""

    token: str
    profile: ProfileRecord

    @property
    def id(self) -> str:
        return self.profile.id

    @property
    def tier(self) -> str:
        return self.profile.subscription_tier


def session_token(request: Request) -> str | None:
    """Session token from the Authorization header or the session cookie."""
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
        if token:
            return token
    return request.cookies.get(load_app_config().cookies.name)


def get_current_user(request: Request) -> CurrentUser:
    """Resolve the caller or answer 401."""
    token = session_token(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    user = auth.get_user_for_token(token)
    profile = users.get_profile(user.id) if user else None
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
        )
    if not profile.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled",
        )
    return CurrentUser(token=token, profile=profile)


def require_admin(current: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not current.profile.is_admin:
        logger.warning("admin.access_denied", user_id=current.id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current
