"""Admin account management and the admin activity log."""

from __future__ import annotations

import sqlite3
from typing import Any

import structlog

from readspeed.core import subscriptions
from readspeed.db import platform_repository as platform
from readspeed.db import users_repository as users
from readspeed.db.users_repository import ProfileRecord
from readspeed.utils.validators import ValidationError

logger = structlog.get_logger(__name__)

ROLES = ("reader", "admin")


class UserNotFoundError(Exception):
    """Raised when a user ID does not exist."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User '{user_id}' not found")


def log_admin_action(
    admin_id: str,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Append to the activity log. Failures are logged, never raised."""
    try:
        platform.insert_activity(admin_id, action, entity_type, entity_id, details)
    except sqlite3.Error as e:
        logger.error(
            "admin_activity.log_failed",
            admin_id=admin_id,
            action=action,
            error=str(e),
        )


def list_users(
    search: str | None = None,
    role: str | None = None,
    subscription_tier: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[ProfileRecord], int]:
    return users.list_profiles(
        search=search,
        role=role,
        subscription_tier=subscription_tier,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )


def update_user(
    admin_id: str,
    user_id: str,
    role: str | None = None,
    subscription_tier: str | None = None,
) -> ProfileRecord:
    """Change a user's role and/or tier and record the change.

    Raises:
        ValidationError: On unknown roles or tiers, or nothing to change
        UserNotFoundError: If the user does not exist
    """
    if role is None and subscription_tier is None:
        raise ValidationError("Nothing to update")
    if role is not None and role not in ROLES:
        raise ValidationError(f"Role must be one of: {', '.join(ROLES)}", field="role")
    if subscription_tier is not None and subscription_tier not in subscriptions.TIERS:
        raise ValidationError(
            f"Tier must be one of: {', '.join(subscriptions.TIERS)}", field="subscription_tier"
        )

    before = users.get_profile(user_id)
    if before is None:
        raise UserNotFoundError(user_id)

    if role is not None:
        users.update_profile(user_id, role=role)
    if subscription_tier is not None:
        subscriptions.set_user_tier(user_id, subscription_tier)

    after = users.get_profile(user_id)
    log_admin_action(
        admin_id,
        "update_user",
        "user",
        user_id,
        {
            "before": {"role": before.role, "subscription_tier": before.subscription_tier},
            "after": {"role": after.role, "subscription_tier": after.subscription_tier},
        },
    )
    return after  # type: ignore[return-value]


def recent_activity(limit: int = 50, offset: int = 0):
    return platform.list_activity(limit=limit, offset=offset)
