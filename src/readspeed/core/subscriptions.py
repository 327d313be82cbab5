"""Subscription tiers, limits and monthly usage tracking."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Literal

import structlog

from readspeed.db import platform_repository as platform
from readspeed.db import users_repository as users
from readspeed.db.platform_repository import (
    MonthlyUsageRecord,
    SubscriptionLimitsRecord,
    SubscriptionPlanRecord,
)

logger = structlog.get_logger(__name__)

TIERS = ("free", "reader", "pro")
TIER_LEVELS = {tier: level for level, tier in enumerate(TIERS)}

FeatureAction = Literal["leaderboard_view", "leaderboard_join", "book_stats", "data_export"]
UsageAction = Literal["submission", "custom_text", "exercise"]

_FEATURE_COLUMNS = {
    "leaderboard_view": "can_see_leaderboard",
    "leaderboard_join": "can_join_leaderboard",
    "book_stats": "can_see_book_stats",
    "data_export": "can_export_data",
}

_FEATURE_MESSAGES = {
    "leaderboard_view": "Upgrade to view the leaderboard",
    "leaderboard_join": "Upgrade to join the leaderboard",
    "book_stats": "Upgrade to see book statistics",
    "data_export": "Upgrade to export your data",
}


class LimitExceededError(Exception):
    """Raised when a tier does not allow an action."""

    def __init__(self, action: str, reason: str):
        self.action = action
        self.reason = reason
        super().__init__(reason)


class UnknownTierError(Exception):
    """Raised for a tier name outside TIERS."""

    def __init__(self, tier: str):
        self.tier = tier
        super().__init__(f"Unknown subscription tier '{tier}'")


@dataclass
class LimitCheck:
    """Result of a limit check."""

    allowed: bool
    reason: str | None = None
    current: int | None = None
    limit: int | None = None


def tier_at_least(tier: str, required: str) -> bool:
    return TIER_LEVELS.get(tier, 0) >= TIER_LEVELS.get(required, 0)


def current_month(today: date | None = None) -> str:
    """Usage-month key (YYYY-MM-01)."""
    today = today or datetime.now(timezone.utc).date()
    return today.replace(day=1).isoformat()


def get_tier_limits(tier: str) -> SubscriptionLimitsRecord | None:
    return platform.get_limits(tier)


def check_user_limits(
    user_id: str,
    tier: str,
    action: FeatureAction | UsageAction,
    exercise_id: str | None = None,
    today: date | None = None,
) -> LimitCheck:
    """Check whether a user's tier permits an action right now.

    Feature actions consult the tier's capability flags. Usage actions
    compare this month's counters with the tier's quota (None means
    unlimited). Re-using an exercise already counted this month is always
    allowed.

    Args:
        user_id: The acting user
        tier: Their subscription tier
        action: Feature or usage action name
        exercise_id: Required for the "exercise" action
        today: Date override for tests

    Returns:
        LimitCheck. Tiers without a limits row allow everything.
    """
    limits = platform.get_limits(tier)
    if limits is None:
        return LimitCheck(allowed=True)

    if action in _FEATURE_COLUMNS:
        allowed = bool(getattr(limits, _FEATURE_COLUMNS[action]))
        return LimitCheck(allowed=allowed, reason=None if allowed else _FEATURE_MESSAGES[action])

    usage = platform.get_monthly_usage(user_id, current_month(today))

    if action == "submission":
        return _quota(usage.submission_count, limits.max_submissions_per_month, "reading submissions")
    if action == "custom_text":
        return _quota(usage.custom_texts_count, limits.max_custom_texts, "custom texts")
    if action == "exercise":
        if exercise_id and exercise_id in usage.exercises_used:
            return LimitCheck(allowed=True, current=len(usage.exercises_used), limit=limits.max_exercises)
        return _quota(len(usage.exercises_used), limits.max_exercises, "exercises")

    raise ValueError(f"Unknown action '{action}'")


def _quota(current: int, limit: int | None, label: str) -> LimitCheck:
    if limit is None or current < limit:
        return LimitCheck(allowed=True, current=current, limit=limit)
    return LimitCheck(
        allowed=False,
        reason=f"Monthly limit of {limit} {label} reached. Upgrade for more.",
        current=current,
        limit=limit,
    )


def enforce_limit(
    user_id: str,
    tier: str,
    action: FeatureAction | UsageAction,
    exercise_id: str | None = None,
) -> None:
    """check_user_limits, raising when not allowed.

    Raises:
        LimitExceededError: If the action is not allowed
    """
    check = check_user_limits(user_id, tier, action, exercise_id=exercise_id)
    if not check.allowed:
        logger.info("subscriptions.limit_hit", user_id=user_id, tier=tier, action=action)
        raise LimitExceededError(action, check.reason or "Limit reached")


def track_usage(
    user_id: str,
    action: UsageAction,
    amount: int = 1,
    exercise_id: str | None = None,
    today: date | None = None,
) -> MonthlyUsageRecord:
    """Increment this month's usage counters."""
    usage = platform.get_monthly_usage(user_id, current_month(today))
    if action == "submission":
        usage.submission_count += amount
    elif action == "custom_text":
        usage.custom_texts_count += amount
    elif action == "exercise":
        if exercise_id and exercise_id not in usage.exercises_used:
            usage.exercises_used.append(exercise_id)
    else:
        raise ValueError(f"Unknown usage action '{action}'")
    platform.save_monthly_usage(usage)
    return usage


def set_user_tier(user_id: str, tier: str, billing_cycle: str | None = None):
    """Move a user to a tier, recording a plan subscription when one exists.

    Raises:
        UnknownTierError: If tier is not known
    """
    if tier not in TIERS:
        raise UnknownTierError(tier)
    profile = users.update_profile(user_id, subscription_tier=tier, subscription_status="active")

    plan = platform.get_plan_by_name(tier)
    if plan is not None:
        start = datetime.now(timezone.utc)
        end = None
        if billing_cycle == "monthly":
            end = (start + timedelta(days=30)).isoformat()
        elif billing_cycle == "yearly":
            end = (start + timedelta(days=365)).isoformat()
        platform.assign_subscription(user_id, plan.id, billing_cycle, start.isoformat(), end)

    logger.info("subscriptions.tier_changed", user_id=user_id, tier=tier)
    return profile


def update_tier_limits(tier: str, **fields) -> SubscriptionLimitsRecord:
    """Create or change the limits row for a tier.

    Raises:
        UnknownTierError: If tier is not known
    """
    if tier not in TIERS:
        raise UnknownTierError(tier)
    limits = platform.upsert_limits(tier, **fields)
    logger.info("subscriptions.limits_updated", tier=tier, fields=sorted(fields))
    return limits


def save_plan(name: str, display_name: str, **fields) -> SubscriptionPlanRecord:
    """Create or update the plan for a tier.

    Raises:
        UnknownTierError: If name is not a tier
    """
    if name not in TIERS:
        raise UnknownTierError(name)
    plan = platform.upsert_plan(name, display_name, **fields)
    logger.info("subscriptions.plan_saved", plan=name)
    return plan
