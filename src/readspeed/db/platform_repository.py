"""Repository functions for platform tables.

Covers feature_flags, subscription_limits, subscription_plans,
user_subscriptions, user_monthly_usage and admin_activity_log.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import Any

import structlog

from readspeed.db.database import from_json, get_db, new_id, to_json, utc_now

logger = structlog.get_logger(__name__)


@dataclass
class FeatureFlagRecord:
    """Named feature toggle gated by subscription tier."""

    id: str
    name: str
    description: str | None
    enabled: bool
    requires_subscription: str
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""


@dataclass
class SubscriptionLimitsRecord:
    """Per-tier quotas and capabilities. None quotas mean unlimited."""

    id: str
    tier: str
    max_submissions_per_month: int | None
    max_custom_texts: int | None
    max_exercises: int | None
    can_see_leaderboard: bool
    can_join_leaderboard: bool
    can_see_book_stats: bool
    can_export_data: bool
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class SubscriptionPlanRecord:
    """Purchasable plan."""

    id: str
    name: str
    display_name: str
    price_monthly: float | None
    price_yearly: float | None
    features: list[str]
    limits: dict[str, Any]
    sort_order: int
    active: bool


@dataclass
class UserSubscriptionRecord:
    """A user's plan assignment."""

    id: str
    user_id: str
    plan_id: str
    status: str
    billing_cycle: str | None
    current_period_start: str | None
    current_period_end: str | None
    canceled_at: str | None
    created_at: str
    updated_at: str


@dataclass
class MonthlyUsageRecord:
    """Usage counters for one user and month (YYYY-MM-01)."""

    user_id: str
    month: str
    submission_count: int = 0
    custom_texts_count: int = 0
    exercises_used: list[str] = field(default_factory=list)


@dataclass
class ActivityLogRecord:
    """Admin audit entry."""

    id: str
    admin_id: str | None
    action: str
    entity_type: str | None
    entity_id: str | None
    details: dict[str, Any]
    created_at: str


# =============================================================================
# FEATURE FLAGS
# =============================================================================


def _row_to_flag(row: sqlite3.Row) -> FeatureFlagRecord:
    data = dict(row)
    data["enabled"] = bool(data["enabled"])
    data["metadata"] = from_json(data["metadata"], {})
    return FeatureFlagRecord(**data)


def get_flag(name: str) -> FeatureFlagRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM feature_flags WHERE name = ?", (name,)
        ).fetchone()
    return _row_to_flag(row) if row else None


def get_flag_by_id(flag_id: str) -> FeatureFlagRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM feature_flags WHERE id = ?", (flag_id,)
        ).fetchone()
    return _row_to_flag(row) if row else None


def list_flags() -> list[FeatureFlagRecord]:
    with get_db() as conn:
        rows = conn.execute("SELECT * FROM feature_flags ORDER BY name").fetchall()
    return [_row_to_flag(r) for r in rows]


def insert_flag(
    name: str,
    description: str | None = None,
    enabled: bool = False,
    requires_subscription: str = "free",
    metadata: dict[str, Any] | None = None,
) -> FeatureFlagRecord:
    """Insert a feature flag.

    Raises:
        sqlite3.IntegrityError: If the name is taken
    """
    now = utc_now()
    flag_id = new_id()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO feature_flags (
                id, name, description, enabled, requires_subscription,
                metadata, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                flag_id,
                name,
                description,
                int(enabled),
                requires_subscription,
                to_json(metadata or {}),
                now,
                now,
            ),
        )
    return get_flag_by_id(flag_id)  # type: ignore[return-value]


def update_flag(flag_id: str, **fields: Any) -> FeatureFlagRecord | None:
    allowed = {"name", "description", "enabled", "requires_subscription", "metadata"}
    updates = {k: v for k, v in fields.items() if k in allowed}
    if "enabled" in updates:
        updates["enabled"] = int(bool(updates["enabled"]))
    if "metadata" in updates:
        updates["metadata"] = to_json(updates["metadata"] or {})
    if updates:
        updates["updated_at"] = utc_now()
        assignments = ", ".join(f"{k} = ?" for k in updates)
        with get_db() as conn:
            conn.execute(
                f"UPDATE feature_flags SET {assignments} WHERE id = ?",
                (*updates.values(), flag_id),
            )
    return get_flag_by_id(flag_id)


def delete_flag(flag_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM feature_flags WHERE id = ?", (flag_id,))
    return cursor.rowcount > 0


# =============================================================================
# SUBSCRIPTION LIMITS & PLANS
# =============================================================================


def _row_to_limits(row: sqlite3.Row) -> SubscriptionLimitsRecord:
    data = {k: row[k] for k in row.keys() if k not in ("created_at", "updated_at")}
    for key in (
        "can_see_leaderboard",
        "can_join_leaderboard",
        "can_see_book_stats",
        "can_export_data",
    ):
        data[key] = bool(data[key])
    data["metadata"] = from_json(data["metadata"], {})
    return SubscriptionLimitsRecord(**data)


def get_limits(tier: str) -> SubscriptionLimitsRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM subscription_limits WHERE tier = ?", (tier,)
        ).fetchone()
    return _row_to_limits(row) if row else None


def list_limits() -> list[SubscriptionLimitsRecord]:
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM subscription_limits
            ORDER BY CASE tier WHEN 'free' THEN 0 WHEN 'reader' THEN 1 ELSE 2 END
            """
        ).fetchall()
    return [_row_to_limits(r) for r in rows]


def upsert_limits(tier: str, **fields: Any) -> SubscriptionLimitsRecord:
    """Create or update the limits row for a tier."""
    columns = [
        "max_submissions_per_month",
        "max_custom_texts",
        "max_exercises",
        "can_see_leaderboard",
        "can_join_leaderboard",
        "can_see_book_stats",
        "can_export_data",
    ]
    existing = get_limits(tier)
    values: dict[str, Any] = {}
    for column in columns:
        if column in fields:
            values[column] = fields[column]
        elif existing is not None:
            values[column] = getattr(existing, column)
        else:
            values[column] = None if column.startswith("max_") else False
    for column in columns[3:]:
        values[column] = int(bool(values[column]))

    now = utc_now()
    with get_db() as conn:
        conn.execute(
            f"""
            INSERT INTO subscription_limits (id, tier, {', '.join(columns)}, created_at, updated_at)
            VALUES (?, ?, {', '.join('?' for _ in columns)}, ?, ?)
            ON CONFLICT(tier) DO UPDATE SET
                {', '.join(f'{c} = excluded.{c}' for c in columns)},
                updated_at = excluded.updated_at
            """,
            (new_id(), tier, *values.values(), now, now),
        )
    return get_limits(tier)  # type: ignore[return-value]


def _row_to_plan(row: sqlite3.Row) -> SubscriptionPlanRecord:
    data = {k: row[k] for k in row.keys() if k not in ("created_at", "updated_at")}
    data["features"] = from_json(data["features"], [])
    data["limits"] = from_json(data["limits"], {})
    data["active"] = bool(data["active"])
    return SubscriptionPlanRecord(**data)


def list_plans(active_only: bool = True) -> list[SubscriptionPlanRecord]:
    with get_db() as conn:
        rows = conn.execute(
            f"""
            SELECT * FROM subscription_plans
            {'WHERE active = 1' if active_only else ''}
            ORDER BY sort_order
            """
        ).fetchall()
    return [_row_to_plan(r) for r in rows]


def get_plan_by_name(name: str) -> SubscriptionPlanRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM subscription_plans WHERE name = ?", (name,)
        ).fetchone()
    return _row_to_plan(row) if row else None


def upsert_plan(
    name: str,
    display_name: str,
    price_monthly: float | None = None,
    price_yearly: float | None = None,
    features: list[str] | None = None,
    limits: dict[str, Any] | None = None,
    sort_order: int = 0,
    active: bool = True,
) -> SubscriptionPlanRecord:
    now = utc_now()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO subscription_plans (
                id, name, display_name, price_monthly, price_yearly, features,
                limits, sort_order, active, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(name) DO UPDATE SET
                display_name = excluded.display_name,
                price_monthly = excluded.price_monthly,
                price_yearly = excluded.price_yearly,
                features = excluded.features,
                limits = excluded.limits,
                sort_order = excluded.sort_order,
                active = excluded.active,
                updated_at = excluded.updated_at
            """,
            (
                new_id(),
                name,
                display_name,
                price_monthly,
                price_yearly,
                to_json(features or []),
                to_json(limits or {}),
                sort_order,
                int(active),
                now,
                now,
            ),
        )
    return get_plan_by_name(name)  # type: ignore[return-value]


# =============================================================================
# USER SUBSCRIPTIONS
# =============================================================================


def get_active_subscription(user_id: str) -> UserSubscriptionRecord | None:
    with get_db() as conn:
        row = conn.execute(
            """
            SELECT * FROM user_subscriptions
            WHERE user_id = ? AND status = 'active'
            ORDER BY created_at DESC LIMIT 1
            """,
            (user_id,),
        ).fetchone()
    return UserSubscriptionRecord(**dict(row)) if row else None


def assign_subscription(
    user_id: str,
    plan_id: str,
    billing_cycle: str | None,
    period_start: str,
    period_end: str | None,
) -> UserSubscriptionRecord:
    """Cancel the current active subscription and start a new one."""
    now = utc_now()
    sub_id = new_id()
    with get_db() as conn:
        conn.execute(
            """
            UPDATE user_subscriptions SET status = 'canceled', canceled_at = ?, updated_at = ?
            WHERE user_id = ? AND status = 'active'
            """,
            (now, now, user_id),
        )
        conn.execute(
            """
            INSERT INTO user_subscriptions (
                id, user_id, plan_id, status, billing_cycle,
                current_period_start, current_period_end, created_at, updated_at
            ) VALUES (?, ?, ?, 'active', ?, ?, ?, ?, ?)
            """,
            (sub_id, user_id, plan_id, billing_cycle, period_start, period_end, now, now),
        )
    return get_active_subscription(user_id)  # type: ignore[return-value]


# =============================================================================
# MONTHLY USAGE
# =============================================================================


def get_monthly_usage(user_id: str, month: str) -> MonthlyUsageRecord:
    """Usage for a month; an all-zero record when no row exists."""
    with get_db() as conn:
        row = conn.execute(
            """
            SELECT user_id, month, submission_count, custom_texts_count, exercises_used
            FROM user_monthly_usage WHERE user_id = ? AND month = ?
            """,
            (user_id, month),
        ).fetchone()
    if row is None:
        return MonthlyUsageRecord(user_id=user_id, month=month)
    data = dict(row)
    data["exercises_used"] = from_json(data["exercises_used"], [])
    return MonthlyUsageRecord(**data)


def save_monthly_usage(usage: MonthlyUsageRecord) -> None:
    now = utc_now()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO user_monthly_usage (
                id, user_id, month, submission_count, custom_texts_count,
                exercises_used, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, month) DO UPDATE SET
                submission_count = excluded.submission_count,
                custom_texts_count = excluded.custom_texts_count,
                exercises_used = excluded.exercises_used,
                updated_at = excluded.updated_at
            """,
            (
                new_id(),
                usage.user_id,
                usage.month,
                usage.submission_count,
                usage.custom_texts_count,
                to_json(usage.exercises_used),
                now,
                now,
            ),
        )


# =============================================================================
# ADMIN ACTIVITY LOG
# =============================================================================


def insert_activity(
    admin_id: str,
    action: str,
    entity_type: str | None,
    entity_id: str | None,
    details: dict[str, Any] | None = None,
) -> None:
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO admin_activity_log (id, admin_id, action, entity_type, entity_id, details, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (new_id(), admin_id, action, entity_type, entity_id, to_json(details or {}), utc_now()),
        )


def list_activity(limit: int = 50, offset: int = 0) -> list[ActivityLogRecord]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM admin_activity_log ORDER BY created_at DESC LIMIT ? OFFSET ?",
            (limit, offset),
        ).fetchall()
    return [
        ActivityLogRecord(**{**dict(r), "details": from_json(r["details"], {})})
        for r in rows
    ]
