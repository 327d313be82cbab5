"""Repository functions for auth accounts, sessions and profiles."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import Any

import structlog

from readspeed.db.database import from_json, get_db, new_id, to_json, utc_now

logger = structlog.get_logger(__name__)

SORTABLE_PROFILE_COLUMNS = (
    "created_at",
    "full_name",
    "role",
    "subscription_tier",
    "updated_at",
)


@dataclass
class AuthUserRecord:
    """Auth account row."""

    id: str
    email: str
    password_hash: str
    email_confirmed_at: str | None
    last_sign_in_at: str | None
    created_at: str


@dataclass
class SessionRecord:
    """Auth session row."""

    token: str
    user_id: str
    expires_at: str
    created_at: str


@dataclass
class OneTimeCodeRecord:
    """Verification or recovery code row."""

    id: str
    user_id: str
    purpose: str
    code_hash: str
    expires_at: str
    used_at: str | None


@dataclass
class ProfileRecord:
    """Profile row."""

    id: str
    full_name: str | None
    city: str | None
    avatar_url: str | None
    role: str
    subscription_tier: str
    subscription_status: str | None
    privacy_settings: dict[str, Any] = field(default_factory=dict)
    total_pages_read: int = 0
    total_books_completed: int = 0
    is_active: bool = True
    created_at: str = ""
    updated_at: str = ""
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


# =============================================================================
# AUTH USERS
# =============================================================================


def insert_auth_user(
    email: str, password_hash: str, confirmed: bool = False
) -> AuthUserRecord:
    """Create an account and its profile row.

    Raises:
        sqlite3.IntegrityError: If the email is already registered
    """
    user_id = new_id()
    now = utc_now()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO auth_users (id, email, password_hash, email_confirmed_at, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (user_id, email, password_hash, now if confirmed else None, now),
        )
        conn.execute(
            "INSERT INTO profiles (id, created_at, updated_at) VALUES (?, ?, ?)",
            (user_id, now, now),
        )

    logger.debug("auth_users.inserted", user_id=user_id)
    return AuthUserRecord(
        id=user_id,
        email=email,
        password_hash=password_hash,
        email_confirmed_at=now if confirmed else None,
        last_sign_in_at=None,
        created_at=now,
    )


def get_auth_user_by_email(email: str) -> AuthUserRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM auth_users WHERE email = ?", (email,)
        ).fetchone()
    return AuthUserRecord(**dict(row)) if row else None


def get_auth_user(user_id: str) -> AuthUserRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM auth_users WHERE id = ?", (user_id,)
        ).fetchone()
    return AuthUserRecord(**dict(row)) if row else None


def mark_email_confirmed(user_id: str) -> None:
    with get_db() as conn:
        conn.execute(
            "UPDATE auth_users SET email_confirmed_at = ? WHERE id = ?",
            (utc_now(), user_id),
        )


def update_password_hash(user_id: str, password_hash: str) -> None:
    with get_db() as conn:
        conn.execute(
            "UPDATE auth_users SET password_hash = ? WHERE id = ?",
            (password_hash, user_id),
        )


def touch_last_sign_in(user_id: str) -> None:
    with get_db() as conn:
        conn.execute(
            "UPDATE auth_users SET last_sign_in_at = ? WHERE id = ?",
            (utc_now(), user_id),
        )


# =============================================================================
# SESSIONS
# =============================================================================


def insert_session(token: str, user_id: str, expires_at: str) -> SessionRecord:
    now = utc_now()
    with get_db() as conn:
        conn.execute(
            "INSERT INTO auth_sessions (token, user_id, expires_at, created_at) VALUES (?, ?, ?, ?)",
            (token, user_id, expires_at, now),
        )
    return SessionRecord(token=token, user_id=user_id, expires_at=expires_at, created_at=now)


def get_session(token: str) -> SessionRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM auth_sessions WHERE token = ?", (token,)
        ).fetchone()
    return SessionRecord(**dict(row)) if row else None


def extend_session(token: str, expires_at: str) -> None:
    with get_db() as conn:
        conn.execute(
            "UPDATE auth_sessions SET expires_at = ? WHERE token = ?",
            (expires_at, token),
        )


def delete_session(token: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM auth_sessions WHERE token = ?", (token,))
    return cursor.rowcount > 0


def delete_user_sessions(user_id: str) -> int:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM auth_sessions WHERE user_id = ?", (user_id,))
    return cursor.rowcount


# =============================================================================
# ONE-TIME CODES
# =============================================================================


def insert_one_time_code(
    user_id: str, purpose: str, code_hash: str, expires_at: str
) -> None:
    """Store a new code, invalidating earlier unused codes for the same purpose."""
    now = utc_now()
    with get_db() as conn:
        conn.execute(
            """
            UPDATE auth_one_time_codes SET used_at = ?
            WHERE user_id = ? AND purpose = ? AND used_at IS NULL
            """,
            (now, user_id, purpose),
        )
        conn.execute(
            """
            INSERT INTO auth_one_time_codes (id, user_id, purpose, code_hash, expires_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (new_id(), user_id, purpose, code_hash, expires_at),
        )


def get_active_code(user_id: str, purpose: str) -> OneTimeCodeRecord | None:
    """Latest unused code for a user and purpose."""
    with get_db() as conn:
        row = conn.execute(
            """
            SELECT id, user_id, purpose, code_hash, expires_at, used_at
            FROM auth_one_time_codes
            WHERE user_id = ? AND purpose = ? AND used_at IS NULL
            ORDER BY created_at DESC LIMIT 1
            """,
            (user_id, purpose),
        ).fetchone()
    return OneTimeCodeRecord(**dict(row)) if row else None


def mark_code_used(code_id: str) -> None:
    with get_db() as conn:
        conn.execute(
            "UPDATE auth_one_time_codes SET used_at = ? WHERE id = ?",
            (utc_now(), code_id),
        )


# =============================================================================
# PROFILES
# =============================================================================


def _row_to_profile(row: sqlite3.Row) -> ProfileRecord:
    data = dict(row)
    return ProfileRecord(
        id=data["id"],
        full_name=data["full_name"],
        city=data["city"],
        avatar_url=data["avatar_url"],
        role=data["role"],
        subscription_tier=data["subscription_tier"],
        subscription_status=data["subscription_status"],
        privacy_settings=from_json(data["privacy_settings"], {}),
        total_pages_read=data["total_pages_read"],
        total_books_completed=data["total_books_completed"],
        is_active=bool(data["is_active"]),
        created_at=data["created_at"],
        updated_at=data["updated_at"],
        email=data.get("email"),
    )


def get_profile(user_id: str) -> ProfileRecord | None:
    """Get a profile joined with its account email.

    Args:
        user_id: Auth user ID

    Returns:
        ProfileRecord if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute(
            """
            SELECT p.*, u.email FROM profiles p
            JOIN auth_users u ON u.id = p.id
            WHERE p.id = ?
            """,
            (user_id,),
        ).fetchone()
    return _row_to_profile(row) if row else None


def update_profile(user_id: str, **fields: Any) -> ProfileRecord | None:
    """Update profile columns.

    Accepts full_name, city, avatar_url, role, subscription_tier,
    subscription_status, privacy_settings and is_active. Unknown keys are
    ignored.

    Returns:
        The updated ProfileRecord, or None if the profile does not exist
    """
    allowed = {
        "full_name",
        "city",
        "avatar_url",
        "role",
        "subscription_tier",
        "subscription_status",
        "privacy_settings",
        "is_active",
    }
    updates = {k: v for k, v in fields.items() if k in allowed}
    if "privacy_settings" in updates:
        updates["privacy_settings"] = to_json(updates["privacy_settings"] or {})
    if "is_active" in updates:
        updates["is_active"] = int(bool(updates["is_active"]))

    if updates:
        updates["updated_at"] = utc_now()
        assignments = ", ".join(f"{k} = ?" for k in updates)
        with get_db() as conn:
            conn.execute(
                f"UPDATE profiles SET {assignments} WHERE id = ?",
                (*updates.values(), user_id),
            )

    return get_profile(user_id)


def add_pages_read(user_id: str, pages: int) -> None:
    with get_db() as conn:
        conn.execute(
            """
            UPDATE profiles
            SET total_pages_read = total_pages_read + ?, updated_at = ?
            WHERE id = ?
            """,
            (pages, utc_now(), user_id),
        )


def list_profiles(
    search: str | None = None,
    role: str | None = None,
    subscription_tier: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[ProfileRecord], int]:
    """List profiles for the admin user table.

    Args:
        search: Substring match on name, city or email
        role: Exact role filter
        subscription_tier: Exact tier filter
        sort_by: One of SORTABLE_PROFILE_COLUMNS (falls back to created_at)
        sort_order: "asc" or "desc"
        limit: Page size
        offset: Page offset

    Returns:
        Tuple of (profiles page, total matching count)
    """
    if sort_by not in SORTABLE_PROFILE_COLUMNS:
        sort_by = "created_at"
    direction = "ASC" if sort_order.lower() == "asc" else "DESC"

    clauses: list[str] = []
    params: list[Any] = []
    if search:
        clauses.append("(p.full_name LIKE ? OR p.city LIKE ? OR u.email LIKE ?)")
        pattern = f"%{search}%"
        params.extend([pattern, pattern, pattern])
    if role:
        clauses.append("p.role = ?")
        params.append(role)
    if subscription_tier:
        clauses.append("p.subscription_tier = ?")
        params.append(subscription_tier)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    with get_db() as conn:
        total = conn.execute(
            f"SELECT COUNT(*) FROM profiles p JOIN auth_users u ON u.id = p.id {where}",
            params,
        ).fetchone()[0]
        rows = conn.execute(
            f"""
            SELECT p.*, u.email FROM profiles p
            JOIN auth_users u ON u.id = p.id
            {where}
            ORDER BY p.{sort_by} {direction}
            LIMIT ? OFFSET ?
            """,
            (*params, limit, offset),
        ).fetchall()

    return [_row_to_profile(r) for r in rows], total
