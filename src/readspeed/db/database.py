"""SQLite database connection and schema management.

Provides connection management and schema initialization for ReadSpeed.
Uniqueness, foreign keys, CHECK constraints and defaults live here rather
than in application code.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

import structlog

logger = structlog.get_logger(__name__)

# Default database location
DEFAULT_DB_PATH = Path("db/readspeed.db")

# Current database (module-level, set by init_db)
_db_path: Path | None = None


def init_db(db_path: Path | None = None) -> None:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to db/readspeed.db
    """
    global _db_path
    _db_path = Path(db_path) if db_path else DEFAULT_DB_PATH

    _db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))


def get_db_path() -> Path:
    """Return the active database path."""
    return _db_path or DEFAULT_DB_PATH


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db() as conn:
            rows = conn.execute("SELECT * FROM books").fetchall()
    """
    db_path = get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def new_id() -> str:
    """Generate a primary key."""
    return str(uuid.uuid4())


def utc_now() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def to_json(value: Any) -> str | None:
    """Encode a JSON column value."""
    if value is None:
        return None
    return json.dumps(value)


def from_json(value: str | None, default: Any = None) -> Any:
    """Decode a JSON column value."""
    if value is None or value == "":
        return default
    return json.loads(value)


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency.
    """
    conn.executescript(
        """
        -- Auth: accounts, sessions and one-time codes
        CREATE TABLE IF NOT EXISTS auth_users (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            email_confirmed_at TEXT,
            last_sign_in_at TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS auth_sessions (
            token TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES auth_users(id) ON DELETE CASCADE,
            expires_at TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS auth_one_time_codes (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES auth_users(id) ON DELETE CASCADE,
            purpose TEXT NOT NULL CHECK(purpose IN ('signup', 'email', 'recovery')),
            code_hash TEXT NOT NULL,
            expires_at TEXT NOT NULL,
            used_at TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        -- Profiles: one per auth user
        CREATE TABLE IF NOT EXISTS profiles (
            id TEXT PRIMARY KEY REFERENCES auth_users(id) ON DELETE CASCADE,
            full_name TEXT,
            city TEXT,
            avatar_url TEXT,
            role TEXT NOT NULL DEFAULT 'reader' CHECK(role IN ('reader', 'admin')),
            subscription_tier TEXT NOT NULL DEFAULT 'free'
                CHECK(subscription_tier IN ('free', 'reader', 'pro')),
            subscription_status TEXT DEFAULT 'active',
            privacy_settings TEXT NOT NULL DEFAULT '{}',
            total_pages_read INTEGER NOT NULL DEFAULT 0,
            total_books_completed INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        -- Books and reviews
        CREATE TABLE IF NOT EXISTS books (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            author TEXT NOT NULL,
            isbn TEXT,
            cover_url TEXT,
            total_pages INTEGER CHECK(total_pages IS NULL OR total_pages > 0),
            genre TEXT,
            publication_year INTEGER,
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK(status IN ('pending', 'approved', 'rejected', 'merged')),
            merged_with_id TEXT REFERENCES books(id),
            created_by TEXT REFERENCES auth_users(id) ON DELETE SET NULL,
            approved_by TEXT REFERENCES auth_users(id) ON DELETE SET NULL,
            approved_at TEXT,
            rejection_reason TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS book_reviews (
            id TEXT PRIMARY KEY,
            book_id TEXT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
            user_id TEXT NOT NULL REFERENCES auth_users(id) ON DELETE CASCADE,
            rating INTEGER NOT NULL CHECK(rating BETWEEN 1 AND 5),
            review_text TEXT,
            is_edited INTEGER NOT NULL DEFAULT 0,
            edited_at TEXT,
            deleted_at TEXT,
            can_recreate_after TEXT,
            helpful_count INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            UNIQUE(book_id, user_id)
        );

        -- Reading logs
        CREATE TABLE IF NOT EXISTS reading_submissions (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES auth_users(id) ON DELETE CASCADE,
            book_id TEXT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
            pages_read INTEGER NOT NULL CHECK(pages_read > 0),
            time_spent INTEGER NOT NULL CHECK(time_spent > 0),
            reading_speed INTEGER,
            submission_date TEXT NOT NULL,
            session_timestamp TEXT NOT NULL,
            was_premium INTEGER NOT NULL DEFAULT 0,
            notes TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        -- Exercises
        CREATE TABLE IF NOT EXISTS exercises (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            type TEXT NOT NULL,
            difficulty TEXT NOT NULL,
            tags TEXT NOT NULL DEFAULT '[]',
            description TEXT NOT NULL,
            instructions TEXT,
            requires_subscription INTEGER NOT NULL DEFAULT 0,
            min_subscription_tier TEXT NOT NULL DEFAULT 'free'
                CHECK(min_subscription_tier IN ('free', 'reader', 'pro')),
            config TEXT NOT NULL DEFAULT '{}',
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now')),
            UNIQUE(type, title)
        );

        CREATE TABLE IF NOT EXISTS exercise_texts (
            id TEXT PRIMARY KEY,
            exercise_id TEXT REFERENCES exercises(id) ON DELETE CASCADE,
            book_id TEXT REFERENCES books(id) ON DELETE SET NULL,
            title TEXT,
            text_content TEXT NOT NULL,
            word_count INTEGER NOT NULL DEFAULT 0,
            difficulty_level TEXT,
            is_custom INTEGER NOT NULL DEFAULT 0,
            created_by TEXT REFERENCES auth_users(id) ON DELETE SET NULL,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS exercise_results (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES auth_users(id) ON DELETE CASCADE,
            exercise_id TEXT NOT NULL REFERENCES exercises(id) ON DELETE CASCADE,
            session_date TEXT NOT NULL,
            score REAL,
            accuracy_percentage REAL,
            avg_response_time REAL,
            total_attempts INTEGER,
            correct_count INTEGER,
            wpm INTEGER,
            completion_time INTEGER,
            metadata TEXT NOT NULL DEFAULT '{}',
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS user_exercise_stats (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES auth_users(id) ON DELETE CASCADE,
            exercise_type TEXT NOT NULL,
            total_sessions INTEGER NOT NULL DEFAULT 0,
            total_time_spent INTEGER NOT NULL DEFAULT 0,
            best_score REAL,
            best_accuracy REAL,
            best_wpm INTEGER,
            average_score REAL,
            average_accuracy REAL,
            average_wpm REAL,
            last_session_at TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now')),
            UNIQUE(user_id, exercise_type)
        );

        -- Assessments
        CREATE TABLE IF NOT EXISTS assessment_texts (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            content TEXT NOT NULL,
            word_count INTEGER NOT NULL CHECK(word_count > 0),
            questions TEXT NOT NULL DEFAULT '[]',
            difficulty_level TEXT,
            category TEXT,
            active INTEGER NOT NULL DEFAULT 1,
            times_used INTEGER NOT NULL DEFAULT 0,
            created_by TEXT REFERENCES auth_users(id) ON DELETE SET NULL,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS assessment_results (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES auth_users(id) ON DELETE CASCADE,
            assessment_id TEXT NOT NULL REFERENCES assessment_texts(id) ON DELETE CASCADE,
            wpm INTEGER NOT NULL CHECK(wpm >= 0),
            comprehension_percentage INTEGER
                CHECK(comprehension_percentage IS NULL
                      OR comprehension_percentage BETWEEN 0 AND 100),
            time_taken INTEGER NOT NULL CHECK(time_taken >= 0),
            answers TEXT NOT NULL DEFAULT '[]',
            percentile INTEGER,
            attempt_number INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        -- Platform: flags, tiers, usage, audit
        CREATE TABLE IF NOT EXISTS feature_flags (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            description TEXT,
            enabled INTEGER NOT NULL DEFAULT 0,
            requires_subscription TEXT NOT NULL DEFAULT 'free'
                CHECK(requires_subscription IN ('free', 'reader', 'pro')),
            metadata TEXT NOT NULL DEFAULT '{}',
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS subscription_limits (
            id TEXT PRIMARY KEY,
            tier TEXT NOT NULL UNIQUE CHECK(tier IN ('free', 'reader', 'pro')),
            max_submissions_per_month INTEGER,
            max_custom_texts INTEGER,
            max_exercises INTEGER,
            can_see_leaderboard INTEGER NOT NULL DEFAULT 0,
            can_join_leaderboard INTEGER NOT NULL DEFAULT 0,
            can_see_book_stats INTEGER NOT NULL DEFAULT 0,
            can_export_data INTEGER NOT NULL DEFAULT 0,
            metadata TEXT NOT NULL DEFAULT '{}',
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS subscription_plans (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            display_name TEXT NOT NULL,
            price_monthly REAL,
            price_yearly REAL,
            features TEXT NOT NULL DEFAULT '[]',
            limits TEXT NOT NULL DEFAULT '{}',
            sort_order INTEGER NOT NULL DEFAULT 0,
            active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS user_subscriptions (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES auth_users(id) ON DELETE CASCADE,
            plan_id TEXT NOT NULL REFERENCES subscription_plans(id),
            status TEXT NOT NULL DEFAULT 'active'
                CHECK(status IN ('active', 'canceled', 'expired')),
            billing_cycle TEXT,
            current_period_start TEXT,
            current_period_end TEXT,
            canceled_at TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS user_monthly_usage (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES auth_users(id) ON DELETE CASCADE,
            month TEXT NOT NULL,
            submission_count INTEGER NOT NULL DEFAULT 0,
            custom_texts_count INTEGER NOT NULL DEFAULT 0,
            exercises_used TEXT NOT NULL DEFAULT '[]',
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now')),
            UNIQUE(user_id, month)
        );

        CREATE TABLE IF NOT EXISTS admin_activity_log (
            id TEXT PRIMARY KEY,
            admin_id TEXT REFERENCES auth_users(id) ON DELETE SET NULL,
            action TEXT NOT NULL,
            entity_type TEXT,
            entity_id TEXT,
            details TEXT NOT NULL DEFAULT '{}',
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        -- Indexes
        CREATE INDEX IF NOT EXISTS idx_sessions_user ON auth_sessions(user_id);
        CREATE INDEX IF NOT EXISTS idx_submissions_user_date
            ON reading_submissions(user_id, submission_date);
        CREATE INDEX IF NOT EXISTS idx_submissions_date
            ON reading_submissions(submission_date);
        CREATE INDEX IF NOT EXISTS idx_books_status ON books(status);
        CREATE INDEX IF NOT EXISTS idx_exercise_results_user
            ON exercise_results(user_id, created_at);
        CREATE INDEX IF NOT EXISTS idx_assessment_results_user
            ON assessment_results(user_id, assessment_id);
        CREATE INDEX IF NOT EXISTS idx_activity_created
            ON admin_activity_log(created_at);
        """
    )
