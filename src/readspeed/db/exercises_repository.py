"""Repository functions for exercises, exercise texts, results and stats."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import Any

import structlog

from readspeed.db.database import from_json, get_db, new_id, to_json, utc_now

logger = structlog.get_logger(__name__)

TIER_LEVELS = {"free": 0, "reader": 1, "pro": 2}


@dataclass
class ExerciseRecord:
    """Exercise definition."""

    id: str
    title: str
    type: str
    difficulty: str
    description: str
    instructions: str | None
    requires_subscription: bool
    min_subscription_tier: str
    tags: list[str] = field(default_factory=list)
    config: dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
    created_at: str = ""
    updated_at: str = ""


@dataclass
class ExerciseTextRecord:
    """Reading passage attached to an exercise."""

    id: str
    exercise_id: str | None
    book_id: str | None
    title: str | None
    text_content: str
    word_count: int
    difficulty_level: str | None
    is_custom: bool
    created_by: str | None
    created_at: str


@dataclass
class ExerciseResultRecord:
    """One completed exercise run."""

    id: str
    user_id: str
    exercise_id: str
    session_date: str
    score: float | None
    accuracy_percentage: float | None
    avg_response_time: float | None
    total_attempts: int | None
    correct_count: int | None
    wpm: int | None
    completion_time: int | None
    metadata: dict[str, Any]
    created_at: str
    exercise_type: str | None = None
    exercise_title: str | None = None


@dataclass
class ExerciseStatsRecord:
    """Aggregated per-user, per-type statistics."""

    id: str
    user_id: str
    exercise_type: str
    total_sessions: int
    total_time_spent: int
    best_score: float | None
    best_accuracy: float | None
    best_wpm: int | None
    average_score: float | None
    average_accuracy: float | None
    average_wpm: float | None
    last_session_at: str | None
    created_at: str
    updated_at: str


def _row_to_exercise(row: sqlite3.Row) -> ExerciseRecord:
    data = dict(row)
    return ExerciseRecord(
        id=data["id"],
        title=data["title"],
        type=data["type"],
        difficulty=data["difficulty"],
        description=data["description"],
        instructions=data["instructions"],
        requires_subscription=bool(data["requires_subscription"]),
        min_subscription_tier=data["min_subscription_tier"],
        tags=from_json(data["tags"], []),
        config=from_json(data["config"], {}),
        is_active=bool(data["is_active"]),
        created_at=data["created_at"],
        updated_at=data["updated_at"],
    )


def _row_to_text(row: sqlite3.Row) -> ExerciseTextRecord:
    data = dict(row)
    data["is_custom"] = bool(data["is_custom"])
    return ExerciseTextRecord(**data)


def _row_to_result(row: sqlite3.Row) -> ExerciseResultRecord:
    data = dict(row)
    data["metadata"] = from_json(data["metadata"], {})
    return ExerciseResultRecord(**data)


# =============================================================================
# EXERCISES
# =============================================================================


def insert_exercise(
    title: str,
    type: str,
    difficulty: str,
    description: str,
    instructions: str | None = None,
    tags: list[str] | None = None,
    config: dict[str, Any] | None = None,
    min_subscription_tier: str = "free",
    is_active: bool = True,
) -> ExerciseRecord:
    """Insert an exercise definition.

    Raises:
        sqlite3.IntegrityError: If (type, title) already exists
    """
    exercise_id = new_id()
    now = utc_now()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO exercises (
                id, title, type, difficulty, tags, description, instructions,
                requires_subscription, min_subscription_tier, config, is_active,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                exercise_id,
                title,
                type,
                difficulty,
                to_json(tags or []),
                description,
                instructions,
                int(min_subscription_tier != "free"),
                min_subscription_tier,
                to_json(config or {}),
                int(is_active),
                now,
                now,
            ),
        )
    logger.debug("exercises.inserted", exercise_id=exercise_id, type=type)
    return get_exercise(exercise_id)  # type: ignore[return-value]


def get_exercise(exercise_id: str) -> ExerciseRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM exercises WHERE id = ?", (exercise_id,)
        ).fetchone()
    return _row_to_exercise(row) if row else None


def get_exercise_by_type(exercise_type: str) -> ExerciseRecord | None:
    """First active exercise of a type."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM exercises WHERE type = ? AND is_active = 1 ORDER BY created_at LIMIT 1",
            (exercise_type,),
        ).fetchone()
    return _row_to_exercise(row) if row else None


def list_exercises(
    tier: str | None = None, include_inactive: bool = False
) -> list[ExerciseRecord]:
    """List exercises ordered by type then difficulty.

    Args:
        tier: When given, only exercises whose min tier is at or below it
        include_inactive: Include is_active = 0 rows (admin view)
    """
    with get_db() as conn:
        rows = conn.execute(
            f"""
            SELECT * FROM exercises
            {'' if include_inactive else 'WHERE is_active = 1'}
            ORDER BY type, difficulty
            """
        ).fetchall()

    exercises = [_row_to_exercise(r) for r in rows]
    if tier is not None:
        level = TIER_LEVELS.get(tier, 0)
        exercises = [
            e for e in exercises if TIER_LEVELS.get(e.min_subscription_tier, 0) <= level
        ]
    return exercises


def update_exercise(exercise_id: str, **fields: Any) -> ExerciseRecord | None:
    """Update exercise columns; unknown keys are ignored."""
    allowed = {
        "title",
        "type",
        "difficulty",
        "tags",
        "description",
        "instructions",
        "min_subscription_tier",
        "config",
        "is_active",
    }
    updates = {k: v for k, v in fields.items() if k in allowed}
    for key in ("tags", "config"):
        if key in updates:
            updates[key] = to_json(updates[key])
    if "is_active" in updates:
        updates["is_active"] = int(bool(updates["is_active"]))
    if "min_subscription_tier" in updates:
        updates["requires_subscription"] = int(updates["min_subscription_tier"] != "free")

    if updates:
        updates["updated_at"] = utc_now()
        assignments = ", ".join(f"{k} = ?" for k in updates)
        with get_db() as conn:
            conn.execute(
                f"UPDATE exercises SET {assignments} WHERE id = ?",
                (*updates.values(), exercise_id),
            )
    return get_exercise(exercise_id)


def delete_exercise(exercise_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM exercises WHERE id = ?", (exercise_id,))
    return cursor.rowcount > 0


# =============================================================================
# EXERCISE TEXTS
# =============================================================================


def insert_exercise_text(
    text_content: str,
    word_count: int,
    exercise_id: str | None = None,
    title: str | None = None,
    book_id: str | None = None,
    difficulty_level: str | None = None,
    is_custom: bool = False,
    created_by: str | None = None,
) -> ExerciseTextRecord:
    text_id = new_id()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO exercise_texts (
                id, exercise_id, book_id, title, text_content, word_count,
                difficulty_level, is_custom, created_by, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                text_id,
                exercise_id,
                book_id,
                title,
                text_content,
                word_count,
                difficulty_level,
                int(is_custom),
                created_by,
                utc_now(),
            ),
        )
        row = conn.execute(
            "SELECT * FROM exercise_texts WHERE id = ?", (text_id,)
        ).fetchone()
    return _row_to_text(row)


def list_exercise_texts(exercise_id: str | None = None) -> list[ExerciseTextRecord]:
    with get_db() as conn:
        if exercise_id:
            rows = conn.execute(
                "SELECT * FROM exercise_texts WHERE exercise_id = ? ORDER BY created_at",
                (exercise_id,),
            ).fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM exercise_texts ORDER BY created_at"
            ).fetchall()
    return [_row_to_text(r) for r in rows]


def delete_exercise_text(text_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM exercise_texts WHERE id = ?", (text_id,))
    return cursor.rowcount > 0


# =============================================================================
# RESULTS
# =============================================================================


def insert_exercise_result(
    user_id: str,
    exercise_id: str,
    session_date: str,
    score: float | None,
    accuracy_percentage: float | None,
    avg_response_time: float | None,
    total_attempts: int | None,
    correct_count: int | None,
    wpm: int | None,
    completion_time: int | None,
    metadata: dict[str, Any] | None,
) -> ExerciseResultRecord:
    result_id = new_id()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO exercise_results (
                id, user_id, exercise_id, session_date, score,
                accuracy_percentage, avg_response_time, total_attempts,
                correct_count, wpm, completion_time, metadata, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                result_id,
                user_id,
                exercise_id,
                session_date,
                score,
                accuracy_percentage,
                avg_response_time,
                total_attempts,
                correct_count,
                wpm,
                completion_time,
                to_json(metadata or {}),
                utc_now(),
            ),
        )
        row = conn.execute(
            "SELECT * FROM exercise_results WHERE id = ?", (result_id,)
        ).fetchone()
    logger.debug("exercise_results.inserted", result_id=result_id, user_id=user_id)
    return _row_to_result(row)


def list_exercise_results(
    user_id: str,
    exercise_type: str | None = None,
    limit: int = 10,
    offset: int = 0,
) -> list[ExerciseResultRecord]:
    """List a user's results newest first, joined with exercise type and title."""
    params: list[Any] = [user_id]
    type_clause = ""
    if exercise_type:
        type_clause = "AND e.type = ?"
        params.append(exercise_type)

    with get_db() as conn:
        rows = conn.execute(
            f"""
            SELECT r.*, e.type AS exercise_type, e.title AS exercise_title
            FROM exercise_results r
            JOIN exercises e ON e.id = r.exercise_id
            WHERE r.user_id = ? {type_clause}
            ORDER BY r.created_at DESC
            LIMIT ? OFFSET ?
            """,
            (*params, limit, offset),
        ).fetchall()
    return [_row_to_result(r) for r in rows]


# =============================================================================
# STATS
# =============================================================================


def get_exercise_stats(user_id: str, exercise_type: str) -> ExerciseStatsRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM user_exercise_stats WHERE user_id = ? AND exercise_type = ?",
            (user_id, exercise_type),
        ).fetchone()
    return ExerciseStatsRecord(**dict(row)) if row else None


def list_exercise_stats(user_id: str) -> list[ExerciseStatsRecord]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM user_exercise_stats WHERE user_id = ? ORDER BY exercise_type",
            (user_id,),
        ).fetchall()
    return [ExerciseStatsRecord(**dict(r)) for r in rows]


def save_exercise_stats(stats: ExerciseStatsRecord) -> None:
    """Insert or replace the stats row for (user_id, exercise_type)."""
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO user_exercise_stats (
                id, user_id, exercise_type, total_sessions, total_time_spent,
                best_score, best_accuracy, best_wpm, average_score,
                average_accuracy, average_wpm, last_session_at, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, exercise_type) DO UPDATE SET
                total_sessions = excluded.total_sessions,
                total_time_spent = excluded.total_time_spent,
                best_score = excluded.best_score,
                best_accuracy = excluded.best_accuracy,
                best_wpm = excluded.best_wpm,
                average_score = excluded.average_score,
                average_accuracy = excluded.average_accuracy,
                average_wpm = excluded.average_wpm,
                last_session_at = excluded.last_session_at,
                updated_at = excluded.updated_at
            """,
            (
                stats.id,
                stats.user_id,
                stats.exercise_type,
                stats.total_sessions,
                stats.total_time_spent,
                stats.best_score,
                stats.best_accuracy,
                stats.best_wpm,
                stats.average_score,
                stats.average_accuracy,
                stats.average_wpm,
                stats.last_session_at,
                stats.created_at,
                stats.updated_at,
            ),
        )
