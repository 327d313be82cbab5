"""Repository functions for assessment_texts and assessment_results."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import Any

import structlog

from readspeed.db.database import from_json, get_db, new_id, to_json, utc_now

logger = structlog.get_logger(__name__)


@dataclass
class AssessmentTextRecord:
    """Timed reading passage with comprehension questions."""

    id: str
    title: str
    content: str
    word_count: int
    questions: list[dict[str, Any]] = field(default_factory=list)
    difficulty_level: str | None = None
    category: str | None = None
    active: bool = True
    times_used: int = 0
    created_by: str | None = None
    created_at: str = ""
    updated_at: str = ""
    user_times_taken: int = 0


@dataclass
class AssessmentResultRecord:
    """One assessment attempt."""

    id: str
    user_id: str
    assessment_id: str
    wpm: int
    comprehension_percentage: int | None
    time_taken: int
    answers: list[Any]
    percentile: int | None
    attempt_number: int
    created_at: str
    assessment_title: str | None = None


def _row_to_text(row: sqlite3.Row) -> AssessmentTextRecord:
    data = dict(row)
    data["questions"] = from_json(data["questions"], [])
    data["active"] = bool(data["active"])
    data.setdefault("user_times_taken", 0)
    return AssessmentTextRecord(**data)


def _row_to_result(row: sqlite3.Row) -> AssessmentResultRecord:
    data = dict(row)
    data["answers"] = from_json(data["answers"], [])
    return AssessmentResultRecord(**data)


# =============================================================================
# TEXTS
# =============================================================================


def insert_assessment_text(
    title: str,
    content: str,
    word_count: int,
    questions: list[dict[str, Any]],
    difficulty_level: str | None = None,
    category: str | None = None,
    created_by: str | None = None,
    active: bool = True,
) -> AssessmentTextRecord:
    text_id = new_id()
    now = utc_now()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO assessment_texts (
                id, title, content, word_count, questions, difficulty_level,
                category, active, created_by, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                text_id,
                title,
                content,
                word_count,
                to_json(questions),
                difficulty_level,
                category,
                int(active),
                created_by,
                now,
                now,
            ),
        )
    logger.debug("assessment_texts.inserted", assessment_id=text_id)
    return get_assessment_text(text_id)  # type: ignore[return-value]


def get_assessment_text(text_id: str) -> AssessmentTextRecord | None:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM assessment_texts WHERE id = ?", (text_id,)
        ).fetchone()
    return _row_to_text(row) if row else None


def list_active_texts_with_user_counts(user_id: str) -> list[AssessmentTextRecord]:
    """Active texts annotated with how often user_id has taken each."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT t.*, COUNT(r.id) AS user_times_taken
            FROM assessment_texts t
            LEFT JOIN assessment_results r
              ON r.assessment_id = t.id AND r.user_id = ?
            WHERE t.active = 1
            GROUP BY t.id
            ORDER BY t.created_at
            """,
            (user_id,),
        ).fetchall()
    return [_row_to_text(r) for r in rows]


def list_all_texts() -> list[AssessmentTextRecord]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM assessment_texts ORDER BY created_at DESC"
        ).fetchall()
    return [_row_to_text(r) for r in rows]


def update_assessment_text(text_id: str, **fields: Any) -> AssessmentTextRecord | None:
    """Update text columns; unknown keys are ignored."""
    allowed = {
        "title",
        "content",
        "word_count",
        "questions",
        "difficulty_level",
        "category",
        "active",
    }
    updates = {k: v for k, v in fields.items() if k in allowed}
    if "questions" in updates:
        updates["questions"] = to_json(updates["questions"])
    if "active" in updates:
        updates["active"] = int(bool(updates["active"]))
    if updates:
        updates["updated_at"] = utc_now()
        assignments = ", ".join(f"{k} = ?" for k in updates)
        with get_db() as conn:
            conn.execute(
                f"UPDATE assessment_texts SET {assignments} WHERE id = ?",
                (*updates.values(), text_id),
            )
    return get_assessment_text(text_id)


def delete_assessment_text(text_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM assessment_texts WHERE id = ?", (text_id,))
    return cursor.rowcount > 0


# =============================================================================
# RESULTS
# =============================================================================


def percentile_for(assessment_id: str, wpm: int) -> int | None:
    """Percentage of earlier results on this text with a lower WPM.

    Returns:
        0-100, or None when there are no earlier results
    """
    with get_db() as conn:
        row = conn.execute(
            """
            SELECT COUNT(*) AS total,
                   SUM(CASE WHEN wpm < ? THEN 1 ELSE 0 END) AS lower
            FROM assessment_results WHERE assessment_id = ?
            """,
            (wpm, assessment_id),
        ).fetchone()
    if not row["total"]:
        return None
    return round(row["lower"] / row["total"] * 100)


def insert_assessment_result(
    user_id: str,
    assessment_id: str,
    wpm: int,
    comprehension_percentage: int,
    time_taken: int,
    answers: list[Any],
    percentile: int,
) -> AssessmentResultRecord:
    """Insert a result with the next attempt number and bump times_used."""
    result_id = new_id()
    with get_db() as conn:
        attempt_number = conn.execute(
            "SELECT COUNT(*) FROM assessment_results WHERE user_id = ? AND assessment_id = ?",
            (user_id, assessment_id),
        ).fetchone()[0] + 1
        conn.execute(
            """
            INSERT INTO assessment_results (
                id, user_id, assessment_id, wpm, comprehension_percentage,
                time_taken, answers, percentile, attempt_number, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                result_id,
                user_id,
                assessment_id,
                wpm,
                comprehension_percentage,
                time_taken,
                to_json(answers),
                percentile,
                attempt_number,
                utc_now(),
            ),
        )
        conn.execute(
            "UPDATE assessment_texts SET times_used = times_used + 1 WHERE id = ?",
            (assessment_id,),
        )
        row = conn.execute(
            "SELECT * FROM assessment_results WHERE id = ?", (result_id,)
        ).fetchone()
    logger.debug("assessment_results.inserted", result_id=result_id, user_id=user_id)
    return _row_to_result(row)


def list_user_results(user_id: str, limit: int = 10) -> list[AssessmentResultRecord]:
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT r.*, t.title AS assessment_title
            FROM assessment_results r
            JOIN assessment_texts t ON t.id = r.assessment_id
            WHERE r.user_id = ?
            ORDER BY r.created_at DESC
            LIMIT ?
            """,
            (user_id, limit),
        ).fetchall()
    return [_row_to_result(r) for r in rows]
