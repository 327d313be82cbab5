"""Repository functions for reading_submissions table."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from readspeed.db.database import get_db, new_id

logger = structlog.get_logger(__name__)


@dataclass
class SubmissionRecord:
    """Reading log entry."""

    id: str
    user_id: str
    book_id: str
    pages_read: int
    time_spent: int
    reading_speed: int | None
    submission_date: str
    session_timestamp: str
    was_premium: bool
    notes: str | None
    created_at: str


@dataclass
class NewSubmission:
    """Values for one submission row."""

    book_id: str
    pages_read: int
    time_spent: int
    reading_speed: int
    submission_date: str
    session_timestamp: str
    notes: str | None = None


def insert_submissions(
    user_id: str, submissions: list[NewSubmission], was_premium: bool = False
) -> list[str]:
    """Insert one or more submissions in a single transaction.

    Returns:
        The new submission IDs, in input order
    """
    ids: list[str] = []
    with get_db() as conn:
        for sub in submissions:
            submission_id = new_id()
            conn.execute(
                """
                INSERT INTO reading_submissions (
                    id, user_id, book_id, pages_read, time_spent, reading_speed,
                    submission_date, session_timestamp, was_premium, notes
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    submission_id,
                    user_id,
                    sub.book_id,
                    sub.pages_read,
                    sub.time_spent,
                    sub.reading_speed,
                    sub.submission_date,
                    sub.session_timestamp,
                    int(was_premium),
                    sub.notes,
                ),
            )
            ids.append(submission_id)

    logger.debug("submissions.inserted", user_id=user_id, count=len(ids))
    return ids


def list_user_submissions(
    user_id: str, limit: int = 20, offset: int = 0
) -> list[SubmissionRecord]:
    """List a user's submissions, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM reading_submissions WHERE user_id = ?
            ORDER BY submission_date DESC, created_at DESC
            LIMIT ? OFFSET ?
            """,
            (user_id, limit, offset),
        ).fetchall()
    return [
        SubmissionRecord(**{**dict(r), "was_premium": bool(r["was_premium"])})
        for r in rows
    ]


def daily_pages(
    user_ids: list[str], start_date: str, end_date: str
) -> dict[str, dict[str, int]]:
    """Pages read per user per day in [start_date, end_date].

    Returns:
        {user_id: {"YYYY-MM-DD": pages}}; users with no rows map to {}
    """
    result: dict[str, dict[str, int]] = {uid: {} for uid in user_ids}
    if not user_ids:
        return result

    placeholders = ", ".join("?" for _ in user_ids)
    with get_db() as conn:
        rows = conn.execute(
            f"""
            SELECT user_id, submission_date, SUM(pages_read) AS pages
            FROM reading_submissions
            WHERE user_id IN ({placeholders})
              AND submission_date BETWEEN ? AND ?
            GROUP BY user_id, submission_date
            """,
            (*user_ids, start_date, end_date),
        ).fetchall()

    for row in rows:
        result[row["user_id"]][row["submission_date"]] = row["pages"]
    return result

