"""Repository functions for books and book_reviews tables."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from readspeed.db.database import get_db, new_id, utc_now

logger = structlog.get_logger(__name__)

REVIEW_RECREATE_DAYS = 7


@dataclass
class BookRecord:
    """Book record from database."""

    id: str
    title: str
    author: str
    isbn: str | None
    cover_url: str | None
    total_pages: int | None
    genre: str | None
    publication_year: int | None
    status: str
    merged_with_id: str | None
    created_by: str | None
    approved_by: str | None
    approved_at: str | None
    rejection_reason: str | None
    created_at: str
    updated_at: str


@dataclass
class ReviewRecord:
    """Book review record."""

    id: str
    book_id: str
    user_id: str
    rating: int
    review_text: str | None
    is_edited: bool
    edited_at: str | None
    deleted_at: str | None
    can_recreate_after: str | None
    helpful_count: int
    created_at: str


def _row_to_book(row: sqlite3.Row) -> BookRecord:
    return BookRecord(**dict(row))


def _row_to_review(row: sqlite3.Row) -> ReviewRecord:
    data = dict(row)
    data["is_edited"] = bool(data["is_edited"])
    return ReviewRecord(**data)


# =============================================================================
# BOOKS
# =============================================================================


def insert_book(
    title: str,
    author: str,
    created_by: str | None,
    status: str = "pending",
    isbn: str | None = None,
    total_pages: int | None = None,
    genre: str | None = None,
    publication_year: int | None = None,
    cover_url: str | None = None,
) -> BookRecord:
    """Insert a new book.

    Books created by admins are inserted as approved; reader-suggested
    books start as pending.

    Raises:
        sqlite3.IntegrityError: On CHECK violations (e.g. total_pages <= 0)
    """
    book_id = new_id()
    now = utc_now()
    approved = status == "approved"
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO books (
                id, title, author, isbn, cover_url, total_pages, genre,
                publication_year, status, created_by, approved_by, approved_at,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                book_id,
                title,
                author,
                isbn,
                cover_url,
                total_pages,
                genre,
                publication_year,
                status,
                created_by,
                created_by if approved else None,
                now if approved else None,
                now,
                now,
            ),
        )

    logger.debug("books.inserted", book_id=book_id, status=status)
    return get_book_by_id(book_id)  # type: ignore[return-value]


def get_book_by_id(book_id: str) -> BookRecord | None:
    """Get book by ID.

    Returns:
        BookRecord if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()
    return _row_to_book(row) if row else None


def search_books(
    query: str | None = None,
    status: str | None = "approved",
    limit: int = 20,
    offset: int = 0,
) -> list[BookRecord]:
    """Search books by title or author.

    Args:
        query: Case-insensitive substring on title/author
        status: Status filter, None for all
        limit: Page size
        offset: Page offset
    """
    clauses: list[str] = []
    params: list[Any] = []
    if status:
        clauses.append("status = ?")
        params.append(status)
    if query:
        clauses.append("(title LIKE ? OR author LIKE ?)")
        params.extend([f"%{query}%", f"%{query}%"])
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM books {where} ORDER BY title LIMIT ? OFFSET ?",
            (*params, limit, offset),
        ).fetchall()
    return [_row_to_book(r) for r in rows]


def update_book(book_id: str, **fields: Any) -> BookRecord | None:
    """Update book columns; unknown keys are ignored."""
    allowed = {
        "title",
        "author",
        "isbn",
        "cover_url",
        "total_pages",
        "genre",
        "publication_year",
        "status",
        "merged_with_id",
        "approved_by",
        "approved_at",
        "rejection_reason",
    }
    updates = {k: v for k, v in fields.items() if k in allowed}
    if updates:
        updates["updated_at"] = utc_now()
        assignments = ", ".join(f"{k} = ?" for k in updates)
        with get_db() as conn:
            conn.execute(
                f"UPDATE books SET {assignments} WHERE id = ?",
                (*updates.values(), book_id),
            )
    return get_book_by_id(book_id)


def update_cover_if_owner(book_id: str, user_id: str, cover_url: str) -> bool:
    """Set cover_url only when user_id created the book.

    Returns:
        True if a row was updated
    """
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE books SET cover_url = ?, updated_at = ? WHERE id = ? AND created_by = ?",
            (cover_url, utc_now(), book_id, user_id),
        )
    return cursor.rowcount > 0


def delete_book(book_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
    return cursor.rowcount > 0


# =============================================================================
# REVIEWS
# =============================================================================


def get_review(book_id: str, user_id: str) -> ReviewRecord | None:
    """Get a user's review of a book, including soft-deleted ones."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM book_reviews WHERE book_id = ? AND user_id = ?",
            (book_id, user_id),
        ).fetchone()
    return _row_to_review(row) if row else None


def list_reviews(book_id: str) -> list[ReviewRecord]:
    """List live (not deleted) reviews for a book, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            """
            SELECT * FROM book_reviews
            WHERE book_id = ? AND deleted_at IS NULL
            ORDER BY created_at DESC
            """,
            (book_id,),
        ).fetchall()
    return [_row_to_review(r) for r in rows]


def upsert_review(
    book_id: str, user_id: str, rating: int, review_text: str | None
) -> ReviewRecord:
    """Create a review, or revive a soft-deleted one in place.

    The caller is responsible for checking can_recreate_after.
    """
    now = utc_now()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO book_reviews (id, book_id, user_id, rating, review_text, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(book_id, user_id) DO UPDATE SET
                rating = excluded.rating,
                review_text = excluded.review_text,
                is_edited = 0,
                edited_at = NULL,
                deleted_at = NULL,
                can_recreate_after = NULL,
                created_at = excluded.created_at
            """,
            (new_id(), book_id, user_id, rating, review_text, now),
        )
    return get_review(book_id, user_id)  # type: ignore[return-value]


def edit_review(
    book_id: str, user_id: str, rating: int, review_text: str | None
) -> ReviewRecord | None:
    with get_db() as conn:
        conn.execute(
            """
            UPDATE book_reviews
            SET rating = ?, review_text = ?, is_edited = 1, edited_at = ?
            WHERE book_id = ? AND user_id = ? AND deleted_at IS NULL
            """,
            (rating, review_text, utc_now(), book_id, user_id),
        )
    return get_review(book_id, user_id)


def soft_delete_review(book_id: str, user_id: str) -> ReviewRecord | None:
    """Soft-delete a review and block re-creation for REVIEW_RECREATE_DAYS."""
    now = datetime.now(timezone.utc)
    recreate_after = now + timedelta(days=REVIEW_RECREATE_DAYS)
    with get_db() as conn:
        conn.execute(
            """
            UPDATE book_reviews SET deleted_at = ?, can_recreate_after = ?
            WHERE book_id = ? AND user_id = ? AND deleted_at IS NULL
            """,
            (now.isoformat(), recreate_after.isoformat(), book_id, user_id),
        )
    return get_review(book_id, user_id)
