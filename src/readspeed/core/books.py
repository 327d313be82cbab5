"""Book catalog, moderation, covers and reviews."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from readspeed.core import storage
from readspeed.db import books_repository as repo
from readspeed.db.books_repository import BookRecord, ReviewRecord
from readspeed.db.users_repository import ProfileRecord
from readspeed.utils.validators import ValidationError, clean_optional_text

logger = structlog.get_logger(__name__)


class BookNotFoundError(Exception):
    """Raised when a book ID does not exist."""

    def __init__(self, book_id: str):
        self.book_id = book_id
        super().__init__(f"Book '{book_id}' not found")


class ReviewError(Exception):
    """Raised when a review operation is not allowed."""

    def __init__(self, message: str, status: int = 400):
        self.message = message
        self.status = status
        super().__init__(message)


def create_book(
    profile: ProfileRecord,
    title: str,
    author: str,
    total_pages: int | None = None,
    isbn: str | None = None,
    genre: str | None = None,
    publication_year: int | None = None,
) -> BookRecord:
    """Add a book. Admin-created books are approved, others wait for review.

    Raises:
        ValidationError: On missing title/author or non-positive pages
    """
    title = (title or "").strip()
    author = (author or "").strip()
    if not title or not author:
        raise ValidationError("Title and author are required")
    if total_pages is not None and total_pages <= 0:
        raise ValidationError("Total pages must be greater than 0", field="total_pages")

    book = repo.insert_book(
        title=title,
        author=author,
        created_by=profile.id,
        status="approved" if profile.is_admin else "pending",
        isbn=clean_optional_text(isbn),
        total_pages=total_pages,
        genre=clean_optional_text(genre),
        publication_year=publication_year,
    )
    logger.info("books.created", book_id=book.id, status=book.status)
    return book


def get_book(book_id: str) -> BookRecord:
    book = repo.get_book_by_id(book_id)
    if book is None:
        raise BookNotFoundError(book_id)
    return book


def moderate_book(
    book_id: str, admin_id: str, approve: bool, reason: str | None = None
) -> BookRecord:
    """Approve or reject a pending book."""
    get_book(book_id)
    if approve:
        book = repo.update_book(
            book_id,
            status="approved",
            approved_by=admin_id,
            approved_at=datetime.now(timezone.utc).isoformat(),
            rejection_reason=None,
        )
    else:
        book = repo.update_book(book_id, status="rejected", rejection_reason=reason)
    logger.info("books.moderated", book_id=book_id, approved=approve)
    return book  # type: ignore[return-value]


def upload_cover(
    book_id: str, user_id: str, file_name: str, content_type: str, data: bytes
) -> storage.StoredObject:
    """Store a cover image and attach it to a book the user created.

    The uploaded file is removed again when the book cannot be updated.

    Raises:
        StorageError: On invalid uploads
        BookNotFoundError: If the book does not exist
    """
    get_book(book_id)
    stored = storage.save_upload(storage.BOOK_COVERS_BUCKET, user_id, file_name, content_type, data)
    if not repo.update_cover_if_owner(book_id, user_id, stored.public_url):
        storage.remove_object(stored.bucket, stored.path)
        raise storage.StorageError("Only the creator of a book can change its cover")
    return stored


# =============================================================================
# REVIEWS
# =============================================================================


def _validate_rating(rating: int) -> None:
    if not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5", field="rating")


def create_review(
    book_id: str, user_id: str, rating: int, review_text: str | None = None
) -> ReviewRecord:
    """Create the user's review of a book.

    A soft-deleted review can be replaced once its can_recreate_after time
    has passed.

    Raises:
        ReviewError: 409 when a live review exists, 429 while re-creation
            is blocked
    """
    _validate_rating(rating)
    get_book(book_id)

    existing = repo.get_review(book_id, user_id)
    if existing is not None:
        if existing.deleted_at is None:
            raise ReviewError("You have already reviewed this book", status=409)
        if existing.can_recreate_after:
            blocked_until = datetime.fromisoformat(existing.can_recreate_after)
            if blocked_until > datetime.now(timezone.utc):
                raise ReviewError(
                    f"You can review this book again after {blocked_until.date().isoformat()}",
                    status=429,
                )

    review = repo.upsert_review(book_id, user_id, rating, clean_optional_text(review_text))
    logger.info("reviews.created", book_id=book_id, user_id=user_id)
    return review


def edit_review(
    book_id: str, user_id: str, rating: int, review_text: str | None = None
) -> ReviewRecord:
    _validate_rating(rating)
    existing = repo.get_review(book_id, user_id)
    if existing is None or existing.deleted_at is not None:
        raise ReviewError("Review not found", status=404)
    return repo.edit_review(book_id, user_id, rating, clean_optional_text(review_text))  # type: ignore[return-value]


def delete_review(book_id: str, user_id: str) -> ReviewRecord:
    existing = repo.get_review(book_id, user_id)
    if existing is None or existing.deleted_at is not None:
        raise ReviewError("Review not found", status=404)
    review = repo.soft_delete_review(book_id, user_id)
    logger.info("reviews.deleted", book_id=book_id, user_id=user_id)
    return review  # type: ignore[return-value]
