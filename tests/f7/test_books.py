"""Tests for the book catalog, reviews and cover storage (F7)."""

from datetime import datetime, timedelta, timezone

import pytest

from readspeed.core import books, storage
from readspeed.core.books import BookNotFoundError, ReviewError
from readspeed.core.storage import StorageError
from readspeed.db.database import get_db
from readspeed.utils.validators import ValidationError

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class TestCreateBook:
    """Tests for create_book and moderation."""

    def test_reader_book_is_pending(self, make_user):
        user = make_user()
        book = books.create_book(user, "  Dune ", "Frank Herbert", total_pages=412, genre=" ")
        assert book.status == "pending"
        assert book.title == "Dune"
        assert book.genre is None
        assert book.created_by == user.id

    def test_admin_book_is_approved(self, make_user):
        admin = make_user(role="admin")
        book = books.create_book(admin, "Dune", "Frank Herbert")
        assert book.status == "approved"

    @pytest.mark.parametrize("title,author,pages", [("", "A", None), ("T", "  ", None), ("T", "A", 0)])
    def test_validation(self, make_user, title, author, pages):
        user = make_user()
        with pytest.raises(ValidationError):
            books.create_book(user, title, author, total_pages=pages)

    def test_moderate(self, make_user):
        admin = make_user(role="admin")
        user = make_user()
        book = books.create_book(user, "Dune", "Frank Herbert")

        approved = books.moderate_book(book.id, admin.id, approve=True)
        assert approved.status == "approved"
        assert approved.approved_by == admin.id
        assert approved.approved_at is not None

        rejected = books.moderate_book(book.id, admin.id, approve=False, reason="Duplicate")
        assert rejected.status == "rejected"
        assert rejected.rejection_reason == "Duplicate"

    def test_moderate_missing(self, make_user):
        admin = make_user(role="admin")
        with pytest.raises(BookNotFoundError):
            books.moderate_book("missing", admin.id, approve=True)


class TestReviews:
    """Tests for the review lifecycle."""

    def test_one_live_review(self, make_user, make_book):
        user = make_user()
        book = make_book()
        review = books.create_review(book.id, user.id, 4, "Good")
        assert review.rating == 4
        with pytest.raises(ReviewError) as exc:
            books.create_review(book.id, user.id, 5)
        assert exc.value.status == 409

    def test_rating_range(self, make_user, make_book):
        user = make_user()
        book = make_book()
        with pytest.raises(ValidationError):
            books.create_review(book.id, user.id, 6)

    def test_recreate_blocked_after_delete(self, make_user, make_book):
        user = make_user()
        book = make_book()
        books.create_review(book.id, user.id, 4)
        deleted = books.delete_review(book.id, user.id)
        assert deleted.deleted_at is not None

        with pytest.raises(ReviewError) as exc:
            books.create_review(book.id, user.id, 5)
        assert exc.value.status == 429

    def test_recreate_after_wait(self, make_user, make_book):
        user = make_user()
        book = make_book()
        first = books.create_review(book.id, user.id, 2)
        books.delete_review(book.id, user.id)
        past = (datetime.now(timezone.utc) - timedelta(minutes=1)).isoformat()
        with get_db() as conn:
            conn.execute("UPDATE book_reviews SET can_recreate_after = ?", (past,))

        again = books.create_review(book.id, user.id, 5, "Better on reread")
        assert again.id == first.id
        assert again.rating == 5
        assert again.deleted_at is None

    def test_edit_and_delete_missing(self, make_user, make_book):
        user = make_user()
        book = make_book()
        with pytest.raises(ReviewError) as exc:
            books.edit_review(book.id, user.id, 3)
        assert exc.value.status == 404
        with pytest.raises(ReviewError):
            books.delete_review(book.id, user.id)

    def test_edit(self, make_user, make_book):
        user = make_user()
        book = make_book()
        books.create_review(book.id, user.id, 3)
        edited = books.edit_review(book.id, user.id, 4, "Grew on me")
        assert edited.rating == 4
        assert edited.review_text == "Grew on me"


class TestCovers:
    """Tests for upload_cover and storage."""

    def test_owner_upload(self, make_user, make_book):
        user = make_user()
        book = make_book(created_by=user.id)
        stored = books.upload_cover(book.id, user.id, "cover.PNG", "image/png", PNG)

        assert stored.path.startswith(f"{user.id}/")
        assert stored.path.endswith(".png")
        assert books.get_book(book.id).cover_url == stored.public_url
        assert storage.resolve_object("book-covers", stored.path).read_bytes() == PNG

    def test_non_owner_upload_removed(self, app_env, make_user, make_book):
        owner = make_user()
        other = make_user()
        book = make_book(created_by=owner.id)
        with pytest.raises(StorageError, match="creator"):
            books.upload_cover(book.id, other.id, "cover.png", "image/png", PNG)

        assert list((app_env / "storage" / "book-covers" / other.id).iterdir()) == []
        assert books.get_book(book.id).cover_url is None

    def test_missing_book(self, make_user):
        user = make_user()
        with pytest.raises(BookNotFoundError):
            books.upload_cover("missing", user.id, "cover.png", "image/png", PNG)


class TestStorage:
    """Tests for image validation and object paths."""

    @pytest.mark.parametrize(
        "file_name,content_type,size,message",
        [
            ("a.png", "image/png", storage.MAX_FILE_SIZE + 1, "5MB"),
            ("a.png", "image/png", 0, "empty"),
            ("a.pdf", "application/pdf", 10, "Only JPEG, PNG, GIF, and WebP"),
            ("a.gif", "image/png", 10, "extension"),
        ],
    )
    def test_validate_image_rejects(self, file_name, content_type, size, message):
        with pytest.raises(StorageError, match=message):
            storage.validate_image(file_name, content_type, size)

    def test_jpeg_extensions(self):
        assert storage.validate_image("photo.JPEG", "image/jpeg", 10) == ".jpeg"
        assert storage.validate_image("photo.jpg", "image/jpeg", 10) == ".jpg"

    def test_unknown_bucket(self, app_env):
        with pytest.raises(StorageError, match="bucket"):
            storage.save_upload("private", "u1", "a.png", "image/png", PNG)

    def test_resolve_refuses_traversal(self, app_env):
        stored = storage.save_upload("avatars", "u1", "me.png", "image/png", PNG)
        assert storage.resolve_object("avatars", stored.path) is not None
        assert storage.resolve_object("avatars", "../book-covers/x.png") is None
        assert storage.resolve_object("secrets", stored.path) is None

    def test_remove_object(self, app_env):
        stored = storage.save_upload("avatars", "u1", "me.webp", "image/webp", PNG)
        assert storage.remove_object(stored.bucket, stored.path)
        assert not storage.remove_object(stored.bucket, stored.path)
        assert storage.resolve_object(stored.bucket, stored.path) is None
