"""Tests for the SQLite repositories (F3).

Schema constraints and the queries that do real work: leaderboard ranking,
daily page totals, percentiles and review revival.
"""

import sqlite3

import pytest

from readspeed.db import (
    assessments_repository,
    books_repository,
    exercises_repository,
    leaderboard_repository,
    platform_repository,
    submissions_repository,
    users_repository,
)
from readspeed.db.database import get_db, get_db_path
from readspeed.db.submissions_repository import NewSubmission


def _submission(book_id, day, pages, minutes=30):
    return NewSubmission(
        book_id=book_id,
        pages_read=pages,
        time_spent=minutes,
        reading_speed=round(pages / minutes * 60),
        submission_date=day,
        session_timestamp=f"{day}T12:00:00+00:00",
    )


class TestDatabase:
    """Tests for init_db and schema."""

    def test_init_creates_file(self, db):
        assert db.exists()
        assert get_db_path() == db

    def test_tables_exist(self, db):
        with get_db() as conn:
            names = {
                r["name"]
                for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            }
        for table in (
            "auth_users",
            "profiles",
            "books",
            "book_reviews",
            "reading_submissions",
            "exercises",
            "exercise_results",
            "user_exercise_stats",
            "assessment_texts",
            "assessment_results",
            "feature_flags",
            "subscription_limits",
            "subscription_plans",
            "user_monthly_usage",
            "admin_activity_log",
        ):
            assert table in names


class TestUsersRepository:
    """Tests for accounts and profiles."""

    def test_insert_creates_profile(self, db):
        user = users_repository.insert_auth_user("a@example.com", "hash", confirmed=True)
        profile = users_repository.get_profile(user.id)
        assert profile.email == "a@example.com"
        assert profile.role == "reader"
        assert profile.subscription_tier == "free"
        assert profile.privacy_settings == {}
        assert profile.is_active

    def test_duplicate_email(self, db):
        users_repository.insert_auth_user("a@example.com", "hash")
        with pytest.raises(sqlite3.IntegrityError):
            users_repository.insert_auth_user("a@example.com", "hash")

    def test_update_profile_ignores_unknown(self, db):
        user = users_repository.insert_auth_user("a@example.com", "hash")
        profile = users_repository.update_profile(
            user.id,
            full_name="Ada",
            privacy_settings={"profile": {"showFullName": False}},
            password_hash="nope",
        )
        assert profile.full_name == "Ada"
        assert profile.privacy_settings["profile"]["showFullName"] is False

    def test_invalid_tier_rejected(self, db):
        user = users_repository.insert_auth_user("a@example.com", "hash")
        with pytest.raises(sqlite3.IntegrityError):
            users_repository.update_profile(user.id, subscription_tier="platinum")

    def test_list_profiles_search(self, make_user):
        make_user(email="ada@example.com", full_name="Ada")
        make_user(email="bob@example.com", full_name="Bob", tier="reader")

        profiles, total = users_repository.list_profiles(search="ada")
        assert total == 1
        assert profiles[0].full_name == "Ada"

        profiles, total = users_repository.list_profiles(subscription_tier="reader")
        assert [p.full_name for p in profiles] == ["Bob"]

    def test_one_time_code_replaced(self, db):
        """A new code invalidates the previous unused one."""
        user = users_repository.insert_auth_user("a@example.com", "hash")
        users_repository.insert_one_time_code(user.id, "email", "first", "2999-01-01T00:00:00")
        users_repository.insert_one_time_code(user.id, "email", "second", "2999-01-01T00:00:00")
        code = users_repository.get_active_code(user.id, "email")
        assert code.code_hash == "second"


class TestBooksRepository:
    """Tests for books and reviews."""

    def test_search_approved_only(self, make_book):
        make_book("Dune", author="Frank Herbert")
        make_book("Dune Messiah", author="Frank Herbert", status="pending")

        books = books_repository.search_books("dune")
        assert [b.title for b in books] == ["Dune"]
        assert len(books_repository.search_books("dune", status=None)) == 2

    def test_search_by_author(self, make_book):
        make_book("Dune", author="Frank Herbert")
        assert len(books_repository.search_books("HERBERT")) == 1

    def test_pages_must_be_positive(self, db):
        with pytest.raises(sqlite3.IntegrityError):
            books_repository.insert_book("Bad", "Nobody", None, total_pages=0)

    def test_review_revived_in_place(self, make_user, make_book):
        user = make_user()
        book = make_book()
        first = books_repository.upsert_review(book.id, user.id, 2, "meh")
        books_repository.soft_delete_review(book.id, user.id)
        assert books_repository.list_reviews(book.id) == []

        revived = books_repository.upsert_review(book.id, user.id, 5, "better")
        assert revived.id == first.id
        assert revived.rating == 5
        assert revived.deleted_at is None
        assert revived.can_recreate_after is None

    def test_rating_range(self, make_user, make_book):
        user = make_user()
        book = make_book()
        with pytest.raises(sqlite3.IntegrityError):
            books_repository.upsert_review(book.id, user.id, 6, None)


class TestSubmissionsRepository:
    """Tests for reading submissions."""

    def test_insert_and_list(self, make_user, make_book):
        user = make_user()
        book = make_book()
        ids = submissions_repository.insert_submissions(
            user.id,
            [_submission(book.id, "2024-03-01", 10), _submission(book.id, "2024-03-02", 20)],
        )
        assert len(ids) == 2

        history = submissions_repository.list_user_submissions(user.id)
        assert [s.submission_date for s in history] == ["2024-03-02", "2024-03-01"]

    def test_batch_is_atomic(self, make_user, make_book):
        """One bad row rolls back the whole batch."""
        user = make_user()
        book = make_book()
        with pytest.raises(sqlite3.IntegrityError):
            submissions_repository.insert_submissions(
                user.id,
                [_submission(book.id, "2024-03-01", 10), _submission(book.id, "2024-03-02", 0)],
            )
        assert submissions_repository.list_user_submissions(user.id) == []

    def test_daily_pages(self, make_user, make_book):
        user = make_user()
        other = make_user()
        book = make_book()
        submissions_repository.insert_submissions(
            user.id,
            [
                _submission(book.id, "2024-03-01", 10),
                _submission(book.id, "2024-03-01", 5),
                _submission(book.id, "2024-03-09", 7),
            ],
        )
        pages = submissions_repository.daily_pages(
            [user.id, other.id], "2024-03-01", "2024-03-07"
        )
        assert pages == {user.id: {"2024-03-01": 15}, other.id: {}}


class TestLeaderboardRepository:
    """Tests for fetch_ranked_readers."""

    def test_ranking_and_eligibility(self, make_user, make_book):
        book = make_book()
        top = make_user(tier="pro", full_name="Top")
        second = make_user(tier="reader", full_name="Second")
        free = make_user(tier="free", full_name="Free")
        hidden = make_user(
            tier="reader",
            full_name="Hidden",
            privacy_settings={"leaderboard": {"showOnLeaderboard": False}},
        )
        anonymous = make_user(
            tier="reader",
            full_name="Secret Name",
            privacy_settings={"profile": {"showFullName": False}},
        )
        for user, pages in ((top, 50), (second, 30), (free, 100), (hidden, 80), (anonymous, 10)):
            submissions_repository.insert_submissions(
                user.id, [_submission(book.id, "2024-03-05", pages)]
            )

        rows = leaderboard_repository.fetch_ranked_readers("2024-03-01", "2024-03-07")
        assert [r.rank for r in rows] == [1, 2, 3]
        assert [r.user_id for r in rows] == [top.id, second.id, anonymous.id]
        assert rows[0].display_name == "Top"
        assert rows[2].full_name is None
        assert rows[2].display_name == f"Reader {anonymous.id[:8]}"

    def test_ties_broken_by_time(self, make_user, make_book):
        book = make_book()
        quick = make_user(tier="reader")
        slow = make_user(tier="reader")
        submissions_repository.insert_submissions(
            quick.id, [_submission(book.id, "2024-03-05", 40, minutes=20)]
        )
        submissions_repository.insert_submissions(
            slow.id, [_submission(book.id, "2024-03-05", 40, minutes=60)]
        )
        rows = leaderboard_repository.fetch_ranked_readers("2024-03-01", "2024-03-07")
        assert [r.user_id for r in rows] == [slow.id, quick.id]

    def test_window_excludes_outside_dates(self, make_user, make_book):
        book = make_book()
        user = make_user(tier="reader")
        submissions_repository.insert_submissions(
            user.id, [_submission(book.id, "2024-02-01", 40)]
        )
        assert leaderboard_repository.fetch_ranked_readers("2024-03-01", "2024-03-07") == []


class TestAssessmentsRepository:
    """Tests for assessment texts and results."""

    def _text(self):
        return assessments_repository.insert_assessment_text(
            title="Sample",
            content="word " * 100,
            word_count=100,
            questions=[{"question": "Q?", "options": ["a", "b"], "correct_answer": 0}],
        )

    def test_percentile(self, make_user):
        text = self._text()
        user = make_user()
        assert assessments_repository.percentile_for(text.id, 200) is None
        for wpm in (100, 200, 300, 400):
            assessments_repository.insert_assessment_result(user.id, text.id, wpm, 100, 60, [0], 50)
        assert assessments_repository.percentile_for(text.id, 350) == 75

    def test_attempt_numbers_and_usage(self, make_user):
        text = self._text()
        user = make_user()
        first = assessments_repository.insert_assessment_result(user.id, text.id, 200, 100, 60, [0], 50)
        second = assessments_repository.insert_assessment_result(user.id, text.id, 220, 100, 55, [0], 50)
        assert (first.attempt_number, second.attempt_number) == (1, 2)
        assert assessments_repository.get_assessment_text(text.id).times_used == 2

        annotated = assessments_repository.list_active_texts_with_user_counts(user.id)
        assert annotated[0].user_times_taken == 2


class TestExercisesRepository:
    """Tests for exercise catalog queries."""

    def test_list_filters_by_tier(self, db):
        exercises_repository.insert_exercise("Free one", "mindset", "beginner", "d")
        exercises_repository.insert_exercise(
            "Paid one", "word_flasher", "beginner", "d", min_subscription_tier="reader"
        )
        exercises_repository.insert_exercise(
            "Off", "word_flasher", "advanced", "d", is_active=False
        )

        assert [e.title for e in exercises_repository.list_exercises(tier="free")] == ["Free one"]
        assert len(exercises_repository.list_exercises(tier="reader")) == 2
        assert len(exercises_repository.list_exercises(include_inactive=True)) == 3

    def test_unique_type_title(self, db):
        exercises_repository.insert_exercise("Same", "mindset", "beginner", "d")
        with pytest.raises(sqlite3.IntegrityError):
            exercises_repository.insert_exercise("Same", "mindset", "beginner", "d")


class TestPlatformRepository:
    """Tests for flags, limits, plans and usage."""

    def test_flag_round_trip(self, db):
        flag = platform_repository.insert_flag(
            "leaderboard", "Rankings", enabled=True, metadata={"beta": True}
        )
        assert platform_repository.get_flag("leaderboard").metadata == {"beta": True}
        updated = platform_repository.update_flag(flag.id, enabled=False)
        assert updated.enabled is False
        assert platform_repository.delete_flag(flag.id)
        assert platform_repository.get_flag("leaderboard") is None

    def test_upsert_limits(self, db):
        platform_repository.upsert_limits("reader", max_custom_texts=10, can_join_leaderboard=True)
        limits = platform_repository.upsert_limits("reader", max_custom_texts=20)
        assert limits.max_custom_texts == 20
        assert limits.can_join_leaderboard is True

    def test_monthly_usage_defaults_and_upsert(self, make_user):
        user = make_user()
        usage = platform_repository.get_monthly_usage(user.id, "2024-03")
        assert usage.submission_count == 0
        assert usage.exercises_used == []

        usage.submission_count = 3
        usage.exercises_used = ["word_flasher"]
        platform_repository.save_monthly_usage(usage)
        platform_repository.save_monthly_usage(usage)

        stored = platform_repository.get_monthly_usage(user.id, "2024-03")
        assert stored.submission_count == 3
        assert stored.exercises_used == ["word_flasher"]

    def test_activity_log(self, make_user):
        admin = make_user(role="admin")
        platform_repository.insert_activity(admin.id, "update_user", "user", "u1", {"role": "admin"})
        entries = platform_repository.list_activity()
        assert entries[0].action == "update_user"
        assert entries[0].details == {"role": "admin"}
