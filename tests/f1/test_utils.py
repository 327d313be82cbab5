"""Tests for text, validation and retry helpers (F1)."""

import sqlite3

import pytest

from readspeed.utils.retry import with_retry
from readspeed.utils.text_utils import count_words, reading_wpm, split_words
from readspeed.utils.validators import (
    ValidationError,
    clean_optional_text,
    normalize_email,
    require_fields,
    validate_email,
    validate_password,
)


class TestTextUtils:
    """Tests for word splitting and rates."""

    def test_split_collapses_whitespace(self):
        """Runs of spaces, tabs and newlines separate words."""
        assert split_words("  one\ttwo\n\nthree   ") == ["one", "two", "three"]

    def test_count_empty(self):
        """Blank text has no words."""
        assert count_words("   ") == 0

    def test_reading_wpm(self):
        """150 words in 30 seconds is 300 wpm."""
        assert reading_wpm(150, 30) == 300

    def test_reading_wpm_zero_time(self):
        """No elapsed time gives 0."""
        assert reading_wpm(150, 0) == 0


class TestValidators:
    """Tests for input validators."""

    def test_normalize_email(self):
        assert normalize_email("  Reader@Example.COM ") == "reader@example.com"

    @pytest.mark.parametrize(
        "email,valid",
        [
            ("a@b.co", True),
            ("reader@example.com", True),
            ("no-at-sign.com", False),
            ("two@@example.com", False),
            ("spaces in@example.com", False),
            ("missing@tld", False),
        ],
    )
    def test_validate_email(self, email, valid):
        assert validate_email(email) is valid

    def test_short_password(self):
        """Passwords under the minimum raise with the field name."""
        with pytest.raises(ValidationError) as exc:
            validate_password("12345")
        assert exc.value.field == "password"
        assert "at least 6" in exc.value.message

    def test_password_at_minimum(self):
        validate_password("123456")

    def test_clean_optional_text(self):
        assert clean_optional_text("  hi ") == "hi"
        assert clean_optional_text("   ") is None
        assert clean_optional_text(None) is None

    def test_require_fields(self):
        """Missing and empty fields are listed."""
        with pytest.raises(ValidationError, match="title, author"):
            require_fields({"title": "", "isbn": "1"}, ["title", "author", "isbn"])


class TestWithRetry:
    """Tests for with_retry."""

    def test_succeeds_after_failures(self):
        """Transient errors are retried with linear backoff."""
        calls = []
        sleeps = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise sqlite3.OperationalError("database is locked")
            return "ok"

        result = with_retry(flaky, max_retries=3, delay=0.5, sleep=sleeps.append)
        assert result == "ok"
        assert sleeps == [0.5, 1.0]

    def test_reraises_last_error(self):
        """The final error propagates once attempts run out."""
        def always_fails():
            raise sqlite3.OperationalError("still locked")

        with pytest.raises(sqlite3.OperationalError, match="still locked"):
            with_retry(always_fails, max_retries=2, delay=0, sleep=lambda _: None)

    def test_other_errors_not_retried(self):
        """Errors outside retry_on propagate immediately."""
        calls = []

        def broken():
            calls.append(1)
            raise KeyError("boom")

        with pytest.raises(KeyError):
            with_retry(broken, retry_on=(sqlite3.OperationalError,), sleep=lambda _: None)
        assert len(calls) == 1

    def test_needs_an_attempt(self):
        calls = []
        with pytest.raises(ValueError, match="at least 1"):
            with_retry(lambda: calls.append(1), max_retries=0, sleep=lambda _: None)
        assert calls == []
