"""Input validation helpers.

Functions:
- normalize_email(email) -> str: trim and lower-case
- validate_email(email) -> bool
- validate_password(password, min_length) -> None, raises ValidationError
- clean_optional_text(value) -> str | None: trim, empty becomes None
"""

from __future__ import annotations

import re

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ValidationError(Exception):
    """Raised when user input fails validation."""

    def __init__(self, message: str, field: str | None = None):
        self.message = message
        self.field = field
        super().__init__(message)


def normalize_email(email: str) -> str:
    """Trim whitespace and lower-case an email address."""
    return email.strip().lower()


def validate_email(email: str) -> bool:
    """Check an email address has the shape name@domain.tld."""
    return bool(EMAIL_PATTERN.match(email))


def validate_password(password: str, min_length: int = 6) -> None:
    """Validate password length.

    Raises:
        ValidationError: If the password is shorter than min_length.
    """
    if len(password) < min_length:
        raise ValidationError(
            f"Password must be at least {min_length} characters", field="password"
        )


def clean_optional_text(value: str | None) -> str | None:
    """Trim a free-text value; empty strings become None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def require_fields(data: dict, fields: list[str]) -> None:
    """Ensure every named field is present and non-empty.

    Raises:
        ValidationError: Naming the missing fields.
    """
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
