"""Email/password authentication with sessions and one-time codes.

Responsibilities:
- Sign-up, sign-in and sign-out with bcrypt password hashes
- Opaque session tokens with sliding expiry
- Six-digit one-time codes for email confirmation, OTP sign-in and
  password recovery (codes are stored as HMAC digests, never in clear)

Code delivery is outside this module: issuing functions return the code and
log a delivery event, which an e-mail sender can subscribe to.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
import structlog

from readspeed.config.app_config import load_app_config
from readspeed.db import users_repository as users
from readspeed.db.users_repository import AuthUserRecord
from readspeed.utils.retry import with_retry
from readspeed.utils.validators import (
    ValidationError,
    normalize_email,
    validate_email,
    validate_password,
)

logger = structlog.get_logger(__name__)

OTP_LENGTH = 6

# =============================================================================
# ERRORS
# =============================================================================


class AuthError(Exception):
    """Authentication failure with a user-facing message.

    Attributes:
        message: Safe to show to the user
        code: Stable machine-readable code
        status: HTTP status the web layer should answer with
    """

    def __init__(self, message: str, code: str, status: int):
        self.message = message
        self.code = code
        self.status = status
        super().__init__(message)


INVALID_CREDENTIALS = ("Invalid email or password", "invalid_credentials", 401)
EMAIL_NOT_VERIFIED = ("Please verify your email before signing in", "email_not_verified", 403)
RATE_LIMITED = ("Too many attempts. Please try again later", "rate_limit", 429)
OTP_EXPIRED = ("Verification code has expired. Please request a new one", "otp_expired", 400)
INVALID_OTP = ("Invalid verification code", "invalid_otp", 400)
USER_EXISTS = ("An account with this email already exists", "user_exists", 409)
UNEXPECTED = ("An unexpected error occurred. Please try again", "unexpected_error", 500)


def auth_error(entry: tuple[str, str, int]) -> AuthError:
    return AuthError(*entry)


def classify_auth_error(message: str, status: int | None = None) -> str:
    """Sort a client-side auth failure into a recovery strategy.

    Returns:
        "token" when the session is unusable and must be cleared,
        "network" when the backend was unreachable, otherwise "other"
    """
    lowered = message.lower()
    if (
        "refresh_token" in lowered
        or "invalid_grant" in lowered
        or "session" in lowered
        or status in (400, 401)
    ):
        return "token"
    if "fetch failed" in lowered or "network" in lowered or status == 0:
        return "network"
    return "other"


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class AuthSession:
    """An issued session."""

    token: str
    user_id: str
    email: str
    expires_at: str


@dataclass
class SignUpResult:
    """Outcome of sign-up."""

    user: AuthUserRecord
    requires_confirmation: bool
    session: AuthSession | None = None


# =============================================================================
# HELPERS
# =============================================================================


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _hash_code(code: str) -> str:
    secret = load_app_config().auth.secret_key.encode("utf-8")
    return hmac.new(secret, code.encode("utf-8"), hashlib.sha256).hexdigest()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _validate_credentials(email: str, password: str) -> str:
    """Normalize and validate sign-in/sign-up input.

    Returns:
        The normalized email

    Raises:
        ValidationError: On missing fields, bad email or short password
    """
    if not email or not password:
        raise ValidationError("Email and password are required")
    normalized = normalize_email(email)
    if not validate_email(normalized):
        raise ValidationError("Please enter a valid email address", field="email")
    validate_password(password, load_app_config().auth.min_password_length)
    return normalized


def _create_session(user: AuthUserRecord) -> AuthSession:
    ttl = timedelta(hours=load_app_config().auth.session_ttl_hours)
    token = secrets.token_urlsafe(32)
    expires_at = (_now() + ttl).isoformat()
    users.insert_session(token, user.id, expires_at)
    users.touch_last_sign_in(user.id)
    return AuthSession(token=token, user_id=user.id, email=user.email, expires_at=expires_at)


def _issue_code(user: AuthUserRecord, purpose: str) -> str:
    code = f"{secrets.randbelow(10**OTP_LENGTH):0{OTP_LENGTH}d}"
    ttl = timedelta(minutes=load_app_config().auth.otp_ttl_minutes)
    users.insert_one_time_code(user.id, purpose, _hash_code(code), (_now() + ttl).isoformat())

    config = load_app_config()
    if config.is_production:
        logger.info("auth.code_issued", user_id=user.id, purpose=purpose)
    else:
        logger.info("auth.code_issued", user_id=user.id, purpose=purpose, code=code)
    return code


def _consume_code(user: AuthUserRecord, purpose: str, code: str) -> None:
    """Verify and burn a one-time code.

    Raises:
        AuthError: otp_expired or invalid_otp
    """
    record = users.get_active_code(user.id, purpose)
    if record is None:
        raise auth_error(INVALID_OTP)
    if _parse_ts(record.expires_at) < _now():
        raise auth_error(OTP_EXPIRED)
    if not hmac.compare_digest(record.code_hash, _hash_code(code.strip())):
        raise auth_error(INVALID_OTP)
    users.mark_code_used(record.id)


# =============================================================================
# OPERATIONS
# =============================================================================


def sign_up(email: str, password: str, confirmed: bool | None = None) -> SignUpResult:
    """Register a new account.

    Args:
        email: Address (trimmed and lower-cased)
        password: Plain password, at least the configured minimum length
        confirmed: Force confirmation state; defaults to the auto_confirm setting

    Returns:
        SignUpResult. When confirmation is required a signup code has been
        issued and no session is created.

    Raises:
        ValidationError: On invalid input
        AuthError: user_exists
    """
    normalized = _validate_credentials(email, password)
    if confirmed is None:
        confirmed = load_app_config().auth.auto_confirm

    try:
        user = users.insert_auth_user(normalized, hash_password(password), confirmed=confirmed)
    except sqlite3.IntegrityError as e:
        raise auth_error(USER_EXISTS) from e

    logger.info("auth.signed_up", user_id=user.id, confirmed=confirmed)

    if not confirmed:
        _issue_code(user, "signup")
        return SignUpResult(user=user, requires_confirmation=True)

    return SignUpResult(user=user, requires_confirmation=False, session=_create_session(user))


def sign_in(email: str, password: str) -> AuthSession:
    """Authenticate with email and password.

    Raises:
        ValidationError: On malformed input
        AuthError: invalid_credentials or email_not_verified
    """
    if not email or not password:
        raise ValidationError("Email and password are required")
    normalized = normalize_email(email)
    if not validate_email(normalized):
        raise ValidationError("Please enter a valid email address", field="email")

    user = users.get_auth_user_by_email(normalized)
    if user is None or not check_password(password, user.password_hash):
        logger.info("auth.sign_in_failed", email_domain=normalized.split("@")[-1])
        raise auth_error(INVALID_CREDENTIALS)

    if user.email_confirmed_at is None:
        raise auth_error(EMAIL_NOT_VERIFIED)

    session = _create_session(user)
    logger.info("auth.signed_in", user_id=user.id)
    return session


def sign_out(token: str) -> bool:
    removed = users.delete_session(token)
    logger.info("auth.signed_out", removed=removed)
    return removed


def get_user_for_token(token: str) -> AuthUserRecord | None:
    """Resolve a session token to its user, dropping expired sessions."""
    session = users.get_session(token)
    if session is None:
        return None
    if _parse_ts(session.expires_at) < _now():
        users.delete_session(token)
        logger.debug("auth.session_expired", user_id=session.user_id)
        return None
    return users.get_auth_user(session.user_id)


def refresh_session(token: str) -> AuthSession:
    """Extend a live session's expiry.

    Retries transient database errors.

    Raises:
        AuthError: invalid_credentials when the token is unknown or expired
    """
    user = get_user_for_token(token)
    if user is None:
        raise auth_error(INVALID_CREDENTIALS)

    ttl = timedelta(hours=load_app_config().auth.session_ttl_hours)
    expires_at = (_now() + ttl).isoformat()
    with_retry(
        lambda: users.extend_session(token, expires_at),
        max_retries=3,
        delay=0.1,
        retry_on=(sqlite3.OperationalError,),
    )
    return AuthSession(token=token, user_id=user.id, email=user.email, expires_at=expires_at)


def request_email_otp(email: str) -> str | None:
    """Issue a sign-in/confirmation code.

    Unknown addresses get no code but the same outward behavior.

    Returns:
        The code, or None for unknown addresses
    """
    user = users.get_auth_user_by_email(normalize_email(email))
    if user is None:
        logger.info("auth.otp_unknown_email")
        return None
    purpose = "email" if user.email_confirmed_at else "signup"
    return _issue_code(user, purpose)


def verify_email_otp(email: str, code: str) -> AuthSession:
    """Verify a code from request_email_otp or sign-up, confirming the email.

    Raises:
        AuthError: invalid_otp or otp_expired
    """
    user = users.get_auth_user_by_email(normalize_email(email))
    if user is None:
        raise auth_error(INVALID_OTP)

    purpose = "email" if user.email_confirmed_at else "signup"
    _consume_code(user, purpose, code)
    if user.email_confirmed_at is None:
        users.mark_email_confirmed(user.id)
        logger.info("auth.email_confirmed", user_id=user.id)
    return _create_session(user)


def request_password_reset(email: str) -> str | None:
    """Issue a recovery code; None for unknown addresses."""
    user = users.get_auth_user_by_email(normalize_email(email))
    if user is None:
        return None
    return _issue_code(user, "recovery")


def reset_password(email: str, code: str, new_password: str) -> AuthSession:
    """Set a new password using a recovery code.

    All existing sessions for the user are revoked.

    Raises:
        ValidationError: If the new password is too short
        AuthError: invalid_otp or otp_expired
    """
    validate_password(new_password, load_app_config().auth.min_password_length)
    user = users.get_auth_user_by_email(normalize_email(email))
    if user is None:
        raise auth_error(INVALID_OTP)

    _consume_code(user, "recovery", code)
    users.update_password_hash(user.id, hash_password(new_password))
    users.delete_user_sessions(user.id)
    if user.email_confirmed_at is None:
        users.mark_email_confirmed(user.id)
    logger.info("auth.password_reset", user_id=user.id)
    return _create_session(user)


def update_password(user_id: str, new_password: str) -> None:
    """Change the password of a signed-in user.

    Raises:
        ValidationError: If the new password is too short
    """
    validate_password(new_password, load_app_config().auth.min_password_length)
    users.update_password_hash(user_id, hash_password(new_password))
    logger.info("auth.password_updated", user_id=user_id)
