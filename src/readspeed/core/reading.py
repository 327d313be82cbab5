"""Reading log submissions and personal progress.

Responsibilities:
- Single-session submissions (pages and minutes for one day)
- Bulk submissions spreading totals across up to seven days
- Monthly submission quota and profile page totals
- Dashboard progress chart and weekly goal
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any

import structlog

from readspeed.config.app_config import load_app_config
from readspeed.core import subscriptions
from readspeed.core.leaderboard import build_chart
from readspeed.db import books_repository as books
from readspeed.db import submissions_repository as submissions_repo
from readspeed.db import users_repository as users
from readspeed.db.submissions_repository import NewSubmission, SubmissionRecord
from readspeed.utils.validators import ValidationError

logger = structlog.get_logger(__name__)

MAX_BULK_DAYS = 7
MAX_BULK_PAGES = 7000
MAX_BULK_MINUTES = 1680
MAX_DAILY_PAGES = 1000
MAX_DAILY_MINUTES = 240


class BookNotAvailableError(Exception):
    """Raised when submitting against a missing or unapproved book."""

    def __init__(self, book_id: str):
        self.book_id = book_id
        super().__init__(f"Book '{book_id}' not found")


@dataclass
class DailyValue:
    """Pages and minutes for one day of a bulk submission."""

    date: date
    pages: int
    time: int
    enabled: bool = True


def pages_per_hour(pages: int, minutes: int) -> int:
    """Reading speed stored with each submission."""
    if minutes <= 0:
        return 0
    return round(pages / minutes * 60)


def session_timestamp(day: date, today: date) -> str:
    """Now for today's sessions, noon UTC for back-dated ones."""
    if day == today:
        return datetime.now(timezone.utc).isoformat()
    return f"{day.isoformat()}T12:00:00.000Z"


def _require_book(book_id: str) -> books.BookRecord:
    book = books.get_book_by_id(book_id)
    if book is None or book.status != "approved":
        raise BookNotAvailableError(book_id)
    return book


def submit_reading(
    user_id: str,
    tier: str,
    book_id: str,
    pages_read: int,
    time_spent: int,
    submission_date: date | None = None,
    notes: str | None = None,
) -> SubmissionRecord:
    """Record one reading session.

    Args:
        user_id: Reader
        tier: Reader's subscription tier (for the monthly quota)
        book_id: Approved book
        pages_read: Pages, > 0
        time_spent: Minutes, > 0
        submission_date: Defaults to today; future dates are rejected
        notes: Optional free text

    Raises:
        ValidationError: On non-positive values or a future date
        BookNotAvailableError: If the book is missing or unapproved
        LimitExceededError: If the monthly submission quota is used up
    """
    today = datetime.now(timezone.utc).date()
    day = submission_date or today
    if pages_read <= 0:
        raise ValidationError("Pages read must be greater than 0", field="pages_read")
    if time_spent <= 0:
        raise ValidationError("Time spent must be greater than 0", field="time_spent")
    if day > today:
        raise ValidationError("Submission date cannot be in the future", field="submission_date")

    _require_book(book_id)
    subscriptions.enforce_limit(user_id, tier, "submission")

    new = NewSubmission(
        book_id=book_id,
        pages_read=pages_read,
        time_spent=time_spent,
        reading_speed=pages_per_hour(pages_read, time_spent),
        submission_date=day.isoformat(),
        session_timestamp=session_timestamp(day, today),
        notes=notes,
    )
    [submission_id] = submissions_repo.insert_submissions(user_id, [new], was_premium=tier != "free")
    users.add_pages_read(user_id, pages_read)
    subscriptions.track_usage(user_id, "submission")

    logger.info("submissions.created", user_id=user_id, pages=pages_read, minutes=time_spent)
    return SubmissionRecord(
        id=submission_id,
        user_id=user_id,
        book_id=book_id,
        pages_read=pages_read,
        time_spent=time_spent,
        reading_speed=new.reading_speed,
        submission_date=new.submission_date,
        session_timestamp=new.session_timestamp,
        was_premium=tier != "free",
        notes=notes,
        created_at=datetime.now(timezone.utc).isoformat(),
    )


def distribute_evenly(
    start: date, end: date, total_pages: int, total_time: int
) -> list[DailyValue]:
    """Spread totals over each day from start to end.

    Integer division per day; the remainder goes one unit at a time to the
    earliest days.

    Raises:
        ValidationError: If end is before start
    """
    days = (end - start).days + 1
    if days <= 0:
        raise ValidationError("End date must be after start date", field="date")

    pages_each, pages_rest = divmod(total_pages, days)
    time_each, time_rest = divmod(total_time, days)
    return [
        DailyValue(
            date=start + timedelta(days=i),
            pages=pages_each + (1 if i < pages_rest else 0),
            time=time_each + (1 if i < time_rest else 0),
        )
        for i in range(days)
    ]


def validate_bulk(daily_values: list[DailyValue]) -> None:
    """Check bulk limits.

    Raises:
        ValidationError: Naming the first limit broken
    """
    if not daily_values:
        raise ValidationError("At least one day is required", field="date")

    dates = sorted(d.date for d in daily_values)
    span = (dates[-1] - dates[0]).days + 1
    if span > MAX_BULK_DAYS or len(daily_values) > MAX_BULK_DAYS:
        raise ValidationError(f"Maximum {MAX_BULK_DAYS} days for bulk submission", field="date")
    if dates[-1] > datetime.now(timezone.utc).date():
        raise ValidationError("Submission date cannot be in the future", field="date")

    enabled = [d for d in daily_values if d.enabled]
    total_pages = sum(d.pages for d in enabled)
    total_time = sum(d.time for d in enabled)
    if total_pages < 1:
        raise ValidationError("Total pages is required", field="total_pages")
    if total_pages > MAX_BULK_PAGES:
        raise ValidationError(
            f"Maximum {MAX_BULK_PAGES} pages for bulk submission", field="total_pages"
        )
    if total_time < 1:
        raise ValidationError("Total time is required", field="total_time")
    if total_time > MAX_BULK_MINUTES:
        raise ValidationError(
            f"Maximum {MAX_BULK_MINUTES // 60} hours for bulk submission", field="total_time"
        )
    if any(d.pages > MAX_DAILY_PAGES or d.time > MAX_DAILY_MINUTES for d in enabled):
        raise ValidationError(
            f"Daily limits: {MAX_DAILY_PAGES} pages, {MAX_DAILY_MINUTES} minutes", field="daily"
        )


def submit_bulk(
    user_id: str,
    tier: str,
    book_id: str,
    daily_values: list[DailyValue],
) -> list[str]:
    """Record several days at once.

    Disabled days and days with zero pages or minutes are skipped. All
    rows are inserted in one transaction.

    Returns:
        IDs of the inserted submissions

    Raises:
        ValidationError: On bulk limit violations, or when no day has both
            pages and minutes
        BookNotAvailableError: If the book is missing or unapproved
        LimitExceededError: If the rows would exceed the monthly quota
    """
    validate_bulk(daily_values)
    book = _require_book(book_id)

    rows = [
        NewSubmission(
            book_id=book_id,
            pages_read=d.pages,
            time_spent=d.time,
            reading_speed=pages_per_hour(d.pages, d.time),
            submission_date=d.date.isoformat(),
            session_timestamp=f"{d.date.isoformat()}T12:00:00.000Z",
            notes=f"Bulk submission for {book.title}",
        )
        for d in daily_values
        if d.enabled and d.pages > 0 and d.time > 0
    ]
    if not rows:
        raise ValidationError("At least one day needs both pages and time", field="daily")

    check = subscriptions.check_user_limits(user_id, tier, "submission")
    if check.limit is not None and (check.current or 0) + len(rows) > check.limit:
        raise subscriptions.LimitExceededError(
            "submission",
            check.reason or f"Monthly limit of {check.limit} reading submissions reached",
        )

    ids = submissions_repo.insert_submissions(user_id, rows, was_premium=tier != "free")
    total_pages = sum(r.pages_read for r in rows)
    users.add_pages_read(user_id, total_pages)
    subscriptions.track_usage(user_id, "submission", amount=len(rows))

    logger.info("submissions.bulk_created", user_id=user_id, days=len(rows), pages=total_pages)
    return ids


def list_history(user_id: str, limit: int = 20, offset: int = 0) -> list[SubmissionRecord]:
    return submissions_repo.list_user_submissions(user_id, limit=limit, offset=offset)


def week_start(today: date) -> date:
    return today - timedelta(days=today.weekday())


def dashboard_progress(
    user_id: str,
    start: date,
    end: date,
    period: str = "week",
    today: date | None = None,
) -> dict[str, Any]:
    """Per-day pages for one reader plus this week's pages against the goal."""
    today = today or datetime.now(timezone.utc).date()
    chart, totals = build_chart([user_id], start, end, period)
    for row in chart:
        row["pages"] = row.pop(user_id)

    monday = week_start(today)
    _, week_totals = build_chart([user_id], monday, today, "week")
    goal = load_app_config().goals.weekly_pages_default

    return {
        "chart_data": chart,
        "total_pages": totals[user_id],
        "weekly_pages": week_totals[user_id],
        "weekly_goal": goal,
        "goal_progress": round(min(week_totals[user_id] / goal * 100, 100), 1) if goal else 0,
        "period": period,
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
    }
