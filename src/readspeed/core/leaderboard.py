"""Leaderboard ranking and progress comparison.

Ranking happens in SQL (see db/leaderboard_repository.py). This module
resolves time windows, picks out the caller's own rank and podium, and
builds per-day comparison charts for up to five readers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

import structlog

from readspeed.db import submissions_repository as submissions
from readspeed.db import users_repository as users
from readspeed.db.leaderboard_repository import LeaderboardRow, fetch_ranked_readers

logger = structlog.get_logger(__name__)

TIME_RANGES = ("daily", "weekly", "monthly")
MAX_COMPARED_USERS = 5
UNRANKED = 999
PODIUM_SIZE = 3


class InvalidTimeRangeError(Exception):
    """Raised for a time range outside TIME_RANGES."""

    def __init__(self, time_range: str):
        self.time_range = time_range
        super().__init__(
            f"Invalid time range '{time_range}'. Use one of: {', '.join(TIME_RANGES)}"
        )


class ProgressAccessError(Exception):
    """Raised when a comparison does not include the requesting user."""


@dataclass
class Leaderboard:
    """Ranked readers for one time window."""

    entries: list[LeaderboardRow]
    user_rank: LeaderboardRow | None
    time_range: str
    last_updated: str

    @property
    def podium(self) -> list[LeaderboardRow]:
        """Top three, only when at least three readers are ranked."""
        if len(self.entries) < PODIUM_SIZE:
            return []
        return self.entries[:PODIUM_SIZE]


def time_window(time_range: str, now: datetime | None = None) -> tuple[datetime, datetime]:
    """Start and end of a leaderboard window.

    daily starts today at 00:00, weekly on Monday at 00:00, monthly on the
    1st at 00:00. All windows end at now.

    Raises:
        InvalidTimeRangeError: For unknown ranges
    """
    now = now or datetime.now(timezone.utc)
    today = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)

    if time_range == "daily":
        start = today
    elif time_range == "weekly":
        start = today - timedelta(days=now.weekday())
    elif time_range == "monthly":
        start = today.replace(day=1)
    else:
        raise InvalidTimeRangeError(time_range)
    return start, now


def get_leaderboard(
    time_range: str,
    limit: int = 10,
    current_user_id: str | None = None,
    now: datetime | None = None,
) -> Leaderboard:
    """Build the leaderboard for a window.

    Args:
        time_range: daily, weekly or monthly
        limit: Entries to return
        current_user_id: Caller, whose own rank is returned when they are
            eligible (non-free tier and not opted out)
        now: Clock override for tests

    Raises:
        InvalidTimeRangeError: For unknown ranges
    """
    start, end = time_window(time_range, now)
    ranked = fetch_ranked_readers(start.date().isoformat(), end.date().isoformat())

    user_rank = None
    if current_user_id is not None:
        user_rank = next((r for r in ranked if r.user_id == current_user_id), None)

    logger.info(
        "leaderboard.built",
        time_range=time_range,
        ranked=len(ranked),
        has_user_rank=user_rank is not None,
    )
    return Leaderboard(
        entries=ranked[: max(limit, 0)],
        user_rank=user_rank,
        time_range=time_range,
        last_updated=(now or datetime.now(timezone.utc)).isoformat(),
    )


# =============================================================================
# PROGRESS CHARTS
# =============================================================================


def format_chart_date(day: date, period: str) -> str:
    """Axis label for a chart day: weekday for week, 'Mon D' for month, else 'Mon YYYY'."""
    if period == "week":
        return day.strftime("%a")
    if period == "month":
        return f"{day.strftime('%b')} {day.day}"
    return day.strftime("%b %Y")


def date_range(start: date, end: date) -> list[date]:
    """Every date from start to end inclusive."""
    if end < start:
        return []
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def default_period_range(period: str, today: date | None = None) -> tuple[date, date]:
    """Chart range for a period name: last 7 days, 30 days or 365 days."""
    today = today or datetime.now(timezone.utc).date()
    days = {"week": 7, "month": 30}.get(period, 365)
    return today - timedelta(days=days - 1), today


@dataclass
class ComparedUser:
    """Totals for one reader in a comparison."""

    user_id: str
    display_name: str
    total_pages: int
    rank: int
    is_current_user: bool = False


@dataclass
class ProgressComparison:
    """Per-day pages for a set of readers."""

    users: list[ComparedUser]
    chart_data: list[dict[str, Any]] = field(default_factory=list)
    period: str = "week"
    start_date: str = ""
    end_date: str = ""


def _display_name(user_id: str) -> str:
    profile = users.get_profile(user_id)
    if profile is not None and profile.full_name:
        return profile.full_name
    return f"Reader {user_id[:8]}"


def build_chart(
    user_ids: list[str], start: date, end: date, period: str
) -> tuple[list[dict[str, Any]], dict[str, int]]:
    """Per-day chart rows and per-user totals.

    Returns:
        (chart rows with date, formatted_date and one key per user id,
        totals by user id)
    """
    daily = submissions.daily_pages(user_ids, start.isoformat(), end.isoformat())
    chart: list[dict[str, Any]] = []
    for day in date_range(start, end):
        key = day.isoformat()
        row: dict[str, Any] = {"date": key, "formatted_date": format_chart_date(day, period)}
        for uid in user_ids:
            row[uid] = daily[uid].get(key, 0)
        chart.append(row)
    totals = {uid: sum(daily[uid].values()) for uid in user_ids}
    return chart, totals


def build_progress_comparison(
    current_user_id: str,
    user_ids: list[str],
    start: date,
    end: date,
    period: str = "week",
) -> ProgressComparison:
    """Compare daily pages between the caller and up to four other readers.

    Readers are ranked by total pages; readers with no pages get rank 999.
    The caller is always listed first.

    Raises:
        ProgressAccessError: If current_user_id is not in user_ids
    """
    if current_user_id not in user_ids:
        raise ProgressAccessError("You can only compare progress that includes yourself")

    ordered = [current_user_id] + [u for u in dict.fromkeys(user_ids) if u != current_user_id]
    ordered = ordered[:MAX_COMPARED_USERS]

    chart, totals = build_chart(ordered, start, end, period)

    with_pages = sorted((u for u in ordered if totals[u] > 0), key=lambda u: -totals[u])
    ranks = {uid: i + 1 for i, uid in enumerate(with_pages)}

    compared = [
        ComparedUser(
            user_id=uid,
            display_name=_display_name(uid),
            total_pages=totals[uid],
            rank=ranks.get(uid, UNRANKED),
            is_current_user=uid == current_user_id,
        )
        for uid in ordered
    ]
    compared.sort(key=lambda c: (not c.is_current_user, c.rank))

    return ProgressComparison(
        users=compared,
        chart_data=chart,
        period=period,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
    )
