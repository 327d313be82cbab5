"""Leaderboard aggregation query.

One SQL statement groups reading submissions by user inside a date window,
drops free-tier and opted-out users, and ranks by pages then time.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from readspeed.db.database import get_db

logger = structlog.get_logger(__name__)

# privacy_settings JSON booleans come back from json_extract as 0/1;
# older rows may hold the string 'false'.
_OPTED_OUT = "IN (0, 'false')"

LEADERBOARD_SQL = f"""
WITH user_stats AS (
    SELECT user_id,
           SUM(pages_read) AS total_pages,
           SUM(time_spent) AS total_time,
           COUNT(*) AS submission_count,
           ROUND(AVG(reading_speed), 1) AS avg_speed
    FROM reading_submissions
    WHERE submission_date BETWEEN :start_date AND :end_date
    GROUP BY user_id
    HAVING SUM(pages_read) > 0
),
eligible AS (
    SELECT s.*,
           p.subscription_tier,
           CASE WHEN COALESCE(json_extract(p.privacy_settings, '$.profile.showFullName'), 1) {_OPTED_OUT}
                THEN NULL ELSE p.full_name END AS full_name,
           CASE WHEN COALESCE(json_extract(p.privacy_settings, '$.profile.showAvatar'), 1) {_OPTED_OUT}
                THEN NULL ELSE p.avatar_url END AS avatar_url
    FROM user_stats s
    JOIN profiles p ON p.id = s.user_id
    WHERE p.subscription_tier != 'free'
      AND p.is_active = 1
      AND COALESCE(json_extract(p.privacy_settings, '$.leaderboard.showOnLeaderboard'), 1)
          NOT {_OPTED_OUT}
)
SELECT ROW_NUMBER() OVER (ORDER BY total_pages DESC, total_time DESC, user_id) AS rank,
       user_id,
       full_name,
       avatar_url,
       COALESCE(full_name, 'Reader ' || substr(user_id, 1, 8)) AS display_name,
       subscription_tier,
       total_pages,
       total_time,
       submission_count,
       avg_speed
FROM eligible
ORDER BY rank
"""


@dataclass
class LeaderboardRow:
    """One ranked reader."""

    rank: int
    user_id: str
    full_name: str | None
    avatar_url: str | None
    display_name: str
    subscription_tier: str
    total_pages: int
    total_time: int
    submission_count: int
    avg_speed: float | None


def fetch_ranked_readers(start_date: str, end_date: str) -> list[LeaderboardRow]:
    """Rank every eligible reader with pages in [start_date, end_date].

    Args:
        start_date: First submission_date included (YYYY-MM-DD)
        end_date: Last submission_date included (YYYY-MM-DD)

    Returns:
        Rows ordered by rank, ranks 1..N
    """
    with get_db() as conn:
        rows = conn.execute(
            LEADERBOARD_SQL, {"start_date": start_date, "end_date": end_date}
        ).fetchall()
    logger.debug("leaderboard.fetched", start=start_date, end=end_date, count=len(rows))
    return [LeaderboardRow(**dict(r)) for r in rows]
