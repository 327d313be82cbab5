"""Leaderboard and progress comparison endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status

from readspeed.core import leaderboard, subscriptions
from readspeed.utils.validators import ValidationError
from readspeed.web.deps import CurrentUser, get_current_user
from readspeed.web.schemas import (
    ComparedUserResponse,
    LeaderboardEntry,
    LeaderboardRequest,
    LeaderboardResponse,
    ProgressRequest,
    ProgressResponse,
)

router = APIRouter(prefix="/api/leaderboard", tags=["leaderboard"])


@router.post("", response_model=LeaderboardResponse)
async def get_leaderboard(
    body: LeaderboardRequest,
    current: CurrentUser = Depends(get_current_user),
) -> LeaderboardResponse:
    """Readers ranked by pages read in the window (daily, weekly or monthly)."""
    subscriptions.enforce_limit(current.id, current.tier, "leaderboard_view")
    try:
        board = leaderboard.get_leaderboard(
            body.timeRange, limit=body.limit, current_user_id=current.id
        )
    except leaderboard.InvalidTimeRangeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return LeaderboardResponse(
        leaderboard=[LeaderboardEntry.model_validate(e) for e in board.entries],
        podium=[LeaderboardEntry.model_validate(e) for e in board.podium],
        userRank=LeaderboardEntry.model_validate(board.user_rank) if board.user_rank else None,
        timeRange=board.time_range,
        lastUpdated=board.last_updated,
    )


@router.post("/progress", response_model=ProgressResponse)
async def compare_progress(
    body: ProgressRequest,
    current: CurrentUser = Depends(get_current_user),
) -> ProgressResponse:
    """Daily pages of the caller next to up to four other readers."""
    default_start, default_end = leaderboard.default_period_range(body.period)
    start = body.start_date or default_start
    end = body.end_date or default_end
    if end < start:
        raise ValidationError("End date must be after start date", field="end_date")

    try:
        comparison = leaderboard.build_progress_comparison(
            current.id, body.user_ids, start, end, body.period
        )
    except leaderboard.ProgressAccessError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    return ProgressResponse(
        users=[ComparedUserResponse.model_validate(u) for u in comparison.users],
        chart_data=comparison.chart_data,
        period=comparison.period,
        start_date=comparison.start_date,
        end_date=comparison.end_date,
    )
