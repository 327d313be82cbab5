"""Personal dashboard endpoint."""

from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, status

from readspeed.core import reading
from readspeed.core.leaderboard import default_period_range
from readspeed.utils.validators import ValidationError
from readspeed.web.deps import CurrentUser, get_current_user
from readspeed.web.schemas import DashboardProgressResponse

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/progress", response_model=DashboardProgressResponse)
async def get_progress(
    user_id: str | None = None,
    period: Literal["week", "month", "year"] = "week",
    start_date: date | None = None,
    end_date: date | None = None,
    current: CurrentUser = Depends(get_current_user),
) -> DashboardProgressResponse:
    """Pages per day for the caller, with this week's goal progress."""
    if user_id is not None and user_id != current.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view your own progress",
        )

    default_start, default_end = default_period_range(period)
    start = start_date or default_start
    end = end_date or default_end
    if end < start:
        raise ValidationError("End date must be after start date", field="end_date")

    return DashboardProgressResponse(**reading.dashboard_progress(current.id, start, end, period))
