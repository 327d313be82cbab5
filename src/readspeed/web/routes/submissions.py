"""Reading log endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from readspeed.core import reading
from readspeed.utils.validators import ValidationError
from readspeed.web.deps import CurrentUser, get_current_user
from readspeed.web.schemas import (
    BulkSubmissionCreate,
    BulkSubmissionResponse,
    SubmissionCreate,
    SubmissionResponse,
)

router = APIRouter(prefix="/api/submissions", tags=["submissions"])


def _book_unavailable(book_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Book '{book_id}' not found or not approved",
    )


@router.post("", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def create_submission(
    body: SubmissionCreate,
    current: CurrentUser = Depends(get_current_user),
) -> SubmissionResponse:
    """Log one reading session (pages and minutes)."""
    try:
        submission = reading.submit_reading(
            current.id,
            current.tier,
            body.book_id,
            body.pages_read,
            body.time_spent,
            submission_date=body.submission_date,
            notes=body.notes,
        )
    except reading.BookNotAvailableError:
        raise _book_unavailable(body.book_id)
    return SubmissionResponse.model_validate(submission)


@router.post(
    "/bulk",
    response_model=BulkSubmissionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_bulk_submission(
    body: BulkSubmissionCreate,
    current: CurrentUser = Depends(get_current_user),
) -> BulkSubmissionResponse:
    """Log up to seven days at once.

    Send explicit daily_values, or a date range with totals that are split
    evenly across the days.
    """
    if body.daily_values:
        daily = [
            reading.DailyValue(date=d.date, pages=d.pages, time=d.time, enabled=d.enabled)
            for d in body.daily_values
        ]
    elif body.start_date and body.end_date:
        daily = reading.distribute_evenly(
            body.start_date,
            body.end_date,
            body.total_pages or 0,
            body.total_time or 0,
        )
    else:
        raise ValidationError("Provide daily_values or a start and end date")

    try:
        ids = reading.submit_bulk(current.id, current.tier, body.book_id, daily)
    except reading.BookNotAvailableError:
        raise _book_unavailable(body.book_id)
    return BulkSubmissionResponse(submission_ids=ids, count=len(ids))


@router.get("", response_model=list[SubmissionResponse])
async def list_submissions(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    current: CurrentUser = Depends(get_current_user),
) -> list[SubmissionResponse]:
    """The caller's reading history, newest first."""
    history = reading.list_history(current.id, limit=limit, offset=offset)
    return [SubmissionResponse.model_validate(s) for s in history]
