"""Reading assessment endpoints."""

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status

from readspeed.core import assessments
from readspeed.db.assessments_repository import AssessmentTextRecord
from readspeed.web.deps import CurrentUser, get_current_user
from readspeed.web.schemas import (
    AssessmentListResponse,
    AssessmentResponse,
    AssessmentResultCreate,
    AssessmentResultResponse,
)

router = APIRouter(prefix="/api/assessments", tags=["assessments"])


def _not_found(assessment_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Assessment '{assessment_id}' not found",
    )


def _public(text: AssessmentTextRecord) -> AssessmentResponse:
    """Assessment without the correct answers."""
    response = AssessmentResponse.model_validate(text)
    response.questions = [
        {k: v for k, v in q.items() if k != "correct_answer"} for q in text.questions
    ]
    return response


@router.get("", response_model=AssessmentListResponse)
async def list_assessments(
    limit: int = Query(default=5, ge=1, le=50),
    mode: Literal["weighted", "all"] = "weighted",
    current: CurrentUser = Depends(get_current_user),
) -> AssessmentListResponse:
    """Assessments for the caller, least-taken first in weighted mode."""
    selection = assessments.select_assessments(current.id, limit=limit, mode=mode)
    return AssessmentListResponse(
        assessments=[_public(t) for t in selection.assessments],
        total_available=selection.total_available,
        mode=selection.mode,
    )


@router.get("/results", response_model=list[AssessmentResultResponse])
async def list_results(
    limit: int = Query(default=10, ge=1, le=100),
    current: CurrentUser = Depends(get_current_user),
) -> list[AssessmentResultResponse]:
    results = assessments.recent_results(current.id, limit=limit)
    return [AssessmentResultResponse.model_validate(r) for r in results]


@router.post(
    "/results",
    response_model=AssessmentResultResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_result(
    body: AssessmentResultCreate,
    current: CurrentUser = Depends(get_current_user),
) -> AssessmentResultResponse:
    """Store an attempt with its percentile.

    Without client-side wpm and comprehension the attempt is graded here.
    """
    try:
        if body.wpm is None or body.comprehension_percentage is None:
            result = assessments.grade_and_submit(
                current.id, body.assessment_id, body.time_taken, body.answers
            )
        else:
            result = assessments.submit_result(current.id, body.model_dump())
    except assessments.AssessmentNotFoundError:
        raise _not_found(body.assessment_id)
    return AssessmentResultResponse.model_validate(result)


@router.get("/{assessment_id}", response_model=AssessmentResponse)
async def get_assessment(
    assessment_id: str,
    _: CurrentUser = Depends(get_current_user),
) -> AssessmentResponse:
    try:
        text = assessments.get_assessment(assessment_id)
    except assessments.AssessmentNotFoundError:
        raise _not_found(assessment_id)
    if not text.active:
        raise _not_found(assessment_id)
    return _public(text)
