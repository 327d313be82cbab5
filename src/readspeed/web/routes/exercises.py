"""Exercise catalog, results and statistics endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from readspeed.config.app_config import load_app_config
from readspeed.core import exercises, subscriptions
from readspeed.db import exercises_repository as repo
from readspeed.web.deps import CurrentUser, get_current_user
from readspeed.web.schemas import (
    ExerciseListResponse,
    ExerciseResponse,
    ExerciseResultCreate,
    ExerciseResultResponse,
    ExerciseResultSubmitResponse,
    ExerciseStatsResponse,
    ExerciseTextCreate,
    ExerciseTextResponse,
)


def require_exercises_enabled() -> None:
    if not load_app_config().features.exercises_enabled:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Exercises are not available",
        )


router = APIRouter(
    prefix="/api/exercises",
    tags=["exercises"],
    dependencies=[Depends(require_exercises_enabled)],
)


def _not_found(exercise_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Exercise '{exercise_id}' not found",
    )


@router.get("", response_model=ExerciseListResponse)
async def list_exercises(current: CurrentUser = Depends(get_current_user)) -> ExerciseListResponse:
    """Active exercises available to the caller's tier."""
    available = exercises.list_for_user(current.tier)
    return ExerciseListResponse(
        exercises=[ExerciseResponse.model_validate(e) for e in available],
        count=len(available),
    )


@router.get("/results", response_model=list[ExerciseResultResponse])
async def list_results(
    exercise_type: str | None = None,
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    current: CurrentUser = Depends(get_current_user),
) -> list[ExerciseResultResponse]:
    results = exercises.list_results(current.id, exercise_type, limit=limit, offset=offset)
    return [ExerciseResultResponse.model_validate(r) for r in results]


@router.post(
    "/results",
    response_model=ExerciseResultSubmitResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_result(
    body: ExerciseResultCreate,
    current: CurrentUser = Depends(get_current_user),
) -> ExerciseResultSubmitResponse:
    """Store a finished exercise and update the caller's stats."""
    try:
        stored, stats = exercises.submit_result(
            current.id,
            current.tier,
            exercises.ResultInput(**body.model_dump()),
        )
    except exercises.ExerciseNotFoundError:
        raise _not_found(body.exercise_id)
    return ExerciseResultSubmitResponse(
        result=ExerciseResultResponse.model_validate(stored),
        stats=ExerciseStatsResponse.model_validate(stats) if stats else None,
    )


@router.get("/stats", response_model=list[ExerciseStatsResponse])
async def list_stats(current: CurrentUser = Depends(get_current_user)) -> list[ExerciseStatsResponse]:
    return [ExerciseStatsResponse.model_validate(s) for s in exercises.list_stats(current.id)]


@router.get("/texts", response_model=list[ExerciseTextResponse])
async def list_texts(
    exercise_id: str | None = None,
    current: CurrentUser = Depends(get_current_user),
) -> list[ExerciseTextResponse]:
    """Shared passages plus the caller's own custom texts."""
    texts = repo.list_exercise_texts(exercise_id)
    return [
        ExerciseTextResponse.model_validate(t)
        for t in texts
        if not t.is_custom or t.created_by == current.id
    ]


@router.post(
    "/texts",
    response_model=ExerciseTextResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_custom_text(
    body: ExerciseTextCreate,
    current: CurrentUser = Depends(get_current_user),
) -> ExerciseTextResponse:
    """Save a custom practice passage, counted against the monthly quota."""
    text = exercises.save_custom_text(current.id, current.tier, body.text_content, body.title)
    return ExerciseTextResponse.model_validate(text)


@router.get("/{exercise_id}", response_model=ExerciseResponse)
async def get_exercise(
    exercise_id: str,
    current: CurrentUser = Depends(get_current_user),
) -> ExerciseResponse:
    try:
        exercise = exercises.get_exercise(exercise_id)
    except exercises.ExerciseNotFoundError:
        raise _not_found(exercise_id)
    if not exercise.is_active:
        raise _not_found(exercise_id)
    if not subscriptions.tier_at_least(current.tier, exercise.min_subscription_tier):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"This exercise requires the {exercise.min_subscription_tier} plan",
        )
    return ExerciseResponse.model_validate(exercise)
