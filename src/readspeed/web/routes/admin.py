"""Admin endpoints.

Every route requires the admin role. Mutations are written to the admin
activity log.
"""

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status

from readspeed.core import admin, assessments, books, exercises, feature_flags, subscriptions
from readspeed.db import books_repository as books_repo
from readspeed.db import exercises_repository as exercises_repo
from readspeed.db import platform_repository as platform
from readspeed.web.deps import CurrentUser, require_admin
from readspeed.web.schemas import (
    ActivityLogResponse,
    AdminUserListResponse,
    AdminUserUpdate,
    AssessmentCreate,
    AssessmentResponse,
    AssessmentUpdate,
    BookModeration,
    BookResponse,
    BookUpdate,
    ExerciseCreate,
    ExerciseResponse,
    ExerciseTextCreate,
    ExerciseTextResponse,
    ExerciseUpdate,
    FeatureFlagCreate,
    FeatureFlagResponse,
    FeatureFlagUpdate,
    ProfileResponse,
    SubscriptionLimitsResponse,
    SubscriptionLimitsUpdate,
    SubscriptionPlanResponse,
    SubscriptionPlanUpsert,
)

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _not_found(kind: str, entity_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"{kind} '{entity_id}' not found",
    )


# =============================================================================
# USERS & ACTIVITY
# =============================================================================


@router.get("/users", response_model=AdminUserListResponse)
async def list_users(
    search: str | None = None,
    role: str | None = None,
    subscription_tier: str | None = None,
    sort_by: str = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    _: CurrentUser = Depends(require_admin),
) -> AdminUserListResponse:
    profiles, total = admin.list_users(
        search=search,
        role=role,
        subscription_tier=subscription_tier,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )
    return AdminUserListResponse(
        users=[ProfileResponse.model_validate(p) for p in profiles],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.patch("/users/{user_id}", response_model=ProfileResponse)
async def update_user(
    user_id: str,
    body: AdminUserUpdate,
    current: CurrentUser = Depends(require_admin),
) -> ProfileResponse:
    """Change a user's role or subscription tier."""
    try:
        profile = admin.update_user(
            current.id, user_id, role=body.role, subscription_tier=body.subscription_tier
        )
    except admin.UserNotFoundError:
        raise _not_found("User", user_id)
    return ProfileResponse.model_validate(profile)


@router.get("/activity", response_model=list[ActivityLogResponse])
async def list_activity(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    _: CurrentUser = Depends(require_admin),
) -> list[ActivityLogResponse]:
    return [
        ActivityLogResponse.model_validate(a)
        for a in admin.recent_activity(limit=limit, offset=offset)
    ]


# =============================================================================
# EXERCISES
# =============================================================================


@router.get("/exercises", response_model=list[ExerciseResponse])
async def list_exercises(_: CurrentUser = Depends(require_admin)) -> list[ExerciseResponse]:
    """All exercises, inactive ones included."""
    return [
        ExerciseResponse.model_validate(e)
        for e in exercises_repo.list_exercises(include_inactive=True)
    ]


@router.post("/exercises", response_model=ExerciseResponse, status_code=status.HTTP_201_CREATED)
async def create_exercise(
    body: ExerciseCreate,
    current: CurrentUser = Depends(require_admin),
) -> ExerciseResponse:
    exercise = exercises.create_exercise(body.model_dump())
    admin.log_admin_action(
        current.id, "create_exercise", "exercise", exercise.id, {"title": exercise.title}
    )
    return ExerciseResponse.model_validate(exercise)


@router.put("/exercises/{exercise_id}", response_model=ExerciseResponse)
async def update_exercise(
    exercise_id: str,
    body: ExerciseUpdate,
    current: CurrentUser = Depends(require_admin),
) -> ExerciseResponse:
    changes = body.model_dump(exclude_unset=True)
    try:
        exercise = exercises.update_exercise(exercise_id, changes)
    except exercises.ExerciseNotFoundError:
        raise _not_found("Exercise", exercise_id)
    admin.log_admin_action(
        current.id, "update_exercise", "exercise", exercise_id, {"fields": sorted(changes)}
    )
    return ExerciseResponse.model_validate(exercise)


@router.delete("/exercises/{exercise_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exercise(
    exercise_id: str,
    current: CurrentUser = Depends(require_admin),
) -> None:
    try:
        exercises.delete_exercise(exercise_id)
    except exercises.ExerciseNotFoundError:
        raise _not_found("Exercise", exercise_id)
    admin.log_admin_action(current.id, "delete_exercise", "exercise", exercise_id)


@router.get("/exercise-texts", response_model=list[ExerciseTextResponse])
async def list_exercise_texts(
    exercise_id: str | None = None,
    _: CurrentUser = Depends(require_admin),
) -> list[ExerciseTextResponse]:
    return [
        ExerciseTextResponse.model_validate(t)
        for t in exercises_repo.list_exercise_texts(exercise_id)
    ]


@router.post(
    "/exercise-texts",
    response_model=ExerciseTextResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_exercise_text(
    body: ExerciseTextCreate,
    current: CurrentUser = Depends(require_admin),
) -> ExerciseTextResponse:
    try:
        text = exercises.add_exercise_text(
            body.text_content,
            exercise_id=body.exercise_id,
            title=body.title,
            difficulty_level=body.difficulty_level,
            book_id=body.book_id,
            created_by=current.id,
        )
    except exercises.ExerciseNotFoundError:
        raise _not_found("Exercise", body.exercise_id or "")
    admin.log_admin_action(
        current.id, "create_exercise_text", "exercise_text", text.id, {"words": text.word_count}
    )
    return ExerciseTextResponse.model_validate(text)


@router.delete("/exercise-texts/{text_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exercise_text(
    text_id: str,
    current: CurrentUser = Depends(require_admin),
) -> None:
    if not exercises_repo.delete_exercise_text(text_id):
        raise _not_found("Exercise text", text_id)
    admin.log_admin_action(current.id, "delete_exercise_text", "exercise_text", text_id)


# =============================================================================
# ASSESSMENTS
# =============================================================================


@router.get("/assessments", response_model=list[AssessmentResponse])
async def list_assessments(_: CurrentUser = Depends(require_admin)) -> list[AssessmentResponse]:
    return [AssessmentResponse.model_validate(t) for t in assessments.list_all()]


@router.post(
    "/assessments",
    response_model=AssessmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_assessment(
    body: AssessmentCreate,
    current: CurrentUser = Depends(require_admin),
) -> AssessmentResponse:
    text = assessments.create_assessment(body.model_dump(), created_by=current.id)
    admin.log_admin_action(
        current.id, "create_assessment", "assessment", text.id, {"title": text.title}
    )
    return AssessmentResponse.model_validate(text)


@router.put("/assessments/{assessment_id}", response_model=AssessmentResponse)
async def update_assessment(
    assessment_id: str,
    body: AssessmentUpdate,
    current: CurrentUser = Depends(require_admin),
) -> AssessmentResponse:
    changes = body.model_dump(exclude_unset=True)
    try:
        text = assessments.update_assessment(assessment_id, changes)
    except assessments.AssessmentNotFoundError:
        raise _not_found("Assessment", assessment_id)
    admin.log_admin_action(
        current.id, "update_assessment", "assessment", assessment_id, {"fields": sorted(changes)}
    )
    return AssessmentResponse.model_validate(text)


@router.delete("/assessments/{assessment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assessment(
    assessment_id: str,
    current: CurrentUser = Depends(require_admin),
) -> None:
    try:
        assessments.delete_assessment(assessment_id)
    except assessments.AssessmentNotFoundError:
        raise _not_found("Assessment", assessment_id)
    admin.log_admin_action(current.id, "delete_assessment", "assessment", assessment_id)


# =============================================================================
# BOOKS
# =============================================================================


@router.get("/books", response_model=list[BookResponse])
async def list_books(
    status_filter: Literal["pending", "approved", "rejected", "merged"] | None = Query(
        default="pending", alias="status"
    ),
    q: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    _: CurrentUser = Depends(require_admin),
) -> list[BookResponse]:
    """Books for moderation, pending ones by default."""
    found = books_repo.search_books(q, status=status_filter, limit=limit, offset=offset)
    return [BookResponse.model_validate(b) for b in found]


@router.put("/books/{book_id}", response_model=BookResponse)
async def update_book(
    book_id: str,
    body: BookUpdate,
    current: CurrentUser = Depends(require_admin),
) -> BookResponse:
    changes = body.model_dump(exclude_unset=True)
    book = books_repo.update_book(book_id, **changes)
    if book is None:
        raise _not_found("Book", book_id)
    admin.log_admin_action(current.id, "update_book", "book", book_id, {"fields": sorted(changes)})
    return BookResponse.model_validate(book)


@router.post("/books/{book_id}/moderate", response_model=BookResponse)
async def moderate_book(
    book_id: str,
    body: BookModeration,
    current: CurrentUser = Depends(require_admin),
) -> BookResponse:
    """Approve or reject a pending book."""
    try:
        book = books.moderate_book(book_id, current.id, body.approve, body.reason)
    except books.BookNotFoundError:
        raise _not_found("Book", book_id)
    admin.log_admin_action(
        current.id,
        "approve_book" if body.approve else "reject_book",
        "book",
        book_id,
        {"reason": body.reason} if body.reason else None,
    )
    return BookResponse.model_validate(book)


@router.delete("/books/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_book(
    book_id: str,
    current: CurrentUser = Depends(require_admin),
) -> None:
    if not books_repo.delete_book(book_id):
        raise _not_found("Book", book_id)
    admin.log_admin_action(current.id, "delete_book", "book", book_id)


# =============================================================================
# FEATURE FLAGS
# =============================================================================


@router.get("/feature-flags", response_model=list[FeatureFlagResponse])
async def list_flags(_: CurrentUser = Depends(require_admin)) -> list[FeatureFlagResponse]:
    return [FeatureFlagResponse.model_validate(f) for f in feature_flags.list_flags()]


@router.post(
    "/feature-flags",
    response_model=FeatureFlagResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_flag(
    body: FeatureFlagCreate,
    current: CurrentUser = Depends(require_admin),
) -> FeatureFlagResponse:
    try:
        flag = feature_flags.create_flag(
            body.name,
            description=body.description,
            enabled=body.enabled,
            requires_subscription=body.requires_subscription,
            metadata=body.metadata,
        )
    except feature_flags.FeatureFlagError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    admin.log_admin_action(current.id, "create_feature_flag", "feature_flag", flag.id, {"name": flag.name})
    return FeatureFlagResponse.model_validate(flag)


@router.put("/feature-flags/{flag_id}", response_model=FeatureFlagResponse)
async def update_flag(
    flag_id: str,
    body: FeatureFlagUpdate,
    current: CurrentUser = Depends(require_admin),
) -> FeatureFlagResponse:
    changes = body.model_dump(exclude_unset=True)
    flag = feature_flags.update_flag(flag_id, **changes)
    if flag is None:
        raise _not_found("Feature flag", flag_id)
    admin.log_admin_action(current.id, "update_feature_flag", "feature_flag", flag_id, changes)
    return FeatureFlagResponse.model_validate(flag)


@router.delete("/feature-flags/{flag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_flag(
    flag_id: str,
    current: CurrentUser = Depends(require_admin),
) -> None:
    if not feature_flags.delete_flag(flag_id):
        raise _not_found("Feature flag", flag_id)
    admin.log_admin_action(current.id, "delete_feature_flag", "feature_flag", flag_id)


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================


@router.get("/subscription-limits", response_model=list[SubscriptionLimitsResponse])
async def list_limits(_: CurrentUser = Depends(require_admin)) -> list[SubscriptionLimitsResponse]:
    return [SubscriptionLimitsResponse.model_validate(lim) for lim in platform.list_limits()]


@router.put("/subscription-limits/{tier}", response_model=SubscriptionLimitsResponse)
async def update_limits(
    tier: str,
    body: SubscriptionLimitsUpdate,
    current: CurrentUser = Depends(require_admin),
) -> SubscriptionLimitsResponse:
    """Change a tier's quotas. Explicit nulls make a quota unlimited."""
    changes = body.model_dump(exclude_unset=True)
    limits = subscriptions.update_tier_limits(tier, **changes)
    admin.log_admin_action(current.id, "update_subscription_limits", "subscription_limits", tier, changes)
    return SubscriptionLimitsResponse.model_validate(limits)


@router.get("/subscription-plans", response_model=list[SubscriptionPlanResponse])
async def list_plans(_: CurrentUser = Depends(require_admin)) -> list[SubscriptionPlanResponse]:
    return [
        SubscriptionPlanResponse.model_validate(p)
        for p in platform.list_plans(active_only=False)
    ]


@router.put("/subscription-plans/{name}", response_model=SubscriptionPlanResponse)
async def save_plan(
    name: str,
    body: SubscriptionPlanUpsert,
    current: CurrentUser = Depends(require_admin),
) -> SubscriptionPlanResponse:
    data = body.model_dump()
    plan = subscriptions.save_plan(name, data.pop("display_name"), **data)
    admin.log_admin_action(current.id, "save_subscription_plan", "subscription_plan", plan.id, {"name": name})
    return SubscriptionPlanResponse.model_validate(plan)
