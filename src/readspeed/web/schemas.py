"""Pydantic schemas for the ReadSpeed API.

Request bodies and response models. Response models read repository
records directly through from_attributes.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Literal

from pydantic import BaseModel, Field


# =============================================================================
# COMMON
# =============================================================================


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


class HealthResponse(BaseModel):
    """Response for health check."""

    status: str
    version: str
    timestamp: str
    uptime: float
    database: str


# =============================================================================
# AUTH SCHEMAS
# =============================================================================


class CredentialsRequest(BaseModel):
    """Email and password for sign-up and sign-in."""

    email: str = Field(..., max_length=320)
    password: str = Field(..., max_length=200)


class EmailRequest(BaseModel):
    """Request carrying only an email address."""

    email: str = Field(..., max_length=320)


class OtpVerifyRequest(BaseModel):
    email: str = Field(..., max_length=320)
    code: str = Field(..., min_length=1, max_length=12)


class PasswordResetConfirm(BaseModel):
    email: str = Field(..., max_length=320)
    code: str = Field(..., min_length=1, max_length=12)
    new_password: str = Field(..., max_length=200)


class PasswordUpdateRequest(BaseModel):
    password: str = Field(..., max_length=200)


class AuthResponse(BaseModel):
    """Signed-in user, or a pending confirmation."""

    user_id: str
    email: str
    expires_at: str | None = None
    requires_confirmation: bool = False


# =============================================================================
# PROFILE SCHEMAS
# =============================================================================


class ProfileResponse(BaseModel):
    """Response for a profile."""

    id: str
    email: str | None = None
    full_name: str | None = None
    city: str | None = None
    avatar_url: str | None = None
    role: str
    subscription_tier: str
    subscription_status: str | None = None
    privacy_settings: dict[str, Any] = Field(default_factory=dict)
    total_pages_read: int = 0
    total_books_completed: int = 0
    is_active: bool = True
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class ProfileUpdate(BaseModel):
    """Fields a reader may change on their own profile."""

    full_name: str | None = Field(default=None, max_length=200)
    city: str | None = Field(default=None, max_length=200)
    avatar_url: str | None = Field(default=None, max_length=500)
    privacy_settings: dict[str, Any] | None = None


# =============================================================================
# BOOK SCHEMAS
# =============================================================================


class BookCreate(BaseModel):
    """Request body for adding a book."""

    title: str = Field(..., min_length=1, max_length=500)
    author: str = Field(..., min_length=1, max_length=300)
    total_pages: int | None = None
    isbn: str | None = Field(default=None, max_length=20)
    genre: str | None = Field(default=None, max_length=100)
    publication_year: int | None = None


class BookUpdate(BaseModel):
    """Admin edit of a book."""

    title: str | None = Field(default=None, max_length=500)
    author: str | None = Field(default=None, max_length=300)
    total_pages: int | None = None
    isbn: str | None = None
    genre: str | None = None
    publication_year: int | None = None
    status: Literal["pending", "approved", "rejected", "merged"] | None = None
    merged_with_id: str | None = None


class BookModeration(BaseModel):
    approve: bool
    reason: str | None = None


class BookResponse(BaseModel):
    """Response for a book."""

    id: str
    title: str
    author: str
    isbn: str | None = None
    cover_url: str | None = None
    total_pages: int | None = None
    genre: str | None = None
    publication_year: int | None = None
    status: str
    created_by: str | None = None
    rejection_reason: str | None = None
    created_at: str

    model_config = {"from_attributes": True}


class BookListResponse(BaseModel):
    """Response for a page of books."""

    books: list[BookResponse]
    count: int


class CoverUploadResponse(BaseModel):
    cover_url: str
    size: int


class ReviewRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    review_text: str | None = Field(default=None, max_length=5000)


class ReviewResponse(BaseModel):
    """Response for a book review."""

    id: str
    book_id: str
    user_id: str
    rating: int
    review_text: str | None = None
    is_edited: bool = False
    edited_at: str | None = None
    deleted_at: str | None = None
    can_recreate_after: str | None = None
    helpful_count: int = 0
    created_at: str

    model_config = {"from_attributes": True}


# =============================================================================
# SUBMISSION SCHEMAS
# =============================================================================


class SubmissionCreate(BaseModel):
    """A single reading session."""

    book_id: str
    pages_read: int
    time_spent: int = Field(..., description="Minutes")
    submission_date: dt.date | None = None
    notes: str | None = Field(default=None, max_length=2000)


class DailyValueInput(BaseModel):
    date: dt.date
    pages: int = 0
    time: int = 0
    enabled: bool = True


class BulkSubmissionCreate(BaseModel):
    """Several days for one book.

    Either daily_values, or start/end dates with totals to split evenly.
    """

    book_id: str
    daily_values: list[DailyValueInput] | None = None
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    total_pages: int | None = None
    total_time: int | None = None


class SubmissionResponse(BaseModel):
    """Response for a reading submission."""

    id: str
    book_id: str
    pages_read: int
    time_spent: int
    reading_speed: int | None = None
    submission_date: str
    session_timestamp: str
    was_premium: bool = False
    notes: str | None = None

    model_config = {"from_attributes": True}


class BulkSubmissionResponse(BaseModel):
    submission_ids: list[str]
    count: int


# =============================================================================
# EXERCISE SCHEMAS
# =============================================================================


class ExerciseResponse(BaseModel):
    """Response for an exercise definition."""

    id: str
    title: str
    type: str
    difficulty: str
    description: str
    instructions: str | None = None
    requires_subscription: bool = False
    min_subscription_tier: str = "free"
    tags: list[str] = Field(default_factory=list)
    config: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True

    model_config = {"from_attributes": True}


class ExerciseListResponse(BaseModel):
    exercises: list[ExerciseResponse]
    count: int


class ExerciseCreate(BaseModel):
    """Admin input for a new exercise."""

    title: str = Field(..., min_length=1, max_length=200)
    type: str = Field(..., min_length=1, max_length=50)
    difficulty: Literal["beginner", "intermediate", "advanced"]
    description: str = Field(..., min_length=1)
    instructions: str | None = None
    tags: list[str] = Field(default_factory=list)
    config: dict[str, Any] = Field(default_factory=dict)
    min_subscription_tier: Literal["free", "reader", "pro"] = "free"
    is_active: bool = True


class ExerciseUpdate(BaseModel):
    title: str | None = None
    difficulty: Literal["beginner", "intermediate", "advanced"] | None = None
    description: str | None = None
    instructions: str | None = None
    tags: list[str] | None = None
    config: dict[str, Any] | None = None
    min_subscription_tier: Literal["free", "reader", "pro"] | None = None
    is_active: bool | None = None


class ExerciseTextCreate(BaseModel):
    text_content: str = Field(..., min_length=1)
    title: str | None = Field(default=None, max_length=200)
    exercise_id: str | None = None
    difficulty_level: str | None = None
    book_id: str | None = None


class ExerciseTextResponse(BaseModel):
    """Response for an exercise passage."""

    id: str
    exercise_id: str | None = None
    book_id: str | None = None
    title: str | None = None
    text_content: str
    word_count: int
    difficulty_level: str | None = None
    is_custom: bool = False
    created_by: str | None = None
    created_at: str

    model_config = {"from_attributes": True}


class ExerciseResultCreate(BaseModel):
    """Values reported by a finished exercise."""

    exercise_id: str
    score: float | None = None
    accuracy_percentage: float | None = Field(default=None, ge=0, le=100)
    avg_response_time: float | None = None
    total_attempts: int | None = None
    correct_count: int | None = None
    wpm: int | None = None
    completion_time: int | None = None
    metadata: dict[str, Any] | None = None


class ExerciseResultResponse(BaseModel):
    """Response for a stored exercise result."""

    id: str
    exercise_id: str
    session_date: str
    score: float | None = None
    accuracy_percentage: float | None = None
    avg_response_time: float | None = None
    total_attempts: int | None = None
    correct_count: int | None = None
    wpm: int | None = None
    completion_time: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: str
    exercise_type: str | None = None
    exercise_title: str | None = None

    model_config = {"from_attributes": True}


class ExerciseStatsResponse(BaseModel):
    """Aggregated statistics for one exercise type."""

    exercise_type: str
    total_sessions: int
    total_time_spent: int
    best_score: float | None = None
    best_accuracy: float | None = None
    best_wpm: int | None = None
    average_score: float | None = None
    average_accuracy: float | None = None
    average_wpm: float | None = None
    last_session_at: str | None = None

    model_config = {"from_attributes": True}


class ExerciseResultSubmitResponse(BaseModel):
    result: ExerciseResultResponse
    stats: ExerciseStatsResponse | None = None


# =============================================================================
# ASSESSMENT SCHEMAS
# =============================================================================


class AssessmentQuestion(BaseModel):
    question: str
    options: list[str] = Field(default_factory=list)
    correct_answer: Any = None


class AssessmentResponse(BaseModel):
    """Assessment text as shown to a reader."""

    id: str
    title: str
    content: str
    word_count: int
    questions: list[dict[str, Any]] = Field(default_factory=list)
    difficulty_level: str | None = None
    category: str | None = None
    times_used: int = 0
    user_times_taken: int = 0

    model_config = {"from_attributes": True}


class AssessmentListResponse(BaseModel):
    assessments: list[AssessmentResponse]
    total_available: int
    mode: str


class AssessmentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    content: str = Field(..., min_length=1)
    questions: list[AssessmentQuestion] = Field(default_factory=list)
    difficulty_level: str | None = None
    category: str | None = None
    active: bool = True


class AssessmentUpdate(BaseModel):
    title: str | None = None
    content: str | None = None
    questions: list[AssessmentQuestion] | None = None
    difficulty_level: str | None = None
    category: str | None = None
    active: bool | None = None


class AssessmentResultCreate(BaseModel):
    """A finished assessment.

    When wpm or comprehension_percentage are omitted they are computed from
    the text's word count, time_taken and the answers.
    """

    assessment_id: str
    time_taken: int = Field(..., gt=0, description="Seconds")
    answers: list[Any]
    wpm: int | None = None
    comprehension_percentage: int | None = Field(default=None, ge=0, le=100)


class AssessmentResultResponse(BaseModel):
    """Response for an assessment attempt."""

    id: str
    assessment_id: str
    wpm: int
    comprehension_percentage: int | None = None
    time_taken: int
    percentile: int | None = None
    attempt_number: int
    created_at: str
    assessment_title: str | None = None

    model_config = {"from_attributes": True}


# =============================================================================
# LEADERBOARD SCHEMAS
# =============================================================================


class LeaderboardRequest(BaseModel):
    timeRange: str = "weekly"
    limit: int = Field(default=10, ge=1, le=100)


class LeaderboardEntry(BaseModel):
    """One ranked reader."""

    rank: int
    user_id: str
    display_name: str
    full_name: str | None = None
    avatar_url: str | None = None
    subscription_tier: str
    total_pages: int
    total_time: int
    submission_count: int
    avg_speed: float | None = None

    model_config = {"from_attributes": True}


class LeaderboardResponse(BaseModel):
    leaderboard: list[LeaderboardEntry]
    podium: list[LeaderboardEntry]
    userRank: LeaderboardEntry | None = None
    timeRange: str
    lastUpdated: str


class ProgressRequest(BaseModel):
    """Progress comparison between the caller and up to four others."""

    user_ids: list[str] = Field(..., min_length=1)
    period: Literal["week", "month", "year"] = "week"
    start_date: dt.date | None = None
    end_date: dt.date | None = None


class ComparedUserResponse(BaseModel):
    user_id: str
    display_name: str
    total_pages: int
    rank: int
    is_current_user: bool = False

    model_config = {"from_attributes": True}


class ProgressResponse(BaseModel):
    users: list[ComparedUserResponse]
    chart_data: list[dict[str, Any]]
    period: str
    start_date: str
    end_date: str


class DashboardProgressResponse(BaseModel):
    """A reader's own pages per day and weekly goal."""

    chart_data: list[dict[str, Any]]
    total_pages: int
    weekly_pages: int
    weekly_goal: int
    goal_progress: float
    period: str
    start_date: str
    end_date: str


# =============================================================================
# ADMIN SCHEMAS
# =============================================================================


class AdminUserUpdate(BaseModel):
    role: Literal["reader", "admin"] | None = None
    subscription_tier: Literal["free", "reader", "pro"] | None = None


class AdminUserListResponse(BaseModel):
    users: list[ProfileResponse]
    total: int
    limit: int
    offset: int


class FeatureFlagCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    enabled: bool = False
    requires_subscription: Literal["free", "reader", "pro"] = "free"
    metadata: dict[str, Any] = Field(default_factory=dict)


class FeatureFlagUpdate(BaseModel):
    description: str | None = None
    enabled: bool | None = None
    requires_subscription: Literal["free", "reader", "pro"] | None = None
    metadata: dict[str, Any] | None = None


class FeatureFlagResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    enabled: bool
    requires_subscription: str
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"from_attributes": True}


class SubscriptionLimitsUpdate(BaseModel):
    """Per-tier quotas. Explicit nulls mean unlimited."""

    max_submissions_per_month: int | None = None
    max_custom_texts: int | None = None
    max_exercises: int | None = None
    can_see_leaderboard: bool | None = None
    can_join_leaderboard: bool | None = None
    can_see_book_stats: bool | None = None
    can_export_data: bool | None = None


class SubscriptionLimitsResponse(BaseModel):
    tier: str
    max_submissions_per_month: int | None = None
    max_custom_texts: int | None = None
    max_exercises: int | None = None
    can_see_leaderboard: bool
    can_join_leaderboard: bool
    can_see_book_stats: bool
    can_export_data: bool

    model_config = {"from_attributes": True}


class SubscriptionPlanUpsert(BaseModel):
    display_name: str = Field(..., min_length=1)
    price_monthly: float | None = None
    price_yearly: float | None = None
    features: list[str] = Field(default_factory=list)
    limits: dict[str, Any] = Field(default_factory=dict)
    sort_order: int = 0
    active: bool = True


class SubscriptionPlanResponse(BaseModel):
    id: str
    name: str
    display_name: str
    price_monthly: float | None = None
    price_yearly: float | None = None
    features: list[str] = Field(default_factory=list)
    limits: dict[str, Any] = Field(default_factory=dict)
    sort_order: int = 0
    active: bool = True

    model_config = {"from_attributes": True}


class ActivityLogResponse(BaseModel):
    id: str
    admin_id: str | None = None
    action: str
    entity_type: str | None = None
    entity_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: str

    model_config = {"from_attributes": True}


class EnabledFeaturesResponse(BaseModel):
    tier: str
    features: list[str]
