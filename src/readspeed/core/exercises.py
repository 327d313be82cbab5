"""Exercise catalog, results and per-type statistics.

Submitting a result stores it and folds it into the user's stats row for
that exercise type: sessions are counted, time summed, bests kept and
averages updated as running means.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog

from readspeed.core import subscriptions
from readspeed.db import exercises_repository as repo
from readspeed.db.database import new_id, utc_now
from readspeed.db.exercises_repository import (
    ExerciseRecord,
    ExerciseResultRecord,
    ExerciseStatsRecord,
    ExerciseTextRecord,
)
from readspeed.utils.text_utils import count_words
from readspeed.utils.validators import ValidationError, require_fields

logger = structlog.get_logger(__name__)

DIFFICULTIES = ("beginner", "intermediate", "advanced")


class ExerciseNotFoundError(Exception):
    """Raised when an exercise ID does not exist or is inactive."""

    def __init__(self, exercise_id: str):
        self.exercise_id = exercise_id
        super().__init__(f"Exercise '{exercise_id}' not found")


@dataclass
class ResultInput:
    """Values reported by a finished exercise."""

    exercise_id: str
    score: float | None = None
    accuracy_percentage: float | None = None
    avg_response_time: float | None = None
    total_attempts: int | None = None
    correct_count: int | None = None
    wpm: int | None = None
    completion_time: int | None = None
    metadata: dict[str, Any] | None = None


def list_for_user(tier: str) -> list[ExerciseRecord]:
    """Active exercises the tier can access, ordered by type then difficulty."""
    return repo.list_exercises(tier=tier)


def get_exercise(exercise_id: str) -> ExerciseRecord:
    exercise = repo.get_exercise(exercise_id)
    if exercise is None:
        raise ExerciseNotFoundError(exercise_id)
    return exercise


def _running_mean(average: float | None, count: int, value: float | None) -> float | None:
    if value is None:
        return average
    if average is None or count == 0:
        return float(value)
    return (average * count + value) / (count + 1)


def _best(current: float | None, value: float | None) -> float | None:
    if value is None:
        return current
    if current is None:
        return value
    return max(current, value)


def merge_stats(
    stats: ExerciseStatsRecord | None,
    user_id: str,
    exercise_type: str,
    result: ResultInput,
    now: str | None = None,
) -> ExerciseStatsRecord:
    """Fold one result into a stats row.

    Creates the row when stats is None. The WPM average and best only move
    when the result carries a WPM.
    """
    now = now or utc_now()
    score = result.score
    accuracy = result.accuracy_percentage
    wpm = result.wpm
    time_spent = result.completion_time or 0

    if stats is None:
        return ExerciseStatsRecord(
            id=new_id(),
            user_id=user_id,
            exercise_type=exercise_type,
            total_sessions=1,
            total_time_spent=time_spent,
            best_score=score,
            best_accuracy=accuracy,
            best_wpm=wpm,
            average_score=score,
            average_accuracy=accuracy,
            average_wpm=wpm,
            last_session_at=now,
            created_at=now,
            updated_at=now,
        )

    n = stats.total_sessions
    return ExerciseStatsRecord(
        id=stats.id,
        user_id=user_id,
        exercise_type=exercise_type,
        total_sessions=n + 1,
        total_time_spent=stats.total_time_spent + time_spent,
        best_score=_best(stats.best_score, score),
        best_accuracy=_best(stats.best_accuracy, accuracy),
        best_wpm=_best(stats.best_wpm, wpm),  # type: ignore[arg-type]
        average_score=_running_mean(stats.average_score, n, score),
        average_accuracy=_running_mean(stats.average_accuracy, n, accuracy),
        average_wpm=_running_mean(stats.average_wpm, n, wpm),
        last_session_at=now,
        created_at=stats.created_at,
        updated_at=now,
    )


def submit_result(
    user_id: str, tier: str, result: ResultInput
) -> tuple[ExerciseResultRecord, ExerciseStatsRecord | None]:
    """Store a result, track usage and update stats.

    A failing stats update is logged and does not fail the submission.

    Returns:
        (stored result, updated stats or None when the stats update failed)

    Raises:
        ExerciseNotFoundError: If the exercise does not exist
        LimitExceededError: If the tier's monthly exercise quota is used up
    """
    exercise = get_exercise(result.exercise_id)
    subscriptions.enforce_limit(user_id, tier, "exercise", exercise_id=exercise.id)

    stored = repo.insert_exercise_result(
        user_id=user_id,
        exercise_id=exercise.id,
        session_date=datetime.now(timezone.utc).date().isoformat(),
        score=result.score,
        accuracy_percentage=result.accuracy_percentage,
        avg_response_time=result.avg_response_time,
        total_attempts=result.total_attempts,
        correct_count=result.correct_count,
        wpm=result.wpm,
        completion_time=result.completion_time,
        metadata=result.metadata,
    )
    subscriptions.track_usage(user_id, "exercise", exercise_id=exercise.id)

    stats: ExerciseStatsRecord | None = None
    try:
        stats = merge_stats(
            repo.get_exercise_stats(user_id, exercise.type), user_id, exercise.type, result
        )
        repo.save_exercise_stats(stats)
    except sqlite3.Error as e:
        logger.error("exercise_stats.update_failed", user_id=user_id, error=str(e))
        stats = None

    logger.info(
        "exercise_results.created",
        user_id=user_id,
        exercise_type=exercise.type,
        score=result.score,
    )
    return stored, stats


def list_results(
    user_id: str, exercise_type: str | None = None, limit: int = 10, offset: int = 0
) -> list[ExerciseResultRecord]:
    return repo.list_exercise_results(user_id, exercise_type, limit=limit, offset=offset)


def list_stats(user_id: str) -> list[ExerciseStatsRecord]:
    return repo.list_exercise_stats(user_id)


# =============================================================================
# ADMIN
# =============================================================================


def create_exercise(data: dict[str, Any]) -> ExerciseRecord:
    """Create an exercise from admin input.

    Raises:
        ValidationError: On missing fields, unknown tier or duplicate title
    """
    require_fields(data, ["title", "type", "difficulty", "description"])
    tier = data.get("min_subscription_tier") or "free"
    if tier not in subscriptions.TIERS:
        raise ValidationError(f"Unknown subscription tier '{tier}'")
    try:
        exercise = repo.insert_exercise(
            title=data["title"].strip(),
            type=data["type"].strip(),
            difficulty=data["difficulty"],
            description=data["description"],
            instructions=data.get("instructions"),
            tags=data.get("tags") or [],
            config=data.get("config") or {},
            min_subscription_tier=tier,
            is_active=data.get("is_active", True),
        )
    except sqlite3.IntegrityError as e:
        raise ValidationError("An exercise with this type and title already exists") from e
    logger.info("exercises.created", exercise_id=exercise.id, type=exercise.type)
    return exercise


def update_exercise(exercise_id: str, data: dict[str, Any]) -> ExerciseRecord:
    get_exercise(exercise_id)
    tier = data.get("min_subscription_tier")
    if tier is not None and tier not in subscriptions.TIERS:
        raise ValidationError(f"Unknown subscription tier '{tier}'")
    return repo.update_exercise(exercise_id, **data)  # type: ignore[return-value]


def delete_exercise(exercise_id: str) -> None:
    if not repo.delete_exercise(exercise_id):
        raise ExerciseNotFoundError(exercise_id)


def add_exercise_text(
    text_content: str,
    exercise_id: str | None = None,
    title: str | None = None,
    difficulty_level: str | None = None,
    book_id: str | None = None,
    created_by: str | None = None,
    is_custom: bool = False,
) -> ExerciseTextRecord:
    """Store a passage for an exercise with its word count.

    Raises:
        ValidationError: On empty text
    """
    if not text_content or not text_content.strip():
        raise ValidationError("Text content is required", field="text_content")
    if exercise_id is not None:
        get_exercise(exercise_id)
    return repo.insert_exercise_text(
        text_content=text_content.strip(),
        word_count=count_words(text_content),
        exercise_id=exercise_id,
        title=title,
        book_id=book_id,
        difficulty_level=difficulty_level,
        is_custom=is_custom,
        created_by=created_by,
    )


def save_custom_text(
    user_id: str, tier: str, text_content: str, title: str | None = None
) -> ExerciseTextRecord:
    """Store a reader's own practice passage against their custom-text quota."""
    subscriptions.enforce_limit(user_id, tier, "custom_text")
    text = add_exercise_text(text_content, title=title, created_by=user_id, is_custom=True)
    subscriptions.track_usage(user_id, "custom_text")
    return text
