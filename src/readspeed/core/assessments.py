"""Timed reading assessments with comprehension questions."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any

import structlog

from readspeed.db import assessments_repository as repo
from readspeed.db.assessments_repository import AssessmentResultRecord, AssessmentTextRecord
from readspeed.utils.text_utils import count_words, reading_wpm
from readspeed.utils.validators import ValidationError, require_fields

logger = structlog.get_logger(__name__)

SELECTION_MODES = ("weighted", "all")
DEFAULT_PERCENTILE = 50


class AssessmentNotFoundError(Exception):
    """Raised when an assessment text does not exist."""

    def __init__(self, assessment_id: str):
        self.assessment_id = assessment_id
        super().__init__(f"Assessment '{assessment_id}' not found")


@dataclass
class AssessmentSelection:
    """Texts offered to a reader."""

    assessments: list[AssessmentTextRecord]
    total_available: int
    mode: str


def select_assessments(
    user_id: str,
    limit: int = 5,
    mode: str = "weighted",
    rng: random.Random | None = None,
) -> AssessmentSelection:
    """Pick active texts for a reader.

    weighted puts the texts the reader has taken least first, with a
    random tie-break; all shuffles every active text.

    Raises:
        ValidationError: For an unknown mode
    """
    if mode not in SELECTION_MODES:
        raise ValidationError(f"Mode must be one of: {', '.join(SELECTION_MODES)}", field="mode")
    rng = rng or random.Random()

    texts = repo.list_active_texts_with_user_counts(user_id)
    if mode == "weighted":
        keyed = [(t.user_times_taken, rng.random(), t) for t in texts]
        keyed.sort(key=lambda item: (item[0], item[1]))
        ordered = [t for _, _, t in keyed]
    else:
        ordered = list(texts)
        rng.shuffle(ordered)

    return AssessmentSelection(
        assessments=ordered[: max(limit, 0)],
        total_available=len(texts),
        mode=mode,
    )


def get_assessment(assessment_id: str) -> AssessmentTextRecord:
    text = repo.get_assessment_text(assessment_id)
    if text is None:
        raise AssessmentNotFoundError(assessment_id)
    return text


def score_answers(
    questions: list[dict[str, Any]], answers: list[Any]
) -> tuple[int, int, int]:
    """Compare answers with each question's correct_answer.

    Answers may be a list aligned with questions, or a list of dicts with
    question_index and answer.

    Returns:
        (correct count, question count, comprehension percentage)

    Raises:
        ValidationError: If a question_index is not an integer
    """
    given: dict[int, Any] = {}
    for i, answer in enumerate(answers):
        if isinstance(answer, dict):
            try:
                index = int(answer.get("question_index", i))
            except (TypeError, ValueError):
                raise ValidationError("Invalid question_index", field="answers") from None
            given[index] = answer.get("answer")
        else:
            given[i] = answer

    total = len(questions)
    correct = sum(
        1
        for i, question in enumerate(questions)
        if i in given and given[i] == question.get("correct_answer")
    )
    percentage = round(correct / total * 100) if total else 0
    return correct, total, percentage


def submit_result(
    user_id: str,
    data: dict[str, Any],
) -> AssessmentResultRecord:
    """Store an assessment result with its percentile.

    The percentile is the share of earlier results on the same text with a
    lower WPM, or 50 when nobody has taken it yet.

    Raises:
        ValidationError: On missing fields
        AssessmentNotFoundError: If the text does not exist
    """
    require_fields(
        data, ["assessment_id", "wpm", "comprehension_percentage", "time_taken"]
    )
    if "answers" not in data or data["answers"] is None:
        raise ValidationError("Missing required fields: answers")

    text = get_assessment(data["assessment_id"])
    wpm = int(data["wpm"])
    comprehension = int(data["comprehension_percentage"])
    if wpm < 0 or not 0 <= comprehension <= 100:
        raise ValidationError("WPM must be positive and comprehension between 0 and 100")

    percentile = repo.percentile_for(text.id, wpm)
    if percentile is None:
        percentile = DEFAULT_PERCENTILE

    result = repo.insert_assessment_result(
        user_id=user_id,
        assessment_id=text.id,
        wpm=wpm,
        comprehension_percentage=comprehension,
        time_taken=int(data["time_taken"]),
        answers=list(data["answers"]),
        percentile=percentile,
    )
    logger.info(
        "assessment_results.created",
        user_id=user_id,
        assessment_id=text.id,
        wpm=wpm,
        percentile=percentile,
        attempt=result.attempt_number,
    )
    return result


def grade_and_submit(
    user_id: str, assessment_id: str, seconds: float, answers: list[Any]
) -> AssessmentResultRecord:
    """Compute WPM and comprehension server-side, then store the result."""
    text = get_assessment(assessment_id)
    _, _, comprehension = score_answers(text.questions, answers)
    return submit_result(
        user_id,
        {
            "assessment_id": assessment_id,
            "wpm": reading_wpm(text.word_count, seconds),
            "comprehension_percentage": comprehension,
            "time_taken": round(seconds),
            "answers": answers,
        },
    )


def recent_results(user_id: str, limit: int = 10) -> list[AssessmentResultRecord]:
    return repo.list_user_results(user_id, limit=limit)


# =============================================================================
# ADMIN
# =============================================================================


def _validate_questions(questions: list[dict[str, Any]]) -> None:
    for i, q in enumerate(questions):
        if not q.get("question"):
            raise ValidationError(f"Question {i + 1} is missing its text")
        options = q.get("options") or []
        if options and q.get("correct_answer") not in options:
            raise ValidationError(f"Question {i + 1} correct answer must be one of its options")


def create_assessment(data: dict[str, Any], created_by: str | None = None) -> AssessmentTextRecord:
    require_fields(data, ["title", "content"])
    questions = data.get("questions") or []
    _validate_questions(questions)
    text = repo.insert_assessment_text(
        title=data["title"].strip(),
        content=data["content"].strip(),
        word_count=count_words(data["content"]),
        questions=questions,
        difficulty_level=data.get("difficulty_level"),
        category=data.get("category"),
        created_by=created_by,
        active=data.get("active", True),
    )
    logger.info("assessment_texts.created", assessment_id=text.id)
    return text


def update_assessment(assessment_id: str, data: dict[str, Any]) -> AssessmentTextRecord:
    get_assessment(assessment_id)
    updates = dict(data)
    if "questions" in updates:
        _validate_questions(updates["questions"] or [])
    if updates.get("content"):
        updates["word_count"] = count_words(updates["content"])
    return repo.update_assessment_text(assessment_id, **updates)  # type: ignore[return-value]


def delete_assessment(assessment_id: str) -> None:
    if not repo.delete_assessment_text(assessment_id):
        raise AssessmentNotFoundError(assessment_id)


def list_all() -> list[AssessmentTextRecord]:
    return repo.list_all_texts()
