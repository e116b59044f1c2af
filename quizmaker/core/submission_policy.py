"""Rules deciding whether an answer may be written to an attempt.

Rules run in a fixed order so the same illegal request always fails the same
way. Expiry is detected here, lazily, on the next write; nothing sweeps
expired attempts in the background, so a read may still report IN_PROGRESS
for an attempt whose deadline has passed.
"""

from __future__ import annotations

from collections.abc import Collection
from datetime import datetime

from quizmaker.core.errors import (
    AttemptCompletedError,
    AttemptTimedOutError,
    ConflictError,
    NotFoundError,
)
from quizmaker.core.models import Attempt, AttemptMode, AttemptStatus, Quiz

BATCH_MODE_MESSAGE = "Batch submissions only allowed in ALL_AT_ONCE mode"


def check_can_complete(attempt: Attempt) -> None:
    if attempt.status is AttemptStatus.COMPLETED:
        raise AttemptCompletedError(f"Attempt {attempt.id} is already completed")


def is_past_deadline(attempt: Attempt, now: datetime) -> bool:
    return attempt.deadline is not None and now > attempt.deadline


def check_batch_mode(attempt: Attempt, now: datetime) -> None:
    """Attempt-level rules shared by every item of a batch."""
    check_can_complete(attempt)
    if is_past_deadline(attempt, now):
        raise AttemptTimedOutError(f"Attempt {attempt.id} has timed out")
    if attempt.mode is not AttemptMode.ALL_AT_ONCE:
        raise ConflictError(BATCH_MODE_MESSAGE)


def check_submission(
    attempt: Attempt,
    question_id: str,
    quiz: Quiz,
    answered_question_ids: Collection[str],
    now: datetime,
    is_batch: bool = False,
) -> None:
    """Raise the first violated rule for writing ``question_id`` to ``attempt``."""
    check_can_complete(attempt)
    if is_past_deadline(attempt, now):
        raise AttemptTimedOutError(f"Attempt {attempt.id} has timed out")
    if is_batch and attempt.mode is not AttemptMode.ALL_AT_ONCE:
        raise ConflictError(BATCH_MODE_MESSAGE)
    if question_id not in quiz.question_ids:
        raise NotFoundError(f"Question {question_id} is not part of quiz {quiz.id}")
    if question_id in answered_question_ids:
        raise ConflictError(f"Already answered question {question_id} in this attempt")
    if attempt.mode is AttemptMode.ONE_BY_ONE and not is_batch:
        expected = next(qid for qid in quiz.question_ids if qid not in answered_question_ids)
        if question_id != expected:
            raise ConflictError(f"Expected question {expected} but received {question_id}")
