from __future__ import annotations

from datetime import timedelta

import pytest

from quizmaker.core.errors import (
    AttemptCompletedError,
    AttemptTimedOutError,
    ConflictError,
    NotFoundError,
)
from quizmaker.core.models import Attempt, AttemptMode, AttemptStatus, Quiz, TakerIdentity
from quizmaker.core.submission_policy import (
    BATCH_MODE_MESSAGE,
    check_batch_mode,
    check_can_complete,
    check_submission,
)

from conftest import START

QUIZ = Quiz(id="quiz", title="Quiz", question_ids=["q1", "q2"])


def _attempt(
    mode: AttemptMode = AttemptMode.ALL_AT_ONCE,
    status: AttemptStatus = AttemptStatus.IN_PROGRESS,
    deadline_minutes: int | None = None,
) -> Attempt:
    return Attempt(
        id="attempt-1",
        taker=TakerIdentity.for_user("alice"),
        quiz_id=QUIZ.id,
        mode=mode,
        started_at=START,
        total_questions=2,
        status=status,
        deadline=START + timedelta(minutes=deadline_minutes) if deadline_minutes else None,
    )


def test_legal_submission_passes():
    check_submission(_attempt(), "q1", QUIZ, set(), START)


def test_completed_wins_over_every_other_rule():
    attempt = _attempt(mode=AttemptMode.ONE_BY_ONE, status=AttemptStatus.COMPLETED, deadline_minutes=1)
    late = START + timedelta(hours=1)
    with pytest.raises(AttemptCompletedError):
        check_submission(attempt, "unknown", QUIZ, {"unknown"}, late, is_batch=True)


def test_timeout_wins_over_mode_and_question_rules():
    attempt = _attempt(mode=AttemptMode.ONE_BY_ONE, deadline_minutes=5)
    late = START + timedelta(minutes=6)
    with pytest.raises(AttemptTimedOutError, match="timed out"):
        check_submission(attempt, "unknown", QUIZ, set(), late, is_batch=True)


def test_deadline_itself_is_still_open():
    attempt = _attempt(deadline_minutes=5)
    check_submission(attempt, "q1", QUIZ, set(), START + timedelta(minutes=5))


def test_batch_mode_checked_before_question_membership():
    with pytest.raises(ConflictError) as excinfo:
        check_submission(_attempt(mode=AttemptMode.ONE_BY_ONE), "unknown", QUIZ, set(), START, is_batch=True)
    assert str(excinfo.value) == BATCH_MODE_MESSAGE


def test_single_submission_allowed_in_any_mode():
    for mode in AttemptMode:
        check_submission(_attempt(mode=mode), "q1", QUIZ, set(), START)


def test_question_outside_quiz_is_not_found():
    with pytest.raises(NotFoundError):
        check_submission(_attempt(), "q9", QUIZ, {"q9"}, START)


def test_duplicate_answer_is_a_conflict():
    with pytest.raises(ConflictError, match="Already answered"):
        check_submission(_attempt(), "q1", QUIZ, {"q1"}, START)


def test_check_batch_mode():
    check_batch_mode(_attempt(), START)
    with pytest.raises(ConflictError, match="only allowed in ALL_AT_ONCE mode"):
        check_batch_mode(_attempt(mode=AttemptMode.TIMED), START)
    with pytest.raises(AttemptTimedOutError):
        check_batch_mode(_attempt(deadline_minutes=1), START + timedelta(minutes=2))


def test_completion_ignores_deadline():
    check_can_complete(_attempt(deadline_minutes=1))
    with pytest.raises(AttemptCompletedError):
        check_can_complete(_attempt(status=AttemptStatus.COMPLETED))


def test_one_by_one_requires_quiz_order():
    attempt = _attempt(mode=AttemptMode.ONE_BY_ONE)
    with pytest.raises(ConflictError, match="Expected question q1 but received q2"):
        check_submission(attempt, "q2", QUIZ, set(), START)
    check_submission(attempt, "q2", QUIZ, {"q1"}, START)


def test_duplicate_wins_over_question_order():
    attempt = _attempt(mode=AttemptMode.ONE_BY_ONE)
    with pytest.raises(ConflictError, match="Already answered"):
        check_submission(attempt, "q1", QUIZ, {"q1"}, START)


def test_other_modes_accept_any_order():
    for mode in (AttemptMode.ALL_AT_ONCE, AttemptMode.TIMED):
        check_submission(_attempt(mode=mode), "q2", QUIZ, set(), START)
