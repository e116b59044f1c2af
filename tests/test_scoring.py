from __future__ import annotations

from datetime import timedelta

import pytest

from quizmaker.core.models import Answer, Attempt, AttemptMode, AttemptStatus, Quiz, TakerIdentity
from quizmaker.core.services.scoring import build_attempt_stats, finalize_score, summarize_quiz

from conftest import START, questions_by_id

QUIZ = Quiz(id="quiz", title="Quiz", question_ids=["tf", "mcq", "open"])


def _answer(attempt_id: str, question_id: str, is_correct: bool | None, seconds: int = 0) -> Answer:
    return Answer(
        id=f"{attempt_id}-{question_id}",
        attempt_id=attempt_id,
        question_id=question_id,
        response={},
        is_correct=is_correct,
        score=1.0 if is_correct else 0.0,
        answered_at=START + timedelta(seconds=seconds),
    )


def _attempt(attempt_id: str, score: float | None, status=AttemptStatus.COMPLETED) -> Attempt:
    return Attempt(
        id=attempt_id,
        taker=TakerIdentity.for_user(attempt_id),
        quiz_id=QUIZ.id,
        mode=AttemptMode.ALL_AT_ONCE,
        started_at=START,
        total_questions=3,
        status=status,
        score=score,
    )


def test_finalize_score_counts_unanswered_as_zero():
    final = finalize_score([_answer("a", "tf", True), _answer("a", "mcq", False)], total_questions=4)
    assert final.score == 0.25
    assert final.correct_count == 1
    assert final.answered_count == 2


def test_finalize_score_ignores_open_for_correct_count():
    final = finalize_score([_answer("a", "open", None)], total_questions=1)
    assert final.score == 0.0
    assert final.correct_count == 0


def test_finalize_score_with_no_questions():
    assert finalize_score([], total_questions=0).score == 0.0


def test_summary_with_no_attempts_is_all_zero():
    summary = summarize_quiz(QUIZ, [], {}, pass_threshold=0.5)
    payload = summary.to_payload()
    assert payload["attempts_count"] == 0
    assert payload["average_score"] == payload["best_score"] == payload["worst_score"] == 0.0
    assert payload["pass_rate"] == 0.0
    assert [stats["times_asked"] for stats in payload["question_stats"]] == [0, 0, 0]


def test_summary_skips_in_progress_attempts():
    attempts = [_attempt("a", None, status=AttemptStatus.IN_PROGRESS)]
    summary = summarize_quiz(QUIZ, attempts, {"a": [_answer("a", "tf", True)]}, pass_threshold=0.5)
    assert summary.attempts_count == 0


def test_summary_threshold_is_inclusive():
    attempts = [_attempt("a", 0.5), _attempt("b", 0.49), _attempt("c", 1.0)]
    summary = summarize_quiz(QUIZ, attempts, {}, pass_threshold=0.5)
    assert summary.pass_rate == pytest.approx(2 / 3)
    assert summary.best_score == 1.0
    assert summary.worst_score == 0.49


def test_summary_question_stats_follow_quiz_order():
    attempts = [_attempt("a", 1.0), _attempt("b", 0.0)]
    answers = {
        "a": [_answer("a", "mcq", True), _answer("a", "tf", True)],
        "b": [_answer("b", "tf", False), _answer("b", "stray", True)],
    }
    summary = summarize_quiz(QUIZ, attempts, answers, pass_threshold=0.5)
    assert [stats.question_id for stats in summary.question_stats] == ["tf", "mcq", "open"]
    tf_stats = summary.question_stats[0]
    assert (tf_stats.times_asked, tf_stats.times_correct, tf_stats.accuracy) == (2, 1, 0.5)
    assert summary.question_stats[2].accuracy == 0.0


def test_attempt_stats_for_completed_attempt_stop_at_completion():
    attempt = _attempt("a", 0.5)
    attempt.completed_at = START + timedelta(minutes=2)
    answers = [_answer("a", "tf", True, seconds=20), _answer("a", "open", None, seconds=80)]

    stats = build_attempt_stats(attempt, answers, questions_by_id(), now=START + timedelta(hours=1))
    assert stats.total_time_seconds == 120
    assert stats.average_time_per_question_seconds == 60
    assert stats.correct_answers == 1
    assert stats.accuracy == 0.5
    assert stats.completion == pytest.approx(2 / 3)
    assert [timing.question_type.value for timing in stats.question_timings] == ["TRUE_FALSE", "OPEN"]


def test_attempt_stats_without_answers():
    stats = build_attempt_stats(_attempt("a", None, AttemptStatus.IN_PROGRESS), [], {}, now=START)
    assert stats.questions_answered == 0
    assert stats.accuracy == 0.0
    assert stats.average_time_per_question_seconds == 0.0
