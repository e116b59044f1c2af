"""Service computing attempt scores and quiz-level statistics."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime

from quizmaker.core.models import (
    Answer,
    Attempt,
    AttemptStats,
    AttemptStatus,
    Question,
    QuestionStats,
    QuestionTiming,
    Quiz,
    QuizResultsSummary,
)


@dataclass(slots=True)
class QuestionTally:
    """Mutable per-question counter used while scanning attempts."""

    question_id: str
    times_asked: int = 0
    times_correct: int = 0

    def snapshot(self) -> QuestionStats:
        accuracy = self.times_correct / self.times_asked if self.times_asked else 0.0
        return QuestionStats(
            question_id=self.question_id,
            times_asked=self.times_asked,
            times_correct=self.times_correct,
            accuracy=accuracy,
        )


@dataclass(slots=True)
class FinalScore:
    score: float
    correct_count: int
    answered_count: int = 0


def finalize_score(answers: Sequence[Answer], total_questions: int) -> FinalScore:
    """Sum per-answer scores into a fraction of the whole quiz.

    Unanswered questions count as zero. OPEN answers (``is_correct`` None) add
    their score but never count as correct.
    """
    total = sum(answer.score for answer in answers)
    score = total / total_questions if total_questions > 0 else 0.0
    correct_count = sum(1 for answer in answers if answer.is_correct is True)
    return FinalScore(score=score, correct_count=correct_count, answered_count=len(answers))


def summarize_quiz(
    quiz: Quiz,
    attempts: Sequence[Attempt],
    answers_by_attempt: Mapping[str, Sequence[Answer]],
    pass_threshold: float,
) -> QuizResultsSummary:
    """Roll up every COMPLETED attempt of ``quiz``.

    An attempt passes when its score is at least ``pass_threshold``. With no
    completed attempts every field is zero.
    """
    tallies = {question_id: QuestionTally(question_id) for question_id in quiz.question_ids}
    completed = [attempt for attempt in attempts if attempt.status is AttemptStatus.COMPLETED]
    if not completed:
        return QuizResultsSummary(
            quiz_id=quiz.id,
            question_stats=[tally.snapshot() for tally in tallies.values()],
        )

    scores = [attempt.score or 0.0 for attempt in completed]
    passing = sum(1 for score in scores if score >= pass_threshold)

    for attempt in completed:
        for answer in answers_by_attempt.get(attempt.id, ()):
            tally = tallies.get(answer.question_id)
            if tally is None:
                continue
            tally.times_asked += 1
            if answer.is_correct is True:
                tally.times_correct += 1

    return QuizResultsSummary(
        quiz_id=quiz.id,
        attempts_count=len(completed),
        average_score=sum(scores) / len(scores),
        best_score=max(scores),
        worst_score=min(scores),
        pass_rate=passing / len(completed),
        question_stats=[tally.snapshot() for tally in tallies.values()],
    )


def build_attempt_stats(
    attempt: Attempt,
    answers: Sequence[Answer],
    questions: Mapping[str, Question],
    now: datetime,
) -> AttemptStats:
    """Timing and accuracy figures for one attempt.

    For an attempt still in progress the elapsed time runs up to ``now``.
    """
    end = attempt.completed_at or now
    total_seconds = max((end - attempt.started_at).total_seconds(), 0.0)
    answered = len(answers)
    correct = sum(1 for answer in answers if answer.is_correct is True)
    timings = [
        QuestionTiming(
            question_id=answer.question_id,
            question_type=questions[answer.question_id].type,
            is_correct=answer.is_correct,
            seconds_since_start=(answer.answered_at - attempt.started_at).total_seconds(),
        )
        for answer in answers
        if answer.question_id in questions
    ]
    return AttemptStats(
        attempt_id=attempt.id,
        total_time_seconds=total_seconds,
        average_time_per_question_seconds=total_seconds / answered if answered else 0.0,
        questions_answered=answered,
        correct_answers=correct,
        accuracy=correct / answered if answered else 0.0,
        completion=answered / attempt.total_questions if attempt.total_questions else 0.0,
        question_timings=timings,
    )
