"""Attempt lifecycle: start, answer, batch-answer and complete.

``AttemptEngine`` is the facade the API layer talks to. It loads attempt
state, runs the submission policy, grades through the per-type strategies,
persists answers and finalises scores. Callers are already authenticated and
authorised for the quiz; the engine only checks that an attempt belongs to
the identity passed in.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import timedelta
import logging
from typing import Any
from uuid import uuid4

from quizmaker.constants.attempt_constants import DEFAULT_PASS_THRESHOLD
from quizmaker.core.clock import Clock, SystemClock
from quizmaker.core.correct_answer import extract_correct_answer, to_safe_question
from quizmaker.core.errors import (
    AttemptEngineError,
    ConflictError,
    ForbiddenError,
    GradingError,
    NotFoundError,
    SubmissionValidationError,
)
from quizmaker.core.grading import grade, parse_response
from quizmaker.core.models import (
    Answer,
    AnswerBreakdown,
    AnswerItem,
    AnswerReview,
    AnswerSubmissionResult,
    Attempt,
    AttemptDetails,
    AttemptMode,
    AttemptResult,
    AttemptReview,
    AttemptStarted,
    AttemptStats,
    AttemptStatus,
    BatchItemOutcome,
    CurrentQuestion,
    Question,
    Quiz,
    QuizResultsSummary,
    SafeQuestion,
    TakerIdentity,
    VisibilityFlags,
)
from quizmaker.core.services.attempt_repository import AttemptRepository
from quizmaker.core.services.quiz_catalog import QuizCatalog
from quizmaker.core.services.scoring import build_attempt_stats, finalize_score, summarize_quiz
from quizmaker.core.submission_policy import (
    check_batch_mode,
    check_can_complete,
    check_submission,
    is_past_deadline,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class EngineSettings:
    pass_threshold: float = DEFAULT_PASS_THRESHOLD


def error_code(exc: AttemptEngineError) -> str:
    """Stable short code for an engine error, used in batch outcomes."""
    if isinstance(exc, NotFoundError):
        return "not_found"
    if isinstance(exc, ForbiddenError):
        return "forbidden"
    if isinstance(exc, ConflictError):
        return "conflict"
    if isinstance(exc, SubmissionValidationError):
        return "validation"
    return "internal"


def _breakdown(answers: Sequence[Answer]) -> list[AnswerBreakdown]:
    return [
        AnswerBreakdown(
            question_id=answer.question_id,
            is_correct=answer.is_correct,
            score=answer.score,
            answered_at=answer.answered_at,
        )
        for answer in answers
    ]


class AttemptEngine:
    """Facade over the catalog, attempt storage, policy, grading and scoring."""

    def __init__(
        self,
        catalog: QuizCatalog,
        repository: AttemptRepository | None = None,
        clock: Clock | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        self._catalog = catalog
        self._repository = repository or AttemptRepository()
        self._clock = clock or SystemClock()
        self._settings = settings or EngineSettings()

    # --- Lifecycle ---

    def start_attempt(
        self,
        quiz_id: str,
        taker: TakerIdentity,
        mode: AttemptMode,
        share_link_id: str | None = None,
    ) -> AttemptStarted:
        quiz = self._catalog.get_quiz(quiz_id)
        started_at = self._clock.now()
        deadline = None
        if quiz.time_limit_minutes:
            deadline = started_at + timedelta(minutes=quiz.time_limit_minutes)

        attempt = self._repository.add_attempt(
            Attempt(
                id=uuid4().hex,
                taker=taker,
                quiz_id=quiz.id,
                mode=mode,
                started_at=started_at,
                total_questions=len(quiz.question_ids),
                deadline=deadline,
                share_link_id=share_link_id,
            )
        )
        logger.info(
            "Started attempt %s on quiz %s for %s (%s)",
            attempt.id,
            quiz.id,
            taker.describe(),
            mode.value,
        )
        return AttemptStarted(
            attempt_id=attempt.id,
            quiz_id=quiz.id,
            mode=attempt.mode,
            total_questions=attempt.total_questions,
            time_limit_minutes=quiz.time_limit_minutes,
            started_at=attempt.started_at,
            deadline=attempt.deadline,
        )

    def submit_answer(
        self,
        attempt_id: str,
        taker: TakerIdentity,
        question_id: str,
        response: Mapping[str, Any],
        flags: VisibilityFlags | None = None,
    ) -> AnswerSubmissionResult:
        flags = flags or VisibilityFlags()
        with self._repository.attempt_lock(attempt_id):
            attempt = self._load_owned(attempt_id, taker)
            quiz = self._catalog.get_quiz(attempt.quiz_id)
            now = self._clock.now()
            answered = self._repository.get_answered_question_ids(attempt.id)
            check_submission(attempt, question_id, quiz, answered, now)
            question = self._catalog.get_question(question_id)
            _, result = self._grade_and_store(attempt, question, response, flags)
            if attempt.mode is AttemptMode.ONE_BY_ONE:
                result.next_question = self._next_unanswered(quiz, answered | {question_id})
            return result

    def submit_batch(
        self,
        attempt_id: str,
        taker: TakerIdentity,
        items: Sequence[AnswerItem],
        flags: VisibilityFlags | None = None,
    ) -> list[BatchItemOutcome]:
        """Grade several answers for an ALL_AT_ONCE attempt.

        Every item is validated before anything is graded; one bad item
        rejects the whole batch. Once grading starts, each item succeeds or
        fails on its own and the outcomes keep the submitted order.
        """
        flags = flags or VisibilityFlags()
        with self._repository.attempt_lock(attempt_id):
            attempt = self._load_owned(attempt_id, taker)
            now = self._clock.now()
            check_batch_mode(attempt, now)
            if not items:
                raise SubmissionValidationError("Batch must contain at least one answer.")
            quiz = self._catalog.get_quiz(attempt.quiz_id)
            questions = self._validate_batch(quiz, items)

            outcomes: list[BatchItemOutcome] = []
            for item, question in zip(items, questions):
                try:
                    answered = self._repository.get_answered_question_ids(attempt.id)
                    check_submission(attempt, question.id, quiz, answered, now, is_batch=True)
                    attempt, result = self._grade_and_store(attempt, question, item.response, flags)
                except AttemptEngineError as exc:
                    outcomes.append(
                        BatchItemOutcome(
                            question_id=question.id,
                            error_code=error_code(exc),
                            error_message="Internal grading error" if isinstance(exc, GradingError) else str(exc),
                        )
                    )
                    continue
                outcomes.append(BatchItemOutcome(question_id=question.id, result=result))

            logger.info(
                "Batch for attempt %s: %d of %d answers stored",
                attempt.id,
                sum(1 for outcome in outcomes if outcome.succeeded),
                len(outcomes),
            )
            return outcomes

    def complete_attempt(self, attempt_id: str, taker: TakerIdentity) -> AttemptResult:
        with self._repository.attempt_lock(attempt_id):
            attempt = self._load_owned(attempt_id, taker)
            check_can_complete(attempt)
            answers = self._repository.get_answers(attempt.id)
            final = finalize_score(answers, attempt.total_questions)

            attempt.status = AttemptStatus.COMPLETED
            attempt.completed_at = self._clock.now()
            attempt.score = final.score
            attempt.correct_count = final.correct_count
            attempt = self._repository.update_attempt(attempt)

        logger.info(
            "Completed attempt %s: score=%.3f correct=%d/%d",
            attempt.id,
            final.score,
            final.correct_count,
            attempt.total_questions,
        )
        return AttemptResult(
            attempt_id=attempt.id,
            quiz_id=attempt.quiz_id,
            score=final.score,
            correct_count=final.correct_count,
            total_questions=attempt.total_questions,
            started_at=attempt.started_at,
            completed_at=attempt.completed_at,
            answers=_breakdown(answers),
        )

    # --- Reads ---

    def get_attempt_detail(self, attempt_id: str, taker: TakerIdentity) -> AttemptDetails:
        attempt = self._load_owned(attempt_id, taker)
        return self._details(attempt)

    def list_attempts(self, taker: TakerIdentity, quiz_id: str | None = None) -> list[AttemptDetails]:
        return [self._details(attempt) for attempt in self._repository.find_attempts(quiz_id=quiz_id, taker=taker)]

    def get_current_question(self, attempt_id: str, taker: TakerIdentity) -> CurrentQuestion:
        """Next unanswered question in quiz order."""
        attempt = self._load_owned(attempt_id, taker)
        check_can_complete(attempt)
        quiz = self._catalog.get_quiz(attempt.quiz_id)
        answered = self._repository.get_answered_question_ids(attempt.id)
        next_question = self._next_unanswered(quiz, answered)
        if next_question is None:
            raise ConflictError("All questions have already been answered")
        return CurrentQuestion(
            question=next_question,
            question_number=quiz.question_ids.index(next_question.question_id) + 1,
            total_questions=len(quiz.question_ids),
        )

    def get_attempt_stats(self, attempt_id: str, taker: TakerIdentity) -> AttemptStats:
        attempt = self._load_owned(attempt_id, taker)
        answers = self._repository.get_answers(attempt.id)
        questions = {answer.question_id: self._catalog.get_question(answer.question_id) for answer in answers}
        return build_attempt_stats(attempt, answers, questions, self._clock.now())

    def get_attempt_review(
        self,
        attempt_id: str,
        taker: TakerIdentity,
        include_user_answers: bool = True,
        include_correct_answers: bool = True,
        include_question_context: bool = False,
    ) -> AttemptReview:
        """Per-answer review of a COMPLETED attempt."""
        attempt = self._load_owned(attempt_id, taker)
        if attempt.status is not AttemptStatus.COMPLETED:
            raise ConflictError(f"Attempt {attempt.id} is not completed; review is unavailable")

        reviews = []
        for answer in sorted(self._repository.get_answers(attempt.id), key=lambda a: a.answered_at):
            question = self._catalog.get_question(answer.question_id)
            reviews.append(
                AnswerReview(
                    question_id=question.id,
                    question_type=question.type,
                    is_correct=answer.is_correct,
                    score=answer.score,
                    answered_at=answer.answered_at,
                    user_response=dict(answer.response) if include_user_answers else None,
                    correct_answer=extract_correct_answer(question) if include_correct_answers else None,
                    explanation=question.explanation if include_correct_answers else None,
                    question_text=question.question_text if include_question_context else None,
                    question_content=(
                        to_safe_question(question).content if include_question_context else None
                    ),
                )
            )
        return AttemptReview(
            attempt_id=attempt.id,
            quiz_id=attempt.quiz_id,
            score=attempt.score or 0.0,
            correct_count=attempt.correct_count or 0,
            total_questions=attempt.total_questions,
            started_at=attempt.started_at,
            completed_at=attempt.completed_at,
            answers=reviews,
        )

    def get_quiz_results_summary(self, quiz_id: str) -> QuizResultsSummary:
        quiz = self._catalog.get_quiz(quiz_id)
        completed = self._repository.find_attempts(quiz_id=quiz.id, status=AttemptStatus.COMPLETED)
        answers = {attempt.id: self._repository.get_answers(attempt.id) for attempt in completed}
        return summarize_quiz(quiz, completed, answers, self._settings.pass_threshold)

    # --- Internals ---

    def _load_owned(self, attempt_id: str, taker: TakerIdentity) -> Attempt:
        attempt = self._repository.get_attempt(attempt_id)
        if attempt.taker != taker:
            logger.warning("%s denied access to attempt %s", taker.describe(), attempt_id)
            raise ForbiddenError(f"You do not have access to attempt {attempt_id}")
        return attempt

    def _validate_batch(self, quiz: Quiz, items: Sequence[AnswerItem]) -> list[Question]:
        seen: set[str] = set()
        questions = []
        for index, item in enumerate(items):
            if not isinstance(item.question_id, str) or not item.question_id:
                raise SubmissionValidationError(f"answers[{index}].question_id must be a non-empty string")
            if item.question_id in seen:
                raise SubmissionValidationError(f"Question {item.question_id} appears more than once in the batch")
            seen.add(item.question_id)
            if item.question_id not in quiz.question_ids:
                raise NotFoundError(f"Question {item.question_id} is not part of quiz {quiz.id}")
            question = self._catalog.get_question(item.question_id)
            parse_response(question.type, item.response)
            questions.append(question)
        return questions

    def _grade_and_store(
        self,
        attempt: Attempt,
        question: Question,
        response: Mapping[str, Any],
        flags: VisibilityFlags,
    ) -> tuple[Attempt, AnswerSubmissionResult]:
        try:
            result = grade(question, response)
        except GradingError:
            logger.exception("Grading failed for question %s in attempt %s", question.id, attempt.id)
            raise

        answer = Answer(
            id=uuid4().hex,
            attempt_id=attempt.id,
            question_id=question.id,
            response=dict(response),
            is_correct=result.is_correct,
            score=result.score,
            answered_at=self._clock.now(),
        )
        attempt = self._repository.update_attempt(attempt)
        self._repository.add_answer(answer)
        logger.debug(
            "Attempt %s answered %s: correct=%s score=%.2f",
            attempt.id,
            question.id,
            answer.is_correct,
            answer.score,
        )

        correct_answer = extract_correct_answer(question) if flags.include_correct_answer else None
        return attempt, AnswerSubmissionResult(
            answer_id=answer.id,
            question_id=question.id,
            score=answer.score,
            answered_at=answer.answered_at,
            flags=flags,
            is_correct=answer.is_correct if flags.include_correctness else None,
            correct_answer=correct_answer,
            explanation=question.explanation if flags.include_explanation else None,
        )

    def _next_unanswered(self, quiz: Quiz, answered: set[str]) -> SafeQuestion | None:
        for question_id in quiz.question_ids:
            if question_id not in answered:
                return to_safe_question(self._catalog.get_question(question_id))
        return None

    def _details(self, attempt: Attempt) -> AttemptDetails:
        return AttemptDetails(
            attempt_id=attempt.id,
            quiz_id=attempt.quiz_id,
            mode=attempt.mode,
            status=attempt.status,
            started_at=attempt.started_at,
            deadline=attempt.deadline,
            completed_at=attempt.completed_at,
            score=attempt.score,
            expired=(
                attempt.status is AttemptStatus.IN_PROGRESS
                and is_past_deadline(attempt, self._clock.now())
            ),
            answers=_breakdown(self._repository.get_answers(attempt.id)),
        )
