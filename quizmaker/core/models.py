"""Domain models for the attempt engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class QuestionType(str, Enum):
    TRUE_FALSE = "TRUE_FALSE"
    MCQ_SINGLE = "MCQ_SINGLE"
    MCQ_MULTI = "MCQ_MULTI"
    FILL_GAP = "FILL_GAP"
    ORDERING = "ORDERING"
    COMPLIANCE = "COMPLIANCE"
    HOTSPOT = "HOTSPOT"
    OPEN = "OPEN"


class AttemptMode(str, Enum):
    ALL_AT_ONCE = "ALL_AT_ONCE"
    ONE_BY_ONE = "ONE_BY_ONE"
    TIMED = "TIMED"


class AttemptStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class Visibility(str, Enum):
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(slots=True, frozen=True)
class Quiz:
    """Quiz as seen by the engine. Owned and mutated elsewhere."""

    id: str
    title: str
    question_ids: list[str]
    time_limit_minutes: int | None = None
    visibility: Visibility = Visibility.PUBLIC


@dataclass(slots=True, frozen=True)
class Question:
    """Typed question with its type-specific content mapping."""

    id: str
    type: QuestionType
    question_text: str
    content: dict[str, Any]
    explanation: str | None = None


@dataclass(slots=True, frozen=True)
class TakerIdentity:
    """Who runs an attempt: a registered user or an anonymous share-link session."""

    user_id: str | None = None
    session_id: str | None = None

    def __post_init__(self) -> None:
        if (self.user_id is None) == (self.session_id is None):
            raise ValueError("Exactly one of user_id or session_id must be set.")

    @classmethod
    def for_user(cls, user_id: str) -> TakerIdentity:
        return cls(user_id=user_id)

    @classmethod
    def for_session(cls, session_id: str) -> TakerIdentity:
        return cls(session_id=session_id)

    def describe(self) -> str:
        if self.user_id is not None:
            return f"user:{self.user_id}"
        return f"session:{self.session_id}"


@dataclass(slots=True)
class Attempt:
    """One taker's run through a quiz.

    ``version`` is bumped by the repository on every write and is compared on
    update to detect concurrent writers.
    """

    id: str
    taker: TakerIdentity
    quiz_id: str
    mode: AttemptMode
    started_at: datetime
    total_questions: int
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    deadline: datetime | None = None
    completed_at: datetime | None = None
    score: float | None = None
    correct_count: int | None = None
    share_link_id: str | None = None
    version: int = 0


@dataclass(slots=True, frozen=True)
class Answer:
    """Graded response to one question of one attempt."""

    id: str
    attempt_id: str
    question_id: str
    response: dict[str, Any]
    is_correct: bool | None
    score: float
    answered_at: datetime


@dataclass(slots=True, frozen=True)
class GradeResult:
    """Outcome of a grading strategy. ``is_correct`` is None when no claim is made."""

    is_correct: bool | None
    score: float


@dataclass(slots=True, frozen=True)
class VisibilityFlags:
    """Opt-in switches for revealing grading details in submission results."""

    include_correctness: bool = False
    include_correct_answer: bool = False
    include_explanation: bool = False


@dataclass(slots=True, frozen=True)
class AnswerItem:
    """A single entry of a batch submission."""

    question_id: str
    response: dict[str, Any]


# --- Result views ---


@dataclass(slots=True)
class AttemptStarted:
    attempt_id: str
    quiz_id: str
    mode: AttemptMode
    total_questions: int
    time_limit_minutes: int | None
    started_at: datetime
    deadline: datetime | None

    def to_payload(self) -> dict[str, object]:
        return {
            "attempt_id": self.attempt_id,
            "quiz_id": self.quiz_id,
            "mode": self.mode.value,
            "total_questions": self.total_questions,
            "time_limit_minutes": self.time_limit_minutes,
            "started_at": _iso(self.started_at),
            "deadline": _iso(self.deadline),
        }


@dataclass(slots=True)
class SafeQuestion:
    """Question view for takers: content with every correctness marker removed."""

    question_id: str
    type: QuestionType
    question_text: str
    content: dict[str, Any]

    def to_payload(self) -> dict[str, object]:
        return {
            "question_id": self.question_id,
            "type": self.type.value,
            "question_text": self.question_text,
            "content": self.content,
        }


@dataclass(slots=True)
class AnswerSubmissionResult:
    """Per-answer result. Optional fields are only emitted when revealed."""

    answer_id: str
    question_id: str
    score: float
    answered_at: datetime
    flags: VisibilityFlags = field(default_factory=VisibilityFlags)
    is_correct: bool | None = None
    correct_answer: dict[str, Any] | None = None
    explanation: str | None = None
    next_question: SafeQuestion | None = None

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "answer_id": self.answer_id,
            "question_id": self.question_id,
            "score": self.score,
            "answered_at": _iso(self.answered_at),
        }
        if self.flags.include_correctness:
            payload["is_correct"] = self.is_correct
        if self.flags.include_correct_answer:
            payload["correct_answer"] = self.correct_answer
        if self.flags.include_explanation:
            payload["explanation"] = self.explanation
        if self.next_question is not None:
            payload["next_question"] = self.next_question.to_payload()
        return payload


@dataclass(slots=True)
class BatchItemOutcome:
    """Result slot for one batch item: either a result or an error."""

    question_id: str
    result: AnswerSubmissionResult | None = None
    error_code: str | None = None
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None

    def to_payload(self) -> dict[str, object]:
        if self.result is not None:
            return {"question_id": self.question_id, "result": self.result.to_payload()}
        return {
            "question_id": self.question_id,
            "error": {"code": self.error_code, "message": self.error_message},
        }


@dataclass(slots=True)
class AnswerBreakdown:
    question_id: str
    is_correct: bool | None
    score: float
    answered_at: datetime

    def to_payload(self) -> dict[str, object]:
        return {
            "question_id": self.question_id,
            "is_correct": self.is_correct,
            "score": self.score,
            "answered_at": _iso(self.answered_at),
        }


@dataclass(slots=True)
class AttemptResult:
    attempt_id: str
    quiz_id: str
    score: float
    correct_count: int
    total_questions: int
    started_at: datetime
    completed_at: datetime
    answers: list[AnswerBreakdown]

    def to_payload(self) -> dict[str, object]:
        return {
            "attempt_id": self.attempt_id,
            "quiz_id": self.quiz_id,
            "score": self.score,
            "correct_count": self.correct_count,
            "total_questions": self.total_questions,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "answers": [answer.to_payload() for answer in self.answers],
        }


@dataclass(slots=True)
class AttemptDetails:
    attempt_id: str
    quiz_id: str
    mode: AttemptMode
    status: AttemptStatus
    started_at: datetime
    deadline: datetime | None
    completed_at: datetime | None
    score: float | None
    expired: bool
    answers: list[AnswerBreakdown]

    def to_payload(self) -> dict[str, object]:
        return {
            "attempt_id": self.attempt_id,
            "quiz_id": self.quiz_id,
            "mode": self.mode.value,
            "status": self.status.value,
            "started_at": _iso(self.started_at),
            "deadline": _iso(self.deadline),
            "completed_at": _iso(self.completed_at),
            "score": self.score,
            "expired": self.expired,
            "answers": [answer.to_payload() for answer in self.answers],
        }


@dataclass(slots=True)
class CurrentQuestion:
    question: SafeQuestion
    question_number: int
    total_questions: int

    def to_payload(self) -> dict[str, object]:
        return {
            "question": self.question.to_payload(),
            "question_number": self.question_number,
            "total_questions": self.total_questions,
        }


@dataclass(slots=True)
class QuestionTiming:
    question_id: str
    question_type: QuestionType
    is_correct: bool | None
    seconds_since_start: float

    def to_payload(self) -> dict[str, object]:
        return {
            "question_id": self.question_id,
            "question_type": self.question_type.value,
            "is_correct": self.is_correct,
            "seconds_since_start": self.seconds_since_start,
        }


@dataclass(slots=True)
class AttemptStats:
    attempt_id: str
    total_time_seconds: float
    average_time_per_question_seconds: float
    questions_answered: int
    correct_answers: int
    accuracy: float
    completion: float
    question_timings: list[QuestionTiming]

    def to_payload(self) -> dict[str, object]:
        return {
            "attempt_id": self.attempt_id,
            "total_time_seconds": self.total_time_seconds,
            "average_time_per_question_seconds": self.average_time_per_question_seconds,
            "questions_answered": self.questions_answered,
            "correct_answers": self.correct_answers,
            "accuracy": self.accuracy,
            "completion": self.completion,
            "question_timings": [timing.to_payload() for timing in self.question_timings],
        }


@dataclass(slots=True)
class AnswerReview:
    question_id: str
    question_type: QuestionType
    is_correct: bool | None
    score: float
    answered_at: datetime
    user_response: dict[str, Any] | None = None
    correct_answer: dict[str, Any] | None = None
    explanation: str | None = None
    question_text: str | None = None
    question_content: dict[str, Any] | None = None

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "question_id": self.question_id,
            "question_type": self.question_type.value,
            "is_correct": self.is_correct,
            "score": self.score,
            "answered_at": _iso(self.answered_at),
        }
        optional = {
            "user_response": self.user_response,
            "correct_answer": self.correct_answer,
            "explanation": self.explanation,
            "question_text": self.question_text,
            "question_content": self.question_content,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        return payload


@dataclass(slots=True)
class AttemptReview:
    attempt_id: str
    quiz_id: str
    score: float
    correct_count: int
    total_questions: int
    started_at: datetime
    completed_at: datetime | None
    answers: list[AnswerReview]

    def to_payload(self) -> dict[str, object]:
        return {
            "attempt_id": self.attempt_id,
            "quiz_id": self.quiz_id,
            "score": self.score,
            "correct_count": self.correct_count,
            "total_questions": self.total_questions,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "answers": [answer.to_payload() for answer in self.answers],
        }


@dataclass(slots=True)
class QuestionStats:
    question_id: str
    times_asked: int
    times_correct: int
    accuracy: float

    def to_payload(self) -> dict[str, object]:
        return {
            "question_id": self.question_id,
            "times_asked": self.times_asked,
            "times_correct": self.times_correct,
            "accuracy": self.accuracy,
        }


@dataclass(slots=True)
class QuizResultsSummary:
    quiz_id: str
    attempts_count: int = 0
    average_score: float = 0.0
    best_score: float = 0.0
    worst_score: float = 0.0
    pass_rate: float = 0.0
    question_stats: list[QuestionStats] = field(default_factory=list)

    def to_payload(self) -> dict[str, object]:
        return {
            "quiz_id": self.quiz_id,
            "attempts_count": self.attempts_count,
            "average_score": self.average_score,
            "best_score": self.best_score,
            "worst_score": self.worst_score,
            "pass_rate": self.pass_rate,
            "question_stats": [stats.to_payload() for stats in self.question_stats],
        }
