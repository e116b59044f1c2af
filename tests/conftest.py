from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from quizmaker.core.attempt_engine import AttemptEngine
from quizmaker.core.models import Question, QuestionType, Quiz, TakerIdentity
from quizmaker.core.services.attempt_repository import AttemptRepository
from quizmaker.core.services.quiz_catalog import InMemoryQuizCatalog
from quizmaker.core.services.share_links import InMemoryShareLinkRegistry

START = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


def make_questions() -> list[Question]:
    return [
        Question(
            id="tf",
            type=QuestionType.TRUE_FALSE,
            question_text="The sky is blue.",
            content={"answer": True},
            explanation="Rayleigh scattering.",
        ),
        Question(
            id="mcq",
            type=QuestionType.MCQ_SINGLE,
            question_text="Capital of France?",
            content={
                "options": [
                    {"id": "a", "text": "Lyon", "correct": False},
                    {"id": "b", "text": "Paris", "correct": True},
                    {"id": "c", "text": "Nice", "correct": False},
                ]
            },
        ),
        Question(
            id="multi",
            type=QuestionType.MCQ_MULTI,
            question_text="Pick the primes.",
            content={
                "options": [
                    {"id": "a", "text": "2", "correct": True},
                    {"id": "b", "text": "4", "correct": False},
                    {"id": "c", "text": "5", "correct": True},
                ]
            },
        ),
        Question(
            id="gap",
            type=QuestionType.FILL_GAP,
            question_text="Fill the gaps.",
            content={
                "text": "{1} lies on the {2}.",
                "gaps": [{"id": 1, "answer": "Paris"}, {"id": 2, "answer": "Seine"}],
            },
        ),
        Question(
            id="order",
            type=QuestionType.ORDERING,
            question_text="Order the steps.",
            content={
                "items": [
                    {"id": "x", "text": "Boil"},
                    {"id": "y", "text": "Pour"},
                    {"id": "z", "text": "Fill kettle"},
                ],
                "correct_order": ["z", "x", "y"],
            },
        ),
        Question(
            id="comp",
            type=QuestionType.COMPLIANCE,
            question_text="Which statements comply?",
            content={
                "statements": [
                    {"id": 1, "text": "Badge worn", "compliant": True},
                    {"id": 2, "text": "Door propped open", "compliant": False},
                    {"id": 3, "text": "Visitor signed in", "compliant": True},
                ]
            },
        ),
        Question(
            id="hot",
            type=QuestionType.HOTSPOT,
            question_text="Click an exit.",
            content={
                "image_url": "https://example.com/floor.png",
                "regions": [
                    {"id": "r1", "x": 0, "y": 0, "width": 10, "height": 10, "correct": False},
                    {"id": "r2", "x": 20, "y": 0, "width": 10, "height": 10, "correct": True},
                    {"id": "r3", "x": 40, "y": 0, "width": 10, "height": 10, "correct": True},
                ],
            },
        ),
        Question(
            id="open",
            type=QuestionType.OPEN,
            question_text="Describe your commute.",
            content={"answer": "Any honest description."},
        ),
    ]


CORRECT_RESPONSES: dict[str, dict] = {
    "tf": {"answer": True},
    "mcq": {"selected_option_id": "b"},
    "multi": {"selected_option_ids": ["c", "a"]},
    "gap": {"answers": [{"gap_id": 1, "answer": "Paris"}, {"gap_id": 2, "answer": "Seine"}]},
    "order": {"ordered_item_ids": ["z", "x", "y"]},
    "comp": {"selected_statement_ids": [3, 1]},
    "hot": {"selected_region_id": "r2"},
    "open": {"answer": "Bus, then a short walk."},
}

ALL_QUESTION_IDS = [question.id for question in make_questions()]


def questions_by_id() -> dict[str, Question]:
    return {question.id: question for question in make_questions()}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def catalog() -> InMemoryQuizCatalog:
    catalog = InMemoryQuizCatalog()
    questions = make_questions()
    catalog.add_quiz(Quiz(id="quiz-all", title="Everything", question_ids=list(ALL_QUESTION_IDS)), questions)
    catalog.add_quiz(
        Quiz(id="quiz-timed", title="Quick", question_ids=["tf", "mcq"], time_limit_minutes=10),
        questions,
    )
    return catalog


@pytest.fixture
def repository() -> AttemptRepository:
    return AttemptRepository()


@pytest.fixture
def engine(catalog, repository, clock) -> AttemptEngine:
    return AttemptEngine(catalog, repository=repository, clock=clock)


@pytest.fixture
def share_links(clock) -> InMemoryShareLinkRegistry:
    registry = InMemoryShareLinkRegistry(clock=clock)
    registry.register("open-token", share_link_id="link-1", quiz_id="quiz-all")
    registry.register("timed-token", share_link_id="link-2", quiz_id="quiz-timed")
    return registry


@pytest.fixture
def alice() -> TakerIdentity:
    return TakerIdentity.for_user("alice")


@pytest.fixture
def bob() -> TakerIdentity:
    return TakerIdentity.for_user("bob")
