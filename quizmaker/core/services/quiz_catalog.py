"""Read-only lookup of quizzes and their questions."""

from __future__ import annotations

from threading import Lock
from typing import Protocol

from quizmaker.core.errors import NotFoundError
from quizmaker.core.models import Question, Quiz


class QuizCatalog(Protocol):
    def get_quiz(self, quiz_id: str) -> Quiz: ...

    def get_question(self, question_id: str) -> Question: ...


class InMemoryQuizCatalog:
    """Holds quizzes loaded at startup. The engine never mutates them."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._quizzes: dict[str, Quiz] = {}
        self._questions: dict[str, Question] = {}

    def add_quiz(self, quiz: Quiz, questions: list[Question]) -> None:
        """Register a quiz together with every question it references."""
        by_id = {question.id: question for question in questions}
        missing = [question_id for question_id in quiz.question_ids if question_id not in by_id]
        if missing:
            raise ValueError(f"Quiz {quiz.id} references unknown questions: {', '.join(missing)}")
        if len(set(quiz.question_ids)) != len(quiz.question_ids):
            raise ValueError(f"Quiz {quiz.id} lists a question more than once.")
        with self._lock:
            self._quizzes[quiz.id] = quiz
            self._questions.update(by_id)

    def get_quiz(self, quiz_id: str) -> Quiz:
        with self._lock:
            quiz = self._quizzes.get(quiz_id)
        if quiz is None:
            raise NotFoundError(f"Quiz {quiz_id} not found")
        return quiz

    def get_question(self, question_id: str) -> Question:
        with self._lock:
            question = self._questions.get(question_id)
        if question is None:
            raise NotFoundError(f"Question {question_id} not found")
        return question

    def get_quiz_count(self) -> int:
        with self._lock:
            return len(self._quizzes)
