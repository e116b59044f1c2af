"""Load quiz definitions from a JSON document.

Document format::

    {
      "quizzes": [
        {
          "id": "geo-101",
          "title": "Capitals",
          "time_limit_minutes": 10,          (optional)
          "visibility": "PUBLIC",            (optional)
          "questions": [
            {
              "id": "q1",
              "type": "TRUE_FALSE",
              "question_text": "Paris is the capital of France.",
              "content": {"answer": true},
              "explanation": "It is."       (optional)
            }
          ]
        }
      ],
      "share_links": [                       (optional)
        {"token": "abc", "share_link_id": "link-1", "quiz_id": "geo-101", "single_use": false}
      ]
    }

Question content is checked against the grading schemas here, so a quiz that
loads is a quiz the engine can grade.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from quizmaker.core.errors import GradingError
from quizmaker.core.grading import parse_content
from quizmaker.core.models import Question, QuestionType, Quiz, Visibility
from quizmaker.core.services.quiz_catalog import InMemoryQuizCatalog
from quizmaker.core.services.share_links import InMemoryShareLinkRegistry


class QuizImportError(Exception):
    """Raised when a quiz definition cannot be parsed."""


class _QuestionDocument(BaseModel):
    id: str = Field(min_length=1)
    type: QuestionType
    question_text: str = Field(min_length=1)
    content: dict[str, Any]
    explanation: str | None = None


class _QuizDocument(BaseModel):
    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    time_limit_minutes: int | None = Field(default=None, gt=0)
    visibility: Visibility = Visibility.PUBLIC
    questions: list[_QuestionDocument] = Field(min_length=1)


class _ShareLinkDocument(BaseModel):
    token: str = Field(min_length=1)
    share_link_id: str = Field(min_length=1)
    quiz_id: str = Field(min_length=1)
    expires_at: datetime | None = None
    single_use: bool = False

    @field_validator("expires_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class _ImportDocument(BaseModel):
    quizzes: list[_QuizDocument] = Field(min_length=1)
    share_links: list[_ShareLinkDocument] = Field(default_factory=list)


@dataclass(slots=True)
class ImportedQuiz:
    """A quiz and the questions it references, ready for the catalog."""

    quiz: Quiz
    questions: list[Question]


@dataclass(slots=True)
class ImportedCatalog:
    """Container for everything read from one import document."""

    source_path: Path | None
    quizzes: list[ImportedQuiz]
    share_links: list[_ShareLinkDocument] = field(default_factory=list)

    def register(self, catalog: InMemoryQuizCatalog, share_links: InMemoryShareLinkRegistry) -> None:
        for imported in self.quizzes:
            catalog.add_quiz(imported.quiz, imported.questions)
        for link in self.share_links:
            share_links.register(
                token=link.token,
                share_link_id=link.share_link_id,
                quiz_id=link.quiz_id,
                expires_at=link.expires_at,
                single_use=link.single_use,
            )


def load_quizzes_from_file(file_path: Path) -> ImportedCatalog:
    text = file_path.read_text(encoding="utf-8")
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise QuizImportError(f"{file_path} is not valid JSON: {exc.msg} (line {exc.lineno})") from exc
    imported = parse_quiz_document(raw)
    imported.source_path = file_path
    return imported


def parse_quiz_document(raw: object) -> ImportedCatalog:
    try:
        document = _ImportDocument.model_validate(raw)
    except ValidationError as exc:
        raise QuizImportError(f"Invalid quiz document: {exc.error_count()} error(s)\n{exc}") from exc

    quizzes = [_build_quiz(quiz_document) for quiz_document in document.quizzes]

    quiz_ids = [imported.quiz.id for imported in quizzes]
    if len(set(quiz_ids)) != len(quiz_ids):
        raise QuizImportError("Quiz ids must be unique.")
    question_ids = [question.id for imported in quizzes for question in imported.questions]
    if len(set(question_ids)) != len(question_ids):
        raise QuizImportError("Question ids must be unique across the document.")
    for link in document.share_links:
        if link.quiz_id not in quiz_ids:
            raise QuizImportError(f"Share link {link.share_link_id} points at unknown quiz {link.quiz_id}.")

    return ImportedCatalog(source_path=None, quizzes=quizzes, share_links=document.share_links)


def _build_quiz(document: _QuizDocument) -> ImportedQuiz:
    questions = [
        Question(
            id=question.id,
            type=question.type,
            question_text=question.question_text.strip(),
            content=question.content,
            explanation=question.explanation,
        )
        for question in document.questions
    ]
    for question in questions:
        try:
            parse_content(question)
        except GradingError as exc:
            raise QuizImportError(str(exc)) from exc

    quiz = Quiz(
        id=document.id,
        title=document.title.strip(),
        question_ids=[question.id for question in questions],
        time_limit_minutes=document.time_limit_minutes,
        visibility=document.visibility,
    )
    return ImportedQuiz(quiz=quiz, questions=questions)
