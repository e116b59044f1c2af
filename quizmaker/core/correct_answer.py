"""What a taker may see of a question, and what the right answer was."""

from __future__ import annotations

import random
from typing import Any

from quizmaker.core.errors import GradingError
from quizmaker.core.grading import (
    ComplianceContent,
    FillGapContent,
    HotspotContent,
    McqMultiContent,
    McqSingleContent,
    OpenContent,
    OrderingContent,
    TrueFalseContent,
    parse_content,
)
from quizmaker.core.models import Question, QuestionType, SafeQuestion


def extract_correct_answer(question: Question) -> dict[str, Any]:
    """Return the normalised correct answer for ``question``.

    Raises GradingError when the stored content is malformed.
    """
    content = parse_content(question)
    if isinstance(content, TrueFalseContent):
        return {"answer": content.answer}
    if isinstance(content, McqSingleContent):
        return {"correct_option_id": next(option.id for option in content.options if option.correct)}
    if isinstance(content, McqMultiContent):
        return {"correct_option_ids": [option.id for option in content.options if option.correct]}
    if isinstance(content, FillGapContent):
        return {"answers": [{"gap_id": gap.id, "answer": gap.answer} for gap in content.gaps]}
    if isinstance(content, OrderingContent):
        return {"order": content.canonical_order()}
    if isinstance(content, ComplianceContent):
        return {"compliant_ids": [statement.id for statement in content.statements if statement.compliant]}
    if isinstance(content, HotspotContent):
        return {"region_ids": [region.id for region in content.regions if region.correct]}
    if isinstance(content, OpenContent):
        return {"answer": content.answer}
    raise GradingError(f"No correct answer extractor for question type {question.type}")


def build_safe_content(question: Question) -> dict[str, Any]:
    """Strip every correctness marker from the question content.

    Ordering items are shuffled with a generator seeded by the question id, so
    the stored order never leaks and the view stays stable across requests.
    """
    content = parse_content(question)
    if question.type is QuestionType.TRUE_FALSE:
        return {}
    if isinstance(content, (McqSingleContent, McqMultiContent)):
        return {"options": [{"id": option.id, "text": option.text} for option in content.options]}
    if isinstance(content, FillGapContent):
        return {"text": content.text, "gaps": [{"id": gap.id} for gap in content.gaps]}
    if isinstance(content, OrderingContent):
        items = [{"id": item.id, "text": item.text} for item in content.items]
        random.Random(question.id).shuffle(items)
        return {"items": items}
    if isinstance(content, ComplianceContent):
        return {"statements": [{"id": statement.id, "text": statement.text} for statement in content.statements]}
    if isinstance(content, HotspotContent):
        return {
            "image_url": content.image_url,
            "regions": [
                {"id": region.id, "x": region.x, "y": region.y, "width": region.width, "height": region.height}
                for region in content.regions
            ],
        }
    return {}


def to_safe_question(question: Question) -> SafeQuestion:
    return SafeQuestion(
        question_id=question.id,
        type=question.type,
        question_text=question.question_text,
        content=build_safe_content(question),
    )
