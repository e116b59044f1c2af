"""Grading strategies, one per question type.

Each strategy is a pure function of (parsed content, parsed response). Both
sides are parsed through strict pydantic schemas first: a response that does
not fit its schema is the taker's fault and surfaces as a validation error,
while stored content that does not fit is an internal-consistency failure.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
import logging
from typing import Any, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
    model_validator,
)

from quizmaker.core.errors import GradingError, SubmissionValidationError
from quizmaker.core.models import GradeResult, Question, QuestionType

logger = logging.getLogger(__name__)

ItemId = Union[StrictStr, StrictInt]
Coordinate = Union[StrictInt, StrictFloat]

OPEN_RESPONSE_POLICY = (
    "OPEN answers are accepted when non-blank and stored without a correctness "
    "claim (is_correct=None, score=0.0) until reviewed by a person."
)


class _Schema(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


def _ensure_unique(ids: list[ItemId], label: str) -> None:
    seen: set[ItemId] = set()
    for item_id in ids:
        if item_id in seen:
            raise ValueError(f"{label} contains duplicate ID: {item_id}")
        seen.add(item_id)


# --- Content schemas ---


class TrueFalseContent(_Schema):
    answer: StrictBool


class ChoiceOption(_Schema):
    id: ItemId
    text: StrictStr = ""
    correct: StrictBool


class McqSingleContent(_Schema):
    options: list[ChoiceOption] = Field(min_length=2)

    @model_validator(mode="after")
    def _one_correct(self) -> McqSingleContent:
        _ensure_unique([option.id for option in self.options], "options")
        if sum(1 for option in self.options if option.correct) != 1:
            raise ValueError("MCQ_SINGLE must have exactly one correct option")
        return self


class McqMultiContent(_Schema):
    options: list[ChoiceOption] = Field(min_length=2)

    @model_validator(mode="after")
    def _some_correct(self) -> McqMultiContent:
        _ensure_unique([option.id for option in self.options], "options")
        if not any(option.correct for option in self.options):
            raise ValueError("MCQ_MULTI must have at least one correct option")
        return self


class Gap(_Schema):
    id: ItemId
    answer: StrictStr = Field(min_length=1)


class FillGapContent(_Schema):
    text: StrictStr = ""
    gaps: list[Gap] = Field(min_length=1)

    @model_validator(mode="after")
    def _unique_gaps(self) -> FillGapContent:
        _ensure_unique([gap.id for gap in self.gaps], "gaps")
        return self


class OrderingItem(_Schema):
    id: ItemId
    text: StrictStr = ""


class OrderingContent(_Schema):
    items: list[OrderingItem] = Field(min_length=2)
    correct_order: list[ItemId] | None = None

    @model_validator(mode="after")
    def _order_is_permutation(self) -> OrderingContent:
        item_ids = [item.id for item in self.items]
        _ensure_unique(item_ids, "items")
        if self.correct_order is not None and sorted(map(repr, self.correct_order)) != sorted(map(repr, item_ids)):
            raise ValueError("correct_order must list every item exactly once")
        return self

    def canonical_order(self) -> list[ItemId]:
        if self.correct_order is not None:
            return list(self.correct_order)
        return [item.id for item in self.items]


class Statement(_Schema):
    id: ItemId
    text: StrictStr = ""
    compliant: StrictBool


class ComplianceContent(_Schema):
    statements: list[Statement] = Field(min_length=1)

    @model_validator(mode="after")
    def _unique_statements(self) -> ComplianceContent:
        _ensure_unique([statement.id for statement in self.statements], "statements")
        return self


class Region(_Schema):
    id: ItemId
    x: Coordinate = 0
    y: Coordinate = 0
    width: Coordinate = 0
    height: Coordinate = 0
    correct: StrictBool


class HotspotContent(_Schema):
    image_url: StrictStr = ""
    regions: list[Region] = Field(min_length=1)

    @model_validator(mode="after")
    def _valid_regions(self) -> HotspotContent:
        _ensure_unique([region.id for region in self.regions], "regions")
        if not any(region.correct for region in self.regions):
            raise ValueError("HOTSPOT must have at least one correct region")
        return self


class OpenContent(_Schema):
    answer: StrictStr | None = None


# --- Response schemas ---


class TrueFalseResponse(_Schema):
    answer: StrictBool


class McqSingleResponse(_Schema):
    selected_option_id: ItemId


class McqMultiResponse(_Schema):
    selected_option_ids: list[ItemId]


class GapAnswer(_Schema):
    gap_id: ItemId
    answer: StrictStr


class FillGapResponse(_Schema):
    answers: list[GapAnswer]

    @field_validator("answers")
    @classmethod
    def _unique_gap_ids(cls, answers: list[GapAnswer]) -> list[GapAnswer]:
        _ensure_unique([answer.gap_id for answer in answers], "answers")
        return answers


class OrderingResponse(_Schema):
    ordered_item_ids: list[ItemId]


class ComplianceResponse(_Schema):
    selected_statement_ids: list[ItemId]


class HotspotResponse(_Schema):
    selected_region_id: ItemId


class OpenResponse(_Schema):
    answer: StrictStr

    @field_validator("answer")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("answer must not be blank")
        return value


# --- Strategies ---


def _binary(is_correct: bool) -> GradeResult:
    return GradeResult(is_correct=is_correct, score=1.0 if is_correct else 0.0)


def grade_true_false(content: TrueFalseContent, response: TrueFalseResponse) -> GradeResult:
    return _binary(response.answer == content.answer)


def grade_mcq_single(content: McqSingleContent, response: McqSingleResponse) -> GradeResult:
    correct_id = next(option.id for option in content.options if option.correct)
    return _binary(response.selected_option_id == correct_id)


def grade_mcq_multi(content: McqMultiContent, response: McqMultiResponse) -> GradeResult:
    # Exact set match only; subsets and supersets earn nothing.
    correct_ids = {option.id for option in content.options if option.correct}
    return _binary(set(response.selected_option_ids) == correct_ids)


def grade_fill_gap(content: FillGapContent, response: FillGapResponse) -> GradeResult:
    submitted = {answer.gap_id: answer.answer for answer in response.answers}
    return _binary(all(submitted.get(gap.id) == gap.answer for gap in content.gaps))


def grade_ordering(content: OrderingContent, response: OrderingResponse) -> GradeResult:
    return _binary(list(response.ordered_item_ids) == content.canonical_order())


def grade_compliance(content: ComplianceContent, response: ComplianceResponse) -> GradeResult:
    compliant_ids = {statement.id for statement in content.statements if statement.compliant}
    return _binary(set(response.selected_statement_ids) == compliant_ids)


def grade_hotspot(content: HotspotContent, response: HotspotResponse) -> GradeResult:
    correct_ids = {region.id for region in content.regions if region.correct}
    return _binary(response.selected_region_id in correct_ids)


def grade_open(content: OpenContent, response: OpenResponse) -> GradeResult:
    """See OPEN_RESPONSE_POLICY. The reference answer is never compared."""
    return GradeResult(is_correct=None, score=0.0)


@dataclass(slots=True, frozen=True)
class GradingStrategy:
    content_schema: type[_Schema]
    response_schema: type[_Schema]
    grade: Callable[[Any, Any], GradeResult]


GRADERS: dict[QuestionType, GradingStrategy] = {
    QuestionType.TRUE_FALSE: GradingStrategy(TrueFalseContent, TrueFalseResponse, grade_true_false),
    QuestionType.MCQ_SINGLE: GradingStrategy(McqSingleContent, McqSingleResponse, grade_mcq_single),
    QuestionType.MCQ_MULTI: GradingStrategy(McqMultiContent, McqMultiResponse, grade_mcq_multi),
    QuestionType.FILL_GAP: GradingStrategy(FillGapContent, FillGapResponse, grade_fill_gap),
    QuestionType.ORDERING: GradingStrategy(OrderingContent, OrderingResponse, grade_ordering),
    QuestionType.COMPLIANCE: GradingStrategy(ComplianceContent, ComplianceResponse, grade_compliance),
    QuestionType.HOTSPOT: GradingStrategy(HotspotContent, HotspotResponse, grade_hotspot),
    QuestionType.OPEN: GradingStrategy(OpenContent, OpenResponse, grade_open),
}


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "payload"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def _strategy_for(question_type: QuestionType) -> GradingStrategy:
    try:
        return GRADERS[question_type]
    except KeyError as exc:
        raise GradingError(f"No grading strategy for question type {question_type}") from exc


def parse_response(question_type: QuestionType, response: object) -> _Schema:
    """Validate a submitted response against its question type's schema."""
    if not isinstance(response, Mapping):
        raise SubmissionValidationError(f"Response for a {question_type.value} question must be an object.")
    strategy = _strategy_for(question_type)
    try:
        return strategy.response_schema.model_validate(dict(response))
    except ValidationError as exc:
        raise SubmissionValidationError(
            f"Invalid {question_type.value} response: {_describe(exc)}"
        ) from exc


def parse_content(question: Question) -> _Schema:
    """Validate stored question content. Failures are internal errors."""
    strategy = _strategy_for(question.type)
    try:
        return strategy.content_schema.model_validate(dict(question.content))
    except ValidationError as exc:
        raise GradingError(
            f"Question {question.id} has malformed {question.type.value} content: {_describe(exc)}"
        ) from exc


def grade(question: Question, response: object) -> GradeResult:
    """Grade ``response`` against ``question``.

    Raises SubmissionValidationError for a malformed response and GradingError
    for malformed stored content.
    """
    parsed_response = parse_response(question.type, response)
    parsed_content = parse_content(question)
    result = GRADERS[question.type].grade(parsed_content, parsed_response)
    logger.debug("Graded question %s (%s): %s", question.id, question.type.value, result)
    return result
