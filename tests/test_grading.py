from __future__ import annotations

import pytest

from quizmaker.core.errors import GradingError, SubmissionValidationError
from quizmaker.core.grading import GRADERS, grade, parse_content
from quizmaker.core.models import Question, QuestionType

from conftest import CORRECT_RESPONSES, questions_by_id

QUESTIONS = questions_by_id()


def _grade(question_id: str, response: dict):
    return grade(QUESTIONS[question_id], response)


def test_every_question_type_has_a_strategy():
    assert set(GRADERS) == set(QuestionType)


@pytest.mark.parametrize("question_id", ["tf", "mcq", "multi", "gap", "order", "comp", "hot"])
def test_correct_responses_score_full_marks(question_id):
    result = _grade(question_id, CORRECT_RESPONSES[question_id])
    assert result.is_correct is True
    assert result.score == 1.0


def test_true_false():
    assert _grade("tf", {"answer": True}).score == 1.0
    wrong = _grade("tf", {"answer": False})
    assert wrong.is_correct is False
    assert wrong.score == 0.0


def test_true_false_rejects_string_booleans():
    with pytest.raises(SubmissionValidationError):
        _grade("tf", {"answer": "true"})


def test_mcq_single_wrong_option():
    assert _grade("mcq", {"selected_option_id": "a"}).is_correct is False


def test_mcq_single_unknown_option_is_incorrect():
    assert _grade("mcq", {"selected_option_id": "zzz"}).is_correct is False


def test_mcq_multi_requires_exact_set():
    assert _grade("multi", {"selected_option_ids": ["a", "b"]}).is_correct is False
    assert _grade("multi", {"selected_option_ids": ["a"]}).is_correct is False
    assert _grade("multi", {"selected_option_ids": ["a", "b", "c"]}).is_correct is False


def test_mcq_multi_duplicates_in_selection_do_not_matter():
    assert _grade("multi", {"selected_option_ids": ["a", "c", "a"]}).is_correct is True


def test_fill_gap_is_case_sensitive():
    response = {"answers": [{"gap_id": 1, "answer": "paris"}, {"gap_id": 2, "answer": "Seine"}]}
    assert _grade("gap", response).is_correct is False


def test_fill_gap_missing_gap_is_incorrect():
    assert _grade("gap", {"answers": [{"gap_id": 1, "answer": "Paris"}]}).is_correct is False


def test_fill_gap_ignores_undeclared_gaps():
    response = {
        "answers": [
            {"gap_id": 1, "answer": "Paris"},
            {"gap_id": 2, "answer": "Seine"},
            {"gap_id": 9, "answer": "extra"},
        ]
    }
    assert _grade("gap", response).is_correct is True


def test_fill_gap_duplicate_gap_ids_are_rejected():
    response = {"answers": [{"gap_id": 1, "answer": "Paris"}, {"gap_id": 1, "answer": "Lyon"}]}
    with pytest.raises(SubmissionValidationError):
        _grade("gap", response)


def test_ids_compare_by_type():
    response = {"answers": [{"gap_id": "1", "answer": "Paris"}, {"gap_id": "2", "answer": "Seine"}]}
    assert _grade("gap", response).is_correct is False
    assert _grade("comp", {"selected_statement_ids": ["1", "3"]}).is_correct is False


def test_ordering_uses_correct_order():
    assert _grade("order", {"ordered_item_ids": ["x", "y", "z"]}).is_correct is False


def test_ordering_falls_back_to_item_order():
    question = Question(
        id="plain-order",
        type=QuestionType.ORDERING,
        question_text="Alphabet",
        content={"items": [{"id": "a"}, {"id": "b"}, {"id": "c"}]},
    )
    assert grade(question, {"ordered_item_ids": ["a", "b", "c"]}).is_correct is True
    assert grade(question, {"ordered_item_ids": ["b", "a", "c"]}).is_correct is False


def test_compliance_requires_exact_compliant_set():
    assert _grade("comp", {"selected_statement_ids": [1]}).is_correct is False
    assert _grade("comp", {"selected_statement_ids": [1, 2, 3]}).is_correct is False


def test_hotspot_accepts_any_correct_region():
    assert _grade("hot", {"selected_region_id": "r3"}).is_correct is True
    assert _grade("hot", {"selected_region_id": "r1"}).is_correct is False
    assert _grade("hot", {"selected_region_id": "missing"}).is_correct is False


def test_open_makes_no_correctness_claim():
    result = _grade("open", {"answer": "Something thoughtful"})
    assert result.is_correct is None
    assert result.score == 0.0


def test_open_rejects_blank_answer():
    with pytest.raises(SubmissionValidationError):
        _grade("open", {"answer": "   "})


def test_missing_response_field_is_a_validation_error():
    with pytest.raises(SubmissionValidationError) as excinfo:
        _grade("mcq", {})
    assert "selected_option_id" in str(excinfo.value)


def test_non_mapping_response_is_a_validation_error():
    with pytest.raises(SubmissionValidationError):
        _grade("tf", ["answer", True])


def test_grading_is_deterministic():
    response = {"selected_option_ids": ["a", "c"]}
    results = {_grade("multi", response) for _ in range(5)}
    assert len(results) == 1


def test_malformed_content_is_a_grading_error():
    broken = Question(
        id="broken",
        type=QuestionType.MCQ_SINGLE,
        question_text="Two right answers",
        content={
            "options": [
                {"id": "a", "correct": True},
                {"id": "b", "correct": True},
            ]
        },
    )
    with pytest.raises(GradingError):
        parse_content(broken)
    with pytest.raises(GradingError):
        grade(broken, {"selected_option_id": "a"})


def test_response_is_validated_before_content():
    broken = Question(id="broken", type=QuestionType.TRUE_FALSE, question_text="?", content={})
    with pytest.raises(SubmissionValidationError):
        grade(broken, {})
