from __future__ import annotations

import logging

import pytest

from lingua_assess.learning.grading import AutoGrader
from lingua_assess.learning.models import AssessmentDefinition, AttemptAnswer


def _answers(raw):
    return {key: AttemptAnswer(answer_key=key, value=value) for key, value in raw.items()}


def test_full_marks(vocab_assessment, full_answers):
    result = AutoGrader().grade_answers(_answers(full_answers), vocab_assessment)
    assert result.is_complete
    assert result.raw_score == result.max_score == 8


def test_partial_credit_and_missing_answers(vocab_assessment):
    answers = _answers(
        {
            "q1": "Lyon",
            "q3-s1": "suis",
            "q3-s2": "parle",
            "q4-p1": "cat",
            "q4-p2": "dog",
            "q5": "2,0,1",
            "q6": "1",
        }
    )
    result = AutoGrader().grade_answers(answers, vocab_assessment)
    assert result.per_question_score == {
        "q1": 0.0,
        "q2": 0.0,
        "q3": 1.0,
        "q4": 2.0,
        "q5": 1.0,
        "q6": 1.0,
    }
    assert result.raw_score == 5.0


def test_grading_is_deterministic(vocab_assessment, full_answers):
    grader = AutoGrader()
    answers = _answers(full_answers)
    assert grader.grade_answers(answers, vocab_assessment) == grader.grade_answers(
        answers, vocab_assessment
    )


def test_manual_questions_are_pending(essay_assessment):
    result = AutoGrader().grade_answers(_answers({"q1": "a", "essay": "..."}), essay_assessment)
    assert result.per_question_score == {"q1": 1.0, "essay": None}
    assert result.pending == ["essay"]
    assert result.raw_score == 1.0
    assert result.max_score == 3.0


def test_bad_definitions_become_pending_instead_of_raising(caplog):
    assessment = AssessmentDefinition.model_validate(
        {
            "id": "legacy",
            "questions": [
                {"id": "q1", "kind": "crossword"},
                {"id": "q2", "kind": "multiple_choice", "answer_spec": {"options": []}},
                {"id": "q3", "kind": "true_false", "answer_spec": {"correct_answer": True}},
            ],
        }
    )
    with caplog.at_level(logging.WARNING):
        result = AutoGrader().grade_answers(_answers({"q3": "true"}), assessment)
    assert result.per_question_score == {"q1": None, "q2": None, "q3": 1.0}
    assert "crossword" in caplog.text


def _single(kind, answer_spec, points=1):
    return AssessmentDefinition.model_validate(
        {
            "id": "single",
            "questions": [{"id": "q1", "kind": kind, "points": points, "answer_spec": answer_spec}],
        }
    )


MATCHING_SPEC = {
    "pairs": [
        {"id": "p1", "term": "chat", "translation": "cat"},
        {"id": "p2", "term": "chien", "translation": "dog"},
        {"id": "p3", "term": "oiseau", "translation": "bird"},
        {"id": "p4", "term": "poisson", "translation": "fish"},
    ]
}
SEQUENCE_SPEC = {"sequence": ["a", "b", "c", "d"], "correct_order": [0, 2, 1, 3]}


@pytest.mark.parametrize(
    ("kind", "answer_spec", "raw", "expected"),
    [
        (
            "matching",
            MATCHING_SPEC,
            {"q1-p1": "cat", "q1-p2": "dog", "q1-p3": "bird", "q1-p4": "cow"},
            0.75,
        ),
        ("matching", MATCHING_SPEC, {"q1-p1": " cat "}, 0.25),
        ("sequence_order", SEQUENCE_SPEC, {"q1": "2,0,1,3"}, 0.0),
        ("sequence_order", SEQUENCE_SPEC, {"q1": ["0", "2", "1", "3"]}, 1.0),
        ("fill_in_the_blank", {"answer": "Paris"}, {"q1": "Paris"}, 1.0),
        ("fill_in_the_blank", {"answer": "Paris"}, {"q1": "paris"}, 0.0),
    ],
)
def test_single_question_credit(kind, answer_spec, raw, expected):
    result = AutoGrader().grade_answers(_answers(raw), _single(kind, answer_spec))
    assert result.per_question_score == {"q1": pytest.approx(expected)}
    assert result.max_score == 1


def test_no_answers_scores_zero(vocab_assessment):
    result = AutoGrader().grade_answers({}, vocab_assessment)
    assert result.is_complete
    assert result.raw_score == 0
    assert result.max_score == 8
