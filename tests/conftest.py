"""Shared fixtures for the assessment engine tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from lingua_assess.learning.models import AssessmentDefinition
from lingua_assess.learning.question_types import default_registry

T0 = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable clock passed wherever a ``now`` callable is expected."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def vocab_assessment() -> AssessmentDefinition:
    """Timed French vocabulary check covering every auto-graded kind."""
    return AssessmentDefinition.model_validate(
        {
            "id": "french-a2-vocab",
            "title": "French A2 Vocabulary",
            "language": "french",
            "level": "A2",
            "skill": "vocabulary",
            "duration_seconds": 600,
            "questions": [
                {
                    "id": "q1",
                    "kind": "multiple_choice",
                    "prompt": "Capital of France?",
                    "answer_spec": {"options": ["Lyon", "Paris", "Nice"], "correct_answer": "Paris"},
                },
                {
                    "id": "q2",
                    "kind": "true_false",
                    "answer_spec": {"correct_answer": False},
                },
                {
                    "id": "q3",
                    "kind": "fill_in_the_blank",
                    "points": 2,
                    "answer_spec": {
                        "sentences": [
                            {"id": "s1", "text": "Je ___ étudiant.", "answer": "suis"},
                            {"id": "s2", "text": "Nous ___ français.", "answer": "parlons"},
                        ]
                    },
                },
                {
                    "id": "q4",
                    "kind": "matching",
                    "points": 2,
                    "answer_spec": {
                        "pairs": [
                            {"id": "p1", "term": "chat", "translation": "cat"},
                            {"id": "p2", "term": "chien", "translation": "dog"},
                        ]
                    },
                },
                {
                    "id": "q5",
                    "kind": "sequence_order",
                    "answer_spec": {"sequence": ["b", "c", "a"], "correct_order": [2, 0, 1]},
                },
                {
                    "id": "q6",
                    "kind": "listening_selection",
                    "answer_spec": {"options": ["un", "deux", "trois"], "correct_index": 1},
                },
            ],
        }
    )


@pytest.fixture
def essay_assessment() -> AssessmentDefinition:
    """Untimed writing assessment with one auto and one manual question."""
    return AssessmentDefinition.model_validate(
        {
            "id": "french-b1-writing",
            "title": "French B1 Writing",
            "language": "french",
            "level": "B1",
            "skill": "writing",
            "questions": [
                {
                    "id": "q1",
                    "kind": "multiple_choice",
                    "answer_spec": {"options": ["a", "b"], "correct_answer": "a"},
                },
                {
                    "id": "essay",
                    "kind": "essay",
                    "points": 2,
                    "answer_spec": {"prompt": "Décrivez votre ville."},
                },
            ],
        }
    )


def full_marks_answers():
    """Answers earning every point on ``vocab_assessment``."""
    return {
        "q1": "Paris",
        "q2": "false",
        "q3-s1": "suis",
        "q3-s2": "parlons",
        "q4-p1": "cat",
        "q4-p2": "dog",
        "q5": ("2", "0", "1"),
        "q6": "deux",
    }


@pytest.fixture
def full_answers():
    return full_marks_answers()
