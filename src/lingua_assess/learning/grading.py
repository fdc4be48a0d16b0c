from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional

from lingua_assess.errors import ConfigurationError
from lingua_assess.learning.answers import collect_response
from lingua_assess.learning.models import (
    AssessmentDefinition,
    Attempt,
    AttemptAnswer,
    GradingResult,
    GradingStrategy,
    QuestionDefinition,
)
from lingua_assess.learning.question_types import QuestionTypeRegistry, default_registry

logger = logging.getLogger(__name__)


class AutoGrader:
    """
    Score the auto-gradable questions of a finalized attempt.

    Grading is a pure function of the frozen answers and the assessment
    definition: running it again on the same inputs yields the same result,
    so instructor re-grading never disturbs auto scores.

    Manually graded questions, unknown kinds and questions whose answer
    specification no longer validates are reported as ``None`` (pending) rather
    than raising, so an in-flight submission is never lost to a bad definition.
    Missing answers earn zero credit.

    Examples
    --------
    >>> grader = AutoGrader()
    >>> result = grader.grade(attempt, assessment)
    >>> result.per_question_score
    {'q1': 1.0, 'essay': None}
    >>> result.raw_score, result.max_score
    (1.0, 3.0)
    """

    def __init__(self, registry: Optional[QuestionTypeRegistry] = None):
        self.registry = registry or default_registry()

    def grade(self, attempt: Attempt, assessment: AssessmentDefinition) -> GradingResult:
        return self.grade_answers(attempt.answers, assessment)

    def grade_answers(
        self,
        answers: Mapping[str, AttemptAnswer],
        assessment: AssessmentDefinition,
    ) -> GradingResult:
        per_question: Dict[str, Optional[float]] = {}
        raw_score = 0.0
        for question in assessment.questions:
            score = self.score_question(question, answers)
            per_question[question.id] = score
            if score is not None:
                raw_score += score
        return GradingResult(
            per_question_score=per_question,
            raw_score=raw_score,
            max_score=assessment.max_score,
        )

    def score_question(
        self,
        question: QuestionDefinition,
        answers: Mapping[str, AttemptAnswer],
    ) -> Optional[float]:
        """Points earned on one question, or ``None`` when it awaits an instructor."""
        question_type = self.registry.lookup(question.kind)
        if question_type is None:
            logger.warning(
                "Question %s has unknown kind %r; leaving it for manual grading",
                question.id,
                question.kind,
            )
            return None
        if self.registry.strategy_for(question) is GradingStrategy.MANUAL:
            return None
        try:
            spec = question_type.validate(question.answer_spec)
        except ConfigurationError as exc:
            logger.warning("Question %s cannot be auto-graded: %s", question.id, exc)
            return None
        response = collect_response(question.id, question_type.parts(spec), answers)
        return question_type.credit(spec, response) * question.points
