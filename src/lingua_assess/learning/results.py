from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, Field

from lingua_assess.errors import ConfigurationError
from lingua_assess.learning.answers import collect_response
from lingua_assess.learning.models import AssessmentDefinition, Attempt, AttemptState, SubmissionKind
from lingua_assess.learning.question_types import (
    ChoiceSpec,
    FillInTheBlankSpec,
    MatchingSpec,
    QuestionTypeRegistry,
    SequenceOrderSpec,
    TrueFalseSpec,
    default_registry,
)
from lingua_assess.learning.timer import format_remaining


class QuestionResult(BaseModel):
    """Per-question outcome shown on the results page."""

    question_id: str
    kind: str
    prompt: Optional[str] = None
    your_answer: Any = None
    expected_answer: Any = None
    is_correct: Optional[bool] = None
    score: Optional[float] = None
    max_score: float
    feedback: Optional[str] = None


class AttemptSummary(BaseModel):
    """Attempt-level view combining grading output and per-question detail."""

    attempt_id: str
    assessment_id: str
    title: str
    state: AttemptState
    timed_out: bool = False
    submitted_at: Optional[datetime] = None
    time_spent_seconds: Optional[int] = None
    raw_score: Optional[float] = None
    max_score: Optional[float] = None
    final_score_percent: Optional[float] = None
    pending: List[str] = Field(default_factory=list)
    overall_feedback: Optional[str] = None
    questions: List[QuestionResult] = Field(default_factory=list)


def _expected_answer(spec: BaseModel) -> Any:
    if isinstance(spec, (ChoiceSpec, TrueFalseSpec)):
        return spec.expected
    if isinstance(spec, FillInTheBlankSpec):
        if spec.sentences:
            return {sentence.id: sentence.answer for sentence in spec.sentences}
        return spec.answer
    if isinstance(spec, MatchingSpec):
        return {pair.id: pair.translation for pair in spec.pairs}
    if isinstance(spec, SequenceOrderSpec):
        return [str(index) for index in spec.correct_order]
    return None


def summarize_attempt(
    attempt: Attempt,
    assessment: AssessmentDefinition,
    registry: Optional[QuestionTypeRegistry] = None,
) -> AttemptSummary:
    """Build a results view for a finalized attempt."""
    registry = registry or default_registry()
    scores = attempt.question_scores
    questions: List[QuestionResult] = []
    for question in assessment.questions:
        question_type = registry.lookup(question.kind)
        expected: Any = None
        sub_items: tuple = ()
        if question_type is not None:
            try:
                spec = question_type.validate(question.answer_spec)
            except ConfigurationError:
                spec = None
            if spec is not None:
                sub_items = question_type.parts(spec)
                if question_type.auto_gradable:
                    expected = _expected_answer(spec)
        response = collect_response(question.id, sub_items, attempt.answers)
        if isinstance(response, tuple):
            response = list(response)
        score = scores.get(question.id)
        questions.append(
            QuestionResult(
                question_id=question.id,
                kind=question.kind,
                prompt=question.prompt,
                your_answer=response,
                expected_answer=expected,
                is_correct=None if score is None else score == question.points,
                score=score,
                max_score=question.points,
                feedback=attempt.feedback.get(question.id),
            )
        )

    time_spent = None
    if attempt.started_at and attempt.submitted_at:
        time_spent = int((attempt.submitted_at - attempt.started_at).total_seconds())
    return AttemptSummary(
        attempt_id=attempt.id,
        assessment_id=assessment.id,
        title=assessment.title or assessment.id,
        state=attempt.state,
        timed_out=attempt.submission_kind is SubmissionKind.TIMEOUT,
        submitted_at=attempt.submitted_at,
        time_spent_seconds=time_spent,
        raw_score=attempt.raw_score,
        max_score=attempt.max_score,
        final_score_percent=attempt.final_score_percent,
        pending=[item.question_id for item in questions if item.score is None],
        overall_feedback=attempt.overall_feedback,
        questions=questions,
    )


class AssessmentStats(BaseModel):
    """Per-assessment aggregate for instructor dashboards."""

    assessment_id: str
    attempt_count: int = 0
    graded_count: int = 0
    question_count: int = 0
    average_score: Optional[float] = None


def summarize_assessment(
    assessment: AssessmentDefinition,
    attempts: Iterable[Attempt],
    precision: int = 2,
) -> AssessmentStats:
    """Count attempts and average the final score; attempts without a score are skipped."""
    attempts = [attempt for attempt in attempts if attempt.assessment_id == assessment.id]
    scores = [
        attempt.final_score_percent
        for attempt in attempts
        if attempt.final_score_percent is not None
    ]
    return AssessmentStats(
        assessment_id=assessment.id,
        attempt_count=len(attempts),
        graded_count=len(scores),
        question_count=len(assessment.questions),
        average_score=round(sum(scores) / len(scores), precision) if scores else None,
    )


def _fmt_points(value: Optional[float]) -> str:
    if value is None:
        return "pending"
    return f"{value:g}"


def attempt_to_markdown(summary: AttemptSummary) -> str:
    """Convert an attempt summary to markdown for download/export."""
    lines: List[str] = [f"# {summary.title} - Results", ""]
    if summary.final_score_percent is not None:
        lines.append(f"**Score:** {summary.final_score_percent:g}%")
    else:
        lines.append(
            f"**Score:** {_fmt_points(summary.raw_score)} / {_fmt_points(summary.max_score)} "
            f"(awaiting grading for {len(summary.pending)} question"
            f"{'s' if len(summary.pending) != 1 else ''})"
        )
    if summary.time_spent_seconds is not None:
        lines.append(f"**Time spent:** {format_remaining(summary.time_spent_seconds)}")
    if summary.timed_out:
        lines.append("**Submitted automatically when time ran out.**")
    lines.append("")

    for idx, question in enumerate(summary.questions, start=1):
        lines.append(f"## Question {idx} ({question.kind})")
        if question.prompt:
            lines.append(question.prompt)
            lines.append("")
        lines.append(f"- Your answer: {question.your_answer if question.your_answer not in (None, {}) else '(none)'}")
        if question.expected_answer is not None:
            lines.append(f"- Expected: {question.expected_answer}")
        lines.append(f"- Points: {_fmt_points(question.score)} / {question.max_score:g}")
        if question.feedback:
            lines.append(f"- Feedback: {question.feedback}")
        lines.append("")

    if summary.overall_feedback:
        lines.append("---")
        lines.append(f"**Instructor feedback:** {summary.overall_feedback}")
        lines.append("")
    return "\n".join(lines)


def format_attempt_context(summary: AttemptSummary) -> str:
    """Summarize an attempt in a few plain lines (for logs and terminal output)."""
    if summary.final_score_percent is not None:
        headline = f"Score: {summary.final_score_percent:g}%"
    else:
        headline = f"Score: {_fmt_points(summary.raw_score)}/{_fmt_points(summary.max_score)} (pending)"
    lines: List[str] = [f"Attempt {summary.attempt_id}: {summary.title}", headline]
    for idx, question in enumerate(summary.questions, start=1):
        if question.is_correct is None:
            status = "awaiting grading"
        else:
            status = "correct" if question.is_correct else "incorrect"
        lines.append(f"- Q{idx}: {status}")
    return "\n".join(lines)
