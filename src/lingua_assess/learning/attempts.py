from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from lingua_assess.errors import (
    AlreadySubmittedError,
    AttemptStateError,
    OutOfWindowError,
    StaleAnswerError,
)
from lingua_assess.learning.answers import AnswerStore
from lingua_assess.learning.models import (
    AssessmentDefinition,
    Attempt,
    AttemptAnswer,
    AttemptState,
    GradingResult,
    SubmissionKind,
)
from lingua_assess.learning.timer import compute_deadline, compute_remaining, has_expired

logger = logging.getLogger(__name__)


class AttemptStateMachine:
    """
    Own the lifecycle of a single attempt.

    States move ``NOT_STARTED -> IN_PROGRESS -> SUBMITTED | EXPIRED -> GRADED``.
    The machine is the only place that decides whether a submission is
    accepted: ``submit`` (learner) and ``expire`` (timer) race for the same
    finalize slot, and whichever acquires it first wins. The loser receives
    :class:`AlreadySubmittedError` and its answers are discarded.

    Attributes
    ----------
    attempt : Attempt
        The aggregate being driven. Mutated in place; callers persist it.
    assessment : AssessmentDefinition
        Definition the attempt was started against.
    score_precision : int
        Decimal places kept in ``final_score_percent``.

    Examples
    --------
    >>> machine = AttemptStateMachine.create(assessment, learner_id="learner-1")
    >>> machine.start(now)
    >>> machine.set_answer("q1", "Paris")
    >>> attempt_id = machine.submit(now)
    >>> machine.apply_grading(AutoGrader().grade(machine.attempt, assessment), now)
    True
    """

    def __init__(
        self,
        attempt: Attempt,
        assessment: AssessmentDefinition,
        *,
        score_precision: int = 2,
    ):
        if attempt.assessment_id != assessment.id:
            raise ValueError(
                f"Attempt {attempt.id} belongs to {attempt.assessment_id}, not {assessment.id}"
            )
        self.attempt = attempt
        self.assessment = assessment
        self.score_precision = score_precision
        self._lock = threading.RLock()
        self._store = AnswerStore(attempt.id, attempt.answers)
        if attempt.is_finalized:
            self._store.freeze()

    @classmethod
    def create(
        cls,
        assessment: AssessmentDefinition,
        learner_id: str,
        *,
        attempt_id: Optional[str] = None,
        score_precision: int = 2,
    ) -> "AttemptStateMachine":
        """Build a machine around a fresh ``NOT_STARTED`` attempt."""
        fields: Dict[str, Any] = {"assessment_id": assessment.id, "learner_id": learner_id}
        if attempt_id:
            fields["id"] = attempt_id
        return cls(Attempt(**fields), assessment, score_precision=score_precision)

    @property
    def state(self) -> AttemptState:
        return self.attempt.state

    @property
    def answer_store(self) -> AnswerStore:
        return self._store

    # ------------------------------------------------------------------
    # Taking the attempt
    # ------------------------------------------------------------------

    def start(self, now: datetime) -> Attempt:
        with self._lock:
            if self.attempt.state is not AttemptState.NOT_STARTED:
                raise AttemptStateError(
                    f"Attempt {self.attempt.id} cannot start from {self.attempt.state.value}"
                )
            open_at, close_at = self.assessment.open_at, self.assessment.close_at
            if (open_at and now < open_at) or (close_at and now > close_at):
                raise OutOfWindowError(
                    f"Assessment {self.assessment.id} is only open between "
                    f"{open_at or '-'} and {close_at or '-'}"
                )
            self.attempt.state = AttemptState.IN_PROGRESS
            self.attempt.started_at = now
            self.attempt.deadline_at = compute_deadline(now, self.assessment.duration_seconds)
            logger.info(
                "Attempt %s started by %s (deadline=%s)",
                self.attempt.id,
                self.attempt.learner_id,
                self.attempt.deadline_at,
            )
            return self.attempt

    def set_answer(self, key: str, value: Any, now: Optional[datetime] = None) -> AttemptAnswer:
        """Record one answer.

        When ``now`` is given and the deadline has passed, the attempt is
        expired first and the write is rejected with :class:`StaleAnswerError`.
        """
        with self._lock:
            if now is not None:
                self._expire_if_due(now)
            if self.attempt.state is not AttemptState.IN_PROGRESS:
                logger.warning(
                    "Rejected answer %s for attempt %s in state %s",
                    key,
                    self.attempt.id,
                    self.attempt.state.value,
                )
                raise StaleAnswerError(self.attempt.id, self.attempt.state.value, key)
            answer = self._store.set_answer(key, value)
            self.attempt.answers[key] = answer
            return answer

    def remaining(self, now: datetime) -> Optional[int]:
        """Seconds left while in progress; ``None`` for untimed attempts."""
        if self.attempt.deadline_at is None:
            return None
        if self.attempt.state is not AttemptState.IN_PROGRESS:
            return 0
        return compute_remaining(now, self.attempt.deadline_at)

    # ------------------------------------------------------------------
    # Finalizing
    # ------------------------------------------------------------------

    def submit(self, now: datetime, answers: Optional[Mapping[str, Any]] = None) -> str:
        """Finalize on learner request and return the attempt id.

        ``answers`` is an optional last batch of writes applied before the
        store is frozen. A submit at or after the deadline expires the attempt
        instead (answers discarded) and raises :class:`AlreadySubmittedError`.
        """
        with self._lock:
            self._ensure_finalizable()
            if self._expire_if_due(now):
                raise AlreadySubmittedError(self.attempt.id, self.attempt.state.value)
            for key, value in (answers or {}).items():
                self.set_answer(key, value)
            self._finalize(AttemptState.SUBMITTED, SubmissionKind.VOLUNTARY, now)
            return self.attempt.id

    def expire(self, now: datetime) -> str:
        """Finalize because the deadline passed and return the attempt id.

        ``submitted_at`` records the deadline itself, the moment time ran out.
        """
        with self._lock:
            self._ensure_finalizable()
            if not has_expired(now, self.attempt.deadline_at):
                raise AttemptStateError(
                    f"Attempt {self.attempt.id} has not reached its deadline"
                )
            self._finalize(AttemptState.EXPIRED, SubmissionKind.TIMEOUT, self.attempt.deadline_at)
            return self.attempt.id

    def poll(self, now: datetime) -> bool:
        """Timer tick: expire the attempt if due.

        Returns ``True`` only for the tick that performed the expiry; every
        later tick (or a tick after a voluntary submit) is a silent no-op.
        """
        with self._lock:
            return self._expire_if_due(now)

    def _expire_if_due(self, now: datetime) -> bool:
        if self.attempt.state is not AttemptState.IN_PROGRESS:
            return False
        if not has_expired(now, self.attempt.deadline_at):
            return False
        self.expire(now)
        return True

    def _ensure_finalizable(self) -> None:
        if self.attempt.is_finalized:
            logger.warning(
                "Attempt %s already finalized as %s; rejecting duplicate finalize",
                self.attempt.id,
                self.attempt.state.value,
            )
            raise AlreadySubmittedError(self.attempt.id, self.attempt.state.value)
        if self.attempt.state is not AttemptState.IN_PROGRESS:
            raise AttemptStateError(f"Attempt {self.attempt.id} has not been started")

    def _finalize(self, state: AttemptState, kind: SubmissionKind, when: datetime) -> None:
        self.attempt.answers = dict(self._store.freeze())
        self.attempt.state = state
        self.attempt.submission_kind = kind
        self.attempt.submitted_at = when
        logger.info(
            "Attempt %s %s with %d answers",
            self.attempt.id,
            "expired" if kind is SubmissionKind.TIMEOUT else "submitted",
            len(self.attempt.answers),
        )

    # ------------------------------------------------------------------
    # Grading
    # ------------------------------------------------------------------

    def apply_grading(self, result: GradingResult, now: datetime) -> bool:
        """Record auto-grader output; returns ``True`` when the attempt is fully graded."""
        with self._lock:
            self._ensure_gradable()
            self.attempt.auto_scores = dict(result.per_question_score)
            self._recompute(now)
            return self.attempt.state is AttemptState.GRADED

    def grade_question(
        self,
        question_id: str,
        score: float,
        now: datetime,
        feedback: Optional[str] = None,
    ) -> bool:
        """Record an instructor score for one question.

        Returns ``True`` only when the effective score of the question changed.
        Feedback is stored either way; a feedback-only edit is not a re-grade.
        """
        with self._lock:
            self._ensure_gradable()
            question = self.assessment.question(question_id)
            if question is None:
                raise AttemptStateError(
                    f"Question {question_id} is not part of assessment {self.assessment.id}"
                )
            if not 0 <= score <= question.points:
                raise AttemptStateError(
                    f"Score for {question_id} must be between 0 and {question.points}"
                )
            if feedback is not None:
                self.attempt.feedback[question_id] = feedback
            if self.attempt.question_scores.get(question_id) == score:
                return False
            was_graded = self.attempt.state is AttemptState.GRADED
            self.attempt.manual_scores[question_id] = float(score)
            self._recompute(now)
            if was_graded and self.attempt.state is AttemptState.GRADED:
                self.attempt.graded_at = now
                self.attempt.grading_revision += 1
                logger.info(
                    "Attempt %s re-graded (revision %d)",
                    self.attempt.id,
                    self.attempt.grading_revision,
                )
            return True

    def set_overall_feedback(self, feedback: str) -> None:
        with self._lock:
            self._ensure_gradable()
            self.attempt.overall_feedback = feedback

    def _ensure_gradable(self) -> None:
        if not self.attempt.is_finalized:
            raise AttemptStateError(
                f"Attempt {self.attempt.id} must be submitted before grading"
            )

    def _recompute(self, now: datetime) -> None:
        scores = {
            question.id: self.attempt.manual_scores.get(
                question.id, self.attempt.auto_scores.get(question.id)
            )
            for question in self.assessment.questions
        }
        max_score = self.assessment.max_score
        self.attempt.raw_score = sum(score for score in scores.values() if score is not None)
        self.attempt.max_score = max_score
        if any(score is None for score in scores.values()):
            self.attempt.final_score_percent = None
            self.attempt.graded_at = None
            if self.attempt.state is AttemptState.GRADED:
                self.attempt.state = (
                    AttemptState.EXPIRED
                    if self.attempt.submission_kind is SubmissionKind.TIMEOUT
                    else AttemptState.SUBMITTED
                )
            return
        percent = self.attempt.raw_score / max_score * 100 if max_score else 0.0
        self.attempt.final_score_percent = round(percent, self.score_precision)
        if self.attempt.state is not AttemptState.GRADED:
            self.attempt.state = AttemptState.GRADED
            self.attempt.graded_at = now
            logger.info(
                "Attempt %s graded: %.2f%%",
                self.attempt.id,
                self.attempt.final_score_percent,
            )
