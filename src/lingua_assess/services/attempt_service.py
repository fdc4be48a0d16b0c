"""Service layer for attempt operations - separates callers from the state machine.

This module gives a UI (web handler, CLI, scheduler) one API for the attempt
lifecycle. Every entry point receives an explicit :class:`SessionContext`
instead of reading ambient auth state, and ``submit``/``expire`` return the
attempt id directly so callers can navigate to results without a side channel.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from lingua_assess.errors import PermissionDeniedError
from lingua_assess.learning.attempts import AttemptStateMachine
from lingua_assess.learning.grading import AutoGrader
from lingua_assess.learning.models import (
    AssessmentDefinition,
    Attempt,
    AttemptAnswer,
    AttemptState,
    ProficiencyProfile,
    Skill,
)
from lingua_assess.learning.proficiency import ProficiencyAggregator
from lingua_assess.learning.question_types import QuestionTypeRegistry, default_registry
from lingua_assess.learning.results import (
    AssessmentStats,
    AttemptSummary,
    summarize_assessment,
    summarize_attempt,
)

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "default"


class Role(str, Enum):
    LEARNER = "learner"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


@dataclass(frozen=True)
class SessionContext:
    """Identity of the caller, passed explicitly into every service call."""

    user_id: str
    role: Role = Role.LEARNER

    @property
    def can_grade(self) -> bool:
        return self.role in (Role.INSTRUCTOR, Role.ADMIN)


class AssessmentSource(Protocol):
    def get(self, assessment_id: str) -> AssessmentDefinition: ...


class AttemptRepository(Protocol):
    def get(self, attempt_id: str) -> Attempt: ...

    def save(self, attempt: Attempt) -> None: ...

    def find(
        self, *, learner_id: Optional[str] = None, assessment_id: Optional[str] = None
    ) -> List[Attempt]: ...


class ProfileRepository(Protocol):
    def load_profile(self, learner_id: str, language: str) -> ProficiencyProfile: ...

    def save_profile(self, profile: ProficiencyProfile) -> None: ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AttemptService:
    """Drive attempts from start to graded profile update.

    One :class:`AttemptStateMachine` is cached per attempt until it is graded
    so that a learner's submit and the timer's expiry for the same attempt
    contend on the same lock. Graded attempts are evicted and rehydrated from
    the attempt store on their next use.
    """

    def __init__(
        self,
        assessments: AssessmentSource,
        attempts: AttemptRepository,
        profiles: ProfileRepository,
        *,
        registry: Optional[QuestionTypeRegistry] = None,
        grader: Optional[AutoGrader] = None,
        aggregator: Optional[ProficiencyAggregator] = None,
        clock: Callable[[], datetime] = utc_now,
        score_precision: int = 2,
    ):
        self.assessments = assessments
        self.attempts = attempts
        self.profiles = profiles
        self.registry = registry or default_registry()
        self.grader = grader or AutoGrader(self.registry)
        self.aggregator = aggregator or ProficiencyAggregator()
        self.clock = clock
        self.score_precision = score_precision
        self._machines: Dict[str, AttemptStateMachine] = {}
        self._machines_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Learner operations
    # ------------------------------------------------------------------

    def start_attempt(self, context: SessionContext, assessment_id: str) -> Attempt:
        assessment = self.assessments.get(assessment_id)
        machine = AttemptStateMachine.create(
            assessment, context.user_id, score_precision=self.score_precision
        )
        machine.start(self.clock())
        with self._machines_lock:
            self._machines[machine.attempt.id] = machine
        self.attempts.save(machine.attempt)
        return machine.attempt

    def record_answer(
        self, context: SessionContext, attempt_id: str, key: str, value: Any
    ) -> AttemptAnswer:
        machine = self._machine(attempt_id)
        self._require_owner(context, machine.attempt)
        now = self._expire_if_due(machine)
        answer = machine.set_answer(key, value, now)
        self.attempts.save(machine.attempt)
        return answer

    def remaining_time(self, context: SessionContext, attempt_id: str) -> Optional[int]:
        machine = self._machine(attempt_id)
        self._require_owner(context, machine.attempt)
        return machine.remaining(self.clock())

    def submit(
        self,
        context: SessionContext,
        attempt_id: str,
        answers: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Finalize on learner request, auto-grade, and return the attempt id.

        Raises ``AlreadySubmittedError`` when the timer (or an earlier submit)
        already finalized the attempt, or when the deadline has passed; in
        that case the attempt is expired and graded first and the answers
        passed here are discarded.
        """
        machine = self._machine(attempt_id)
        self._require_owner(context, machine.attempt)
        machine.submit(self._expire_if_due(machine), answers)
        self._grade_and_publish(machine)
        return attempt_id

    # ------------------------------------------------------------------
    # Timer operations
    # ------------------------------------------------------------------

    def expire(self, attempt_id: str) -> str:
        """Finalize an attempt whose deadline passed; raises if it was already finalized."""
        machine = self._machine(attempt_id)
        machine.expire(self.clock())
        self._grade_and_publish(machine)
        return attempt_id

    def tick(self, attempt_id: str) -> bool:
        """Scheduler hook; returns ``True`` only for the tick that expired the attempt."""
        machine = self._machine(attempt_id)
        if not machine.poll(self.clock()):
            return False
        self._grade_and_publish(machine)
        return True

    # ------------------------------------------------------------------
    # Instructor operations
    # ------------------------------------------------------------------

    def grade_question(
        self,
        context: SessionContext,
        attempt_id: str,
        question_id: str,
        score: float,
        feedback: Optional[str] = None,
    ) -> Attempt:
        self._require_grader(context)
        machine = self._machine(attempt_id)
        feedback_before = machine.attempt.feedback.get(question_id)
        changed = machine.grade_question(question_id, score, self.clock(), feedback)
        if not changed and machine.attempt.feedback.get(question_id) == feedback_before:
            return machine.attempt
        self.attempts.save(machine.attempt)
        if not changed:
            logger.info(
                "Instructor %s updated feedback for %s on attempt %s",
                context.user_id,
                question_id,
                attempt_id,
            )
            return machine.attempt
        logger.info(
            "Instructor %s scored %s on attempt %s: %s",
            context.user_id,
            question_id,
            attempt_id,
            score,
        )
        if machine.state is AttemptState.GRADED:
            self._aggregate(machine)
            self._evict(machine)
        return machine.attempt

    def set_overall_feedback(
        self, context: SessionContext, attempt_id: str, feedback: str
    ) -> Attempt:
        self._require_grader(context)
        machine = self._machine(attempt_id)
        machine.set_overall_feedback(feedback)
        self.attempts.save(machine.attempt)
        return machine.attempt

    def list_attempts(self, context: SessionContext, assessment_id: str) -> List[Attempt]:
        self._require_grader(context)
        return self.attempts.find(assessment_id=assessment_id)

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    def assessment_stats(self, context: SessionContext, assessment_id: str) -> AssessmentStats:
        """Attempt count and average final score for one assessment."""
        self._require_grader(context)
        assessment = self.assessments.get(assessment_id)
        return summarize_assessment(
            assessment,
            self.attempts.find(assessment_id=assessment_id),
            self.score_precision,
        )

    def results(self, context: SessionContext, attempt_id: str) -> AttemptSummary:
        machine = self._machine(attempt_id)
        if not context.can_grade:
            self._require_owner(context, machine.attempt)
        return summarize_attempt(machine.attempt, machine.assessment, self.registry)

    def profile(
        self, context: SessionContext, learner_id: str, language: str
    ) -> ProficiencyProfile:
        if not context.can_grade and context.user_id != learner_id:
            raise PermissionDeniedError(f"{context.user_id} cannot view {learner_id}'s profile")
        return self.profiles.load_profile(learner_id, language)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _machine(self, attempt_id: str) -> AttemptStateMachine:
        with self._machines_lock:
            machine = self._machines.get(attempt_id)
            if machine is None:
                attempt = self.attempts.get(attempt_id)
                assessment = self.assessments.get(attempt.assessment_id)
                machine = AttemptStateMachine(
                    attempt, assessment, score_precision=self.score_precision
                )
                self._machines[attempt_id] = machine
            return machine

    def _evict(self, machine: AttemptStateMachine) -> None:
        # Graded attempts are persisted; later calls rehydrate from the store.
        with self._machines_lock:
            if self._machines.get(machine.attempt.id) is machine:
                del self._machines[machine.attempt.id]

    def _expire_if_due(self, machine: AttemptStateMachine) -> datetime:
        now = self.clock()
        if machine.poll(now):
            self._grade_and_publish(machine)
        return now

    def _grade_and_publish(self, machine: AttemptStateMachine) -> None:
        now = self.clock()
        result = self.grader.grade(machine.attempt, machine.assessment)
        graded = machine.apply_grading(result, now)
        self.attempts.save(machine.attempt)
        if graded:
            self._aggregate(machine)
            self._evict(machine)
        else:
            logger.info(
                "Attempt %s awaits manual grading for %s",
                machine.attempt.id,
                ", ".join(result.pending),
            )

    def _aggregate(self, machine: AttemptStateMachine) -> None:
        assessment = machine.assessment
        language = assessment.language or DEFAULT_LANGUAGE
        profile = self.profiles.load_profile(machine.attempt.learner_id, language)
        self.aggregator.apply(
            profile,
            machine.attempt,
            assessment.skill or Skill.COMPREHENSIVE,
            assessment,
        )
        self.profiles.save_profile(profile)

    @staticmethod
    def _require_owner(context: SessionContext, attempt: Attempt) -> None:
        if context.user_id != attempt.learner_id:
            raise PermissionDeniedError(
                f"{context.user_id} cannot act on attempt {attempt.id}"
            )

    @staticmethod
    def _require_grader(context: SessionContext) -> None:
        if not context.can_grade:
            raise PermissionDeniedError(f"{context.user_id} is not allowed to grade")
