from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from lingua_assess.config.schema import ProficiencyConfig
from lingua_assess.learning.feedback import rank_skills
from lingua_assess.learning.models import (
    Achievement,
    Activity,
    AssessmentDefinition,
    AssessmentRecord,
    Attempt,
    AttemptState,
    ProficiencyProfile,
    Skill,
    SubmissionKind,
)

logger = logging.getLogger(__name__)


class ProficiencyAggregator:
    """
    Fold graded attempts into a learner's per-language proficiency profile.

    Each graded attempt appends to the assessment history, blends its score
    into the skill breakdown, extends the skill's progress series, grants any
    newly earned achievements and recomputes weak/strong areas.

    Blending
    --------
    ``new = round((1 - w) * old + w * score)`` with ``w = blend_weight``
    (0.3 by default). A skill with no previous value takes the score as is.

    Re-grades
    ---------
    An attempt whose ``grading_revision`` is above zero is a correction: it
    appends a history entry flagged ``correction=True`` and blends again, but
    does not count questions, study time or vocabulary a second time.

    Examples
    --------
    >>> aggregator = ProficiencyAggregator()
    >>> profile = ProficiencyProfile(learner_id="learner-1", language="french")
    >>> aggregator.apply(profile, graded_attempt, Skill.VOCABULARY, assessment)
    >>> profile.skill_breakdown
    {'vocabulary': 80.0}
    >>> [a.name for a in profile.achievements]
    ['First Assessment']
    """

    def __init__(self, config: Optional[ProficiencyConfig] = None):
        self.config = config or ProficiencyConfig()

    def apply(
        self,
        profile: ProficiencyProfile,
        attempt: Attempt,
        skill: Skill | str,
        assessment: Optional[AssessmentDefinition] = None,
    ) -> ProficiencyProfile:
        """Update ``profile`` in place from a graded attempt and return it."""
        if attempt.state is not AttemptState.GRADED or attempt.final_score_percent is None:
            logger.warning(
                "Attempt %s is not graded (state=%s); profile left unchanged",
                attempt.id,
                attempt.state.value,
            )
            return profile

        skill_name = skill.value if isinstance(skill, Skill) else str(skill)
        score = attempt.final_score_percent
        level = assessment.level if assessment else None
        correction = attempt.grading_revision > 0
        date = attempt.submitted_at or attempt.graded_at

        profile.assessment_history.append(
            AssessmentRecord(
                date=date,
                level=level,
                score=score,
                attempt_id=attempt.id,
                correction=correction,
            )
        )
        if profile.start_date is None:
            profile.start_date = date
        if level:
            profile.start_level = profile.start_level or level
            profile.current_level = level

        blended = self._blend(profile.skill_breakdown.get(skill_name), score)
        profile.skill_breakdown[skill_name] = blended
        history = profile.skill_progress_history.setdefault(skill_name, [])
        history.append(blended)
        if self.config.skill_history_limit is not None:
            del history[: -self.config.skill_history_limit]

        if not correction:
            self._record_effort(profile, attempt, skill_name, score, assessment)
        self._record_activity(profile, attempt, skill_name, score, assessment, correction)

        for name, description, achievement_skill in self._earned(profile, skill_name, score):
            if profile.has_achievement(name):
                continue
            profile.achievements.append(
                Achievement(name=name, description=description, date=date, skill=achievement_skill)
            )
            logger.info("Learner %s earned achievement %r", profile.learner_id, name)

        profile.weak_areas, profile.strong_areas = rank_skills(
            profile.skill_breakdown, self.config.recommendation_count
        )
        logger.info(
            "Updated profile for %s/%s: skill=%s score=%.2f blended=%.0f correction=%s",
            profile.learner_id,
            profile.language,
            skill_name,
            score,
            blended,
            correction,
        )
        return profile

    def _blend(self, previous: Optional[float], score: float) -> float:
        if previous is None:
            return float(round(score))
        weight = self.config.blend_weight
        return float(round((1 - weight) * previous + weight * score))

    def _record_effort(
        self,
        profile: ProficiencyProfile,
        attempt: Attempt,
        skill_name: str,
        score: float,
        assessment: Optional[AssessmentDefinition],
    ) -> None:
        if assessment is not None:
            profile.completed_questions += len(assessment.questions)
        if attempt.started_at and attempt.submitted_at:
            elapsed = (attempt.submitted_at - attempt.started_at).total_seconds()
            profile.study_hours += max(0.0, elapsed) / 3600
        if skill_name == Skill.VOCABULARY.value and score > self.config.vocab_mastery_threshold:
            profile.vocab_mastered += self.config.vocab_mastered_increment

    def _record_activity(
        self,
        profile: ProficiencyProfile,
        attempt: Attempt,
        skill_name: str,
        score: float,
        assessment: Optional[AssessmentDefinition],
        correction: bool,
    ) -> None:
        name = (assessment.title or assessment.id) if assessment else attempt.assessment_id
        if correction:
            result = "regraded"
        elif attempt.submission_kind is SubmissionKind.TIMEOUT:
            result = "time expired"
        else:
            result = "completed"
        profile.recent_activities.insert(
            0,
            Activity(
                type="assessment",
                name=name,
                date=attempt.graded_at or attempt.submitted_at,
                score=score,
                skill=skill_name,
                result=result,
            ),
        )
        del profile.recent_activities[self.config.recent_activity_limit :]

    def _earned(
        self, profile: ProficiencyProfile, skill_name: str, score: float
    ) -> List[Tuple[str, str, Optional[str]]]:
        completed = sum(1 for record in profile.assessment_history if not record.correction)
        earned: List[Tuple[str, str, Optional[str]]] = []
        if completed >= 1:
            earned.append(("First Assessment", "Completed your first graded assessment.", None))
        if score >= self.config.excellence_threshold:
            earned.append(
                (
                    f"{skill_name.capitalize()} Excellence",
                    f"Scored {self.config.excellence_threshold:.0f}% or higher in {skill_name}.",
                    skill_name,
                )
            )
        if score >= 100:
            earned.append(("Perfect Score", "Answered every question correctly.", skill_name))
        if completed >= self.config.persistent_learner_count:
            earned.append(
                (
                    "Persistent Learner",
                    f"Completed {self.config.persistent_learner_count} graded assessments.",
                    None,
                )
            )
        return earned
