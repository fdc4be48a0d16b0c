from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class QuestionKind(str, Enum):
    """Canonical question kinds understood by the registry."""

    MULTIPLE_CHOICE = "multiple_choice"
    PICTURE_VOCABULARY = "picture_vocabulary"
    TRUE_FALSE = "true_false"
    FILL_IN_THE_BLANK = "fill_in_the_blank"
    MATCHING = "matching"
    SEQUENCE_ORDER = "sequence_order"
    LISTENING_SELECTION = "listening_selection"
    FLASHCARDS = "flashcards"
    ESSAY = "essay"
    SHORT_ANSWER = "short_answer"


class GradingStrategy(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


class AttemptState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    GRADED = "graded"
    EXPIRED = "expired"


class SubmissionKind(str, Enum):
    """How an attempt left the InProgress state."""

    VOLUNTARY = "voluntary"
    TIMEOUT = "timeout"


class Skill(str, Enum):
    VOCABULARY = "vocabulary"
    GRAMMAR = "grammar"
    READING = "reading"
    LISTENING = "listening"
    SPEAKING = "speaking"
    WRITING = "writing"
    COMPREHENSIVE = "comprehensive"


AnswerValue = Union[str, Tuple[str, ...]]


class QuestionDefinition(BaseModel):
    """Single question as published; immutable once an attempt starts."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    kind: str
    answer_spec: Dict[str, Any] = Field(default_factory=dict)
    points: float = Field(1.0, gt=0)
    grading_strategy: Optional[GradingStrategy] = None
    prompt: Optional[str] = None


class AssessmentDefinition(BaseModel):
    """Ordered questions plus timing and availability window."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    title: str = ""
    language: Optional[str] = None
    level: Optional[str] = None
    skill: Optional[Skill] = None
    questions: List[QuestionDefinition] = Field(default_factory=list)
    duration_seconds: Optional[int] = Field(None, gt=0)
    open_at: Optional[datetime] = None
    close_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def accept_duration_minutes(cls, data: Any) -> Any:
        # Authoring payloads express duration in minutes.
        if isinstance(data, dict) and "duration_minutes" in data:
            data = dict(data)
            minutes = data.pop("duration_minutes")
            if data.get("duration_seconds") is None and minutes:
                data["duration_seconds"] = int(minutes * 60)
        return data

    @field_validator("questions")
    @classmethod
    def unique_question_ids(cls, value: List[QuestionDefinition]) -> List[QuestionDefinition]:
        seen = set()
        for question in value:
            if question.id in seen:
                raise ValueError(f"duplicate question id: {question.id}")
            seen.add(question.id)
        return value

    @model_validator(mode="after")
    def window_is_ordered(self) -> "AssessmentDefinition":
        if self.open_at and self.close_at and self.close_at < self.open_at:
            raise ValueError("close_at must not precede open_at")
        return self

    @property
    def is_timed(self) -> bool:
        return self.duration_seconds is not None

    @property
    def max_score(self) -> float:
        return sum(question.points for question in self.questions)

    def question(self, question_id: str) -> Optional[QuestionDefinition]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None


class AttemptAnswer(BaseModel):
    """Learner response stored under a single answer key."""

    model_config = ConfigDict(frozen=True)

    answer_key: str = Field(..., min_length=1)
    value: AnswerValue

    @field_validator("value", mode="before")
    @classmethod
    def coerce_scalars(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return tuple(str(item) for item in value)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class GradingResult(BaseModel):
    """Output of the auto-grader for one frozen attempt."""

    model_config = ConfigDict(frozen=True)

    per_question_score: Dict[str, Optional[float]]
    raw_score: float
    max_score: float

    @property
    def pending(self) -> List[str]:
        return [qid for qid, score in self.per_question_score.items() if score is None]

    @property
    def is_complete(self) -> bool:
        return not self.pending


class Attempt(BaseModel):
    """Aggregate root describing one learner's pass at an assessment."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    assessment_id: str
    learner_id: str
    state: AttemptState = AttemptState.NOT_STARTED
    started_at: Optional[datetime] = None
    deadline_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    submission_kind: Optional[SubmissionKind] = None
    answers: Dict[str, AttemptAnswer] = Field(default_factory=dict)
    auto_scores: Dict[str, Optional[float]] = Field(default_factory=dict)
    manual_scores: Dict[str, float] = Field(default_factory=dict)
    feedback: Dict[str, str] = Field(default_factory=dict)
    overall_feedback: Optional[str] = None
    raw_score: Optional[float] = None
    max_score: Optional[float] = None
    final_score_percent: Optional[float] = None
    graded_at: Optional[datetime] = None
    grading_revision: int = 0

    @property
    def is_finalized(self) -> bool:
        return self.state in (
            AttemptState.SUBMITTED,
            AttemptState.EXPIRED,
            AttemptState.GRADED,
        )

    @property
    def question_scores(self) -> Dict[str, Optional[float]]:
        """Effective per-question scores: instructor scores override auto scores."""
        merged: Dict[str, Optional[float]] = dict(self.auto_scores)
        merged.update(self.manual_scores)
        return merged

    def pending_questions(self) -> List[str]:
        return [qid for qid, score in self.question_scores.items() if score is None]


@dataclass
class AssessmentRecord:
    """Entry in a learner's assessment history."""

    date: datetime
    level: Optional[str]
    score: float
    attempt_id: Optional[str] = None
    correction: bool = False


@dataclass
class Achievement:
    name: str
    description: str
    date: datetime
    skill: Optional[str] = None


@dataclass
class SkillRecommendation:
    skill: str
    recommendation: str


@dataclass
class Activity:
    """Recent learning activity shown on the learner dashboard."""

    type: str
    name: str
    date: datetime
    score: Optional[float] = None
    skill: Optional[str] = None
    result: Optional[str] = None


@dataclass
class ProficiencyProfile:
    """Per-learner, per-language proficiency state folded from graded attempts."""

    learner_id: str
    language: str
    current_level: Optional[str] = None
    start_level: Optional[str] = None
    start_date: Optional[datetime] = None
    study_hours: float = 0.0
    completed_questions: int = 0
    vocab_mastered: int = 0
    skill_breakdown: Dict[str, float] = field(default_factory=dict)
    skill_progress_history: Dict[str, List[float]] = field(default_factory=dict)
    assessment_history: List[AssessmentRecord] = field(default_factory=list)
    recent_activities: List[Activity] = field(default_factory=list)
    achievements: List[Achievement] = field(default_factory=list)
    weak_areas: List[SkillRecommendation] = field(default_factory=list)
    strong_areas: List[SkillRecommendation] = field(default_factory=list)

    def has_achievement(self, name: str) -> bool:
        return any(achievement.name == name for achievement in self.achievements)
