from .attempts import AttemptStateMachine
from .answers import AnswerStore, answer_key
from .grading import AutoGrader
from .models import (
    AssessmentDefinition,
    Attempt,
    AttemptAnswer,
    AttemptState,
    GradingResult,
    GradingStrategy,
    ProficiencyProfile,
    QuestionDefinition,
    QuestionKind,
    Skill,
    SubmissionKind,
)
from .proficiency import ProficiencyAggregator
from .progress import ProgressTracker
from .question_types import QuestionType, QuestionTypeRegistry, default_registry

__all__ = [
    "AnswerStore",
    "AssessmentDefinition",
    "Attempt",
    "AttemptAnswer",
    "AttemptState",
    "AttemptStateMachine",
    "AutoGrader",
    "GradingResult",
    "GradingStrategy",
    "ProficiencyAggregator",
    "ProficiencyProfile",
    "ProgressTracker",
    "QuestionDefinition",
    "QuestionKind",
    "QuestionType",
    "QuestionTypeRegistry",
    "Skill",
    "SubmissionKind",
    "answer_key",
    "default_registry",
]
