"""Question type registry.

Every question kind the platform knows about is declared here together with
the shape of its answer specification and whether it can be graded without
an instructor. Grading code never branches on kinds directly; it asks the
registry for a :class:`QuestionType` and calls ``credit``.

The two authoring front ends use different spellings for overlapping kinds
(``multiple-choice`` vs ``multiple_choice``, ``fill-in-blank`` vs
``fill_in_the_blank``). Both normalize to a single :class:`QuestionKind`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type

from pydantic import AliasChoices, BaseModel, Field, ValidationError, model_validator

from lingua_assess.errors import ConfigurationError
from lingua_assess.learning.models import (
    AssessmentDefinition,
    GradingStrategy,
    QuestionDefinition,
    QuestionKind,
)

logger = logging.getLogger(__name__)

KIND_ALIASES: Dict[str, QuestionKind] = {
    "fill_in_blank": QuestionKind.FILL_IN_THE_BLANK,
    "fill_blank": QuestionKind.FILL_IN_THE_BLANK,
    "mcq": QuestionKind.MULTIPLE_CHOICE,
    "choice": QuestionKind.MULTIPLE_CHOICE,
    "truefalse": QuestionKind.TRUE_FALSE,
    "sequence": QuestionKind.SEQUENCE_ORDER,
    "listening": QuestionKind.LISTENING_SELECTION,
    "flashcard": QuestionKind.FLASHCARDS,
    "free_response": QuestionKind.SHORT_ANSWER,
}


# ---------------------------------------------------------------------------
# Answer specifications
# ---------------------------------------------------------------------------


class ChoiceSpec(BaseModel):
    """Options plus a designated correct option (by value or zero-based index)."""

    options: List[str] = Field(..., min_length=1)
    correct_answer: Optional[str] = Field(
        None, validation_alias=AliasChoices("correct_answer", "correctAnswer")
    )
    correct_index: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def correct_option_is_listed(self) -> "ChoiceSpec":
        if self.correct_index is not None:
            if self.correct_index >= len(self.options):
                raise ValueError("correct_index is outside the option list")
        elif self.correct_answer is None:
            raise ValueError("either correct_answer or correct_index is required")
        elif self.correct_answer not in self.options:
            raise ValueError("correct_answer must be one of the options")
        return self

    @property
    def expected(self) -> str:
        if self.correct_index is not None:
            return self.options[self.correct_index]
        return self.correct_answer or ""

    @property
    def expected_index(self) -> int:
        if self.correct_index is not None:
            return self.correct_index
        return self.options.index(self.expected)


class PictureVocabularySpec(ChoiceSpec):
    media_url: Optional[str] = None


class ListeningSelectionSpec(ChoiceSpec):
    audio_url: Optional[str] = None


class TrueFalseSpec(BaseModel):
    correct_answer: bool = Field(
        ..., validation_alias=AliasChoices("correct_answer", "correctAnswer")
    )

    @property
    def expected(self) -> str:
        return "true" if self.correct_answer else "false"


class BlankSentence(BaseModel):
    id: str = Field(..., min_length=1)
    text: str = ""
    answer: str


class FillInTheBlankSpec(BaseModel):
    """Either a single ``answer`` or several ``sentences`` graded independently."""

    answer: Optional[str] = Field(
        None, validation_alias=AliasChoices("answer", "correct_answer", "correctAnswer")
    )
    sentences: List[BlankSentence] = Field(default_factory=list)
    choices: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def single_or_multi(self) -> "FillInTheBlankSpec":
        if self.sentences and self.answer is not None:
            raise ValueError("use either answer or sentences, not both")
        if not self.sentences and self.answer is None:
            raise ValueError("an answer or at least one sentence is required")
        _require_unique([sentence.id for sentence in self.sentences], "sentence")
        return self


class MatchPair(BaseModel):
    id: str = Field(..., min_length=1)
    term: str
    translation: str


class MatchingSpec(BaseModel):
    pairs: List[MatchPair] = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("pairs", "match_items", "matchItems"),
    )

    @model_validator(mode="after")
    def unique_pairs(self) -> "MatchingSpec":
        _require_unique([pair.id for pair in self.pairs], "pair")
        return self


class SequenceOrderSpec(BaseModel):
    sequence: List[str] = Field(..., min_length=1)
    correct_order: List[int] = Field(
        ..., validation_alias=AliasChoices("correct_order", "correctOrder")
    )

    @model_validator(mode="after")
    def order_is_permutation(self) -> "SequenceOrderSpec":
        if sorted(self.correct_order) != list(range(len(self.sequence))):
            raise ValueError("correct_order must be a permutation of the sequence indices")
        return self


class Flashcard(BaseModel):
    id: str = Field(..., min_length=1)
    term: str
    translation: str = ""
    example: Optional[str] = None


class FlashcardsSpec(BaseModel):
    cards: List[Flashcard] = Field(
        ..., min_length=1, validation_alias=AliasChoices("cards", "words")
    )

    @model_validator(mode="after")
    def unique_cards(self) -> "FlashcardsSpec":
        _require_unique([card.id for card in self.cards], "card")
        return self


class FreeResponseSpec(BaseModel):
    prompt: Optional[str] = None
    reference_answer: Optional[str] = None
    min_words: Optional[int] = Field(None, ge=0)


def _require_unique(ids: List[str], label: str) -> None:
    if len(ids) != len(set(ids)):
        raise ValueError(f"{label} ids must be unique")


# ---------------------------------------------------------------------------
# Correctness rules
# ---------------------------------------------------------------------------


def _as_text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _exact_choice(spec: ChoiceSpec, value: Any) -> float:
    return 1.0 if _as_text(value) == spec.expected else 0.0


def _choice_or_index(spec: ChoiceSpec, value: Any) -> float:
    text = _as_text(value)
    if text is None:
        return 0.0
    if text == spec.expected or text == str(spec.expected_index):
        return 1.0
    return 0.0


def _true_false(spec: TrueFalseSpec, value: Any) -> float:
    return 1.0 if _as_text(value) == spec.expected else 0.0


def _blank_matches(expected: str, value: Any) -> bool:
    text = _as_text(value)
    return text is not None and text.strip() == expected.strip()


def _fill_in_the_blank(spec: FillInTheBlankSpec, value: Any) -> float:
    if not spec.sentences:
        return 1.0 if _blank_matches(spec.answer or "", value) else 0.0
    parts = value if isinstance(value, Mapping) else {}
    correct = sum(
        1 for sentence in spec.sentences if _blank_matches(sentence.answer, parts.get(sentence.id))
    )
    return correct / len(spec.sentences)


def _matching(spec: MatchingSpec, value: Any) -> float:
    parts = value if isinstance(value, Mapping) else {}
    correct = sum(
        1 for pair in spec.pairs if _blank_matches(pair.translation, parts.get(pair.id))
    )
    return correct / len(spec.pairs)


def _sequence_order(spec: SequenceOrderSpec, value: Any) -> float:
    if isinstance(value, str):
        submitted = [item.strip() for item in value.split(",")]
    elif isinstance(value, (list, tuple)):
        submitted = [str(item).strip() for item in value]
    else:
        return 0.0
    return 1.0 if submitted == [str(index) for index in spec.correct_order] else 0.0


def _no_parts(spec: BaseModel) -> Tuple[str, ...]:
    return ()


def _sentence_parts(spec: FillInTheBlankSpec) -> Tuple[str, ...]:
    return tuple(sentence.id for sentence in spec.sentences)


def _pair_parts(spec: MatchingSpec) -> Tuple[str, ...]:
    return tuple(pair.id for pair in spec.pairs)


def _card_parts(spec: FlashcardsSpec) -> Tuple[str, ...]:
    return tuple(card.id for card in spec.cards)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QuestionType:
    """Grading contract for one question kind."""

    kind: QuestionKind
    grading_strategy: GradingStrategy
    spec_model: Type[BaseModel]
    rule: Optional[Callable[[Any, Any], float]] = None
    parts: Callable[[Any], Tuple[str, ...]] = _no_parts

    @property
    def auto_gradable(self) -> bool:
        return self.grading_strategy is GradingStrategy.AUTO and self.rule is not None

    def validate(self, answer_spec: Mapping[str, Any] | BaseModel) -> BaseModel:
        """Parse a raw answer specification, raising ``ConfigurationError`` when malformed."""
        if isinstance(answer_spec, self.spec_model):
            return answer_spec
        try:
            return self.spec_model.model_validate(dict(answer_spec or {}))
        except ValidationError as exc:
            raise ConfigurationError(
                f"Invalid answer specification for {self.kind.value}: {exc}"
            ) from exc

    def sub_items(self, answer_spec: Mapping[str, Any] | BaseModel) -> Tuple[str, ...]:
        """Sub-item ids answered under composite keys; empty for single-part kinds."""
        return self.parts(self.validate(answer_spec))

    def credit(self, answer_spec: Mapping[str, Any] | BaseModel, answer_value: Any) -> float:
        """Fraction of the question answered correctly, in ``[0, 1]``.

        Multi-part kinds expect ``answer_value`` to map sub-item ids to values.
        """
        if not self.auto_gradable:
            raise ConfigurationError(f"{self.kind.value} questions are graded manually")
        return self.rule(self.validate(answer_spec), answer_value)

    def is_correct(self, answer_spec: Mapping[str, Any] | BaseModel, answer_value: Any) -> bool:
        return self.credit(answer_spec, answer_value) == 1.0


class QuestionTypeRegistry:
    """Lookup table from kind to :class:`QuestionType`."""

    def __init__(self) -> None:
        self._types: Dict[QuestionKind, QuestionType] = {}

    def register(self, question_type: QuestionType) -> None:
        self._types[question_type.kind] = question_type

    @property
    def kinds(self) -> List[QuestionKind]:
        return list(self._types)

    def normalize_kind(self, raw: str | QuestionKind) -> QuestionKind:
        """Map any known spelling onto its canonical kind."""
        if isinstance(raw, QuestionKind):
            return raw
        key = str(raw).strip().lower().replace("-", "_").replace(" ", "_")
        if key in KIND_ALIASES:
            return KIND_ALIASES[key]
        try:
            return QuestionKind(key)
        except ValueError as exc:
            raise ConfigurationError(f"Unknown question kind: {raw!r}") from exc

    def get(self, kind: str | QuestionKind) -> QuestionType:
        canonical = self.normalize_kind(kind)
        if canonical not in self._types:
            raise ConfigurationError(f"Question kind {canonical.value} is not registered")
        return self._types[canonical]

    def lookup(self, kind: str | QuestionKind) -> Optional[QuestionType]:
        """Like :meth:`get` but returns ``None`` for unknown kinds."""
        try:
            return self.get(kind)
        except ConfigurationError:
            return None

    def strategy_for(self, question: QuestionDefinition) -> GradingStrategy:
        """Effective strategy: unknown kinds and manual overrides grade manually."""
        question_type = self.lookup(question.kind)
        if question_type is None or not question_type.auto_gradable:
            return GradingStrategy.MANUAL
        return question.grading_strategy or question_type.grading_strategy

    def validate_question(self, question: QuestionDefinition) -> QuestionType:
        question_type = self.get(question.kind)
        question_type.validate(question.answer_spec)
        if (
            question.grading_strategy is GradingStrategy.AUTO
            and not question_type.auto_gradable
        ):
            raise ConfigurationError(
                f"Question {question.id}: {question_type.kind.value} cannot be auto-graded"
            )
        return question_type

    def validate_assessment(self, assessment: AssessmentDefinition) -> None:
        """Check every question of an assessment before it is published."""
        for question in assessment.questions:
            try:
                self.validate_question(question)
            except ConfigurationError as exc:
                raise ConfigurationError(
                    f"Assessment {assessment.id}, question {question.id}: {exc}"
                ) from exc
        logger.debug("Validated %d questions for %s", len(assessment.questions), assessment.id)


def default_registry() -> QuestionTypeRegistry:
    """Registry populated with every built-in question kind."""
    registry = QuestionTypeRegistry()
    auto, manual = GradingStrategy.AUTO, GradingStrategy.MANUAL
    for question_type in (
        QuestionType(QuestionKind.MULTIPLE_CHOICE, auto, ChoiceSpec, _exact_choice),
        QuestionType(QuestionKind.PICTURE_VOCABULARY, auto, PictureVocabularySpec, _exact_choice),
        QuestionType(QuestionKind.LISTENING_SELECTION, auto, ListeningSelectionSpec, _choice_or_index),
        QuestionType(QuestionKind.TRUE_FALSE, auto, TrueFalseSpec, _true_false),
        QuestionType(
            QuestionKind.FILL_IN_THE_BLANK, auto, FillInTheBlankSpec, _fill_in_the_blank, _sentence_parts
        ),
        QuestionType(QuestionKind.MATCHING, auto, MatchingSpec, _matching, _pair_parts),
        QuestionType(QuestionKind.SEQUENCE_ORDER, auto, SequenceOrderSpec, _sequence_order),
        QuestionType(QuestionKind.FLASHCARDS, manual, FlashcardsSpec, parts=_card_parts),
        QuestionType(QuestionKind.ESSAY, manual, FreeResponseSpec),
        QuestionType(QuestionKind.SHORT_ANSWER, manual, FreeResponseSpec),
    ):
        registry.register(question_type)
    return registry
