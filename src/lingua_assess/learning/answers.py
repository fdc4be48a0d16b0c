from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional

from lingua_assess.errors import StaleAnswerError
from lingua_assess.learning.models import AnswerValue, AttemptAnswer

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "-"


def answer_key(question_id: str, sub_item_id: Optional[str] = None) -> str:
    """Compose the key a response is stored under.

    Single-part questions use the question id; multi-part questions (several
    blanks, several matching pairs) use ``"{question_id}-{sub_item_id}"``.
    """
    if sub_item_id is None:
        return question_id
    return f"{question_id}{KEY_SEPARATOR}{sub_item_id}"


def collect_response(
    question_id: str,
    sub_items: Iterable[str],
    answers: Mapping[str, AttemptAnswer],
) -> Any:
    """Gather the value(s) answering one question.

    Returns the stored value for single-part questions and a mapping of
    sub-item id to value for multi-part ones. Only declared sub-items are
    collected, so a question id that happens to prefix another question's id
    never picks up foreign answers. Missing answers are simply absent.
    """
    sub_items = list(sub_items)
    if not sub_items:
        answer = answers.get(question_id)
        return answer.value if answer is not None else None
    collected: Dict[str, AnswerValue] = {}
    for sub_item in sub_items:
        answer = answers.get(answer_key(question_id, sub_item))
        if answer is not None:
            collected[sub_item] = answer.value
    return collected


class AnswerStore:
    """In-progress answers for a single attempt.

    Writes are last-write-wins per key. Once :meth:`freeze` has been called
    (at submission or expiry) the store rejects further writes with
    :class:`StaleAnswerError` and keeps its contents untouched.
    """

    def __init__(self, attempt_id: str, initial: Optional[Mapping[str, AttemptAnswer]] = None):
        self.attempt_id = attempt_id
        self._answers: Dict[str, AttemptAnswer] = dict(initial or {})
        self._frozen = False

    def __len__(self) -> int:
        return len(self._answers)

    def __contains__(self, key: object) -> bool:
        return key in self._answers

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def set_answer(self, key: str, value: Any) -> AttemptAnswer:
        if self._frozen:
            logger.warning("Rejected write to frozen answer store %s (key=%s)", self.attempt_id, key)
            raise StaleAnswerError(self.attempt_id, "finalized", key)
        answer = AttemptAnswer(answer_key=key, value=value)
        self._answers[key] = answer
        return answer

    def get_answers(self) -> Mapping[str, AttemptAnswer]:
        """Read-only snapshot; later writes do not show through it."""
        return MappingProxyType(dict(self._answers))

    def freeze(self) -> Mapping[str, AttemptAnswer]:
        """Close the store and return the final snapshot."""
        self._frozen = True
        return self.get_answers()
