from __future__ import annotations

import pytest

from lingua_assess.errors import StaleAnswerError
from lingua_assess.learning.answers import AnswerStore, answer_key, collect_response


def test_last_write_wins():
    store = AnswerStore("attempt-1")
    store.set_answer("q1", "Lyon")
    store.set_answer("q1", "Paris")
    assert len(store) == 1
    assert store.get_answers()["q1"].value == "Paris"


def test_lists_are_stored_as_ordered_tuples():
    store = AnswerStore("attempt-1")
    answer = store.set_answer("q5", ["2", 0, "1"])
    assert answer.value == ("2", "0", "1")


def test_snapshot_is_read_only_and_detached():
    store = AnswerStore("attempt-1")
    store.set_answer("q1", "a")
    snapshot = store.get_answers()
    store.set_answer("q2", "b")
    assert "q2" not in snapshot
    with pytest.raises(TypeError):
        snapshot["q3"] = "c"


def test_frozen_store_rejects_writes():
    store = AnswerStore("attempt-1")
    store.set_answer("q1", "a")
    final = store.freeze()
    with pytest.raises(StaleAnswerError) as excinfo:
        store.set_answer("q1", "b")
    assert excinfo.value.answer_key == "q1"
    assert store.is_frozen
    assert final["q1"].value == "a"


def test_composite_keys():
    assert answer_key("q3") == "q3"
    assert answer_key("q3", "s1") == "q3-s1"


def test_collect_response_ignores_foreign_prefixes():
    store = AnswerStore("attempt-1")
    store.set_answer("q1-a", "x")
    store.set_answer("q1-b", "y")
    store.set_answer("q1-extra", "z")
    store.set_answer("q10-a", "w")
    answers = store.get_answers()
    assert collect_response("q1", ("a", "b", "c"), answers) == {"a": "x", "b": "y"}
    assert collect_response("q2", (), answers) is None
