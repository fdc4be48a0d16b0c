from __future__ import annotations

from datetime import timedelta

from lingua_assess.learning.attempts import AttemptStateMachine
from lingua_assess.learning.grading import AutoGrader
from lingua_assess.learning.results import attempt_to_markdown, summarize_attempt


def test_summary_of_pending_attempt(essay_assessment, t0):
    machine = AttemptStateMachine.create(essay_assessment, "learner-1")
    machine.start(t0)
    machine.submit(t0 + timedelta(minutes=12, seconds=5), {"q1": "b", "essay": "Bonjour."})
    machine.apply_grading(AutoGrader().grade(machine.attempt, essay_assessment), t0)

    summary = summarize_attempt(machine.attempt, essay_assessment)
    assert summary.time_spent_seconds == 725
    assert summary.pending == ["essay"]
    first, essay = summary.questions
    assert first.is_correct is False
    assert first.expected_answer == "a"
    assert essay.expected_answer is None
    assert essay.your_answer == "Bonjour."

    markdown = attempt_to_markdown(summary)
    assert "awaiting grading for 1 question)" in markdown
    assert "**Time spent:** 12:05" in markdown


def test_summary_of_expired_attempt(vocab_assessment, t0):
    machine = AttemptStateMachine.create(vocab_assessment, "learner-1")
    machine.start(t0)
    machine.poll(t0 + timedelta(minutes=10))
    machine.apply_grading(AutoGrader().grade(machine.attempt, vocab_assessment), t0)

    summary = summarize_attempt(machine.attempt, vocab_assessment)
    assert summary.timed_out
    assert summary.final_score_percent == 0
    matching = summary.questions[3]
    assert matching.your_answer == {}
    assert matching.expected_answer == {"p1": "cat", "p2": "dog"}
    assert "Submitted automatically" in attempt_to_markdown(summary)
