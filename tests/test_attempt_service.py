"""End-to-end tests for the attempt service with file-backed stores."""

from __future__ import annotations

import threading

import pytest

from lingua_assess.errors import AlreadySubmittedError, PermissionDeniedError, StaleAnswerError
from lingua_assess.learning.models import AttemptState, SubmissionKind
from lingua_assess.learning.progress import ProgressTracker
from lingua_assess.services import AttemptService, Role, SessionContext
from lingua_assess.storage import AssessmentCatalog, AttemptJsonlStore

LEARNER = SessionContext("learner-1")
OTHER = SessionContext("learner-2")
INSTRUCTOR = SessionContext("instructor-1", Role.INSTRUCTOR)


@pytest.fixture
def stores(tmp_path, vocab_assessment, essay_assessment):
    catalog = AssessmentCatalog(tmp_path / "assessments")
    catalog.publish(vocab_assessment)
    catalog.publish(essay_assessment)
    return (
        catalog,
        AttemptJsonlStore(tmp_path / "attempts.jsonl"),
        ProgressTracker(tmp_path / "profiles"),
    )


@pytest.fixture
def service(stores, clock):
    return AttemptService(*stores, clock=clock)


def _history(service):
    return service.profile(LEARNER, "learner-1", "french").assessment_history


def test_submit_returns_id_and_updates_profile(service, clock, full_answers):
    attempt = service.start_attempt(LEARNER, "french-a2-vocab")
    for key, value in full_answers.items():
        service.record_answer(LEARNER, attempt.id, key, value)
    clock.advance(minutes=4)

    assert service.submit(LEARNER, attempt.id) == attempt.id

    stored = service.attempts.get(attempt.id)
    assert stored.state is AttemptState.GRADED
    assert stored.final_score_percent == 100.0
    profile = service.profile(LEARNER, "learner-1", "french")
    assert profile.skill_breakdown == {"vocabulary": 100.0}
    assert {"First Assessment", "Vocabulary Excellence", "Perfect Score"} <= {
        a.name for a in profile.achievements
    }
    assert service.tick(attempt.id) is False
    assert len(_history(service)) == 1


def test_answers_are_owned_by_the_learner(service):
    attempt = service.start_attempt(LEARNER, "french-a2-vocab")
    with pytest.raises(PermissionDeniedError):
        service.record_answer(OTHER, attempt.id, "q1", "Paris")
    with pytest.raises(PermissionDeniedError):
        service.submit(OTHER, attempt.id)
    with pytest.raises(PermissionDeniedError):
        service.results(OTHER, attempt.id)
    assert service.results(INSTRUCTOR, attempt.id).state is AttemptState.IN_PROGRESS


def test_timer_expiry_grades_and_blocks_late_submit(service, clock):
    attempt = service.start_attempt(LEARNER, "french-a2-vocab")
    service.record_answer(LEARNER, attempt.id, "q1", "Paris")
    assert service.remaining_time(LEARNER, attempt.id) == 600

    clock.advance(seconds=599)
    assert service.tick(attempt.id) is False
    clock.advance(seconds=5)
    assert service.tick(attempt.id) is True

    stored = service.attempts.get(attempt.id)
    assert stored.state is AttemptState.GRADED
    assert stored.submission_kind is SubmissionKind.TIMEOUT
    assert stored.submitted_at == stored.deadline_at
    assert stored.final_score_percent == 12.5
    with pytest.raises(AlreadySubmittedError):
        service.submit(LEARNER, attempt.id)
    with pytest.raises(StaleAnswerError):
        service.record_answer(LEARNER, attempt.id, "q2", "false")
    profile = service.profile(LEARNER, "learner-1", "french")
    assert len(profile.assessment_history) == 1
    assert profile.recent_activities[0].result == "time expired"


def test_manual_grading_flow(service):
    attempt = service.start_attempt(LEARNER, "french-b1-writing")
    service.record_answer(LEARNER, attempt.id, "q1", "a")
    service.record_answer(LEARNER, attempt.id, "essay", "Ma ville est calme.")
    service.submit(LEARNER, attempt.id)

    summary = service.results(LEARNER, attempt.id)
    assert summary.state is AttemptState.SUBMITTED
    assert summary.pending == ["essay"]
    assert _history(service) == []

    with pytest.raises(PermissionDeniedError):
        service.grade_question(LEARNER, attempt.id, "essay", 2)

    graded = service.grade_question(INSTRUCTOR, attempt.id, "essay", 1, feedback="Développez.")
    assert graded.state is AttemptState.GRADED
    assert graded.final_score_percent == 66.67
    assert len(_history(service)) == 1

    service.grade_question(INSTRUCTOR, attempt.id, "essay", 1, feedback="Développez.")
    assert len(_history(service)) == 1

    regraded = service.grade_question(INSTRUCTOR, attempt.id, "essay", 2)
    assert regraded.grading_revision == 1
    history = _history(service)
    assert [record.correction for record in history] == [False, True]
    assert service.attempts.get(attempt.id).final_score_percent == 100.0


def test_fresh_service_rehydrates_attempts(stores, clock):
    first = AttemptService(*stores, clock=clock)
    attempt = first.start_attempt(LEARNER, "french-a2-vocab")
    first.record_answer(LEARNER, attempt.id, "q1", "Paris")

    second = AttemptService(*stores, clock=clock)
    second.submit(LEARNER, attempt.id)
    assert second.results(LEARNER, attempt.id).questions[0].is_correct is True

    third = AttemptService(*stores, clock=clock)
    with pytest.raises(AlreadySubmittedError):
        third.submit(LEARNER, attempt.id)


def test_learner_and_timer_race(service, clock):
    attempt = service.start_attempt(LEARNER, "french-a2-vocab")
    clock.advance(minutes=11)
    barrier = threading.Barrier(2)
    outcomes = []

    def learner():
        barrier.wait()
        try:
            service.submit(LEARNER, attempt.id, {"q1": "Paris"})
            outcomes.append("submitted")
        except AlreadySubmittedError:
            outcomes.append("rejected")

    def timer():
        barrier.wait()
        outcomes.append("ticked" if service.tick(attempt.id) else "idle")

    threads = [threading.Thread(target=learner), threading.Thread(target=timer)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert "rejected" in outcomes
    stored = service.attempts.get(attempt.id)
    assert stored.state is AttemptState.GRADED
    assert stored.submission_kind is SubmissionKind.TIMEOUT
    assert stored.answers == {}
    assert len(_history(service)) == 1


def test_profiles_are_private(service):
    with pytest.raises(PermissionDeniedError):
        service.profile(OTHER, "learner-1", "french")
    assert service.profile(INSTRUCTOR, "learner-1", "french").learner_id == "learner-1"


def test_late_answer_without_tick_expires_and_grades(service, clock):
    attempt = service.start_attempt(LEARNER, "french-a2-vocab")
    service.record_answer(LEARNER, attempt.id, "q1", "Paris")
    clock.advance(minutes=12)

    with pytest.raises(StaleAnswerError):
        service.record_answer(LEARNER, attempt.id, "q2", "false")

    stored = service.attempts.get(attempt.id)
    assert stored.state is AttemptState.GRADED
    assert stored.submission_kind is SubmissionKind.TIMEOUT
    assert stored.submitted_at == stored.deadline_at
    assert stored.final_score_percent == 12.5
    assert service.tick(attempt.id) is False
    assert len(_history(service)) == 1


def test_late_submit_without_tick_expires_and_grades(service, clock):
    attempt = service.start_attempt(LEARNER, "french-a2-vocab")
    clock.advance(seconds=600)

    with pytest.raises(AlreadySubmittedError):
        service.submit(LEARNER, attempt.id, {"q1": "Paris"})

    stored = service.attempts.get(attempt.id)
    assert stored.state is AttemptState.GRADED
    assert stored.submission_kind is SubmissionKind.TIMEOUT
    assert stored.answers == {}
    assert stored.final_score_percent == 0
    assert len(_history(service)) == 1


def test_feedback_only_edit_is_persisted_without_regrade(service):
    attempt = service.start_attempt(LEARNER, "french-b1-writing")
    service.record_answer(LEARNER, attempt.id, "q1", "a")
    service.submit(LEARNER, attempt.id)
    service.grade_question(INSTRUCTOR, attempt.id, "essay", 0)
    assert len(_history(service)) == 1

    updated = service.grade_question(
        INSTRUCTOR, attempt.id, "essay", 0, feedback="Aucune réponse rendue."
    )

    assert updated.grading_revision == 0
    assert len(_history(service)) == 1
    assert service.attempts.get(attempt.id).feedback == {"essay": "Aucune réponse rendue."}


def test_graded_attempts_leave_the_machine_cache(service, full_answers):
    pending = service.start_attempt(LEARNER, "french-b1-writing")
    service.submit(LEARNER, pending.id, {"q1": "a"})
    assert pending.id in service._machines

    done = service.start_attempt(LEARNER, "french-a2-vocab")
    service.submit(LEARNER, done.id, full_answers)
    assert done.id not in service._machines

    service.grade_question(INSTRUCTOR, pending.id, "essay", 2)
    assert pending.id not in service._machines
    regraded = service.grade_question(INSTRUCTOR, pending.id, "essay", 1)
    assert regraded.grading_revision == 1
    assert pending.id not in service._machines


def test_assessment_stats(service, full_answers):
    first = service.start_attempt(LEARNER, "french-a2-vocab")
    service.submit(LEARNER, first.id, full_answers)
    second = service.start_attempt(OTHER, "french-a2-vocab")
    service.submit(OTHER, second.id, {"q1": "Paris"})
    service.start_attempt(OTHER, "french-a2-vocab")

    with pytest.raises(PermissionDeniedError):
        service.assessment_stats(LEARNER, "french-a2-vocab")

    stats = service.assessment_stats(INSTRUCTOR, "french-a2-vocab")
    assert stats.attempt_count == 3
    assert stats.graded_count == 2
    assert stats.question_count == 6
    assert stats.average_score == 56.25

    untouched = service.assessment_stats(INSTRUCTOR, "french-b1-writing")
    assert untouched.attempt_count == 0
    assert untouched.average_score is None
