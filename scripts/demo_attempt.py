#!/usr/bin/env python3
"""Demo script showing how graded attempts update a learner profile."""

from __future__ import annotations

from lingua_assess.services import Role, SessionContext
from lingua_assess.system import AssessmentSystem


def print_profile(profile, label: str) -> None:
    """Print a formatted profile summary."""
    print(f"\n{'=' * 60}")
    print(f"  {label}")
    print(f"{'=' * 60}")
    print(f"Learner ID: {profile.learner_id} ({profile.language})")
    print(f"Level: {profile.current_level or '-'}")
    print(f"Study hours: {profile.study_hours:.2f}")

    if profile.skill_breakdown:
        print("\nSkills:")
        for skill, score in sorted(profile.skill_breakdown.items(), key=lambda x: x[1], reverse=True):
            print(f"  - {skill}: {score:.0f}%")

    if profile.achievements:
        print("\nAchievements:")
        for achievement in profile.achievements:
            print(f"  - {achievement.name}")
    print(f"{'=' * 60}\n")


def main():
    system = AssessmentSystem.from_config()
    learner = SessionContext("demo_learner")
    instructor = SessionContext("demo_instructor", Role.INSTRUCTOR)
    service = system.service

    print_profile(service.profile(learner, learner.user_id, "french"), "PROFILE BEFORE")

    attempt = service.start_attempt(learner, "french-a2-vocab")
    for key, value in {
        "q1": "pomme",
        "q2": "false",
        "q3-s1": "suis",
        "q3-s2": "parle",
        "q4-p1": "cat",
        "q4-p2": "dog",
        "q5": ["1", "2", "0"],
        "q6": "deux",
    }.items():
        service.record_answer(learner, attempt.id, key, value)
    service.submit(learner, attempt.id)
    print(f"Vocabulary attempt {attempt.id}: {service.attempts.get(attempt.id).final_score_percent}%")

    essay = service.start_attempt(learner, "french-b1-writing")
    service.record_answer(learner, essay.id, "q1", "pris")
    service.record_answer(learner, essay.id, "essay", "Ma ville est petite et calme.")
    service.submit(learner, essay.id)
    print(f"Writing attempt awaiting: {service.results(learner, essay.id).pending}")
    service.grade_question(instructor, essay.id, "essay", 3, feedback="Bon vocabulaire, trop court.")

    print_profile(service.profile(learner, learner.user_id, "french"), "PROFILE AFTER")


if __name__ == "__main__":
    main()
