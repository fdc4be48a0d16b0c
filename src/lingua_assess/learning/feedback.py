from __future__ import annotations

from typing import Dict, List, Tuple

from lingua_assess.learning.models import SkillRecommendation

WEAK_TEMPLATES: Dict[str, str] = {
    "vocabulary": "Vocabulary is at {score:.0f}%. Review flashcards daily and revisit missed words.",
    "grammar": "Grammar is at {score:.0f}%. Rework the fill-in-the-blank items you missed.",
    "reading": "Reading is at {score:.0f}%. Practice with short graded texts before longer ones.",
    "listening": "Listening is at {score:.0f}%. Replay listening exercises at a slower pace.",
    "speaking": "Speaking is at {score:.0f}%. Record yourself and compare with native audio.",
    "writing": "Writing is at {score:.0f}%. Draft short paragraphs and ask for instructor feedback.",
}

STRONG_TEMPLATES: Dict[str, str] = {
    "vocabulary": "Vocabulary is strong ({score:.0f}%). Move on to idioms and collocations.",
    "grammar": "Grammar is strong ({score:.0f}%). Try assessments at the next level.",
    "reading": "Reading is strong ({score:.0f}%). Challenge yourself with authentic articles.",
    "listening": "Listening is strong ({score:.0f}%). Try podcasts without transcripts.",
    "speaking": "Speaking is strong ({score:.0f}%). Practice spontaneous conversation topics.",
    "writing": "Writing is strong ({score:.0f}%). Experiment with longer essays.",
}

DEFAULT_WEAK = "{skill} is at {score:.0f}%. Schedule a focused review using recent assessments."
DEFAULT_STRONG = "{skill} is strong ({score:.0f}%). Keep it sharp with mixed practice."


def recommendation_for(skill: str, score: float, *, weak: bool) -> str:
    templates, default = (WEAK_TEMPLATES, DEFAULT_WEAK) if weak else (STRONG_TEMPLATES, DEFAULT_STRONG)
    template = templates.get(skill, default)
    return template.format(skill=skill.capitalize(), score=score)


def rank_skills(
    breakdown: Dict[str, float], count: int
) -> Tuple[List[SkillRecommendation], List[SkillRecommendation]]:
    """Return ``(weak_areas, strong_areas)`` from a skill breakdown.

    Weak areas are the ``count`` lowest skills; strong areas the ``count``
    highest among the rest, so a skill is never listed as both.
    """
    ascending = sorted(breakdown.items(), key=lambda item: (item[1], item[0]))
    weak = ascending[:count]
    weak_names = {skill for skill, _ in weak}
    strong = [
        item
        for item in sorted(breakdown.items(), key=lambda item: (-item[1], item[0]))
        if item[0] not in weak_names
    ][:count]
    return (
        [SkillRecommendation(skill, recommendation_for(skill, score, weak=True)) for skill, score in weak],
        [SkillRecommendation(skill, recommendation_for(skill, score, weak=False)) for skill, score in strong],
    )
