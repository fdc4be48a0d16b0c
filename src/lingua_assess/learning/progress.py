from __future__ import annotations

import json
import re
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from lingua_assess.learning.models import (
    Achievement,
    Activity,
    AssessmentRecord,
    ProficiencyProfile,
    SkillRecommendation,
)

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]+")


def _dump_dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _load_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class ProgressTracker:
    """
    Handle persistence for learner proficiency profiles.

    Each learner keeps one profile per language, stored as a separate JSON file
    for simplicity and portability. The tracker only loads and saves; all
    mutation goes through :class:`~lingua_assess.learning.proficiency.ProficiencyAggregator`.

    Profile Storage Format
    ----------------------
    Profiles are stored as ``{learner_id}__{language}.json``.

    Example: ``data/profiles/student123__french.json``
    ```json
    {
      "learner_id": "student123",
      "language": "french",
      "current_level": "A2",
      "skill_breakdown": {"vocabulary": 72.0, "grammar": 58.0},
      "skill_progress_history": {"vocabulary": [65.0, 72.0]},
      "assessment_history": [
        {"date": "2024-03-01T10:10:00+00:00", "level": "A2", "score": 75.0,
         "attempt_id": "9f1c...", "correction": false}
      ]
    }
    ```

    Attributes
    ----------
    base_dir : Path
        Directory where profile JSON files are stored. Created if it doesn't exist.
    """

    def __init__(self, base_dir: Path):
        self.base_dir = base_dir
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def profile_path(self, learner_id: str, language: str) -> Path:
        """Return the JSON file path for a learner and language."""
        stem = f"{_UNSAFE.sub('_', learner_id)}__{_UNSAFE.sub('_', language.lower())}"
        return self.base_dir / f"{stem}.json"

    def load_profile(self, learner_id: str, language: str) -> ProficiencyProfile:
        """Load a profile from disk or return an empty one for a new learner/language."""
        path = self.profile_path(learner_id, language)
        if not path.exists():
            return ProficiencyProfile(learner_id=learner_id, language=language)

        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        return self._from_dict(data)

    def save_profile(self, profile: ProficiencyProfile) -> None:
        """Serialize the profile back to disk."""
        path = self.profile_path(profile.learner_id, profile.language)
        with path.open("w", encoding="utf-8") as handle:
            json.dump(self._to_dict(profile), handle, indent=2)

    def _to_dict(self, profile: ProficiencyProfile) -> Dict[str, Any]:
        data = asdict(profile)
        data["start_date"] = _dump_dt(profile.start_date)
        for key in ("assessment_history", "recent_activities", "achievements"):
            for entry in data[key]:
                entry["date"] = _dump_dt(entry["date"])
        return data

    def _from_dict(self, data: Dict[str, Any]) -> ProficiencyProfile:
        def records(key: str, factory) -> List[Any]:
            return [
                factory(**{**entry, "date": _load_dt(entry.get("date"))})
                for entry in data.get(key, [])
            ]

        return ProficiencyProfile(
            learner_id=data["learner_id"],
            language=data["language"],
            current_level=data.get("current_level"),
            start_level=data.get("start_level"),
            start_date=_load_dt(data.get("start_date")),
            study_hours=data.get("study_hours", 0.0),
            completed_questions=data.get("completed_questions", 0),
            vocab_mastered=data.get("vocab_mastered", 0),
            skill_breakdown=data.get("skill_breakdown", {}),
            skill_progress_history=data.get("skill_progress_history", {}),
            assessment_history=records("assessment_history", AssessmentRecord),
            recent_activities=records("recent_activities", Activity),
            achievements=records("achievements", Achievement),
            weak_areas=[SkillRecommendation(**item) for item in data.get("weak_areas", [])],
            strong_areas=[SkillRecommendation(**item) for item in data.get("strong_areas", [])],
        )
