from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator


class GradingConfig(BaseModel):
    """Controls for score computation."""

    score_precision: int = Field(2, ge=0, le=6, description="Decimals kept in percentages.")


class ProficiencyConfig(BaseModel):
    """Parameters used when folding graded attempts into learner profiles."""

    blend_weight: float = Field(
        0.3, gt=0, le=1, description="Weight of the newest score in the skill blend."
    )
    excellence_threshold: float = Field(90, ge=0, le=100)
    recommendation_count: int = Field(2, ge=0)
    recent_activity_limit: int = Field(10, ge=1)
    vocab_mastery_threshold: float = Field(70, ge=0, le=100)
    vocab_mastered_increment: int = Field(5, ge=0)
    persistent_learner_count: int = Field(5, ge=1)
    skill_history_limit: Optional[int] = Field(
        None, ge=1, description="Cap on stored progress points per skill; None keeps all."
    )


class PathsConfig(BaseModel):
    """Filesystem layout for assessment definitions, attempts, profiles, and logs."""

    data_dir: Path = Field(Path("data"))
    assessments_dir: Path = Field(Path("data/assessments"))
    attempts_index: Path = Field(Path("data/attempts.jsonl"))
    profiles_dir: Path = Field(Path("data/profiles"))
    logs_dir: Path = Field(Path("logs"))


class LoggingConfig(BaseModel):
    """Controls for logging output and format."""

    level: str = Field("INFO")
    json_output: bool = Field(False, validation_alias=AliasChoices("json_output", "json"))

    @field_validator("level")
    @classmethod
    def known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return level


class Settings(BaseModel):
    """Top-level project configuration aggregating all sub-settings."""

    project_name: str = Field("Language Assessment Engine")
    grading: GradingConfig = Field(default_factory=GradingConfig)
    proficiency: ProficiencyConfig = Field(default_factory=ProficiencyConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
