from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

from lingua_assess.config import Settings, load_settings
from lingua_assess.learning import AutoGrader, ProficiencyAggregator, ProgressTracker, default_registry
from lingua_assess.services import AttemptService
from lingua_assess.services.attempt_service import utc_now
from lingua_assess.storage import AssessmentCatalog, AttemptJsonlStore
from lingua_assess.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


class AssessmentSystem:
    """
    Main facade wiring the assessment engine together.

    The system is configuration driven: score precision, proficiency blend
    parameters, storage paths, and logging are read from
    ``config/default.yaml`` through :func:`~lingua_assess.config.load_settings`.

    Architecture
    ------------
    - Catalog: YAML/JSON definitions -> validated ``AssessmentDefinition``
    - Attempts: start -> answer -> submit/expire -> auto-grade -> manual grade
    - Profiles: graded attempt -> ``ProficiencyAggregator`` -> JSON profile

    Attributes
    ----------
    settings : Settings
        Validated configuration object.
    registry : QuestionTypeRegistry
        Registered question kinds with their grading rules.
    catalog : AssessmentCatalog
        Published assessment definitions.
    attempt_store : AttemptJsonlStore
        JSONL persistence for attempts.
    progress_tracker : ProgressTracker
        Learner profile persistence.
    service : AttemptService
        Entry point for every attempt operation.
    """

    def __init__(self, settings: Settings, clock: Callable = utc_now):
        self.settings = settings
        configure_logging(
            settings.logging.level,
            settings.logging.json_output,
            settings.paths.logs_dir / "assessment.log",
        )

        self.registry = default_registry()
        self.catalog = AssessmentCatalog(settings.paths.assessments_dir, self.registry)
        self.attempt_store = AttemptJsonlStore(settings.paths.attempts_index)
        self.progress_tracker = ProgressTracker(settings.paths.profiles_dir)
        self.service = AttemptService(
            self.catalog,
            self.attempt_store,
            self.progress_tracker,
            registry=self.registry,
            grader=AutoGrader(self.registry),
            aggregator=ProficiencyAggregator(settings.proficiency),
            clock=clock,
            score_precision=settings.grading.score_precision,
        )
        logger.debug("assessment_system_ready", catalog=str(settings.paths.assessments_dir))

    @classmethod
    def from_config(
        cls,
        config_path: str | Path | None = None,
        clock: Optional[Callable] = None,
    ) -> "AssessmentSystem":
        """Load settings, create data directories, and build the system."""
        settings = load_settings(config_path)
        settings.paths.data_dir.mkdir(parents=True, exist_ok=True)
        return cls(settings, clock=clock or utc_now)
