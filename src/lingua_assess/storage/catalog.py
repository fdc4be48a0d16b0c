from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml
from pydantic import ValidationError

from lingua_assess.errors import AssessmentNotFoundError, ConfigurationError
from lingua_assess.learning.models import AssessmentDefinition
from lingua_assess.learning.question_types import QuestionTypeRegistry, default_registry

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".yaml", ".yml", ".json"}


def read_definition(path: Path) -> Dict[str, Any]:
    """Load one assessment definition file (YAML or JSON) into a dictionary."""
    with path.open("r", encoding="utf-8") as handle:
        if path.suffix == ".json":
            return json.load(handle)
        return yaml.safe_load(handle) or {}


def parse_definition(
    payload: Dict[str, Any],
    registry: Optional[QuestionTypeRegistry] = None,
) -> AssessmentDefinition:
    """Validate a raw payload and every question kind/answer spec it contains."""
    try:
        assessment = AssessmentDefinition.model_validate(payload)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid assessment definition: {exc}") from exc
    (registry or default_registry()).validate_assessment(assessment)
    return assessment


class AssessmentCatalog:
    """Published assessment definitions stored one file per assessment."""

    def __init__(self, directory: Path, registry: Optional[QuestionTypeRegistry] = None):
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)
        self.registry = registry or default_registry()
        self._cache: Dict[str, AssessmentDefinition] = {}

    def _iter_files(self) -> Iterable[Path]:
        for path in sorted(self.directory.iterdir()):
            if path.suffix in SUPPORTED_EXTENSIONS:
                yield path

    def get(self, assessment_id: str) -> AssessmentDefinition:
        """Look up by file name first, then by the ``id`` inside every definition."""
        if assessment_id in self._cache:
            return self._cache[assessment_id]
        for path in self._iter_files():
            if path.stem != assessment_id:
                continue
            assessment = parse_definition(read_definition(path), self.registry)
            self._cache[assessment.id] = assessment
            if assessment.id == assessment_id:
                return assessment
        for assessment in self.list():
            if assessment.id == assessment_id:
                return assessment
        raise AssessmentNotFoundError(f"Assessment not found: {assessment_id}")

    def list(self) -> List[AssessmentDefinition]:
        """Every valid definition in the directory; invalid files are skipped with a warning."""
        assessments: List[AssessmentDefinition] = []
        for path in self._iter_files():
            try:
                assessment = parse_definition(read_definition(path), self.registry)
            except ConfigurationError as exc:
                logger.warning("Skipping %s: %s", path.name, exc)
                continue
            self._cache[assessment.id] = assessment
            assessments.append(assessment)
        return assessments

    def publish(self, assessment: AssessmentDefinition) -> Path:
        """Validate and write a definition; its kinds must all be registered."""
        self.registry.validate_assessment(assessment)
        path = self.directory / f"{assessment.id}.yaml"
        with path.open("w", encoding="utf-8") as handle:
            yaml.safe_dump(assessment.model_dump(mode="json"), handle, sort_keys=False)
        self._cache[assessment.id] = assessment
        logger.info("Published assessment %s (%d questions)", assessment.id, len(assessment.questions))
        return path
