from __future__ import annotations

import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from lingua_assess.errors import AttemptNotFoundError
from lingua_assess.learning.models import Attempt


class AttemptJsonlStore:
    """Simple JSONL persistence for attempts with deterministic ordering."""

    def __init__(self, path: Path):
        """Ensure the backing directory exists and record the JSONL filepath."""
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def load(self) -> List[Attempt]:
        """Read all stored attempts from disk and reconstruct them as models."""
        if not self.path.exists():
            return []
        attempts: List[Attempt] = []
        with self.path.open("r", encoding="utf-8") as handle:
            for line in handle:
                if not line.strip():
                    continue
                attempts.append(Attempt.model_validate_json(line))
        return attempts

    def get(self, attempt_id: str) -> Attempt:
        for attempt in self.load():
            if attempt.id == attempt_id:
                return attempt
        raise AttemptNotFoundError(f"Attempt not found: {attempt_id}")

    def find(
        self,
        *,
        learner_id: Optional[str] = None,
        assessment_id: Optional[str] = None,
    ) -> List[Attempt]:
        """Attempts filtered by learner and/or assessment, in storage order."""
        return [
            attempt
            for attempt in self.load()
            if (learner_id is None or attempt.learner_id == learner_id)
            and (assessment_id is None or attempt.assessment_id == assessment_id)
        ]

    def save(self, attempt: Attempt) -> None:
        self.upsert([attempt])

    def upsert(self, attempts: Iterable[Attempt]) -> None:
        """Merge attempts into storage, replacing existing entries with matching IDs."""
        with self._lock:
            existing: Dict[str, Attempt] = {attempt.id: attempt for attempt in self.load()}
            for attempt in attempts:
                existing[attempt.id] = attempt
            self._write(existing.values())

    def delete(self, attempt_ids: Iterable[str]) -> None:
        """Remove attempts with the provided IDs and rewrite the JSONL file."""
        to_delete = set(attempt_ids)
        with self._lock:
            remaining = [attempt for attempt in self.load() if attempt.id not in to_delete]
            self._write(remaining)

    def _write(self, attempts: Iterable[Attempt]) -> None:
        with self.path.open("w", encoding="utf-8") as handle:
            for attempt in attempts:
                handle.write(attempt.model_dump_json())
                handle.write("\n")
