from __future__ import annotations

from typing import Optional


class AssessmentError(Exception):
    """Base class for every error raised by the assessment core."""


class ConfigurationError(AssessmentError):
    """Unknown question kind or malformed answer specification."""


class AttemptStateError(AssessmentError):
    """A lifecycle operation was requested from a state that does not allow it."""


class StaleAnswerError(AttemptStateError):
    """An answer was written to an attempt that is no longer in progress."""

    def __init__(self, attempt_id: str, state: str, answer_key: Optional[str] = None):
        self.attempt_id = attempt_id
        self.state = state
        self.answer_key = answer_key
        detail = f" for key '{answer_key}'" if answer_key else ""
        super().__init__(
            f"Attempt {attempt_id} is {state}; answer{detail} was not recorded."
        )


class AlreadySubmittedError(AttemptStateError):
    """The attempt was already finalized by an earlier submit or expiry."""

    def __init__(self, attempt_id: str, state: str):
        self.attempt_id = attempt_id
        self.state = state
        super().__init__(f"Attempt {attempt_id} was already finalized (state: {state}).")


class OutOfWindowError(AssessmentError):
    """An attempt was started outside the assessment's availability window."""


class AttemptNotFoundError(AssessmentError, LookupError):
    """No attempt exists for the requested identifier."""


class AssessmentNotFoundError(AssessmentError, LookupError):
    """No assessment definition exists for the requested identifier."""


class PermissionDeniedError(AssessmentError):
    """The calling session is not allowed to perform the operation."""
