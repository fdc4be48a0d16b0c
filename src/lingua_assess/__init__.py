"""Language assessment engine: attempt lifecycle, auto-grading, and learner proficiency."""

from .config import load_settings

__all__ = ["load_settings"]
