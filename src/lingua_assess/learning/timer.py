from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Optional


def compute_deadline(started_at: datetime, duration_seconds: Optional[int]) -> Optional[datetime]:
    """Return ``started_at + duration`` for timed assessments, ``None`` for untimed ones."""
    if duration_seconds is None:
        return None
    return started_at + timedelta(seconds=duration_seconds)


def compute_remaining(now: datetime, deadline_at: Optional[datetime]) -> Optional[int]:
    """Whole seconds left before the deadline, never negative.

    Partial seconds round up so a learner never sees ``00:00`` while time remains.
    Untimed attempts return ``None``.
    """
    if deadline_at is None:
        return None
    remaining = (deadline_at - now).total_seconds()
    return max(0, math.ceil(remaining))


def has_expired(now: datetime, deadline_at: Optional[datetime]) -> bool:
    """True once ``now`` has reached the deadline; untimed attempts never expire."""
    return deadline_at is not None and now >= deadline_at


def format_remaining(seconds: Optional[int]) -> str:
    """Render remaining seconds as ``MM:SS`` (``--:--`` when untimed)."""
    if seconds is None:
        return "--:--"
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes:02d}:{secs:02d}"
