from __future__ import annotations

from datetime import timedelta

from lingua_assess.learning.timer import (
    compute_deadline,
    compute_remaining,
    format_remaining,
    has_expired,
)


def test_deadline_is_start_plus_duration(t0):
    assert compute_deadline(t0, 600) == t0 + timedelta(minutes=10)
    assert compute_deadline(t0, None) is None


def test_remaining_rounds_up_and_never_goes_negative(t0):
    deadline = t0 + timedelta(seconds=60)
    assert compute_remaining(t0, deadline) == 60
    assert compute_remaining(t0 + timedelta(seconds=59.2), deadline) == 1
    assert compute_remaining(deadline, deadline) == 0
    assert compute_remaining(deadline + timedelta(hours=1), deadline) == 0
    assert compute_remaining(t0, None) is None


def test_expiry_is_inclusive_of_the_deadline(t0):
    deadline = t0 + timedelta(seconds=30)
    assert not has_expired(t0 + timedelta(seconds=29), deadline)
    assert has_expired(deadline, deadline)
    assert not has_expired(t0 + timedelta(days=365), None)


def test_format_remaining():
    assert format_remaining(600) == "10:00"
    assert format_remaining(65) == "01:05"
    assert format_remaining(0) == "00:00"
    assert format_remaining(None) == "--:--"
