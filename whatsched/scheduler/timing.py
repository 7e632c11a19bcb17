"""Fire-time arithmetic: catch-up alignment and jitter draws."""

from __future__ import annotations

import random
from datetime import datetime, timedelta


def next_fire_time(start: datetime, interval: timedelta, now: datetime) -> datetime:
    """Return the first fire target for a window anchored at *start*.

    A future *start* is used as-is. Otherwise the target is the next slot on
    the grid ``start + k * interval`` that lies strictly after *now*, so a
    task created (or restarted) late keeps its original cadence instead of
    firing immediately.
    """
    if start > now:
        return start
    periods = (now - start) // interval
    return start + (periods + 1) * interval


def draw_jitter(max_minutes: int, rng: random.Random | None = None) -> int:
    """Pick a uniformly random delay in ``[0, max_minutes]`` (inclusive)."""
    if max_minutes <= 0:
        return 0
    return (rng or random).randint(0, max_minutes)
