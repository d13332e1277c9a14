"""Evenly spaced capture timepoints within a video's sampled window."""

from __future__ import annotations

import math
from typing import List

from contact_sheet.exceptions import InvalidDuration, InvalidInput
from contact_sheet.models import SampleWindow, Timepoint


def effective_duration(duration: float, window: SampleWindow) -> float:
    """Return the duration left after removing the ignored start and end."""
    if duration is None or not math.isfinite(duration) or duration <= 0:
        raise InvalidDuration(f"invalid video duration: {duration!r}")

    ignore_start, ignore_end = window.resolve(duration)
    remaining = duration - ignore_start - ignore_end
    if remaining <= 0:
        raise InvalidDuration(
            f"invalid negative video duration minus offsets "
            f"({duration:.3f}s - {ignore_start:.3f}s - {ignore_end:.3f}s)"
        )
    return remaining


def plan_timepoints(
    duration: float,
    count: int,
    window: SampleWindow,
    capture_window: float,
) -> List[Timepoint]:
    """Compute ``count`` capture start times.

    Each timepoint sits in the middle of its slice of the effective duration and
    is pulled back so a capture of ``capture_window`` seconds never runs past the
    end of the stream.
    """
    if count <= 0:
        raise InvalidInput("number of captures must be greater than zero")
    if capture_window <= 0:
        raise InvalidInput("invalid capture-time must be non-zero")

    remaining = effective_duration(duration, window)
    ignore_start, _ = window.resolve(duration)
    interval = remaining / count
    latest_start = max(0.0, duration - capture_window)

    timepoints: List[Timepoint] = []
    for index in range(count):
        start = ignore_start + interval * (index + 0.5)
        start = max(0.0, min(start, latest_start))
        timepoints.append(Timepoint(index=index, start_seconds=start))
    return timepoints


__all__ = ["effective_duration", "plan_timepoints"]
