"""Progress reporting helpers for long-running capture and join phases."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from time import perf_counter


def _format_duration(seconds: float) -> str:
    """Return a compact human-readable duration string."""
    total_seconds = int(round(seconds))
    if total_seconds <= 0:
        return "<1s"
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds_remaining = divmod(remainder, 60)
    if hours:
        return f"{hours}h{minutes:02d}m{seconds_remaining:02d}s"
    if minutes:
        return f"{minutes}m{seconds_remaining:02d}s"
    return f"{seconds_remaining}s"


def eta_string(elapsed: float, completed: int, total: int) -> str:
    """Format an ETA string given elapsed time and progress counters."""
    if completed <= 0 or total <= 0 or completed > total or elapsed <= 0.0:
        return "ETA estimating"

    remaining = max(0.0, elapsed * (total - completed) / completed)
    finish_time = datetime.now() + timedelta(seconds=remaining)
    return f"ETA {_format_duration(remaining)} (finish {finish_time.strftime('%H:%M:%S')})"


class ProgressLogger:
    """Log ``completed/total`` lines roughly every 5% of a phase."""

    def __init__(self, logger: logging.Logger, phase: str, total: int) -> None:
        self.logger = logger
        self.phase = phase
        self.total = total
        self.completed = 0
        self.interval = max(1, total // 20)
        self._start = perf_counter()

    def advance(self, amount: int = 1) -> None:
        self.completed += amount
        if self.completed % self.interval != 0 and self.completed != self.total:
            return
        percent = (self.completed / self.total) * 100.0 if self.total else 100.0
        elapsed = perf_counter() - self._start
        self.logger.info(
            "%s progress: %s/%s (%0.1f%%, %s)",
            self.phase,
            self.completed,
            self.total,
            percent,
            eta_string(elapsed, self.completed, self.total),
        )


__all__ = ["ProgressLogger", "eta_string"]
