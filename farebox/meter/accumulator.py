"""Pausable elapsed-time accumulator for a trip."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class ElapsedClock:
    """
    Track total running duration across pause/resume.

    started_at is the first start of the trip and is never moved. Completed
    running intervals are banked in _banked_millis; the open interval is
    measured from _interval_start.
    """

    started_at: Optional[float] = None
    elapsed_millis: int = 0
    _banked_millis: float = 0.0
    _interval_start: Optional[float] = None

    @property
    def is_running(self) -> bool:
        return self._interval_start is not None

    def start(self, now: float) -> None:
        self.started_at = now
        self.elapsed_millis = 0
        self._banked_millis = 0.0
        self._interval_start = now

    def resume(self, now: float) -> None:
        if self.started_at is None:
            self.start(now)
            return
        self._interval_start = now

    def tick(self, now: float) -> int:
        """Update elapsed_millis from the clock and return it."""
        if self._interval_start is None:
            return self.elapsed_millis
        elapsed = int(self._banked_millis + (now - self._interval_start))
        if elapsed > self.elapsed_millis:
            self.elapsed_millis = elapsed
        return self.elapsed_millis

    def pause(self, now: float) -> int:
        """Take a final reading and close the running interval."""
        self.tick(now)
        self._banked_millis = float(self.elapsed_millis)
        self._interval_start = None
        return self.elapsed_millis

    def reset(self) -> None:
        self.started_at = None
        self.elapsed_millis = 0
        self._banked_millis = 0.0
        self._interval_start = None
