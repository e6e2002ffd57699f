"""Countdown clock advanced by whoever owns the real timer."""

from __future__ import annotations

from pairlink_src.util.config import get_key


class Clock:
    """Counts elapsed time and, when limited, the time remaining.

    The clock never schedules anything itself: each call to ``tick`` stands
    for one ``interval`` of wall-clock time reported by the caller.
    """

    def __init__(
        self,
        time_limit: int | None = None,
        interval: int = get_key("clock.interval", 1),
    ) -> None:
        """Initialize a running clock; time_limit None means no countdown."""
        self.time_limit = time_limit
        self.interval = interval
        self.elapsed = 0
        self.remaining: int | None = time_limit
        self.running = True

    def tick(self) -> None:
        """Advance one interval. Does nothing once stopped."""
        if not self.running:
            return
        self.elapsed += self.interval
        if self.remaining is not None:
            self.remaining = max(0, self.remaining - self.interval)

    def expired(self) -> bool:
        """Return True if a limit is set and no time remains."""
        return self.remaining is not None and self.remaining <= 0

    def stop(self) -> None:
        """Freeze the clock; further ticks are ignored."""
        self.running = False

    def __repr__(self) -> str:
        """Return a string representation of the Clock instance."""
        return f"Clock(elapsed={self.elapsed}, remaining={self.remaining}, running={self.running})"
