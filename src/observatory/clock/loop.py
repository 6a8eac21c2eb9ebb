"""
Fixed-interval time loop.

Every ``loop_duration_seconds`` of session time (22 minutes by default) the
visitor experiences a loop reset. Progress is never lost; the loop only
drives cosmetic shifts through the "loop-reset" event emitted by the store.

The clock is cooperative: nothing runs in the background. The host calls
``LoopClock.tick()`` from its own frame or event loop, and each call fires
``increment_loop()`` once for every interval that has elapsed since the
previous tick.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from ..config import DEFAULT_LOOP_DURATION_SECONDS
from ..discovery.models import utc_now
from ..discovery.store import DiscoveryStore

logger = logging.getLogger("observatory")


def _elapsed_seconds(session_start: datetime, now: datetime) -> float:
    return max(0.0, (now - session_start).total_seconds())


def time_until_next_loop(
    session_start: datetime,
    now: datetime,
    duration_seconds: float = DEFAULT_LOOP_DURATION_SECONDS,
) -> float:
    """Seconds remaining until the next loop boundary."""
    return duration_seconds - (_elapsed_seconds(session_start, now) % duration_seconds)


def loop_progress(
    session_start: datetime,
    now: datetime,
    duration_seconds: float = DEFAULT_LOOP_DURATION_SECONDS,
) -> float:
    """Fraction of the current loop that has elapsed, in [0, 1)."""
    return (_elapsed_seconds(session_start, now) % duration_seconds) / duration_seconds


class LoopClock:
    """Turns elapsed session time into ``DiscoveryStore.increment_loop()`` calls.

    Attributes:
        store: Store whose session start anchors the loop and whose loop
            counter is incremented
        duration_seconds: Length of one loop
    """

    def __init__(
        self,
        store: DiscoveryStore,
        duration_seconds: float = DEFAULT_LOOP_DURATION_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if duration_seconds <= 0:
            raise ValueError("Loop duration must be positive")
        self.store = store
        self.duration_seconds = duration_seconds
        self._clock = clock
        self._session_start: Optional[datetime] = None
        self._fired = 0

    @property
    def loops_fired(self) -> int:
        """Loops fired by this clock in the current session."""
        return self._fired

    def tick(self, now: Optional[datetime] = None) -> int:
        """Fire any loops that have come due.

        Args:
            now: Current time (defaults to the clock's time)

        Returns:
            Number of loops fired by this call
        """
        now = now or self._clock()
        session_start = self.store.get_state().session_start
        if session_start != self._session_start:
            # New session: loop counting restarts from its start time
            self._session_start = session_start
            self._fired = 0

        due = int(_elapsed_seconds(session_start, now) // self.duration_seconds)
        fired = 0
        while self._fired < due:
            self._fired += 1
            fired += 1
            loop_count = self.store.increment_loop()
            logger.debug(f"Time loop {self._fired} of this session (total {loop_count})")
        return fired

    def time_until_next_loop(self, now: Optional[datetime] = None) -> float:
        """Seconds until the next loop in the current session."""
        return time_until_next_loop(
            self.store.get_state().session_start,
            now or self._clock(),
            self.duration_seconds,
        )

    def progress(self, now: Optional[datetime] = None) -> float:
        """Fraction of the current loop elapsed."""
        return loop_progress(
            self.store.get_state().session_start,
            now or self._clock(),
            self.duration_seconds,
        )


__all__ = [
    "LoopClock",
    "loop_progress",
    "time_until_next_loop",
]
