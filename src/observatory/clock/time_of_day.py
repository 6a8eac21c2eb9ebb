"""
Time-of-day detection.

Night runs from 20:00 to 06:00 local time by default. The monitor publishes
"time-change" on its first check and whenever night begins or ends, so
render and audio layers can switch palettes without polling the clock.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from ..discovery.events import EventBus, TimeChangePayload, Topic

logger = logging.getLogger("observatory")


class TimeOfDay(str, Enum):
    DAWN = "dawn"
    DAY = "day"
    DUSK = "dusk"
    NIGHT = "night"


def is_night_time(hour: int, night_start: int = 20, night_end: int = 6) -> bool:
    """Check whether an hour (0-23) falls inside the night window.

    Windows that wrap past midnight (start > end) are supported, as are
    windows contained within one day.
    """
    if night_start > night_end:
        return hour >= night_start or hour < night_end
    return night_start <= hour < night_end


def get_time_of_day(hour: int) -> TimeOfDay:
    """Classify an hour: dawn 5-7, day 8-17, dusk 18-19, night otherwise."""
    if 5 <= hour < 8:
        return TimeOfDay.DAWN
    if 8 <= hour < 18:
        return TimeOfDay.DAY
    if 18 <= hour < 20:
        return TimeOfDay.DUSK
    return TimeOfDay.NIGHT


class TimeOfDayMonitor:
    """Emits "time-change" when the night flag changes.

    Attributes:
        bus: Event bus to publish on
        night_start_hour: Hour night begins
        night_end_hour: Hour night ends
    """

    def __init__(
        self,
        bus: EventBus,
        night_start_hour: int = 20,
        night_end_hour: int = 6,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.bus = bus
        self.night_start_hour = night_start_hour
        self.night_end_hour = night_end_hour
        self._clock = clock
        self._is_night: Optional[bool] = None

    @property
    def is_night(self) -> Optional[bool]:
        """Night flag as of the last check (None before the first check)."""
        return self._is_night

    def check(self, now: Optional[datetime] = None) -> bool:
        """Re-evaluate the time of day.

        Args:
            now: Local time to evaluate (defaults to the clock's time)

        Returns:
            True if a "time-change" event was emitted
        """
        hour = (now or self._clock()).hour
        is_night = is_night_time(hour, self.night_start_hour, self.night_end_hour)
        if is_night == self._is_night:
            return False

        self._is_night = is_night
        logger.debug(f"Time of day changed: hour={hour}, night={is_night}")
        self.bus.emit(Topic.TIME_CHANGE, TimeChangePayload(is_night=is_night, hour=hour))
        return True


__all__ = [
    "TimeOfDay",
    "TimeOfDayMonitor",
    "get_time_of_day",
    "is_night_time",
]
