"""
Session clocks: the fixed-interval time loop and time-of-day detection.
"""

from .loop import LoopClock, loop_progress, time_until_next_loop
from .time_of_day import TimeOfDay, TimeOfDayMonitor, get_time_of_day, is_night_time

__all__ = [
    "LoopClock",
    "TimeOfDay",
    "TimeOfDayMonitor",
    "get_time_of_day",
    "is_night_time",
    "loop_progress",
    "time_until_next_loop",
]
