"""
Core business logic for generating the bookable slot grid of a day.

Pure domain logic without any external dependencies (no database, no clock,
no I/O): the same config and date always produce the same slots.
"""

from datetime import date
from typing import Iterator, List

from .models import DaySchedule, ScheduleConfig, format_clock


class SlotGenerator:
    """
    Produces candidate start times for a date from a ScheduleConfig.

    Algorithm:
    1. Look up the DaySchedule for the date's weekday (closed -> no slots)
    2. Walk from opening to closing time in steps of the granularity
    3. Emit a start only if its whole slot ends by closing time and does
       not overlap the break
    4. A start that lands inside the break jumps straight to the break end
    """

    def __init__(self, schedule: ScheduleConfig):
        self.schedule = schedule

    @property
    def granularity(self) -> int:
        return self.schedule.slot_granularity_minutes

    def generate(self, day: date) -> Iterator[str]:
        """
        Lazily yield "HH:MM" start times for a date, earliest first.

        A fresh iterator is returned on every call.
        """
        if not self.schedule.is_open_on(day):
            return iter(())

        return self._walk(self.schedule.day_for(day))

    def slots_for(self, day: date) -> List[str]:
        """Get all slots for a date as a list."""
        return list(self.generate(day))

    def _walk(self, day_schedule: DaySchedule) -> Iterator[str]:
        granularity = self.granularity
        closes = day_schedule.close_minutes
        break_window = day_schedule.break_window

        current = day_schedule.open_minutes

        while current < closes:
            if break_window and break_window[0] <= current < break_window[1]:
                current = break_window[1]
                continue

            slot_end = current + granularity
            if slot_end > closes:
                break

            if not (break_window and self._overlaps_break(current, slot_end, break_window)):
                yield format_clock(current)

            current = slot_end

    @staticmethod
    def _overlaps_break(start: int, end: int, break_window) -> bool:
        """Half-open overlap test of [start, end) against the break."""
        return start < break_window[1] and end > break_window[0]

    def fits_within_hours(self, day: date, minutes: int) -> bool:
        """
        Tell whether a start time that is not on the grid still lies in bookable hours.

        Returns True when the whole slot starting at ``minutes`` would fit
        inside opening hours without touching the break, i.e. the time is only
        misaligned with the grid. Returns False when the day is closed or the
        slot falls outside hours or into the break.
        """
        if not self.schedule.is_open_on(day):
            return False

        day_schedule = self.schedule.day_for(day)
        slot_end = minutes + self.granularity
        if minutes < day_schedule.open_minutes or slot_end > day_schedule.close_minutes:
            return False

        break_window = day_schedule.break_window
        if break_window and self._overlaps_break(minutes, slot_end, break_window):
            return False

        return True
