"""
Filters candidate slots down to the ones a client can still reserve.
"""

from typing import Iterable, Iterator, Set

from pendulum import DateTime

from .models import Reservation, parse_date, slot_start

LEAD_TIME_MINUTES = 30


class AvailabilityFilter:
    """
    Removes taken slots and slots that start too soon.

    Two independent predicates are ANDed per slot:
    - not taken: no confirmed reservation for (company, date, time)
    - not too soon: slot start > now + lead time

    ``now`` is passed on every call and never cached. Dates may be ``date``
    objects or "YYYY-MM-DD" strings.
    """

    def __init__(self, lead_time_minutes: int = LEAD_TIME_MINUTES):
        self.lead_time_minutes = lead_time_minutes

    def filter(
        self,
        *,
        company_id: str,
        day,
        slots: Iterable[str],
        reservations: Iterable[Reservation],
        now: DateTime,
    ) -> Iterator[str]:
        """Yield the available slots, preserving the input order."""
        day = parse_date(day)
        taken = self.taken_times(company_id, day, reservations)

        for slot in slots:
            if slot in taken:
                continue
            if self.is_too_soon(day, slot, now):
                continue
            yield slot

    @staticmethod
    def taken_times(
        company_id: str,
        day,
        reservations: Iterable[Reservation],
    ) -> Set[str]:
        """Slot times of the date occupied by confirmed reservations."""
        day = parse_date(day)
        return {
            reservation.time
            for reservation in reservations
            if reservation.occupies_slot
            and reservation.company_id == company_id
            and reservation.date == day
        }

    def is_taken(
        self,
        company_id: str,
        day,
        time: str,
        reservations: Iterable[Reservation],
    ) -> bool:
        return time in self.taken_times(company_id, day, reservations)

    def is_too_soon(self, day, time: str, now: DateTime) -> bool:
        """True when the slot does not start strictly after now + lead time."""
        day = parse_date(day)
        return slot_start(day, time, now) <= now.add(minutes=self.lead_time_minutes)
