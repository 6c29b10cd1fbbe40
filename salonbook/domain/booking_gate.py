"""
The single decision point for "can this (date, time) be booked right now?".

Both the slot list shown to a client and the final check before a
reservation is written go through ``BookingGate.evaluate``.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable, List

from pendulum import DateTime

from .availability import AvailabilityFilter
from .models import Reservation, ScheduleConfig, parse_clock, parse_date
from .slot_generator import SlotGenerator


class BookingDecision(str, Enum):
    BOOKABLE = "bookable"
    REJECTED_CLOSED = "rejected_closed"
    REJECTED_TAKEN = "rejected_taken"
    REJECTED_TOO_SOON = "rejected_too_soon"
    REJECTED_INVALID_SLOT = "rejected_invalid_slot"

    @property
    def is_bookable(self) -> bool:
        return self is BookingDecision.BOOKABLE


@dataclass(frozen=True)
class SlotOption:
    """A generated slot together with its gate decision, for rendering."""
    time: str
    decision: BookingDecision

    @property
    def selectable(self) -> bool:
        return self.decision.is_bookable


class BookingGate:
    """
    Pure predicate over a company's schedule and reservation set.

    The gate never writes; persisting the reservation as confirmed is the
    caller's job and must happen atomically with this check.
    """

    def __init__(
        self,
        schedule: ScheduleConfig,
        availability: AvailabilityFilter | None = None,
    ):
        self.schedule = schedule
        self.generator = SlotGenerator(schedule)
        self.availability = availability or AvailabilityFilter()

    def evaluate(
        self,
        *,
        company_id: str,
        day,
        time: str,
        reservations: Iterable[Reservation],
        now: DateTime,
    ) -> BookingDecision:
        """
        Decide whether ``time`` on ``day`` is bookable.

        Args:
            company_id: Company owning the calendar
            day: Calendar date (``date`` or "YYYY-MM-DD")
            time: Slot start as "HH:MM"
            reservations: Reservations of the company (any status)
            now: Current instant, injected by the caller

        Returns:
            The first failing BookingDecision, or BOOKABLE

        Raises:
            MalformedInputError: If the date or time cannot be parsed
        """
        day = parse_date(day)
        minutes = parse_clock(time)

        if time not in self.generator.slots_for(day):
            return self._reject_unlisted(day, minutes)

        if self.availability.is_taken(company_id, day, time, reservations):
            return BookingDecision.REJECTED_TAKEN

        if self.availability.is_too_soon(day, time, now):
            return BookingDecision.REJECTED_TOO_SOON

        return BookingDecision.BOOKABLE

    def _reject_unlisted(self, day: date, minutes: int) -> BookingDecision:
        if self.generator.fits_within_hours(day, minutes):
            return BookingDecision.REJECTED_INVALID_SLOT
        return BookingDecision.REJECTED_CLOSED

    def options_for(
        self,
        *,
        company_id: str,
        day,
        reservations: Iterable[Reservation],
        now: DateTime,
    ) -> List[SlotOption]:
        """Every generated slot of the date with its decision (grey out the rest)."""
        day = parse_date(day)
        reservations = list(reservations)

        return [
            SlotOption(
                time=slot,
                decision=self.evaluate(
                    company_id=company_id,
                    day=day,
                    time=slot,
                    reservations=reservations,
                    now=now,
                ),
            )
            for slot in self.generator.generate(day)
        ]

    def bookable_slots(
        self,
        *,
        company_id: str,
        day,
        reservations: Iterable[Reservation],
        now: DateTime,
    ) -> List[str]:
        """Slots a client can pick on the date, earliest first."""
        day = parse_date(day)
        return list(
            self.availability.filter(
                company_id=company_id,
                day=day,
                slots=self.generator.generate(day),
                reservations=list(reservations),
                now=now,
            )
        )
