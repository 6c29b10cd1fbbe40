"""
Domain models for operating hours, services and reservations.
"""

import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

import pendulum
from pendulum import DateTime

from .exceptions import InvalidScheduleError, MalformedInputError

# Indexed by ``date.isoweekday() % 7``
WEEKDAYS: Tuple[str, ...] = (
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
)

_CLOCK_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_clock(value: str) -> int:
    """
    Parse a "HH:MM" 24-hour string into minutes after midnight.

    Raises:
        MalformedInputError: If the value is not a valid "HH:MM" string
    """
    if not isinstance(value, str):
        raise MalformedInputError(f"Time must be a 'HH:MM' string, got {value!r}")

    match = _CLOCK_PATTERN.match(value)
    if not match:
        raise MalformedInputError(f"Invalid time '{value}', expected HH:MM")

    return int(match.group(1)) * 60 + int(match.group(2))


def format_clock(minutes: int) -> str:
    """Format minutes after midnight as "HH:MM"."""
    hour, minute = divmod(minutes, 60)
    return f"{hour:02d}:{minute:02d}"


def parse_date(value: Any) -> date:
    """
    Parse an ISO calendar date (YYYY-MM-DD).

    ``date`` instances are accepted as they are; datetimes are rejected so a
    wall-clock instant is never silently truncated to a calendar day.
    """
    if isinstance(value, date) and not isinstance(value, datetime):
        return date(value.year, value.month, value.day)

    if not isinstance(value, str) or not _DATE_PATTERN.match(value):
        raise MalformedInputError(f"Invalid date {value!r}, expected YYYY-MM-DD")

    try:
        parsed = pendulum.from_format(value, "YYYY-MM-DD")
    except ValueError as exc:
        raise MalformedInputError(f"Invalid date '{value}': {exc}") from exc

    return date(parsed.year, parsed.month, parsed.day)


def weekday_name(day: date) -> str:
    """Return the lowercase English weekday name of a date."""
    return WEEKDAYS[day.isoweekday() % 7]


def slot_start(day: date, clock: str, reference: DateTime) -> DateTime:
    """
    Combine a calendar date and a "HH:MM" slot into an instant.

    The instant is expressed in the timezone of ``reference`` (usually the
    injected "now"), so both sides of a comparison share one wall clock.
    """
    hour, minute = divmod(parse_clock(clock), 60)
    return reference.on(day.year, day.month, day.day).at(hour, minute)


@dataclass(frozen=True)
class DaySchedule:
    """
    Operating hours of one weekday.

    Invariant (open days only): open_time < close_time, and a break, when set,
    satisfies open_time <= break_start < break_end <= close_time.
    """
    open: bool
    open_time: str = "08:00"
    close_time: str = "18:00"
    break_start: Optional[str] = None
    break_end: Optional[str] = None

    def __post_init__(self):
        opens = parse_clock(self.open_time)
        closes = parse_clock(self.close_time)

        if (self.break_start is None) != (self.break_end is None):
            raise InvalidScheduleError("break_start and break_end must be set together")

        if not self.open:
            return

        if opens >= closes:
            raise InvalidScheduleError(
                f"Opening time {self.open_time} must be before closing time {self.close_time}"
            )

        if self.break_start is not None:
            break_start = parse_clock(self.break_start)
            break_end = parse_clock(self.break_end)
            if not opens <= break_start < break_end <= closes:
                raise InvalidScheduleError(
                    f"Break {self.break_start}-{self.break_end} must lie within "
                    f"{self.open_time}-{self.close_time} and start before it ends"
                )

    @property
    def open_minutes(self) -> int:
        return parse_clock(self.open_time)

    @property
    def close_minutes(self) -> int:
        return parse_clock(self.close_time)

    @property
    def break_window(self) -> Optional[Tuple[int, int]]:
        """Break as (start, end) minutes, or None when there is no break."""
        if self.break_start is None:
            return None
        return parse_clock(self.break_start), parse_clock(self.break_end)

    @classmethod
    def closed(cls) -> "DaySchedule":
        return cls(open=False)


def _default_days() -> Dict[str, DaySchedule]:
    days = {name: DaySchedule(open=True, open_time="08:00", close_time="18:00") for name in WEEKDAYS}
    days["saturday"] = DaySchedule(open=True, open_time="08:00", close_time="16:00")
    days["sunday"] = DaySchedule(open=False, open_time="08:00", close_time="18:00")
    return days


@dataclass(frozen=True)
class ScheduleConfig:
    """
    A company's weekly operating-hours policy.

    One DaySchedule per weekday name plus the slot granularity that drives
    the booking grid.
    """
    days: Mapping[str, DaySchedule] = field(default_factory=_default_days)
    slot_granularity_minutes: int = 30

    def __post_init__(self):
        granularity = self.slot_granularity_minutes
        if isinstance(granularity, bool) or not isinstance(granularity, int) or granularity <= 0:
            raise InvalidScheduleError(
                f"slot_granularity_minutes must be a positive integer, got {granularity!r}"
            )

        missing = [name for name in WEEKDAYS if name not in self.days]
        unknown = [name for name in self.days if name not in WEEKDAYS]
        if missing or unknown:
            raise InvalidScheduleError(
                f"Schedule must define exactly the seven weekdays "
                f"(missing: {missing}, unknown: {unknown})"
            )

        for name, schedule in self.days.items():
            if not isinstance(schedule, DaySchedule):
                raise InvalidScheduleError(f"Day '{name}' must be a DaySchedule")

    @classmethod
    def default(cls) -> "ScheduleConfig":
        """Mon-Fri 08:00-18:00, Sat 08:00-16:00, Sun closed, 30 minute slots."""
        return cls()

    def day_for(self, day: date) -> DaySchedule:
        """Get the DaySchedule that applies to a calendar date."""
        return self.days[weekday_name(day)]

    def is_open_on(self, day: date) -> bool:
        return self.day_for(day).open

    def with_day(self, name: str, schedule: DaySchedule) -> "ScheduleConfig":
        """Return a copy with one weekday replaced (days are disabled, never removed)."""
        days = dict(self.days)
        days[name] = schedule
        return replace(self, days=days)


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


def new_reservation_id() -> str:
    """Generate an opaque unique reservation token."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Reservation:
    """
    One booked appointment.

    Only the ``status`` ever changes (confirmed -> cancelled); a cancelled
    reservation stays in the store as history.
    """
    id: str
    company_id: str
    client_id: str
    service_id: str
    date: date
    time: str
    status: ReservationStatus = ReservationStatus.CONFIRMED
    created_at: Optional[DateTime] = None

    def __post_init__(self):
        object.__setattr__(self, "date", parse_date(self.date))
        parse_clock(self.time)
        try:
            object.__setattr__(self, "status", ReservationStatus(self.status))
        except ValueError as exc:
            raise MalformedInputError(f"Unknown reservation status {self.status!r}") from exc

    @classmethod
    def create(
        cls,
        *,
        company_id: str,
        client_id: str,
        service_id: str,
        day: date,
        time: str,
        now: DateTime,
        status: ReservationStatus = ReservationStatus.CONFIRMED,
    ) -> "Reservation":
        """Build a new reservation with a fresh id stamped at ``now``."""
        return cls(
            id=new_reservation_id(),
            company_id=company_id,
            client_id=client_id,
            service_id=service_id,
            date=day,
            time=time,
            status=status,
            created_at=now,
        )

    @property
    def occupies_slot(self) -> bool:
        """Only confirmed reservations block their slot."""
        return self.status is ReservationStatus.CONFIRMED

    def slot_key(self) -> Tuple[str, date, str]:
        return self.company_id, self.date, self.time

    def starts_at(self, reference: DateTime) -> DateTime:
        """Start instant in the timezone of ``reference``."""
        return slot_start(self.date, self.time, reference)

    def with_status(self, status: ReservationStatus) -> "Reservation":
        return replace(self, status=status)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "client_id": self.client_id,
            "service_id": self.service_id,
            "date": self.date.isoformat(),
            "time": self.time,
            "status": self.status.value,
            "created_at": self.created_at.to_iso8601_string() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Reservation":
        created_at = data.get("created_at")
        return cls(
            id=data["id"],
            company_id=data["company_id"],
            client_id=data["client_id"],
            service_id=data["service_id"],
            date=data["date"],
            time=data["time"],
            status=data.get("status", ReservationStatus.CONFIRMED.value),
            created_at=pendulum.parse(created_at) if created_at else None,
        )


@dataclass(frozen=True)
class Service:
    """
    A bookable service.

    ``duration_minutes`` is informational; the slot grid is driven by the
    schedule's granularity.
    """
    id: str
    name: str
    price: float
    duration_minutes: int = 30

    def format_price(self) -> str:
        return f"R$ {self.price:.2f}"


class NotificationEvent(str, Enum):
    APPOINTMENT_CONFIRMED = "appointment_confirmed"
    APPOINTMENT_CANCELLED = "appointment_cancelled"
