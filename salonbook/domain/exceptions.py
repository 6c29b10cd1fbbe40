"""
Domain-specific exception hierarchy for the booking engine.
"""


class BookingError(Exception):
    """Base class for all application-level errors."""


class MalformedInputError(BookingError, ValueError):
    """Raised when a date, time or identifier cannot be interpreted."""


class InvalidScheduleError(MalformedInputError):
    """Raised when an operating-hours configuration violates its invariants."""


class SlotConflictError(BookingError):
    """
    Raised when a confirmed reservation already occupies the slot at write time.

    This is the signal that another booker won the race for the same
    (company, date, time) key. Callers must not retry the same slot.
    """

    def __init__(self, company_id: str, day, time: str):
        self.company_id = company_id
        self.day = day
        self.time = time
        super().__init__(
            f"Slot {day} {time} of company '{company_id}' is already confirmed"
        )


class BookingRejectedError(BookingError):
    """Raised by the booking service when the gate refuses a submission."""

    def __init__(self, decision):
        self.decision = decision
        super().__init__(f"Booking rejected: {decision.value}")


class ReservationNotFoundError(BookingError):
    """Raised when a reservation id is unknown to the store."""


class UnknownCompanyError(BookingError):
    """Raised when no schedule is configured for a company."""


class UnknownServiceError(BookingError):
    """Raised when a service is not offered by the company."""


class NotificationError(BookingError):
    """Raised when a notification could not be delivered."""
