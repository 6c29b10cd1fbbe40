"""
Cancellation window rule.
"""

from pendulum import DateTime

from .models import Reservation, ReservationStatus

CANCELLATION_NOTICE_HOURS = 2


class CancellationPolicy:
    """
    A confirmed reservation may be cancelled until ``notice_hours`` before it starts.

    Cancelled and pending reservations are never cancellable, so cancelling
    twice is rejected instead of touching state again.
    """

    def __init__(self, notice_hours: int = CANCELLATION_NOTICE_HOURS):
        self.notice_hours = notice_hours

    def deadline(self, reservation: Reservation, now: DateTime) -> DateTime:
        """Last instant (in the timezone of ``now``) at which cancelling is allowed."""
        return reservation.starts_at(now).subtract(hours=self.notice_hours)

    def can_cancel(self, reservation: Reservation, now: DateTime) -> bool:
        if reservation.status is not ReservationStatus.CONFIRMED:
            return False
        return now <= self.deadline(reservation, now)
