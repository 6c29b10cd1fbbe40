"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import AvailabilityFilter
from .booking_gate import BookingDecision, BookingGate, SlotOption
from .cancellation import CancellationPolicy
from .models import DaySchedule, Reservation, ReservationStatus, ScheduleConfig, Service
from .slot_generator import SlotGenerator

__all__ = [
    "AvailabilityFilter",
    "BookingDecision",
    "BookingGate",
    "CancellationPolicy",
    "DaySchedule",
    "Reservation",
    "ReservationStatus",
    "ScheduleConfig",
    "Service",
    "SlotGenerator",
    "SlotOption",
]
