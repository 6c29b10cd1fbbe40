"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_service import (
    BookingService,
    CancellationResult,
    ClientAgenda,
    NotifierProtocol,
    ReservationStoreProtocol,
)

__all__ = [
    "BookingService",
    "CancellationResult",
    "ClientAgenda",
    "NotifierProtocol",
    "ReservationStoreProtocol",
]
