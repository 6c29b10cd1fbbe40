"""
In-memory reservation store, optionally seeded from a JSON file.
"""

import json
import logging
import threading
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

from ..domain.exceptions import MalformedInputError, ReservationNotFoundError, SlotConflictError
from ..domain.models import Reservation, ReservationStatus

logger = logging.getLogger(__name__)


class InMemoryReservationStore:
    """
    Thread-safe store keeping reservations in a dict.

    The check for an existing confirmed reservation and the insert happen
    under one lock, which gives the same guarantee as a unique index on
    (company_id, date, time) for confirmed rows.
    """

    def __init__(self, reservations: Optional[List[Reservation]] = None):
        self._lock = threading.Lock()
        self._reservations: Dict[str, Reservation] = {}

        for reservation in reservations or []:
            self.insert(reservation)

    @classmethod
    def from_json(cls, data_file: Path) -> "InMemoryReservationStore":
        """
        Load reservations from a JSON file containing a list of objects.

        Entries that cannot be parsed are skipped with a warning.
        """
        store = cls()

        if not data_file.exists():
            logger.info("No reservation seed file at %s, starting empty", data_file)
            return store

        with open(data_file, "r", encoding="utf-8") as f:
            entries = json.load(f)

        for entry in entries:
            try:
                store.insert(Reservation.from_dict(entry))
            except (KeyError, MalformedInputError, SlotConflictError) as e:
                logger.warning("Skipping reservation seed entry %r: %s", entry.get("id"), e)
                continue

        return store

    def list_reservations(self, company_id: str, day: Optional[date] = None) -> List[Reservation]:
        """Reservations of a company (optionally one date), ordered by date and time."""
        with self._lock:
            matches = [
                reservation for reservation in self._reservations.values()
                if reservation.company_id == company_id
                and (day is None or reservation.date == day)
            ]

        return sorted(matches, key=lambda r: (r.date, r.time))

    def get(self, reservation_id: str) -> Optional[Reservation]:
        with self._lock:
            return self._reservations.get(reservation_id)

    def insert(self, reservation: Reservation) -> Reservation:
        """
        Store a new reservation.

        Raises:
            SlotConflictError: If it is confirmed and its slot is already confirmed
            ValueError: If the id is already in use
        """
        with self._lock:
            if reservation.id in self._reservations:
                raise ValueError(f"Reservation id already exists: {reservation.id}")

            if reservation.occupies_slot and self._slot_taken(reservation):
                raise SlotConflictError(reservation.company_id, reservation.date, reservation.time)

            self._reservations[reservation.id] = reservation

        return reservation

    def update_status(
        self,
        reservation_id: str,
        status: ReservationStatus,
        *,
        expected: ReservationStatus,
    ) -> Optional[Reservation]:
        """
        Change the status if it is still ``expected``.

        Returns the updated reservation, or None if the current status differs.

        Raises:
            ReservationNotFoundError: If the id is unknown
        """
        with self._lock:
            current = self._reservations.get(reservation_id)
            if current is None:
                raise ReservationNotFoundError(f"Unknown reservation: {reservation_id}")

            if current.status is not expected:
                return None

            updated = current.with_status(status)
            if updated.occupies_slot and self._slot_taken(updated):
                raise SlotConflictError(updated.company_id, updated.date, updated.time)

            self._reservations[reservation_id] = updated

        return updated

    def _slot_taken(self, reservation: Reservation) -> bool:
        key = reservation.slot_key()
        return any(
            other.occupies_slot and other.slot_key() == key and other.id != reservation.id
            for other in self._reservations.values()
        )
