"""
Application service for listing, booking and cancelling appointments.

The service coordinates the reservation store, the domain-level
``BookingGate`` and an optional notifier. Store and notifier are described
by small protocols so tests can plug in the in-memory store and a stub.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Mapping, Optional, Protocol, Sequence

import pendulum
from pendulum import DateTime

from ..domain.booking_gate import BookingDecision, BookingGate, SlotOption
from ..domain.cancellation import CancellationPolicy
from ..domain.exceptions import (
    BookingRejectedError,
    NotificationError,
    ReservationNotFoundError,
    SlotConflictError,
    UnknownCompanyError,
    UnknownServiceError,
)
from ..domain.models import (
    NotificationEvent,
    Reservation,
    ReservationStatus,
    ScheduleConfig,
    Service,
    parse_clock,
    parse_date,
)

logger = logging.getLogger(__name__)

REASON_NOT_CONFIRMED = "not_confirmed"
REASON_TOO_LATE = "too_late"


class ReservationStoreProtocol(Protocol):
    """Protocol describing the persistence behaviour needed by the service."""

    def list_reservations(self, company_id: str, day: Optional[date] = None) -> List[Reservation]:
        """Return reservations of a company, optionally for one date."""

    def get(self, reservation_id: str) -> Optional[Reservation]:
        """Return one reservation or None."""

    def insert(self, reservation: Reservation) -> Reservation:
        """Persist a reservation, raising SlotConflictError on a taken slot."""

    def update_status(
        self,
        reservation_id: str,
        status: ReservationStatus,
        *,
        expected: ReservationStatus,
    ) -> Optional[Reservation]:
        """Compare-and-set the status."""


class NotifierProtocol(Protocol):
    """Protocol for fire-and-forget booking notifications."""

    def notify(
        self,
        event: NotificationEvent,
        reservation: Reservation,
        *,
        now: DateTime,
        service: Optional[Service] = None,
    ) -> None:
        """Deliver an event, raising NotificationError on failure."""


@dataclass(frozen=True)
class CancellationResult:
    cancelled: bool
    reservation: Reservation
    reason: Optional[str] = None


@dataclass
class ClientAgenda:
    """A client's reservations split the way the "my appointments" view shows them."""
    upcoming: List[Reservation] = field(default_factory=list)
    history: List[Reservation] = field(default_factory=list)


class BookingService:
    """
    Orchestrates reservation retrieval, gate decisions and persistence.

    Every decision re-reads the store, and ``book`` relies on the store's
    insert to reject a confirmed reservation for a slot that another booker
    took after the gate check.
    """

    def __init__(
        self,
        store: ReservationStoreProtocol,
        schedules: Mapping[str, ScheduleConfig],
        services: Optional[Mapping[str, Sequence[Service]]] = None,
        notifier: Optional[NotifierProtocol] = None,
        clock: Optional[Callable[[], DateTime]] = None,
        cancellation_policy: Optional[CancellationPolicy] = None,
    ) -> None:
        self._store = store
        self._schedules = dict(schedules)
        self._services: Dict[str, Dict[str, Service]] = {
            company_id: {service.id: service for service in company_services}
            for company_id, company_services in (services or {}).items()
        }
        self._notifier = notifier
        self._clock = clock or pendulum.now
        self._cancellation_policy = cancellation_policy or CancellationPolicy()

    def gate_for(self, company_id: str) -> BookingGate:
        schedule = self._schedules.get(company_id)
        if schedule is None:
            raise UnknownCompanyError(f"No schedule configured for company '{company_id}'")
        return BookingGate(schedule)

    def available_slots(self, company_id: str, day, now: Optional[DateTime] = None) -> List[str]:
        """Bookable slot times for a date, earliest first."""
        day = parse_date(day)
        return self.gate_for(company_id).bookable_slots(
            company_id=company_id,
            day=day,
            reservations=self._store.list_reservations(company_id, day),
            now=self._now(now),
        )

    def slot_options(self, company_id: str, day, now: Optional[DateTime] = None) -> List[SlotOption]:
        """All generated slots of a date with their decisions."""
        day = parse_date(day)
        return self.gate_for(company_id).options_for(
            company_id=company_id,
            day=day,
            reservations=self._store.list_reservations(company_id, day),
            now=self._now(now),
        )

    def check(self, company_id: str, day, time: str, now: Optional[DateTime] = None) -> BookingDecision:
        day = parse_date(day)
        return self.gate_for(company_id).evaluate(
            company_id=company_id,
            day=day,
            time=time,
            reservations=self._store.list_reservations(company_id, day),
            now=self._now(now),
        )

    def book(
        self,
        *,
        company_id: str,
        client_id: str,
        service_id: str,
        day,
        time: str,
        now: Optional[DateTime] = None,
    ) -> Reservation:
        """
        Validate a slot and persist a confirmed reservation.

        Raises:
            BookingRejectedError: If the gate rejects the slot
            SlotConflictError: If a concurrent booker confirmed the slot first
            UnknownServiceError: If the company does not offer the service
            MalformedInputError: If the date or time cannot be parsed
        """
        now = self._now(now)
        day = parse_date(day)
        parse_clock(time)
        service = self._resolve_service(company_id, service_id)

        decision = self.check(company_id, day, time, now=now)
        if not decision.is_bookable:
            logger.info("Rejected %s %s %s for %s: %s", company_id, day, time, client_id, decision.value)
            raise BookingRejectedError(decision)

        reservation = Reservation.create(
            company_id=company_id,
            client_id=client_id,
            service_id=service_id,
            day=day,
            time=time,
            now=now,
        )

        try:
            self._store.insert(reservation)
        except SlotConflictError:
            logger.warning("Lost the race for %s %s %s (client %s)", company_id, day, time, client_id)
            raise

        logger.info("Booked %s %s %s for %s as %s", company_id, day, time, client_id, reservation.id)
        self._notify(NotificationEvent.APPOINTMENT_CONFIRMED, reservation, now, service)
        return reservation

    def cancel(self, reservation_id: str, now: Optional[DateTime] = None) -> CancellationResult:
        """
        Cancel a confirmed reservation if the notice window still allows it.

        A refused cancellation leaves the reservation untouched.

        Raises:
            ReservationNotFoundError: If the id is unknown
        """
        now = self._now(now)
        reservation = self._store.get(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(f"Unknown reservation: {reservation_id}")

        if reservation.status is not ReservationStatus.CONFIRMED:
            return CancellationResult(False, reservation, REASON_NOT_CONFIRMED)

        if not self._cancellation_policy.can_cancel(reservation, now):
            return CancellationResult(False, reservation, REASON_TOO_LATE)

        updated = self._store.update_status(
            reservation_id,
            ReservationStatus.CANCELLED,
            expected=ReservationStatus.CONFIRMED,
        )
        if updated is None:
            # cancelled concurrently
            return CancellationResult(False, self._store.get(reservation_id), REASON_NOT_CONFIRMED)

        logger.info("Cancelled reservation %s", reservation_id)
        service = self._services.get(updated.company_id, {}).get(updated.service_id)
        self._notify(NotificationEvent.APPOINTMENT_CANCELLED, updated, now, service)
        return CancellationResult(True, updated)

    def client_reservations(
        self,
        company_id: str,
        client_id: str,
        now: Optional[DateTime] = None,
    ) -> ClientAgenda:
        """Upcoming (not cancelled, in the future) and past/cancelled reservations of a client."""
        now = self._now(now)
        agenda = ClientAgenda()

        for reservation in self._store.list_reservations(company_id):
            if reservation.client_id != client_id:
                continue
            upcoming = (
                reservation.status is not ReservationStatus.CANCELLED
                and reservation.starts_at(now) > now
            )
            (agenda.upcoming if upcoming else agenda.history).append(reservation)

        return agenda

    def _resolve_service(self, company_id: str, service_id: str) -> Optional[Service]:
        """
        Look up a service of the company.

        Companies without a service catalogue accept any service id.
        """
        catalogue = self._services.get(company_id)
        if catalogue is None:
            return None

        service = catalogue.get(service_id)
        if service is None:
            raise UnknownServiceError(f"Company '{company_id}' does not offer service '{service_id}'")
        return service

    def _now(self, now: Optional[DateTime]) -> DateTime:
        return now if now is not None else self._clock()

    def _notify(
        self,
        event: NotificationEvent,
        reservation: Reservation,
        now: DateTime,
        service: Optional[Service],
    ) -> None:
        if self._notifier is None:
            return

        try:
            self._notifier.notify(event, reservation, now=now, service=service)
        except NotificationError as e:
            logger.warning("Notification %s for %s failed: %s", event.value, reservation.id, e)
        except Exception:
            # the reservation is already persisted at this point
            logger.exception("Notifier crashed on %s for %s", event.value, reservation.id)
