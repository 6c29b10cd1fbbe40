"""
Tests for the BookingService orchestration layer.
"""

import threading
from typing import List

import pytest

from salonbook.adapters.memory_store import InMemoryReservationStore
from salonbook.domain.booking_gate import BookingDecision
from salonbook.domain.exceptions import (
    BookingRejectedError,
    NotificationError,
    ReservationNotFoundError,
    SlotConflictError,
    UnknownCompanyError,
    UnknownServiceError,
)
from salonbook.domain.models import NotificationEvent, ReservationStatus, Service
from salonbook.services.booking_service import REASON_NOT_CONFIRMED, REASON_TOO_LATE, BookingService

from conftest import COMPANY, MONDAY, at, reservation

NOW = at("2024-05-01 09:00")
SERVICES = {COMPANY: [Service(id="corte", name="Corte de cabelo", price=45.0)]}


class StubNotifier:
    """Records events; optionally fails like an unreachable webhook."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.events: List[tuple] = []

    def notify(self, event, reservation, *, now, service=None):
        self.events.append((event, reservation.id, service))
        if self.fail:
            raise NotificationError("webhook down")


class SynchronizedStore(InMemoryReservationStore):
    """Lets every booker read the (still empty) slate before anyone writes."""

    def __init__(self, parties: int):
        super().__init__()
        self.barrier = threading.Barrier(parties, timeout=5)
        self.synchronize = True

    def list_reservations(self, company_id, day=None):
        result = super().list_reservations(company_id, day)
        if self.synchronize:
            self.barrier.wait()
        return result


def _build_service(schedule, store=None, notifier=None) -> BookingService:
    return BookingService(
        store=store or InMemoryReservationStore(),
        schedules={COMPANY: schedule},
        services=SERVICES,
        notifier=notifier,
        clock=lambda: NOW,
    )


def _book(service, time="14:00", client="5511999990000", now=None):
    return service.book(
        company_id=COMPANY,
        client_id=client,
        service_id="corte",
        day=MONDAY,
        time=time,
        now=now,
    )


class TestBooking:
    """Tests for listing and booking slots."""

    def test_book_confirms_and_notifies(self, lunch_break_schedule):
        notifier = StubNotifier()
        service = _build_service(lunch_break_schedule, notifier=notifier)

        booked = _book(service)

        assert booked.status is ReservationStatus.CONFIRMED
        assert booked.created_at == NOW
        assert "14:00" not in service.available_slots(COMPANY, MONDAY)
        assert service.check(COMPANY, MONDAY, "14:00") is BookingDecision.REJECTED_TAKEN
        assert service.check(COMPANY, MONDAY, "14:30") is BookingDecision.BOOKABLE
        assert notifier.events == [(NotificationEvent.APPOINTMENT_CONFIRMED, booked.id, SERVICES[COMPANY][0])]

    def test_second_booking_of_same_slot_is_rejected(self, lunch_break_schedule):
        service = _build_service(lunch_break_schedule)
        _book(service)

        with pytest.raises(BookingRejectedError) as excinfo:
            _book(service, client="5511888880000")

        assert excinfo.value.decision is BookingDecision.REJECTED_TAKEN

    @pytest.mark.parametrize(
        "time,decision",
        [
            ("12:30", BookingDecision.REJECTED_CLOSED),
            ("08:10", BookingDecision.REJECTED_INVALID_SLOT),
        ],
    )
    def test_gate_rejections_are_raised(self, lunch_break_schedule, time, decision):
        store = InMemoryReservationStore()
        service = _build_service(lunch_break_schedule, store=store)

        with pytest.raises(BookingRejectedError) as excinfo:
            _book(service, time=time)

        assert excinfo.value.decision is decision
        assert store.list_reservations(COMPANY) == []

    def test_too_soon(self, lunch_break_schedule):
        service = _build_service(lunch_break_schedule)

        with pytest.raises(BookingRejectedError) as excinfo:
            _book(service, time="10:00", now=at("2024-05-06 09:45"))

        assert excinfo.value.decision is BookingDecision.REJECTED_TOO_SOON

    def test_unknown_service(self, lunch_break_schedule):
        service = _build_service(lunch_break_schedule)

        with pytest.raises(UnknownServiceError):
            service.book(company_id=COMPANY, client_id="x", service_id="manicure", day=MONDAY, time="14:00")

    def test_unknown_company(self, lunch_break_schedule):
        service = _build_service(lunch_break_schedule)

        with pytest.raises(UnknownCompanyError):
            service.available_slots("nao-existe", MONDAY)

    def test_notification_failure_keeps_booking(self, lunch_break_schedule):
        """Test a failing webhook does not roll the reservation back."""
        store = InMemoryReservationStore()
        notifier = StubNotifier(fail=True)
        service = _build_service(lunch_break_schedule, store=store, notifier=notifier)

        booked = _book(service)

        assert store.get(booked.id) == booked
        assert len(notifier.events) == 1

    def test_crashing_notifier_keeps_booking(self, lunch_break_schedule, caplog):
        """Test an unexpected notifier error is logged and the booking still succeeds."""

        class CrashingNotifier:
            def notify(self, event, reservation, *, now, service=None):
                raise RuntimeError("dispatcher crashed")

        store = InMemoryReservationStore()
        service = _build_service(lunch_break_schedule, store=store, notifier=CrashingNotifier())

        booked = _book(service)
        result = service.cancel(booked.id)

        assert store.get(booked.id).status is ReservationStatus.CANCELLED
        assert result.cancelled
        assert "dispatcher crashed" in caplog.text

    def test_slot_options_share_gate_decisions(self, lunch_break_schedule):
        service = _build_service(lunch_break_schedule)
        _book(service)

        options = {option.time: option.decision for option in service.slot_options(COMPANY, "2024-05-06")}

        assert options["14:00"] is BookingDecision.REJECTED_TAKEN
        assert options["14:30"] is BookingDecision.BOOKABLE


class TestConcurrentBooking:
    """Tests for the at-most-one-confirmed invariant under concurrent submission."""

    def test_two_bookers_one_slot(self, lunch_break_schedule):
        """Test both pass the gate, exactly one is confirmed, the other gets a conflict."""
        store = SynchronizedStore(parties=2)
        service = _build_service(lunch_break_schedule, store=store)
        outcomes = {}

        def attempt(client):
            try:
                outcomes[client] = _book(service, client=client)
            except SlotConflictError as e:
                outcomes[client] = e

        threads = [threading.Thread(target=attempt, args=(client,)) for client in ("ana", "bruno")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        store.synchronize = False

        conflicts = [o for o in outcomes.values() if isinstance(o, SlotConflictError)]
        confirmed = [r for r in store.list_reservations(COMPANY, MONDAY) if r.occupies_slot]
        assert len(outcomes) == 2
        assert len(conflicts) == 1
        assert len(confirmed) == 1
        assert confirmed[0].time == "14:00"

        # the loser is offered fresh availability without the taken slot
        loser = next(client for client, o in outcomes.items() if isinstance(o, SlotConflictError))
        available = service.available_slots(COMPANY, MONDAY)
        assert "14:00" not in available
        retry = _book(service, time=available[0], client=loser)
        assert retry.time != "14:00"

    def test_many_bookers_never_double_book(self, lunch_break_schedule):
        store = InMemoryReservationStore()
        service = _build_service(lunch_break_schedule, store=store)
        errors = []

        def attempt(index):
            try:
                _book(service, client=f"client-{index}")
            except (SlotConflictError, BookingRejectedError) as e:
                errors.append(e)

        threads = [threading.Thread(target=attempt, args=(i,)) for i in range(12)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        confirmed = [r for r in store.list_reservations(COMPANY, MONDAY) if r.occupies_slot]
        assert len(confirmed) == 1
        assert len(errors) == 11


class TestCancellation:
    """Tests for cancelling through the service."""

    def test_cancel_frees_the_slot(self, lunch_break_schedule):
        notifier = StubNotifier()
        service = _build_service(lunch_break_schedule, notifier=notifier)
        booked = _book(service)

        result = service.cancel(booked.id)

        assert result.cancelled
        assert result.reservation.status is ReservationStatus.CANCELLED
        assert "14:00" in service.available_slots(COMPANY, MONDAY)
        assert notifier.events[-1][0] is NotificationEvent.APPOINTMENT_CANCELLED

    def test_cancel_twice_is_rejected_without_state_change(self, lunch_break_schedule):
        store = InMemoryReservationStore()
        service = _build_service(lunch_break_schedule, store=store)
        booked = _book(service)
        service.cancel(booked.id)

        second = service.cancel(booked.id)

        assert not second.cancelled
        assert second.reason == REASON_NOT_CONFIRMED
        assert store.get(booked.id).status is ReservationStatus.CANCELLED

    def test_cancel_too_late(self, lunch_break_schedule):
        store = InMemoryReservationStore()
        service = _build_service(lunch_break_schedule, store=store)
        booked = _book(service)

        result = service.cancel(booked.id, now=at("2024-05-06 12:30"))

        assert not result.cancelled
        assert result.reason == REASON_TOO_LATE
        assert store.get(booked.id).status is ReservationStatus.CONFIRMED

    def test_cancel_unknown(self, lunch_break_schedule):
        service = _build_service(lunch_break_schedule)

        with pytest.raises(ReservationNotFoundError):
            service.cancel("missing")

    def test_rebook_after_cancellation(self, lunch_break_schedule):
        store = InMemoryReservationStore()
        service = _build_service(lunch_break_schedule, store=store)
        first = _book(service)
        service.cancel(first.id)

        second = _book(service, client="5511888880000")

        assert second.occupies_slot
        assert len(store.list_reservations(COMPANY, MONDAY)) == 2


class TestClientAgenda:
    """Tests for the client's upcoming/history split."""

    def test_split(self, lunch_break_schedule):
        store = InMemoryReservationStore([
            reservation("09:00", client_id="ana", reservation_id="past"),
            reservation("15:00", client_id="ana", reservation_id="upcoming"),
            reservation("16:00", client_id="ana", reservation_id="cancelled",
                        status=ReservationStatus.CANCELLED),
            reservation("17:00", client_id="bruno", reservation_id="other"),
        ])
        service = _build_service(lunch_break_schedule, store=store)

        agenda = service.client_reservations(COMPANY, "ana", now=at("2024-05-06 10:00"))

        assert [r.id for r in agenda.upcoming] == ["upcoming"]
        assert sorted(r.id for r in agenda.history) == ["cancelled", "past"]
