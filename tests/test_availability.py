"""
Tests for the availability filter.
"""

from datetime import date

import pytest

from salonbook.domain.availability import AvailabilityFilter
from salonbook.domain.exceptions import MalformedInputError
from salonbook.domain.models import ReservationStatus, parse_clock, slot_start
from salonbook.domain.slot_generator import SlotGenerator

from conftest import COMPANY, MONDAY, at, reservation


def _filter(slots, reservations, now, day=MONDAY):
    return list(
        AvailabilityFilter().filter(
            company_id=COMPANY,
            day=day,
            slots=slots,
            reservations=reservations,
            now=now,
        )
    )


class TestLeadTime:
    """Tests for the 30 minute lead-time predicate."""

    def test_today_prunes_slots_within_lead_time(self, lunch_break_schedule):
        """Test every kept slot starts strictly after now + 30 minutes."""
        slots = SlotGenerator(lunch_break_schedule).slots_for(MONDAY)
        now = at("2024-05-06 10:05")

        available = _filter(slots, [], now)

        assert available[0] == "11:00"
        assert "10:30" not in available
        for slot in available:
            assert slot_start(MONDAY, slot, now) > now.add(minutes=30)

    def test_boundary_is_exclusive(self):
        """Test a slot starting exactly at now + 30 minutes is excluded."""
        now = at("2024-05-06 10:00")

        assert _filter(["10:00", "10:30", "11:00"], [], now) == ["11:00"]
        assert _filter(["10:31"], [], now) == ["10:31"]

    def test_future_date_is_not_pruned(self, lunch_break_schedule):
        slots = SlotGenerator(lunch_break_schedule).slots_for(MONDAY)
        now = at("2024-05-05 23:59")

        assert _filter(slots, [], now) == slots

    def test_past_date_is_fully_pruned(self, lunch_break_schedule):
        slots = SlotGenerator(lunch_break_schedule).slots_for(MONDAY)

        assert _filter(slots, [], at("2024-05-07 07:00")) == []

    def test_late_evening_prunes_next_morning_only_within_lead_time(self):
        """Test the lead time crosses midnight."""
        now = at("2024-05-05 23:45")

        assert _filter(["00:00", "00:15", "00:30"], [], now) == ["00:30"]

    def test_now_is_re_evaluated_per_call(self):
        lead_filter = AvailabilityFilter()
        slots = ["10:00", "11:00"]

        early = list(lead_filter.filter(company_id=COMPANY, day=MONDAY, slots=slots,
                                        reservations=[], now=at("2024-05-06 08:00")))
        late = list(lead_filter.filter(company_id=COMPANY, day=MONDAY, slots=slots,
                                       reservations=[], now=at("2024-05-06 10:00")))

        assert early == ["10:00", "11:00"]
        assert late == ["11:00"]


class TestTakenSlots:
    """Tests for the not-already-taken predicate."""

    def test_confirmed_reservation_blocks_its_slot_only(self):
        now = at("2024-05-01 09:00")
        reservations = [reservation("14:00")]

        assert _filter(["13:30", "14:00", "14:30"], reservations, now) == ["13:30", "14:30"]

    def test_pending_and_cancelled_do_not_block(self):
        now = at("2024-05-01 09:00")
        reservations = [
            reservation("14:00", status=ReservationStatus.PENDING),
            reservation("14:30", status=ReservationStatus.CANCELLED),
        ]

        assert _filter(["14:00", "14:30"], reservations, now) == ["14:00", "14:30"]

    def test_other_company_and_other_date_do_not_block(self):
        now = at("2024-05-01 09:00")
        reservations = [
            reservation("14:00", company_id="outra-empresa"),
            reservation("14:00", day=date(2024, 5, 7)),
        ]

        assert _filter(["14:00"], reservations, now) == ["14:00"]

    def test_order_is_preserved(self):
        now = at("2024-05-01 09:00")
        slots = ["08:00", "09:00", "10:00", "11:00"]

        assert _filter(slots, [reservation("09:00")], now) == ["08:00", "10:00", "11:00"]

    def test_taken_times(self):
        reservations = [
            reservation("09:00"),
            reservation("10:00", status=ReservationStatus.CANCELLED),
            reservation("11:00"),
        ]

        assert AvailabilityFilter.taken_times(COMPANY, MONDAY, reservations) == {"09:00", "11:00"}

    def test_is_too_soon(self):
        lead_filter = AvailabilityFilter()
        now = at("2024-05-06 10:00")

        assert lead_filter.is_too_soon(MONDAY, "10:30", now)
        assert not lead_filter.is_too_soon(MONDAY, "10:45", now)
        assert parse_clock("10:45") - parse_clock("10:00") > lead_filter.lead_time_minutes


class TestDateInput:
    """Tests for ISO date strings passed to the filter."""

    def test_iso_string_date(self):
        lead_filter = AvailabilityFilter()
        now = at("2024-05-01 09:00")

        available = list(lead_filter.filter(company_id=COMPANY, day="2024-05-06", slots=["14:00", "14:30"],
                                            reservations=[reservation("14:00")], now=now))

        assert available == ["14:30"]
        assert lead_filter.is_taken(COMPANY, "2024-05-06", "14:00", [reservation("14:00")])
        assert AvailabilityFilter.taken_times(COMPANY, "2024-05-06", [reservation("14:00")]) == {"14:00"}
        assert lead_filter.is_too_soon("2024-05-06", "10:30", at("2024-05-06 10:00"))

    @pytest.mark.parametrize("day", ["06/05/2024", "2024-5-6", "amanhã"])
    def test_malformed_date_raises(self, day):
        lead_filter = AvailabilityFilter()

        with pytest.raises(MalformedInputError):
            list(lead_filter.filter(company_id=COMPANY, day=day, slots=["14:00"],
                                    reservations=[], now=at("2024-05-01 09:00")))
        with pytest.raises(MalformedInputError):
            lead_filter.is_too_soon(day, "14:00", at("2024-05-01 09:00"))
