"""
Shared fixtures for the booking engine tests.
"""

from datetime import date

import pendulum
import pytest

from salonbook.domain.models import DaySchedule, Reservation, ReservationStatus, ScheduleConfig

TZ = "America/Sao_Paulo"
COMPANY = "barbearia-centro"
MONDAY = date(2024, 5, 6)
SUNDAY = date(2024, 5, 5)


def at(value: str):
    """Parse a local wall-clock instant, e.g. at("2024-05-06 10:00")."""
    return pendulum.parse(value, tz=TZ)


def reservation(
    time: str,
    day: date = MONDAY,
    status: ReservationStatus = ReservationStatus.CONFIRMED,
    company_id: str = COMPANY,
    client_id: str = "5511999990000",
    reservation_id: str | None = None,
) -> Reservation:
    return Reservation(
        id=reservation_id or f"{company_id}-{day.isoformat()}-{time}-{status.value}",
        company_id=company_id,
        client_id=client_id,
        service_id="corte",
        date=day,
        time=time,
        status=status,
        created_at=at("2024-05-01 09:00"),
    )


@pytest.fixture
def lunch_break_schedule() -> ScheduleConfig:
    """Default week with Monday 08:00-18:00 and a 12:00-13:00 break."""
    return ScheduleConfig.default().with_day(
        "monday",
        DaySchedule(open=True, open_time="08:00", close_time="18:00", break_start="12:00", break_end="13:00"),
    )
