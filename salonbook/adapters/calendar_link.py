"""
"Add to Google Calendar" links for confirmed appointments.
"""

from typing import Optional, Tuple
from urllib.parse import quote

from pendulum import DateTime

from ..domain.models import Reservation, Service

GOOGLE_CALENDAR_URL = "https://calendar.google.com/calendar/render"
DEFAULT_LOCATION = "Local a confirmar"

# Google Calendar expects UTC stamps like 20240506T170000Z
_STAMP_FORMAT = "YYYYMMDD[T]HHmmss[Z]"


def appointment_window(reservation: Reservation, service: Service, now: DateTime) -> Tuple[DateTime, DateTime]:
    """
    Start and end of an appointment in ``now``'s timezone.

    The end is the start plus the service duration; the slot grid plays no
    part here.
    """
    starts_at = reservation.starts_at(now)
    return starts_at, starts_at.add(minutes=service.duration_minutes)


def google_calendar_link(
    reservation: Reservation,
    service: Service,
    now: DateTime,
    company_name: Optional[str] = None,
    location: Optional[str] = None,
) -> str:
    """
    Build an ``action=TEMPLATE`` link that pre-fills a calendar event.

    Args:
        reservation: The booked appointment
        service: Service booked, its duration sets the event length
        now: Reference instant whose timezone the slot time is read in
        company_name: Shown in the title and details when given
        location: Company address, defaults to "Local a confirmar"

    Returns:
        URL to open in a browser
    """
    starts_at, ends_at = appointment_window(reservation, service, now)
    start = starts_at.in_timezone("UTC").format(_STAMP_FORMAT)
    end = ends_at.in_timezone("UTC").format(_STAMP_FORMAT)

    title = f"{service.name} - {company_name}" if company_name else service.name
    details = "\n".join((
        f"Agendamento na {company_name}" if company_name else "Agendamento",
        f"Serviço: {service.name}",
        f"Valor: {service.format_price()}",
        f"Código: {reservation.id}",
    ))

    return (
        f"{GOOGLE_CALENDAR_URL}?action=TEMPLATE"
        f"&text={quote(title, safe='')}"
        f"&dates={start}/{end}"
        f"&details={quote(details, safe='')}"
        f"&location={quote(location or DEFAULT_LOCATION, safe='')}"
    )
