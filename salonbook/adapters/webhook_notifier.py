"""
Webhook client announcing confirmed and cancelled appointments.
"""

import logging
from typing import Any, Dict, List, Optional

import requests
from pendulum import DateTime

from ..domain.exceptions import NotificationError
from ..domain.models import NotificationEvent, Reservation, Service

logger = logging.getLogger(__name__)

# (label, offset before the slot start)
REMINDER_OFFSETS = (
    ("1_day_before", {"days": 1}),
    ("1_hour_before", {"hours": 1}),
    ("30_min_before", {"minutes": 30}),
)


class WebhookNotifier:
    """
    Posts booking events as JSON to an automation webhook (e.g. n8n).

    Payload format:
    {
        "type": "appointment_confirmed",
        "appointment": {"id": ..., "date": "2024-05-06", "time": "14:00", ...},
        "timestamp": "2024-05-06T09:00:00+02:00",
        "metadata": {"reminders": [{"type": "1_day_before", "scheduledFor": ...}]}
    }
    """

    def __init__(self, url: str, timeout: float = 10):
        """
        Initialize the notifier.

        Args:
            url: Webhook endpoint receiving the POST requests
            timeout: Request timeout in seconds
        """
        self.url = url
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json"}

    def notify(
        self,
        event: NotificationEvent,
        reservation: Reservation,
        *,
        now: DateTime,
        service: Optional[Service] = None,
    ) -> None:
        """
        Send one event.

        Raises:
            NotificationError: If the request fails or returns an error status
        """
        payload = self.build_payload(event, reservation, now=now, service=service)

        try:
            response = requests.post(
                self.url,
                headers=self.headers,
                json=payload,
                timeout=self.timeout
            )
            response.raise_for_status()

        except requests.exceptions.RequestException as e:
            raise NotificationError(f"Failed to deliver {event.value} for {reservation.id}: {e}") from e

        logger.debug("Delivered %s for reservation %s", event.value, reservation.id)

    def build_payload(
        self,
        event: NotificationEvent,
        reservation: Reservation,
        *,
        now: DateTime,
        service: Optional[Service] = None,
    ) -> Dict[str, Any]:
        appointment = reservation.to_dict()
        if service is not None:
            appointment["service"] = {
                "id": service.id,
                "name": service.name,
                "price": service.price,
                "duration": service.duration_minutes,
            }

        payload: Dict[str, Any] = {
            "type": event.value,
            "appointment": appointment,
            "timestamp": now.to_iso8601_string(),
            "metadata": {},
        }

        if event is NotificationEvent.APPOINTMENT_CONFIRMED:
            payload["metadata"]["reminders"] = self.reminder_schedule(reservation, now)

        return payload

    @staticmethod
    def reminder_schedule(reservation: Reservation, now: DateTime) -> List[Dict[str, str]]:
        """Reminders one day, one hour and 30 minutes before the slot (past ones dropped)."""
        starts_at = reservation.starts_at(now)
        reminders = []

        for label, offset in REMINDER_OFFSETS:
            scheduled_for = starts_at.subtract(**offset)
            if scheduled_for <= now:
                continue
            reminders.append({"type": label, "scheduledFor": scheduled_for.to_iso8601_string()})

        return reminders


class LoggingNotifier:
    """Notifier used when no webhook is configured: events only go to the log."""

    def notify(
        self,
        event: NotificationEvent,
        reservation: Reservation,
        *,
        now: DateTime,
        service: Optional[Service] = None,
    ) -> None:
        logger.info(
            "%s: %s %s %s (client %s) at %s",
            event.value,
            reservation.company_id,
            reservation.date.isoformat(),
            reservation.time,
            reservation.client_id,
            now.to_iso8601_string(),
        )
