"""
Adapters layer - Persistence, notification and calendar integrations.
"""

from .calendar_link import google_calendar_link
from .memory_store import InMemoryReservationStore
from .sql_store import SqlReservationStore
from .webhook_notifier import LoggingNotifier, WebhookNotifier

__all__ = [
    "InMemoryReservationStore",
    "SqlReservationStore",
    "LoggingNotifier",
    "WebhookNotifier",
    "google_calendar_link",
]
