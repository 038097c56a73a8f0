"""
Message handlers for the messaging infrastructure.

This module contains handlers for processing messages from various queues:
- activity_handler: Persists workspace activity records
- notification_handler: Persists in-app notifications
"""

from app.infrastructure.messaging.handlers.activity_handler import (
    handle_activity_event,
)
from app.infrastructure.messaging.handlers.notification_handler import (
    handle_notification_event,
)

__all__ = [
    "handle_activity_event",
    "handle_notification_event",
]
