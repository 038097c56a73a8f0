"""
Notification message handler.

Persists the notifications published to ``workspace_notifications`` as
unread :class:`Notification` rows.
"""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ValidationError

from app.core.config import rabbitmq_logger
from app.core.db import AsyncSessionLocal
from app.core.db.crud import notification_db


class NotificationEvent(BaseModel):
    recipient_id: UUID
    type: str
    title: str
    message: str = ""
    data: dict[str, Any] = {}


async def handle_notification_event(event: dict[str, Any]) -> None:
    """
    Persist one in-app notification.

    Raises:
        DatabaseException: On write failure, so the consumer retries.
    """
    try:
        notification = NotificationEvent.model_validate(event)
    except ValidationError as e:
        rabbitmq_logger.error(f"Invalid notification payload dropped: {e.errors()}")
        return

    async with AsyncSessionLocal.begin() as session:
        await notification_db.create(
            session,
            {
                "recipient_id": notification.recipient_id,
                "type": notification.type,
                "title": notification.title,
                "message": notification.message,
                "data": notification.data,
            },
            commit_self=False,
        )

    rabbitmq_logger.info(
        f"Notification '{notification.type}' stored for user {notification.recipient_id}"
    )
