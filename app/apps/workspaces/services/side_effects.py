"""
Best-effort side effects of workspace operations.

Activity records, notifications and invitation emails are published to
message queues. A publish failure is logged and never reaches the mutation
that triggered it.

Inside ``committed(session)`` events are held back and only published once
the transaction has committed; a rolled back block publishes nothing.
"""

from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, Iterable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import workspace_logger
from app.core.enums import ActivityAction, NotificationType
from app.core.services.event_publisher import publish_safely


ACTIVITY_QUEUE = "workspace_activity"
NOTIFICATION_QUEUE = "workspace_notifications"
INVITATION_EMAIL_QUEUE = "workspace_invitation_emails"

# (queue, event, warning logged if publishing fails)
_held: ContextVar[list[tuple[str, dict[str, Any], str]] | None] = ContextVar(
    "held_side_effects", default=None
)


def _jsonable(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    return value


async def _publish(queue_name: str, event: dict[str, Any], warning: str) -> bool:
    published = await publish_safely(queue_name, event)
    if not published:
        workspace_logger.warning(warning)
    return published


async def _emit(queue_name: str, event: dict[str, Any], warning: str) -> bool:
    held = _held.get()
    if held is not None:
        held.append((queue_name, _jsonable(event), warning))
        return True
    return await _publish(queue_name, _jsonable(event), warning)


@asynccontextmanager
async def deferred() -> AsyncIterator[None]:
    """
    Hold side effects emitted inside the block.

    They are published when the block exits cleanly and dropped when it
    raises. A nested block hands its events to the outermost one.
    """
    if _held.get() is not None:
        yield
        return

    held: list[tuple[str, dict[str, Any], str]] = []
    token = _held.set(held)
    try:
        yield
    except BaseException:
        if held:
            workspace_logger.info(
                f"Dropped {len(held)} side effects of a rolled back operation"
            )
        raise
    finally:
        _held.reset(token)

    for queue_name, event, warning in held:
        await _publish(queue_name, event, warning)


@asynccontextmanager
async def committed(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run a block in a transaction and publish its side effects after commit.

    Example:
        async with side_effects.committed(session):
            await lifecycle_service.archive(session, ..., commit_self=False)
    """
    async with deferred():
        async with session.begin():
            yield session


async def record_activity(
    actor_id: UUID | None,
    action: ActivityAction,
    description: str,
    workspace_id: UUID | None,
    entity_type: str = "workspace",
    entity_id: UUID | None = None,
    entity_name: str | None = None,
    metadata: dict[str, Any] | None = None,
    severity: str = "info",
) -> bool:
    """
    Publish an activity log record.

    Args:
        actor_id: User who performed the action.
        action: Activity action.
        description: Human readable description.
        workspace_id: Workspace the action happened in.
        entity_type: Kind of entity acted on.
        entity_id: Entity ID, defaults to the workspace ID.
        entity_name: Entity name at the time of the action.
        metadata: Extra structured details.
        severity: info, warning or critical.

    Returns:
        bool: True if the record was handed to the publisher.
    """
    event = {
        "actor_id": actor_id,
        "action": action,
        "description": description,
        "entity": {
            "type": entity_type,
            "id": entity_id or workspace_id,
            "name": entity_name,
        },
        "workspace_id": workspace_id,
        "metadata": metadata or {},
        "severity": severity,
    }
    return await _emit(
        ACTIVITY_QUEUE,
        event,
        f"Activity '{action.value}' for workspace {workspace_id} was not recorded",
    )


async def notify(
    recipient_id: UUID,
    type: NotificationType,
    title: str,
    message: str,
    data: dict[str, Any] | None = None,
) -> bool:
    """Publish an in-app notification for one user."""
    event = {
        "recipient_id": recipient_id,
        "type": type,
        "title": title,
        "message": message,
        "data": data or {},
    }
    return await _emit(
        NOTIFICATION_QUEUE,
        event,
        f"Notification '{type.value}' for user {recipient_id} was not sent",
    )


async def notify_many(
    recipient_ids: Iterable[UUID],
    type: NotificationType,
    title: str,
    message: str,
    data: dict[str, Any] | None = None,
) -> int:
    """
    Publish the same notification to several users.

    Returns:
        int: Number of notifications handed to the publisher.
    """
    sent = 0
    for recipient_id in dict.fromkeys(recipient_ids):
        if await notify(recipient_id, type, title, message, data):
            sent += 1
    return sent


async def send_invitation_email(
    email: str,
    inviter_name: str,
    workspace_name: str,
    role: str,
    invitation_link: str,
    expires_at: datetime,
    reminder: bool = False,
) -> bool:
    """
    Queue an invitation email for the external email sender.

    The invitation stays redeemable through its token whether or not
    this succeeds.
    """
    event = {
        "email": email,
        "inviter_name": inviter_name,
        "workspace_name": workspace_name,
        "role": role,
        "invitation_link": invitation_link,
        "expires_at": expires_at,
        "reminder": reminder,
    }
    return await _emit(
        INVITATION_EMAIL_QUEUE,
        event,
        f"Invitation email to {email} for '{workspace_name}' was not queued",
    )


__all__ = [
    "ACTIVITY_QUEUE",
    "INVITATION_EMAIL_QUEUE",
    "NOTIFICATION_QUEUE",
    "committed",
    "deferred",
    "notify",
    "notify_many",
    "record_activity",
    "send_invitation_email",
]
