"""
Activity log message handler.

Persists the records published to ``workspace_activity`` as
:class:`ActivityLog` rows.
"""

from typing import Annotated, Any
from uuid import UUID

from pydantic import BaseModel, Field, ValidationError

from app.core.config import rabbitmq_logger
from app.core.db import AsyncSessionLocal
from app.core.db.crud import activity_log_db


class ActivityEntity(BaseModel):
    type: str
    id: UUID | None = None
    name: str | None = None


class ActivityEvent(BaseModel):
    """Payload of a ``workspace_activity`` message."""

    actor_id: UUID | None = None
    action: Annotated[str, Field(min_length=1, max_length=64)]
    description: str = ""
    entity: ActivityEntity
    workspace_id: UUID | None = None
    metadata: dict[str, Any] = {}
    severity: str = "info"


async def handle_activity_event(event: dict[str, Any]) -> None:
    """
    Persist one activity record.

    Invalid payloads are logged and dropped, since retrying cannot fix them.
    Database errors propagate so the consumer retries the message.

    Args:
        event: Activity payload as published by the workspace services.
    """
    try:
        activity = ActivityEvent.model_validate(event)
    except ValidationError as e:
        rabbitmq_logger.error(f"Invalid activity payload dropped: {e.errors()}")
        return

    async with AsyncSessionLocal.begin() as session:
        await activity_log_db.create(
            session,
            {
                "actor_id": activity.actor_id,
                "action": activity.action,
                "description": activity.description,
                "entity_type": activity.entity.type,
                "entity_id": activity.entity.id,
                "entity_name": activity.entity.name,
                "workspace_id": activity.workspace_id,
                "severity": activity.severity,
                "metadata_": activity.metadata,
            },
            commit_self=False,
        )

    rabbitmq_logger.info(
        f"Activity '{activity.action}' recorded for workspace {activity.workspace_id}"
    )
