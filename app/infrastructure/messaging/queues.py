from functools import lru_cache
from typing import Annotated, Any, Callable

from pydantic import BaseModel, Field, model_validator

from app.apps.workspaces.services.side_effects import (
    ACTIVITY_QUEUE,
    NOTIFICATION_QUEUE,
)
from app.infrastructure.messaging.handlers import (
    handle_activity_event,
    handle_notification_event,
)


class RetryQueue(BaseModel):
    name: Annotated[str, Field(description="Name of the retry queue")]
    ttl: Annotated[int, Field(gt=0, description="Time to live in milliseconds")]


class QueueConfig(BaseModel):
    name: Annotated[str, Field(description="Name of the main queue")]
    handler: Annotated[
        Callable[[dict[str, Any]], Any],
        Field(description="Function to handle messages from the queue"),
    ]
    retry_queue: Annotated[
        str | None, Field(description="Name of the retry queue (if single retry)")
    ] = None
    retry_queues: Annotated[
        list[RetryQueue] | None,
        Field(description="List of retry queues with TTLs (if multiple retries)"),
    ] = None
    retry_ttl: Annotated[
        int | None,
        Field(
            gt=0,
            description="Time to live in milliseconds for single retry queue",
        ),
    ] = None
    max_retries: Annotated[
        int | None,
        Field(
            gt=0,
            description="Maximum number of retries for single retry queue",
        ),
    ] = None
    dead_letter_queue: Annotated[
        str | None, Field(description="Name of the dead letter queue")
    ] = None

    @model_validator(mode="before")
    @classmethod
    def check_retry_configuration(cls, values: dict[str, Any]) -> dict[str, Any]:
        retry_queue = values.get("retry_queue")
        retry_queues = values.get("retry_queues")
        retry_ttl = values.get("retry_ttl")

        if retry_queue and retry_queues:
            raise ValueError(
                "Specify either 'retry_queue' or 'retry_queues', not both."
            )
        if retry_queue and not retry_ttl:
            raise ValueError("'retry_ttl' must be set when using 'retry_queue'.")
        if retry_queues is not None:
            if len(retry_queues) == 0:
                raise ValueError("'retry_queues' must contain at least one entry.")
        return values


# The invitation email queue is drained by the external email sender
QUEUE_CONFIG = [
    # Workspace activity log - backs off 10s, 1m, 5m before dead-lettering
    {
        "name": ACTIVITY_QUEUE,
        "handler": handle_activity_event,
        "retry_queues": [
            {"name": f"{ACTIVITY_QUEUE}_retry_1", "ttl": 10 * 1000},
            {"name": f"{ACTIVITY_QUEUE}_retry_2", "ttl": 60 * 1000},
            {"name": f"{ACTIVITY_QUEUE}_retry_3", "ttl": 5 * 60 * 1000},
        ],
        "dead_letter_queue": f"{ACTIVITY_QUEUE}_dead",
    },
    # In-app notifications
    {
        "name": NOTIFICATION_QUEUE,
        "handler": handle_notification_event,
        "retry_queue": f"{NOTIFICATION_QUEUE}_retry",
        "retry_ttl": 30 * 1000,  # 30 seconds
        "max_retries": 3,
        "dead_letter_queue": f"{NOTIFICATION_QUEUE}_dead",
    },
]


@lru_cache()
def get_queue_configs() -> list[QueueConfig]:
    return [
        QueueConfig.model_validate(config, from_attributes=True)
        for config in QUEUE_CONFIG
    ]
