"""Event publisher registry, decoupling service code from the message broker.

At startup the real RabbitMQ publisher is registered; in tests a recording
stub is substituted.

Usage in service code::

    from app.core.services.event_publisher import publish_safely
    await publish_safely("workspace_activity", event)

Registration (in ``lifespan``)::

    from app.core.services.event_publisher import register_publisher
    from app.infrastructure.messaging import publish_event
    register_publisher(publish_event)
"""

from __future__ import annotations

from typing import Any, Protocol

from app.core.config import rabbitmq_logger


class EventPublisher(Protocol):
    """Callable that publishes an event dict to a named queue."""

    async def __call__(
        self,
        queue_name: str,
        event: dict[str, Any],
        headers: dict[str, Any] = ...,
    ) -> None: ...


_publisher: EventPublisher | None = None


def register_publisher(publisher: EventPublisher) -> None:
    """Register the concrete publisher (called once at startup)."""
    global _publisher
    _publisher = publisher


def get_publisher() -> EventPublisher:
    """Return the registered publisher or raise if not yet registered."""
    if _publisher is None:
        raise RuntimeError(
            "No event publisher registered. "
            "Call register_publisher() during application startup."
        )
    return _publisher


def reset_publisher() -> None:
    """Clear the registered publisher; intended for test teardown only."""
    global _publisher
    _publisher = None


async def publish_safely(
    queue_name: str,
    event: dict[str, Any],
    headers: dict[str, Any] | None = None,
) -> bool:
    """
    Publish an event without letting a broker failure reach the caller.

    Side effects such as activity logging, notifications and invitation
    emails must never revert or fail the mutation that produced them, so
    any error (including a missing publisher) is logged and swallowed.

    Args:
        queue_name: Target queue.
        event: JSON-serialisable payload.
        headers: Optional AMQP headers.

    Returns:
        bool: True if the publisher accepted the event, False otherwise.
    """
    try:
        await get_publisher()(queue_name, event, headers or {})
        return True
    except Exception as e:
        rabbitmq_logger.error(
            f"Failed to publish event to {queue_name}: {type(e).__name__} - {e}"
        )
        return False


__all__ = [
    "EventPublisher",
    "get_publisher",
    "publish_safely",
    "register_publisher",
    "reset_publisher",
]
