import json
from typing import Any

import aio_pika

from app.infrastructure.messaging.connection import get_publish_channel


_declared_queues: set[str] = set()


async def publish_event(
    queue_name: str,
    event: dict[str, Any],
    headers: dict[str, Any] | None = None,
) -> None:
    """
    Publish a JSON event to a durable queue.

    The queue is declared on first use so a message published before any
    consumer has started is not dropped.

    Args:
        queue_name: Target queue, also used as the routing key.
        event: JSON-serialisable payload.
        headers: Optional AMQP headers.

    Raises:
        Any exception from the broker connection; callers on the request
        path go through ``publish_safely``.
    """
    channel = await get_publish_channel()
    if queue_name not in _declared_queues:
        await channel.declare_queue(queue_name, durable=True)
        _declared_queues.add(queue_name)

    message = aio_pika.Message(
        body=json.dumps(event).encode(),
        headers=headers or {},
        content_type="application/json",
        delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
    )

    await channel.default_exchange.publish(message, routing_key=queue_name)
