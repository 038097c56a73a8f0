import json
from typing import Any, Callable

import aio_pika

from app.core.config import rabbitmq_logger

RETRY_HEADER = "x-retry-attempt"


def next_retry_queue(
    attempt: int,
    retry_queue: str | None = None,
    retry_queues: list[dict[str, Any]] | None = None,
    max_retries: int | None = None,
) -> str | None:
    """
    Pick the queue a failed message should be parked in for its next attempt.

    Args:
        attempt: Number of retries already made.
        retry_queue: Single retry queue, reused for every attempt.
        retry_queues: Ordered back-off queues, one per attempt.
        max_retries: Cap for the single retry queue; ``None`` means unbounded.

    Returns:
        str | None: The retry queue name, or ``None`` once retries are exhausted.
    """
    if retry_queues:
        if attempt < len(retry_queues):
            return retry_queues[attempt]["name"]
        return None
    if retry_queue and (not max_retries or attempt < max_retries):
        return retry_queue
    return None


async def process_message(
    message: aio_pika.abc.AbstractIncomingMessage,
    handler: Callable[[dict[str, Any]], Any],
    channel: aio_pika.abc.AbstractChannel,
    retry_queue: str | None = None,
    retry_queues: list[dict[str, Any]] | None = None,
    max_retries: int | None = None,
    dead_letter_queue: str | None = None,
) -> None:
    """
    Run ``handler`` on a decoded message, re-routing it on failure.

    A body that is not valid JSON can never succeed and goes straight to the
    dead letter queue. Any other handler error is retried through the
    configured retry queue(s) and dead-lettered once they are exhausted.
    The original delivery is always settled, so a poison message is never
    redelivered in a loop.
    """
    async with message.process(ignore_processed=True):
        headers = dict(message.headers or {})
        attempt = int(headers.get(RETRY_HEADER, 0))  # type: ignore[arg-type]

        try:
            event = json.loads(message.body.decode())
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            rabbitmq_logger.error(f"Undecodable message on {message.routing_key}: {e}")
            target = None
            error: Exception = e
        else:
            try:
                await handler(event)
                return
            except Exception as e:
                rabbitmq_logger.error(
                    f"Handler {getattr(handler, '__name__', handler)} failed "
                    f"(attempt {attempt + 1}): {e}"
                )
                target = next_retry_queue(attempt, retry_queue, retry_queues, max_retries)
                error = e

        if target:
            headers[RETRY_HEADER] = attempt + 1
            await channel.default_exchange.publish(
                aio_pika.Message(
                    body=message.body,
                    headers=headers,
                    content_type="application/json",
                    delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                ),
                routing_key=target,
            )
            rabbitmq_logger.info(f"Message parked in {target}")
        elif dead_letter_queue:
            headers["x-error-message"] = str(error)
            if dead_letter_queue.endswith("_dead"):
                headers["x-original-queue"] = dead_letter_queue[: -len("_dead")]
            await channel.default_exchange.publish(
                aio_pika.Message(
                    body=message.body,
                    headers=headers,
                    delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                ),
                routing_key=dead_letter_queue,
            )
            rabbitmq_logger.warning(
                f"Message dead-lettered to {dead_letter_queue} after {attempt} retries"
            )
        else:
            rabbitmq_logger.warning("Message dropped: no retry or dead letter queue")

        await message.reject(requeue=False)


__all__ = ["RETRY_HEADER", "next_retry_queue", "process_message"]
