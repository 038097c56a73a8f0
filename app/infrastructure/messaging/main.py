"""
Standalone worker draining the workspace activity and notification queues.

Usage:
    python -m app.infrastructure.messaging.main
"""

import asyncio
import signal
from functools import partial

from aio_pika.abc import AbstractChannel, AbstractRobustConnection

from app.core.config import rabbitmq_logger
from app.core.db import dispose_db, init_db
from app.core.services import register_publisher
from app.infrastructure.messaging.connection import close_connection, get_connection
from app.infrastructure.messaging.consumer import process_message
from app.infrastructure.messaging.publisher import publish_event
from app.infrastructure.messaging.queues import QueueConfig, get_queue_configs

PREFETCH_COUNT = 10


def _retry_arguments(ttl: int | None, main_queue: str) -> dict:
    # Expired retries dead-letter back into the main queue
    return {
        "x-message-ttl": ttl,
        "x-dead-letter-exchange": "",
        "x-dead-letter-routing-key": main_queue,
    }


async def declare_topology(channel: AbstractChannel, config: QueueConfig):
    """Declare the main, retry and dead letter queues for one config."""
    queue = await channel.declare_queue(config.name, durable=True)

    if config.retry_queue:
        await channel.declare_queue(
            config.retry_queue,
            durable=True,
            arguments=_retry_arguments(config.retry_ttl, config.name),
        )
    for retry in config.retry_queues or []:
        await channel.declare_queue(
            retry.name,
            durable=True,
            arguments=_retry_arguments(retry.ttl, config.name),
        )
    if config.dead_letter_queue:
        await channel.declare_queue(config.dead_letter_queue, durable=True)

    return queue


async def start_consumers(keep_alive: bool) -> AbstractRobustConnection | None:
    """
    Declare every configured queue and attach a consumer to each.

    Args:
        keep_alive: Block until cancelled, closing the connection on exit.
            When False the connection is returned and the caller owns it.

    Returns:
        AbstractRobustConnection | None: The live connection when not kept alive.
    """
    conn = await get_connection()
    channel = await conn.channel()
    await channel.set_qos(prefetch_count=PREFETCH_COUNT)

    for config in get_queue_configs():
        queue = await declare_topology(channel, config)
        await queue.consume(  # type: ignore[arg-type]
            partial(
                process_message,
                handler=config.handler,
                channel=channel,
                retry_queue=config.retry_queue,
                retry_queues=(
                    [retry.model_dump() for retry in config.retry_queues]
                    if config.retry_queues
                    else None
                ),
                max_retries=config.max_retries,
                dead_letter_queue=config.dead_letter_queue,
            ),
            no_ack=False,
        )
        rabbitmq_logger.info(f"Consuming {config.name}")

    if not keep_alive:
        return conn

    try:
        await asyncio.Future()
    finally:
        await close_connection()
    return None


async def main() -> None:
    shutdown_event = asyncio.Event()

    def handle_shutdown(signum, frame):
        rabbitmq_logger.info(f"Received signal {signum}, initiating shutdown...")
        shutdown_event.set()

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    rabbitmq_logger.info("Starting workspace message worker...")
    try:
        await init_db()
        register_publisher(publish_event)
        await start_consumers(keep_alive=False)
        await shutdown_event.wait()
    except Exception as e:
        rabbitmq_logger.exception(f"Messaging error: {e}")
        raise
    finally:
        await close_connection()
        await dispose_db()
        rabbitmq_logger.info("Message worker shutdown complete.")


if __name__ == "__main__":
    asyncio.run(main())
