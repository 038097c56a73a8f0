import aio_pika
from aio_pika.abc import AbstractRobustChannel, AbstractRobustConnection

from app.core.config import rabbitmq_logger, settings

_connection: AbstractRobustConnection | None = None
_publish_channel: AbstractRobustChannel | None = None


async def get_connection() -> AbstractRobustConnection:
    """
    Return the process-wide robust RabbitMQ connection, opening it if needed.

    Returns:
        AbstractRobustConnection: An open connection to ``RABBITMQ_URL``.
    """
    global _connection
    if _connection is None or _connection.is_closed:
        rabbitmq_logger.info("Opening RabbitMQ connection")
        _connection = await aio_pika.connect_robust(settings.RABBITMQ_URL)
    return _connection


async def get_publish_channel() -> AbstractRobustChannel:
    """Channel shared by publishers; consumers open their own."""
    global _publish_channel
    if _publish_channel is None or _publish_channel.is_closed:
        connection = await get_connection()
        _publish_channel = await connection.channel()  # type: ignore[assignment]
    return _publish_channel  # type: ignore[return-value]


async def close_connection() -> None:
    global _connection, _publish_channel
    if _publish_channel is not None and not _publish_channel.is_closed:
        await _publish_channel.close()
    if _connection is not None and not _connection.is_closed:
        await _connection.close()
        rabbitmq_logger.info("RabbitMQ connection closed")
    _publish_channel = None
    _connection = None
