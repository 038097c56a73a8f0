from app.infrastructure.messaging.connection import close_connection
from app.infrastructure.messaging.publisher import publish_event


async def start_consumers(keep_alive: bool):
    """Start the queue consumers; imported lazily because the handlers pull in the DB layer."""
    from app.infrastructure.messaging.main import start_consumers as _start_consumers

    return await _start_consumers(keep_alive)


__all__ = ["close_connection", "publish_event", "start_consumers"]
