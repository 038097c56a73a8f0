from app.core.services.event_publisher import (
    get_publisher,
    publish_safely,
    register_publisher,
    reset_publisher,
)

__all__ = [
    "get_publisher",
    "publish_safely",
    "register_publisher",
    "reset_publisher",
]
