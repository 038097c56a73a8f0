"""
Test suite for RabbitMQ message publisher.

Run tests:
    pytest tests/infrastructure/messaging/test_publisher.py -v
"""

import json
from unittest.mock import AsyncMock, patch

import aio_pika
import pytest

from app.infrastructure.messaging import publisher as publisher_module
from app.infrastructure.messaging.publisher import publish_event


@pytest.fixture
def mock_channel():
    channel = AsyncMock(spec=aio_pika.Channel)
    channel.default_exchange = AsyncMock()
    publisher_module._declared_queues.clear()
    with patch(
        "app.infrastructure.messaging.publisher.get_publish_channel",
        new_callable=AsyncMock,
    ) as mock_get_channel:
        mock_get_channel.return_value = channel
        yield channel
    publisher_module._declared_queues.clear()


class TestPublishEvent:

    @pytest.mark.asyncio
    async def test_publish_event_basic(self, mock_channel):
        await publish_event("workspace_activity", {"action": "workspace_create"})

        mock_channel.declare_queue.assert_called_once_with(
            "workspace_activity", durable=True
        )
        mock_channel.default_exchange.publish.assert_called_once()
        assert (
            mock_channel.default_exchange.publish.call_args.kwargs["routing_key"]
            == "workspace_activity"
        )

    @pytest.mark.asyncio
    async def test_publish_event_message_format(self, mock_channel):
        event = {"recipient_id": "abc", "type": "member_joined"}

        await publish_event("workspace_notifications", event, {"x-source": "api"})

        message = mock_channel.default_exchange.publish.call_args.args[0]
        assert json.loads(message.body.decode()) == event
        assert message.content_type == "application/json"
        assert message.delivery_mode == aio_pika.DeliveryMode.PERSISTENT
        assert message.headers == {"x-source": "api"}

    @pytest.mark.asyncio
    async def test_queue_declared_once(self, mock_channel):
        await publish_event("workspace_activity", {"n": 1})
        await publish_event("workspace_activity", {"n": 2})
        await publish_event("workspace_notifications", {"n": 3})

        assert mock_channel.declare_queue.call_count == 2
        assert mock_channel.default_exchange.publish.call_count == 3

    @pytest.mark.asyncio
    async def test_broker_error_propagates(self):
        with patch(
            "app.infrastructure.messaging.publisher.get_publish_channel",
            new=AsyncMock(side_effect=ConnectionError("refused")),
        ):
            with pytest.raises(ConnectionError):
                await publish_event("workspace_activity", {})
