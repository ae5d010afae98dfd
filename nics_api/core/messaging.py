"""RabbitMQ message bus client for client notifications."""

from __future__ import annotations

import logging
from typing import Any

from kombu import Connection, Exchange
from kombu.pools import producers

from nics_api.core.config import get_settings

logger = logging.getLogger(__name__)


class MessageBusClient:
    """Publishes JSON messages to the NICS topic exchange.

    Web and mobile clients subscribe to routing keys such as
    ``iweb.NICS.ws.<workspace>.incidentorg.<org>.add``; this client only
    produces, it never consumes.
    """

    def __init__(
        self,
        url: str | None = None,
        exchange_name: str | None = None,
        max_retries: int | None = None,
    ) -> None:
        """Initialize the client from settings, with optional overrides."""
        settings = get_settings()

        self._connection = Connection(url or settings.rabbitmq_url)
        self._exchange = Exchange(
            exchange_name or settings.rabbitmq_exchange,
            type="topic",
            durable=True,
        )
        self._max_retries = (
            settings.rabbitmq_publish_retries if max_retries is None else max_retries
        )

    @property
    def exchange(self) -> Exchange:
        return self._exchange

    def publish(self, topic: str, payload: Any) -> None:
        """Publish one message with ``topic`` as the routing key.

        Args:
            topic: Routing key on the topic exchange
            payload: JSON-serializable message body

        Raises:
            kombu.exceptions.OperationalError: If the broker stays unreachable
                after the configured retries
        """
        with producers[self._connection].acquire(block=True) as producer:
            producer.publish(
                payload,
                exchange=self._exchange,
                routing_key=topic,
                serializer="json",
                declare=[self._exchange],
                retry=True,
                retry_policy={
                    "max_retries": self._max_retries,
                    "interval_start": 0,
                    "interval_step": 1,
                    "interval_max": 5,
                },
            )
        logger.debug("Sent to topic %s", topic)

    def close(self) -> None:
        self._connection.release()


_message_bus: MessageBusClient | None = None


def get_message_bus() -> MessageBusClient:
    """Get message bus client singleton instance.

    Returns:
        MessageBusClient instance
    """
    global _message_bus
    if _message_bus is None:
        _message_bus = MessageBusClient()
    return _message_bus
