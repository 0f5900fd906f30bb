import json
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Any, Optional
import pika
from pika.exceptions import AMQPConnectionError, ChannelClosed, StreamLostError
from .config import rabbitmq_config
from .topology import RabbitMQSetup

logger = logging.getLogger(__name__)

RECONNECT_ERRORS = (AMQPConnectionError, ChannelClosed, StreamLostError)


class RabbitMQProducer:
    """
    Publishes notification commands to the notifications exchange.

    A BlockingConnection is not thread-safe and requests are served from a
    threadpool, so every publish holds ``_lock``.
    """

    def __init__(self):
        self.connection: Optional[pika.BlockingConnection] = None
        self.channel = None
        self.setup = RabbitMQSetup()
        self._lock = threading.Lock()

    @property
    def is_connected(self) -> bool:
        return bool(self.connection and self.connection.is_open and self.channel and self.channel.is_open)

    def connect(self) -> None:
        try:
            self.connection = self.setup.create_connection()
            self.channel = self.connection.channel()
            self.channel.confirm_delivery()
            logger.info("Notification producer connected")
        except Exception as e:
            logger.error(f"Notification producer could not connect: {e}")
            raise

    def disconnect(self) -> None:
        with self._lock:
            if self.channel and self.channel.is_open:
                self.channel.close()
            if self.connection and self.connection.is_open:
                self.connection.close()
            self.channel = None
            self.connection = None
        logger.info("Notification producer disconnected")

    def _basic_publish(self, routing_key: str, body: str, correlation_id: Optional[str]) -> None:
        if not self.is_connected:
            self.connect()
        self.channel.basic_publish(
            exchange=rabbitmq_config.notification_exchange,
            routing_key=routing_key,
            body=body,
            properties=pika.BasicProperties(
                delivery_mode=2,  # persistent
                content_type="application/json",
                correlation_id=correlation_id,
            ),
        )

    def _publish(self, routing_key: str, message_data: Dict[str, Any], correlation_id: Optional[str] = None) -> bool:
        """Publish one JSON message, reconnecting once if the broker dropped us."""
        body = json.dumps(
            {**message_data, "timestamp": datetime.now(timezone.utc).isoformat()},
            default=str,
        )
        with self._lock:
            try:
                self._basic_publish(routing_key, body, correlation_id)
                return True
            except RECONNECT_ERRORS as e:
                logger.warning(f"Broker connection lost while publishing {routing_key}, reconnecting: {e}")
                self.connection = None
                self.channel = None
            except Exception as e:
                logger.error(f"Failed to publish {routing_key} message: {e}")
                return False

            try:
                self._basic_publish(routing_key, body, correlation_id)
                return True
            except Exception as e:
                logger.error(f"Failed to publish {routing_key} message after reconnecting: {e}")
                return False

    def publish_notification(self, notification: Dict[str, Any]) -> bool:
        """
        Publish a notification for delivery to ``notification["user_id"]``.

        Returns:
            bool: True if the broker accepted the message
        """
        published = self._publish(
            rabbitmq_config.notification_create_key,
            notification,
            correlation_id=notification.get("related_id"),
        )
        if published:
            logger.info(f"Published {notification.get('type')} notification for {notification.get('user_id')}")
        return published

    def publish_notification_deletion(self, related_id: str) -> bool:
        """Ask the notification component to drop notifications about ``related_id``."""
        published = self._publish(
            rabbitmq_config.notification_delete_key,
            {"related_id": related_id},
            correlation_id=related_id,
        )
        if published:
            logger.info(f"Published notification deletion for {related_id}")
        return published


_rabbitmq_producer: Optional[RabbitMQProducer] = None
_producer_lock = threading.Lock()


def get_rabbitmq_producer() -> RabbitMQProducer:
    """Shared producer, connected on first use"""
    global _rabbitmq_producer
    with _producer_lock:
        if _rabbitmq_producer is None:
            producer = RabbitMQProducer()
            producer.connect()
            _rabbitmq_producer = producer
        return _rabbitmq_producer


def close_rabbitmq_producer() -> None:
    global _rabbitmq_producer
    with _producer_lock:
        producer, _rabbitmq_producer = _rabbitmq_producer, None
    if producer:
        producer.disconnect()
