import logging
import pika
from .config import rabbitmq_config

logger = logging.getLogger(__name__)


class RabbitMQSetup:
    """Creates connections and declares the notification topology"""

    def create_connection(self) -> pika.BlockingConnection:
        credentials = pika.PlainCredentials(rabbitmq_config.username, rabbitmq_config.password)
        parameters = pika.ConnectionParameters(
            host=rabbitmq_config.host,
            port=rabbitmq_config.port,
            virtual_host=rabbitmq_config.virtual_host,
            credentials=credentials,
            heartbeat=rabbitmq_config.heartbeat,
            connection_attempts=rabbitmq_config.connection_attempts,
            retry_delay=rabbitmq_config.retry_delay,
        )
        return pika.BlockingConnection(parameters)

    def declare_topology(self, channel) -> None:
        channel.exchange_declare(
            exchange=rabbitmq_config.notification_exchange,
            exchange_type="topic",
            durable=True,
        )
        channel.queue_declare(queue=rabbitmq_config.notification_queue, durable=True)
        for routing_key in (rabbitmq_config.notification_create_key, rabbitmq_config.notification_delete_key):
            channel.queue_bind(
                queue=rabbitmq_config.notification_queue,
                exchange=rabbitmq_config.notification_exchange,
                routing_key=routing_key,
            )


def init_rabbitmq() -> bool:
    """Declare exchanges and queues. The service keeps running if the broker is down."""
    setup = RabbitMQSetup()
    try:
        connection = setup.create_connection()
        try:
            setup.declare_topology(connection.channel())
        finally:
            connection.close()
        logger.info("RabbitMQ topology declared")
        return True
    except Exception as e:
        logger.error(f"Failed to initialize RabbitMQ: {e}")
        return False
