from pydantic_settings import BaseSettings, SettingsConfigDict


class RabbitMQConfig(BaseSettings):
    """RabbitMQ connection and routing configuration."""

    model_config = SettingsConfigDict(env_prefix="RABBITMQ_", extra="ignore")

    host: str = "localhost"
    port: int = 5672
    username: str = "guest"
    password: str = "guest"
    virtual_host: str = "/"
    heartbeat: int = 60
    connection_attempts: int = 3
    retry_delay: int = 2

    notification_exchange: str = "notifications.exchange"
    notification_queue: str = "notifications.queue"
    notification_create_key: str = "notification.create"
    notification_delete_key: str = "notification.delete"


rabbitmq_config = RabbitMQConfig()
