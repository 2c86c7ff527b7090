"""RabbitMQ adapters: inbound payment requests and outbound outcomes."""
from .consumer import PaymentQueueListener
from .publisher import NotificationPublisher

__all__ = ["NotificationPublisher", "PaymentQueueListener"]
