"""Core payment processing logic."""
from .context import ProcessingContext
from .payment_processor import PaymentProcessor
from .ports import NotificationPort, PaymentGateway, PaymentStore

__all__ = [
    "NotificationPort",
    "PaymentGateway",
    "PaymentProcessor",
    "PaymentStore",
    "ProcessingContext",
]
