"""Background workers for async processing."""
from .payment_consumer import start_payment_consumer

__all__ = ["start_payment_consumer"]
