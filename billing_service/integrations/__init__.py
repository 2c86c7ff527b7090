"""External integrations for payment processing."""
from .mercadopago_client import CircuitBreaker, CircuitOpenError, MercadoPagoClient

__all__ = ["CircuitBreaker", "CircuitOpenError", "MercadoPagoClient"]
