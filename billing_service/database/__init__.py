"""Database package for the billing service."""
from .connection import close_db, get_session_factory, init_db
from .models import Base, PaymentRecord
from .repository import PaymentRepository

__all__ = [
    "Base",
    "PaymentRecord",
    "PaymentRepository",
    "close_db",
    "get_session_factory",
    "init_db",
]
