"""
Domain Layer - Payment business rules

This layer contains:
- Payment entity with an explicit status state machine
- Value objects (requests, gateway responses, payer references)
- The billing error taxonomy

Plain dataclasses and pydantic models with structlog for transition events;
the database, the gateway and the message broker are adapters outside it.
"""
from .exceptions import (
    BillingError,
    GatewayError,
    GatewayQueryFailure,
    GatewaySubmissionFailure,
    InvalidRequest,
    InvalidStatusTransition,
    PaymentProcessingFailure,
    ProcessingConflict,
    UniquenessViolation,
)
from .payment import Payment
from .value_objects import GatewayResponse, PayerReference, PaymentRequest, PaymentStatus

__all__ = [
    "BillingError",
    "GatewayError",
    "GatewayQueryFailure",
    "GatewayResponse",
    "GatewaySubmissionFailure",
    "InvalidRequest",
    "InvalidStatusTransition",
    "PayerReference",
    "Payment",
    "PaymentProcessingFailure",
    "PaymentRequest",
    "PaymentStatus",
    "ProcessingConflict",
    "UniquenessViolation",
]
