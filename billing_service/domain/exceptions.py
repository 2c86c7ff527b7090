"""
Billing error taxonomy.

Recovery policy per error:
- InvalidRequest: rejected before any side effect, never retried
- UniquenessViolation: creation race, recovered inside the processor
- ProcessingConflict: race left no winner record, surfaced for redelivery
- GatewayQueryFailure: recovered via the submission response fallback
- GatewaySubmissionFailure / PaymentProcessingFailure: record marked FAILED, surfaced
"""
from typing import Any, Optional
from uuid import UUID


class BillingError(Exception):
    """Base exception for billing errors."""

    def __init__(self, message: str, work_order_id: Optional[UUID] = None, **kwargs: Any):
        super().__init__(message)
        self.message = message
        self.work_order_id = work_order_id
        self.metadata = kwargs


class InvalidRequest(BillingError):
    """Raised when a payment request fails validation."""

    pass


class InvalidStatusTransition(BillingError):
    """Raised when a payment is moved to a status its current status does not allow."""

    pass


class UniquenessViolation(BillingError):
    """Raised by the store when a payment already exists for the work order."""

    pass


class ProcessingConflict(BillingError):
    """Raised when an insert lost a race but the winning record cannot be found."""

    pass


class GatewayError(BillingError):
    """Base exception for payment gateway errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: bool = False,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.retryable = retryable


class GatewaySubmissionFailure(GatewayError):
    """Raised when a payment order could not be created at the gateway."""

    pass


class GatewayQueryFailure(GatewayError):
    """Raised when the status of a gateway order could not be retrieved."""

    pass


class PaymentProcessingFailure(BillingError):
    """Wraps any unexpected error after the payment was marked FAILED."""

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        payment_id: Optional[UUID] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.cause = cause
        self.payment_id = payment_id
