"""
Payment entity - one per work order.

Status only moves through the transition methods below; each one checks the
state machine on PaymentStatus and raises InvalidStatusTransition otherwise.
Identity, correlation keys and the creation time are write-once.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

import structlog

from billing_service.domain.exceptions import InvalidStatusTransition
from billing_service.domain.value_objects import GatewayResponse, PaymentStatus

logger = structlog.get_logger(__name__)

_IMMUTABLE_FIELDS = frozenset({"id", "work_order_id", "payer_id", "amount", "created_at"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Payment:
    """
    Payment entity.

    processed_at is stamped on the first transition out of PENDING and is
    never touched again, so it is set exactly when status is not PENDING.
    """

    id: uuid.UUID
    work_order_id: uuid.UUID
    payer_id: uuid.UUID
    amount: Decimal
    status: PaymentStatus = PaymentStatus.PENDING
    external_payment_id: Optional[str] = None
    external_order_id: Optional[str] = None
    payment_method: Optional[str] = None
    qr_code: Optional[str] = None
    qr_code_base64: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    processed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _IMMUTABLE_FIELDS and name in self.__dict__:
            raise AttributeError(f"Payment.{name} cannot be changed once set")
        super().__setattr__(name, value)

    @classmethod
    def create(
        cls,
        work_order_id: uuid.UUID,
        payer_id: uuid.UUID,
        amount: Decimal,
    ) -> Payment:
        """Start a new PENDING payment with a fresh identifier."""
        return cls(
            id=uuid.uuid4(),
            work_order_id=work_order_id,
            payer_id=payer_id,
            amount=amount,
        )

    def _transition(self, target: PaymentStatus) -> None:
        if not self.status.can_transition_to(target):
            raise InvalidStatusTransition(
                f"Cannot move payment {self.id} from {self.status.value} to {target.value}",
                work_order_id=self.work_order_id,
                current=self.status.value,
                target=target.value,
            )

        logger.debug(
            "payment_status_transition",
            payment_id=str(self.id),
            from_status=self.status.value,
            to_status=target.value,
        )
        if self.processed_at is None:
            self.processed_at = utcnow()
        self.status = target

    def mark_processing(self, response: GatewayResponse) -> None:
        """Record the gateway correlation fields from a submission."""
        self._transition(PaymentStatus.PROCESSING)
        self.external_payment_id = response.external_payment_id
        self.external_order_id = response.external_order_id
        self.payment_method = response.payment_method
        self.qr_code = response.qr_code
        self.qr_code_base64 = response.qr_code_base64

    def mark_approved(self) -> None:
        self._transition(PaymentStatus.APPROVED)

    def mark_rejected(self, reason: Optional[str]) -> None:
        self._transition(PaymentStatus.REJECTED)
        self.error_message = reason

    def mark_failed(self, reason: Optional[str]) -> None:
        self._transition(PaymentStatus.FAILED)
        self.error_message = reason

    def to_dict(self) -> dict[str, Any]:
        """Serializable view used for notifications and logs."""
        return {
            "payment_id": str(self.id),
            "work_order_id": str(self.work_order_id),
            "payer_id": str(self.payer_id),
            "amount": str(self.amount),
            "status": self.status.value,
            "external_payment_id": self.external_payment_id,
            "external_order_id": self.external_order_id,
            "payment_method": self.payment_method,
            "qr_code": self.qr_code,
            "qr_code_base64": self.qr_code_base64,
            "created_at": self.created_at.isoformat(),
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "error_message": self.error_message,
        }
