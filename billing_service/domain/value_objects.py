"""
Value Objects - Immutable payment concepts

PaymentStatus carries the state machine; requests and gateway responses are
immutable once built so the processor can pass them around freely.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from billing_service.domain.exceptions import InvalidRequest

# Largest amount the payments.amount column (NUMERIC(10, 2)) can hold
MAX_AMOUNT = Decimal("99999999.99")


class PaymentStatus(str, Enum):
    """
    Payment lifecycle states.

    State machine:
    PENDING → PROCESSING → APPROVED
       ↓          ↓     ↘ REJECTED
     FAILED ←─────┘

    APPROVED, REJECTED and FAILED are terminal.
    """

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL

    @property
    def is_positive(self) -> bool:
        """Outcomes routed to the success channel."""
        return self in (PaymentStatus.APPROVED, PaymentStatus.PROCESSING)

    def can_transition_to(self, target: PaymentStatus) -> bool:
        return target in _TRANSITIONS[self]

    @classmethod
    def parse_gateway_status(cls, raw: Optional[str]) -> PaymentStatus:
        """
        Map a Mercado Pago order/payment status onto our lifecycle.

        Unknown or missing statuses are treated as still in flight.
        """
        if raw is None:
            return cls.PROCESSING
        return _GATEWAY_STATUS_MAP.get(raw.strip().lower(), cls.PROCESSING)


_TERMINAL = frozenset(
    {PaymentStatus.APPROVED, PaymentStatus.REJECTED, PaymentStatus.FAILED}
)

_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PROCESSING, PaymentStatus.FAILED}),
    PaymentStatus.PROCESSING: frozenset(
        {PaymentStatus.APPROVED, PaymentStatus.REJECTED, PaymentStatus.FAILED}
    ),
    PaymentStatus.APPROVED: frozenset(),
    PaymentStatus.REJECTED: frozenset(),
    PaymentStatus.FAILED: frozenset(),
}

_GATEWAY_STATUS_MAP = {
    "approved": PaymentStatus.APPROVED,
    "processed": PaymentStatus.APPROVED,
    "accredited": PaymentStatus.APPROVED,
    "rejected": PaymentStatus.REJECTED,
    "cancelled": PaymentStatus.REJECTED,
    "canceled": PaymentStatus.REJECTED,
    "expired": PaymentStatus.REJECTED,
    "refunded": PaymentStatus.REJECTED,
    "pending": PaymentStatus.PROCESSING,
    "processing": PaymentStatus.PROCESSING,
    "created": PaymentStatus.PROCESSING,
    "action_required": PaymentStatus.PROCESSING,
    "waiting_transfer": PaymentStatus.PROCESSING,
    "waiting_payment": PaymentStatus.PROCESSING,
}


class PaymentRequest(BaseModel):
    """
    Inbound request to pay one work order.

    Accepts both our field names and the legacy queue keys
    (customer_id, first_name).
    """

    model_config = ConfigDict(frozen=True)

    work_order_id: UUID
    payer_id: UUID = Field(validation_alias=AliasChoices("payer_id", "customer_id"))
    amount: Decimal
    description: Optional[str] = None
    payer_first_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("payer_first_name", "first_name")
    )
    payer_email: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        """Round to cents and require a positive value the store can hold."""
        if v > MAX_AMOUNT:
            raise ValueError(f"Amount must not exceed {MAX_AMOUNT}")
        try:
            amount = v.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        except InvalidOperation as e:
            raise ValueError("Amount is out of range") from e
        if amount <= 0:
            raise ValueError("Amount must be positive")
        if amount > MAX_AMOUNT:
            raise ValueError(f"Amount must not exceed {MAX_AMOUNT}")
        return amount

    @field_validator("description")
    @classmethod
    def blank_description_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> PaymentRequest:
        """
        Build a request from a decoded message body.

        Raises:
            InvalidRequest: If a field is missing or invalid
        """
        if not isinstance(payload, Mapping):
            raise InvalidRequest(f"Payment request must be an object, got {type(payload).__name__}")

        try:
            return cls.model_validate(dict(payload))
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}"
                for err in e.errors()
            )
            raise InvalidRequest(
                f"Invalid payment request: {problems}",
                raw_work_order_id=payload.get("work_order_id"),
            ) from e

    @property
    def effective_description(self) -> str:
        return self.description or f"Payment for order {self.work_order_id}"

    def payer_reference(self, default_email: str) -> PayerReference:
        return PayerReference(
            payer_id=self.payer_id,
            first_name=self.payer_first_name,
            email=self.payer_email or default_email,
        )


@dataclass(frozen=True)
class PayerReference:
    """Who pays, as far as the gateway needs to know."""

    payer_id: UUID
    email: str
    first_name: Optional[str] = None


@dataclass(frozen=True)
class GatewayResponse:
    """Normalized answer from the gateway for a submission or a status query."""

    external_payment_id: Optional[str]
    external_order_id: Optional[str]
    status: PaymentStatus
    payment_method: str = "pix"
    qr_code: Optional[str] = None
    qr_code_base64: Optional[str] = None
    error_message: Optional[str] = None
