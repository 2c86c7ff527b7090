"""Interfaces the payment processor depends on."""
import uuid
from decimal import Decimal
from typing import Optional, Protocol

from billing_service.domain import GatewayResponse, PayerReference, Payment


class PaymentStore(Protocol):
    """Durable payments keyed by work order; insert enforces uniqueness."""

    async def insert(self, payment: Payment) -> Payment: ...

    async def find_by_work_order(self, work_order_id: uuid.UUID) -> Optional[Payment]: ...

    async def save(self, payment: Payment) -> Payment: ...


class PaymentGateway(Protocol):
    """Creates instant-transfer orders and reports their status."""

    async def submit(
        self,
        amount: Decimal,
        payer: PayerReference,
        description: str,
        idempotency_key: str,
    ) -> GatewayResponse: ...

    async def query_status(self, external_order_id: str) -> GatewayResponse: ...


class NotificationPort(Protocol):
    """Delivers a payment outcome downstream. Must not raise."""

    async def publish(self, payment: Payment) -> bool: ...
