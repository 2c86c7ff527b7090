"""
Payment record store.

Maps Payment entities to the payments table. insert() is the only place a
row for a work order is created; the unique index turns a concurrent second
insert into UniquenessViolation.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from billing_service.database.connection import get_session_factory
from billing_service.database.models import PaymentRecord
from billing_service.domain import Payment, PaymentStatus, UniquenessViolation

logger = structlog.get_logger(__name__)

_ERROR_MESSAGE_MAX_LENGTH = 1000
_UNIQUE_VIOLATION_SQLSTATE = "23505"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _is_unique_violation(error: IntegrityError) -> bool:
    orig = error.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate == _UNIQUE_VIOLATION_SQLSTATE:
        return True
    text = str(orig).lower()
    return "unique" in text or "duplicate key" in text


def to_record(payment: Payment) -> PaymentRecord:
    """Map a Payment entity to a database row."""
    error_message = payment.error_message
    if error_message is not None:
        error_message = error_message[:_ERROR_MESSAGE_MAX_LENGTH]

    return PaymentRecord(
        id=payment.id,
        work_order_id=payment.work_order_id,
        payer_id=payment.payer_id,
        amount=payment.amount,
        status=payment.status.value,
        external_payment_id=payment.external_payment_id,
        external_order_id=payment.external_order_id,
        payment_method=payment.payment_method,
        qr_code=payment.qr_code,
        qr_code_base64=payment.qr_code_base64,
        created_at=payment.created_at,
        processed_at=payment.processed_at,
        error_message=error_message,
    )


def to_entity(record: PaymentRecord) -> Payment:
    """Map a database row back to a Payment entity."""
    return Payment(
        id=record.id,
        work_order_id=record.work_order_id,
        payer_id=record.payer_id,
        amount=record.amount,
        status=PaymentStatus(record.status),
        external_payment_id=record.external_payment_id,
        external_order_id=record.external_order_id,
        payment_method=record.payment_method,
        qr_code=record.qr_code,
        qr_code_base64=record.qr_code_base64,
        created_at=_as_utc(record.created_at),
        processed_at=_as_utc(record.processed_at),
        error_message=record.error_message,
    )


class PaymentRepository:
    """
    SQLAlchemy-backed payment store.

    Each operation runs in its own short session and commits before returning,
    so the processor never holds a transaction open across gateway calls.
    """

    def __init__(
        self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    ) -> None:
        self.session_factory = session_factory or get_session_factory()

    async def insert(self, payment: Payment) -> Payment:
        """
        Insert a new payment.

        Raises:
            UniquenessViolation: If a payment already exists for the work order
        """
        async with self.session_factory() as db:
            db.add(to_record(payment))
            try:
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                if _is_unique_violation(e):
                    logger.info(
                        "payment_insert_duplicate_work_order",
                        work_order_id=str(payment.work_order_id),
                        payment_id=str(payment.id),
                    )
                    raise UniquenessViolation(
                        f"Payment already exists for work order {payment.work_order_id}",
                        work_order_id=payment.work_order_id,
                    ) from e
                raise

        logger.debug(
            "payment_inserted",
            payment_id=str(payment.id),
            work_order_id=str(payment.work_order_id),
        )
        return payment

    async def find_by_work_order(self, work_order_id: uuid.UUID) -> Optional[Payment]:
        """Look up the payment for a work order, if any."""
        async with self.session_factory() as db:
            stmt = select(PaymentRecord).where(PaymentRecord.work_order_id == work_order_id)
            result = await db.execute(stmt)
            record = result.scalar_one_or_none()

        if record is None:
            return None
        return to_entity(record)

    async def save(self, payment: Payment) -> Payment:
        """Persist the mutable state of an existing payment."""
        async with self.session_factory() as db:
            await db.merge(to_record(payment))
            await db.commit()

        logger.debug(
            "payment_saved",
            payment_id=str(payment.id),
            status=payment.status.value,
        )
        return payment
