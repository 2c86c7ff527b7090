"""
Payment request queue listener.

Acknowledgement contract:
- success: ack
- malformed or invalid request: reject without requeue (dead-letter)
- processing failure: nack with requeue so the request is redelivered and the
  processor resumes it idempotently, until the delivery limit is reached
"""
import json
import time
from typing import Any, Optional

import structlog
from aio_pika.abc import AbstractIncomingMessage

from billing_service.config import Settings, get_settings
from billing_service.core.context import ProcessingContext
from billing_service.core.payment_processor import PaymentProcessor
from billing_service.domain import InvalidRequest, PaymentRequest
from billing_service.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)

DELIVERY_COUNT_HEADER = "x-delivery-count"
CORRELATION_ID_HEADER = "x-correlation-id"


class PaymentQueueListener:
    """Feeds queued payment requests to the payment processor."""

    def __init__(self, processor: PaymentProcessor, settings: Optional[Settings] = None):
        self.processor = processor
        self.settings = settings or get_settings()

    @staticmethod
    def _delivery_attempt(message: AbstractIncomingMessage) -> int:
        # Quorum queues count previous deliveries in x-delivery-count
        headers = message.headers or {}
        try:
            previous = int(headers.get(DELIVERY_COUNT_HEADER) or 0)
        except (TypeError, ValueError):
            previous = 0
        if previous == 0 and message.redelivered:
            previous = 1
        return previous + 1

    def build_context(self, message: AbstractIncomingMessage) -> ProcessingContext:
        headers = message.headers or {}
        correlation_id = message.correlation_id or headers.get(CORRELATION_ID_HEADER)
        return ProcessingContext.new(
            correlation_id=str(correlation_id) if correlation_id else None,
            message_id=message.message_id,
            delivery_attempt=self._delivery_attempt(message),
        )

    @staticmethod
    def parse(message: AbstractIncomingMessage) -> PaymentRequest:
        """
        Decode a message body into a payment request.

        Raises:
            InvalidRequest: If the body is not JSON or fails validation
        """
        try:
            payload: Any = json.loads(message.body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise InvalidRequest(f"Payment request is not valid JSON: {e}") from e
        return PaymentRequest.from_payload(payload)

    async def handle(self, message: AbstractIncomingMessage) -> None:
        """Process one delivery and settle it according to the outcome."""
        context = self.build_context(message)
        log = logger.bind(**context.log_fields())
        start_time = time.time()

        async with message.process(requeue=True, ignore_processed=True):
            try:
                request = self.parse(message)
            except InvalidRequest as e:
                log.error("payment_request_invalid", error=str(e))
                await message.reject(requeue=False)
                metrics.record_message_consumed("dead_lettered")
                return

            log = log.bind(work_order_id=str(request.work_order_id))
            log.info("payment_request_received", amount=str(request.amount))

            try:
                payment = await self.processor.process_payment(request, context)
            except Exception as e:
                await self._settle_failure(message, context, e, log)
                return

            await message.ack()
            metrics.record_message_consumed("acked")
            log.info(
                "payment_request_handled",
                payment_id=str(payment.id),
                status=payment.status.value,
                duration_seconds=time.time() - start_time,
            )

    async def _settle_failure(
        self,
        message: AbstractIncomingMessage,
        context: ProcessingContext,
        error: Exception,
        log: Any,
    ) -> None:
        if context.delivery_attempt >= self.settings.max_delivery_attempts:
            log.error(
                "payment_request_dead_lettered",
                error=str(error),
                error_type=type(error).__name__,
                max_delivery_attempts=self.settings.max_delivery_attempts,
            )
            await message.reject(requeue=False)
            metrics.record_message_consumed("dead_lettered")
            return

        log.warning(
            "payment_request_requeued",
            error=str(error),
            error_type=type(error).__name__,
        )
        await message.nack(requeue=True)
        metrics.record_message_consumed("requeued")
