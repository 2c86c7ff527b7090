"""
Outcome notification publisher.

APPROVED and PROCESSING payments go to the success queue, everything else to
the failure queue. Delivery is best effort: errors are logged, never raised.
"""
import json
from datetime import datetime, timezone
from typing import Any, Optional

import aio_pika
import structlog
from aio_pika.abc import AbstractChannel

from billing_service.config import Settings, get_settings
from billing_service.domain import Payment
from billing_service.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)


class NotificationPublisher:
    """Publishes payment outcomes to the success/failure queues."""

    def __init__(
        self,
        channel: AbstractChannel,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize publisher.

        Args:
            channel: Open channel; queues are addressed through the default exchange
            settings: Optional settings
        """
        self.channel = channel
        self.settings = settings or get_settings()

    def route(self, payment: Payment) -> str:
        """Queue name for a payment's outcome."""
        if payment.status.is_positive:
            return self.settings.payment_response_success_queue
        return self.settings.payment_response_failure_queue

    @staticmethod
    def build_message(payment: Payment) -> aio_pika.Message:
        body: dict[str, Any] = payment.to_dict()
        body["published_at"] = datetime.now(timezone.utc).isoformat()

        return aio_pika.Message(
            json.dumps(body).encode("utf-8"),
            content_type="application/json",
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            message_id=f"{payment.id}:{payment.status.value}",
        )

    async def publish(self, payment: Payment) -> bool:
        """
        Publish a payment outcome.

        Returns:
            bool: True if the broker accepted the message
        """
        queue_name = self.route(payment)
        channel_label = "success" if payment.status.is_positive else "failure"

        try:
            await self.channel.default_exchange.publish(
                self.build_message(payment),
                routing_key=queue_name,
            )
        except Exception as e:
            metrics.record_notification(channel_label, "error")
            logger.error(
                "payment_notification_failed",
                payment_id=str(payment.id),
                work_order_id=str(payment.work_order_id),
                queue=queue_name,
                error=str(e),
            )
            return False

        metrics.record_notification(channel_label, "sent")
        logger.info(
            "payment_notification_sent",
            payment_id=str(payment.id),
            work_order_id=str(payment.work_order_id),
            status=payment.status.value,
            queue=queue_name,
        )
        return True
