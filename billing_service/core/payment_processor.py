"""
Payment processor: exactly one gateway submission per work order.

Orchestrates the payment flow:
1. Validate the request
2. Look up an existing payment for the work order
3. Create the PENDING record (the unique work order key arbitrates races)
4. Submit the PIX order to the gateway
5. Reconcile the status with a follow-up query (fallback: submission status)
6. Persist the outcome
7. Publish the outcome notification

There is no in-process or distributed lock. Concurrent attempts for the same
work order are serialized only by the store rejecting the second insert.
"""
import time
from typing import Any, Mapping, Optional, Tuple, Union

import structlog

from billing_service.config import Settings, get_settings
from billing_service.core.context import ProcessingContext
from billing_service.core.ports import NotificationPort, PaymentGateway, PaymentStore
from billing_service.database.repository import PaymentRepository
from billing_service.domain import (
    GatewayResponse,
    Payment,
    PaymentProcessingFailure,
    PaymentRequest,
    PaymentStatus,
    ProcessingConflict,
    UniquenessViolation,
)
from billing_service.integrations.mercadopago_client import MercadoPagoClient
from billing_service.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)


class PaymentProcessor:
    """
    Idempotent payment orchestrator.

    Safe to call any number of times for the same work order: every call
    converges on the stored payment for that order.
    """

    def __init__(
        self,
        publisher: NotificationPort,
        repository: Optional[PaymentStore] = None,
        gateway: Optional[PaymentGateway] = None,
        settings: Optional[Settings] = None,
        notify_on_failure: Optional[bool] = None,
    ):
        """
        Initialize payment processor.

        Args:
            publisher: Outcome notification publisher
            repository: Optional payment store (defaults to the SQL repository)
            gateway: Optional payment gateway (defaults to Mercado Pago)
            settings: Optional settings
            notify_on_failure: Publish FAILED payments before raising
                (defaults to settings.notify_on_failure)
        """
        self.settings = settings or get_settings()

        self.repository = repository if repository is not None else PaymentRepository()
        self.gateway = gateway if gateway is not None else MercadoPagoClient(settings=self.settings)
        self.publisher = publisher
        self.notify_on_failure = (
            self.settings.notify_on_failure if notify_on_failure is None else notify_on_failure
        )

        logger.info("payment_processor_initialized", notify_on_failure=self.notify_on_failure)

    async def process_payment(
        self,
        request: Union[PaymentRequest, Mapping[str, Any]],
        context: Optional[ProcessingContext] = None,
    ) -> Payment:
        """
        Process a payment request for a work order.

        Args:
            request: Validated request, or a raw mapping to validate
            context: Correlation context for this delivery

        Returns:
            Payment: The authoritative payment for the work order

        Raises:
            InvalidRequest: If the request is invalid (nothing is persisted)
            ProcessingConflict: If an insert race left no record to return
            PaymentProcessingFailure: If processing failed after the record was created
        """
        context = context or ProcessingContext.new()
        if not isinstance(request, PaymentRequest):
            request = PaymentRequest.from_payload(request)

        log = logger.bind(**context.log_fields(), work_order_id=str(request.work_order_id))
        start_time = time.time()

        log.info(
            "payment_processing_started",
            payer_id=str(request.payer_id),
            amount=str(request.amount),
        )

        payment, should_submit = await self._find_or_create(request, log)
        if not should_submit:
            return payment

        return await self._submit_and_reconcile(payment, request, log, start_time)

    async def _find_or_create(
        self, request: PaymentRequest, log: Any
    ) -> Tuple[Payment, bool]:
        """
        Resolve the payment record for the work order.

        Returns:
            Tuple[Payment, bool]: The record and whether it still needs submitting
        """
        existing = await self.repository.find_by_work_order(request.work_order_id)

        if existing is not None:
            if existing.status != PaymentStatus.PENDING:
                log.info(
                    "payment_idempotent_return",
                    payment_id=str(existing.id),
                    status=existing.status.value,
                )
                metrics.record_deduplicated("existing")
                return existing, False

            # A previous attempt stopped between creation and the final save
            log.warning("payment_resuming_pending", payment_id=str(existing.id))
            if existing.amount != request.amount:
                log.warning(
                    "payment_request_amount_mismatch",
                    payment_id=str(existing.id),
                    stored_amount=str(existing.amount),
                    requested_amount=str(request.amount),
                )
            metrics.record_resumed()
            return existing, True

        payment = Payment.create(
            work_order_id=request.work_order_id,
            payer_id=request.payer_id,
            amount=request.amount,
        )

        try:
            payment = await self.repository.insert(payment)
        except UniquenessViolation:
            log.info("payment_creation_race_lost", payment_id=str(payment.id))
            winner = await self.repository.find_by_work_order(request.work_order_id)
            if winner is None:
                log.error("payment_creation_race_without_winner")
                raise ProcessingConflict(
                    f"Payment insert was rejected but no payment exists for work order "
                    f"{request.work_order_id}",
                    work_order_id=request.work_order_id,
                )
            metrics.record_deduplicated("race_lost")
            return winner, False

        log.info("payment_record_created", payment_id=str(payment.id))
        return payment, True

    async def _submit_and_reconcile(
        self,
        payment: Payment,
        request: PaymentRequest,
        log: Any,
        start_time: float,
    ) -> Payment:
        log = log.bind(payment_id=str(payment.id))

        try:
            response = await self.gateway.submit(
                amount=payment.amount,
                payer=request.payer_reference(self.settings.default_payer_email),
                description=request.effective_description,
                idempotency_key=str(payment.id),
            )

            payment.mark_processing(response)
            log.info(
                "payment_submitted",
                external_order_id=response.external_order_id,
                external_payment_id=response.external_payment_id,
                submission_status=response.status.value,
            )

            await self._reconcile(payment, response, log)

            payment = await self.repository.save(payment)

        except Exception as e:
            await self._fail(payment, e, log, start_time)

        metrics.record_payment_processed(payment.status.value, time.time() - start_time)
        log.info(
            "payment_processing_completed",
            status=payment.status.value,
            external_order_id=payment.external_order_id,
        )

        await self.publisher.publish(payment)
        return payment

    async def _reconcile(
        self, payment: Payment, submission: GatewayResponse, log: Any
    ) -> None:
        """
        Apply the authoritative status.

        The follow-up query wins when it answers. If it cannot be completed the
        submission response decides: APPROVED stays APPROVED, anything else is
        REJECTED with the submission's error message.
        """
        try:
            current = await self.gateway.query_status(submission.external_order_id)
        except Exception as e:
            log.warning(
                "payment_status_query_failed",
                error=str(e),
                error_type=type(e).__name__,
                fallback_status=submission.status.value,
            )
            metrics.record_reconciliation_fallback(submission.status.value)

            if submission.status == PaymentStatus.APPROVED:
                payment.mark_approved()
            else:
                payment.mark_rejected(submission.error_message)
            return

        log.info("payment_status_queried", queried_status=current.status.value)

        if current.status == PaymentStatus.APPROVED:
            payment.mark_approved()
        elif current.status == PaymentStatus.REJECTED:
            payment.mark_rejected(current.error_message)
        else:
            log.info("payment_still_processing")

    async def _fail(
        self, payment: Payment, error: Exception, log: Any, start_time: float
    ) -> None:
        """
        Mark the payment FAILED, persist it best effort, and raise.

        A payment already decided in memory is only saved again; when that
        save succeeds the outcome stands and the caller publishes it.

        Raises:
            PaymentProcessingFailure: Unless a decided outcome was saved on retry
        """
        reason = str(error) or type(error).__name__

        if payment.status.is_terminal:
            log.warning(
                "payment_outcome_save_failed",
                status=payment.status.value,
                error=reason,
            )
            try:
                await self.repository.save(payment)
            except Exception as save_error:
                log.error(
                    "payment_outcome_not_persisted",
                    status=payment.status.value,
                    error=str(save_error),
                )
            else:
                log.info("payment_outcome_saved_on_retry", status=payment.status.value)
                return
        else:
            payment.mark_failed(reason)
            log.error(
                "payment_processing_failed",
                error=reason,
                error_type=type(error).__name__,
            )
            try:
                await self.repository.save(payment)
            except Exception as save_error:
                log.error("payment_failure_persist_error", error=str(save_error))

        metrics.record_payment_processed(payment.status.value, time.time() - start_time)

        if self.notify_on_failure and payment.status == PaymentStatus.FAILED:
            await self.publisher.publish(payment)

        raise PaymentProcessingFailure(
            f"Failed to process payment for work order {payment.work_order_id}: {reason}",
            cause=error,
            payment_id=payment.id,
            work_order_id=payment.work_order_id,
        ) from error
