"""
Mercado Pago Orders API client with retry logic and error classification.

Implements:
- PIX order creation with a caller-supplied idempotency key
- Order status lookup
- Exponential backoff for transient errors
- Circuit breaker pattern
"""
import time
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Optional, Type

import httpx
import structlog
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from billing_service.config import Settings, get_settings
from billing_service.domain import (
    GatewayError,
    GatewayQueryFailure,
    GatewayResponse,
    GatewaySubmissionFailure,
    PayerReference,
    PaymentStatus,
)
from billing_service.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)

ORDERS_PATH = "/v1/orders"
PIX_METHOD = {"id": "pix", "type": "bank_transfer"}


class CircuitOpenError(GatewayError):
    """Raised while the circuit breaker is refusing calls."""

    pass


class CircuitBreaker:
    """
    Circuit breaker for gateway calls.

    Prevents cascading failures by temporarily stopping requests
    when error rate exceeds threshold.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout: int = 60,
        success_threshold: int = 2,
    ):
        """
        Initialize circuit breaker.

        Args:
            failure_threshold: Number of failures before opening circuit
            timeout: Seconds before attempting to close circuit
            success_threshold: Successful calls needed to close circuit
        """
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.success_threshold = success_threshold
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: Optional[float] = None
        self.state = "closed"  # closed, open, half_open

    async def call(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """
        Execute a coroutine function with circuit breaker protection.

        Only transport-level and retryable gateway errors count as failures;
        a 4xx answer means the provider is up.

        Raises:
            CircuitOpenError: If circuit is open
        """
        if self.state == "open":
            if (
                self.last_failure_time
                and time.time() - self.last_failure_time > self.timeout
            ):
                self.state = "half_open"
                self.success_count = 0
                metrics.set_circuit_breaker_state(self.state)
                logger.info("circuit_breaker_half_open")
            else:
                raise CircuitOpenError("Gateway circuit breaker is open")

        try:
            result = await func(*args, **kwargs)
        except GatewayError as e:
            if e.retryable:
                self.on_failure()
            else:
                self.on_success()
            raise
        except Exception:
            self.on_failure()
            raise

        self.on_success()
        return result

    def on_success(self) -> None:
        """Record successful call."""
        self.failure_count = 0
        if self.state == "half_open":
            self.success_count += 1
            if self.success_count >= self.success_threshold:
                self.state = "closed"
                metrics.set_circuit_breaker_state(self.state)
                logger.info("circuit_breaker_closed")

    def on_failure(self) -> None:
        """Record failed call."""
        self.failure_count += 1
        self.last_failure_time = time.time()
        if self.state == "half_open" or self.failure_count >= self.failure_threshold:
            self.state = "open"
            metrics.set_circuit_breaker_state(self.state)
            logger.warning(
                "circuit_breaker_opened",
                failure_count=self.failure_count,
            )


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, GatewayError) and error.retryable


class MercadoPagoClient:
    """
    Payment gateway client for Mercado Pago PIX orders.

    Features:
    - Automatic retry with exponential backoff
    - Circuit breaker pattern
    - Idempotent order creation (X-Idempotency-Key)
    - Normalization of order payloads into GatewayResponse
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ) -> None:
        """
        Initialize Mercado Pago client.

        Args:
            settings: Optional settings (defaults to environment settings)
            http_client: Optional preconfigured httpx client
            circuit_breaker: Optional circuit breaker
        """
        self.settings = settings or get_settings()
        self.http_client = http_client or httpx.AsyncClient(
            base_url=self.settings.mercadopago_api_url,
            timeout=self.settings.gateway_timeout_seconds,
        )
        self.circuit_breaker = circuit_breaker or CircuitBreaker()

        logger.info(
            "mercadopago_client_initialized",
            base_url=self.settings.mercadopago_api_url,
            test_mode=self.settings.is_test_mode,
        )

    def _headers(self, idempotency_key: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.settings.mercadopago_access_token}",
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["X-Idempotency-Key"] = idempotency_key
        return headers

    async def _send_once(
        self,
        method: str,
        path: str,
        operation: str,
        error_cls: Type[GatewayError],
        headers: Dict[str, str],
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        start_time = time.time()
        try:
            response = await self.http_client.request(method, path, headers=headers, json=body)
        except httpx.HTTPError as e:
            metrics.record_gateway_call(operation, "transport_error", time.time() - start_time)
            logger.warning("gateway_transport_error", operation=operation, error=str(e))
            raise error_cls(f"Mercado Pago {operation} failed: {e}", retryable=True) from e

        duration = time.time() - start_time
        status_code = response.status_code

        if status_code == 429 or status_code >= 500:
            metrics.record_gateway_call(operation, "server_error", duration)
            logger.warning("gateway_transient_error", operation=operation, status_code=status_code)
            raise error_cls(
                f"Mercado Pago {operation} returned HTTP {status_code}",
                status_code=status_code,
                retryable=True,
            )

        if status_code >= 400:
            metrics.record_gateway_call(operation, "client_error", duration)
            logger.error(
                "gateway_request_rejected",
                operation=operation,
                status_code=status_code,
                response=response.text[:500],
            )
            reason = "not found" if status_code == 404 else f"HTTP {status_code}"
            raise error_cls(
                f"Mercado Pago {operation} failed: {reason}",
                status_code=status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            metrics.record_gateway_call(operation, "invalid_response", duration)
            raise error_cls(f"Mercado Pago {operation} returned invalid JSON") from e

        if not isinstance(payload, dict) or not payload:
            metrics.record_gateway_call(operation, "invalid_response", duration)
            raise error_cls(f"Empty response from Mercado Pago {operation}")

        metrics.record_gateway_call(operation, "success", duration)
        return payload

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        error_cls: Type[GatewayError],
        headers: Dict[str, str],
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        retrying = AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(self.settings.gateway_retry_max_attempts),
            wait=wait_exponential(multiplier=self.settings.gateway_retry_base_delay, max=16),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self.circuit_breaker.call(
                        self._send_once, method, path, operation, error_cls, headers, body
                    )
        except GatewayError as e:
            if isinstance(e, error_cls):
                raise
            raise error_cls(str(e), status_code=e.status_code) from e
        raise error_cls(f"Mercado Pago {operation} made no attempt")  # pragma: no cover

    @staticmethod
    def _build_order_request(
        amount: Decimal,
        payer: PayerReference,
        description: str,
        external_reference: str,
    ) -> Dict[str, Any]:
        payer_data: Dict[str, Any] = {"email": payer.email}
        if payer.first_name:
            payer_data["first_name"] = payer.first_name

        return {
            "type": "online",
            "external_reference": external_reference,
            "description": description,
            "total_amount": str(amount),
            "payer": payer_data,
            "transactions": {
                "payments": [
                    {"amount": str(amount), "payment_method": dict(PIX_METHOD)}
                ]
            },
        }

    @staticmethod
    def parse_order(payload: Dict[str, Any]) -> GatewayResponse:
        """
        Normalize an order payload.

        The first transaction payment, when present, supplies the payment id,
        status, rejection detail and the PIX QR code.
        """
        order_id = payload.get("id")
        external_payment_id = order_id
        raw_status = payload.get("status")
        payment_method = PIX_METHOD["id"]
        qr_code = None
        qr_code_base64 = None
        status_detail = None

        payments = (payload.get("transactions") or {}).get("payments") or []
        if payments:
            first = payments[0]
            external_payment_id = first.get("id") or order_id
            raw_status = first.get("status") or raw_status
            status_detail = first.get("status_detail")
            payment_method = (first.get("payment_method") or {}).get("id") or payment_method
            transaction_data = (first.get("point_of_interaction") or {}).get(
                "transaction_data"
            ) or {}
            qr_code = transaction_data.get("qr_code")
            qr_code_base64 = transaction_data.get("qr_code_base64")

        status = PaymentStatus.parse_gateway_status(raw_status)

        return GatewayResponse(
            external_payment_id=str(external_payment_id) if external_payment_id else None,
            external_order_id=str(order_id) if order_id else None,
            status=status,
            payment_method=payment_method,
            qr_code=qr_code,
            qr_code_base64=qr_code_base64,
            error_message=status_detail if status == PaymentStatus.REJECTED else None,
        )

    async def submit(
        self,
        amount: Decimal,
        payer: PayerReference,
        description: str,
        idempotency_key: str,
    ) -> GatewayResponse:
        """
        Create a PIX order.

        Args:
            amount: Amount to charge
            payer: Payer reference
            description: Human-readable description
            idempotency_key: Stable key so resubmissions create no second order

        Returns:
            GatewayResponse: Normalized order

        Raises:
            GatewaySubmissionFailure: If the order could not be created
        """
        logger.info(
            "creating_gateway_order",
            amount=str(amount),
            payer_id=str(payer.payer_id),
            idempotency_key=idempotency_key,
        )

        body = self._build_order_request(amount, payer, description, idempotency_key)
        payload = await self._request(
            "POST",
            ORDERS_PATH,
            "submit",
            GatewaySubmissionFailure,
            self._headers(idempotency_key),
            body,
        )

        try:
            response = self.parse_order(payload)
        except (AttributeError, TypeError, ValueError) as e:
            raise GatewaySubmissionFailure(f"Unreadable Mercado Pago order: {e}") from e

        if not response.external_order_id:
            raise GatewaySubmissionFailure("Mercado Pago order response has no order id")

        logger.info(
            "gateway_order_created",
            external_order_id=response.external_order_id,
            external_payment_id=response.external_payment_id,
            status=response.status.value,
        )
        return response

    async def query_status(self, external_order_id: str) -> GatewayResponse:
        """
        Retrieve the current state of an order.

        Raises:
            GatewayQueryFailure: If the order could not be retrieved (including 404)
        """
        logger.info("querying_gateway_order", external_order_id=external_order_id)

        if not external_order_id:
            raise GatewayQueryFailure("No external order id to query")

        payload = await self._request(
            "GET",
            f"{ORDERS_PATH}/{external_order_id}",
            "query",
            GatewayQueryFailure,
            self._headers(),
        )

        try:
            response = self.parse_order(payload)
        except (AttributeError, TypeError, ValueError) as e:
            raise GatewayQueryFailure(f"Unreadable Mercado Pago order: {e}") from e

        logger.info(
            "gateway_order_retrieved",
            external_order_id=external_order_id,
            status=response.status.value,
        )
        return response

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.http_client.aclose()
