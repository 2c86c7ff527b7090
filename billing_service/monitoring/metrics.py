"""
Prometheus metrics for billing service monitoring.

Tracks:
- Payments processed by final status
- Idempotent short-circuits
- Gateway API calls and latency
- Reconciliation fallbacks
- Outcome notifications
- Consumed queue messages
"""
from prometheus_client import Counter, Gauge, Histogram

# Payment metrics
payments_processed_total = Counter(
    "billing_payments_processed_total",
    "Total payments that reached a persisted outcome",
    ["status"],
)

payment_processing_duration_seconds = Histogram(
    "billing_payment_processing_duration_seconds",
    "Payment processing duration in seconds",
    buckets=(0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0, 30.0),
)

payments_deduplicated_total = Counter(
    "billing_payments_deduplicated_total",
    "Requests answered from an existing payment record",
    ["reason"],  # existing, race_lost
)

payments_resumed_total = Counter(
    "billing_payments_resumed_total",
    "PENDING payments picked up again after an interrupted attempt",
)

# Gateway metrics
gateway_requests_total = Counter(
    "billing_gateway_requests_total",
    "Total Mercado Pago API requests",
    ["operation", "outcome"],  # operation: submit, query
)

gateway_duration_seconds = Histogram(
    "billing_gateway_duration_seconds",
    "Mercado Pago API call duration in seconds",
    ["operation"],
    buckets=(0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0),
)

gateway_circuit_breaker_state = Gauge(
    "billing_gateway_circuit_breaker_state",
    "Gateway circuit breaker state (0=closed, 1=open, 2=half_open)",
)

reconciliation_fallbacks_total = Counter(
    "billing_reconciliation_fallbacks_total",
    "Status queries that failed and fell back to the submission response",
    ["status"],
)

# Messaging metrics
notifications_total = Counter(
    "billing_notifications_total",
    "Outcome notifications sent",
    ["channel", "outcome"],  # channel: success, failure
)

messages_consumed_total = Counter(
    "billing_messages_consumed_total",
    "Payment request messages consumed",
    ["outcome"],  # acked, requeued, dead_lettered
)


class MetricsCollector:
    """Helper class for collecting metrics."""

    @staticmethod
    def record_payment_processed(status: str, duration_seconds: float) -> None:
        """Record a payment that reached a persisted outcome."""
        payments_processed_total.labels(status=status).inc()
        payment_processing_duration_seconds.observe(duration_seconds)

    @staticmethod
    def record_deduplicated(reason: str) -> None:
        """Record an idempotent short-circuit."""
        payments_deduplicated_total.labels(reason=reason).inc()

    @staticmethod
    def record_resumed() -> None:
        payments_resumed_total.inc()

    @staticmethod
    def record_gateway_call(operation: str, outcome: str, duration_seconds: float) -> None:
        """Record a gateway API call."""
        gateway_requests_total.labels(operation=operation, outcome=outcome).inc()
        gateway_duration_seconds.labels(operation=operation).observe(duration_seconds)

    @staticmethod
    def set_circuit_breaker_state(state: str) -> None:
        """Set circuit breaker state."""
        state_map = {"closed": 0, "open": 1, "half_open": 2}
        gateway_circuit_breaker_state.set(state_map.get(state, 0))

    @staticmethod
    def record_reconciliation_fallback(status: str) -> None:
        reconciliation_fallbacks_total.labels(status=status).inc()

    @staticmethod
    def record_notification(channel: str, outcome: str) -> None:
        notifications_total.labels(channel=channel, outcome=outcome).inc()

    @staticmethod
    def record_message_consumed(outcome: str) -> None:
        messages_consumed_total.labels(outcome=outcome).inc()


# Export singleton instance
metrics = MetricsCollector()
