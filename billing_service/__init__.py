"""
Billing Service - Idempotent PIX Payment Processing

Consumes payment requests for work orders from a queue and drives each one
through the payment gateway exactly once:
1. Deduplication by work order (the database unique key is the arbiter)
2. Gateway submission with a stable idempotency key
3. Status reconciliation with fallback to the submission response
4. Outcome notification to success/failure queues
"""

__version__ = "1.0.0"
