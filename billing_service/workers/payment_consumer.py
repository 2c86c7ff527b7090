"""
Payment request consumer worker.

Consumes the payment request queue with a bounded number of in-flight
messages (the prefetch count is the worker pool size).
"""
import asyncio
import signal
from typing import Optional

import aio_pika
import structlog

from billing_service.config import Settings, get_settings
from billing_service.core.payment_processor import PaymentProcessor
from billing_service.database.connection import close_db, init_db
from billing_service.database.repository import PaymentRepository
from billing_service.integrations.mercadopago_client import MercadoPagoClient
from billing_service.messaging.consumer import PaymentQueueListener
from billing_service.messaging.publisher import NotificationPublisher
from billing_service.monitoring.logging import setup_logging

logger = structlog.get_logger(__name__)


async def start_payment_consumer(settings: Optional[Settings] = None) -> None:
    """
    Start the payment consumer worker.

    Runs until SIGINT/SIGTERM.
    """
    settings = settings or get_settings()
    setup_logging(settings)

    logger.info(
        "payment_consumer_starting",
        queue=settings.payment_request_queue,
        prefetch_count=settings.consumer_prefetch_count,
    )

    await init_db()
    gateway = MercadoPagoClient(settings=settings)
    connection = await aio_pika.connect_robust(settings.rabbitmq_url)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def request_shutdown(sig: signal.Signals) -> None:
        logger.info("payment_consumer_shutdown_signal_received", signal=sig.name)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, request_shutdown, sig)

    try:
        async with connection:
            consume_channel = await connection.channel()
            await consume_channel.set_qos(prefetch_count=settings.consumer_prefetch_count)
            publish_channel = await connection.channel()

            for queue_name in (
                settings.payment_response_success_queue,
                settings.payment_response_failure_queue,
            ):
                await publish_channel.declare_queue(queue_name, durable=True)
            request_queue = await consume_channel.declare_queue(
                settings.payment_request_queue, durable=True
            )

            processor = PaymentProcessor(
                publisher=NotificationPublisher(publish_channel, settings=settings),
                repository=PaymentRepository(),
                gateway=gateway,
                settings=settings,
            )
            listener = PaymentQueueListener(processor, settings=settings)

            consumer_tag = await request_queue.consume(listener.handle)
            logger.info("payment_consumer_listening", queue=settings.payment_request_queue)

            await stop_event.wait()
            await request_queue.cancel(consumer_tag)

    except Exception as e:
        logger.error("payment_consumer_error", error=str(e))
        raise
    finally:
        await gateway.close()
        await close_db()
        logger.info("payment_consumer_stopped")


def main() -> None:
    """Console entry point."""
    asyncio.run(start_payment_consumer())


if __name__ == "__main__":
    main()
