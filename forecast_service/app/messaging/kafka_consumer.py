"""
Kafka consumer loop for forecast observations.

Acknowledgement model (auto-commit disabled):
    • records are polled on a dedicated thread (kafka-python is blocking)
    • each poll batch is handled on the application event loop; partitions
      run concurrently, records within a partition strictly in order
    • a partition stops at its first failed record and is rewound to it
    • positions are committed after the batch, so only records whose write
      is durable are acknowledged; failed records are redelivered after
      KAFKA_REDELIVERY_DELAY_SECONDS

Run standalone:
    python -m forecast_service.app.messaging.kafka_consumer
"""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from forecast_service.app.core.config import Settings, settings as default_settings
from forecast_service.app.core.logging_config import log_context
from forecast_service.app.messaging.intake import ForecastEventIntake

logger = logging.getLogger(__name__)

ConsumerFactory = Callable[[], Any]


def build_kafka_consumer(config: Settings) -> Any:
    """Create a kafka-python consumer subscribed to the forecast topic."""
    from kafka import KafkaConsumer

    return KafkaConsumer(
        config.KAFKA_TOPIC,
        bootstrap_servers=config.KAFKA_BOOTSTRAP_SERVERS,
        group_id=config.KAFKA_GROUP_ID,
        enable_auto_commit=False,
        auto_offset_reset="earliest",
        max_poll_records=config.KAFKA_MAX_POLL_RECORDS,
    )


class KafkaForecastConsumer:
    """
    Drives ``ForecastEventIntake`` from a Kafka topic.

    Usage:
        consumer = KafkaForecastConsumer(intake)
        await consumer.start()
        ...
        await consumer.stop()
    """

    def __init__(
        self,
        intake: ForecastEventIntake,
        config: Optional[Settings] = None,
        consumer_factory: Optional[ConsumerFactory] = None,
    ):
        self.intake = intake
        self.config = config or default_settings
        self._consumer_factory = consumer_factory or (lambda: build_kafka_consumer(self.config))
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._stopping = threading.Event()
        self.acknowledged = 0
        self.redelivered = 0
        self.connect_failures = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    async def start(self) -> None:
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._stopping.clear()
        self._thread = threading.Thread(
            target=self._run, name="forecast-consumer", daemon=True,
        )
        self._thread.start()
        logger.info("Forecast consumer started on topic %s", self.config.KAFKA_TOPIC)

    async def stop(self, timeout: float = 30.0) -> None:
        self._stopping.set()
        if self._thread is not None:
            await asyncio.to_thread(self._thread.join, timeout)
            self._thread = None
        logger.info("Forecast consumer stopped")

    # -- Consumer thread ----------------------------------------------------

    @property
    def stop_requested(self) -> bool:
        return self._stopping.is_set()

    def _connect(self) -> Optional[Any]:
        """Build the Kafka client, retrying until it succeeds or stop is requested."""
        while not self._stopping.is_set():
            try:
                return self._consumer_factory()
            except Exception:
                self.connect_failures += 1
                logger.exception(
                    "Kafka consumer unavailable, retrying in %.1fs",
                    self.config.KAFKA_REDELIVERY_DELAY_SECONDS,
                )
                self._stopping.wait(self.config.KAFKA_REDELIVERY_DELAY_SECONDS)
        return None

    def _run(self) -> None:
        consumer = self._connect()
        if consumer is None:
            return
        try:
            while not self._stopping.is_set():
                try:
                    self.poll_once(consumer)
                except Exception:
                    logger.exception("Forecast consumer poll failed")
                    self._stopping.wait(self.config.KAFKA_REDELIVERY_DELAY_SECONDS)
        finally:
            consumer.close()

    def poll_once(self, consumer: Any) -> int:
        """Poll, handle and commit one batch. Returns records acknowledged."""
        batch = consumer.poll(
            timeout_ms=self.config.KAFKA_POLL_TIMEOUT_MS,
            max_records=self.config.KAFKA_MAX_POLL_RECORDS,
        )
        if not batch:
            return 0

        future = asyncio.run_coroutine_threadsafe(self._process_batch(batch), self._loop)
        results = future.result()

        acknowledged = 0
        failed: Dict[Any, int] = {}
        for partition, handled, failed_offset in results:
            acknowledged += handled
            if failed_offset is not None:
                failed[partition] = failed_offset

        for partition, offset in failed.items():
            consumer.seek(partition, offset)
        consumer.commit()

        self.acknowledged += acknowledged
        if failed:
            self.redelivered += len(failed)
            logger.warning(
                "Rewound %d partition(s) for redelivery: %s",
                len(failed), {str(p): o for p, o in failed.items()},
            )
            self._stopping.wait(self.config.KAFKA_REDELIVERY_DELAY_SECONDS)
        return acknowledged

    # -- Event loop side ----------------------------------------------------

    async def _process_batch(
        self, batch: Dict[Any, List[Any]],
    ) -> List[Tuple[Any, int, Optional[int]]]:
        return await asyncio.gather(
            *(self._process_partition(partition, records) for partition, records in batch.items())
        )

    async def _process_partition(
        self, partition: Any, records: Iterable[Any],
    ) -> Tuple[Any, int, Optional[int]]:
        handled = 0
        for record in records:
            with log_context(topic=record.topic, partition=record.partition, offset=record.offset):
                try:
                    await self.intake.handle_message(record.value)
                except Exception:
                    logger.exception("Forecast message not acknowledged")
                    return partition, handled, record.offset
            handled += 1
        return partition, handled, None


async def _consume_forever() -> int:
    from forecast_service.app.core.database import build_engine, build_session_factory, close_db
    from forecast_service.app.core.logging_config import setup_logging
    from forecast_service.app.forecasts.reconciler import ForecastReconciler
    from forecast_service.app.forecasts.telemetry import LoggingTelemetry

    setup_logging(default_settings)
    engine = build_engine(default_settings)
    telemetry = LoggingTelemetry()
    intake = ForecastEventIntake(
        ForecastReconciler(build_session_factory(engine), telemetry), telemetry,
    )
    consumer = KafkaForecastConsumer(intake, default_settings)
    return await supervise(consumer, on_exit=lambda: close_db(engine))


async def supervise(
    consumer: KafkaForecastConsumer,
    on_exit: Optional[Callable[[], Awaitable[None]]] = None,
    check_interval: float = 1.0,
) -> int:
    """Run until the consumer thread ends; 1 if it died without a stop request."""
    await consumer.start()
    try:
        while consumer.running:
            await asyncio.sleep(check_interval)
        if consumer.stop_requested:
            return 0
        logger.error("Forecast consumer thread exited unexpectedly")
        return 1
    finally:
        await consumer.stop()
        if on_exit is not None:
            await on_exit()


def main() -> None:
    try:
        code = asyncio.run(_consume_forever())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
