"""
Publishing forecast observations onto the message channel.
"""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

from forecast_service.app.core.config import Settings, settings as default_settings
from forecast_service.app.core.errors import MessageChannelError
from forecast_service.app.forecasts.observations import (
    ExtendedObservation,
    LegacyObservation,
)
from forecast_service.app.messaging.codec import encode_observation, message_type_of

logger = logging.getLogger(__name__)

SUMMARIES = [
    "Freezing", "Bracing", "Chilly", "Cool", "Mild",
    "Warm", "Balmy", "Hot", "Sweltering", "Scorching",
]

CITIES = [
    "Amsterdam", "Berlin", "Copenhagen", "Dublin", "Helsinki",
    "Lisbon", "London", "Madrid", "Oslo", "Paris",
    "Prague", "Reykjavik", "Rome", "Stockholm", "Vienna",
]


def random_observation(rng: Optional[random.Random] = None) -> ExtendedObservation:
    """Synthetic extended observation for today + 0..9 days."""
    rng = rng or random.Random()
    return ExtendedObservation(
        date=datetime.now(timezone.utc) + timedelta(days=rng.randint(0, 9)),
        temperature_c=rng.randint(-20, 54),
        summary=rng.choice(SUMMARIES),
        location=rng.choice(CITIES),
    )


class ForecastPublisher:
    """Interface for anything that can put an observation on the channel."""

    async def send(self, observation: Union[LegacyObservation, ExtendedObservation]) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        pass


class KafkaForecastPublisher(ForecastPublisher):
    """kafka-python producer; blocking calls run in a worker thread."""

    def __init__(self, config: Optional[Settings] = None, producer: Any = None):
        self.config = config or default_settings
        if producer is None:
            from kafka import KafkaProducer

            producer = KafkaProducer(bootstrap_servers=self.config.KAFKA_BOOTSTRAP_SERVERS)
        self._producer = producer

    async def send(self, observation: Union[LegacyObservation, ExtendedObservation]) -> None:
        from kafka.errors import KafkaError

        payload = encode_observation(observation)
        try:
            future = self._producer.send(self.config.KAFKA_TOPIC, value=payload)
            await asyncio.to_thread(future.get, self.config.KAFKA_SEND_TIMEOUT_SECONDS)
        except KafkaError as exc:
            raise MessageChannelError(str(exc), topic=self.config.KAFKA_TOPIC) from exc
        logger.info(
            "Published %s for %s", message_type_of(observation), observation.forecast_date,
            extra={"topic": self.config.KAFKA_TOPIC},
        )

    async def close(self) -> None:
        await asyncio.to_thread(self._producer.flush)
        await asyncio.to_thread(self._producer.close)
