"""
Message channel integration: wire codec, event intake, Kafka consumer and
publisher.
"""

from .codec import decode_observation, encode_observation
from .intake import ForecastEventIntake
from .kafka_consumer import KafkaForecastConsumer
from .publisher import ForecastPublisher, KafkaForecastPublisher, random_observation

__all__ = [
    "decode_observation",
    "encode_observation",
    "ForecastEventIntake",
    "KafkaForecastConsumer",
    "ForecastPublisher",
    "KafkaForecastPublisher",
    "random_observation",
]
