"""
producers/base_producer.py
Base Kafka producer - shared publishing logic for both alert sources
(push-mode bulletin consumer and poll-mode OMM poller).
"""

import logging

from google.transit import gtfs_realtime_pb2
from kafka import KafkaProducer
from kafka.errors import KafkaError

from config.settings import (
    KAFKA_PRODUCER_CONFIG, KAFKA_TOPICS, LOG_FORMAT, LOG_LEVEL,
    OUTBOUND_SCHEMA, PUBLISH_TIMEOUT_SECONDS, SCHEMA_HEADER,
)

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)


class PublishError(RuntimeError):
    """Raised when a GTFS-RT feed could not be written to Kafka."""


class BaseProducer:

    def __init__(self, source_name: str, producer: KafkaProducer = None):
        self.source_name = source_name
        self.logger      = logging.getLogger(f"producer.{source_name}")
        self.producer    = producer or self._create_producer()
        self.stats       = {"received": 0, "sent": 0, "skipped": 0, "errors": 0}

    def _create_producer(self) -> KafkaProducer:
        # Values are already serialized protobuf, no value_serializer
        return KafkaProducer(**KAFKA_PRODUCER_CONFIG)

    def get_topic(self) -> str:
        return KAFKA_TOPICS["gtfs_service_alerts"]

    def publish_feed(self, feed: gtfs_realtime_pb2.FeedMessage, timestamp_ms: int):
        """Send one feed and block until the broker has acknowledged it."""
        topic = self.get_topic()
        try:
            future = self.producer.send(
                topic,
                value=feed.SerializeToString(),
                timestamp_ms=timestamp_ms,
                headers=[(SCHEMA_HEADER, OUTBOUND_SCHEMA.encode("utf-8"))],
            )
            future.get(timeout=PUBLISH_TIMEOUT_SECONDS)
        except KafkaError as e:
            self.stats["errors"] += 1
            self.logger.error(f"Send failed → {topic}: {e}")
            raise PublishError(f"Failed to publish feed to {topic}") from e

        self.stats["sent"] += 1
        self.logger.info(f"Produced a new alert feed with timestamp {timestamp_ms} ({len(feed.entity)} entities)")

    def close(self):
        self.producer.flush()
        self.producer.close()
