"""
producers/service_alert_handler.py
Push mode: consumes internal ServiceAlert messages (a list of bulletins)
from Kafka and republishes each one as a full GTFS-RT Service Alert feed.
→ Kafka topic: gtfs-rt-service-alerts

Every consumed message is committed, whether or not it could be translated
or published, so a malformed message never blocks the partition.
"""

import signal
from typing import Optional

from kafka import KafkaConsumer
from kafka.errors import KafkaError

from config.settings import INBOUND_SCHEMA, KAFKA_CONSUMER_CONFIG, KAFKA_TOPICS, SCHEMA_HEADER
from etl.alert_builder import create_feed_entities
from etl.feed import create_full_feed_message
from models.bulletin import BulletinDecodeError, decode_service_alert
from producers.base_producer import BaseProducer, PublishError


def schema_of(record) -> Optional[str]:
    """Value of the schema header on a consumed record, if present."""
    for key, value in record.headers or []:
        if key == SCHEMA_HEADER:
            return value.decode("utf-8") if isinstance(value, bytes) else value
    return None


class ServiceAlertHandler(BaseProducer):

    def __init__(self, consumer: KafkaConsumer = None, producer=None):
        super().__init__("service_alerts", producer)
        self.consumer = consumer or self._create_consumer()
        self._running = False

    def _create_consumer(self) -> KafkaConsumer:
        return KafkaConsumer(KAFKA_TOPICS["bulletins"], **KAFKA_CONSUMER_CONFIG)

    def handle_message(self, record):
        self.stats["received"] += 1
        try:
            schema = schema_of(record)
            if schema != INBOUND_SCHEMA:
                self.stats["skipped"] += 1
                self.logger.error(f"Invalid protobuf schema {schema!r} at offset {record.offset}, dropping message")
                return

            timestamp_ms = record.timestamp
            if timestamp_ms is None or timestamp_ms < 0:
                self.stats["skipped"] += 1
                self.logger.error(f"Message at offset {record.offset} has no event time, dropping message")
                return

            bulletins = decode_service_alert(record.value)
            entities  = create_feed_entities(bulletins)
            self.logger.info(f"Translated {len(entities)}/{len(bulletins)} bulletins")

            feed = create_full_feed_message(entities, timestamp_ms // 1000)
            self.publish_feed(feed, timestamp_ms)
        except BulletinDecodeError as e:
            self.stats["skipped"] += 1
            self.logger.error(f"Failed to decode ServiceAlert at offset {record.offset}: {e}")
        except PublishError as e:
            self.logger.error(f"{e}, message at offset {record.offset} will not be retried")
        except Exception as e:
            self.stats["errors"] += 1
            self.logger.error(f"Exception while handling message: {e}", exc_info=True)
        finally:
            self.ack(record)

    def ack(self, record):
        try:
            self.consumer.commit()
        except KafkaError as e:
            self.logger.error(f"Failed to commit offset {record.offset}: {e}")

    def run(self):
        """Consume until stop() is called; each record is handled and committed in order."""
        self._running = True
        self.logger.info(f"Consuming {KAFKA_TOPICS['bulletins']} → {self.get_topic()}")
        while self._running:
            batch = self.consumer.poll(timeout_ms=1000)
            for records in batch.values():
                for record in records:
                    self.handle_message(record)
        self.logger.info(f"Consumer stopped | stats={self.stats}")

    def stop(self):
        self._running = False

    def close(self):
        self.consumer.close()
        super().close()


def main():
    handler = ServiceAlertHandler()

    def _handle_shutdown(signum, frame):
        handler.logger.info(f"Received signal {signum}; shutting down")
        handler.stop()

    signal.signal(signal.SIGTERM, _handle_shutdown)
    signal.signal(signal.SIGINT, _handle_shutdown)
    try:
        handler.run()
    finally:
        handler.close()


if __name__ == "__main__":
    main()
