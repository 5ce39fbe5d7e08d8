"""
producers/omm_alert_poller.py
Poll mode: reads active bulletins from the OMM database on a fixed
interval and publishes a full GTFS-RT Service Alert feed whenever the
set of bulletins has changed since the previous poll.
→ Kafka topic: gtfs-rt-service-alerts
"""

import signal
import threading
import time
from typing import Optional, Tuple

import psycopg2
from google.transit import gtfs_realtime_pb2

from config.settings import OMM_TIMEZONE, POLL_INTERVAL_SECONDS
from etl.alert_builder import create_feed_entities
from etl.feed import create_full_feed_message
from etl.omm_transformer import OmmBulletinTransformer
from models.omm import AlertState, has_changed, last_modified_in_utc_ms
from producers.base_producer import BaseProducer, PublishError
from warehouse.omm_reader import OmmReader, connect


class OmmAlertPoller(BaseProducer):

    def __init__(self, reader: OmmReader, timezone: str = OMM_TIMEZONE,
                 interval_seconds: int = POLL_INTERVAL_SECONDS, producer=None):
        super().__init__("omm_alerts", producer)
        self.reader           = reader
        self.timezone         = timezone
        self.interval_seconds = interval_seconds
        self.previous_state: Optional[AlertState] = None
        self._stop_event      = threading.Event()

    def create_feed_message(self, state: AlertState) -> Tuple[gtfs_realtime_pb2.FeedMessage, int]:
        """Feed for the state and its event time in UTC millis."""
        transformer = OmmBulletinTransformer(
            self.reader.get_all_lines(),
            self.reader.get_all_stop_points(),
            self.timezone,
        )
        bulletins = transformer.transform_all(state.bulletins)
        entities  = create_feed_entities(bulletins)
        self.logger.info(f"Translated {len(entities)}/{len(bulletins)} bulletins")

        timestamp_ms = last_modified_in_utc_ms(state, self.timezone)
        return create_full_feed_message(entities, timestamp_ms // 1000), timestamp_ms

    def poll_and_send(self) -> bool:
        """
        Run one poll. Returns True if a feed was published.

        Database and publish errors propagate; the previous state is then
        left untouched so the next poll retries the same change.
        """
        latest_state = AlertState(self.reader.get_active_bulletins())

        published = False
        if has_changed(self.previous_state, latest_state):
            feed, timestamp_ms = self.create_feed_message(latest_state)
            self.publish_feed(feed, timestamp_ms)
            published = True
        else:
            self.stats["skipped"] += 1
            self.logger.debug(f"No changes in {len(latest_state)} active bulletins")

        self.previous_state = latest_state
        return published

    def run(self):
        """Poll every interval until stop() is called."""
        self.logger.info(f"Starting OMM poller, interval: {self.interval_seconds}s")
        while not self._stop_event.is_set():
            start_time = time.time()
            try:
                self.poll_and_send()
            except psycopg2.Error as e:
                self.stats["errors"] += 1
                self.logger.error(f"Database error, retrying next poll: {e}")
            except PublishError as e:
                self.logger.error(f"{e}, retrying next poll")
            elapsed    = time.time() - start_time
            sleep_time = max(0, self.interval_seconds - elapsed)
            self._stop_event.wait(sleep_time)
        self.logger.info(f"Poller stopped | stats={self.stats}")

    def stop(self):
        self._stop_event.set()


def main():
    conn   = connect()
    reader = OmmReader(conn, OMM_TIMEZONE)
    poller = OmmAlertPoller(reader)

    def _handle_shutdown(signum, frame):
        poller.logger.info(f"Received signal {signum}; shutting down")
        poller.stop()

    signal.signal(signal.SIGTERM, _handle_shutdown)
    signal.signal(signal.SIGINT, _handle_shutdown)
    try:
        poller.run()
    finally:
        poller.close()
        reader.close()


if __name__ == "__main__":
    main()
