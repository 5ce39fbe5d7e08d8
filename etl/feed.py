"""
etl/feed.py
Wraps translated entities into a full-dataset GTFS-RT FeedMessage.
"""

from typing import Iterable

from google.transit import gtfs_realtime_pb2

from config.settings import GTFS_RT_VERSION


def create_full_feed_message(entities: Iterable[gtfs_realtime_pb2.FeedEntity],
                             timestamp_secs: int) -> gtfs_realtime_pb2.FeedMessage:
    header = gtfs_realtime_pb2.FeedHeader(
        gtfs_realtime_version=GTFS_RT_VERSION,
        incrementality=gtfs_realtime_pb2.FeedHeader.FULL_DATASET,
        timestamp=timestamp_secs,
    )
    return gtfs_realtime_pb2.FeedMessage(header=header, entity=list(entities))
