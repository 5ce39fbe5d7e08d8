"""
etl/alert_builder.py
Translates internal bulletins into GTFS-RT Alert feed entities.

Everything here is pure: the same bulletin always yields the same entity,
and nothing is read from or written to the outside world except logs.
"""

import logging
from typing import Iterable, List, Optional, Sequence

from google.transit import gtfs_realtime_pb2

from config.settings import AGENCY_ID
from etl.mappers import to_gtfs_cause, to_gtfs_effect, to_gtfs_severity_level
from etl.route_ids import normalize_route_id
from models.bulletin import Bulletin, Translation

logger = logging.getLogger("etl.alert_builder")


def to_translated_string(translations: Sequence[Translation]) -> gtfs_realtime_pb2.TranslatedString:
    return gtfs_realtime_pb2.TranslatedString(
        translation=[
            gtfs_realtime_pb2.TranslatedString.Translation(text=t.text, language=t.language)
            for t in translations
        ]
    )


def entity_selectors_for_bulletin(bulletin: Bulletin) -> List[gtfs_realtime_pb2.EntitySelector]:
    """
    Informed entities for a bulletin, without duplicates.

    An agency-wide selector when the bulletin affects all routes or stops,
    one selector per normalized route id, one per stop id.
    Protobuf messages are unhashable, so duplicates are tracked by key.
    """
    selectors = {}

    if bulletin.affects_all_routes or bulletin.affects_all_stops:
        logger.debug(f"Bulletin {bulletin.bulletin_id} affects all routes or stops")
        selectors[("agency_id", AGENCY_ID)] = gtfs_realtime_pb2.EntitySelector(agency_id=AGENCY_ID)

    for route in bulletin.affected_routes:
        route_id = normalize_route_id(route.entity_id)
        selectors.setdefault(("route_id", route_id), gtfs_realtime_pb2.EntitySelector(route_id=route_id))

    for stop in bulletin.affected_stops:
        selectors.setdefault(("stop_id", stop.entity_id), gtfs_realtime_pb2.EntitySelector(stop_id=stop.entity_id))

    return list(selectors.values())


def effect_for_bulletin(bulletin: Bulletin) -> int:
    effect = to_gtfs_effect(bulletin.impact)
    # Agency-wide NO_SERVICE makes trip planners hide every departure
    if effect == gtfs_realtime_pb2.Alert.NO_SERVICE and (bulletin.affects_all_routes or bulletin.affects_all_stops):
        return gtfs_realtime_pb2.Alert.REDUCED_SERVICE
    return effect


def create_alert(bulletin: Bulletin) -> Optional[gtfs_realtime_pb2.Alert]:
    """GTFS-RT Alert for the bulletin, or None if it should not be published."""
    if bulletin.is_display_only:
        logger.debug(f"Bulletin {bulletin.bulletin_id} is display only, skipping")
        return None

    try:
        alert = gtfs_realtime_pb2.Alert(
            active_period=[gtfs_realtime_pb2.TimeRange(
                start=bulletin.valid_from_utc_ms // 1000,
                end=bulletin.valid_to_utc_ms // 1000,
            )],
            cause=to_gtfs_cause(bulletin.category),
            effect=effect_for_bulletin(bulletin),
        )
        if bulletin.titles:
            alert.header_text.CopyFrom(to_translated_string(bulletin.titles))
        if bulletin.descriptions:
            alert.description_text.CopyFrom(to_translated_string(bulletin.descriptions))
        if bulletin.urls:
            alert.url.CopyFrom(to_translated_string(bulletin.urls))

        severity = to_gtfs_severity_level(bulletin.priority)
        if severity is not None:
            alert.severity_level = severity

        selectors = entity_selectors_for_bulletin(bulletin)
        if not selectors:
            logger.error(f"No informed entities for bulletin {bulletin.bulletin_id}, discarding alert")
            return None
        alert.informed_entity.extend(selectors)
        return alert
    except Exception as e:
        logger.error(f"Failed to create alert for bulletin {bulletin.bulletin_id}: {e}", exc_info=True)
        return None


def create_feed_entity(bulletin: Bulletin) -> Optional[gtfs_realtime_pb2.FeedEntity]:
    alert = create_alert(bulletin)
    if alert is None:
        return None
    return gtfs_realtime_pb2.FeedEntity(id=bulletin.bulletin_id, alert=alert)


def create_feed_entities(bulletins: Iterable[Bulletin]) -> List[gtfs_realtime_pb2.FeedEntity]:
    """Feed entities for every translatable bulletin, in input order."""
    entities = []
    for bulletin in bulletins:
        entity = create_feed_entity(bulletin)
        if entity is not None:
            entities.append(entity)
    return entities
