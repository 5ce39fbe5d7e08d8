"""
models/bulletin.py
Internal service alert bulletins, as carried by the transitdata
ServiceAlert message.

The message arrives as a JSON document:
    {"bulletins": [{"bulletinId": "6431", "category": "ROAD_CLOSED", ...}]}
Keys are accepted in both lowerCamelCase (protobuf JSON mapping) and
snake_case (proto field names). int64 fields may be encoded as strings.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional, Tuple

logger = logging.getLogger("models.bulletin")


class BulletinDecodeError(ValueError):
    """Raised when a ServiceAlert payload cannot be decoded into bulletins."""


class _ParsableEnum(Enum):

    @classmethod
    def parse(cls, value):
        """Return the member named `value`, or None if it is unknown or missing."""
        if value is None or isinstance(value, cls):
            return value
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            return None


class Category(_ParsableEnum):
    OTHER_DRIVER_ERROR    = "OTHER_DRIVER_ERROR"
    ITS_SYSTEM_ERROR      = "ITS_SYSTEM_ERROR"
    TOO_MANY_PASSENGERS   = "TOO_MANY_PASSENGERS"
    MISPARKED_VEHICLE     = "MISPARKED_VEHICLE"
    STRIKE                = "STRIKE"
    TEST                  = "TEST"
    VEHICLE_OFF_THE_ROAD  = "VEHICLE_OFF_THE_ROAD"
    TRAFFIC_ACCIDENT      = "TRAFFIC_ACCIDENT"
    SWITCH_FAILURE        = "SWITCH_FAILURE"
    SEIZURE               = "SEIZURE"
    WEATHER               = "WEATHER"
    STATE_VISIT           = "STATE_VISIT"
    ROAD_MAINTENANCE      = "ROAD_MAINTENANCE"
    ROAD_CLOSED           = "ROAD_CLOSED"
    TRACK_BLOCKED         = "TRACK_BLOCKED"
    WEATHER_CONDITIONS    = "WEATHER_CONDITIONS"
    ASSAULT               = "ASSAULT"
    TRACK_MAINTENANCE     = "TRACK_MAINTENANCE"
    MEDICAL_INCIDENT      = "MEDICAL_INCIDENT"
    EARLIER_DISRUPTION    = "EARLIER_DISRUPTION"
    TECHNICAL_FAILURE     = "TECHNICAL_FAILURE"
    TRAFFIC_JAM           = "TRAFFIC_JAM"
    OTHER                 = "OTHER"
    NO_TRAFFIC_DISRUPTION = "NO_TRAFFIC_DISRUPTION"
    ACCIDENT              = "ACCIDENT"
    PUBLIC_EVENT          = "PUBLIC_EVENT"
    ROAD_TRENCH           = "ROAD_TRENCH"
    VEHICLE_BREAKDOWN     = "VEHICLE_BREAKDOWN"
    POWER_FAILURE         = "POWER_FAILURE"
    STAFF_DEFICIT         = "STAFF_DEFICIT"
    DISTURBANCE           = "DISTURBANCE"
    VEHICLE_DEFICIT       = "VEHICLE_DEFICIT"


class Impact(_ParsableEnum):
    CANCELLED                    = "CANCELLED"
    DELAYED                      = "DELAYED"
    DEVIATING_SCHEDULE           = "DEVIATING_SCHEDULE"
    DISRUPTION_ROUTE             = "DISRUPTION_ROUTE"
    IRREGULAR_DEPARTURES         = "IRREGULAR_DEPARTURES"
    POSSIBLE_DEVIATIONS          = "POSSIBLE_DEVIATIONS"
    POSSIBLY_DELAYED             = "POSSIBLY_DELAYED"
    REDUCED_TRANSPORT            = "REDUCED_TRANSPORT"
    RETURNING_TO_NORMAL          = "RETURNING_TO_NORMAL"
    VENDING_MACHINE_OUT_OF_ORDER = "VENDING_MACHINE_OUT_OF_ORDER"
    NULL                         = "NULL"
    OTHER                        = "OTHER"
    NO_TRAFFIC_IMPACT            = "NO_TRAFFIC_IMPACT"
    UNKNOWN                      = "UNKNOWN"


class Priority(_ParsableEnum):
    INFO    = "INFO"
    WARNING = "WARNING"
    SEVERE  = "SEVERE"


class Language(Enum):
    FI = "fi"
    SV = "sv"
    EN = "en"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class AffectedEntity:
    """A route or stop touched by a bulletin."""
    entity_id: str


@dataclass(frozen=True)
class Translation:
    """One localized text of a bulletin title, description or url."""
    language: str
    text: str


@dataclass(frozen=True)
class Bulletin:
    """A single internal service alert bulletin. Times are UTC epoch millis."""
    bulletin_id: str
    category: Optional[Category] = None
    impact: Optional[Impact] = None
    priority: Optional[Priority] = None
    valid_from_utc_ms: int = 0
    valid_to_utc_ms: int = 0
    last_modified_utc_ms: int = 0
    affects_all_routes: bool = False
    affects_all_stops: bool = False
    affected_routes: Tuple[AffectedEntity, ...] = field(default_factory=tuple)
    affected_stops: Tuple[AffectedEntity, ...] = field(default_factory=tuple)
    titles: Tuple[Translation, ...] = field(default_factory=tuple)
    descriptions: Tuple[Translation, ...] = field(default_factory=tuple)
    urls: Tuple[Translation, ...] = field(default_factory=tuple)
    display_only: Optional[bool] = None

    @property
    def is_display_only(self) -> bool:
        return bool(self.display_only)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Bulletin":
        bulletin_id = _get(d, "bulletinId", "bulletin_id")
        if bulletin_id is None or str(bulletin_id) == "":
            raise BulletinDecodeError("Bulletin is missing bulletinId")

        return cls(
            bulletin_id=str(bulletin_id),
            category=Category.parse(_get(d, "category")),
            impact=Impact.parse(_get(d, "impact")),
            priority=Priority.parse(_get(d, "priority")),
            valid_from_utc_ms=int(_get(d, "validFromUtcMs", "valid_from_utc_ms", default=0)),
            valid_to_utc_ms=int(_get(d, "validToUtcMs", "valid_to_utc_ms", default=0)),
            last_modified_utc_ms=int(_get(d, "lastModifiedUtcMs", "last_modified_utc_ms", default=0)),
            affects_all_routes=_as_bool(_get(d, "affectsAllRoutes", "affects_all_routes", default=False)),
            affects_all_stops=_as_bool(_get(d, "affectsAllStops", "affects_all_stops", default=False)),
            affected_routes=_affected_entities(_get(d, "affectedRoutes", "affected_routes", default=[])),
            affected_stops=_affected_entities(_get(d, "affectedStops", "affected_stops", default=[])),
            titles=_translations(_get(d, "titles", default=[])),
            descriptions=_translations(_get(d, "descriptions", default=[])),
            urls=_translations(_get(d, "urls", default=[])),
            display_only=_as_optional_bool(_get(d, "displayOnly", "display_only")),
        )


def decode_service_alert(payload: bytes) -> List[Bulletin]:
    """
    Decode a ServiceAlert message payload into its bulletins, in order.

    A payload that is not a JSON object raises BulletinDecodeError. A single
    malformed bulletin is logged and dropped; the rest are still returned.
    """
    try:
        data = json.loads(payload.decode("utf-8") if isinstance(payload, bytes) else payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise BulletinDecodeError(f"ServiceAlert payload is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise BulletinDecodeError(f"ServiceAlert payload must be an object, got {type(data).__name__}")

    items = data.get("bulletins") or []
    if not isinstance(items, list):
        raise BulletinDecodeError(f"ServiceAlert bulletins must be a list, got {type(items).__name__}")

    bulletins = []
    for item in items:
        try:
            bulletins.append(Bulletin.from_dict(item))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            bulletin_id = _get(item, "bulletinId", "bulletin_id") if isinstance(item, Mapping) else None
            logger.warning(f"Dropping malformed bulletin {bulletin_id}: {e}")
    return bulletins


def _get(d: Mapping[str, Any], *keys: str, default=None):
    if not isinstance(d, Mapping):
        raise BulletinDecodeError(f"Expected an object, got {d!r}")
    for key in keys:
        if key in d and d[key] is not None:
            return d[key]
    return default


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise BulletinDecodeError(f"Expected a boolean, got {value!r}")


def _as_optional_bool(value) -> Optional[bool]:
    return None if value is None else _as_bool(value)


def _affected_entities(items) -> Tuple[AffectedEntity, ...]:
    entities = []
    for i in items:
        entity_id = _get(i, "entityId", "entity_id")
        if entity_id is None:
            raise BulletinDecodeError(f"Affected entity without entityId: {i}")
        entities.append(AffectedEntity(str(entity_id)))
    return tuple(entities)


def _translations(items) -> Tuple[Translation, ...]:
    # proto3 JSON omits empty strings
    return tuple(
        Translation(language=str(_get(i, "language", default="")), text=str(_get(i, "text", default="")))
        for i in items
    )
