"""
models/omm.py
Rows read from the OMM (bulletin management) database for poll mode,
and the AlertState snapshot used to detect when a new feed is due.

OMM stores timestamps as naive local wall-clock time in a configured zone;
conversion to UTC happens when a row is turned into a Bulletin.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Tuple
from zoneinfo import ZoneInfo

from models.bulletin import Category, Impact, Priority


@dataclass(frozen=True)
class LocalizedText:
    language: str
    title: Optional[str] = None
    text: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class OmmBulletin:
    bulletin_id: str
    category: Optional[Category]
    last_modified: datetime
    valid_from: datetime
    valid_to: datetime
    impact: Optional[Impact] = None
    priority: Optional[Priority] = None
    affects_all_routes: bool = False
    affects_all_stops: bool = False
    affected_line_gids: Tuple[str, ...] = field(default_factory=tuple)
    affected_stop_gids: Tuple[str, ...] = field(default_factory=tuple)
    localized_texts: Tuple[LocalizedText, ...] = field(default_factory=tuple)
    display_only: Optional[bool] = None


@dataclass(frozen=True)
class Line:
    gid: str
    line_id: str


@dataclass(frozen=True)
class StopPoint:
    gid: str
    stop_id: str


class AlertState:
    """
    Snapshot of the bulletins seen in one poll.

    Two states are equal only if they hold the same bulletins in the same
    order with every field equal, so any edit, addition, removal or
    reordering counts as a change.
    """

    def __init__(self, bulletins: Iterable[OmmBulletin]):
        self.bulletins: Tuple[OmmBulletin, ...] = tuple(bulletins)

    def __eq__(self, other) -> bool:
        if not isinstance(other, AlertState):
            return NotImplemented
        return self.bulletins == other.bulletins

    def __hash__(self) -> int:
        return hash(self.bulletins)

    def __len__(self) -> int:
        return len(self.bulletins)

    def __repr__(self) -> str:
        return f"AlertState(bulletins={len(self.bulletins)})"


def has_changed(previous: Optional[AlertState], latest: AlertState) -> bool:
    return latest != previous


def local_to_utc_ms(local: datetime, zone_id: str) -> int:
    """Interpret a naive local timestamp in `zone_id` and return UTC epoch millis."""
    aware = local.replace(tzinfo=ZoneInfo(zone_id))
    return int(aware.timestamp()) * 1000 + aware.microsecond // 1000


def last_modified_in_utc_ms(state: AlertState, zone_id: str) -> int:
    """Latest last_modified across the state in UTC millis, or now if the state is empty."""
    if not state.bulletins:
        return int(time.time() * 1000)
    latest = max(b.last_modified for b in state.bulletins)
    return local_to_utc_ms(latest, zone_id)
