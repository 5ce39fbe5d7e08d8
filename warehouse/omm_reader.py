"""
warehouse/omm_reader.py
Read-only access to the OMM bulletin database for poll mode.
Tables: bulletins, bulletin_localized_messages, lines, stop_points
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

import psycopg2

from config.settings import OMM_DB_CONFIG
from models.bulletin import Category, Impact, Language, Priority
from models.omm import Line, LocalizedText, OmmBulletin, StopPoint

logger = logging.getLogger("warehouse.omm")

# ─────────────────────────────────────────
# QUERIES
# ─────────────────────────────────────────
ACTIVE_BULLETINS_SQL = """
    SELECT B.bulletins_id
        ,B.category
        ,B.impact
        ,B.priority
        ,B.last_modified
        ,B.valid_from
        ,B.valid_to
        ,B.affects_all_routes
        ,B.affects_all_stops
        ,B.affected_route_ids
        ,B.affected_stop_ids
        ,B.display_only
        ,MAX(CASE WHEN BLM.language_code = 'fi' THEN BLM.title END)       AS title_fi
        ,MAX(CASE WHEN BLM.language_code = 'fi' THEN BLM.description END) AS text_fi
        ,MAX(CASE WHEN BLM.language_code = 'fi' THEN BLM.url END)         AS url_fi
        ,MAX(CASE WHEN BLM.language_code = 'sv' THEN BLM.title END)       AS title_sv
        ,MAX(CASE WHEN BLM.language_code = 'sv' THEN BLM.description END) AS text_sv
        ,MAX(CASE WHEN BLM.language_code = 'sv' THEN BLM.url END)         AS url_sv
        ,MAX(CASE WHEN BLM.language_code = 'en' THEN BLM.title END)       AS title_en
        ,MAX(CASE WHEN BLM.language_code = 'en' THEN BLM.description END) AS text_en
        ,MAX(CASE WHEN BLM.language_code = 'en' THEN BLM.url END)         AS url_en
    FROM bulletins AS B
        LEFT JOIN bulletin_localized_messages AS BLM ON BLM.bulletins_id = B.bulletins_id
    WHERE B.type = 'PASSENGER_INFORMATION'
        AND B.valid_to > %s
    GROUP BY B.bulletins_id, B.category, B.impact, B.priority, B.last_modified,
        B.valid_from, B.valid_to, B.affects_all_routes, B.affects_all_stops,
        B.affected_route_ids, B.affected_stop_ids, B.display_only
    ORDER BY B.bulletins_id;
"""

ALL_LINES_SQL = "SELECT line_gid, line_id FROM lines;"

ALL_STOP_POINTS_SQL = "SELECT stop_point_gid, stop_id FROM stop_points;"


def connect():
    try:
        conn = psycopg2.connect(**OMM_DB_CONFIG)
        conn.autocommit = True
        logger.info("Connected to OMM database")
        return conn
    except Exception as e:
        logger.error(f"OMM connection failed: {e}")
        raise


def parse_id_list(value: Optional[str]) -> List[str]:
    """Split a comma separated id column ("1,2,3," -> ["1", "2", "3"])."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _as_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _as_bool(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "t", "yes"}
    return int(value) > 0


class OmmReader:
    """
    Reads bulletins and lookup tables from the OMM database.

    A connection closed by the server, or one that failed with an
    OperationalError/InterfaceError, is replaced by a fresh one from
    `connect_fn` on the next query.
    """

    def __init__(self, conn, timezone: str, connect_fn=connect):
        self.conn       = conn
        self.timezone   = timezone
        self.connect_fn = connect_fn

    def get_active_bulletins(self, now: Optional[datetime] = None) -> List[OmmBulletin]:
        """Bulletins whose validity has not ended at `now` (local time in the OMM zone)."""
        if now is None:
            now = datetime.now(ZoneInfo(self.timezone)).replace(tzinfo=None)
        rows = self._query(ACTIVE_BULLETINS_SQL, (now,))
        bulletins = [self._parse_bulletin(r) for r in rows]
        logger.info(f"Read {len(bulletins)} active bulletins")
        return bulletins

    def get_all_lines(self) -> Dict[str, Line]:
        rows = self._query(ALL_LINES_SQL)
        return {str(r["line_gid"]): Line(str(r["line_gid"]), str(r["line_id"])) for r in rows}

    def get_all_stop_points(self) -> Dict[str, StopPoint]:
        rows = self._query(ALL_STOP_POINTS_SQL)
        return {str(r["stop_point_gid"]): StopPoint(str(r["stop_point_gid"]), str(r["stop_id"])) for r in rows}

    def _parse_bulletin(self, row: dict) -> OmmBulletin:
        return OmmBulletin(
            bulletin_id=str(row["bulletins_id"]),
            category=Category.parse(row.get("category")),
            impact=Impact.parse(row.get("impact")),
            priority=Priority.parse(row.get("priority")),
            last_modified=_as_datetime(row["last_modified"]),
            valid_from=_as_datetime(row["valid_from"]),
            valid_to=_as_datetime(row["valid_to"]),
            affects_all_routes=_as_bool(row.get("affects_all_routes")),
            affects_all_stops=_as_bool(row.get("affects_all_stops")),
            affected_line_gids=tuple(parse_id_list(row.get("affected_route_ids"))),
            affected_stop_gids=tuple(parse_id_list(row.get("affected_stop_ids"))),
            localized_texts=tuple(self._parse_localization(row, lang) for lang in Language),
            display_only=None if row.get("display_only") is None else _as_bool(row["display_only"]),
        )

    def _parse_localization(self, row: dict, language: Language) -> LocalizedText:
        suffix = f"_{language.value}"
        return LocalizedText(
            language=language.value,
            title=row.get("title" + suffix),
            text=row.get("text" + suffix),
            url=row.get("url" + suffix),
        )

    def _query(self, sql: str, params=None) -> List[dict]:
        if self.conn is None or self.conn.closed:
            logger.warning("OMM connection is closed, reconnecting")
            self.conn = self.connect_fn()
        try:
            with self.conn.cursor() as cur:
                cur.execute(sql, params)
                cols = [d[0] for d in cur.description]
                return [dict(zip(cols, row)) for row in cur.fetchall()]
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            logger.error(f"OMM connection lost: {e}")
            self._discard_connection()
            raise
        except Exception as e:
            logger.error(f"OMM query failed: {e}")
            raise

    def _discard_connection(self):
        try:
            self.conn.close()
        except psycopg2.Error as e:
            logger.debug(f"Ignoring error while closing broken connection: {e}")
        self.conn = None

    def close(self):
        if self.conn:
            self.conn.close()
