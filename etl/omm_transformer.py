"""
etl/omm_transformer.py
Turns OMM database rows into Bulletins so that poll mode shares the
translator with push mode.
"""

import logging
from typing import List, Mapping, Sequence

from models.bulletin import AffectedEntity, Bulletin, Translation
from models.omm import Line, OmmBulletin, StopPoint, local_to_utc_ms

logger = logging.getLogger("etl.omm_transformer")


class OmmBulletinTransformer:
    """Resolves line/stop gids and converts local OMM timestamps to UTC."""

    def __init__(self, lines: Mapping[str, Line], stop_points: Mapping[str, StopPoint], timezone: str):
        self.lines       = lines
        self.stop_points = stop_points
        self.timezone    = timezone

    def transform(self, row: OmmBulletin) -> Bulletin:
        return Bulletin(
            bulletin_id=row.bulletin_id,
            category=row.category,
            impact=row.impact,
            priority=row.priority,
            valid_from_utc_ms=local_to_utc_ms(row.valid_from, self.timezone),
            valid_to_utc_ms=local_to_utc_ms(row.valid_to, self.timezone),
            last_modified_utc_ms=local_to_utc_ms(row.last_modified, self.timezone),
            affects_all_routes=row.affects_all_routes,
            affects_all_stops=row.affects_all_stops,
            affected_routes=tuple(self._routes(row)),
            affected_stops=tuple(self._stops(row)),
            titles=tuple(Translation(t.language, t.title) for t in row.localized_texts if t.title),
            descriptions=tuple(Translation(t.language, t.text) for t in row.localized_texts if t.text),
            urls=tuple(Translation(t.language, t.url) for t in row.localized_texts if t.url),
            display_only=row.display_only,
        )

    def transform_all(self, rows: Sequence[OmmBulletin]) -> List[Bulletin]:
        return [self.transform(r) for r in rows]

    def _routes(self, row: OmmBulletin):
        for gid in row.affected_line_gids:
            line = self.lines.get(gid)
            if line is None:
                logger.warning(f"Bulletin {row.bulletin_id}: unknown line gid {gid}")
                continue
            yield AffectedEntity(line.line_id)

    def _stops(self, row: OmmBulletin):
        for gid in row.affected_stop_gids:
            stop = self.stop_points.get(gid)
            if stop is None:
                logger.warning(f"Bulletin {row.bulletin_id}: unknown stop gid {gid}")
                continue
            yield AffectedEntity(stop.stop_id)
