"""Tests for OMM rows, AlertState change detection and the OMM reader."""

import unittest
from datetime import datetime
from unittest.mock import MagicMock

import psycopg2

from etl.omm_transformer import OmmBulletinTransformer
from models.bulletin import AffectedEntity, Category, Impact, Priority, Translation
from models.omm import (
    AlertState, Line, LocalizedText, OmmBulletin, StopPoint,
    has_changed, last_modified_in_utc_ms, local_to_utc_ms,
)
from warehouse.omm_reader import OmmReader, parse_id_list

TIMEZONE = "Europe/Helsinki"


def omm_bulletin(bulletin_id="3598", **overrides) -> OmmBulletin:
    fields = dict(
        bulletin_id=bulletin_id,
        category=Category.ROAD_MAINTENANCE,
        impact=Impact.DELAYED,
        priority=Priority.WARNING,
        last_modified=datetime(2018, 11, 7, 9, 47, 0),
        valid_from=datetime(2018, 11, 7, 9, 47, 0),
        valid_to=datetime(2018, 11, 14, 23, 30, 0),
        affected_line_gids=("9011301022700000", "9011301095000000"),
        localized_texts=(
            LocalizedText("fi", "Pysäkki Pattistenpelto väliaikaisesti poissa", "Linjalla 112/N pysäkki poissa käytöstä"),
            LocalizedText("sv", "Hållplats Battisåkern tillfälligt ur bruk", "Hållplats ur bruk"),
            LocalizedText("en", "Pattistenpelto bus stop temporarily closed", "-"),
        ),
    )
    fields.update(overrides)
    return OmmBulletin(**fields)


class TestAlertState(unittest.TestCase):

    def test_equal_states(self):
        self.assertEqual(AlertState([omm_bulletin()]), AlertState([omm_bulletin()]))
        self.assertEqual(AlertState([]), AlertState([]))
        self.assertFalse(has_changed(AlertState([omm_bulletin()]), AlertState([omm_bulletin()])))

    def test_none_is_never_equal(self):
        self.assertNotEqual(AlertState([]), None)
        self.assertTrue(has_changed(None, AlertState([])))

    def test_reordering_is_a_change(self):
        a, b = omm_bulletin("1"), omm_bulletin("2")
        self.assertNotEqual(AlertState([a, b]), AlertState([b, a]))

    def test_field_changes_are_detected(self):
        base = AlertState([omm_bulletin()])
        self.assertNotEqual(base, AlertState([omm_bulletin(last_modified=datetime(2018, 11, 7, 9, 48))]))
        self.assertNotEqual(base, AlertState([omm_bulletin(affected_line_gids=("9011301095000000", "9011301022700000"))]))
        self.assertNotEqual(base, AlertState([omm_bulletin(affected_line_gids=("9011301022700000",))]))
        self.assertNotEqual(base, AlertState([omm_bulletin(priority=None)]))
        self.assertNotEqual(base, AlertState([omm_bulletin(display_only=False)]))

    def test_addition_is_a_change(self):
        self.assertNotEqual(AlertState([omm_bulletin("1")]), AlertState([omm_bulletin("1"), omm_bulletin("2")]))


class TestTimeConversion(unittest.TestCase):

    def test_local_to_utc(self):
        self.assertEqual(local_to_utc_ms(datetime(2018, 11, 19, 12, 2, 42), TIMEZONE), 1542621762000)

    def test_summer_time(self):
        # EEST, UTC+3
        self.assertEqual(local_to_utc_ms(datetime(2019, 5, 15, 5, 0, 0), TIMEZONE), 1557885600000)

    def test_last_modified_is_latest(self):
        state = AlertState([
            omm_bulletin("1", last_modified=datetime(2018, 11, 6, 12, 6, 17)),
            omm_bulletin("2", last_modified=datetime(2018, 11, 19, 12, 2, 42)),
            omm_bulletin("3", last_modified=datetime(2018, 11, 7, 9, 47, 0)),
        ])
        self.assertEqual(last_modified_in_utc_ms(state, TIMEZONE), 1542621762000)

    def test_empty_state_uses_wall_clock(self):
        before = int(datetime.now().timestamp() * 1000)
        value = last_modified_in_utc_ms(AlertState([]), TIMEZONE)
        after = int(datetime.now().timestamp() * 1000)
        self.assertTrue(before - 1 <= value <= after + 1)


class TestOmmBulletinTransformer(unittest.TestCase):

    def setUp(self):
        self.lines = {
            "9011301022700000": Line("9011301022700000", "1112"),
            "9011301095000000": Line("9011301095000000", "1112N 1"),
        }
        self.stops = {"4040": StopPoint("4040", "2222212")}
        self.transformer = OmmBulletinTransformer(self.lines, self.stops, TIMEZONE)

    def test_transform(self):
        bulletin = self.transformer.transform(omm_bulletin(affected_stop_gids=("4040",)))
        self.assertEqual(bulletin.bulletin_id, "3598")
        self.assertEqual(bulletin.valid_from_utc_ms, 1541576820000)
        self.assertEqual(bulletin.valid_to_utc_ms, 1542231000000)
        self.assertEqual(bulletin.affected_routes, (AffectedEntity("1112"), AffectedEntity("1112N 1")))
        self.assertEqual(bulletin.affected_stops, (AffectedEntity("2222212"),))
        self.assertEqual([t.language for t in bulletin.titles], ["fi", "sv", "en"])
        self.assertEqual(bulletin.descriptions[2], Translation("en", "-"))
        self.assertEqual(bulletin.urls, ())

    def test_unknown_gids_are_skipped(self):
        bulletin = self.transformer.transform(omm_bulletin(affected_line_gids=("missing",), affected_stop_gids=("nope",)))
        self.assertEqual(bulletin.affected_routes, ())
        self.assertEqual(bulletin.affected_stops, ())

    def test_empty_texts_are_skipped(self):
        bulletin = self.transformer.transform(omm_bulletin(localized_texts=(
            LocalizedText("fi", "Otsikko", None, "https://www.hsl.fi/"),
            LocalizedText("sv", None, None),
            LocalizedText("en", "", ""),
        )))
        self.assertEqual(bulletin.titles, (Translation("fi", "Otsikko"),))
        self.assertEqual(bulletin.descriptions, ())
        self.assertEqual(bulletin.urls, (Translation("fi", "https://www.hsl.fi/"),))


class TestParseIdList(unittest.TestCase):

    def test_simple(self):
        self.assertEqual(parse_id_list("9223372036854775807"), ["9223372036854775807"])
        self.assertEqual(parse_id_list("0,1,2,3"), ["0", "1", "2", "3"])

    def test_extra_comma_and_spaces(self):
        self.assertEqual(parse_id_list("0, 1,2,3,"), ["0", "1", "2", "3"])

    def test_empty(self):
        self.assertEqual(parse_id_list(""), [])
        self.assertEqual(parse_id_list(None), [])


class StubCursor:
    def __init__(self, results):
        self.results = results
        self.description = None
        self._rows = []
        self.executed = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, query, params=None):
        self.executed.append((query, params))
        sql = query.lower()
        for table, (columns, rows) in self.results.items():
            if f"from {table}" in sql:
                self.description = [(c,) for c in columns]
                self._rows = rows
                return
        self.description = []
        self._rows = []

    def fetchall(self):
        return self._rows


class StubConnection:
    def __init__(self, results):
        self.cursor_instance = StubCursor(results)
        self.closed = 0

    def cursor(self):
        return self.cursor_instance

    def close(self):
        self.closed = 1


BULLETIN_COLUMNS = [
    "bulletins_id", "category", "impact", "priority", "last_modified", "valid_from", "valid_to",
    "affects_all_routes", "affects_all_stops", "affected_route_ids", "affected_stop_ids", "display_only",
    "title_fi", "text_fi", "url_fi", "title_sv", "text_sv", "url_sv", "title_en", "text_en", "url_en",
]


class TestOmmReader(unittest.TestCase):

    def setUp(self):
        self.conn = StubConnection({
            "bulletins": (BULLETIN_COLUMNS, [(
                3593, "OTHER", "CANCELLED", None, "2018-11-06 12:06:17", datetime(2018, 11, 6, 12, 4),
                datetime(2018, 11, 14, 23, 30), 0, 1, "9011301022600000,", None, None,
                "Finnoonlahden pysäkki", "Pysäkki siirtyy", None,
                "Inga trafikstörningar", "Hållplats flyttas", None,
                "No traffic disruption", "Bus stop relocated", "https://www.hsl.fi/en",
            )]),
            "lines": (["line_gid", "line_id"], [(9011301022600000, "2112")]),
            "stop_points": (["stop_point_gid", "stop_id"], [(4040, "2222212")]),
        })
        self.reader = OmmReader(self.conn, TIMEZONE)

    def test_get_active_bulletins(self):
        now = datetime(2018, 11, 8, 12, 0)
        bulletins = self.reader.get_active_bulletins(now=now)
        self.assertEqual(len(bulletins), 1)

        b = bulletins[0]
        self.assertEqual(b.bulletin_id, "3593")
        self.assertEqual(b.category, Category.OTHER)
        self.assertEqual(b.impact, Impact.CANCELLED)
        self.assertIsNone(b.priority)
        self.assertEqual(b.last_modified, datetime(2018, 11, 6, 12, 6, 17))
        self.assertFalse(b.affects_all_routes)
        self.assertTrue(b.affects_all_stops)
        self.assertEqual(b.affected_line_gids, ("9011301022600000",))
        self.assertEqual(b.affected_stop_gids, ())
        self.assertIsNone(b.display_only)
        self.assertEqual([t.language for t in b.localized_texts], ["fi", "sv", "en"])
        self.assertEqual(b.localized_texts[2].url, "https://www.hsl.fi/en")

        query, params = self.conn.cursor_instance.executed[0]
        self.assertEqual(params, (now,))

    def test_lookup_tables(self):
        self.assertEqual(self.reader.get_all_lines(), {"9011301022600000": Line("9011301022600000", "2112")})
        self.assertEqual(self.reader.get_all_stop_points(), {"4040": StopPoint("4040", "2222212")})

    def test_close(self):
        self.reader.close()
        self.assertTrue(self.conn.closed)


class DeadConnection:
    """Connection whose server side has gone away."""
    closed = 0

    def cursor(self):
        raise psycopg2.InterfaceError("connection already closed")

    def close(self):
        self.closed = 2


class TestOmmReaderReconnect(unittest.TestCase):

    def setUp(self):
        self.fresh = StubConnection({"lines": (["line_gid", "line_id"], [(1, "2112")])})
        self.connects = 0

    def connect(self):
        self.connects += 1
        return self.fresh

    def test_closed_connection_is_replaced(self):
        closed = StubConnection({})
        closed.closed = 2
        reader = OmmReader(closed, TIMEZONE, connect_fn=self.connect)

        self.assertEqual(reader.get_all_lines(), {"1": Line("1", "2112")})
        self.assertIs(reader.conn, self.fresh)
        self.assertEqual(self.connects, 1)

    def test_broken_connection_is_replaced_on_next_query(self):
        reader = OmmReader(DeadConnection(), TIMEZONE, connect_fn=self.connect)
        with self.assertRaises(psycopg2.InterfaceError):
            reader.get_all_lines()
        self.assertIsNone(reader.conn)
        self.assertEqual(self.connects, 0)

        self.assertEqual(reader.get_all_lines(), {"1": Line("1", "2112")})
        self.assertEqual(self.connects, 1)

    def test_failed_reconnect_propagates(self):
        def refuse():
            raise psycopg2.OperationalError("could not connect to server")

        reader = OmmReader(None, TIMEZONE, connect_fn=refuse)
        with self.assertRaises(psycopg2.OperationalError):
            reader.get_all_lines()
        self.assertIsNone(reader.conn)

    def test_query_errors_keep_the_connection(self):
        conn = StubConnection({})
        conn.cursor_instance.execute = MagicMock(side_effect=psycopg2.ProgrammingError("syntax error"))
        reader = OmmReader(conn, TIMEZONE, connect_fn=self.connect)
        with self.assertRaises(psycopg2.ProgrammingError):
            reader.get_all_lines()
        self.assertIs(reader.conn, conn)


if __name__ == "__main__":
    unittest.main()
