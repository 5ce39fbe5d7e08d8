"""
etl/route_ids.py
Route ids in bulletins may carry a variant suffix ("1009 1", "1009 6")
that does not exist in the static GTFS feed.
"""

import re

_WHITESPACE = re.compile(r"\s")


def normalize_route_id(route_id: str) -> str:
    """Drop everything from the first whitespace character on: "1009 6" -> "1009"."""
    match = _WHITESPACE.search(route_id)
    return route_id[:match.start()] if match else route_id
