"""One query of a replayed workload, read from a CSV row."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Sequence

from pbench.logger import get_logger

FIELD_COUNT = 9

_CREATE_TIME = re.compile(
    r"(\d{4})-(\d{2})-(\d{2}) (\d{2}):(\d{2}):(\d{2})\.(\d{3}) ([A-Za-z]{3,5})",
    re.ASCII,
)
_INTEGER = re.compile(r"[+-]?\d+", re.ASCII)


def parse_create_time(text: str) -> datetime:
    """Parse a time such as "2024-04-15 11:20:42.755 UTC"."""
    match = _CREATE_TIME.fullmatch(text)
    if match is None:
        raise ValueError(f"invalid create time: {text!r}")
    year, month, day, hour, minute, second, millis = (int(g) for g in match.groups()[:7])
    zone = match.group(8)
    tz = timezone.utc if zone == "UTC" else timezone(timedelta(0), zone)
    return datetime(year, month, day, hour, minute, second, millis * 1000, tzinfo=tz)


def format_create_time(value: datetime) -> str:
    """Format a time the way parse_create_time reads it."""
    zone = value.tzname() or "UTC"
    millis = value.microsecond // 1000
    return f"{value:%Y-%m-%d %H:%M:%S}.{millis:03d} {zone}"


def _parse_int(text: str) -> int:
    if _INTEGER.fullmatch(text) is None:
        raise ValueError(f"invalid integer: {text!r}")
    return int(text)


@dataclass
class QueryFrame:
    """A query with the time it was created and the session it ran in."""

    query_id: str
    create_time: datetime
    wall_time_millis: int
    output_rows: int
    written_output_rows: int
    catalog: str
    schema: str
    session_properties: str
    query: str

    @classmethod
    def from_fields(cls, fields: Sequence[str]) -> QueryFrame:
        """Build a frame from query_id, create_time, wall_time_millis, output_rows,
        written_output_rows, catalog, schema, session_properties and query."""
        if len(fields) < FIELD_COUNT:
            raise ValueError(f"expected {FIELD_COUNT} fields, got {len(fields)}")
        return cls(
            query_id=fields[0],
            create_time=parse_create_time(fields[1]),
            wall_time_millis=_parse_int(fields[2]),
            output_rows=_parse_int(fields[3]),
            written_output_rows=_parse_int(fields[4]),
            catalog=fields[5],
            schema=fields[6],
            session_properties=fields[7],
            query=fields[8].replace("<<>>", "\n"),
        )

    def parse_session_params(self) -> dict[str, str]:
        """Read "{key=value, key=value}" into a dictionary; malformed entries are logged and skipped."""
        props = self.session_properties
        params: dict[str, str] = {}
        if len(props) <= 2 or not props.startswith("{") or not props.endswith("}"):
            return params
        for prop in props[1:-1].split(", "):
            key, sep, value = prop.partition("=")
            if not sep:
                get_logger().error("invalid session property format", prop=prop)
                continue
            params[key] = value
        return params