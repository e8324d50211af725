"""Delimited-text (CSV / TSV) parsing with per-field scalar type detection"""
import csv
import io
import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from datachat.components.errors import IngestionFault

Record = Dict[str, Any]

_INT_RE = re.compile(r"^[-+]?\d+$")
_NUMBER_RE = re.compile(r"^[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?$")
_INFINITY_RE = re.compile(r"^[-+]?Infinity$")
_ISO_DATE_RE = re.compile(
    r"^(\d{4})(?:-(\d{2})(?:-(\d{2}))?)?"
    r"(?:T(\d{2}):(\d{2})(?::(\d{2})(?:\.(\d{3}))?)?(Z|[-+]\d{2}:\d{2})?)?$"
)


def parse_iso_datetime(value: str) -> Optional[datetime]:
    """Parse the ISO-8601 subset accepted in uploads; zone-less values are UTC."""
    m = _ISO_DATE_RE.match(value)
    if not m:
        return None
    year, month, day, hour, minute, second, millis, zone = m.groups()
    try:
        tz = timezone.utc
        if zone and zone != "Z":
            sign = 1 if zone[0] == "+" else -1
            tz = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
        return datetime(
            int(year), int(month or 1), int(day or 1),
            int(hour or 0), int(minute or 0), int(second or 0),
            int(millis or 0) * 1000, tzinfo=tz,
        )
    except ValueError:
        return None


def auto_type(raw: Optional[str]) -> Any:
    """Detect the scalar type of one field.

    empty -> None, true/false -> bool, NaN / numbers -> int or float,
    ISO dates -> datetime, anything else -> the trimmed string.
    """
    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None
    if value == "true":
        return True
    if value == "false":
        return False
    if value == "NaN":
        return math.nan
    if _INT_RE.match(value):
        return int(value)
    if _NUMBER_RE.match(value):
        return float(value)
    if _INFINITY_RE.match(value):
        return -math.inf if value.startswith("-") else math.inf
    parsed = parse_iso_datetime(value)
    if parsed is not None:
        return parsed
    return value


def parse_dsv(text: str, delimiter: str = ",") -> List[Record]:
    """Parse delimited text whose first line is the header row.

    Raises ``IngestionFault`` when the text cannot be tokenized, e.g. a
    field longer than the csv module's field size limit.
    """
    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    rows: List[Record] = []
    try:
        header = next(reader, None)
        if header is None:
            return []
        for fields in reader:
            if not fields:
                continue
            row: Record = {}
            for i, column in enumerate(header):
                row[column] = auto_type(fields[i]) if i < len(fields) else None
            rows.append(row)
    except csv.Error as e:
        raise IngestionFault(f"Could not parse delimited text: {e}") from e
    return rows


def to_iso(value: Any) -> Any:
    """Serialize date/time values as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` (UTC)."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"
    if isinstance(value, date):
        return f"{value.isoformat()}T00:00:00.000Z"
    return value


def _format_field(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(to_iso(value))


def format_dsv(rows: List[Record], delimiter: str = ",") -> str:
    """Serialize records with a header taken from the first record's keys."""
    if not rows:
        return ""
    output = io.StringIO()
    headers = list(rows[0].keys())
    writer = csv.DictWriter(
        output, fieldnames=headers, delimiter=delimiter,
        extrasaction="ignore", lineterminator="\n",
    )
    writer.writeheader()
    for row in rows:
        writer.writerow({h: _format_field(row.get(h)) for h in headers})
    return output.getvalue()
