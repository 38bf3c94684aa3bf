import math
import re
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Union

FIELD_SEP = "|"
COMP_SEP = "^"
HEADER = "MSH"

# segment id -> instances (fields after the id), in order of arrival
ParsedMessage = Dict[str, List[List[str]]]

_DATE_RE = re.compile(r"^([0-9]{4})([0-9]{2})([0-9]{2})")
_TIME_RE = re.compile(r"^([0-9]{2}):?([0-9]{2})(?::?([0-9]{2}))?")


def first(parsed: ParsedMessage, seg: str) -> List[str]:
    """First instance of a segment, or [] when the message has none."""
    instances = parsed.get(seg) or []
    return instances[0] if instances else []


def field(fields: List[str], n: int, seg: str = "") -> Optional[str]:
    """HL7 field n of a segment instance; empty or missing -> None.

    MSH numbering is shifted by one: MSH-1 is the separator itself, so
    MSH-2 (encoding characters) is the first stored field.
    """
    idx = n - 2 if seg == HEADER else n - 1
    if idx < 0 or idx >= len(fields):
        return None
    return fields[idx] or None


def component(value: Optional[str], n: int, sep: str = COMP_SEP) -> Optional[str]:
    """Component n (1-based) of a field value; empty or missing -> None."""
    if not value:
        return None
    comps = value.split(sep)
    if n < 1 or n > len(comps):
        return None
    return comps[n - 1] or None


def parse_date(value: Optional[str]) -> Optional[date]:
    """YYYYMMDD[...] -> date. Anything shorter or out of range -> None."""
    m = _DATE_RE.match(value or "")
    if not m:
        return None
    try:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        return None


def parse_datetime(value: Optional[str], time_value: Optional[str] = None) -> Optional[datetime]:
    """Date field plus optional separate time field (HHMM[SS] or HH:MM[:SS]), in UTC."""
    d = parse_date(value)
    if d is None:
        return None
    hour = minute = second = 0
    if time_value:
        m = _TIME_RE.match(time_value.strip())
        if not m:
            return None
        hour, minute = int(m.group(1)), int(m.group(2))
        second = int(m.group(3) or 0)
    try:
        return datetime(d.year, d.month, d.day, hour, minute, second, tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Date portion of an HL7 timestamp as UTC midnight."""
    return parse_datetime(value)


def coerce_numeric(value: Optional[str]) -> Union[int, float, str, None]:
    """'98.6' -> 98.6, '12' -> 12; anything not a finite number is returned as given."""
    if value is None:
        return None
    # ASCII digits only, no "1_000" grouping
    if "_" in value or not value.isascii():
        return value
    try:
        return int(value)
    except ValueError:
        pass
    try:
        num = float(value)
    except ValueError:
        return value
    if math.isnan(num) or math.isinf(num):
        return value
    return num
