import re
from datetime import date, datetime
from typing import Optional, Union

import dateparser
import pytz

from tripcore.errors import InvalidInput

_ISO_DURATION = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)


def get_current_datetime(tz: str = "UTC") -> datetime:
    """Current time as an aware datetime in ``tz``."""
    return datetime.now(pytz.timezone(tz))


def to_date(value: Union[str, date, datetime, None], tz: str = "UTC") -> date:
    """Normalise ISO strings, date objects or phrases like 'next friday' to a date.

    Raises InvalidInput for anything dateparser cannot read.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None or not str(value).strip():
        raise InvalidInput("A date is required")

    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass

    base_date = get_current_datetime(tz).replace(tzinfo=None)
    dt = dateparser.parse(text, settings={"RELATIVE_BASE": base_date, "PREFER_DATES_FROM": "future"})
    if dt is None:
        raise InvalidInput(f"Unrecognised date: {text!r}")
    return dt.date()


def iso_duration_to_minutes(dur: Optional[str]) -> int:
    """'PT11H30M' -> 690, 'P1DT2H' -> 1560. Seconds round up to a whole minute."""
    if not dur:
        return 0
    m = _ISO_DURATION.match(dur.strip().upper())
    if not m or dur.strip().upper() in ("P", "PT"):
        raise ValueError(f"Not an ISO-8601 duration: {dur!r}")
    days = int(m.group("days") or 0)
    hours = int(m.group("hours") or 0)
    minutes = int(m.group("minutes") or 0)
    seconds = float(m.group("seconds") or 0)
    total = days * 1440 + hours * 60 + minutes
    if seconds:
        total += 1
    return total


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def format_duration_minutes(total_minutes: int) -> str:
    """
    Convert duration in minutes to a compact human string, e.g. 85 -> "1h 25min".
    """
    if total_minutes is None or total_minutes < 0:
        return ""
    h = total_minutes // 60
    m = total_minutes % 60
    if h and m:
        return f"{h}h {m}min"
    if h:
        return f"{h}h"
    return f"{m}min"
