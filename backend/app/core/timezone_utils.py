"""
Timezone utilities for the scheduling backend.

Converts wall-clock times in IANA zones to absolute UTC instants and back.
Ambiguous local times (the repeated hour when clocks fall back) resolve to
the earlier UTC instant; non-existent local times (the skipped hour when
clocks spring forward) are pushed forward by the size of the gap.
"""

from datetime import date, datetime, time, timezone
from functools import lru_cache
import logging

import pytz
from pytz.tzinfo import BaseTzInfo

from .exceptions import InvalidTimezoneException

logger = logging.getLogger(__name__)

UTC = pytz.UTC


@lru_cache(maxsize=256)
def get_zone(name: str) -> BaseTzInfo:
    """
    Resolve an IANA zone name.

    Raises:
        InvalidTimezoneException: If the name is empty or unknown
    """
    if not name or not isinstance(name, str):
        raise InvalidTimezoneException(name)
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        raise InvalidTimezoneException(name) from None


def is_valid_timezone(name: str) -> bool:
    try:
        get_zone(name)
    except InvalidTimezoneException:
        return False
    return True


def ensure_utc(dt: datetime) -> datetime:
    """Return ``dt`` as an aware UTC datetime (naive values are taken as UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def localize(civil: datetime, zone_name: str) -> datetime:
    """
    Attach ``zone_name`` to a naive civil datetime.

    Both DST interpretations are computed; the earlier instant wins for a
    repeated hour and the later one for a skipped hour.
    """
    tz = get_zone(zone_name)
    naive = civil.replace(tzinfo=None)
    try:
        return tz.localize(naive, is_dst=None)
    except pytz.AmbiguousTimeError:
        candidates = [tz.localize(naive, is_dst=flag) for flag in (True, False)]
        return min(candidates, key=lambda c: c.astimezone(UTC))
    except pytz.NonExistentTimeError:
        candidates = [tz.localize(naive, is_dst=flag) for flag in (True, False)]
        return tz.normalize(max(candidates, key=lambda c: c.astimezone(UTC)))


def local_to_utc(civil_date: date, civil_time: time, zone_name: str) -> datetime:
    """Convert a civil date and time in ``zone_name`` to an aware UTC instant."""
    local = localize(datetime.combine(civil_date, civil_time), zone_name)
    return local.astimezone(timezone.utc)


def utc_to_local(instant: datetime, zone_name: str) -> datetime:
    """Render an instant in ``zone_name``."""
    return ensure_utc(instant).astimezone(get_zone(zone_name))


def parse_hhmm(value: str) -> time:
    """Parse an ``HH:MM`` (or ``HH:MM:SS``) wall-clock string."""
    try:
        parts = [int(p) for p in str(value).strip().split(":")]
        if len(parts) == 2:
            return time(parts[0], parts[1])
        if len(parts) == 3:
            return time(parts[0], parts[1], parts[2])
    except (TypeError, ValueError):
        pass
    raise ValueError(f"Invalid time format: {value}. Expected HH:MM format.")
