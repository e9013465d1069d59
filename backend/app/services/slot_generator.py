# backend/app/services/slot_generator.py
"""
Slot generation for event types.

Turns weekly availability rules and date exceptions into concrete bookable
windows. Everything here is a pure function of its inputs: no database
access and no clock reads, so the booking transaction can regenerate the
exact slot list an invitee was shown.

Per calendar day in the requested range:
    1. an ``unavailable`` exception removes the day entirely
    2. a ``custom_hours`` exception with both times replaces that day's rules
    3. each local window is converted to UTC in its own zone
    4. overlapping or touching UTC windows are merged
    5. windows are walked in fixed steps emitting slots of exact duration
    6. slots outside the lead-time / advance-booking horizon are dropped
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
import logging
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple

from ..core.timezone_utils import ensure_utc, local_to_utc, parse_hhmm, utc_to_local

logger = logging.getLogger(__name__)

DEFAULT_STEP_MINUTES = 15

Window = Tuple[datetime, datetime]


class RuleLike(Protocol):
    day_of_week: int
    start_time: str
    end_time: str
    timezone: str
    is_active: bool


class ExceptionLike(Protocol):
    exception_date: date
    exception_type: str
    start_time: Optional[str]
    end_time: Optional[str]
    timezone: Optional[str]


class EventTypeLike(Protocol):
    duration_minutes: int
    min_lead_time_hours: int
    max_advance_days: int


@dataclass(frozen=True)
class Slot:
    """A bookable window as UTC instants plus their rendering in the display zone."""

    start_utc: datetime
    end_utc: datetime
    start_local: datetime
    end_local: datetime

    def to_dict(self) -> Dict[str, str]:
        return {
            "start": self.start_local.isoformat(),
            "end": self.end_local.isoformat(),
            "start_utc": self.start_utc.isoformat(),
            "end_utc": self.end_utc.isoformat(),
        }


def day_of_week(civil_date: date) -> int:
    """Weekday with 0 = Sunday ... 6 = Saturday."""
    return civil_date.isoweekday() % 7


def iter_dates(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def _to_utc_window(
    civil_date: date, start_hhmm: str, end_hhmm: str, zone_name: str
) -> Optional[Window]:
    """Convert a local ``HH:MM`` pair on ``civil_date`` to a UTC window."""
    try:
        start_clock = parse_hhmm(start_hhmm)
        if str(end_hhmm).strip() in ("24:00", "24:00:00"):
            end_date, end_clock = civil_date + timedelta(days=1), time(0, 0)
        else:
            end_date, end_clock = civil_date, parse_hhmm(end_hhmm)
    except ValueError:
        logger.warning(f"Skipping window with malformed times {start_hhmm!r}-{end_hhmm!r}")
        return None

    start_utc = local_to_utc(civil_date, start_clock, zone_name)
    end_utc = local_to_utc(end_date, end_clock, zone_name)
    if end_utc <= start_utc:
        return None
    return start_utc, end_utc


def windows_for_date(
    civil_date: date,
    rules: Sequence[RuleLike],
    exception: Optional[ExceptionLike] = None,
) -> List[Window]:
    """
    Resolve the UTC availability windows for one civil date.

    Args:
        civil_date: The calendar date
        rules: Weekly rules for the event type
        exception: Exception recorded for this date, if any

    Returns:
        Unmerged UTC windows; empty when the day is unavailable
    """
    if exception is not None and exception.exception_type == "unavailable":
        return []

    if (
        exception is not None
        and exception.exception_type == "custom_hours"
        and exception.start_time
        and exception.end_time
    ):
        window = _to_utc_window(
            civil_date, exception.start_time, exception.end_time, exception.timezone or "UTC"
        )
        return [window] if window else []

    weekday = day_of_week(civil_date)
    windows = []
    for rule in rules:
        if not rule.is_active or rule.day_of_week != weekday:
            continue
        window = _to_utc_window(civil_date, rule.start_time, rule.end_time, rule.timezone or "UTC")
        if window:
            windows.append(window)
    return windows


def merge_windows(windows: Iterable[Window]) -> List[Window]:
    """Union windows: sort by start and fold any that overlap or touch."""
    merged: List[Window] = []
    for start, end in sorted(windows):
        if merged and start <= merged[-1][1]:
            last_start, last_end = merged[-1]
            merged[-1] = (last_start, max(last_end, end))
        else:
            merged.append((start, end))
    return merged


def generate_slots(
    event_type: EventTypeLike,
    rules: Sequence[RuleLike],
    exceptions: Sequence[ExceptionLike],
    range_start: date,
    range_end: date,
    display_timezone: str,
    now: datetime,
    step_minutes: int = DEFAULT_STEP_MINUTES,
) -> List[Slot]:
    """
    Generate candidate slots for an event type over an inclusive date range.

    Windows are unioned across all days before walking so a window spanning
    midnight UTC never yields the same slot twice.

    Args:
        event_type: Supplies duration, lead time and advance horizon
        rules: Active weekly rules
        exceptions: Date exceptions covering the range
        range_start: First civil date (inclusive)
        range_end: Last civil date (inclusive)
        display_timezone: Zone used for the local rendering of each slot
        now: Reference instant for the booking horizon
        step_minutes: Distance between consecutive slot starts

    Returns:
        Slots sorted by UTC start with no duplicates
    """
    if range_start > range_end:
        return []

    by_date = {exc.exception_date: exc for exc in exceptions}
    windows: List[Window] = []
    for civil_date in iter_dates(range_start, range_end):
        windows.extend(windows_for_date(civil_date, rules, by_date.get(civil_date)))

    now_utc = ensure_utc(now)
    earliest = now_utc + timedelta(hours=event_type.min_lead_time_hours or 0)
    latest = now_utc + timedelta(days=event_type.max_advance_days)
    duration = timedelta(minutes=event_type.duration_minutes)
    step = timedelta(minutes=step_minutes)

    slots: List[Slot] = []
    for window_start, window_end in merge_windows(windows):
        cursor = window_start
        while cursor + duration <= window_end:
            if earliest <= cursor <= latest:
                end = cursor + duration
                slots.append(
                    Slot(
                        start_utc=cursor,
                        end_utc=end,
                        start_local=utc_to_local(cursor, display_timezone),
                        end_local=utc_to_local(end, display_timezone),
                    )
                )
            cursor += step

    logger.debug(
        f"Generated {len(slots)} candidate slots between {range_start} and {range_end}"
    )
    return slots
