# trip_scheduler/api/sequencer.py
"""Per-day time slot sequencing.

Keeps a day's slots sorted by start time, derives end times from durations
and fills in the walking time between consecutive stops. Every function here
works on a single :class:`DayPlan` in place and tolerates stale ids: an
unknown slot is reported through the return value, never by raising.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from trip_scheduler.api.models import Coordinates, DayPlan, POI, TimeSlot

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
WALKING_SPEED_KMH = 4.0

DEFAULT_START_TIME = "09:00"
DEFAULT_DURATION = 120

DAY_WINDOW_START = "08:00"
DAY_WINDOW_END = "22:00"
MIN_GAP_MINUTES = 30

MINUTES_PER_DAY = 24 * 60

_CLOCK_RE = re.compile(
    r"^\s*(\d{1,2})(?::(\d{2}))?(?::\d{2})?\s*(?:([ap])\.?\s*m\.?)?\s*$",
    re.IGNORECASE,
)


# ────────────────────────────────────────────────────────────────────────────────
# Clock helpers
# ────────────────────────────────────────────────────────────────────────────────
def parse_clock(value: object) -> Optional[int]:
    """Parse a local clock time into minutes after midnight.

    Accepts "09:00", "9:00", "09:00:00", "9am" and "2:30 PM". Returns None
    for anything else, including out-of-range hours or minutes.
    """
    if not isinstance(value, str):
        return None
    match = _CLOCK_RE.match(value)
    if not match:
        return None
    hours = int(match.group(1))
    minutes = int(match.group(2) or 0)
    meridiem = (match.group(3) or "").lower()
    if meridiem:
        if not 1 <= hours <= 12:
            return None
        hours = hours % 12 + (12 if meridiem == "p" else 0)
    if hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes


def format_clock(minutes: int) -> str:
    """Format minutes after midnight as "HH:MM", wrapping past midnight."""
    minutes = minutes % MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def clock_minutes(value: str) -> int:
    """Minutes after midnight for a stored slot time (0 if unreadable)."""
    parsed = parse_clock(value)
    return parsed if parsed is not None else 0


def calculate_end_time(start_time: str, duration: int) -> str:
    return format_clock(clock_minutes(start_time) + duration)


def minutes_between(start_time: str, end_time: str) -> int:
    return clock_minutes(end_time) - clock_minutes(start_time)


# ────────────────────────────────────────────────────────────────────────────────
# Distance
# ────────────────────────────────────────────────────────────────────────────────
def haversine_km(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance between two positions in kilometres."""
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat))
        * math.sin(d_lng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def transport_minutes(a: Coordinates, b: Coordinates,
                      speed_kmh: float = WALKING_SPEED_KMH) -> int:
    """Walking time between two positions, rounded up to whole minutes."""
    return math.ceil(haversine_km(a, b) / speed_kmh * 60)


# ────────────────────────────────────────────────────────────────────────────────
# Derived fields
# ────────────────────────────────────────────────────────────────────────────────
def refresh_end_time(slot: TimeSlot) -> None:
    slot.end_time = calculate_end_time(slot.start_time, slot.duration)


def recalculate_transport_times(day: DayPlan, pois: Dict[str, POI]) -> None:
    """Recompute walking time from each slot to the next one.

    The last slot always gets 0, as does any slot whose own POI or the next
    slot's POI is missing from the catalog.
    """
    for current, following in zip(day.slots, day.slots[1:]):
        here = pois.get(current.poi_id)
        there = pois.get(following.poi_id)
        if here is None or there is None:
            current.transport_time = 0
            continue
        current.transport_time = transport_minutes(here.location, there.location)
    if day.slots:
        day.slots[-1].transport_time = 0


def sort_slots(day: DayPlan) -> None:
    # list.sort is stable, so equal start times keep their current order
    day.slots.sort(key=lambda s: clock_minutes(s.start_time))


def restore_order(day: DayPlan) -> None:
    """Refresh every end time and put the slots back in time order."""
    for slot in day.slots:
        refresh_end_time(slot)
    sort_slots(day)


def normalise_day(day: DayPlan, pois: Dict[str, POI]) -> None:
    """Restore every sequencing invariant on *day*."""
    restore_order(day)
    recalculate_transport_times(day, pois)


# ────────────────────────────────────────────────────────────────────────────────
# Edits
# ────────────────────────────────────────────────────────────────────────────────
def insertion_index(slots: List[TimeSlot], start_time: str) -> int:
    """Index of the first slot starting strictly later than *start_time*.

    Slots already scheduled at the same time stay ahead of the new one.
    """
    start = clock_minutes(start_time)
    for index, slot in enumerate(slots):
        if clock_minutes(slot.start_time) > start:
            return index
    return len(slots)


def insert_slot(day: DayPlan, slot: TimeSlot) -> int:
    """Insert *slot* in chronological position and return its index.

    Only the slot's end time is refreshed; call
    :func:`recalculate_transport_times` once the catalog is up to date.
    """
    refresh_end_time(slot)
    index = insertion_index(day.slots, slot.start_time)
    day.slots.insert(index, slot)
    return index


def remove_slot(day: DayPlan, slot_id: str) -> bool:
    remaining = [s for s in day.slots if s.id != slot_id]
    if len(remaining) == len(day.slots):
        return False
    day.slots = remaining
    return True


def move_slot(day: DayPlan, from_index: int, to_index: int) -> bool:
    """Move a slot to another position without touching any time.

    Out-of-range indices and moves onto the current position do nothing.
    """
    count = len(day.slots)
    if from_index == to_index:
        return False
    if not (0 <= from_index < count and 0 <= to_index < count):
        return False
    moved = day.slots.pop(from_index)
    day.slots.insert(to_index, moved)
    return True


def retime_slot(day: DayPlan, slot_id: str, start_time: str, duration: int) -> bool:
    """Give a slot a new start and duration, then re-sort the day."""
    slot = day.slot(slot_id)
    start = parse_clock(start_time)
    if slot is None or start is None or duration < 0:
        return False
    slot.start_time = format_clock(start)
    slot.duration = int(duration)
    refresh_end_time(slot)
    sort_slots(day)
    return True


def retime_day(day: DayPlan, pois: Dict[str, POI]) -> bool:
    """Re-time the day so slots follow their current order back to back.

    The first slot keeps its start; each later slot starts when the previous
    one ends plus the walking time between them.
    """
    if not day.slots:
        return False
    recalculate_transport_times(day, pois)
    cursor = clock_minutes(day.slots[0].start_time)
    for slot in day.slots:
        slot.start_time = format_clock(cursor)
        refresh_end_time(slot)
        cursor += slot.duration + slot.transport_time
    return True


# ────────────────────────────────────────────────────────────────────────────────
# Queries
# ────────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class TimeGap:
    """An unscheduled stretch of the day."""

    start: str
    end: str
    duration: int

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end, "duration": self.duration}


def find_time_gaps(day: DayPlan,
                   window_start: str = DAY_WINDOW_START,
                   window_end: str = DAY_WINDOW_END,
                   min_gap: int = MIN_GAP_MINUTES) -> List[TimeGap]:
    """Return the idle stretches of at least *min_gap* minutes in the window.

    An empty day has no gaps. Slots are read in time order whatever their
    position in the day, and overlaps are measured from the latest end seen
    so far.
    """
    if not day.slots:
        return []

    gaps: List[TimeGap] = []
    cursor = clock_minutes(window_start)
    limit = clock_minutes(window_end)

    for slot in sorted(day.slots, key=lambda s: clock_minutes(s.start_time)):
        start = min(clock_minutes(slot.start_time), limit)
        if start - cursor >= min_gap:
            gaps.append(TimeGap(format_clock(cursor), format_clock(start), start - cursor))
        cursor = max(cursor, clock_minutes(slot.start_time) + slot.duration)

    if limit - cursor >= min_gap:
        gaps.append(TimeGap(format_clock(cursor), format_clock(limit), limit - cursor))

    return gaps


__all__ = [
    "TimeGap",
    "parse_clock",
    "format_clock",
    "calculate_end_time",
    "minutes_between",
    "haversine_km",
    "transport_minutes",
    "recalculate_transport_times",
    "restore_order",
    "normalise_day",
    "insert_slot",
    "remove_slot",
    "move_slot",
    "retime_slot",
    "retime_day",
    "find_time_gaps",
]
