"""
Operating hours for locations and staff

Weekly schedules are JSON maps keyed by weekday ("0" = Sunday ... "6" = Saturday):

    {"1": {"enabled": true, "blocks": [{"start": "09:00", "end": "13:00"},
                                       {"start": "14:00", "end": "18:00"}]}}

Staff schedules hold one such map per location id. Times are wall-clock
times at the location.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..shared.validators import validate_hhmm

logger = logging.getLogger(__name__)

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
DEFAULT_TIMEZONE = "America/Caracas"


class HoursValidationError(ValueError):
    """A weekly schedule or an appointment does not fit the configured hours"""


def to_minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def weekday_index(value: date) -> int:
    """Weekday with Sunday = 0"""
    return (value.weekday() + 1) % 7


def get_day(schedule: Optional[dict], day: int) -> Optional[dict]:
    if not schedule:
        return None
    return schedule.get(str(day)) or schedule.get(day)


def day_blocks(day_schedule: Optional[dict]) -> list[tuple[int, int]]:
    """Enabled blocks of a day as (start, end) minute pairs, sorted"""
    if not day_schedule or not day_schedule.get("enabled"):
        return []
    return sorted(
        (to_minutes(block["start"]), to_minutes(block["end"]))
        for block in day_schedule.get("blocks") or []
    )


# ============================================================================
# SCHEDULE VALIDATION
# ============================================================================


def validate_day_blocks(blocks: Iterable[Any], day: int) -> list[tuple[int, int]]:
    """
    Check the blocks of one day.

    Each block needs HH:MM start/end with start < end. Blocks may touch
    but not overlap.

    Returns:
        The blocks as sorted (start, end) minute pairs
    """
    day_name = DAY_NAMES[day]
    parsed = []
    for block in blocks or []:
        if not isinstance(block, dict):
            raise HoursValidationError(f"{day_name}: each block must have start and end")
        try:
            start = to_minutes(validate_hhmm(block.get("start")))
            end = to_minutes(validate_hhmm(block.get("end")))
        except ValueError as e:
            raise HoursValidationError(f"{day_name}: {e}") from e
        if start >= end:
            raise HoursValidationError(
                f"{day_name}: block {block['start']}-{block['end']} must start before it ends"
            )
        parsed.append((start, end))

    parsed.sort()
    for (_, previous_end), (next_start, _) in zip(parsed, parsed[1:]):
        if next_start < previous_end:
            raise HoursValidationError(f"{day_name}: time blocks cannot overlap")
    return parsed


def validate_weekly_schedule(schedule: Optional[dict]) -> dict:
    """Validate a {"0".."6": {enabled, blocks}} map. Returns it with string keys."""
    if schedule is None:
        return {}
    if not isinstance(schedule, dict):
        raise HoursValidationError("Schedule must be an object keyed by weekday")

    normalized = {}
    for key, day_schedule in schedule.items():
        try:
            day = int(key)
        except (TypeError, ValueError) as e:
            raise HoursValidationError(f"Invalid weekday key: {key!r}") from e
        if day < 0 or day > 6:
            raise HoursValidationError(f"Invalid weekday key: {key!r}")
        if not isinstance(day_schedule, dict):
            raise HoursValidationError(f"{DAY_NAMES[day]}: schedule must be an object")
        validate_day_blocks(day_schedule.get("blocks"), day)
        normalized[str(day)] = {
            "enabled": bool(day_schedule.get("enabled")),
            "blocks": list(day_schedule.get("blocks") or []),
        }
    return normalized


def validate_staff_schedules(
    schedules_by_location: Optional[dict], location_hours: dict[str, dict]
) -> dict:
    """
    Validate a staff member's per-location schedules.

    Every enabled staff block must sit inside one block of the location on
    the same weekday, and the location must be open that day.

    Args:
        schedules_by_location: {locationId: weekly schedule}
        location_hours: {locationId: the location's operating_hours}
    """
    if not schedules_by_location:
        return {}
    if not isinstance(schedules_by_location, dict):
        raise HoursValidationError("schedulesByLocation must be an object keyed by location id")

    normalized = {}
    for location_id, schedule in schedules_by_location.items():
        if location_id not in location_hours:
            raise HoursValidationError(f"Unknown location in schedule: {location_id}")
        normalized_schedule = validate_weekly_schedule(schedule)
        operating_hours = location_hours[location_id] or {}

        for key, day_schedule in normalized_schedule.items():
            day = int(key)
            if not day_schedule["enabled"]:
                continue
            location_day = get_day(operating_hours, day)
            if not location_day or not location_day.get("enabled"):
                raise HoursValidationError(
                    f"{DAY_NAMES[day]}: the location is closed on this day"
                )
            location_blocks = day_blocks(location_day)
            for start, end in day_blocks(day_schedule):
                if not any(b_start <= start and end <= b_end for b_start, b_end in location_blocks):
                    raise HoursValidationError(
                        f"{DAY_NAMES[day]}: staff hours must be within location operating hours"
                    )
        normalized[location_id] = normalized_schedule
    return normalized


# ============================================================================
# APPOINTMENT CHECKS
# ============================================================================


def location_zone(timezone_name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(timezone_name or DEFAULT_TIMEZONE)
    except ZoneInfoNotFoundError:
        logger.warning(f"⚠️ Unknown timezone {timezone_name!r}, using {DEFAULT_TIMEZONE}")
        return ZoneInfo(DEFAULT_TIMEZONE)


def to_location_time(value: datetime, timezone_name: Optional[str]) -> datetime:
    """Naive datetimes are already wall-clock time at the location"""
    if value.tzinfo is None:
        return value
    return value.astimezone(location_zone(timezone_name)).replace(tzinfo=None)


def location_now(timezone_name: Optional[str]) -> datetime:
    """Current wall-clock time at the location"""
    return datetime.now(location_zone(timezone_name)).replace(tzinfo=None)


def _minutes_since(day_start: datetime, value: datetime) -> int:
    return int((value - day_start).total_seconds() // 60)


def check_appointment_hours(
    operating_hours: Optional[dict],
    staff_schedules: Optional[dict],
    location_id: str,
    start: datetime,
    end: datetime,
) -> Optional[str]:
    """
    Return the reason an appointment does not fit the schedules, or None.

    start and end are wall-clock times at the location.
    """
    day = weekday_index(start)
    location_day = get_day(operating_hours, day)
    if not location_day or not location_day.get("enabled"):
        return f"This location is closed on {DAY_NAMES[day]}"

    day_start = datetime.combine(start.date(), time.min)
    start_minutes = _minutes_since(day_start, start)
    end_minutes = _minutes_since(day_start, end)

    def fits(blocks: list[tuple[int, int]]) -> bool:
        return any(b_start <= start_minutes and end_minutes <= b_end for b_start, b_end in blocks)

    if not fits(day_blocks(location_day)):
        return "Appointment time is outside location operating hours"

    staff_schedule = (staff_schedules or {}).get(location_id)
    if not staff_schedule:
        return "Staff member does not work at this location"

    staff_day = get_day(staff_schedule, day)
    if not staff_day or not staff_day.get("enabled"):
        return "Staff member does not work on this day at this location"

    if not fits(day_blocks(staff_day)):
        return "Staff member is not available at this time. Check their schedule."

    return None


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end


# ============================================================================
# SLOT GENERATION
# ============================================================================


def intersect_blocks(
    first: list[tuple[int, int]], second: list[tuple[int, int]]
) -> list[tuple[int, int]]:
    result = []
    for a_start, a_end in first:
        for b_start, b_end in second:
            start, end = max(a_start, b_start), min(a_end, b_end)
            if start < end:
                result.append((start, end))
    return sorted(result)


def generate_slots(
    operating_hours: Optional[dict],
    staff_schedule: Optional[dict],
    day: date,
    duration_minutes: int,
    busy: Iterable[tuple[datetime, datetime]] = (),
    buffer_minutes: int = 0,
    slot_minutes: int = 30,
    now: Optional[datetime] = None,
) -> list[dict]:
    """
    Free appointment slots for one staff member at one location on a day.

    Slots start every slot_minutes inside the intersection of location and
    staff blocks and last duration_minutes. A busy interval blocks its own
    span plus buffer_minutes after it. Slots starting before now are dropped.

    Returns:
        [{"start": datetime, "end": datetime}] in wall-clock time
    """
    if duration_minutes <= 0 or slot_minutes <= 0:
        return []

    weekday = weekday_index(day)
    windows = intersect_blocks(
        day_blocks(get_day(operating_hours, weekday)),
        day_blocks(get_day(staff_schedule, weekday)),
    )
    blocked = [(start, end + timedelta(minutes=buffer_minutes)) for start, end in busy]
    day_start = datetime.combine(day, time.min)

    slots = []
    for window_start, window_end in windows:
        cursor = window_start
        while cursor + duration_minutes <= window_end:
            slot_start = day_start + timedelta(minutes=cursor)
            slot_end = slot_start + timedelta(minutes=duration_minutes)
            is_past = now is not None and slot_start < now
            is_busy = any(intervals_overlap(slot_start, slot_end, b_start, b_end) for b_start, b_end in blocked)
            if not is_past and not is_busy:
                slots.append({"start": slot_start, "end": slot_end})
            cursor += slot_minutes
    return slots
