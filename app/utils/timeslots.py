from typing import List, Optional

from app.schemas.timetable import TimeValidation

DAY_START_HOUR = 8
DAY_END_HOUR = 18
ALLOWED_DURATIONS = (60, 120)

MSG_REQUIRED = "Start and end times are required"
MSG_START_ON_HOUR = "Start time must be on the hour (e.g., 9:00, 10:00)"
MSG_END_ON_HOUR = "End time must be on the hour (e.g., 9:00, 10:00)"
MSG_START_RANGE = "Start time must be between 8:00 AM and 5:00 PM"
MSG_END_RANGE = "End time must be between 9:00 AM and 6:00 PM"
MSG_END_AFTER_START = "End time must be after start time"
MSG_DURATION = "Class duration must be exactly 1 or 2 hours (e.g., 9:00-10:00 or 9:00-11:00)"


def parse_time(value: Optional[str]) -> Optional[tuple]:
    """
    "09:00" -> (9, 0), "9:30" -> (9, 30)
    Anything that is not H:MM / HH:MM gives None.
    """
    if not value:
        return None
    parts = value.strip().split(":")
    if len(parts) != 2:
        return None
    try:
        hours = int(parts[0])
        minutes = int(parts[1])
    except ValueError:
        return None
    if hours < 0 or not 0 <= minutes < 60:
        return None
    return hours, minutes


def to_minutes(value: Optional[str]) -> int:
    """Minutes since midnight; missing or unreadable times count as 0."""
    parsed = parse_time(value)
    if parsed is None:
        return 0
    return parsed[0] * 60 + parsed[1]


def is_whole_hour(value: Optional[str]) -> bool:
    parsed = parse_time(value)
    return parsed is not None and parsed[1] == 0


def format_hour(hour: int) -> str:
    return f"{hour:02d}:00"


def whole_hour_slots() -> List[str]:
    # start times offered by the pickers: 08:00 .. 17:00
    return [format_hour(h) for h in range(DAY_START_HOUR, DAY_END_HOUR)]


def validate_time_range(start_time: Optional[str], end_time: Optional[str]) -> TimeValidation:
    if not start_time or not end_time:
        return TimeValidation(valid=False, message=MSG_REQUIRED)

    if not is_whole_hour(start_time):
        return TimeValidation(valid=False, message=MSG_START_ON_HOUR)
    if not is_whole_hour(end_time):
        return TimeValidation(valid=False, message=MSG_END_ON_HOUR)

    start_hour = parse_time(start_time)[0]
    end_hour = parse_time(end_time)[0]

    if start_hour < DAY_START_HOUR or start_hour >= DAY_END_HOUR:
        return TimeValidation(valid=False, message=MSG_START_RANGE)
    if end_hour < DAY_START_HOUR + 1 or end_hour > DAY_END_HOUR:
        return TimeValidation(valid=False, message=MSG_END_RANGE)

    start = to_minutes(start_time)
    end = to_minutes(end_time)
    if end <= start:
        return TimeValidation(valid=False, message=MSG_END_AFTER_START)

    if end - start not in ALLOWED_DURATIONS:
        return TimeValidation(valid=False, message=MSG_DURATION)

    return TimeValidation(valid=True)
