"""Shared validation utilities"""

import re
from datetime import datetime, time
from typing import Any, Optional

_DURATION_RE = re.compile(r"^\s*(\d+)(?:[.,]\d+)?\s*(?:m|min|mins|minutes?)?\s*$", re.IGNORECASE)


def parse_duration_minutes(value: Any) -> Optional[int]:
    """
    Normalize a service duration to whole minutes.

    Services created by older clients store the duration as text ("60",
    "45 min") while newer rows hold an integer. Returns None when the value
    cannot be read as a non-negative number of minutes.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, int):
        return value if value >= 0 else None

    if isinstance(value, float):
        return int(value) if value >= 0 else None

    if isinstance(value, str):
        match = _DURATION_RE.match(value)
        if match:
            return int(match.group(1))

    return None


def parse_wall_clock_time(value: Any) -> time:
    """
    Parse a local wall-clock time.

    Accepts datetime.time, "HH:MM", "HH:MM:SS" and 12h "HH:MM AM/PM".
    Seconds are dropped; appointments are scheduled to the minute.

    Raises:
        ValueError: If the value is not a recognizable time
    """
    if isinstance(value, datetime):
        value = value.time()

    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)

    if not isinstance(value, str) or not value.strip():
        raise ValueError("Time is required")

    time_str = value.strip().upper()

    if time_str.endswith(("AM", "PM")):
        for fmt in ("%I:%M %p", "%I:%M%p"):
            try:
                return datetime.strptime(time_str, fmt).time()
            except ValueError:
                continue
        raise ValueError(f"Invalid time: {value}")

    parts = time_str.split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time: {value}")

    try:
        hour = int(parts[0])
        minute = int(parts[1])
        return time(hour, minute)
    except ValueError as e:
        raise ValueError(f"Invalid time: {value}") from e
