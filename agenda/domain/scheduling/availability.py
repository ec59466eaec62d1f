"""Free slot generation over business hours"""

from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, Optional

from .overlap import SlotCandidate, has_conflict

DEFAULT_BUSINESS_HOURS = {
    "monday": {"start": "09:00", "end": "18:00", "enabled": True},
    "tuesday": {"start": "09:00", "end": "18:00", "enabled": True},
    "wednesday": {"start": "09:00", "end": "18:00", "enabled": True},
    "thursday": {"start": "09:00", "end": "18:00", "enabled": True},
    "friday": {"start": "09:00", "end": "18:00", "enabled": True},
    "saturday": {"start": "09:00", "end": "14:00", "enabled": False},
    "sunday": {"start": "09:00", "end": "14:00", "enabled": False},
}

DAYS_OF_WEEK = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def generate_time_slots(open_at: time, close_at: time, duration_minutes: int, interval_minutes: int = 30) -> list[time]:
    """Every interval_minutes from opening while the service still ends by closing"""
    anchor = date(2000, 1, 1)
    current = datetime.combine(anchor, open_at)
    end = datetime.combine(anchor, close_at)
    step = timedelta(minutes=interval_minutes)
    length = timedelta(minutes=duration_minutes)

    slots = []
    while current + length <= end:
        slots.append(current.time())
        current += step
    return slots


def available_slots(
    day: date,
    existing: Iterable[Any],
    duration_minutes: int,
    business_hours: Optional[dict] = None,
    interval_minutes: int = 30,
) -> list[str]:
    """HH:MM start times on `day` that fit inside business hours without a conflict"""
    if interval_minutes <= 0:
        raise ValueError("interval_minutes must be positive")
    hours = (business_hours or DEFAULT_BUSINESS_HOURS)[DAYS_OF_WEEK[day.weekday()]]
    if not hours.get("enabled"):
        return []

    existing = list(existing)
    open_at = time.fromisoformat(hours["start"])
    close_at = time.fromisoformat(hours["end"])

    free = []
    for slot in generate_time_slots(open_at, close_at, duration_minutes, interval_minutes):
        if not has_conflict(SlotCandidate(day, slot, duration_minutes), existing):
            free.append(slot.strftime("%H:%M"))
    return free
