"""Appointment overlap detection

Intervals are half-open: [start, start + duration). An appointment ending at
10:00 does not clash with one starting at 10:00. All times are naive wall-clock
values in the practitioner's timezone; no conversion happens here.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, Optional

from ...shared.validators import parse_duration_minutes, parse_wall_clock_time


@dataclass(frozen=True)
class SlotCandidate:
    date: date
    time: time
    duration_minutes: int


def combine(day: date, at: Any) -> datetime:
    """Combine a calendar date with a wall-clock time"""
    return datetime.combine(day, parse_wall_clock_time(at))


def appointment_interval(day: date, at: Any, duration_minutes: int) -> tuple[datetime, datetime]:
    start = combine(day, at)
    return start, start + timedelta(minutes=duration_minutes)


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end


def resolved_duration(appointment: Any) -> Optional[int]:
    """Duration of an existing appointment's service, None when the service is gone"""
    service = getattr(appointment, "service_details", None)
    if service is None:
        return None
    return parse_duration_minutes(getattr(service, "duration", None))


def find_conflicts(
    candidate: SlotCandidate,
    existing: Iterable[Any],
    exclude_id: Optional[str] = None,
) -> list:
    """Return the existing appointments whose interval intersects the candidate's"""
    start, end = appointment_interval(candidate.date, candidate.time, candidate.duration_minutes)
    conflicts = []

    for appointment in existing:
        if appointment.date != candidate.date:
            continue
        if exclude_id is not None and appointment.id == exclude_id:
            continue

        duration = resolved_duration(appointment)
        if duration is None:
            # Deleted service - nothing to compare against
            continue

        existing_start, existing_end = appointment_interval(appointment.date, appointment.time, duration)
        if intervals_overlap(start, end, existing_start, existing_end):
            conflicts.append(appointment)

    return conflicts


def has_conflict(
    candidate: SlotCandidate,
    existing: Iterable[Any],
    exclude_id: Optional[str] = None,
) -> bool:
    return bool(find_conflicts(candidate, existing, exclude_id))
