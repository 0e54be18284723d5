"""
VetPintar Backend — Appointment Overlap Detection
===================================================

What:  Pure functions deciding whether a proposed appointment collides with
       a veterinarian's existing appointments on the same day.
Who:   AppointmentService.create_appointment / update_appointment.

Algorithm:
    1. Convert "HH:MM" to minutes since midnight
    2. end = start + duration
    3. Two intervals overlap iff  start_a < end_b  AND  start_b < end_a
       (touching intervals, e.g. 09:00-09:30 and 09:30-10:00, do not overlap)
    4. Ignore appointments that are CANCELLED or NO_SHOW
    5. Ignore the appointment being edited (exclude_id)

The caller has already narrowed `existing` to one veterinarian and one date.
"""

import uuid
from typing import Iterable, List, Optional, Protocol

from vetpintar.models.enums import AppointmentStatus

# Statuses that free the slot they occupied
NON_BLOCKING_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW})


class ScheduledSlot(Protocol):
    id: uuid.UUID
    appointment_time: str
    duration: int
    status: AppointmentStatus


def time_to_minutes(value: str) -> int:
    """
    "09:30" → 570

    Raises:
        ValueError: not an "H:MM"/"HH:MM" time between 00:00 and 23:59
    """
    try:
        hours_str, minutes_str = value.strip().split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid time '{value}'. Expected HH:MM")
    if len(minutes_str) != 2 or not 0 <= hours <= 23 or not 0 <= minutes <= 59:
        raise ValueError(f"Invalid time '{value}'. Expected HH:MM")
    return hours * 60 + minutes


def normalize_time(value: str) -> str:
    """"9:05" → "09:05". Stored times are zero-padded so they sort as strings."""
    minutes = time_to_minutes(value)
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def intervals_overlap(start_a: int, duration_a: int, start_b: int, duration_b: int) -> bool:
    return start_a < start_b + duration_b and start_b < start_a + duration_a


def find_conflicts(
    appointment_time: str,
    duration: int,
    existing: Iterable[ScheduledSlot],
    exclude_id: Optional[uuid.UUID] = None,
) -> List[ScheduledSlot]:
    """Returns the blocking appointments in `existing` that overlap the proposed slot."""
    start = time_to_minutes(appointment_time)
    conflicts = []
    for other in existing:
        if exclude_id is not None and other.id == exclude_id:
            continue
        if other.status in NON_BLOCKING_STATUSES:
            continue
        if intervals_overlap(start, duration, time_to_minutes(other.appointment_time), other.duration):
            conflicts.append(other)
    return conflicts
