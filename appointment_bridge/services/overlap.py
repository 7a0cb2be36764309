"""
Time-overlap engine.

Pure functions only: no I/O, inputs are never mutated, and results do not
depend on the order of the existing slots.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, List

from appointment_bridge.core.timeutils import ensure_utc
from appointment_bridge.schemas.appointment import AppointmentTimeSlot, TimeWindow
from appointment_bridge.schemas.availability import (
    OverlapConflict,
    OverlapResult,
    OverlapType,
)


def time_slots_overlap(
    start1: datetime,
    end1: datetime,
    start2: datetime,
    end2: datetime,
) -> bool:
    """
    Strict interval intersection; touching boundaries do not overlap.
    """
    return ensure_utc(start1) < ensure_utc(end2) and ensure_utc(end1) > ensure_utc(start2)


def _classify(
    existing_start: datetime,
    existing_end: datetime,
    buffered_start: datetime,
    buffered_end: datetime,
    buffer: timedelta,
) -> OverlapType:
    """
    Rules (first match wins)
    ------------------------
    1) FULL      if either interval contains the other.
    2) ADJACENT  if the smaller boundary distance is within the buffer and > 0.
    3) PARTIAL   otherwise.
    """
    if existing_start <= buffered_start and existing_end >= buffered_end:
        return OverlapType.FULL
    if buffered_start <= existing_start and buffered_end >= existing_end:
        return OverlapType.FULL

    gap = min(
        abs(existing_start - buffered_end),
        abs(existing_end - buffered_start),
    )
    if timedelta(0) < gap <= buffer:
        return OverlapType.ADJACENT
    return OverlapType.PARTIAL


def _sort_key(conflict: OverlapConflict):
    slot = conflict.slot
    return (slot.start_time, slot.end_time, slot.id or "", slot.resource_id or "")


def detect_overlaps(
    existing: Iterable[AppointmentTimeSlot],
    candidate_start: datetime,
    candidate_end: datetime,
    buffer_minutes: int = 0,
) -> OverlapResult:
    """
    Report every existing slot that collides with the candidate interval.

    The candidate is widened by `buffer_minutes` on both ends, then a slot
    conflicts iff `slot.start < buffered_end and slot.end > buffered_start`.
    With `buffer_minutes == 0` adjacency can never be reported.

    Conflicts come back sorted by (start, end, id) so the output is the
    same for any permutation of `existing`.
    """
    buffer = timedelta(minutes=max(buffer_minutes, 0))
    buffered_start = ensure_utc(candidate_start) - buffer
    buffered_end = ensure_utc(candidate_end) + buffer

    conflicts: List[OverlapConflict] = []
    for slot in existing:
        slot_start = ensure_utc(slot.start_time)
        slot_end = ensure_utc(slot.end_time)

        if not (slot_start < buffered_end and slot_end > buffered_start):
            continue

        conflicts.append(
            OverlapConflict(
                slot=slot,
                overlap_type=_classify(slot_start, slot_end, buffered_start, buffered_end, buffer),
                overlap_start=max(slot_start, buffered_start),
                overlap_end=min(slot_end, buffered_end),
            )
        )

    conflicts.sort(key=_sort_key)
    return OverlapResult(has_conflict=bool(conflicts), conflicts=conflicts)


def find_available_slots(
    existing: Iterable[AppointmentTimeSlot],
    range_start: datetime,
    range_end: datetime,
    slot_duration_minutes: int,
    buffer_minutes: int = 0,
) -> List[TimeWindow]:
    """
    Greedily fill the gaps between bookings with back-to-back slots.

    Slots are `slot_duration_minutes` long and separated from each other and
    from neighbouring bookings by `buffer_minutes`. Every returned window
    lies inside [range_start, range_end], and none of them conflicts with
    `existing` under `detect_overlaps` with the same buffer.
    """
    if slot_duration_minutes <= 0:
        raise ValueError("slot_duration_minutes must be positive")

    duration = timedelta(minutes=slot_duration_minutes)
    buffer = timedelta(minutes=max(buffer_minutes, 0))
    start = ensure_utc(range_start)
    end = ensure_utc(range_end)

    bookings = sorted(
        existing,
        key=lambda s: (ensure_utc(s.start_time), ensure_utc(s.end_time)),
    )

    slots: List[TimeWindow] = []
    cursor = start

    for booking in bookings:
        booking_start = ensure_utc(booking.start_time)
        booking_end = ensure_utc(booking.end_time)

        limit = min(booking_start - buffer, end)
        while cursor + duration <= limit:
            slots.append(TimeWindow(start=cursor, end=cursor + duration))
            cursor = cursor + duration + buffer

        cursor = max(cursor, booking_end + buffer)

    while cursor + duration <= end:
        slots.append(TimeWindow(start=cursor, end=cursor + duration))
        cursor = cursor + duration + buffer

    return slots
