from __future__ import annotations

from datetime import timedelta

from booking_engine.application.utils.time_normalizer import format_canonical, parse_canonical
from booking_engine.domain.entities.booking_draft import (
    REPEAT_DEFAULT_COUNT,
    REPEAT_MAX_COUNT,
    BookingDraft,
    clamp_repeat_count,
)
from booking_engine.domain.entities.recurrence import RecurrenceSpec

WEEKLY_INTERVAL_DAYS = 7


def derive_recurrence_spec(draft: BookingDraft, anchor_slot: str) -> RecurrenceSpec | None:
    """Build the weekly recurrence for a draft, or None when repetition is off."""
    if not draft.repeat_enabled:
        return None
    if draft.repeat_until is not None:
        return RecurrenceSpec(
            anchor_slot=anchor_slot,
            interval_days=WEEKLY_INTERVAL_DAYS,
            occurrence_count=None,
            until_date=draft.repeat_until,
        )
    count = draft.repeat_count if draft.repeat_count is not None else REPEAT_DEFAULT_COUNT
    return RecurrenceSpec(
        anchor_slot=anchor_slot,
        interval_days=WEEKLY_INTERVAL_DAYS,
        occurrence_count=clamp_repeat_count(count),
        until_date=None,
    )


def generate_occurrences(spec: RecurrenceSpec) -> list[str]:
    """
    Weekly instants starting at the anchor, all sharing its time of day.
    Stops at the occurrence count, or after the last instant on or before the until date.
    An until date never yields more than REPEAT_MAX_COUNT instants.
    """
    anchor = parse_canonical(spec.anchor_slot)
    if anchor is None:
        return []

    step = timedelta(days=spec.interval_days)
    occurrences: list[str] = []
    current = anchor

    if spec.until_date is not None:
        while current.date() <= spec.until_date and len(occurrences) < REPEAT_MAX_COUNT:
            occurrences.append(format_canonical(current))
            current += step
        return occurrences

    count = clamp_repeat_count(spec.occurrence_count or REPEAT_DEFAULT_COUNT)
    for _ in range(count):
        occurrences.append(format_canonical(current))
        current += step
    return occurrences
