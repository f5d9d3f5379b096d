from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from booking_engine.domain.entities.recurrence import RecurrenceSpec


@dataclass(frozen=True)
class BookingRequest:
    """Validated booking payload, ready to send once a notification channel is chosen."""

    service_id: str
    instructor_id: str
    branch_id: str
    starts_at: str
    ends_at: str
    duration_min: int | None
    customer_id: str | None
    customer_name: str
    customer_phone: str
    recurrence: RecurrenceSpec | None = None
    occurrences: tuple[str, ...] = ()

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None


@dataclass(frozen=True)
class CreateOutcome:
    appointment_ids: tuple[str, ...]
    channel: str
    series_id: str | None = None


@dataclass(frozen=True)
class SeriesCreation:
    """Backend answer to a series create. Per-occurrence status is only trusted when reported."""

    ok: bool
    appointment_ids: tuple[str, ...] = ()
    series_id: str | None = None
    conflicts: tuple[str, ...] = ()
    error: str = ""


@dataclass(frozen=True)
class MutationResult:
    ok: bool
    error: str = ""
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RebookResult:
    ok: bool
    cancelled: bool = False
    new_appointment_id: str | None = None
    error: str = ""
