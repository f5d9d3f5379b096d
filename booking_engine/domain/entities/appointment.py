from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Appointment:
    """Canonical appointment record. Backend field aliases are resolved before this is built."""

    id: str
    starts_at: str
    ends_at: str
    customer_name: str | None = None
    customer_phone: str | None = None
    customer_id: str | None = None
    service_id: str | None = None
    service_name: str | None = None
    instructor_id: str | None = None
    instructor_name: str | None = None
    branch_id: str | None = None
    status: str = "scheduled"  # "scheduled", "confirmed", "pending_deposit", "deposit_paid", "completed", "cancelled"
    color_hex: str | None = None
    series_id: str | None = None
    payment_id: str | None = None
    payment_status: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class ClassSession:
    id: str
    starts_at: str
    ends_at: str
    activity_type: str | None = None
    instructor_id: str | None = None
    instructor_name: str | None = None
    status: str = "scheduled"
    enrolled_count: int = 0
    capacity_max: int | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)
