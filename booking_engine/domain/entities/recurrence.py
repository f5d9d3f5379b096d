from __future__ import annotations

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class RecurrenceSpec:
    anchor_slot: str
    interval_days: int = 7
    occurrence_count: int | None = None
    until_date: date | None = None  # takes precedence over occurrence_count
