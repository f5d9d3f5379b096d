from __future__ import annotations

from dataclasses import dataclass
from datetime import date

REPEAT_MIN_COUNT = 2
REPEAT_MAX_COUNT = 26
REPEAT_DEFAULT_COUNT = 4


def clamp_repeat_count(value: int) -> int:
    return max(REPEAT_MIN_COUNT, min(REPEAT_MAX_COUNT, int(value)))


@dataclass(frozen=True)
class BookingDraft:
    service_id: str = ""
    instructor_id: str = ""
    branch_id: str = ""
    date: date | None = None
    selected_slot: str = ""  # canonical "YYYY-MM-DD HH:MM:SS" or ""
    customer_id: str | None = None  # set only while linked to an existing customer record
    customer_name: str = ""
    customer_phone: str = ""
    repeat_enabled: bool = False
    repeat_count: int | None = None  # 2..26, ignored when repeat_until is set
    repeat_until: date | None = None
