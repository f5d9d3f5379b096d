from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class DateRange:
    from_iso: str
    to_iso: str


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    title: str
    start: str
    end: str
    color_hex: str | None = None
    event_type: str = "appointment"  # "appointment" or "class_session"
    extended_props: dict[str, Any] = field(default_factory=dict, compare=False)
