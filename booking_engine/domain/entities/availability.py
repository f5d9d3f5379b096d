from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RawAvailability:
    """Slots exactly as the backend returned them: bare HH:MM tokens, naive or zoned strings."""

    slots: list[object] = field(default_factory=list)
    busy_slots: list[object] = field(default_factory=list)


@dataclass(frozen=True)
class AvailabilityResult:
    slots: tuple[str, ...] = ()
    busy_slots: frozenset[str] = frozenset()
    loading: bool = False
    error: str = ""


@dataclass(frozen=True)
class SlotView:
    slot: str
    label: str  # "HH:MM"
    state: str  # "free", "busy", "selected"
