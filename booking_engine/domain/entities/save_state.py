from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BookingSaveState:
    saving: bool = False
    ok: bool = False
    error: str = ""

    @property
    def status(self) -> str:
        if self.saving:
            return "saving"
        if self.ok:
            return "ok"
        if self.error:
            return "error"
        return "idle"
