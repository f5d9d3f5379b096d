from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Callable
from zoneinfo import ZoneInfo

from booking_engine.application.exceptions import BackendError
from booking_engine.application.ports.booking_backend import BookingBackendPort
from booking_engine.application.utils.time_normalizer import is_in_future, local_now, normalize_timestamp
from booking_engine.domain.entities.availability import AvailabilityResult, RawAvailability, SlotView

PAST_DATE_ERROR = "⚠️ No podés buscar horarios para fechas pasadas"
NO_AVAILABILITY_ERROR = "No hay horarios disponibles"


class AvailabilityFetcher:
    """
    Loads free and busy slots for a (service, instructor, date) triple.

    Only the most recent request may write the result: issuing a new load aborts
    the in-flight one, and an aborted request is not an error.
    """

    def __init__(
        self,
        backend: BookingBackendPort,
        timezone: ZoneInfo,
        step_minutes: int = 20,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._backend = backend
        self._timezone = timezone
        self._step_minutes = step_minutes
        self._now = now or (lambda: local_now(timezone))
        self._result = AvailabilityResult()
        self._inflight: asyncio.Task[RawAvailability] | None = None
        self._generation = 0
        self._logger = logging.getLogger(__name__)

    @property
    def result(self) -> AvailabilityResult:
        return self._result

    @property
    def is_loading(self) -> bool:
        return self._result.loading

    async def load(self, service_id: str, instructor_id: str, day: date | None) -> AvailabilityResult:
        self._abort_inflight()
        self._generation += 1
        generation = self._generation

        if not service_id or not instructor_id or day is None:
            self._result = AvailabilityResult()
            return self._result

        now = self._now()
        if day < now.date():
            self._result = AvailabilityResult(error=PAST_DATE_ERROR)
            return self._result

        self._result = replace(self._result, loading=True, error="")
        task = asyncio.ensure_future(
            self._backend.get_availability(service_id, instructor_id, day, self._step_minutes)
        )
        self._inflight = task

        try:
            raw = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                # aborted by a newer load or by cancel(): discard silently
                return self._result
            self._finish(generation, replace(self._result, loading=False))
            raise
        except BackendError as e:
            self._logger.warning(
                "Availability request failed",
                extra={"service_id": service_id, "instructor_id": instructor_id, "date": day.isoformat(), "error": str(e)},
            )
            self._finish(generation, AvailabilityResult(error=str(e)))
            return self._result

        if generation != self._generation:
            return self._result

        slots = self._normalize(raw.slots, day)
        busy = frozenset(self._normalize(raw.busy_slots, day))
        self._finish(
            generation,
            AvailabilityResult(
                slots=tuple(slots),
                busy_slots=busy,
                loading=False,
                error="" if slots else NO_AVAILABILITY_ERROR,
            ),
        )
        self._logger.info(
            "Availability loaded",
            extra={"service_id": service_id, "instructor_id": instructor_id, "date": day.isoformat()},
        )
        return self._result

    def cancel(self) -> None:
        """Abort the in-flight request. Leaves ``error`` untouched."""
        if self._abort_inflight():
            self._generation += 1
            self._result = replace(self._result, loading=False)

    def clear(self) -> None:
        self.cancel()
        self._result = AvailabilityResult()

    def slot_grid(self, selected: str = "") -> list[SlotView]:
        """Free slots and busy slots of the current result, in time order, with their visual state."""
        result = self._result
        views: list[SlotView] = []
        for slot in sorted(set(result.slots) | result.busy_slots):
            if slot == selected:
                state = "selected"
            elif slot in result.busy_slots:
                state = "busy"
            else:
                state = "free"
            views.append(SlotView(slot=slot, label=slot[11:16], state=state))
        return views

    def _normalize(self, values: list[object], day: date) -> list[str]:
        now = self._now()
        normalized: list[str] = []
        seen: set[str] = set()
        for value in values or []:
            canonical = normalize_timestamp(value, reference_date=day, timezone=self._timezone)
            if not canonical or canonical in seen or not is_in_future(canonical, now):
                continue
            seen.add(canonical)
            normalized.append(canonical)
        return normalized

    def _abort_inflight(self) -> bool:
        task = self._inflight
        self._inflight = None
        if task is not None and not task.done():
            task.cancel()
            return True
        return False

    def _finish(self, generation: int, result: AvailabilityResult) -> None:
        if generation != self._generation:
            return
        self._inflight = None
        self._result = result
