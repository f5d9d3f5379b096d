from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

from booking_engine.application.exceptions import BackendError
from booking_engine.application.ports.booking_backend import BookingBackendPort
from booking_engine.application.utils.time_normalizer import normalize_timestamp
from booking_engine.domain.entities.appointment import Appointment, ClassSession
from booking_engine.domain.entities.calendar_event import CalendarEvent, DateRange

CLASS_SESSION_COLOR = "#7c3aed"


def default_range(timezone: ZoneInfo, days: int = 30) -> DateRange:
    """From today's midnight to ``days`` days later, as zoned ISO strings."""
    start = datetime.combine(datetime.now(timezone).date(), time.min, tzinfo=timezone)
    end = start + timedelta(days=days)
    return DateRange(from_iso=start.isoformat(), to_iso=end.isoformat())


class CalendarSyncController:
    """
    Owns the visible calendar events for a date range.

    Reloads come from range changes, the poll timer, and explicit requests after
    mutations. A superseded fetch is not cancelled; its result is dropped unless it
    belongs to the latest issued sequence.
    """

    def __init__(
        self,
        backend: BookingBackendPort,
        timezone: ZoneInfo,
        poll_interval: float = 15.0,
        range_debounce: float = 0.15,
        classes_enabled: bool = False,
        initial_range: DateRange | None = None,
    ) -> None:
        self._backend = backend
        self._timezone = timezone
        self._poll_interval = poll_interval
        self._range_debounce = range_debounce
        self._classes_enabled = classes_enabled
        self._range = initial_range or default_range(timezone)
        self._events: tuple[CalendarEvent, ...] = ()
        self._state = "idle"  # "idle", "loading", "loaded", "error"
        self._error = ""
        self._sequence = 0
        self._poll_task: asyncio.Task[None] | None = None
        self._debounce_task: asyncio.Task[None] | None = None
        self._logger = logging.getLogger(__name__)

    @property
    def events(self) -> tuple[CalendarEvent, ...]:
        return self._events

    @property
    def state(self) -> str:
        return self._state

    @property
    def error(self) -> str:
        return self._error

    @property
    def date_range(self) -> DateRange:
        return self._range

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def events_for_instructor(self, instructor_id: str | None) -> list[CalendarEvent]:
        if not instructor_id:
            return list(self._events)
        return [
            event
            for event in self._events
            if str(event.extended_props.get("instructor_id") or "") == str(instructor_id)
        ]

    def set_range(self, date_range: DateRange) -> bool:
        """Switch the visible range. The poll timer keeps its cadence. Returns False if unchanged."""
        if date_range == self._range:
            return False
        self._range = date_range
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = asyncio.ensure_future(self._debounced_reload())
        return True

    async def reload(self) -> None:
        self._sequence += 1
        sequence = self._sequence
        date_range = self._range
        self._state = "loading"
        self._error = ""

        try:
            appointments = await self._backend.list_appointments(date_range.from_iso, date_range.to_iso)
            sessions: list[ClassSession] = []
            if self._classes_enabled:
                sessions = await self._backend.list_class_sessions(date_range.from_iso, date_range.to_iso)
        except BackendError as e:
            if sequence != self._sequence:
                return
            self._logger.warning("Calendar reload failed", extra={"sequence": sequence, "error": str(e)})
            self._events = ()
            self._error = str(e)
            self._state = "error"
            return

        if sequence != self._sequence:
            self._logger.debug("Discarding superseded calendar fetch", extra={"sequence": sequence})
            return

        events = [self._appointment_event(a) for a in appointments]
        events += [self._class_event(s) for s in sessions]
        events.sort(key=lambda e: e.start)
        self._events = tuple(events)
        self._state = "loaded"

    def start(self) -> None:
        """Start the poll timer. The first fetch runs immediately."""
        if self.is_polling:
            return
        self._poll_task = asyncio.ensure_future(self._poll())
        self._logger.info("Calendar polling started", extra={"interval": self._poll_interval})

    async def stop(self) -> None:
        tasks = [t for t in (self._poll_task, self._debounce_task) if t is not None and not t.done()]
        self._poll_task = None
        self._debounce_task = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            self._logger.info("Calendar polling stopped")

    async def __aenter__(self) -> "CalendarSyncController":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def _poll(self) -> None:
        while True:
            try:
                await self.reload()
            except Exception as e:
                self._logger.exception("Calendar poll failed", extra={"error": str(e)})
            await asyncio.sleep(self._poll_interval)

    async def _debounced_reload(self) -> None:
        await asyncio.sleep(self._range_debounce)
        await self.reload()

    def _appointment_event(self, appointment: Appointment) -> CalendarEvent:
        props = dict(appointment.raw) if appointment.raw else asdict(appointment)
        props.pop("raw", None)
        props.setdefault("instructor_id", appointment.instructor_id)
        props["event_type"] = "appointment"
        return CalendarEvent(
            id=str(appointment.id),
            title=f"{appointment.customer_name or 'Cliente'} • {appointment.service_name or 'Servicio'}",
            start=normalize_timestamp(appointment.starts_at, timezone=self._timezone),
            end=normalize_timestamp(appointment.ends_at, timezone=self._timezone),
            color_hex=appointment.color_hex or None,
            event_type="appointment",
            extended_props=props,
        )

    def _class_event(self, session: ClassSession) -> CalendarEvent:
        props = dict(session.raw) if session.raw else asdict(session)
        props.pop("raw", None)
        props.update(
            event_type="class_session",
            session_id=session.id,
            instructor_id=session.instructor_id,
            enrolled_count=session.enrolled_count,
            capacity_max=session.capacity_max,
        )
        return CalendarEvent(
            id=f"class-{session.id}",
            title=session.activity_type or "Clase",
            start=normalize_timestamp(session.starts_at, timezone=self._timezone),
            end=normalize_timestamp(session.ends_at, timezone=self._timezone),
            color_hex=CLASS_SESSION_COLOR,
            event_type="class_session",
            extended_props=props,
        )
