"""
Tests for calendar event mapping, latest-sequence application and polling.
"""

from __future__ import annotations

import asyncio
from zoneinfo import ZoneInfo

from booking_engine.application.exceptions import BackendError
from booking_engine.application.use_cases.calendar_sync import CLASS_SESSION_COLOR, CalendarSyncController
from booking_engine.domain.entities.appointment import Appointment, ClassSession
from booking_engine.domain.entities.calendar_event import DateRange
from booking_engine.infrastructure.backend.mock_backend import MockBookingBackend

TZ = ZoneInfo("America/Argentina/Buenos_Aires")
MARCH = DateRange(from_iso="2025-03-01T00:00:00-03:00", to_iso="2025-04-01T00:00:00-03:00")
APRIL = DateRange(from_iso="2025-04-01T00:00:00-03:00", to_iso="2025-05-01T00:00:00-03:00")


class ScriptedBackend(MockBookingBackend):
    """list_appointments answers from a queue of (gate, result) pairs, one per call."""

    def __init__(self, appointments: list[Appointment] | None = None, sessions: list[ClassSession] | None = None) -> None:
        super().__init__()
        self.fixed = appointments or []
        self.sessions = sessions or []
        self.script: list[tuple[asyncio.Event | None, object]] = []
        self.ranges: list[tuple[str, str]] = []

    async def list_appointments(self, from_iso, to_iso):
        self.ranges.append((from_iso, to_iso))
        if not self.script:
            return list(self.fixed)
        gate, result = self.script.pop(0)
        if gate is not None:
            await gate.wait()
        if isinstance(result, Exception):
            raise result
        return result

    async def list_class_sessions(self, from_iso, to_iso):
        return list(self.sessions)


def _appointment(appointment_id: str, starts_at: str, ends_at: str = "", **kwargs) -> Appointment:
    raw = {"id": appointment_id, "startsAt": starts_at, "stylistId": kwargs.get("instructor_id")}
    return Appointment(id=appointment_id, starts_at=starts_at, ends_at=ends_at, raw=raw, **kwargs)


def test_reload_maps_appointments_to_events():
    backend = ScriptedBackend([
        _appointment(
            "12",
            "2025-03-10T17:00:00Z",
            ends_at="2025-03-10T17:30:00Z",
            customer_name="Ana",
            service_name="Corte",
            instructor_id="3",
            color_hex="#EF4444",
        ),
        _appointment("7", "2025-03-10 09:00:00", ends_at="2025-03-10 09:20:00"),
    ])
    calendar = CalendarSyncController(backend, TZ, initial_range=MARCH)

    asyncio.run(calendar.reload())

    assert calendar.state == "loaded"
    first, second = calendar.events
    assert first.id == "7"
    assert first.title == "Cliente • Servicio"
    assert second.id == "12"
    assert second.title == "Ana • Corte"
    assert second.start == "2025-03-10 14:00:00"
    assert second.end == "2025-03-10 14:30:00"
    assert second.color_hex == "#EF4444"
    assert second.extended_props["stylistId"] == "3"
    assert second.extended_props["instructor_id"] == "3"
    assert second.extended_props["event_type"] == "appointment"


def test_events_filter_by_instructor():
    backend = ScriptedBackend([
        _appointment("1", "2025-03-10 09:00:00", instructor_id="1"),
        _appointment("2", "2025-03-10 10:00:00", instructor_id="2"),
    ])
    calendar = CalendarSyncController(backend, TZ, initial_range=MARCH)
    asyncio.run(calendar.reload())

    assert [e.id for e in calendar.events_for_instructor("2")] == ["2"]
    assert len(calendar.events_for_instructor(None)) == 2


def test_class_sessions_are_merged_when_enabled():
    session = ClassSession(
        id="5",
        starts_at="2025-03-11 18:00:00",
        ends_at="2025-03-11 19:00:00",
        activity_type="Yoga",
        instructor_id="1",
        enrolled_count=3,
        capacity_max=10,
    )
    backend = ScriptedBackend([_appointment("1", "2025-03-10 09:00:00")], sessions=[session])

    disabled = CalendarSyncController(backend, TZ, initial_range=MARCH)
    asyncio.run(disabled.reload())
    assert [e.id for e in disabled.events] == ["1"]

    enabled = CalendarSyncController(backend, TZ, classes_enabled=True, initial_range=MARCH)
    asyncio.run(enabled.reload())
    event = enabled.events[-1]
    assert event.id == "class-5"
    assert event.title == "Yoga"
    assert event.event_type == "class_session"
    assert event.color_hex == CLASS_SESSION_COLOR
    assert event.extended_props["session_id"] == "5"
    assert event.extended_props["capacity_max"] == 10


def test_superseded_fetch_is_ignored():
    async def scenario():
        backend = ScriptedBackend()
        slow_gate = asyncio.Event()
        backend.script = [
            (slow_gate, [_appointment("old", "2025-03-10 09:00:00")]),
            (None, [_appointment("new", "2025-03-10 10:00:00")]),
        ]
        calendar = CalendarSyncController(backend, TZ, initial_range=MARCH)
        slow = asyncio.ensure_future(calendar.reload())
        await asyncio.sleep(0)
        await calendar.reload()
        slow_gate.set()
        await slow
        return calendar

    calendar = asyncio.run(scenario())

    assert [e.id for e in calendar.events] == ["new"]
    assert calendar.state == "loaded"


def test_failed_reload_clears_events_and_sets_error():
    async def scenario():
        backend = ScriptedBackend([_appointment("1", "2025-03-10 09:00:00")])
        calendar = CalendarSyncController(backend, TZ, initial_range=MARCH)
        await calendar.reload()
        backend.script = [(None, BackendError("Error de red"))]
        await calendar.reload()
        return calendar

    calendar = asyncio.run(scenario())

    assert calendar.events == ()
    assert calendar.state == "error"
    assert calendar.error == "Error de red"


def test_range_changes_are_debounced():
    async def scenario():
        backend = ScriptedBackend()
        calendar = CalendarSyncController(backend, TZ, range_debounce=0.01, initial_range=MARCH)
        assert calendar.set_range(APRIL)
        assert calendar.set_range(MARCH)
        assert not calendar.set_range(MARCH)
        await asyncio.sleep(0.05)
        await calendar.stop()
        return backend.ranges

    ranges = asyncio.run(scenario())

    assert ranges == [(MARCH.from_iso, MARCH.to_iso)]


def test_polling_starts_immediately_and_stops_cleanly():
    async def scenario():
        backend = ScriptedBackend([_appointment("1", "2025-03-10 09:00:00")])
        async with CalendarSyncController(backend, TZ, poll_interval=0.01, initial_range=MARCH) as calendar:
            await asyncio.sleep(0.05)
            assert calendar.is_polling
        calls = len(backend.ranges)
        await asyncio.sleep(0.03)
        return calendar, calls, len(backend.ranges)

    calendar, calls_at_stop, calls_later = asyncio.run(scenario())

    assert not calendar.is_polling
    assert calls_at_stop >= 2
    assert calls_later == calls_at_stop
    assert [e.id for e in calendar.events] == ["1"]


def test_polling_survives_unexpected_errors():
    async def scenario():
        backend = ScriptedBackend([_appointment("1", "2025-03-10 09:00:00")])
        backend.script.append((None, RuntimeError("respuesta inesperada")))
        async with CalendarSyncController(backend, TZ, poll_interval=0.01, initial_range=MARCH) as calendar:
            await asyncio.sleep(0.05)
            polling = calendar.is_polling
        return calendar, polling, len(backend.ranges)

    calendar, polling, calls = asyncio.run(scenario())

    assert polling is True
    assert calls >= 2
    assert calendar.state == "loaded"
    assert [e.id for e in calendar.events] == ["1"]
