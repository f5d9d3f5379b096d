from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, time, timedelta
from typing import Any

from booking_engine.application.exceptions import BackendError
from booking_engine.application.ports.booking_backend import BookingBackendPort
from booking_engine.application.utils.time_normalizer import (
    add_minutes,
    format_canonical,
    normalize_timestamp,
    parse_canonical,
)
from booking_engine.domain.entities.appointment import Appointment, ClassSession
from booking_engine.domain.entities.availability import RawAvailability
from booking_engine.domain.entities.booking_request import SeriesCreation
from booking_engine.domain.entities.catalog import Branch, Customer, Instructor, Service

DEFAULT_SERVICES = [
    Service(id="1", name="Corte", duration_min=30, price=8000.0, color_hex="#6366F1"),
    Service(id="2", name="Color", duration_min=90, price=25000.0, color_hex="#F59E0B"),
    Service(id="3", name="Barba", duration_min=20, price=5000.0, color_hex="#10B981"),
]
DEFAULT_INSTRUCTORS = [
    Instructor(id="1", name="Ana", color_hex="#EF4444"),
    Instructor(id="2", name="Bruno", color_hex="#06B6D4"),
]
DEFAULT_BRANCHES = [Branch(id="1", name="Centro")]

OPEN_HOUR = 9
CLOSE_HOUR = 21


class MockBookingBackend(BookingBackendPort):
    """In-memory backend for local runs and tests. Series creation is atomic."""

    def __init__(
        self,
        services: list[Service] | None = None,
        instructors: list[Instructor] | None = None,
        branches: list[Branch] | None = None,
        customers: list[Customer] | None = None,
    ) -> None:
        self._services = list(DEFAULT_SERVICES if services is None else services)
        self._instructors = list(DEFAULT_INSTRUCTORS if instructors is None else instructors)
        self._branches = list(DEFAULT_BRANCHES if branches is None else branches)
        self._customers = list(customers or [])
        self._appointments: dict[str, Appointment] = {}
        self._class_sessions: dict[str, ClassSession] = {}
        self._enrollments: list[dict[str, Any]] = []
        self._payment_links: dict[str, str] = {}
        self._next_id = 1
        self._next_series_id = 1
        self.sent_messages: list[dict[str, Any]] = []
        self._logger = logging.getLogger(__name__)

    @property
    def appointments(self) -> dict[str, Appointment]:
        return dict(self._appointments)

    def add_class_session(self, session: ClassSession) -> None:
        self._class_sessions[session.id] = session

    async def list_services(self) -> list[Service]:
        return list(self._services)

    async def list_instructors(self) -> list[Instructor]:
        return list(self._instructors)

    async def list_branches(self) -> list[Branch]:
        return list(self._branches)

    async def get_availability(
        self,
        service_id: str,
        instructor_id: str,
        day: date,
        step_minutes: int,
    ) -> RawAvailability:
        service = self._service(service_id)
        duration = service.duration_min or step_minutes
        busy = sorted(
            a.starts_at
            for a in self._appointments.values()
            if a.instructor_id == instructor_id and a.status != "cancelled" and a.starts_at.startswith(day.isoformat())
        )

        free: list[str] = []
        current = datetime.combine(day, time(hour=OPEN_HOUR))
        closing = datetime.combine(day, time(hour=CLOSE_HOUR))
        while current + timedelta(minutes=duration) <= closing:
            start = format_canonical(current)
            if not self._collides(instructor_id, start, add_minutes(start, duration)):
                free.append(current.strftime("%H:%M"))
            current += timedelta(minutes=step_minutes)
        return RawAvailability(slots=free, busy_slots=busy)

    async def list_appointments(self, from_iso: str, to_iso: str) -> list[Appointment]:
        start = normalize_timestamp(from_iso)
        end = normalize_timestamp(to_iso)
        return [a for a in self._appointments.values() if start <= a.starts_at < end]

    async def list_class_sessions(self, from_iso: str, to_iso: str) -> list[ClassSession]:
        start = normalize_timestamp(from_iso)
        end = normalize_timestamp(to_iso)
        return [s for s in self._class_sessions.values() if start <= s.starts_at < end]

    async def search_customers(self, query: str) -> list[Customer]:
        term = query.lower().strip()
        return [c for c in self._customers if term in c.name.lower() or term in c.phone]

    async def create_appointment(self, payload: dict[str, Any]) -> str:
        appointment = self._build(payload, payload["starts_at"], payload.get("ends_at"))
        if self._collides(appointment.instructor_id, appointment.starts_at, appointment.ends_at):
            raise BackendError("El horario ya está ocupado", status_code=409)
        self._appointments[appointment.id] = appointment
        self._logger.info("Mock appointment created", extra={"appointment_id": appointment.id})
        return appointment.id

    async def create_appointment_series(self, payload: dict[str, Any]) -> SeriesCreation:
        occurrences = payload.get("occurrences") or []
        instructor_id = str(payload.get("instructor_id") or "")
        conflicts = tuple(
            o["starts_at"]
            for o in occurrences
            if self._collides(instructor_id, o["starts_at"], o.get("ends_at") or o["starts_at"])
        )
        if conflicts:
            return SeriesCreation(ok=False, conflicts=conflicts, error="Hay turnos superpuestos en la serie")

        series_id = str(self._next_series_id)
        self._next_series_id += 1
        ids: list[str] = []
        for occurrence in occurrences:
            appointment = self._build(payload, occurrence["starts_at"], occurrence.get("ends_at"), series_id)
            self._appointments[appointment.id] = appointment
            ids.append(appointment.id)
        return SeriesCreation(ok=True, appointment_ids=tuple(ids), series_id=series_id)

    async def update_appointment(self, appointment_id: str, patch: dict[str, Any]) -> None:
        current = self._get(appointment_id)
        fields = {k: v for k, v in patch.items() if k in Appointment.__dataclass_fields__ and k not in {"id", "raw"}}
        self._appointments[appointment_id] = _with_raw(replace(current, **fields))

    async def delete_appointment(self, appointment_id: str) -> None:
        self._get(appointment_id)
        del self._appointments[appointment_id]

    async def cancel_appointment_series(self, series_id: str, include_past: bool, notify: bool) -> int:
        now = format_canonical(datetime.now())
        cancelled = 0
        for appointment in list(self._appointments.values()):
            if appointment.series_id != series_id or appointment.status == "cancelled":
                continue
            if not include_past and appointment.starts_at <= now:
                continue
            self._appointments[appointment.id] = _with_raw(replace(appointment, status="cancelled"))
            cancelled += 1
        if notify and cancelled:
            self.sent_messages.append({"type": "series_cancelled", "series_id": series_id})
        return cancelled

    async def create_class_enrollment(self, session_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        session = self._class_sessions.get(session_id)
        if session is None:
            raise BackendError("Clase no encontrada", status_code=404)
        if session.capacity_max is not None and session.enrolled_count >= session.capacity_max:
            raise BackendError("La clase está completa", status_code=409)
        self._class_sessions[session_id] = replace(session, enrolled_count=session.enrolled_count + 1)
        enrollment = {"id": str(len(self._enrollments) + 1), "session_id": session_id, **payload}
        self._enrollments.append(enrollment)
        return {"ok": True, "enrollment": enrollment}

    async def create_payment_link(self, appointment_id: str) -> str:
        self._get(appointment_id)
        link = self._payment_links.setdefault(appointment_id, f"https://pagos.example/checkout/{appointment_id}")
        return link

    async def send_reprogram_message(
        self,
        appointment_id: str,
        phone: str,
        custom_text: str | None,
        auto_cancel: bool,
    ) -> bool:
        appointment = self._get(appointment_id)
        self.sent_messages.append({"type": "reprogram", "appointment_id": appointment_id, "phone": phone})
        if auto_cancel:
            self._appointments[appointment_id] = _with_raw(replace(appointment, status="cancelled"))
        return auto_cancel

    async def send_reminder(self, appointment_id: str) -> None:
        self._get(appointment_id)
        self.sent_messages.append({"type": "reminder", "appointment_id": appointment_id})

    async def send_whatsapp_test(self, phone: str) -> None:
        self.sent_messages.append({"type": "test", "phone": phone})

    def _build(
        self,
        payload: dict[str, Any],
        starts_at: str,
        ends_at: str | None,
        series_id: str | None = None,
    ) -> Appointment:
        service = self._service(str(payload.get("service_id") or ""))
        instructor = next((i for i in self._instructors if i.id == str(payload.get("instructor_id"))), None)
        if not ends_at:
            ends_at = add_minutes(starts_at, service.duration_min or 30)
        appointment_id = str(self._next_id)
        self._next_id += 1
        appointment = Appointment(
            id=appointment_id,
            starts_at=starts_at,
            ends_at=ends_at,
            customer_name=payload.get("customer_name"),
            customer_phone=payload.get("customer_phone"),
            customer_id=payload.get("customer_id"),
            service_id=service.id,
            service_name=service.name,
            instructor_id=instructor.id if instructor else payload.get("instructor_id"),
            instructor_name=instructor.name if instructor else None,
            branch_id=payload.get("branch_id"),
            status=payload.get("status", "scheduled"),
            color_hex=instructor.color_hex if instructor else None,
            series_id=series_id,
        )
        return _with_raw(appointment)

    def _service(self, service_id: str) -> Service:
        service = next((s for s in self._services if s.id == service_id), None)
        if service is None:
            raise BackendError("Servicio inexistente", status_code=404)
        return service

    def _get(self, appointment_id: str) -> Appointment:
        appointment = self._appointments.get(str(appointment_id))
        if appointment is None:
            raise BackendError("Turno no encontrado", status_code=404)
        return appointment

    def _collides(self, instructor_id: str | None, starts_at: str, ends_at: str) -> bool:
        start = parse_canonical(starts_at)
        end = parse_canonical(ends_at) or start
        if start is None:
            return False
        for appointment in self._appointments.values():
            if appointment.instructor_id != instructor_id or appointment.status == "cancelled":
                continue
            other_start = parse_canonical(appointment.starts_at)
            other_end = parse_canonical(appointment.ends_at) or other_start
            if other_start is None:
                continue
            if start == other_start or (start < other_end and other_start < end):
                return True
        return False


def _with_raw(appointment: Appointment) -> Appointment:
    return replace(appointment, raw={k: v for k, v in vars(appointment).items() if k != "raw"})
