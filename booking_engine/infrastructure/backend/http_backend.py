from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, TypeVar

import httpx
from pydantic import ValidationError

from booking_engine.application.dto.backend_records import (
    AppointmentDTO,
    BranchDTO,
    ClassSessionDTO,
    CustomerDTO,
    InstructorDTO,
    ServiceDTO,
)
from booking_engine.application.exceptions import BackendError
from booking_engine.application.ports.booking_backend import BookingBackendPort
from booking_engine.core.config import settings
from booking_engine.domain.entities.appointment import Appointment, ClassSession
from booking_engine.domain.entities.availability import RawAvailability
from booking_engine.domain.entities.booking_request import SeriesCreation
from booking_engine.domain.entities.catalog import Branch, Customer, Instructor, Service

PATH_SERVICES = "/api/meta/services"
PATH_INSTRUCTORS = "/api/meta/instructors"
PATH_BRANCHES = "/api/branches/catalog"
PATH_AVAILABILITY = "/api/availability"
PATH_APPOINTMENTS = "/api/appointments"
PATH_SERIES = "/api/appointments/series"
PATH_CLASS_SESSIONS = "/api/classes/sessions"
PATH_CUSTOMERS = "/api/customers"
PATH_PAYMENT_LINK = "/api/payments/link"
PATH_WHATSAPP_REPROGRAM = "/api/whatsapp/reprogram"
PATH_WHATSAPP_TEST = "/api/whatsapp/test"
PATH_REMINDERS = "/api/reminders/send"

NETWORK_ERROR = "Error de red"

T = TypeVar("T")


def to_camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.capitalize() for part in rest)


def camelize(payload: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in payload.items():
        if isinstance(value, dict):
            value = camelize(value)
        elif isinstance(value, list):
            value = [camelize(v) if isinstance(v, dict) else v for v in value]
        out[to_camel(key)] = value
    return out


class HttpBookingBackend(BookingBackendPort):
    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        tenant_id: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.API_BASE_URL or "").rstrip("/")
        if not self._base_url:
            raise ValueError("API_BASE_URL is required for the HTTP booking backend")

        headers = {"Accept": "application/json"}
        token = token or settings.API_TOKEN
        tenant_id = tenant_id or settings.TENANT_ID
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if tenant_id:
            headers["X-Tenant-ID"] = tenant_id

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=timeout or settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )
        self._logger = logging.getLogger(__name__)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _parse_records(self, items: list[Any], parse: Callable[[Any], T], kind: str) -> list[T]:
        """Parse each record, logging and skipping the ones that fail validation."""
        records: list[T] = []
        for item in items:
            try:
                records.append(parse(item))
            except ValidationError as e:
                self._logger.warning(f"Skipping malformed {kind} record", extra={"error": str(e)})
        return records

    async def list_services(self) -> list[Service]:
        data = await self._request("GET", PATH_SERVICES)
        return self._parse_records(
            _unwrap_list(data, "services"), lambda item: ServiceDTO.model_validate(item).to_entity(), "service"
        )

    async def list_instructors(self) -> list[Instructor]:
        data = await self._request("GET", PATH_INSTRUCTORS)
        items = _unwrap_list(data, "instructors") or _unwrap_list(data, "stylists")
        return self._parse_records(items, lambda item: InstructorDTO.model_validate(item).to_entity(), "instructor")

    async def list_branches(self) -> list[Branch]:
        data = await self._request("GET", PATH_BRANCHES)
        return self._parse_records(
            _unwrap_list(data, "branches"), lambda item: BranchDTO.model_validate(item).to_entity(), "branch"
        )

    async def get_availability(
        self,
        service_id: str,
        instructor_id: str,
        day: date,
        step_minutes: int,
    ) -> RawAvailability:
        data = await self._request(
            "GET",
            PATH_AVAILABILITY,
            params={
                "serviceId": service_id,
                "instructorId": instructor_id,
                "date": day.isoformat(),
                "stepMin": step_minutes,
            },
        )
        body = data.get("data") if isinstance(data, dict) and isinstance(data.get("data"), dict) else data
        body = body if isinstance(body, dict) else {}
        slots = body.get("slots") or []
        busy = body.get("busySlots") or body.get("busy_slots") or []
        return RawAvailability(
            slots=list(slots) if isinstance(slots, list) else [],
            busy_slots=list(busy) if isinstance(busy, list) else [],
        )

    async def list_appointments(self, from_iso: str, to_iso: str) -> list[Appointment]:
        data = await self._request("GET", PATH_APPOINTMENTS, params={"from": from_iso, "to": to_iso})
        return self._parse_records(
            _unwrap_list(data, "appointments"),
            lambda item: AppointmentDTO.model_validate(item).to_entity(item),
            "appointment",
        )

    async def list_class_sessions(self, from_iso: str, to_iso: str) -> list[ClassSession]:
        data = await self._request("GET", PATH_CLASS_SESSIONS, params={"from": from_iso, "to": to_iso})
        return self._parse_records(
            _unwrap_list(data, "sessions"),
            lambda item: ClassSessionDTO.model_validate(item).to_entity(item),
            "class session",
        )

    async def search_customers(self, query: str) -> list[Customer]:
        data = await self._request("GET", PATH_CUSTOMERS, params={"q": query})
        return self._parse_records(
            _unwrap_list(data, "customers"), lambda item: CustomerDTO.model_validate(item).to_entity(), "customer"
        )

    async def create_appointment(self, payload: dict[str, Any]) -> str:
        data = await self._request("POST", PATH_APPOINTMENTS, json=camelize(payload))
        appointment_id = _pluck(data, "id") or _pluck(data, "appointmentId")
        if not appointment_id:
            raise BackendError(_error_of(data) or "No se pudo crear el turno")
        return str(appointment_id)

    async def create_appointment_series(self, payload: dict[str, Any]) -> SeriesCreation:
        conflict = False
        try:
            data = await self._request("POST", PATH_SERIES, json=camelize(payload))
        except _ConflictError as e:
            conflict = True
            data = e.body
        if not isinstance(data, dict):
            raise BackendError("Respuesta inválida del servidor")

        body = data.get("data") if isinstance(data.get("data"), dict) else data
        ids = body.get("appointmentIds") or body.get("ids") or []
        conflicts = body.get("conflicts") or []
        return SeriesCreation(
            ok=not conflict and data.get("ok", True) is not False and not conflicts,
            appointment_ids=tuple(str(i) for i in ids),
            series_id=str(body["seriesId"]) if body.get("seriesId") is not None else None,
            conflicts=tuple(str(c.get("startsAt", c)) if isinstance(c, dict) else str(c) for c in conflicts),
            error=_error_of(data) or "",
        )

    async def update_appointment(self, appointment_id: str, patch: dict[str, Any]) -> None:
        await self._request("PUT", f"{PATH_APPOINTMENTS}/{appointment_id}", json=camelize(patch))

    async def delete_appointment(self, appointment_id: str) -> None:
        await self._request("DELETE", f"{PATH_APPOINTMENTS}/{appointment_id}")

    async def cancel_appointment_series(self, series_id: str, include_past: bool, notify: bool) -> int:
        data = await self._request(
            "POST",
            f"{PATH_SERIES}/{series_id}/cancel",
            json={"includePast": include_past, "notify": notify},
        )
        return int(_pluck(data, "cancelled") or 0)

    async def create_class_enrollment(self, session_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        data = await self._request("POST", f"{PATH_CLASS_SESSIONS}/{session_id}/enrollments", json=camelize(payload))
        return data if isinstance(data, dict) else {}

    async def create_payment_link(self, appointment_id: str) -> str:
        data = await self._request("POST", PATH_PAYMENT_LINK, json={"appointmentId": appointment_id})
        link = _pluck(data, "link") or _pluck(data, "init_point")
        if not link:
            raise BackendError(_error_of(data) or "No se pudo generar el link de pago")
        return str(link)

    async def send_reprogram_message(
        self,
        appointment_id: str,
        phone: str,
        custom_text: str | None,
        auto_cancel: bool,
    ) -> bool:
        data = await self._request(
            "POST",
            PATH_WHATSAPP_REPROGRAM,
            json={
                "appointmentId": appointment_id,
                "phone": phone,
                "customText": custom_text or None,
                "autoCancel": auto_cancel,
            },
        )
        return bool(_pluck(data, "cancelled"))

    async def send_reminder(self, appointment_id: str) -> None:
        await self._request("POST", f"{PATH_REMINDERS}/{appointment_id}")

    async def send_whatsapp_test(self, phone: str) -> None:
        await self._request("POST", PATH_WHATSAPP_TEST, json={"phone": phone})

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            self._logger.error("Backend request failed", extra={"path": path, "error": str(e)})
            raise BackendError(NETWORK_ERROR) from e

        body: Any
        try:
            body = resp.json() if resp.content else {}
        except ValueError:
            body = resp.text

        if resp.status_code == 409 and path == PATH_SERIES:
            raise _ConflictError(body)

        if resp.status_code >= 400:
            message = _error_of(body) or NETWORK_ERROR
            self._logger.error(
                "Backend returned an error",
                extra={"path": path, "status": resp.status_code, "error": message},
            )
            raise BackendError(message, status_code=resp.status_code)

        if isinstance(body, dict) and body.get("ok") is False and path != PATH_SERIES:
            raise BackendError(_error_of(body) or NETWORK_ERROR, status_code=resp.status_code)
        return body


class _ConflictError(Exception):
    def __init__(self, body: Any) -> None:
        super().__init__("conflict")
        self.body = body


def _unwrap_list(data: Any, key: str) -> list[dict[str, Any]]:
    if isinstance(data, dict):
        inner = data.get("data", data)
        if isinstance(inner, dict):
            inner = inner.get(key)
        data = inner
    if not isinstance(data, list):
        return []
    return [item for item in data if isinstance(item, dict)]


def _pluck(data: Any, key: str) -> Any:
    if not isinstance(data, dict):
        return None
    if key in data:
        return data[key]
    inner = data.get("data")
    if isinstance(inner, dict):
        return inner.get(key)
    return None


def _error_of(body: Any) -> str | None:
    if isinstance(body, str):
        return body.strip() or None
    if isinstance(body, dict):
        message = body.get("error") or body.get("message")
        return str(message) if message else None
    return None
