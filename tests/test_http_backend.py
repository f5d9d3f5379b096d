"""
Tests for the HTTP backend adapter against a mocked transport.
"""

from __future__ import annotations

import asyncio
import json
from datetime import date
from zoneinfo import ZoneInfo

import httpx
import pytest

from booking_engine.application.exceptions import BackendError
from booking_engine.application.use_cases.booking_session import BookingSession
from booking_engine.infrastructure.backend.http_backend import HttpBookingBackend, camelize
from booking_engine.infrastructure.catalog.catalog_store import ServiceCatalogStore


def _backend(handler) -> HttpBookingBackend:
    return HttpBookingBackend(
        base_url="http://backend.test/",
        token="secret",
        tenant_id="t-1",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


def _run(backend: HttpBookingBackend, coro):
    async def scenario():
        try:
            return await coro
        finally:
            await backend.aclose()

    return asyncio.run(scenario())


def test_requests_carry_auth_and_tenant_headers():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization")
        seen["tenant"] = request.headers.get("X-Tenant-ID")
        seen["path"] = request.url.path
        return httpx.Response(200, json={"ok": True, "data": [{"id": 1, "name": "Corte", "duration_min": 30}]})

    backend = _backend(handler)
    services = _run(backend, backend.list_services())

    assert seen == {"auth": "Bearer secret", "tenant": "t-1", "path": "/api/meta/services"}
    assert services[0].id == "1"
    assert services[0].duration_min == 30


def test_appointment_aliases_are_resolved_once():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["from"] == "2025-03-01T00:00:00-03:00"
        return httpx.Response(
            200,
            json={
                "ok": True,
                "data": {
                    "appointments": [
                        {
                            "id": 12,
                            "startsAt": "2025-03-10T17:00:00Z",
                            "endsAt": "2025-03-10T17:30:00Z",
                            "stylist_id": 3,
                            "phone_e164": "+5491112345678",
                            "mp_payment_status": "approved",
                            "status": None,
                        },
                        {"id": 13},
                    ]
                },
            },
        )

    backend = _backend(handler)
    appointments = _run(backend, backend.list_appointments("2025-03-01T00:00:00-03:00", "2025-04-01T00:00:00-03:00"))

    assert len(appointments) == 1
    appointment = appointments[0]
    assert appointment.id == "12"
    assert appointment.instructor_id == "3"
    assert appointment.customer_phone == "+5491112345678"
    assert appointment.payment_status == "approved"
    assert appointment.status == "scheduled"
    assert appointment.raw["stylist_id"] == 3


def test_availability_accepts_bare_and_wrapped_bodies():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["date"] == "2025-03-10"
        assert request.url.params["stepMin"] == "20"
        return httpx.Response(200, json={"ok": True, "data": {"slots": ["10:00", "10:20"], "busySlots": ["10:40"]}})

    backend = _backend(handler)
    raw = _run(backend, backend.get_availability("1", "2", date(2025, 3, 10), 20))

    assert raw.slots == ["10:00", "10:20"]
    assert raw.busy_slots == ["10:40"]


def test_create_sends_camel_case_and_returns_id():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["body"] = json.loads(request.content)
        return httpx.Response(201, json={"ok": True, "data": {"id": 77}})

    backend = _backend(handler)
    appointment_id = _run(
        backend,
        backend.create_appointment({"service_id": "1", "starts_at": "2025-03-10 14:00:00", "notification_channel": "none"}),
    )

    assert appointment_id == "77"
    assert captured["body"] == {"serviceId": "1", "startsAt": "2025-03-10 14:00:00", "notificationChannel": "none"}


def test_error_message_is_passed_through_verbatim():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"ok": False, "error": "El profesional no atiende ese día"})

    backend = _backend(handler)
    with pytest.raises(BackendError) as exc:
        _run(backend, backend.create_appointment({"service_id": "1"}))

    assert str(exc.value) == "El profesional no atiende ese día"
    assert exc.value.status_code == 400


def test_ok_false_with_success_status_is_an_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ok": False, "message": "Tenant inactivo"})

    backend = _backend(handler)
    with pytest.raises(BackendError) as exc:
        _run(backend, backend.list_branches())

    assert str(exc.value) == "Tenant inactivo"


def test_network_failure_uses_generic_message():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    backend = _backend(handler)
    with pytest.raises(BackendError) as exc:
        _run(backend, backend.list_services())

    assert str(exc.value) == "Error de red"


def test_series_conflict_is_returned_not_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/appointments/series"
        return httpx.Response(
            409,
            json={
                "ok": False,
                "error": "Conflicto de horarios",
                "conflicts": [{"startsAt": "2025-03-17 14:00:00"}],
                "appointmentIds": [41],
            },
        )

    backend = _backend(handler)
    creation = _run(backend, backend.create_appointment_series({"occurrences": []}))

    assert creation.ok is False
    assert creation.conflicts == ("2025-03-17 14:00:00",)
    assert creation.appointment_ids == ("41",)
    assert creation.error == "Conflicto de horarios"


def test_series_success():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ok": True, "data": {"seriesId": 9, "appointmentIds": [1, 2, 3]}})

    backend = _backend(handler)
    creation = _run(backend, backend.create_appointment_series({"occurrences": []}))

    assert creation.ok is True
    assert creation.series_id == "9"
    assert creation.appointment_ids == ("1", "2", "3")


def test_reprogram_reports_cancellation():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["autoCancel"] is True
        return httpx.Response(200, json={"ok": True, "cancelled": True})

    backend = _backend(handler)
    assert _run(backend, backend.send_reprogram_message("5", "+5491112345678", None, auto_cancel=True)) is True


def test_camelize_handles_nested_payloads():
    payload = {"starts_at": "x", "repeat": {"interval_days": 7}, "occurrences": [{"ends_at": "y"}]}

    assert camelize(payload) == {"startsAt": "x", "repeat": {"intervalDays": 7}, "occurrences": [{"endsAt": "y"}]}


def test_base_url_is_required():
    with pytest.raises(ValueError):
        HttpBookingBackend(base_url="", transport=httpx.MockTransport(lambda r: httpx.Response(200)))


def test_malformed_catalog_records_are_skipped():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ok": True, "data": [{"name": "sin id"}, {"id": 2, "name": "Color"}]})

    backend = _backend(handler)
    services = _run(backend, backend.list_services())

    assert [s.id for s in services] == ["2"]


def test_malformed_customer_records_are_skipped():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": [{"name": "Ana"}]})

    backend = _backend(handler)
    assert _run(backend, backend.search_customers("Ana")) == []


def test_catalog_load_survives_malformed_records():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"name": "no id"}])

    backend = _backend(handler)
    session = BookingSession(backend, ServiceCatalogStore(), ZoneInfo("America/Argentina/Buenos_Aires"))
    _run(backend, session.load_catalog())

    assert session.meta_error == ""
    assert session.catalog.services() == []
