"""
End-to-end booking flow through the HTTP surface, backed by the in-memory backend.
"""

from __future__ import annotations

from datetime import timedelta
from zoneinfo import ZoneInfo

from fastapi.testclient import TestClient

from booking_engine.application.use_cases.appointments import PHONE_FORMAT_ERROR
from booking_engine.application.use_cases.booking_session import BookingSession
from booking_engine.application.utils.time_normalizer import local_now
from booking_engine.infrastructure.backend.mock_backend import MockBookingBackend
from booking_engine.infrastructure.catalog.catalog_store import ServiceCatalogStore
from booking_engine.main import create_app

TZ = ZoneInfo("America/Argentina/Buenos_Aires")


def _client() -> tuple[TestClient, MockBookingBackend]:
    backend = MockBookingBackend()
    session = BookingSession(backend, ServiceCatalogStore(), TZ, poll_interval=60.0)
    return TestClient(create_app(session_factory=lambda: session)), backend


def _fill_draft(client: TestClient, phone: str = "+5491112345678") -> str:
    tomorrow = local_now(TZ).date() + timedelta(days=1)
    client.patch("/api/v1/draft", json={"service_id": "1", "instructor_id": "1", "date": tomorrow.isoformat()})
    slots = client.post("/api/v1/availability").json()["slots"]
    slot = slots[0]
    client.patch(
        "/api/v1/draft",
        json={"selected_slot": slot, "customer_name": "Ana", "customer_phone": phone},
    )
    return slot


def test_health():
    client, _ = _client()
    with client:
        assert client.get("/health").json() == {"status": "ok"}


def test_meta_is_loaded_on_startup():
    client, _ = _client()
    with client:
        meta = client.get("/api/v1/meta").json()

    assert [s["name"] for s in meta["services"]] == ["Corte", "Color", "Barba"]
    assert meta["error"] == ""


def test_booking_flow_end_to_end():
    client, backend = _client()
    with client:
        slot = _fill_draft(client)

        grid = client.get("/api/v1/availability/slots").json()
        assert [g["slot"] for g in grid if g["state"] == "selected"] == [slot]

        confirmation = client.post("/api/v1/confirmation")
        assert confirmation.status_code == 200
        assert confirmation.json()["starts_at"] == slot

        created = client.post("/api/v1/confirmation/channel", json={"channel": "reminder_only"})
        assert created.status_code == 200
        appointment_id = created.json()["appointment_ids"][0]

        assert client.get("/api/v1/save-state").json()["ok"] is True
        assert client.get("/api/v1/draft").json()["customer_name"] == ""

        calendar = client.get("/api/v1/calendar", params={"instructor_id": "1"}).json()
        assert [e["id"] for e in calendar["events"]] == [appointment_id]
        assert calendar["events"][0]["title"] == "Ana • Corte"

        link = client.post(f"/api/v1/appointments/{appointment_id}/payment-link")
        assert link.status_code == 200
        assert link.json()["link"].endswith(appointment_id)

        declined = client.delete(f"/api/v1/appointments/{appointment_id}").json()
        assert declined == {"ok": False, "error": "", "data": {"confirmed": False}}

        deleted = client.delete(f"/api/v1/appointments/{appointment_id}", params={"confirmed": True}).json()
        assert deleted["ok"] is True

    assert backend.appointments == {}


def test_invalid_phone_is_rejected_before_channel_choice():
    client, backend = _client()
    with client:
        _fill_draft(client, phone="5491112345")
        response = client.post("/api/v1/confirmation")
        choose = client.post("/api/v1/confirmation/channel", json={"channel": "none"})

    assert response.status_code == 400
    assert response.json()["detail"] == PHONE_FORMAT_ERROR
    assert choose.status_code == 409
    assert backend.appointments == {}


def test_cancel_and_rebook_through_api():
    client, backend = _client()
    with client:
        _fill_draft(client)
        client.post("/api/v1/confirmation")
        appointment_id = client.post("/api/v1/confirmation/channel", json={"channel": "none"}).json()["appointment_ids"][0]

        result = client.post(f"/api/v1/appointments/{appointment_id}/cancel-rebook", json={"rebook": True}).json()
        missing = client.post("/api/v1/appointments/999/cancel-rebook", json={})

    assert result["ok"] is True
    assert result["cancelled"] is True
    assert backend.appointments[appointment_id].status == "cancelled"
    assert backend.appointments[result["new_appointment_id"]].status == "scheduled"
    assert missing.status_code == 404


def test_unknown_draft_field_is_ignored_by_schema():
    client, _ = _client()
    with client:
        draft = client.patch("/api/v1/draft", json={"repeat_enabled": True, "stylist": "x"}).json()

    assert draft["repeat_enabled"] is True
    assert draft["repeat_count"] == 4
