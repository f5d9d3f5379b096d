from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Any

from booking_engine.domain.entities.appointment import Appointment, ClassSession
from booking_engine.domain.entities.availability import RawAvailability
from booking_engine.domain.entities.booking_request import SeriesCreation
from booking_engine.domain.entities.catalog import Branch, Customer, Instructor, Service


class BookingBackendPort(ABC):
    """Backend collaborator. Every method raises BackendError on failure."""

    @abstractmethod
    async def list_services(self) -> list[Service]:
        raise NotImplementedError

    @abstractmethod
    async def list_instructors(self) -> list[Instructor]:
        raise NotImplementedError

    @abstractmethod
    async def list_branches(self) -> list[Branch]:
        raise NotImplementedError

    @abstractmethod
    async def get_availability(
        self,
        service_id: str,
        instructor_id: str,
        day: date,
        step_minutes: int,
    ) -> RawAvailability:
        """Free and busy slots for a service/instructor/day, not normalized."""
        raise NotImplementedError

    @abstractmethod
    async def list_appointments(self, from_iso: str, to_iso: str) -> list[Appointment]:
        raise NotImplementedError

    @abstractmethod
    async def list_class_sessions(self, from_iso: str, to_iso: str) -> list[ClassSession]:
        raise NotImplementedError

    @abstractmethod
    async def search_customers(self, query: str) -> list[Customer]:
        raise NotImplementedError

    @abstractmethod
    async def create_appointment(self, payload: dict[str, Any]) -> str:
        """Create one appointment. Returns the appointment id."""
        raise NotImplementedError

    @abstractmethod
    async def create_appointment_series(self, payload: dict[str, Any]) -> SeriesCreation:
        """Create a recurring series in one call."""
        raise NotImplementedError

    @abstractmethod
    async def update_appointment(self, appointment_id: str, patch: dict[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    async def delete_appointment(self, appointment_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def cancel_appointment_series(self, series_id: str, include_past: bool, notify: bool) -> int:
        """Cancel the pending appointments of a series. Returns how many were cancelled."""
        raise NotImplementedError

    @abstractmethod
    async def create_class_enrollment(self, session_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    async def create_payment_link(self, appointment_id: str) -> str:
        raise NotImplementedError

    @abstractmethod
    async def send_reprogram_message(
        self,
        appointment_id: str,
        phone: str,
        custom_text: str | None,
        auto_cancel: bool,
    ) -> bool:
        """Send the WhatsApp reprogram message. Returns True if the backend cancelled the appointment."""
        raise NotImplementedError

    @abstractmethod
    async def send_reminder(self, appointment_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def send_whatsapp_test(self, phone: str) -> None:
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release transport resources. Nothing to do for in-memory backends."""
        return None
