from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable
from zoneinfo import ZoneInfo

from booking_engine.application.exceptions import BackendError
from booking_engine.application.ports.booking_backend import BookingBackendPort
from booking_engine.application.ports.service_catalog import ServiceCatalogPort
from booking_engine.application.use_cases.appointments import AppointmentLifecycleManager
from booking_engine.application.use_cases.availability import AvailabilityFetcher
from booking_engine.application.use_cases.calendar_sync import CalendarSyncController, default_range
from booking_engine.application.use_cases.customer_search import CustomerSearch
from booking_engine.application.use_cases.draft_store import BookingDraftStore
from booking_engine.application.use_cases.notification_dispatch import NotificationDispatchWorkflow
from booking_engine.domain.entities.availability import AvailabilityResult
from booking_engine.domain.entities.booking_draft import BookingDraft
from booking_engine.domain.entities.catalog import Customer


class BookingSession:
    """
    Everything one booking screen needs, wired by constructor injection.

    Use it as an async context manager: entering starts calendar polling, leaving
    stops it and aborts any pending availability or customer lookup.
    """

    def __init__(
        self,
        backend: BookingBackendPort,
        catalog: ServiceCatalogPort,
        timezone: ZoneInfo,
        step_minutes: int = 20,
        poll_interval: float = 15.0,
        range_debounce: float = 0.15,
        search_debounce: float = 0.2,
        reset_delay: float = 3.0,
        classes_enabled: bool = False,
        range_days: int = 30,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.backend = backend
        self.catalog = catalog
        self.timezone = timezone
        self.drafts = BookingDraftStore()
        self.availability = AvailabilityFetcher(backend, timezone, step_minutes=step_minutes, now=now)
        self.calendar = CalendarSyncController(
            backend,
            timezone,
            poll_interval=poll_interval,
            range_debounce=range_debounce,
            classes_enabled=classes_enabled,
            initial_range=default_range(timezone, days=range_days),
        )
        self.appointments = AppointmentLifecycleManager(
            backend,
            self.calendar,
            catalog,
            timezone,
            now=now,
            reset_delay=reset_delay,
        )
        self.dispatch = NotificationDispatchWorkflow(self.appointments, self.drafts, backend)
        self.customers = CustomerSearch(backend, debounce_seconds=search_debounce)
        self._meta_error = ""
        self._logger = logging.getLogger(__name__)

    @property
    def meta_error(self) -> str:
        return self._meta_error

    async def load_catalog(self) -> None:
        try:
            services, instructors, branches = await asyncio.gather(
                self.backend.list_services(),
                self.backend.list_instructors(),
                self.backend.list_branches(),
            )
        except BackendError as e:
            self._logger.error("Catalog load failed", extra={"error": str(e)})
            self._meta_error = str(e)
            return
        self.catalog.replace(services, instructors, branches)
        self._meta_error = ""

    def update_draft(self, patch: dict[str, Any] | None = None, **changes: Any) -> BookingDraft:
        return self.drafts.update(patch, **changes)

    def select_customer(self, customer: Customer) -> BookingDraft:
        self.customers.cancel()
        return self.drafts.select_customer(customer)

    async def type_customer_name(self, name: str) -> tuple[Customer, ...]:
        self.drafts.set_customer_name(name)
        return await self.customers.search(name)

    async def load_availability(self) -> AvailabilityResult:
        draft = self.drafts.draft
        return await self.availability.load(draft.service_id, draft.instructor_id, draft.date)

    async def __aenter__(self) -> "BookingSession":
        self.calendar.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        self.availability.cancel()
        self.customers.cancel()
        await self.appointments.close()
        await self.calendar.stop()
