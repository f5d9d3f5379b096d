from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime
from typing import Any, Awaitable, Callable, Mapping
from zoneinfo import ZoneInfo

from booking_engine.application.exceptions import (
    BackendError,
    BookingError,
    BookingValidationError,
    SeriesConflictError,
    StaleSlotError,
)
from booking_engine.application.ports.booking_backend import BookingBackendPort
from booking_engine.application.ports.service_catalog import ServiceCatalogPort
from booking_engine.application.use_cases.calendar_sync import CalendarSyncController
from booking_engine.application.utils.recurrence import derive_recurrence_spec, generate_occurrences
from booking_engine.application.utils.time_normalizer import (
    add_minutes,
    is_in_future,
    local_now,
    normalize_timestamp,
)
from booking_engine.domain.entities.appointment import Appointment
from booking_engine.domain.entities.booking_draft import BookingDraft
from booking_engine.domain.entities.booking_request import (
    BookingRequest,
    CreateOutcome,
    MutationResult,
    RebookResult,
)
from booking_engine.domain.entities.notification import NotificationChannel
from booking_engine.domain.entities.save_state import BookingSaveState

PHONE_PATTERN = re.compile(r"^\+\d{10,15}$")

PHONE_FORMAT_ERROR = "Ingresá el teléfono en formato +54911..."
INCOMPLETE_DRAFT_ERROR = "⚠️ Completá todos los pasos antes de confirmar"
STALE_SLOT_ERROR = "⚠️ El horario seleccionado ya pasó. Refrescá la página."
INVALID_SLOT_ERROR = "⚠️ El horario seleccionado no es válido"
EMPTY_SERIES_ERROR = "⚠️ La fecha de fin de la serie es anterior al primer turno"
SERIES_CONFLICT_ERROR = "⚠️ Uno de los turnos de la serie se superpone con otro turno. No se reservó ninguno."
INVALID_DATE_ERROR = "⚠️ Fecha u hora inválida"
NOT_CANCELLED_ERROR = "No se pudo cancelar el turno"
ENROLL_SESSION_ERROR = "Seleccioná una clase para inscribir al cliente."
ENROLL_PHONE_ERROR = "Ingresá un teléfono para inscribir en la clase."

ConfirmGate = Callable[[], Awaitable[bool]]


class AppointmentLifecycleManager:
    """
    Turns a booking draft into backend appointments and wraps update/delete.

    Every successful mutation triggers a full calendar reload. Create raises on
    failure (after recording it in ``save_state``); update and delete return a
    MutationResult instead.
    """

    def __init__(
        self,
        backend: BookingBackendPort,
        calendar: CalendarSyncController,
        catalog: ServiceCatalogPort,
        timezone: ZoneInfo,
        now: Callable[[], datetime] | None = None,
        reset_delay: float = 3.0,
    ) -> None:
        self._backend = backend
        self._calendar = calendar
        self._catalog = catalog
        self._timezone = timezone
        self._now = now or (lambda: local_now(timezone))
        self._reset_delay = reset_delay
        self._save_state = BookingSaveState()
        self._reset_task: asyncio.Task[None] | None = None
        self._logger = logging.getLogger(__name__)

    @property
    def save_state(self) -> BookingSaveState:
        return self._save_state

    def prepare(self, draft: BookingDraft) -> BookingRequest:
        """Validate a draft snapshot and build the payload. No network call happens here."""
        try:
            return self._build_request(draft)
        except BookingError as e:
            self._cancel_reset()
            self._save_state = BookingSaveState(error=str(e))
            raise

    async def create(
        self,
        draft: BookingDraft,
        channel: NotificationChannel = NotificationChannel.none,
    ) -> CreateOutcome:
        return await self.submit(self.prepare(draft), channel)

    async def submit(
        self,
        request: BookingRequest,
        channel: NotificationChannel = NotificationChannel.none,
    ) -> CreateOutcome:
        self._cancel_reset()
        if not is_in_future(request.starts_at, self._now()):
            self._save_state = BookingSaveState(error=STALE_SLOT_ERROR)
            raise StaleSlotError(STALE_SLOT_ERROR)

        self._save_state = BookingSaveState(saving=True)
        payload = self._create_payload(request, channel)

        try:
            if request.is_recurring:
                outcome = await self._create_series(request, payload, channel)
            else:
                appointment_id = await self._backend.create_appointment(payload)
                outcome = CreateOutcome(appointment_ids=(appointment_id,), channel=channel.value)
        except BookingError as e:
            self._save_state = BookingSaveState(error=str(e))
            self._logger.warning(
                "Appointment create failed",
                extra={"service_id": request.service_id, "instructor_id": request.instructor_id, "error": str(e)},
            )
            raise

        self._save_state = BookingSaveState(ok=True)
        self._logger.info(
            "Appointment created",
            extra={"appointment_id": ",".join(outcome.appointment_ids), "channel": channel.value},
        )
        await self._calendar.reload()
        self._reset_task = asyncio.ensure_future(self._reset_save_state_later())
        return outcome

    async def update(self, appointment_id: str, patch: Mapping[str, Any]) -> MutationResult:
        body = dict(patch)
        for key in ("starts_at", "ends_at"):
            if not body.get(key):
                body.pop(key, None)
                continue
            normalized = normalize_timestamp(body[key], timezone=self._timezone)
            if not normalized:
                return MutationResult(ok=False, error=INVALID_DATE_ERROR)
            body[key] = normalized

        try:
            await self._backend.update_appointment(appointment_id, body)
        except BackendError as e:
            self._logger.warning("Appointment update failed", extra={"appointment_id": appointment_id, "error": str(e)})
            return MutationResult(ok=False, error=str(e))

        await self._calendar.reload()
        return MutationResult(ok=True)

    async def delete(self, appointment_id: str, confirm: ConfirmGate) -> MutationResult:
        if not await confirm():
            return MutationResult(ok=False, data={"confirmed": False})

        try:
            await self._backend.delete_appointment(appointment_id)
        except BackendError as e:
            self._logger.warning("Appointment delete failed", extra={"appointment_id": appointment_id, "error": str(e)})
            return MutationResult(ok=False, error=str(e))

        self._logger.info("Appointment deleted", extra={"appointment_id": appointment_id})
        await self._calendar.reload()
        return MutationResult(ok=True)

    async def cancel_and_rebook(
        self,
        appointment: Appointment,
        rebook: bool = False,
        custom_text: str | None = None,
    ) -> RebookResult:
        """
        Cancel with a WhatsApp notice to the customer, then optionally book the same
        slot again for the same customer, service and instructor.
        """
        try:
            cancelled = await self._backend.send_reprogram_message(
                appointment.id,
                appointment.customer_phone or "",
                custom_text,
                auto_cancel=True,
            )
        except BackendError as e:
            return RebookResult(ok=False, error=str(e))
        if not cancelled:
            return RebookResult(ok=False, error=NOT_CANCELLED_ERROR)

        self._logger.info("Appointment cancelled with notice", extra={"appointment_id": appointment.id})
        if not rebook:
            await self._calendar.reload()
            return RebookResult(ok=True, cancelled=True)

        payload: dict[str, Any] = {
            "customer_id": appointment.customer_id,
            "customer_name": appointment.customer_name,
            "customer_phone": appointment.customer_phone,
            "service_id": appointment.service_id,
            "instructor_id": appointment.instructor_id,
            "branch_id": appointment.branch_id,
            "starts_at": normalize_timestamp(appointment.starts_at, timezone=self._timezone),
            "ends_at": normalize_timestamp(appointment.ends_at, timezone=self._timezone),
            "status": "scheduled",
            "notification_channel": NotificationChannel.none.value,
        }
        try:
            new_id = await self._backend.create_appointment(_compact(payload))
        except BackendError as e:
            await self._calendar.reload()
            return RebookResult(ok=False, cancelled=True, error=str(e))

        self._logger.info("Appointment rebooked", extra={"appointment_id": new_id})
        await self._calendar.reload()
        return RebookResult(ok=True, cancelled=True, new_appointment_id=new_id)

    async def cancel_series(self, series_id: str, include_past: bool = False, notify: bool = True) -> MutationResult:
        try:
            cancelled = await self._backend.cancel_appointment_series(series_id, include_past, notify)
        except BackendError as e:
            return MutationResult(ok=False, error=str(e))
        await self._calendar.reload()
        return MutationResult(ok=True, data={"cancelled": cancelled})

    async def enroll_in_class(
        self,
        session_id: str,
        customer_name: str | None,
        customer_phone: str,
        notes: str | None = None,
    ) -> MutationResult:
        if not session_id:
            return MutationResult(ok=False, error=ENROLL_SESSION_ERROR)
        if not customer_phone:
            return MutationResult(ok=False, error=ENROLL_PHONE_ERROR)
        try:
            data = await self._backend.create_class_enrollment(
                session_id,
                {"customer_name": customer_name or None, "customer_phone": customer_phone, "notes": notes or None},
            )
        except BackendError as e:
            return MutationResult(ok=False, error=str(e))
        await self._calendar.reload()
        return MutationResult(ok=True, data=data)

    async def close(self) -> None:
        self._cancel_reset()

    def _build_request(self, draft: BookingDraft) -> BookingRequest:
        phone = draft.customer_phone.strip()
        if not draft.customer_id and not PHONE_PATTERN.match(phone):
            raise BookingValidationError(PHONE_FORMAT_ERROR)
        if not draft.selected_slot or not draft.service_id or not draft.instructor_id:
            raise BookingValidationError(INCOMPLETE_DRAFT_ERROR)

        starts_at = normalize_timestamp(draft.selected_slot, reference_date=draft.date, timezone=self._timezone)
        if not starts_at:
            raise BookingValidationError(INVALID_SLOT_ERROR)
        if not is_in_future(starts_at, self._now()):
            raise StaleSlotError(STALE_SLOT_ERROR)

        duration = self._catalog.get_duration_minutes(draft.service_id)
        ends_at = add_minutes(starts_at, duration) if duration else ""

        recurrence = derive_recurrence_spec(draft, starts_at)
        occurrences: tuple[str, ...] = ()
        if recurrence is not None:
            occurrences = tuple(generate_occurrences(recurrence))
            if not occurrences:
                raise BookingValidationError(EMPTY_SERIES_ERROR)

        return BookingRequest(
            service_id=draft.service_id,
            instructor_id=draft.instructor_id,
            branch_id=draft.branch_id,
            starts_at=starts_at,
            ends_at=ends_at,
            duration_min=duration,
            customer_id=draft.customer_id,
            customer_name=draft.customer_name.strip(),
            customer_phone=phone,
            recurrence=recurrence,
            occurrences=occurrences,
        )

    def _create_payload(self, request: BookingRequest, channel: NotificationChannel) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "customer_id": request.customer_id,
            "customer_name": request.customer_name or None,
            "customer_phone": request.customer_phone or None,
            "service_id": request.service_id,
            "instructor_id": request.instructor_id,
            "branch_id": request.branch_id or None,
            "starts_at": request.starts_at,
            "ends_at": request.ends_at or None,
            "duration_min": request.duration_min,
            "status": "scheduled",
            "notification_channel": channel.value,
        }
        if request.recurrence is not None:
            payload["occurrences"] = [
                _compact({
                    "starts_at": start,
                    "ends_at": add_minutes(start, request.duration_min) if request.duration_min else None,
                })
                for start in request.occurrences
            ]
            payload["repeat"] = _compact({
                "interval_days": request.recurrence.interval_days,
                "count": request.recurrence.occurrence_count,
                "until": request.recurrence.until_date.isoformat() if request.recurrence.until_date else None,
            })
        return _compact(payload)

    async def _create_series(
        self,
        request: BookingRequest,
        payload: dict[str, Any],
        channel: NotificationChannel,
    ) -> CreateOutcome:
        creation = await self._backend.create_appointment_series(payload)
        if creation.ok and not creation.conflicts:
            return CreateOutcome(
                appointment_ids=creation.appointment_ids,
                channel=channel.value,
                series_id=creation.series_id,
            )

        # all-or-nothing: undo any occurrence the backend reports as already created
        for appointment_id in creation.appointment_ids:
            try:
                await self._backend.delete_appointment(appointment_id)
            except BackendError as e:
                self._logger.error(
                    "Could not roll back series occurrence",
                    extra={"appointment_id": appointment_id, "error": str(e)},
                )
        raise SeriesConflictError(creation.error or SERIES_CONFLICT_ERROR, conflicts=creation.conflicts)

    def _cancel_reset(self) -> None:
        if self._reset_task is not None and not self._reset_task.done():
            self._reset_task.cancel()
        self._reset_task = None

    async def _reset_save_state_later(self) -> None:
        await asyncio.sleep(self._reset_delay)
        self._save_state = BookingSaveState()


def _compact(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}
