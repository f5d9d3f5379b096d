from __future__ import annotations

import logging

from booking_engine.application.exceptions import BackendError, BookingError, BookingValidationError
from booking_engine.application.ports.booking_backend import BookingBackendPort
from booking_engine.application.use_cases.appointments import AppointmentLifecycleManager
from booking_engine.application.use_cases.draft_store import BookingDraftStore
from booking_engine.domain.entities.booking_request import BookingRequest, CreateOutcome
from booking_engine.domain.entities.notification import NotificationChannel

PAYMENT_PRICE_ERROR = "El servicio no tiene precio para generar un link de pago"
PAYMENT_PHONE_ERROR = "Falta el teléfono del cliente para generar el link de pago"


class NotificationDispatchWorkflow:
    """
    Confirmation step of a booking: the validated payload waits until the user picks
    one notification channel, then the create call goes out with that channel.
    """

    def __init__(
        self,
        lifecycle: AppointmentLifecycleManager,
        draft_store: BookingDraftStore,
        backend: BookingBackendPort,
    ) -> None:
        self._lifecycle = lifecycle
        self._draft_store = draft_store
        self._backend = backend
        self._status = "collecting_draft"  # "collecting_draft", "pending_channel_choice", "dispatched"
        self._pending: BookingRequest | None = None
        self._last_outcome: CreateOutcome | None = None
        self._payment_links: dict[str, str] = {}
        self._logger = logging.getLogger(__name__)

    @property
    def status(self) -> str:
        return self._status

    @property
    def pending(self) -> BookingRequest | None:
        return self._pending

    @property
    def last_outcome(self) -> CreateOutcome | None:
        return self._last_outcome

    def request_confirmation(self) -> BookingRequest | None:
        """Validate the current draft and open the channel choice. None if validation failed."""
        try:
            request = self._lifecycle.prepare(self._draft_store.draft)
        except BookingError as e:
            self._logger.info("Booking draft rejected", extra={"error": str(e)})
            return None
        self._pending = request
        self._status = "pending_channel_choice"
        return request

    def dismiss(self) -> None:
        self._pending = None
        self._status = "collecting_draft"

    async def choose_channel(self, channel: NotificationChannel | str) -> CreateOutcome | None:
        """
        Issue the create with the chosen channel. The pending payload is cleared whatever
        the outcome; failures are left in the lifecycle manager's save state.
        """
        if self._pending is None or self._status != "pending_channel_choice":
            return None
        channel = NotificationChannel(channel)
        request = self._pending
        try:
            outcome = await self._lifecycle.submit(request, channel)
        except BookingError as e:
            self._logger.warning("Booking dispatch failed", extra={"channel": channel.value, "error": str(e)})
            self._pending = None
            self._status = "collecting_draft"
            return None

        self._pending = None
        self._status = "dispatched"
        self._last_outcome = outcome
        self._draft_store.reset()
        return outcome

    def start_new(self) -> None:
        self._pending = None
        self._last_outcome = None
        self._status = "collecting_draft"

    async def generate_payment_link(self, appointment_id: str, price: float | None, phone: str | None) -> str:
        """
        Payment link for an existing appointment, kept for copy/share. It is never sent
        automatically. Retries return the link already generated for the appointment.
        """
        if not price or price <= 0:
            raise BookingValidationError(PAYMENT_PRICE_ERROR)
        if not phone:
            raise BookingValidationError(PAYMENT_PHONE_ERROR)
        if appointment_id in self._payment_links:
            return self._payment_links[appointment_id]

        link = await self._backend.create_payment_link(appointment_id)
        self._payment_links[appointment_id] = link
        self._logger.info("Payment link generated", extra={"appointment_id": appointment_id})
        return link

    def payment_link_for(self, appointment_id: str) -> str | None:
        return self._payment_links.get(appointment_id)

    async def send_reminder(self, appointment_id: str) -> tuple[bool, str]:
        try:
            await self._backend.send_reminder(appointment_id)
        except BackendError as e:
            return False, str(e)
        self._logger.info("Reminder sent", extra={"appointment_id": appointment_id})
        return True, ""

    async def send_test_message(self, phone: str) -> tuple[bool, str]:
        try:
            await self._backend.send_whatsapp_test(phone)
        except BackendError as e:
            return False, str(e)
        return True, ""
