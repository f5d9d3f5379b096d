import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import ValidationError

from booking_engine.api.v1.schemas import (
    AppointmentPatchSchema,
    AvailabilityResponseSchema,
    CalendarEventSchema,
    CalendarResponseSchema,
    CancelRebookSchema,
    CatalogEntrySchema,
    ChannelChoiceSchema,
    ConfirmationSchema,
    CreateOutcomeSchema,
    CustomerNameSchema,
    CustomerSchema,
    DateRangeSchema,
    DraftPatchSchema,
    DraftSchema,
    MetaResponseSchema,
    MutationResponseSchema,
    PaymentLinkResponseSchema,
    RebookResponseSchema,
    SaveStateSchema,
    SlotSchema,
)
from booking_engine.application.dto.backend_records import AppointmentDTO
from booking_engine.application.exceptions import BackendError, BookingValidationError
from booking_engine.application.use_cases.booking_session import BookingSession
from booking_engine.domain.entities.appointment import Appointment
from booking_engine.domain.entities.booking_draft import BookingDraft
from booking_engine.domain.entities.calendar_event import DateRange
from booking_engine.domain.entities.catalog import Customer
from booking_engine.domain.entities.notification import NotificationChannel

router = APIRouter()
logger = logging.getLogger(__name__)

_TEXT_FIELDS = {"service_id", "instructor_id", "branch_id", "selected_slot", "customer_name", "customer_phone"}


def get_session(request: Request) -> BookingSession:
    return request.app.state.booking_session


def _draft_schema(draft: BookingDraft) -> DraftSchema:
    return DraftSchema(**asdict(draft))


def _save_state_schema(session: BookingSession) -> SaveStateSchema:
    state = session.appointments.save_state
    return SaveStateSchema(status=state.status, saving=state.saving, ok=state.ok, error=state.error)


def _find_appointment(session: BookingSession, appointment_id: str) -> Appointment:
    for event in session.calendar.events:
        if event.event_type == "appointment" and event.id == appointment_id:
            props = {k: v for k, v in event.extended_props.items() if k != "event_type"}
            try:
                return AppointmentDTO.model_validate(props).to_entity(props)
            except ValidationError as e:
                logger.warning("Calendar event is not a valid appointment", extra={"appointment_id": appointment_id, "error": str(e)})
                break
    raise HTTPException(status_code=404, detail="Turno no encontrado")


@router.get("/meta", response_model=MetaResponseSchema)
async def get_meta(session: BookingSession = Depends(get_session)):
    return MetaResponseSchema(
        services=[CatalogEntrySchema(**asdict(s)) for s in session.catalog.services()],
        instructors=[CatalogEntrySchema(**asdict(i)) for i in session.catalog.instructors()],
        branches=[CatalogEntrySchema(**asdict(b)) for b in session.catalog.branches()],
        error=session.meta_error,
    )


@router.get("/draft", response_model=DraftSchema)
async def get_draft(session: BookingSession = Depends(get_session)):
    return _draft_schema(session.drafts.draft)


@router.patch("/draft", response_model=DraftSchema)
async def update_draft(patch: DraftPatchSchema, session: BookingSession = Depends(get_session)):
    changes = patch.model_dump(exclude_unset=True)
    for key in _TEXT_FIELDS & set(changes):
        if changes[key] is None:
            changes[key] = ""
    repeat_enabled = changes.pop("repeat_enabled", None)

    draft = session.update_draft(changes)
    if repeat_enabled is not None:
        draft = session.drafts.set_repeat_enabled(repeat_enabled)
    return _draft_schema(draft)


@router.post("/draft/customer", response_model=DraftSchema)
async def select_customer(customer: CustomerSchema, session: BookingSession = Depends(get_session)):
    draft = session.select_customer(Customer(id=customer.id, name=customer.name, phone=customer.phone))
    return _draft_schema(draft)


@router.post("/draft/customer-name", response_model=list[CustomerSchema])
async def type_customer_name(body: CustomerNameSchema, session: BookingSession = Depends(get_session)):
    suggestions = await session.type_customer_name(body.name)
    return [CustomerSchema(id=c.id, name=c.name, phone=c.phone) for c in suggestions]


@router.post("/availability", response_model=AvailabilityResponseSchema)
async def load_availability(session: BookingSession = Depends(get_session)):
    result = await session.load_availability()
    return AvailabilityResponseSchema(
        slots=list(result.slots),
        busy_slots=sorted(result.busy_slots),
        loading=result.loading,
        error=result.error,
    )


@router.get("/availability/slots", response_model=list[SlotSchema])
async def slot_grid(session: BookingSession = Depends(get_session)):
    views = session.availability.slot_grid(session.drafts.draft.selected_slot)
    return [SlotSchema(slot=v.slot, label=v.label, state=v.state) for v in views]


@router.post("/confirmation", response_model=ConfirmationSchema)
async def request_confirmation(session: BookingSession = Depends(get_session)):
    request = session.dispatch.request_confirmation()
    if request is None:
        raise HTTPException(status_code=400, detail=session.appointments.save_state.error)
    return ConfirmationSchema(
        starts_at=request.starts_at,
        ends_at=request.ends_at,
        service_id=request.service_id,
        instructor_id=request.instructor_id,
        customer_name=request.customer_name,
        customer_phone=request.customer_phone,
        occurrences=list(request.occurrences),
    )


@router.delete("/confirmation", status_code=204)
async def dismiss_confirmation(session: BookingSession = Depends(get_session)):
    session.dispatch.dismiss()


@router.post("/confirmation/channel", response_model=CreateOutcomeSchema)
async def choose_channel(body: ChannelChoiceSchema, session: BookingSession = Depends(get_session)):
    if session.dispatch.status != "pending_channel_choice":
        raise HTTPException(status_code=409, detail="No hay un turno pendiente de confirmación")
    outcome = await session.dispatch.choose_channel(NotificationChannel(body.channel.value))
    if outcome is None:
        raise HTTPException(status_code=400, detail=session.appointments.save_state.error)
    return CreateOutcomeSchema(
        appointment_ids=list(outcome.appointment_ids),
        channel=outcome.channel,
        series_id=outcome.series_id,
    )


@router.get("/save-state", response_model=SaveStateSchema)
async def get_save_state(session: BookingSession = Depends(get_session)):
    return _save_state_schema(session)


@router.get("/calendar", response_model=CalendarResponseSchema)
async def get_calendar(
    instructor_id: str | None = Query(None),
    session: BookingSession = Depends(get_session),
):
    calendar = session.calendar
    return CalendarResponseSchema(
        state=calendar.state,
        error=calendar.error,
        from_iso=calendar.date_range.from_iso,
        to_iso=calendar.date_range.to_iso,
        events=[CalendarEventSchema(**asdict(e)) for e in calendar.events_for_instructor(instructor_id)],
    )


@router.put("/calendar/range", response_model=DateRangeSchema)
async def set_calendar_range(body: DateRangeSchema, session: BookingSession = Depends(get_session)):
    session.calendar.set_range(DateRange(from_iso=body.from_iso, to_iso=body.to_iso))
    return body


@router.patch("/appointments/{appointment_id}", response_model=MutationResponseSchema)
async def update_appointment(
    appointment_id: str,
    patch: AppointmentPatchSchema,
    session: BookingSession = Depends(get_session),
):
    result = await session.appointments.update(appointment_id, patch.model_dump(exclude_none=True))
    return MutationResponseSchema(ok=result.ok, error=result.error, data=result.data)


@router.delete("/appointments/{appointment_id}", response_model=MutationResponseSchema)
async def delete_appointment(
    appointment_id: str,
    confirmed: bool = Query(False),
    session: BookingSession = Depends(get_session),
):
    async def confirm() -> bool:
        return confirmed

    result = await session.appointments.delete(appointment_id, confirm)
    return MutationResponseSchema(ok=result.ok, error=result.error, data=result.data)


@router.post("/appointments/{appointment_id}/cancel-rebook", response_model=RebookResponseSchema)
async def cancel_and_rebook(
    appointment_id: str,
    body: CancelRebookSchema,
    session: BookingSession = Depends(get_session),
):
    appointment = _find_appointment(session, appointment_id)
    result = await session.appointments.cancel_and_rebook(appointment, rebook=body.rebook, custom_text=body.custom_text)
    return RebookResponseSchema(**asdict(result))


@router.post("/appointments/{appointment_id}/payment-link", response_model=PaymentLinkResponseSchema)
async def payment_link(appointment_id: str, session: BookingSession = Depends(get_session)):
    appointment = _find_appointment(session, appointment_id)
    price = session.catalog.get_price(appointment.service_id or "")
    try:
        link = await session.dispatch.generate_payment_link(appointment_id, price, appointment.customer_phone)
    except BookingValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BackendError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return PaymentLinkResponseSchema(appointment_id=appointment_id, link=link)
