import datetime as dt
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Channel(str, Enum):
    with_payment = "with_payment"
    reminder_only = "reminder_only"
    none = "none"


class DraftSchema(BaseModel):
    service_id: str = ""
    instructor_id: str = ""
    branch_id: str = ""
    date: dt.date | None = None
    selected_slot: str = ""
    customer_id: str | None = None
    customer_name: str = ""
    customer_phone: str = ""
    repeat_enabled: bool = False
    repeat_count: int | None = None
    repeat_until: dt.date | None = None


class DraftPatchSchema(BaseModel):
    service_id: str | None = None
    instructor_id: str | None = None
    branch_id: str | None = None
    date: dt.date | None = None
    selected_slot: str | None = None
    customer_id: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    repeat_enabled: bool | None = None
    repeat_count: int | None = None
    repeat_until: dt.date | None = None


class CustomerSchema(BaseModel):
    id: str
    name: str
    phone: str = ""


class CustomerNameSchema(BaseModel):
    name: str


class CatalogEntrySchema(BaseModel):
    id: str
    name: str
    duration_min: int | None = None
    price: float | None = None
    color_hex: str | None = None


class MetaResponseSchema(BaseModel):
    services: list[CatalogEntrySchema] = Field(default_factory=list)
    instructors: list[CatalogEntrySchema] = Field(default_factory=list)
    branches: list[CatalogEntrySchema] = Field(default_factory=list)
    error: str = ""


class AvailabilityResponseSchema(BaseModel):
    slots: list[str] = Field(default_factory=list)
    busy_slots: list[str] = Field(default_factory=list)
    loading: bool = False
    error: str = ""


class SlotSchema(BaseModel):
    slot: str
    label: str
    state: str


class ConfirmationSchema(BaseModel):
    starts_at: str
    ends_at: str
    service_id: str
    instructor_id: str
    customer_name: str
    customer_phone: str
    occurrences: list[str] = Field(default_factory=list)


class ChannelChoiceSchema(BaseModel):
    channel: Channel


class CreateOutcomeSchema(BaseModel):
    appointment_ids: list[str]
    channel: Channel
    series_id: str | None = None


class SaveStateSchema(BaseModel):
    status: str
    saving: bool
    ok: bool
    error: str = ""


class CalendarEventSchema(BaseModel):
    id: str
    title: str
    start: str
    end: str
    color_hex: str | None = None
    event_type: str
    extended_props: dict[str, Any] = Field(default_factory=dict)


class CalendarResponseSchema(BaseModel):
    state: str
    error: str = ""
    from_iso: str
    to_iso: str
    events: list[CalendarEventSchema] = Field(default_factory=list)


class DateRangeSchema(BaseModel):
    from_iso: str
    to_iso: str


class AppointmentPatchSchema(BaseModel):
    starts_at: str | None = None
    ends_at: str | None = None
    status: str | None = None
    service_id: str | None = None
    instructor_id: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None


class MutationResponseSchema(BaseModel):
    ok: bool
    error: str = ""
    data: dict[str, Any] = Field(default_factory=dict)


class CancelRebookSchema(BaseModel):
    rebook: bool = False
    custom_text: str | None = None


class RebookResponseSchema(BaseModel):
    ok: bool
    cancelled: bool = False
    new_appointment_id: str | None = None
    error: str = ""


class PaymentLinkResponseSchema(BaseModel):
    appointment_id: str
    link: str
