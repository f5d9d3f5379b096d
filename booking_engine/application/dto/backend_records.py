"""
Backend record shapes. Every field alias the backend has used over time is
resolved here, once, so the rest of the engine sees a single canonical name.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from booking_engine.domain.entities.appointment import Appointment, ClassSession
from booking_engine.domain.entities.catalog import Branch, Customer, Instructor, Service


def _aliases(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class _Record(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("*", mode="before")
    @classmethod
    def _ids_as_strings(cls, value: Any, info: Any) -> Any:
        if info.field_name.endswith("id") and isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value))
        return value


class ServiceDTO(_Record):
    id: str
    name: str = ""
    duration_min: int | None = Field(default=None, validation_alias=_aliases("duration_min", "durationMin"))
    price: float | None = Field(default=None, validation_alias=_aliases("price", "price_decimal", "priceDecimal"))
    color_hex: str | None = Field(default=None, validation_alias=_aliases("color_hex", "colorHex"))

    def to_entity(self) -> Service:
        return Service(
            id=self.id,
            name=self.name,
            duration_min=self.duration_min,
            price=self.price,
            color_hex=self.color_hex,
        )


class InstructorDTO(_Record):
    id: str
    name: str = ""
    color_hex: str | None = Field(default=None, validation_alias=_aliases("color_hex", "colorHex"))

    def to_entity(self) -> Instructor:
        return Instructor(id=self.id, name=self.name, color_hex=(self.color_hex or "").strip() or None)


class BranchDTO(_Record):
    id: str
    name: str = ""

    def to_entity(self) -> Branch:
        return Branch(id=self.id, name=self.name)


class CustomerDTO(_Record):
    id: str
    name: str = ""
    phone: str = Field(default="", validation_alias=_aliases("phone", "phone_e164", "customer_phone", "phoneE164"))

    def to_entity(self) -> Customer:
        return Customer(id=self.id, name=self.name or "", phone=self.phone or "")


class AppointmentDTO(_Record):
    id: str
    starts_at: str = Field(validation_alias=_aliases("starts_at", "startsAt"))
    ends_at: str = Field(default="", validation_alias=_aliases("ends_at", "endsAt"))
    customer_name: str | None = Field(default=None, validation_alias=_aliases("customer_name", "customerName"))
    customer_phone: str | None = Field(
        default=None,
        validation_alias=_aliases("phone_e164", "customer_phone", "customerPhone"),
    )
    customer_id: str | None = Field(default=None, validation_alias=_aliases("customer_id", "customerId"))
    service_id: str | None = Field(default=None, validation_alias=_aliases("service_id", "serviceId"))
    service_name: str | None = Field(default=None, validation_alias=_aliases("service_name", "serviceName"))
    instructor_id: str | None = Field(
        default=None,
        validation_alias=_aliases("instructor_id", "instructorId", "stylist_id", "stylistId"),
    )
    instructor_name: str | None = Field(
        default=None,
        validation_alias=_aliases("instructor_name", "instructorName", "stylist_name", "stylistName"),
    )
    branch_id: str | None = Field(default=None, validation_alias=_aliases("branch_id", "branchId"))
    status: str = "scheduled"
    color_hex: str | None = Field(default=None, validation_alias=_aliases("color_hex", "colorHex"))
    series_id: str | None = Field(default=None, validation_alias=_aliases("series_id", "seriesId"))
    payment_id: str | None = Field(
        default=None,
        validation_alias=_aliases("mp_payment_id", "mp_paymentId", "payment_id"),
    )
    payment_status: str | None = Field(
        default=None,
        validation_alias=_aliases("mp_payment_status", "payment_status"),
    )

    @field_validator("ends_at", mode="before")
    @classmethod
    def _ends_at_default(cls, value: Any) -> Any:
        return value or ""

    @field_validator("status", mode="before")
    @classmethod
    def _status_default(cls, value: Any) -> Any:
        return value or "scheduled"

    def to_entity(self, raw: dict[str, Any]) -> Appointment:
        return Appointment(**self.model_dump(), raw=dict(raw))


class ClassSessionDTO(_Record):
    id: str
    starts_at: str = Field(validation_alias=_aliases("starts_at", "startsAt"))
    ends_at: str = Field(default="", validation_alias=_aliases("ends_at", "endsAt"))
    activity_type: str | None = Field(default=None, validation_alias=_aliases("activity_type", "activityType"))
    instructor_id: str | None = Field(
        default=None,
        validation_alias=_aliases("instructor_id", "instructorId", "stylist_id", "stylistId"),
    )
    instructor_name: str | None = Field(
        default=None,
        validation_alias=_aliases("instructor_name", "instructorName", "stylist_name", "stylistName"),
    )
    status: str = "scheduled"
    enrolled_count: int = Field(default=0, validation_alias=_aliases("enrolled_count", "enrolledCount"))
    capacity_max: int | None = Field(default=None, validation_alias=_aliases("capacity_max", "capacityMax"))

    @field_validator("enrolled_count", mode="before")
    @classmethod
    def _enrolled_default(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("status", mode="before")
    @classmethod
    def _status_default(cls, value: Any) -> Any:
        return value or "scheduled"

    def to_entity(self, raw: dict[str, Any]) -> ClassSession:
        return ClassSession(**self.model_dump(), raw=dict(raw))
