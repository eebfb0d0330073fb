"""Typed views of the application's rows.

Columns use the Parse camelCase names; models expose snake_case attributes
and accept either form, so rows from asyncpg and objects from the Parse REST
API validate the same way.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    object_id: str = Field(alias="objectId")

    @classmethod
    def from_row(cls, row: Any) -> "Record":
        return cls.model_validate(dict(row))


class Offering(Record):
    """A discipline offered by an organization, optionally linked to a preset."""

    custom_name: Optional[str] = Field(default=None, alias="customName")
    preset_id: Optional[str] = Field(default=None, alias="presetId")
    org_id: Optional[str] = Field(default=None, alias="orgId")
    ownership_group_id: Optional[str] = Field(default=None, alias="ownershipGroupId")
    location_id: Optional[str] = Field(default=None, alias="locationId")

    @property
    def name(self) -> str:
        return self.custom_name or ""


class CategoryPreset(Record):
    name: str
    icon: Optional[str] = None


class PriceRecord(Record):
    """A (duration, amount, scope) price attached to a catalog item."""

    price: Decimal = Decimal(0)
    currency: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, alias="durationMinutes")
    item_id: Optional[str] = Field(default=None, alias="itemId")
    org_id: Optional[str] = Field(default=None, alias="orgId")
    ownership_group_id: Optional[str] = Field(default=None, alias="ownershipGroupId")
    location_id: Optional[str] = Field(default=None, alias="locationId")
    staff_id: Optional[str] = Field(default=None, alias="staffId")
    stripe_price_id: Optional[str] = Field(default=None, alias="stripePriceId")

    @property
    def scope(self) -> str:
        """Most specific scope the price applies to."""
        if self.staff_id:
            return "staff"
        if self.location_id:
            return "location"
        if self.ownership_group_id:
            return "ownershipGroup"
        return "org"


class ServiceOffering(Record):
    """A service offering joined with its catalog item."""

    org_id: str = Field(alias="orgId")
    ownership_group_id: Optional[str] = Field(default=None, alias="ownershipGroupId")
    location_id: Optional[str] = Field(default=None, alias="locationId")
    discipline_offering_id: Optional[str] = Field(
        default=None, alias="disciplineOfferingId"
    )
    item_id: str = Field(alias="itemId")
    item_name: str = Field(alias="itemName")
    description: Optional[str] = None
    stripe_product_id: Optional[str] = Field(default=None, alias="stripeProductId")


class Patient(Record):
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    email: Optional[str] = None
    stripe_customer_id: Optional[str] = Field(default=None, alias="stripeCustomerId")

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


def _pointer_id(value: Any) -> Any:
    # Parse pointers and included objects both carry objectId.
    if isinstance(value, dict):
        return value.get("objectId")
    return value


def _parse_date(value: Any) -> Any:
    if isinstance(value, dict) and value.get("__type") == "Date":
        return value.get("iso")
    return value


class Invoice(Record):
    created_at: datetime = Field(alias="createdAt")
    appointment_id: Optional[str] = Field(default=None, alias="appointmentId")
    patient_id: Optional[str] = Field(default=None, alias="patientId")
    stripe_invoice_id: Optional[str] = Field(default=None, alias="stripeInvoiceId")
    total: Optional[int] = None
    status: Optional[str] = None

    @field_validator("appointment_id", "patient_id", mode="before")
    @classmethod
    def _unwrap_pointer(cls, value: Any) -> Any:
        return _pointer_id(value)

    @field_validator("created_at", mode="before")
    @classmethod
    def _unwrap_date(cls, value: Any) -> Any:
        return _parse_date(value)

    @property
    def total_display(self) -> str:
        return f"${(self.total or 0) / 100:.2f}"


class Appointment(Record):
    """An appointment with its service offering and catalog item included."""

    service_offering_id: Optional[str] = None
    item_id: Optional[str] = None
    item_name: Optional[str] = None
    item_price_id: Optional[str] = Field(default=None, alias="itemPriceId")

    @field_validator("item_price_id", mode="before")
    @classmethod
    def _unwrap_pointer(cls, value: Any) -> Any:
        return _pointer_id(value)

    @classmethod
    def from_parse(cls, obj: dict[str, Any]) -> "Appointment":
        offering = obj.get("serviceOfferingId") or {}
        item = offering.get("itemId") if isinstance(offering, dict) else None
        item = item or {}
        return cls.model_validate(
            {
                **obj,
                "service_offering_id": offering.get("objectId"),
                "item_id": item.get("objectId"),
                "item_name": item.get("itemName"),
            }
        )
