"""Scheduling domain schemas - Pydantic models for validation"""

import datetime as dt
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_serializer, field_validator

from ...shared.validators import parse_wall_clock_time

AppointmentStatus = Literal["pending", "confirmed", "cancelled"]


class AppointmentCreate(BaseModel):
    """Schema for booking a new appointment"""

    client_id: str
    service_id: str
    date: dt.date
    time: dt.time
    price: Optional[Decimal] = None

    @field_validator("time", mode="before")
    @classmethod
    def validate_time(cls, v):
        return parse_wall_clock_time(v)

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        if v is not None and v < 0:
            raise ValueError("Price cannot be negative")
        return v


class AppointmentUpdate(BaseModel):
    """Schema for editing an appointment; omitted fields stay as they are"""

    service_id: Optional[str] = None
    date: Optional[dt.date] = None
    time: Optional[dt.time] = None
    price: Optional[Decimal] = None
    status: Optional[AppointmentStatus] = None

    @field_validator("time", mode="before")
    @classmethod
    def validate_time(cls, v):
        if v is None:
            return v
        return parse_wall_clock_time(v)

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        if v is not None and v < 0:
            raise ValueError("Price cannot be negative")
        return v


class ClientSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None


class ServiceSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    duration: Optional[int] = None
    price: Decimal


class AppointmentResponse(BaseModel):
    """Schema for appointment response"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    client_id: str
    service_id: Optional[str]
    service: Optional[str]
    date: dt.date
    time: dt.time
    price: Decimal
    status: str
    google_event_id: Optional[str] = None
    is_synced_to_google: bool
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None
    client: Optional[ClientSummary] = None
    service_details: Optional[ServiceSummary] = None

    @field_serializer("time")
    def serialize_time(self, v: dt.time) -> str:
        return v.strftime("%H:%M")


class AppointmentMutationResponse(BaseModel):
    """Result of a create/update/cancel; warning is set when calendar sync failed"""

    appointment: AppointmentResponse
    synced: bool
    warning: Optional[str] = None


class AppointmentDeleteResponse(BaseModel):
    message: str
    remote_deleted: bool = False
    warning: Optional[str] = None


class BulkResyncResponse(BaseModel):
    total: int
    synced: int
    failed: int
    errors: list[str] = []


class AvailableSlotsResponse(BaseModel):
    slots: dict[str, list[str]]
    service_duration: int
