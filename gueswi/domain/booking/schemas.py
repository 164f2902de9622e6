"""Booking domain schemas - locations, staff, services, appointments and extras"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.validators import validate_email, validate_hhmm

APPOINTMENT_STATUSES = ("pending", "confirmed", "completed", "cancelled", "no_show")
WAITLIST_STATUSES = ("waiting", "contacted", "booked", "cancelled")
TEMPLATE_TYPES = ("confirmation", "reminder", "cancellation", "reschedule")
TEMPLATE_CHANNELS = ("email", "sms", "whatsapp")


def _one_of(v, allowed, label):
    if v is not None and v not in allowed:
        raise ValueError(f"{label} must be one of: {', '.join(allowed)}")
    return v


def _required(v, message):
    if v is None or not v.strip():
        raise ValueError(message)
    return v.strip()


def _optional_email(v):
    if v is None or not v.strip():
        return None
    return validate_email(v)


def _timezone(v):
    if v is None:
        return v
    try:
        ZoneInfo(v)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Invalid timezone: {v}") from e
    return v


def _check_time_range(start, end):
    if start is not None and end is not None and start >= end:
        raise ValueError("startTime must be before endTime")


# ============================================================================
# LOCATIONS
# ============================================================================


class LocationBase(BaseModel):
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postalCode: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    isActive: Optional[bool] = None
    # Validated by the service so errors name the day
    operatingHours: Optional[dict[str, Any]] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return _optional_email(v)


class LocationCreate(LocationBase):
    name: str
    timezone: str = "America/Caracas"

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return _required(v, "Name is required")

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v):
        return _timezone(v)


class LocationUpdate(LocationBase):
    name: Optional[str] = None
    timezone: Optional[str] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return v if v is None else _required(v, "Name is required")

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v):
        return _timezone(v)


class LocationResponse(BaseModel):
    id: str
    tenantId: str
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postalCode: Optional[str] = None
    timezone: str
    phone: Optional[str] = None
    email: Optional[str] = None
    isActive: bool
    operatingHours: dict[str, Any]
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


# ============================================================================
# STAFF
# ============================================================================


class StaffBase(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    color: Optional[str] = None
    isActive: Optional[bool] = None
    schedulesByLocation: Optional[dict[str, Any]] = None
    serviceIds: Optional[list[str]] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return _optional_email(v)


class StaffCreate(StaffBase):
    name: str

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return _required(v, "Name is required")


class StaffUpdate(StaffBase):
    name: Optional[str] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return v if v is None else _required(v, "Name is required")


class StaffServiceResponse(BaseModel):
    id: str
    staffId: str
    serviceId: str
    createdAt: Optional[datetime] = None


class StaffResponse(BaseModel):
    id: str
    tenantId: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    color: Optional[str] = None
    isActive: bool
    schedulesByLocation: dict[str, Any]
    serviceIds: list[str] = []
    staffServices: list[StaffServiceResponse] = []
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


# ============================================================================
# SERVICES
# ============================================================================


class ServiceBase(BaseModel):
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=1)
    bufferTime: Optional[int] = Field(None, ge=0)
    color: Optional[str] = None
    isActive: Optional[bool] = None
    isPublic: Optional[bool] = None


class ServiceCreate(ServiceBase):
    name: str
    duration: int = Field(..., ge=1)
    locationIds: list[str] = []

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return _required(v, "Name is required")


class ServiceUpdate(ServiceBase):
    name: Optional[str] = None
    duration: Optional[int] = Field(None, ge=1)
    locationIds: Optional[list[str]] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        return v if v is None else _required(v, "Name is required")


class ServiceLocationResponse(BaseModel):
    id: str
    serviceId: str
    locationId: str
    createdAt: Optional[datetime] = None


class ServiceResponse(BaseModel):
    id: str
    tenantId: str
    name: str
    description: Optional[str] = None
    duration: int
    price: Optional[Decimal] = None
    currency: Optional[str] = None
    capacity: int
    bufferTime: int
    color: Optional[str] = None
    isActive: bool
    isPublic: bool
    serviceLocations: list[ServiceLocationResponse] = []
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class ServiceLocationCreate(BaseModel):
    serviceId: str
    locationId: str


class StaffServiceCreate(BaseModel):
    staffId: str
    serviceId: str


# ============================================================================
# AVAILABILITY
# ============================================================================


class AvailabilityRuleCreate(BaseModel):
    staffId: str
    locationId: Optional[str] = None
    dayOfWeek: int = Field(..., ge=0, le=6)
    startTime: str
    endTime: str
    isActive: bool = True

    @field_validator("startTime", "endTime")
    @classmethod
    def check_time(cls, v):
        return validate_hhmm(v)

    @model_validator(mode="after")
    def check_range(self):
        _check_time_range(self.startTime, self.endTime)
        return self


class AvailabilityRuleUpdate(BaseModel):
    locationId: Optional[str] = None
    dayOfWeek: Optional[int] = Field(None, ge=0, le=6)
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    isActive: Optional[bool] = None

    @field_validator("startTime", "endTime")
    @classmethod
    def check_time(cls, v):
        return v if v is None else validate_hhmm(v)


class AvailabilityRuleResponse(BaseModel):
    id: str
    tenantId: str
    staffId: str
    locationId: Optional[str] = None
    dayOfWeek: int
    startTime: str
    endTime: str
    isActive: bool
    createdAt: Optional[datetime] = None


class AvailabilityExceptionCreate(BaseModel):
    staffId: str
    date: datetime
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    isAvailable: bool = False
    reason: Optional[str] = None

    @field_validator("startTime", "endTime")
    @classmethod
    def check_time(cls, v):
        return v if v is None else validate_hhmm(v)

    @model_validator(mode="after")
    def check_range(self):
        _check_time_range(self.startTime, self.endTime)
        return self


class AvailabilityExceptionUpdate(BaseModel):
    date: Optional[datetime] = None
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    isAvailable: Optional[bool] = None
    reason: Optional[str] = None

    @field_validator("startTime", "endTime")
    @classmethod
    def check_time(cls, v):
        return v if v is None else validate_hhmm(v)


class AvailabilityExceptionResponse(BaseModel):
    id: str
    tenantId: str
    staffId: str
    date: datetime
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    isAvailable: bool
    reason: Optional[str] = None
    createdAt: Optional[datetime] = None


# ============================================================================
# APPOINTMENTS
# ============================================================================


class AppointmentCreate(BaseModel):
    serviceId: str
    staffId: str
    locationId: str
    customerName: str
    customerEmail: Optional[str] = None
    customerPhone: Optional[str] = None
    startTime: datetime
    # Defaults to startTime + service duration
    endTime: Optional[datetime] = None
    status: str = "pending"
    notes: Optional[str] = None

    @field_validator("customerName")
    @classmethod
    def check_name(cls, v):
        return _required(v, "Customer name is required")

    @field_validator("customerEmail")
    @classmethod
    def check_email(cls, v):
        return _optional_email(v)

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return _one_of(v, APPOINTMENT_STATUSES, "Status")


class AppointmentUpdate(BaseModel):
    serviceId: Optional[str] = None
    staffId: Optional[str] = None
    locationId: Optional[str] = None
    customerName: Optional[str] = None
    customerEmail: Optional[str] = None
    customerPhone: Optional[str] = None
    startTime: Optional[datetime] = None
    endTime: Optional[datetime] = None
    status: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("customerName")
    @classmethod
    def check_name(cls, v):
        return v if v is None else _required(v, "Customer name is required")

    @field_validator("customerEmail")
    @classmethod
    def check_email(cls, v):
        return _optional_email(v)

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return _one_of(v, APPOINTMENT_STATUSES, "Status")


class PublicAppointmentCreate(BaseModel):
    tenantId: Optional[str] = None
    serviceId: Optional[str] = None
    staffId: Optional[str] = None
    locationId: Optional[str] = None
    customerName: str
    customerEmail: Optional[str] = None
    customerPhone: Optional[str] = None
    startTime: datetime
    endTime: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator("customerName")
    @classmethod
    def check_name(cls, v):
        return _required(v, "Customer name is required")

    @field_validator("customerEmail")
    @classmethod
    def check_email(cls, v):
        return _optional_email(v)


class AppointmentResponse(BaseModel):
    id: str
    tenantId: str
    serviceId: str
    staffId: str
    locationId: str
    customerName: str
    customerEmail: Optional[str] = None
    customerPhone: Optional[str] = None
    startTime: datetime
    endTime: datetime
    timezone: Optional[str] = None
    status: str
    notes: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class AppointmentStats(BaseModel):
    total: int
    pending: int
    confirmed: int
    completed: int
    cancelled: int
    noShow: int


# ============================================================================
# WAITLIST / NOTIFICATION TEMPLATES
# ============================================================================


class WaitlistCreate(BaseModel):
    serviceId: Optional[str] = None
    staffId: Optional[str] = None
    customerName: str
    customerEmail: Optional[str] = None
    customerPhone: Optional[str] = None
    preferredDate: Optional[datetime] = None
    notes: Optional[str] = None
    status: str = "waiting"

    @field_validator("customerName")
    @classmethod
    def check_name(cls, v):
        return _required(v, "Customer name is required")

    @field_validator("customerEmail")
    @classmethod
    def check_email(cls, v):
        return _optional_email(v)

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return _one_of(v, WAITLIST_STATUSES, "Status")


class WaitlistUpdate(BaseModel):
    serviceId: Optional[str] = None
    staffId: Optional[str] = None
    customerName: Optional[str] = None
    customerEmail: Optional[str] = None
    customerPhone: Optional[str] = None
    preferredDate: Optional[datetime] = None
    notes: Optional[str] = None
    status: Optional[str] = None

    @field_validator("customerEmail")
    @classmethod
    def check_email(cls, v):
        return _optional_email(v)

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        return _one_of(v, WAITLIST_STATUSES, "Status")


class WaitlistResponse(BaseModel):
    id: str
    tenantId: str
    serviceId: Optional[str] = None
    staffId: Optional[str] = None
    customerName: str
    customerEmail: Optional[str] = None
    customerPhone: Optional[str] = None
    preferredDate: Optional[datetime] = None
    notes: Optional[str] = None
    status: str
    createdAt: Optional[datetime] = None


class TemplateCreate(BaseModel):
    type: str
    channel: str
    subject: Optional[str] = None
    body: str
    isActive: bool = True

    @field_validator("type")
    @classmethod
    def check_type(cls, v):
        return _one_of(v, TEMPLATE_TYPES, "Type")

    @field_validator("channel")
    @classmethod
    def check_channel(cls, v):
        return _one_of(v, TEMPLATE_CHANNELS, "Channel")

    @field_validator("body")
    @classmethod
    def check_body(cls, v):
        return _required(v, "Body is required")


class TemplateUpdate(BaseModel):
    type: Optional[str] = None
    channel: Optional[str] = None
    subject: Optional[str] = None
    body: Optional[str] = None
    isActive: Optional[bool] = None

    @field_validator("type")
    @classmethod
    def check_type(cls, v):
        return _one_of(v, TEMPLATE_TYPES, "Type")

    @field_validator("channel")
    @classmethod
    def check_channel(cls, v):
        return _one_of(v, TEMPLATE_CHANNELS, "Channel")


class TemplateResponse(BaseModel):
    id: str
    tenantId: str
    type: str
    channel: str
    subject: Optional[str] = None
    body: str
    isActive: bool
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
