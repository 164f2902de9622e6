"""Booking router - calendar management and the public booking endpoints"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...auth import get_tenant_user
from ...database import get_db
from ...models import User
from ...models_booking import (
    Appointment,
    AvailabilityException,
    AvailabilityRule,
    Location,
    NotificationTemplate,
    Service,
    ServiceLocation,
    StaffMember,
    StaffService,
    WaitlistEntry,
)
from ...rate_limiter import create_rate_limiter
from ...shared.validators import parse_date_param
from .schemas import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentStats,
    AppointmentUpdate,
    AvailabilityExceptionCreate,
    AvailabilityExceptionResponse,
    AvailabilityExceptionUpdate,
    AvailabilityRuleCreate,
    AvailabilityRuleResponse,
    AvailabilityRuleUpdate,
    LocationCreate,
    LocationResponse,
    LocationUpdate,
    PublicAppointmentCreate,
    ServiceCreate,
    ServiceLocationCreate,
    ServiceLocationResponse,
    ServiceResponse,
    ServiceUpdate,
    StaffCreate,
    StaffResponse,
    StaffServiceCreate,
    StaffServiceResponse,
    StaffUpdate,
    TemplateCreate,
    TemplateResponse,
    TemplateUpdate,
    WaitlistCreate,
    WaitlistResponse,
    WaitlistUpdate,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Booking"])

public_booking_rate_limit = create_rate_limiter(
    limit=20, window_seconds=3600, key_prefix="public_booking"
)


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


def parse_range(start: Optional[str], end: Optional[str]):
    try:
        return parse_date_param(start), parse_date_param(end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail="Invalid date format") from e


# ============================================================================
# RESPONSE BUILDERS
# ============================================================================


def location_response(location: Location) -> LocationResponse:
    return LocationResponse(
        id=location.id,
        tenantId=location.tenant_id,
        name=location.name,
        address=location.address,
        city=location.city,
        state=location.state,
        country=location.country,
        postalCode=location.postal_code,
        timezone=location.timezone,
        phone=location.phone,
        email=location.email,
        isActive=location.is_active,
        operatingHours=location.operating_hours or {},
        createdAt=location.created_at,
        updatedAt=location.updated_at,
    )


def staff_service_response(link: StaffService) -> StaffServiceResponse:
    return StaffServiceResponse(
        id=link.id, staffId=link.staff_id, serviceId=link.service_id, createdAt=link.created_at
    )


def staff_response(staff: StaffMember, links: Optional[list[StaffService]] = None) -> StaffResponse:
    links = links or []
    return StaffResponse(
        id=staff.id,
        tenantId=staff.tenant_id,
        name=staff.name,
        email=staff.email,
        phone=staff.phone,
        role=staff.role,
        color=staff.color,
        isActive=staff.is_active,
        schedulesByLocation=staff.schedules_by_location or {},
        serviceIds=[link.service_id for link in links],
        staffServices=[staff_service_response(link) for link in links],
        createdAt=staff.created_at,
        updatedAt=staff.updated_at,
    )


def service_location_response(link: ServiceLocation) -> ServiceLocationResponse:
    return ServiceLocationResponse(
        id=link.id, serviceId=link.service_id, locationId=link.location_id, createdAt=link.created_at
    )


def service_response(service: Service, links: Optional[list[ServiceLocation]] = None) -> ServiceResponse:
    return ServiceResponse(
        id=service.id,
        tenantId=service.tenant_id,
        name=service.name,
        description=service.description,
        duration=service.duration,
        price=service.price,
        currency=service.currency,
        capacity=service.capacity,
        bufferTime=service.buffer_time,
        color=service.color,
        isActive=service.is_active,
        isPublic=service.is_public,
        serviceLocations=[service_location_response(link) for link in links or []],
        createdAt=service.created_at,
        updatedAt=service.updated_at,
    )


def rule_response(rule: AvailabilityRule) -> AvailabilityRuleResponse:
    return AvailabilityRuleResponse(
        id=rule.id,
        tenantId=rule.tenant_id,
        staffId=rule.staff_id,
        locationId=rule.location_id,
        dayOfWeek=rule.day_of_week,
        startTime=rule.start_time,
        endTime=rule.end_time,
        isActive=rule.is_active,
        createdAt=rule.created_at,
    )


def exception_response(exception: AvailabilityException) -> AvailabilityExceptionResponse:
    return AvailabilityExceptionResponse(
        id=exception.id,
        tenantId=exception.tenant_id,
        staffId=exception.staff_id,
        date=exception.date,
        startTime=exception.start_time,
        endTime=exception.end_time,
        isAvailable=exception.is_available,
        reason=exception.reason,
        createdAt=exception.created_at,
    )


def appointment_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        tenantId=appointment.tenant_id,
        serviceId=appointment.service_id,
        staffId=appointment.staff_id,
        locationId=appointment.location_id,
        customerName=appointment.customer_name,
        customerEmail=appointment.customer_email,
        customerPhone=appointment.customer_phone,
        startTime=appointment.start_time,
        endTime=appointment.end_time,
        timezone=appointment.timezone,
        status=appointment.status,
        notes=appointment.notes,
        createdAt=appointment.created_at,
        updatedAt=appointment.updated_at,
    )


def waitlist_response(entry: WaitlistEntry) -> WaitlistResponse:
    return WaitlistResponse(
        id=entry.id,
        tenantId=entry.tenant_id,
        serviceId=entry.service_id,
        staffId=entry.staff_id,
        customerName=entry.customer_name,
        customerEmail=entry.customer_email,
        customerPhone=entry.customer_phone,
        preferredDate=entry.preferred_date,
        notes=entry.notes,
        status=entry.status,
        createdAt=entry.created_at,
    )


def template_response(template: NotificationTemplate) -> TemplateResponse:
    return TemplateResponse(
        id=template.id,
        tenantId=template.tenant_id,
        type=template.type,
        channel=template.channel,
        subject=template.subject,
        body=template.body,
        isActive=template.is_active,
        createdAt=template.created_at,
        updatedAt=template.updated_at,
    )


# ============================================================================
# LOCATIONS
# ============================================================================


@router.get("/calendar/locations", response_model=list[LocationResponse])
async def list_locations(
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return [location_response(loc) for loc in service.list_locations(user)]


@router.post("/calendar/locations", response_model=LocationResponse)
async def create_location(
    data: LocationCreate,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return location_response(service.create_location(user, data))


@router.patch("/calendar/locations/{location_id}", response_model=LocationResponse)
async def update_location(
    location_id: str,
    data: LocationUpdate,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return location_response(service.update_location(user, location_id, data))


@router.delete("/calendar/locations/{location_id}")
async def delete_location(
    location_id: str,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return service.delete_location(user, location_id)


# ============================================================================
# STAFF
# ============================================================================


@router.get("/calendar/staff", response_model=list[StaffResponse])
async def list_staff(
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return [staff_response(member, links) for member, links in service.list_staff(user)]


@router.post("/calendar/staff", response_model=StaffResponse)
async def create_staff(
    data: StaffCreate,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    staff = service.create_staff(user, data)
    return staff_response(staff, service.staff_links(user, staff))


@router.patch("/calendar/staff/{staff_id}", response_model=StaffResponse)
async def update_staff(
    staff_id: str,
    data: StaffUpdate,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    staff = service.update_staff(user, staff_id, data)
    return staff_response(staff, service.staff_links(user, staff))


@router.delete("/calendar/staff/{staff_id}")
async def delete_staff(
    staff_id: str,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return service.delete_staff(user, staff_id)


# ============================================================================
# SERVICES
# ============================================================================


@router.get("/calendar/services", response_model=list[ServiceResponse])
async def list_services(
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return [service_response(item, links) for item, links in service.list_services(user)]


@router.post("/calendar/services", response_model=ServiceResponse)
async def create_service(
    data: ServiceCreate,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    item = service.create_service(user, data)
    return service_response(item, service.service_links(user, item))


@router.patch("/calendar/services/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: str,
    data: ServiceUpdate,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    item = service.update_service(user, service_id, data)
    return service_response(item, service.service_links(user, item))


@router.delete("/calendar/services/{service_id}")
async def delete_service(
    service_id: str,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return service.delete_service(user, service_id)


# ============================================================================
# LINK TABLES
# ============================================================================


@router.get("/service-locations", response_model=list[ServiceLocationResponse])
async def list_service_locations(
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return [service_location_response(link) for link in service.list_service_locations(user)]


@router.post("/service-locations", response_model=ServiceLocationResponse)
async def create_service_location(
    data: ServiceLocationCreate,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return service_location_response(service.create_service_location(user, data))


@router.delete("/service-locations/{link_id}")
async def delete_service_location(
    link_id: str,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return service.delete_service_location(user, link_id)


@router.get("/staff-services", response_model=list[StaffServiceResponse])
async def list_staff_services(
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return [staff_service_response(link) for link in service.list_staff_services(user)]


@router.post("/staff-services", response_model=StaffServiceResponse)
async def create_staff_service(
    data: StaffServiceCreate,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return staff_service_response(service.create_staff_service(user, data))


@router.delete("/staff-services/{link_id}")
async def delete_staff_service(
    link_id: str,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return service.delete_staff_service(user, link_id)


# ============================================================================
# AVAILABILITY
# ============================================================================


@router.get("/availability-rules", response_model=list[AvailabilityRuleResponse])
async def list_availability_rules(
    staffId: Optional[str] = None,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return [rule_response(rule) for rule in service.list_rules(user, staffId)]


@router.post("/availability-rules", response_model=AvailabilityRuleResponse)
async def create_availability_rule(
    data: AvailabilityRuleCreate,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return rule_response(service.create_rule(user, data))


@router.patch("/availability-rules/{rule_id}", response_model=AvailabilityRuleResponse)
async def update_availability_rule(
    rule_id: str,
    data: AvailabilityRuleUpdate,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return rule_response(service.update_rule(user, rule_id, data))


@router.delete("/availability-rules/{rule_id}")
async def delete_availability_rule(
    rule_id: str,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return service.delete_rule(user, rule_id)


@router.get("/availability-exceptions", response_model=list[AvailabilityExceptionResponse])
async def list_availability_exceptions(
    staffId: Optional[str] = None,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return [exception_response(e) for e in service.list_exceptions(user, staffId)]


@router.post("/availability-exceptions", response_model=AvailabilityExceptionResponse)
async def create_availability_exception(
    data: AvailabilityExceptionCreate,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return exception_response(service.create_exception(user, data))


@router.patch("/availability-exceptions/{exception_id}", response_model=AvailabilityExceptionResponse)
async def update_availability_exception(
    exception_id: str,
    data: AvailabilityExceptionUpdate,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return exception_response(service.update_exception(user, exception_id, data))


@router.delete("/availability-exceptions/{exception_id}")
async def delete_availability_exception(
    exception_id: str,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return service.delete_exception(user, exception_id)


# ============================================================================
# APPOINTMENTS
# ============================================================================


@router.get("/appointments", response_model=list[AppointmentResponse])
async def list_appointments(
    start: Optional[str] = None,
    end: Optional[str] = None,
    staffId: Optional[str] = None,
    serviceId: Optional[str] = None,
    status: Optional[str] = None,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    range_start, range_end = parse_range(start, end)
    appointments = service.list_appointments(user, range_start, range_end, staffId, serviceId, status)
    return [appointment_response(a) for a in appointments]


@router.get("/appointments/stats", response_model=AppointmentStats)
async def appointment_stats(
    start: Optional[str] = None,
    end: Optional[str] = None,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    range_start, range_end = parse_range(start, end)
    return service.appointment_stats(user, range_start, range_end)


@router.post("/appointments", response_model=AppointmentResponse)
async def create_appointment(
    data: AppointmentCreate,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return appointment_response(service.create_appointment(user, data))


@router.patch("/appointments/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: str,
    data: AppointmentUpdate,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return appointment_response(service.update_appointment(user, appointment_id, data))


@router.delete("/appointments/{appointment_id}")
async def delete_appointment(
    appointment_id: str,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return service.delete_appointment(user, appointment_id)


# ============================================================================
# WAITLIST / NOTIFICATION TEMPLATES
# ============================================================================


@router.get("/waitlist", response_model=list[WaitlistResponse])
async def list_waitlist(
    status: Optional[str] = None,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return [waitlist_response(entry) for entry in service.list_waitlist(user, status)]


@router.post("/waitlist", response_model=WaitlistResponse)
async def create_waitlist_entry(
    data: WaitlistCreate,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return waitlist_response(service.create_waitlist_entry(user, data))


@router.patch("/waitlist/{entry_id}", response_model=WaitlistResponse)
async def update_waitlist_entry(
    entry_id: str,
    data: WaitlistUpdate,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return waitlist_response(service.update_waitlist_entry(user, entry_id, data))


@router.delete("/waitlist/{entry_id}")
async def delete_waitlist_entry(
    entry_id: str,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return service.delete_waitlist_entry(user, entry_id)


@router.get("/notification-templates", response_model=list[TemplateResponse])
async def list_notification_templates(
    type: Optional[str] = None,
    channel: Optional[str] = None,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return [template_response(t) for t in service.list_templates(user, type, channel)]


@router.post("/notification-templates", response_model=TemplateResponse)
async def create_notification_template(
    data: TemplateCreate,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return template_response(service.create_template(user, data))


@router.patch("/notification-templates/{template_id}", response_model=TemplateResponse)
async def update_notification_template(
    template_id: str,
    data: TemplateUpdate,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return template_response(service.update_template(user, template_id, data))


@router.delete("/notification-templates/{template_id}")
async def delete_notification_template(
    template_id: str,
    user: User = Depends(get_tenant_user),
    service: BookingService = Depends(get_booking_service),
):
    return service.delete_template(user, template_id)


# ============================================================================
# PUBLIC BOOKING (no auth)
# ============================================================================


@router.get("/public/services/{tenant_id}", response_model=list[ServiceResponse])
async def public_services(tenant_id: str, service: BookingService = Depends(get_booking_service)):
    return [service_response(item) for item in service.public_services(tenant_id)]


@router.get("/public/staff/{tenant_id}", response_model=list[StaffResponse])
async def public_staff(tenant_id: str, service: BookingService = Depends(get_booking_service)):
    return [staff_response(member) for member in service.public_staff(tenant_id)]


@router.get("/public/locations/{tenant_id}", response_model=list[LocationResponse])
async def public_locations(tenant_id: str, service: BookingService = Depends(get_booking_service)):
    return [location_response(loc) for loc in service.public_locations(tenant_id)]


@router.get("/public/availability/{tenant_id}")
async def public_availability(
    tenant_id: str,
    date: date,
    serviceId: Optional[str] = None,
    staffId: Optional[str] = None,
    locationId: Optional[str] = None,
    slotMinutes: int = Query(30, ge=5, le=240),
    service: BookingService = Depends(get_booking_service),
):
    """Bookable slots for the public booking page"""
    return service.public_availability(tenant_id, serviceId, staffId, locationId, date, slotMinutes)


@router.post("/public/appointments", response_model=AppointmentResponse, status_code=201)
async def public_book_appointment(
    data: PublicAppointmentCreate,
    service: BookingService = Depends(get_booking_service),
    _: None = Depends(public_booking_rate_limit),
):
    appointment = service.public_book(data)
    logger.info(f"🌐 Public booking {appointment.id} for tenant {appointment.tenant_id}")
    return appointment_response(appointment)
