"""Booking service - calendar resources, appointment rules and public booking"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...booking.hours import (
    HoursValidationError,
    check_appointment_hours,
    generate_slots,
    location_now,
    to_location_time,
    validate_staff_schedules,
    validate_weekly_schedule,
)
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
from ...utils.sanitization import validate_and_sanitize_input
from .repository import BookingRepository
from .schemas import (
    AppointmentCreate,
    AppointmentUpdate,
    AvailabilityExceptionCreate,
    AvailabilityExceptionUpdate,
    AvailabilityRuleCreate,
    AvailabilityRuleUpdate,
    LocationCreate,
    LocationUpdate,
    PublicAppointmentCreate,
    ServiceCreate,
    ServiceLocationCreate,
    ServiceUpdate,
    StaffCreate,
    StaffServiceCreate,
    StaffUpdate,
    TemplateCreate,
    TemplateUpdate,
    WaitlistCreate,
    WaitlistUpdate,
)

logger = logging.getLogger(__name__)

LOCATION_FIELDS = {
    "name": "name",
    "address": "address",
    "city": "city",
    "state": "state",
    "country": "country",
    "postalCode": "postal_code",
    "timezone": "timezone",
    "phone": "phone",
    "email": "email",
    "isActive": "is_active",
}
STAFF_FIELDS = {
    "name": "name",
    "email": "email",
    "phone": "phone",
    "role": "role",
    "color": "color",
    "isActive": "is_active",
}
SERVICE_FIELDS = {
    "name": "name",
    "description": "description",
    "duration": "duration",
    "price": "price",
    "currency": "currency",
    "capacity": "capacity",
    "bufferTime": "buffer_time",
    "color": "color",
    "isActive": "is_active",
    "isPublic": "is_public",
}
RULE_FIELDS = {
    "locationId": "location_id",
    "dayOfWeek": "day_of_week",
    "startTime": "start_time",
    "endTime": "end_time",
    "isActive": "is_active",
}
EXCEPTION_FIELDS = {
    "date": "date",
    "startTime": "start_time",
    "endTime": "end_time",
    "isAvailable": "is_available",
    "reason": "reason",
}
WAITLIST_FIELDS = {
    "serviceId": "service_id",
    "staffId": "staff_id",
    "customerName": "customer_name",
    "customerEmail": "customer_email",
    "customerPhone": "customer_phone",
    "preferredDate": "preferred_date",
    "notes": "notes",
    "status": "status",
}
TEMPLATE_FIELDS = {
    "type": "type",
    "channel": "channel",
    "subject": "subject",
    "body": "body",
    "isActive": "is_active",
}
# Columns that reject NULL; an explicit null in a PATCH leaves them unchanged
NON_NULLABLE = {
    "name",
    "timezone",
    "is_active",
    "duration",
    "capacity",
    "buffer_time",
    "is_public",
    "day_of_week",
    "start_time",
    "end_time",
    "is_available",
    "date",
    "customer_name",
    "status",
    "type",
    "channel",
    "body",
}


def apply_updates(obj, updates: dict, fields: dict[str, str]) -> None:
    """Copy API fields onto model columns"""
    for field, value in updates.items():
        column = fields.get(field)
        if column is None:
            continue
        if value is None and column in NON_NULLABLE:
            continue
        setattr(obj, column, value)


def _naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.replace(tzinfo=None)


def _sanitize(value: Optional[str]) -> Optional[str]:
    try:
        return validate_and_sanitize_input(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


class BookingService:
    """Service layer for booking business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()

    def _get_or_404(self, model, tenant_id: str, obj_id: str, label: str):
        obj = self.repo.get(self.db, model, tenant_id, obj_id)
        if not obj:
            raise HTTPException(status_code=404, detail=f"{label} not found")
        return obj

    def _require_owned(self, model, tenant_id: str, obj_id: Optional[str], label: str):
        """Referenced rows must exist in the tenant (400 otherwise)"""
        obj = self.repo.get(self.db, model, tenant_id, obj_id)
        if not obj:
            raise HTTPException(status_code=400, detail=f"Invalid {label}")
        return obj

    # ==================== LOCATIONS ====================

    def list_locations(self, user: User) -> list[Location]:
        return self.repo.list_locations(self.db, user.tenant_id)

    def create_location(self, user: User, data: LocationCreate) -> Location:
        try:
            hours = validate_weekly_schedule(data.operatingHours)
        except HoursValidationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        location = Location(tenant_id=user.tenant_id, operating_hours=hours)
        apply_updates(location, data.model_dump(), LOCATION_FIELDS)
        if location.is_active is None:
            location.is_active = True
        location = self.repo.save(self.db, location)
        logger.info(f"✅ Location '{location.name}' created for tenant {user.tenant_id}")
        return location

    def update_location(self, user: User, location_id: str, data: LocationUpdate) -> Location:
        location = self._get_or_404(Location, user.tenant_id, location_id, "Location")
        updates = data.model_dump(exclude_unset=True)

        if "operatingHours" in updates:
            try:
                location.operating_hours = validate_weekly_schedule(updates["operatingHours"])
            except HoursValidationError as e:
                raise HTTPException(status_code=400, detail=str(e)) from e

        apply_updates(location, updates, LOCATION_FIELDS)
        return self.repo.save(self.db, location)

    def delete_location(self, user: User, location_id: str) -> dict:
        location = self._get_or_404(Location, user.tenant_id, location_id, "Location")
        assigned = [
            staff.name
            for staff in self.repo.list_staff(self.db, user.tenant_id, active_only=True)
            if location.id in (staff.schedules_by_location or {})
        ]
        if assigned:
            raise HTTPException(
                status_code=400,
                detail=f"Cannot delete location: it is assigned to active staff ({', '.join(assigned)})",
            )

        self.repo.delete_location_links(self.db, location.id)
        self.repo.delete(self.db, location)
        logger.info(f"🗑️ Location {location_id} deleted for tenant {user.tenant_id}")
        return {"success": True}

    # ==================== STAFF ====================

    def list_staff(self, user: User) -> list[tuple[StaffMember, list[StaffService]]]:
        """Staff members paired with their service links"""
        staff = self.repo.list_staff(self.db, user.tenant_id)
        links = self.repo.staff_services_for(self.db, user.tenant_id, [s.id for s in staff])
        by_staff: dict[str, list[StaffService]] = {}
        for link in links:
            by_staff.setdefault(link.staff_id, []).append(link)
        return [(member, by_staff.get(member.id, [])) for member in staff]

    def staff_links(self, user: User, staff: StaffMember) -> list[StaffService]:
        return self.repo.staff_services_for(self.db, user.tenant_id, [staff.id])

    def _validated_schedules(self, tenant_id: str, schedules: Optional[dict]) -> dict:
        try:
            return validate_staff_schedules(schedules, self.repo.location_hours(self.db, tenant_id))
        except HoursValidationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

    def _check_service_ids(self, tenant_id: str, service_ids: list[str]) -> None:
        for service_id in service_ids:
            self._require_owned(Service, tenant_id, service_id, "service")

    def create_staff(self, user: User, data: StaffCreate) -> StaffMember:
        schedules = self._validated_schedules(user.tenant_id, data.schedulesByLocation)
        service_ids = data.serviceIds or []
        self._check_service_ids(user.tenant_id, service_ids)

        staff = StaffMember(tenant_id=user.tenant_id, schedules_by_location=schedules)
        apply_updates(staff, data.model_dump(), STAFF_FIELDS)
        if staff.is_active is None:
            staff.is_active = True
        self.db.add(staff)
        self.db.flush()
        self.repo.replace_staff_services(self.db, user.tenant_id, staff.id, service_ids)
        self.db.commit()
        self.db.refresh(staff)
        logger.info(f"✅ Staff member '{staff.name}' created for tenant {user.tenant_id}")
        return staff

    def update_staff(self, user: User, staff_id: str, data: StaffUpdate) -> StaffMember:
        staff = self._get_or_404(StaffMember, user.tenant_id, staff_id, "Staff member")
        updates = data.model_dump(exclude_unset=True)

        if "schedulesByLocation" in updates:
            staff.schedules_by_location = self._validated_schedules(
                user.tenant_id, updates["schedulesByLocation"]
            )
        if updates.get("serviceIds") is not None:
            self._check_service_ids(user.tenant_id, updates["serviceIds"])
            self.repo.replace_staff_services(self.db, user.tenant_id, staff.id, updates["serviceIds"])

        apply_updates(staff, updates, STAFF_FIELDS)
        return self.repo.save(self.db, staff)

    def delete_staff(self, user: User, staff_id: str) -> dict:
        staff = self._get_or_404(StaffMember, user.tenant_id, staff_id, "Staff member")
        upcoming = sum(
            self.repo.count_future_appointments(self.db, staff.id, location.id, location_now(location.timezone))
            for location in self.repo.staff_appointment_locations(self.db, staff.id)
        )
        if upcoming:
            raise HTTPException(
                status_code=400,
                detail=f"Cannot delete staff member with {upcoming} upcoming appointments",
            )

        self.repo.replace_staff_services(self.db, user.tenant_id, staff.id, [])
        self.repo.delete(self.db, staff)
        return {"success": True}

    # ==================== SERVICES ====================

    def list_services(self, user: User) -> list[tuple[Service, list[ServiceLocation]]]:
        services = self.repo.list_services(self.db, user.tenant_id)
        links = self.repo.service_locations_for(self.db, user.tenant_id, [s.id for s in services])
        by_service: dict[str, list[ServiceLocation]] = {}
        for link in links:
            by_service.setdefault(link.service_id, []).append(link)
        return [(service, by_service.get(service.id, [])) for service in services]

    def service_links(self, user: User, service: Service) -> list[ServiceLocation]:
        return self.repo.service_locations_for(self.db, user.tenant_id, [service.id])

    def _check_location_ids(self, tenant_id: str, location_ids: list[str]) -> None:
        for location_id in location_ids:
            self._require_owned(Location, tenant_id, location_id, "location")

    def create_service(self, user: User, data: ServiceCreate) -> Service:
        if not data.locationIds:
            raise HTTPException(status_code=400, detail="At least one location is required")
        self._check_location_ids(user.tenant_id, data.locationIds)

        service = Service(tenant_id=user.tenant_id, capacity=1, buffer_time=0, is_active=True, is_public=True)
        apply_updates(service, data.model_dump(), SERVICE_FIELDS)
        service.currency = service.currency or "USD"
        self.db.add(service)
        self.db.flush()
        self.repo.replace_service_locations(self.db, user.tenant_id, service.id, data.locationIds)
        self.db.commit()
        self.db.refresh(service)
        logger.info(f"✅ Service '{service.name}' created for tenant {user.tenant_id}")
        return service

    def update_service(self, user: User, service_id: str, data: ServiceUpdate) -> Service:
        service = self._get_or_404(Service, user.tenant_id, service_id, "Service")
        updates = data.model_dump(exclude_unset=True)

        if updates.get("locationIds") is not None:
            if not updates["locationIds"]:
                raise HTTPException(status_code=400, detail="At least one location is required")
            self._check_location_ids(user.tenant_id, updates["locationIds"])
            self.repo.replace_service_locations(self.db, user.tenant_id, service.id, updates["locationIds"])

        apply_updates(service, updates, SERVICE_FIELDS)
        return self.repo.save(self.db, service)

    def delete_service(self, user: User, service_id: str) -> dict:
        service = self._get_or_404(Service, user.tenant_id, service_id, "Service")
        self.repo.delete_service_links(self.db, service.id)
        self.repo.delete(self.db, service)
        return {"success": True}

    # ==================== LINK TABLES ====================

    def list_service_locations(self, user: User) -> list[ServiceLocation]:
        return self.repo.list_service_locations(self.db, user.tenant_id)

    def create_service_location(self, user: User, data: ServiceLocationCreate) -> ServiceLocation:
        self._require_owned(Service, user.tenant_id, data.serviceId, "service")
        self._require_owned(Location, user.tenant_id, data.locationId, "location")
        existing = self.repo.find_service_location(self.db, data.serviceId, data.locationId)
        if existing:
            return existing
        link = ServiceLocation(tenant_id=user.tenant_id, service_id=data.serviceId, location_id=data.locationId)
        try:
            return self.repo.save(self.db, link)
        except IntegrityError as e:
            self.db.rollback()
            raise HTTPException(status_code=409, detail="Service is already offered at this location") from e

    def delete_service_location(self, user: User, link_id: str) -> dict:
        link = self._get_or_404(ServiceLocation, user.tenant_id, link_id, "Service location")
        self.repo.delete(self.db, link)
        return {"success": True}

    def list_staff_services(self, user: User) -> list[StaffService]:
        return self.repo.list_staff_services(self.db, user.tenant_id)

    def create_staff_service(self, user: User, data: StaffServiceCreate) -> StaffService:
        self._require_owned(StaffMember, user.tenant_id, data.staffId, "staff member")
        self._require_owned(Service, user.tenant_id, data.serviceId, "service")
        existing = self.repo.find_staff_service(self.db, data.staffId, data.serviceId)
        if existing:
            return existing
        link = StaffService(tenant_id=user.tenant_id, staff_id=data.staffId, service_id=data.serviceId)
        try:
            return self.repo.save(self.db, link)
        except IntegrityError as e:
            self.db.rollback()
            raise HTTPException(status_code=409, detail="Staff member already offers this service") from e

    def delete_staff_service(self, user: User, link_id: str) -> dict:
        link = self._get_or_404(StaffService, user.tenant_id, link_id, "Staff service")
        self.repo.delete(self.db, link)
        return {"success": True}

    # ==================== AVAILABILITY ====================

    def list_rules(self, user: User, staff_id: Optional[str]) -> list[AvailabilityRule]:
        return self.repo.list_rules(self.db, user.tenant_id, staff_id)

    def create_rule(self, user: User, data: AvailabilityRuleCreate) -> AvailabilityRule:
        self._require_owned(StaffMember, user.tenant_id, data.staffId, "staff member")
        if data.locationId:
            self._require_owned(Location, user.tenant_id, data.locationId, "location")
        rule = AvailabilityRule(tenant_id=user.tenant_id, staff_id=data.staffId)
        apply_updates(rule, data.model_dump(), RULE_FIELDS)
        return self.repo.save(self.db, rule)

    def update_rule(self, user: User, rule_id: str, data: AvailabilityRuleUpdate) -> AvailabilityRule:
        rule = self._get_or_404(AvailabilityRule, user.tenant_id, rule_id, "Availability rule")
        updates = data.model_dump(exclude_unset=True)
        if updates.get("locationId"):
            self._require_owned(Location, user.tenant_id, updates["locationId"], "location")
        apply_updates(rule, updates, RULE_FIELDS)
        if rule.start_time >= rule.end_time:
            self.db.rollback()
            raise HTTPException(status_code=400, detail="startTime must be before endTime")
        return self.repo.save(self.db, rule)

    def delete_rule(self, user: User, rule_id: str) -> dict:
        rule = self._get_or_404(AvailabilityRule, user.tenant_id, rule_id, "Availability rule")
        self.repo.delete(self.db, rule)
        return {"success": True}

    def list_exceptions(self, user: User, staff_id: Optional[str]) -> list[AvailabilityException]:
        return self.repo.list_exceptions(self.db, user.tenant_id, staff_id)

    def create_exception(self, user: User, data: AvailabilityExceptionCreate) -> AvailabilityException:
        self._require_owned(StaffMember, user.tenant_id, data.staffId, "staff member")
        exception = AvailabilityException(tenant_id=user.tenant_id, staff_id=data.staffId)
        apply_updates(exception, data.model_dump(), EXCEPTION_FIELDS)
        exception.date = _naive(exception.date)
        return self.repo.save(self.db, exception)

    def update_exception(
        self, user: User, exception_id: str, data: AvailabilityExceptionUpdate
    ) -> AvailabilityException:
        exception = self._get_or_404(AvailabilityException, user.tenant_id, exception_id, "Availability exception")
        apply_updates(exception, data.model_dump(exclude_unset=True), EXCEPTION_FIELDS)
        exception.date = _naive(exception.date)
        return self.repo.save(self.db, exception)

    def delete_exception(self, user: User, exception_id: str) -> dict:
        exception = self._get_or_404(AvailabilityException, user.tenant_id, exception_id, "Availability exception")
        self.repo.delete(self.db, exception)
        return {"success": True}

    # ==================== APPOINTMENTS ====================

    def _resolve_booking(
        self,
        tenant_id: str,
        service_id: Optional[str],
        staff_id: Optional[str],
        location_id: Optional[str],
        require_active: bool = False,
    ) -> tuple[Service, StaffMember, Location]:
        """Load the service, staff member and location of a booking (400 if invalid)"""
        checks = (
            (Service, service_id, "service"),
            (StaffMember, staff_id, "staff member"),
            (Location, location_id, "location"),
        )
        resolved = []
        for model, obj_id, label in checks:
            obj = self.repo.get(self.db, model, tenant_id, obj_id)
            if not obj or (require_active and not obj.is_active):
                raise HTTPException(status_code=400, detail=f"Invalid or inactive {label}")
            resolved.append(obj)
        return resolved[0], resolved[1], resolved[2]

    def _check_slot(
        self,
        service: Service,
        staff: StaffMember,
        location: Location,
        start: datetime,
        end: Optional[datetime],
        past_message: Optional[str],
        exclude_id: Optional[str] = None,
    ) -> tuple[datetime, datetime]:
        """
        Validate an appointment interval and return it in location wall-clock time.

        Raises:
            HTTPException: 400 for past, inverted or out-of-hours intervals,
                409 when the staff member is already booked
        """
        start = to_location_time(start, location.timezone)
        end = to_location_time(end, location.timezone) if end else start + timedelta(minutes=service.duration)

        if past_message and start < location_now(location.timezone):
            raise HTTPException(status_code=400, detail=past_message)
        if end <= start:
            raise HTTPException(status_code=400, detail="End time must be after start time")

        reason = check_appointment_hours(
            location.operating_hours, staff.schedules_by_location, location.id, start, end
        )
        if reason:
            raise HTTPException(status_code=400, detail=reason)

        if self.repo.find_staff_overlap(self.db, staff.id, start, end, exclude_id=exclude_id):
            raise HTTPException(
                status_code=409, detail="Staff member already has an appointment at this time"
            )
        return start, end

    def list_appointments(
        self,
        user: User,
        start: Optional[datetime],
        end: Optional[datetime],
        staff_id: Optional[str],
        service_id: Optional[str],
        status: Optional[str],
    ) -> list[Appointment]:
        return self.repo.list_appointments(self.db, user.tenant_id, start, end, staff_id, service_id, status)

    def _book(self, tenant_id: str, data, status: str, require_active: bool) -> Appointment:
        service, staff, location = self._resolve_booking(
            tenant_id, data.serviceId, data.staffId, data.locationId, require_active=require_active
        )
        start, end = self._check_slot(
            service, staff, location, data.startTime, data.endTime, "Cannot create appointments in the past"
        )
        appointment = Appointment(
            tenant_id=tenant_id,
            service_id=service.id,
            staff_id=staff.id,
            location_id=location.id,
            customer_name=data.customerName,
            customer_email=data.customerEmail,
            customer_phone=data.customerPhone,
            start_time=start,
            end_time=end,
            timezone=location.timezone,
            status=status,
            notes=_sanitize(data.notes),
        )
        appointment = self.repo.save(self.db, appointment)
        logger.info(f"📅 Appointment {appointment.id} booked with {staff.name} at {start.isoformat()}")
        return appointment

    def create_appointment(self, user: User, data: AppointmentCreate) -> Appointment:
        return self._book(user.tenant_id, data, data.status, require_active=False)

    def update_appointment(self, user: User, appointment_id: str, data: AppointmentUpdate) -> Appointment:
        appointment = self._get_or_404(Appointment, user.tenant_id, appointment_id, "Appointment")
        updates = data.model_dump(exclude_unset=True)

        reschedule_keys = ("serviceId", "staffId", "locationId", "startTime", "endTime")
        if any(updates.get(key) is not None for key in reschedule_keys):
            service, staff, location = self._resolve_booking(
                user.tenant_id,
                updates.get("serviceId") or appointment.service_id,
                updates.get("staffId") or appointment.staff_id,
                updates.get("locationId") or appointment.location_id,
            )
            start = updates.get("startTime") or appointment.start_time
            end = updates.get("endTime")
            if end is None:
                end = to_location_time(start, location.timezone) + (appointment.end_time - appointment.start_time)

            start_changed = to_location_time(start, location.timezone) != appointment.start_time
            start, end = self._check_slot(
                service,
                staff,
                location,
                start,
                end,
                "Cannot move appointments to the past" if start_changed else None,
                exclude_id=appointment.id,
            )
            appointment.service_id = service.id
            appointment.staff_id = staff.id
            appointment.location_id = location.id
            appointment.start_time = start
            appointment.end_time = end
            appointment.timezone = location.timezone

        if updates.get("customerName"):
            appointment.customer_name = updates["customerName"]
        if "customerEmail" in updates:
            appointment.customer_email = updates["customerEmail"]
        if "customerPhone" in updates:
            appointment.customer_phone = updates["customerPhone"]
        if updates.get("status"):
            appointment.status = updates["status"]
        if "notes" in updates:
            appointment.notes = _sanitize(updates["notes"])

        return self.repo.save(self.db, appointment)

    def delete_appointment(self, user: User, appointment_id: str) -> dict:
        appointment = self._get_or_404(Appointment, user.tenant_id, appointment_id, "Appointment")
        self.repo.delete(self.db, appointment)
        return {"success": True}

    def appointment_stats(self, user: User, start: Optional[datetime], end: Optional[datetime]) -> dict:
        counts = self.repo.status_counts(self.db, user.tenant_id, start, end)
        return {
            "total": sum(counts.values()),
            "pending": counts.get("pending", 0),
            "confirmed": counts.get("confirmed", 0),
            "completed": counts.get("completed", 0),
            "cancelled": counts.get("cancelled", 0),
            "noShow": counts.get("no_show", 0),
        }

    # ==================== WAITLIST / TEMPLATES ====================

    def list_waitlist(self, user: User, status: Optional[str]) -> list[WaitlistEntry]:
        return self.repo.list_waitlist(self.db, user.tenant_id, status)

    def create_waitlist_entry(self, user: User, data: WaitlistCreate) -> WaitlistEntry:
        if data.serviceId:
            self._require_owned(Service, user.tenant_id, data.serviceId, "service")
        if data.staffId:
            self._require_owned(StaffMember, user.tenant_id, data.staffId, "staff member")
        entry = WaitlistEntry(tenant_id=user.tenant_id)
        apply_updates(entry, data.model_dump(), WAITLIST_FIELDS)
        entry.preferred_date = _naive(entry.preferred_date)
        entry.notes = _sanitize(entry.notes)
        return self.repo.save(self.db, entry)

    def update_waitlist_entry(self, user: User, entry_id: str, data: WaitlistUpdate) -> WaitlistEntry:
        entry = self._get_or_404(WaitlistEntry, user.tenant_id, entry_id, "Waitlist entry")
        updates = data.model_dump(exclude_unset=True)
        if "notes" in updates:
            updates["notes"] = _sanitize(updates["notes"])
        apply_updates(entry, updates, WAITLIST_FIELDS)
        entry.preferred_date = _naive(entry.preferred_date)
        return self.repo.save(self.db, entry)

    def delete_waitlist_entry(self, user: User, entry_id: str) -> dict:
        entry = self._get_or_404(WaitlistEntry, user.tenant_id, entry_id, "Waitlist entry")
        self.repo.delete(self.db, entry)
        return {"success": True}

    def list_templates(self, user: User, type: Optional[str], channel: Optional[str]) -> list[NotificationTemplate]:
        return self.repo.list_templates(self.db, user.tenant_id, type, channel)

    def create_template(self, user: User, data: TemplateCreate) -> NotificationTemplate:
        template = NotificationTemplate(tenant_id=user.tenant_id)
        apply_updates(template, data.model_dump(), TEMPLATE_FIELDS)
        return self.repo.save(self.db, template)

    def update_template(self, user: User, template_id: str, data: TemplateUpdate) -> NotificationTemplate:
        template = self._get_or_404(NotificationTemplate, user.tenant_id, template_id, "Template")
        apply_updates(template, data.model_dump(exclude_unset=True), TEMPLATE_FIELDS)
        return self.repo.save(self.db, template)

    def delete_template(self, user: User, template_id: str) -> dict:
        template = self._get_or_404(NotificationTemplate, user.tenant_id, template_id, "Template")
        self.repo.delete(self.db, template)
        return {"success": True}

    # ==================== PUBLIC BOOKING ====================

    def public_services(self, tenant_id: str) -> list[Service]:
        return self.repo.list_services(self.db, tenant_id, public_only=True)

    def public_staff(self, tenant_id: str) -> list[StaffMember]:
        return self.repo.list_staff(self.db, tenant_id, active_only=True)

    def public_locations(self, tenant_id: str) -> list[Location]:
        return self.repo.list_locations(self.db, tenant_id, active_only=True)

    def public_availability(
        self,
        tenant_id: str,
        service_id: Optional[str],
        staff_id: Optional[str],
        location_id: Optional[str],
        day: date,
        slot_minutes: int = 30,
    ) -> dict:
        """Free slots for one staff member, service and location on a day"""
        service, staff, location = self._resolve_booking(
            tenant_id, service_id, staff_id, location_id, require_active=True
        )
        day_start = datetime.combine(day, time.min)
        busy = self.repo.staff_busy_between(self.db, staff.id, day_start, day_start + timedelta(days=1))

        slots = generate_slots(
            location.operating_hours,
            (staff.schedules_by_location or {}).get(location.id),
            day,
            service.duration,
            busy=busy,
            buffer_minutes=service.buffer_time or 0,
            slot_minutes=slot_minutes,
            now=location_now(location.timezone),
        )
        return {
            "date": day.isoformat(),
            "slots": [{"start": s["start"].isoformat(), "end": s["end"].isoformat()} for s in slots],
        }

    def public_book(self, data: PublicAppointmentCreate) -> Appointment:
        if not all((data.tenantId, data.serviceId, data.staffId, data.locationId)):
            raise HTTPException(
                status_code=400, detail="tenantId, serviceId, staffId and locationId are required"
            )
        return self._book(data.tenantId, data, "pending", require_active=True)
