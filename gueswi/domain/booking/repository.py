"""Booking repository - Database operations for the calendar"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...database import Base
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


class BookingRepository:
    """Repository for every booking table; all lookups are tenant scoped"""

    # ==================== COMMON ====================

    @staticmethod
    def get(db: Session, model: type[Base], tenant_id: str, obj_id: Optional[str]):
        if not obj_id:
            return None
        return db.query(model).filter(model.id == obj_id, model.tenant_id == tenant_id).first()

    @staticmethod
    def save(db: Session, obj):
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj

    @staticmethod
    def delete(db: Session, obj) -> None:
        db.delete(obj)
        db.commit()

    # ==================== LOCATIONS ====================

    @staticmethod
    def list_locations(db: Session, tenant_id: str, active_only: bool = False) -> list[Location]:
        query = db.query(Location).filter(Location.tenant_id == tenant_id)
        if active_only:
            query = query.filter(Location.is_active.is_(True))
        return query.order_by(Location.name.asc()).all()

    @staticmethod
    def location_hours(db: Session, tenant_id: str) -> dict[str, dict]:
        """{location id: operating_hours} for the tenant"""
        rows = db.query(Location.id, Location.operating_hours).filter(Location.tenant_id == tenant_id).all()
        return {location_id: hours or {} for location_id, hours in rows}

    # ==================== STAFF ====================

    @staticmethod
    def list_staff(db: Session, tenant_id: str, active_only: bool = False) -> list[StaffMember]:
        query = db.query(StaffMember).filter(StaffMember.tenant_id == tenant_id)
        if active_only:
            query = query.filter(StaffMember.is_active.is_(True))
        return query.order_by(StaffMember.name.asc()).all()

    @staticmethod
    def staff_services_for(db: Session, tenant_id: str, staff_ids: list[str]) -> list[StaffService]:
        if not staff_ids:
            return []
        return (
            db.query(StaffService)
            .filter(StaffService.tenant_id == tenant_id, StaffService.staff_id.in_(staff_ids))
            .order_by(StaffService.created_at.asc())
            .all()
        )

    @staticmethod
    def replace_staff_services(db: Session, tenant_id: str, staff_id: str, service_ids: list[str]) -> None:
        """Swap the staff member's service links (flushed, not committed)"""
        db.query(StaffService).filter(StaffService.staff_id == staff_id).delete(synchronize_session=False)
        for service_id in dict.fromkeys(service_ids):
            db.add(StaffService(tenant_id=tenant_id, staff_id=staff_id, service_id=service_id))
        db.flush()

    @staticmethod
    def staff_appointment_locations(db: Session, staff_id: str) -> list[Location]:
        """Locations where the staff member has non-cancelled appointments"""
        return (
            db.query(Location)
            .join(Appointment, Appointment.location_id == Location.id)
            .filter(Appointment.staff_id == staff_id, Appointment.status != "cancelled")
            .distinct()
            .all()
        )

    @staticmethod
    def count_future_appointments(db: Session, staff_id: str, location_id: str, now: datetime) -> int:
        """`now` is wall-clock time at the location, like the stored start times"""
        return (
            db.query(func.count(Appointment.id))
            .filter(
                Appointment.staff_id == staff_id,
                Appointment.location_id == location_id,
                Appointment.start_time >= now,
                Appointment.status != "cancelled",
            )
            .scalar()
            or 0
        )

    # ==================== SERVICES ====================

    @staticmethod
    def list_services(db: Session, tenant_id: str, public_only: bool = False) -> list[Service]:
        query = db.query(Service).filter(Service.tenant_id == tenant_id)
        if public_only:
            query = query.filter(Service.is_active.is_(True), Service.is_public.is_(True))
        return query.order_by(Service.name.asc()).all()

    @staticmethod
    def service_locations_for(db: Session, tenant_id: str, service_ids: list[str]) -> list[ServiceLocation]:
        if not service_ids:
            return []
        return (
            db.query(ServiceLocation)
            .filter(ServiceLocation.tenant_id == tenant_id, ServiceLocation.service_id.in_(service_ids))
            .order_by(ServiceLocation.created_at.asc())
            .all()
        )

    @staticmethod
    def list_service_locations(db: Session, tenant_id: str) -> list[ServiceLocation]:
        return db.query(ServiceLocation).filter(ServiceLocation.tenant_id == tenant_id).all()

    @staticmethod
    def list_staff_services(db: Session, tenant_id: str) -> list[StaffService]:
        return db.query(StaffService).filter(StaffService.tenant_id == tenant_id).all()

    @staticmethod
    def replace_service_locations(db: Session, tenant_id: str, service_id: str, location_ids: list[str]) -> None:
        """Swap the service's location links (flushed, not committed)"""
        db.query(ServiceLocation).filter(ServiceLocation.service_id == service_id).delete(
            synchronize_session=False
        )
        for location_id in dict.fromkeys(location_ids):
            db.add(ServiceLocation(tenant_id=tenant_id, service_id=service_id, location_id=location_id))
        db.flush()

    @staticmethod
    def delete_service_links(db: Session, service_id: str) -> None:
        db.query(ServiceLocation).filter(ServiceLocation.service_id == service_id).delete(
            synchronize_session=False
        )
        db.query(StaffService).filter(StaffService.service_id == service_id).delete(synchronize_session=False)

    @staticmethod
    def delete_location_links(db: Session, location_id: str) -> None:
        db.query(ServiceLocation).filter(ServiceLocation.location_id == location_id).delete(
            synchronize_session=False
        )

    @staticmethod
    def find_service_location(db: Session, service_id: str, location_id: str) -> Optional[ServiceLocation]:
        return (
            db.query(ServiceLocation)
            .filter(ServiceLocation.service_id == service_id, ServiceLocation.location_id == location_id)
            .first()
        )

    @staticmethod
    def find_staff_service(db: Session, staff_id: str, service_id: str) -> Optional[StaffService]:
        return (
            db.query(StaffService)
            .filter(StaffService.staff_id == staff_id, StaffService.service_id == service_id)
            .first()
        )

    # ==================== AVAILABILITY ====================

    @staticmethod
    def list_rules(db: Session, tenant_id: str, staff_id: Optional[str]) -> list[AvailabilityRule]:
        query = db.query(AvailabilityRule).filter(AvailabilityRule.tenant_id == tenant_id)
        if staff_id:
            query = query.filter(AvailabilityRule.staff_id == staff_id)
        return query.order_by(AvailabilityRule.day_of_week.asc(), AvailabilityRule.start_time.asc()).all()

    @staticmethod
    def list_exceptions(db: Session, tenant_id: str, staff_id: Optional[str]) -> list[AvailabilityException]:
        query = db.query(AvailabilityException).filter(AvailabilityException.tenant_id == tenant_id)
        if staff_id:
            query = query.filter(AvailabilityException.staff_id == staff_id)
        return query.order_by(AvailabilityException.date.asc()).all()

    # ==================== APPOINTMENTS ====================

    @staticmethod
    def list_appointments(
        db: Session,
        tenant_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        staff_id: Optional[str] = None,
        service_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[Appointment]:
        query = db.query(Appointment).filter(Appointment.tenant_id == tenant_id)
        if start:
            query = query.filter(Appointment.start_time >= start)
        if end:
            query = query.filter(Appointment.start_time <= end)
        if staff_id:
            query = query.filter(Appointment.staff_id == staff_id)
        if service_id:
            query = query.filter(Appointment.service_id == service_id)
        if status:
            query = query.filter(Appointment.status == status)
        return query.order_by(Appointment.start_time.asc()).all()

    @staticmethod
    def find_staff_overlap(
        db: Session, staff_id: str, start: datetime, end: datetime, exclude_id: Optional[str] = None
    ) -> Optional[Appointment]:
        """First non-cancelled appointment of the staff member overlapping [start, end)"""
        query = db.query(Appointment).filter(
            Appointment.staff_id == staff_id,
            Appointment.status != "cancelled",
            Appointment.start_time < end,
            Appointment.end_time > start,
        )
        if exclude_id:
            query = query.filter(Appointment.id != exclude_id)
        return query.first()

    @staticmethod
    def staff_busy_between(db: Session, staff_id: str, start: datetime, end: datetime) -> list[tuple[datetime, datetime]]:
        rows = (
            db.query(Appointment.start_time, Appointment.end_time)
            .filter(
                Appointment.staff_id == staff_id,
                Appointment.status != "cancelled",
                Appointment.start_time < end,
                Appointment.end_time > start,
            )
            .all()
        )
        return [(row_start, row_end) for row_start, row_end in rows]

    @staticmethod
    def status_counts(db: Session, tenant_id: str, start: Optional[datetime], end: Optional[datetime]) -> dict[str, int]:
        query = db.query(Appointment.status, func.count(Appointment.id)).filter(Appointment.tenant_id == tenant_id)
        if start:
            query = query.filter(Appointment.start_time >= start)
        if end:
            query = query.filter(Appointment.start_time <= end)
        return {status: count for status, count in query.group_by(Appointment.status).all()}

    # ==================== WAITLIST / TEMPLATES ====================

    @staticmethod
    def list_waitlist(db: Session, tenant_id: str, status: Optional[str]) -> list[WaitlistEntry]:
        query = db.query(WaitlistEntry).filter(WaitlistEntry.tenant_id == tenant_id)
        if status:
            query = query.filter(WaitlistEntry.status == status)
        return query.order_by(WaitlistEntry.created_at.desc()).all()

    @staticmethod
    def list_templates(
        db: Session, tenant_id: str, type: Optional[str], channel: Optional[str]
    ) -> list[NotificationTemplate]:
        query = db.query(NotificationTemplate).filter(NotificationTemplate.tenant_id == tenant_id)
        if type:
            query = query.filter(NotificationTemplate.type == type)
        if channel:
            query = query.filter(NotificationTemplate.channel == channel)
        return query.order_by(NotificationTemplate.created_at.asc()).all()
