from datetime import date, datetime, timedelta
from datetime import timezone as dt_timezone

import pytest

from gueswi.models_booking import Appointment, Location

OPEN_DAY = {"enabled": True, "blocks": [{"start": "09:00", "end": "18:00"}]}
WEEK = {str(day): OPEN_DAY for day in range(7)}


def booking_day() -> date:
    """A day far enough ahead to never be in the past at the location"""
    return date.today() + timedelta(days=7)


def at(hhmm: str, day: date = None) -> str:
    return f"{(day or booking_day()).isoformat()}T{hhmm}:00"


@pytest.fixture
def setup(auth_client):
    """A location open 09-18 every day, a 60 minute service and a staff member working there"""
    location = auth_client.post(
        "/api/calendar/locations",
        json={"name": "Sucursal Centro", "timezone": "UTC", "operatingHours": WEEK},
    )
    assert location.status_code == 200, location.text
    location = location.json()

    service = auth_client.post(
        "/api/calendar/services",
        json={"name": "Corte", "duration": 60, "price": "25.00", "locationIds": [location["id"]]},
    )
    assert service.status_code == 200, service.text
    service = service.json()

    staff = auth_client.post(
        "/api/calendar/staff",
        json={
            "name": "Laura",
            "schedulesByLocation": {location["id"]: WEEK},
            "serviceIds": [service["id"]],
        },
    )
    assert staff.status_code == 200, staff.text
    staff = staff.json()

    return {"location": location, "service": service, "staff": staff}


def book(client, setup, start, **extra):
    payload = {
        "serviceId": setup["service"]["id"],
        "staffId": setup["staff"]["id"],
        "locationId": setup["location"]["id"],
        "customerName": "Pedro Pérez",
        "startTime": start,
        **extra,
    }
    return client.post("/api/appointments", json=payload)


# ==================== CATALOG ====================


def test_location_defaults(auth_client):
    location = auth_client.post("/api/calendar/locations", json={"name": "Norte"}).json()
    assert location["timezone"] == "America/Caracas"
    assert location["isActive"] is True
    assert location["operatingHours"] == {}


def test_location_rejects_bad_hours(auth_client):
    overlapping = {"1": {"enabled": True, "blocks": [{"start": "09:00", "end": "13:00"}, {"start": "12:00", "end": "15:00"}]}}
    response = auth_client.post("/api/calendar/locations", json={"name": "X", "operatingHours": overlapping})
    assert response.status_code == 400
    assert response.json()["detail"] == "Monday: time blocks cannot overlap"

    inverted = {"2": {"enabled": True, "blocks": [{"start": "15:00", "end": "09:00"}]}}
    response = auth_client.post("/api/calendar/locations", json={"name": "X", "operatingHours": inverted})
    assert response.status_code == 400
    assert "Tuesday" in response.json()["detail"]


def test_location_rejects_unknown_timezone(auth_client):
    response = auth_client.post("/api/calendar/locations", json={"name": "X", "timezone": "Mars/Olympus"})
    assert response.status_code == 400


def test_location_assigned_to_staff_cannot_be_deleted(auth_client, setup):
    response = auth_client.delete(f"/api/calendar/locations/{setup['location']['id']}")
    assert response.status_code == 400
    assert "Laura" in response.json()["detail"]


def test_service_requires_location(auth_client):
    response = auth_client.post("/api/calendar/services", json={"name": "Corte", "duration": 30, "locationIds": []})
    assert response.status_code == 400
    assert response.json()["detail"] == "At least one location is required"

    unknown = auth_client.post(
        "/api/calendar/services", json={"name": "Corte", "duration": 30, "locationIds": ["missing"]}
    )
    assert unknown.status_code == 400
    assert unknown.json()["detail"] == "Invalid location"


def test_service_lists_its_locations(auth_client, setup):
    services = auth_client.get("/api/calendar/services").json()
    assert len(services) == 1
    links = services[0]["serviceLocations"]
    assert [link["locationId"] for link in links] == [setup["location"]["id"]]


def test_staff_lists_its_services(auth_client, setup):
    assert setup["staff"]["serviceIds"] == [setup["service"]["id"]]
    staff = auth_client.get("/api/calendar/staff").json()
    assert staff[0]["serviceIds"] == [setup["service"]["id"]]


def test_staff_hours_must_fit_location(auth_client, setup):
    too_late = {"1": {"enabled": True, "blocks": [{"start": "17:00", "end": "20:00"}]}}
    response = auth_client.patch(
        f"/api/calendar/staff/{setup['staff']['id']}",
        json={"schedulesByLocation": {setup["location"]["id"]: too_late}},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Monday: staff hours must be within location operating hours"

    unknown = auth_client.post(
        "/api/calendar/staff", json={"name": "Ana", "schedulesByLocation": {"missing": WEEK}}
    )
    assert unknown.status_code == 400
    assert unknown.json()["detail"] == "Unknown location in schedule: missing"


def test_existing_staff_service_link_is_reused(auth_client, setup):
    response = auth_client.post(
        "/api/staff-services", json={"staffId": setup["staff"]["id"], "serviceId": setup["service"]["id"]}
    )
    assert response.status_code == 200
    assert response.json()["id"] == setup["staff"]["staffServices"][0]["id"]
    assert len(auth_client.get("/api/staff-services").json()) == 1


# ==================== APPOINTMENTS ====================


def test_create_appointment_defaults_end_to_duration(auth_client, setup):
    response = book(auth_client, setup, at("10:00"), notes="<i>primera vez</i>")
    assert response.status_code == 200, response.text
    appointment = response.json()
    assert appointment["status"] == "pending"
    assert appointment["timezone"] == "UTC"
    assert appointment["startTime"].startswith(at("10:00"))
    assert appointment["endTime"].startswith(at("11:00"))
    assert appointment["notes"] == "&lt;i&gt;primera vez&lt;/i&gt;"


def test_appointment_in_the_past_is_rejected(auth_client, setup):
    yesterday = date.today() - timedelta(days=2)
    response = book(auth_client, setup, at("10:00", yesterday))
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot create appointments in the past"


def test_appointment_outside_hours_is_rejected(auth_client, setup):
    response = book(auth_client, setup, at("17:30"))
    assert response.status_code == 400
    assert response.json()["detail"] == "Appointment time is outside location operating hours"


def test_appointment_end_before_start_is_rejected(auth_client, setup):
    response = book(auth_client, setup, at("10:00"), endTime=at("09:30"))
    assert response.status_code == 400
    assert response.json()["detail"] == "End time must be after start time"


def test_double_booking_staff_conflicts(auth_client, setup):
    assert book(auth_client, setup, at("10:00")).status_code == 200

    overlapping = book(auth_client, setup, at("10:30"))
    assert overlapping.status_code == 409
    assert overlapping.json()["detail"] == "Staff member already has an appointment at this time"

    # Touching intervals do not overlap
    assert book(auth_client, setup, at("11:00")).status_code == 200


def test_appointment_with_unknown_staff(auth_client, setup):
    response = book(auth_client, setup, at("10:00"), staffId="missing")
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid or inactive staff member"


def test_reschedule_appointment(auth_client, setup):
    appointment = book(auth_client, setup, at("10:00")).json()
    other = book(auth_client, setup, at("14:00")).json()

    moved = auth_client.patch(f"/api/appointments/{appointment['id']}", json={"startTime": at("12:00")})
    assert moved.status_code == 200
    assert moved.json()["endTime"].startswith(at("13:00"))

    clash = auth_client.patch(f"/api/appointments/{appointment['id']}", json={"startTime": at("14:30")})
    assert clash.status_code == 409

    confirmed = auth_client.patch(f"/api/appointments/{other['id']}", json={"status": "confirmed"})
    assert confirmed.json()["status"] == "confirmed"

    bad_status = auth_client.patch(f"/api/appointments/{other['id']}", json={"status": "lost"})
    assert bad_status.status_code == 400


def test_list_and_stats(auth_client, setup):
    first = book(auth_client, setup, at("10:00")).json()
    book(auth_client, setup, at("15:00"), status="confirmed")

    listed = auth_client.get(
        "/api/appointments", params={"start": at("00:00"), "end": at("23:59")}
    ).json()
    assert [a["id"] for a in listed][0] == first["id"]
    assert len(listed) == 2

    confirmed = auth_client.get("/api/appointments", params={"status": "confirmed"}).json()
    assert len(confirmed) == 1

    stats = auth_client.get("/api/appointments/stats").json()
    assert stats["total"] == 2
    assert stats["pending"] == 1
    assert stats["confirmed"] == 1
    assert stats["noShow"] == 0

    bad = auth_client.get("/api/appointments", params={"start": "mañana"})
    assert bad.status_code == 400
    assert bad.json()["detail"] == "Invalid date format"


def test_staff_with_upcoming_appointments_cannot_be_deleted(auth_client, setup):
    book(auth_client, setup, at("10:00"))
    response = auth_client.delete(f"/api/calendar/staff/{setup['staff']['id']}")
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot delete staff member with 1 upcoming appointments"


def place_staff_appointment(db_session, auth_client, setup, timezone_name, utc_offset_hours):
    """Move the location to another zone and add an appointment at its local time"""
    location = db_session.get(Location, setup["location"]["id"])
    location.timezone = timezone_name
    local_start = datetime.now(dt_timezone.utc).replace(tzinfo=None) + timedelta(hours=utc_offset_hours)
    db_session.add(
        Appointment(
            tenant_id=auth_client.user["tenantId"],
            service_id=setup["service"]["id"],
            staff_id=setup["staff"]["id"],
            location_id=location.id,
            customer_name="Pedro Pérez",
            start_time=local_start,
            end_time=local_start + timedelta(hours=1),
        )
    )
    db_session.commit()


def test_staff_deletion_uses_location_clock_for_past(db_session, auth_client, setup):
    # 10:00 ahead of UTC is already 4 hours gone at UTC+14
    place_staff_appointment(db_session, auth_client, setup, "Pacific/Kiritimati", 10)
    response = auth_client.delete(f"/api/calendar/staff/{setup['staff']['id']}")
    assert response.status_code == 200, response.text


def test_staff_deletion_uses_location_clock_for_upcoming(db_session, auth_client, setup):
    # 5 hours behind UTC is still 6 hours ahead at UTC-11
    place_staff_appointment(db_session, auth_client, setup, "Pacific/Pago_Pago", -5)
    response = auth_client.delete(f"/api/calendar/staff/{setup['staff']['id']}")
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot delete staff member with 1 upcoming appointments"


def test_delete_appointment(auth_client, setup):
    appointment = book(auth_client, setup, at("10:00")).json()
    assert auth_client.delete(f"/api/appointments/{appointment['id']}").json() == {"success": True}
    assert auth_client.delete(f"/api/appointments/{appointment['id']}").status_code == 404


# ==================== WAITLIST / TEMPLATES ====================


def test_waitlist(auth_client, setup):
    entry = auth_client.post(
        "/api/waitlist", json={"customerName": "Marta", "serviceId": setup["service"]["id"]}
    ).json()
    assert entry["status"] == "waiting"

    updated = auth_client.patch(f"/api/waitlist/{entry['id']}", json={"status": "contacted"}).json()
    assert updated["status"] == "contacted"
    assert len(auth_client.get("/api/waitlist", params={"status": "contacted"}).json()) == 1

    bad = auth_client.post("/api/waitlist", json={"customerName": "Marta", "serviceId": "missing"})
    assert bad.status_code == 400


def test_notification_templates(auth_client):
    created = auth_client.post(
        "/api/notification-templates",
        json={"type": "reminder", "channel": "sms", "body": "Te esperamos mañana"},
    )
    assert created.status_code == 200
    assert len(auth_client.get("/api/notification-templates", params={"channel": "sms"}).json()) == 1
    assert auth_client.get("/api/notification-templates", params={"channel": "email"}).json() == []

    bad = auth_client.post(
        "/api/notification-templates", json={"type": "reminder", "channel": "fax", "body": "x"}
    )
    assert bad.status_code == 400


# ==================== PUBLIC BOOKING ====================


def test_public_catalog(client, auth_client, setup):
    tenant_id = auth_client.user["tenantId"]
    assert [s["name"] for s in client.get(f"/api/public/services/{tenant_id}").json()] == ["Corte"]
    assert [s["name"] for s in client.get(f"/api/public/staff/{tenant_id}").json()] == ["Laura"]
    assert [loc["name"] for loc in client.get(f"/api/public/locations/{tenant_id}").json()] == ["Sucursal Centro"]


def test_public_availability_skips_busy_slots(client, auth_client, setup):
    book(auth_client, setup, at("10:00"))
    tenant_id = auth_client.user["tenantId"]

    response = client.get(
        f"/api/public/availability/{tenant_id}",
        params={
            "date": booking_day().isoformat(),
            "serviceId": setup["service"]["id"],
            "staffId": setup["staff"]["id"],
            "locationId": setup["location"]["id"],
            "slotMinutes": 60,
        },
    )
    assert response.status_code == 200
    starts = [slot["start"] for slot in response.json()["slots"]]
    assert at("09:00") in starts
    assert at("10:00") not in starts
    assert at("11:00") in starts
    assert at("17:00") in starts
    assert len(starts) == 8


def test_public_booking_is_pending(client, auth_client, setup):
    payload = {
        "tenantId": auth_client.user["tenantId"],
        "serviceId": setup["service"]["id"],
        "staffId": setup["staff"]["id"],
        "locationId": setup["location"]["id"],
        "customerName": "Cliente Web",
        "customerEmail": "web@example.com",
        "startTime": at("16:00"),
    }
    response = client.post("/api/public/appointments", json=payload)
    assert response.status_code == 201
    assert response.json()["status"] == "pending"

    again = client.post("/api/public/appointments", json=payload)
    assert again.status_code == 409


def test_public_booking_requires_ids(client):
    response = client.post(
        "/api/public/appointments", json={"customerName": "Cliente", "startTime": at("16:00")}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "tenantId, serviceId, staffId and locationId are required"


def test_public_booking_rejects_inactive_service(client, auth_client, setup):
    auth_client.patch(f"/api/calendar/services/{setup['service']['id']}", json={"isActive": False})
    payload = {
        "tenantId": auth_client.user["tenantId"],
        "serviceId": setup["service"]["id"],
        "staffId": setup["staff"]["id"],
        "locationId": setup["location"]["id"],
        "customerName": "Cliente Web",
        "startTime": at("16:00"),
    }
    response = client.post("/api/public/appointments", json=payload)
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid or inactive service"
