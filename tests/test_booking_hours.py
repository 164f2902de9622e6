from datetime import date, datetime

import pytest

from gueswi.booking.hours import (
    HoursValidationError,
    check_appointment_hours,
    generate_slots,
    intersect_blocks,
    to_location_time,
    validate_staff_schedules,
    validate_weekly_schedule,
    weekday_index,
)

# 2025-06-02 is a Monday
MONDAY = date(2025, 6, 2)
SPLIT_DAY = {
    "enabled": True,
    "blocks": [{"start": "09:00", "end": "13:00"}, {"start": "14:00", "end": "18:00"}],
}
LOCATION_HOURS = {"1": SPLIT_DAY, "0": {"enabled": False, "blocks": []}}


def test_weekday_index_starts_on_sunday():
    assert weekday_index(date(2025, 6, 1)) == 0
    assert weekday_index(MONDAY) == 1
    assert weekday_index(date(2025, 6, 7)) == 6


def test_validate_weekly_schedule_normalizes_keys():
    schedule = validate_weekly_schedule({1: SPLIT_DAY})
    assert list(schedule) == ["1"]
    assert schedule["1"]["enabled"] is True


def test_touching_blocks_are_allowed():
    touching = {"3": {"enabled": True, "blocks": [{"start": "09:00", "end": "12:00"}, {"start": "12:00", "end": "15:00"}]}}
    assert validate_weekly_schedule(touching)["3"]["blocks"][1]["start"] == "12:00"


@pytest.mark.parametrize(
    "schedule, message",
    [
        ({"7": SPLIT_DAY}, "Invalid weekday key: '7'"),
        ({"x": SPLIT_DAY}, "Invalid weekday key: 'x'"),
        ({"1": {"enabled": True, "blocks": [{"start": "9am", "end": "10:00"}]}}, "Monday:"),
        ({"5": {"enabled": True, "blocks": [{"start": "10:00", "end": "10:00"}]}}, "Friday: block 10:00-10:00"),
    ],
)
def test_validate_weekly_schedule_errors(schedule, message):
    with pytest.raises(HoursValidationError) as exc:
        validate_weekly_schedule(schedule)
    assert str(exc.value).startswith(message)


def test_staff_schedule_on_closed_day():
    staff = {"0": {"enabled": True, "blocks": [{"start": "10:00", "end": "12:00"}]}}
    with pytest.raises(HoursValidationError) as exc:
        validate_staff_schedules({"loc": staff}, {"loc": LOCATION_HOURS})
    assert str(exc.value) == "Sunday: the location is closed on this day"


def test_staff_block_must_fit_one_location_block():
    spanning_lunch = {"1": {"enabled": True, "blocks": [{"start": "12:00", "end": "15:00"}]}}
    with pytest.raises(HoursValidationError):
        validate_staff_schedules({"loc": spanning_lunch}, {"loc": LOCATION_HOURS})

    morning = {"1": {"enabled": True, "blocks": [{"start": "09:30", "end": "12:30"}]}}
    assert validate_staff_schedules({"loc": morning}, {"loc": LOCATION_HOURS})["loc"]["1"]["enabled"] is True


def test_check_appointment_hours_reasons():
    staff = {"loc": {"1": {"enabled": True, "blocks": [{"start": "09:00", "end": "12:00"}]}}}

    def reason(start_hhmm, end_hhmm, day=MONDAY, schedules=staff):
        start = datetime.fromisoformat(f"{day.isoformat()}T{start_hhmm}")
        end = datetime.fromisoformat(f"{day.isoformat()}T{end_hhmm}")
        return check_appointment_hours(LOCATION_HOURS, schedules, "loc", start, end)

    assert reason("10:00", "11:00") is None
    assert reason("10:00", "11:00", day=date(2025, 6, 1)) == "This location is closed on Sunday"
    assert reason("12:30", "13:30") == "Appointment time is outside location operating hours"
    assert reason("14:00", "15:00") == "Staff member is not available at this time. Check their schedule."
    assert reason("10:00", "11:00", schedules={}) == "Staff member does not work at this location"


def test_to_location_time_converts_aware_values():
    aware = datetime.fromisoformat("2025-06-02T15:00:00+00:00")
    assert to_location_time(aware, "America/Caracas") == datetime(2025, 6, 2, 11, 0)

    naive = datetime(2025, 6, 2, 11, 0)
    assert to_location_time(naive, "America/Caracas") is naive


def test_intersect_blocks():
    assert intersect_blocks([(540, 780), (840, 1080)], [(600, 900)]) == [(600, 780), (840, 900)]
    assert intersect_blocks([(540, 600)], [(600, 660)]) == []


def test_generate_slots_respects_busy_and_buffer():
    staff = {"1": {"enabled": True, "blocks": [{"start": "09:00", "end": "13:00"}]}}
    busy = [(datetime(2025, 6, 2, 10, 0), datetime(2025, 6, 2, 10, 30))]

    slots = generate_slots(LOCATION_HOURS, staff, MONDAY, 30, busy=busy, buffer_minutes=30)
    starts = [slot["start"].strftime("%H:%M") for slot in slots]
    assert starts == ["09:00", "09:30", "11:00", "11:30", "12:00", "12:30"]


def test_generate_slots_drops_past_and_closed_days():
    staff = {"1": SPLIT_DAY}
    now = datetime(2025, 6, 2, 16, 45)
    slots = generate_slots(LOCATION_HOURS, staff, MONDAY, 60, slot_minutes=60, now=now)
    assert [slot["start"].hour for slot in slots] == [17]

    assert generate_slots(LOCATION_HOURS, staff, date(2025, 6, 1), 60) == []
    assert generate_slots(LOCATION_HOURS, staff, MONDAY, 0) == []
