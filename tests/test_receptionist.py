"""Receptionist desk integration tests."""

from datetime import datetime, time

import pytest

from app.cache.cache_service import redis_cache
from app.models.appointment import Availability
from app.utils.datetime_utils import today_local
from tests.factories import (
    auth_headers,
    make_appointment,
    make_availability,
    make_doctor,
    make_patient,
    make_receptionist,
    make_room,
    make_specialization,
    unique_pesel,
    tomorrow,
)


@pytest.fixture
def desk(db_session):
    specialization = make_specialization(db_session)
    room = make_room(db_session, [specialization])
    doctor = make_doctor(db_session, specialization)
    frame = make_availability(db_session, doctor, start_hour=8, end_hour=10)
    receptionist = make_receptionist(db_session)
    pesel = unique_pesel()
    return {
        "specialization": specialization,
        "room": room,
        "doctor": doctor,
        "frame": frame,
        "patient": make_patient(db_session, pesel=pesel),
        "pesel": pesel,
        "headers": auth_headers(db_session, receptionist.user),
    }


@pytest.mark.asyncio
async def test_available_slots_by_specialization_and_type(async_client, db_session, desk):
    day = tomorrow().isoformat()
    make_appointment(db_session, desk["patient"], desk["doctor"], datetime.combine(tomorrow(), time(8, 20)))
    params = {"startDate": day, "specializationId": desk["specialization"].id}

    r = await async_client.get("/api/receptionist/availableSlots", params=params, headers=desk["headers"])
    assert r.status_code == 200, r.text
    doctors = r.json()["slots"]
    assert len(doctors) == 1
    starts = [s["start"][11:16] for s in doctors[0]["slots"]]
    assert starts == ["08:00", "08:40", "09:00", "09:20", "09:40"]

    r = await async_client.get(
        "/api/receptionist/availableSlots",
        params={**params, "type": "procedure"},
        headers=desk["headers"],
    )
    assert r.status_code == 200, r.text
    assert [s["start"][11:16] for s in r.json()["slots"][0]["slots"]] == ["09:00"]

    r = await async_client.get(
        "/api/receptionist/availableSlots",
        params={**params, "startTime": "09:00", "endTime": "10:00"},
        headers=desk["headers"],
    )
    assert [s["start"][11:16] for s in r.json()["slots"][0]["slots"]] == ["09:00", "09:20", "09:40"]


@pytest.mark.asyncio
async def test_available_slots_validation(async_client, desk):
    headers = desk["headers"]
    r = await async_client.get("/api/receptionist/availableSlots", params={"startDate": "2030/01/01", "doctorId": "x"}, headers=headers)
    assert r.status_code == 400, r.text

    r = await async_client.get("/api/receptionist/availableSlots", params={"startDate": tomorrow().isoformat()}, headers=headers)
    assert r.status_code == 400, r.text
    assert r.json()["detail"] == "Podaj specializationId lub doctorId"

    r = await async_client.get(
        "/api/receptionist/availableSlots",
        params={"startDate": tomorrow().isoformat(), "doctorId": "x", "startTime": "10:00", "endTime": "09:00"},
        headers=headers,
    )
    assert r.status_code == 400, r.text


@pytest.mark.asyncio
async def test_slot_listing_is_cached_until_a_booking(async_client, desk):
    params = {"startDate": tomorrow().isoformat(), "doctorId": desk["doctor"].user_id}
    r = await async_client.get("/api/receptionist/availableSlots", params=params, headers=desk["headers"])
    assert r.status_code == 200, r.text
    assert any(k.startswith("available_slots:") for k in redis_cache.redis.store)

    body = {
        "patientId": desk["patient"].user_id,
        "doctorId": desk["doctor"].user_id,
        "datetime": datetime.combine(tomorrow(), time(8)).isoformat(),
        "type": "procedure",
    }
    r = await async_client.post("/api/receptionist/appointments", json=body, headers=desk["headers"])
    assert r.status_code == 201, r.text
    assert r.json()["type"] == "procedure"
    assert not any(k.startswith("available_slots:") for k in redis_cache.redis.store)

    r = await async_client.get("/api/receptionist/availableSlots", params=params, headers=desk["headers"])
    starts = [s["start"][11:16] for s in r.json()["slots"][0]["slots"]]
    assert starts == ["09:00", "09:20", "09:40"]


@pytest.mark.asyncio
async def test_book_for_non_patient_is_rejected(async_client, db_session, desk):
    body = {
        "patientId": desk["doctor"].user_id,
        "doctorId": desk["doctor"].user_id,
        "datetime": datetime.combine(tomorrow(), time(9)).isoformat(),
    }
    r = await async_client.post("/api/receptionist/appointments", json=body, headers=desk["headers"])
    assert r.status_code == 400, r.text

    r = await async_client.post(
        "/api/receptionist/appointments", json={**body, "patientId": desk["patient"].user_id, "type": "surgery"},
        headers=desk["headers"],
    )
    assert r.status_code == 400, r.text


@pytest.mark.asyncio
async def test_checkin_requires_matching_pesel(async_client, db_session, desk):
    appointment = make_appointment(db_session, desk["patient"], desk["doctor"], datetime.combine(tomorrow(), time(9)))
    url = "/api/receptionist/visits/checkin"
    wrong = desk["pesel"][:-1] + str((int(desk["pesel"][-1]) + 1) % 10)

    r = await async_client.post(url, json={"appointmentId": appointment.appointment_id}, headers=desk["headers"])
    assert r.status_code == 400, r.text
    assert r.json()["detail"] == "PESEL jest wymagany dla wizyt stacjonarnych"

    r = await async_client.post(url, json={"appointmentId": appointment.appointment_id, "pesel": wrong}, headers=desk["headers"])
    assert r.status_code == 400, r.text
    assert r.json()["detail"] == "PESEL niezgodny z danymi pacjenta"

    r = await async_client.post(url, json={"appointmentId": appointment.appointment_id, "pesel": "123"}, headers=desk["headers"])
    assert r.status_code == 400, r.text
    assert r.json()["detail"] == "PESEL musi mieć 11 cyfr"

    body = {"appointmentId": appointment.appointment_id, "pesel": desk["pesel"]}
    r = await async_client.post(url, json=body, headers=desk["headers"])
    assert r.status_code == 200, r.text
    assert r.json()["visitStatus"] == "checked_in"

    # Repeating the check-in is harmless
    r = await async_client.post(url, json=body, headers=desk["headers"])
    assert r.status_code == 200, r.text


@pytest.mark.asyncio
async def test_online_checkin_skips_pesel(async_client, db_session, desk):
    appointment = make_appointment(
        db_session, desk["patient"], desk["doctor"], datetime.combine(tomorrow(), time(9, 20)), is_online=True
    )
    r = await async_client.post(
        "/api/receptionist/visits/checkin", json={"appointmentId": appointment.appointment_id}, headers=desk["headers"]
    )
    assert r.status_code == 200, r.text


@pytest.mark.asyncio
async def test_cancel_checked_in_visit_notifies_patient(async_client, db_session, desk, sent_emails):
    appointment = make_appointment(
        db_session, desk["patient"], desk["doctor"], datetime.combine(tomorrow(), time(9, 40)), status="checked_in"
    )
    r = await async_client.patch(
        f"/api/receptionist/appointments/{appointment.appointment_id}",
        json={"status": "canceled"},
        headers=desk["headers"],
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "canceled"
    assert any(e["to"] == desk["patient"].user.email for e in sent_emails)

    r = await async_client.patch(
        f"/api/receptionist/appointments/{appointment.appointment_id}",
        json={"status": "canceled"},
        headers=desk["headers"],
    )
    assert r.status_code == 400, r.text


@pytest.mark.asyncio
async def test_assign_room_rules(async_client, db_session, desk):
    frame = desk["frame"]
    headers = desk["headers"]

    r = await async_client.get("/api/receptionist/assignRoom", params={"day": tomorrow().isoformat()}, headers=headers)
    assert r.status_code == 200, r.text
    listed = next(t for t in r.json()["timeframes"] if t["scheduleId"] == frame.schedule_id)
    assert {"roomId": desk["room"].room_id, "number": desk["room"].number} in listed["compatibleRooms"]

    foreign_room = make_room(db_session, [make_specialization(db_session)])
    r = await async_client.post(
        "/api/receptionist/assignRoom", json={"scheduleId": frame.schedule_id, "roomId": foreign_room.room_id}, headers=headers
    )
    assert r.status_code == 400, r.text

    r = await async_client.post(
        "/api/receptionist/assignRoom", json={"scheduleId": frame.schedule_id, "roomId": desk["room"].room_id}, headers=headers
    )
    assert r.status_code == 200, r.text

    colleague = make_doctor(db_session, desk["specialization"])
    other_frame = make_availability(db_session, colleague, start_hour=9, end_hour=11)
    r = await async_client.post(
        "/api/receptionist/assignRoom",
        json={"scheduleId": other_frame.schedule_id, "roomId": desk["room"].room_id},
        headers=headers,
    )
    assert r.status_code == 409, r.text

    r = await async_client.post(
        "/api/receptionist/assignRoom", json={"scheduleId": frame.schedule_id, "roomId": None}, headers=headers
    )
    assert r.status_code == 200, r.text
    db_session.expire_all()
    assert db_session.get(Availability, frame.schedule_id).room_id is None


@pytest.mark.asyncio
async def test_desk_views(async_client, db_session, desk):
    today = today_local()
    make_appointment(db_session, desk["patient"], desk["doctor"], datetime.combine(today, time(23, 0)))
    make_appointment(db_session, desk["patient"], desk["doctor"], datetime.combine(today, time(23, 20)), is_online=True)
    headers = desk["headers"]

    r = await async_client.get("/api/receptionist/visits/today", headers=headers)
    assert r.status_code == 200, r.text
    mine = [v for v in r.json() if v["doctorEmail"] == desk["doctor"].user.email]
    assert len(mine) == 2

    r = await async_client.get("/api/receptionist/stats/visitsToday", headers=headers)
    assert r.status_code == 200, r.text
    bucket = next(b for b in r.json()["buckets"] if b["hour"] == 23)
    assert bucket["onsite"] >= 1 and bucket["remote"] >= 1

    r = await async_client.get(f"/api/receptionist/patients/{desk['patient'].user_id}/appointments", headers=headers)
    assert r.status_code == 200, r.text
    assert len(r.json()) == 2

    r = await async_client.get("/api/receptionist/users", headers=headers)
    assert r.status_code == 200, r.text
    assert any(u["userId"] == desk["doctor"].user_id and u["isDoctor"] for u in r.json())


@pytest.mark.asyncio
async def test_receptionist_cannot_use_admin_routes(async_client, desk):
    r = await async_client.get("/api/admin/statistics", headers=desk["headers"])
    assert r.status_code == 403, r.text


@pytest.mark.asyncio
@pytest.mark.parametrize("role", ["patient", "doctor"])
async def test_desk_routes_reject_patients_and_doctors(async_client, db_session, desk, role):
    appointment = make_appointment(
        db_session, desk["patient"], desk["doctor"], datetime.combine(tomorrow(), time(8, 0))
    )
    caller = make_patient(db_session).user if role == "patient" else desk["doctor"].user
    headers = auth_headers(db_session, caller)

    r = await async_client.patch(
        f"/api/receptionist/appointments/{appointment.appointment_id}",
        json={"status": "canceled"},
        headers=headers,
    )
    assert r.status_code == 403, r.text

    r = await async_client.post(
        "/api/receptionist/appointments",
        json={
            "patientId": desk["patient"].user_id,
            "doctorId": desk["doctor"].user_id,
            "datetime": datetime.combine(tomorrow(), time(9, 0)).isoformat(),
        },
        headers=headers,
    )
    assert r.status_code == 403, r.text

    r = await async_client.post(
        "/api/receptionist/visits/checkin",
        json={"appointmentId": appointment.appointment_id, "pesel": desk["pesel"]},
        headers=headers,
    )
    assert r.status_code == 403, r.text

    r = await async_client.get("/api/receptionist/visits/today", headers=headers)
    assert r.status_code == 403, r.text

    db_session.refresh(appointment)
    assert appointment.status == "scheduled"
