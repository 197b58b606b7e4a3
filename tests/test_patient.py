"""Patient panel integration tests, booking included."""

from datetime import datetime, time, timedelta

import pytest

from app.models.appointment import Appointment
from app.models.medical import MedicalRecord, Medication, Prescription, Recommendation, TestResult
from app.utils.datetime_utils import today_local
from tests.factories import (
    auth_headers,
    make_appointment,
    make_availability,
    make_doctor,
    make_patient,
    make_room,
    make_specialization,
    make_user,
    tomorrow,
)


@pytest.fixture
def clinic(db_session):
    specialization = make_specialization(db_session)
    room = make_room(db_session, [specialization])
    doctor = make_doctor(db_session, specialization)
    make_availability(db_session, doctor, start_hour=8, end_hour=12)
    patient = make_patient(db_session)
    return {
        "doctor": doctor,
        "room": room,
        "patient": patient,
        "headers": auth_headers(db_session, patient.user),
    }


def _slot(hour: int, minute: int = 0, day=None) -> str:
    return datetime.combine(day or tomorrow(), time(hour, minute)).isoformat()


@pytest.mark.asyncio
async def test_book_consultation_in_free_slot(async_client, db_session, clinic):
    body = {"doctorId": clinic["doctor"].user_id, "datetime": _slot(9)}
    r = await async_client.post("/api/patient/appointments", json=body, headers=clinic["headers"])
    assert r.status_code == 201, r.text
    appointment_id = r.json()["appointmentId"]

    stored = db_session.get(Appointment, appointment_id)
    assert stored.status == "scheduled"
    assert stored.type == "consultation"
    assert stored.room_id == clinic["room"].room_id

    # Same start and an overlapping start are both taken
    r = await async_client.post("/api/patient/appointments", json=body, headers=clinic["headers"])
    assert r.status_code == 409, r.text
    r = await async_client.post(
        "/api/patient/appointments",
        json={**body, "datetime": _slot(9, 10)},
        headers=clinic["headers"],
    )
    assert r.status_code == 409, r.text

    r = await async_client.post(
        "/api/patient/appointments",
        json={**body, "datetime": _slot(9, 20)},
        headers=clinic["headers"],
    )
    assert r.status_code == 201, r.text


@pytest.mark.asyncio
async def test_booking_outside_availability_or_in_past(async_client, clinic):
    body = {"doctorId": clinic["doctor"].user_id}

    r = await async_client.post("/api/patient/appointments", json={**body, "datetime": _slot(11, 50)}, headers=clinic["headers"])
    assert r.status_code == 400, r.text
    assert r.json()["detail"] == "Wybrany termin jest poza godzinami przyjęć lekarza."

    r = await async_client.post("/api/patient/appointments", json={**body, "datetime": _slot(13)}, headers=clinic["headers"])
    assert r.status_code == 400, r.text

    past = _slot(9, day=today_local() - timedelta(days=1))
    r = await async_client.post("/api/patient/appointments", json={**body, "datetime": past}, headers=clinic["headers"])
    assert r.status_code == 400, r.text

    r = await async_client.post(
        "/api/patient/appointments",
        json={"doctorId": "missing", "datetime": _slot(9)},
        headers=clinic["headers"],
    )
    assert r.status_code == 404, r.text


@pytest.mark.asyncio
async def test_room_conflict_between_doctors(async_client, db_session, clinic):
    other = make_doctor(db_session, make_specialization(db_session))
    make_availability(db_session, other, start_hour=8, end_hour=12, room=clinic["room"])

    r = await async_client.post(
        "/api/patient/appointments",
        json={"doctorId": clinic["doctor"].user_id, "datetime": _slot(10)},
        headers=clinic["headers"],
    )
    assert r.status_code == 201, r.text

    r = await async_client.post(
        "/api/patient/appointments",
        json={"doctorId": other.user_id, "datetime": _slot(10)},
        headers=clinic["headers"],
    )
    assert r.status_code == 409, r.text
    assert r.json()["detail"] == "Gabinet jest zajęty w wybranym terminie."

    # Online visits take no room
    r = await async_client.post(
        "/api/patient/appointments",
        json={"doctorId": other.user_id, "datetime": _slot(10), "isOnline": True},
        headers=clinic["headers"],
    )
    assert r.status_code == 201, r.text


@pytest.mark.asyncio
async def test_cancel_frees_the_slot(async_client, clinic):
    body = {"doctorId": clinic["doctor"].user_id, "datetime": _slot(11)}
    r = await async_client.post("/api/patient/appointments", json=body, headers=clinic["headers"])
    assert r.status_code == 201, r.text
    appointment_id = r.json()["appointmentId"]

    r = await async_client.patch(
        f"/api/patient/appointments/{appointment_id}", json={"status": "completed"}, headers=clinic["headers"]
    )
    assert r.status_code == 400, r.text

    r = await async_client.patch(
        f"/api/patient/appointments/{appointment_id}", json={"status": "canceled"}, headers=clinic["headers"]
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "canceled"

    r = await async_client.patch(
        f"/api/patient/appointments/{appointment_id}", json={"status": "canceled"}, headers=clinic["headers"]
    )
    assert r.status_code == 400, r.text

    r = await async_client.post("/api/patient/appointments", json=body, headers=clinic["headers"])
    assert r.status_code == 201, r.text


@pytest.mark.asyncio
async def test_appointment_detail_is_private(async_client, db_session, clinic):
    appointment = make_appointment(db_session, clinic["patient"], clinic["doctor"], datetime.combine(tomorrow(), time(8)))
    r = await async_client.get(f"/api/patient/appointments/{appointment.appointment_id}", headers=clinic["headers"])
    assert r.status_code == 200, r.text
    assert r.json()["doctorName"] == "Piotr Lekarz"

    stranger = make_patient(db_session)
    r = await async_client.get(
        f"/api/patient/appointments/{appointment.appointment_id}",
        headers=auth_headers(db_session, stranger.user),
    )
    assert r.status_code == 403, r.text


@pytest.mark.asyncio
async def test_medical_history_views(async_client, db_session, clinic):
    patient, doctor = clinic["patient"], clinic["doctor"]
    recommendation = Recommendation(content="Więcej ruchu")
    prescription = Prescription(status="active", medications=[Medication(description="Ibuprom")])
    db_session.add_all([recommendation, prescription])
    db_session.flush()
    make_appointment(db_session, patient, doctor, datetime.combine(today_local() - timedelta(days=3), time(9)), status="completed")
    visit = db_session.query(Appointment).filter(Appointment.patient_id == patient.user_id).first()
    visit.recommendation_id = recommendation.recommendation_id
    visit.prescription_id = prescription.prescription_id
    record = MedicalRecord(patient_id=patient.user_id)
    db_session.add(record)
    db_session.flush()
    db_session.add(TestResult(record_id=record.record_id, test_type="Kod badania", result="MORF", test_date=today_local()))
    db_session.commit()
    headers = clinic["headers"]

    r = await async_client.get("/api/patient/activePrescriptions", headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()[0]["medications"] == ["Ibuprom"]

    r = await async_client.get("/api/patient/recommendations", headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()[0]["content"] == "Więcej ruchu"

    r = await async_client.get("/api/patient/results", headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()[0]["result"] == "MORF"

    r = await async_client.get("/api/patient/recentResults", headers=headers)
    assert r.status_code == 200, r.text
    assert len(r.json()) == 1

    r = await async_client.patch(
        f"/api/patient/prescriptions/{prescription.prescription_id}", json={"status": "fulfilled"}, headers=headers
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "fulfilled"

    r = await async_client.patch(
        f"/api/patient/prescriptions/{prescription.prescription_id}", json={"status": "fulfilled"}, headers=headers
    )
    assert r.status_code == 400, r.text

    r = await async_client.get("/api/patient/activePrescriptions", headers=headers)
    assert r.json() == []

    r = await async_client.get("/api/patient/prescriptions", headers=headers)
    assert len(r.json()) == 1


@pytest.mark.asyncio
async def test_dashboard_and_overview(async_client, db_session, clinic):
    make_appointment(db_session, clinic["patient"], clinic["doctor"], datetime.combine(tomorrow(), time(8, 40)))
    headers = clinic["headers"]

    r = await async_client.get("/api/patient/dashboard", headers=headers)
    assert r.status_code == 200, r.text
    assert len(r.json()["upcomingVisits"]) == 1

    r = await async_client.get("/api/patient/me", headers=headers)
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["user"]["id"] == clinic["patient"].user_id
    assert data["overview"]["upcomingAppointmentsCount"] == 1

    for path in ("upcomingVisits", "visits", "specializations"):
        r = await async_client.get(f"/api/patient/{path}", headers=headers)
        assert r.status_code == 200, r.text


@pytest.mark.asyncio
async def test_user_without_patient_profile(async_client, db_session):
    user = make_user(db_session)
    r = await async_client.get("/api/patient/visits", headers=auth_headers(db_session, user))
    assert r.status_code == 404, r.text
    assert r.json()["detail"] == "Patient profile not found"
