"""Doctor panel integration tests."""

from datetime import datetime, time, timedelta

import pytest

from app.models.appointment import Appointment, Availability
from app.models.medical import MedicalRecord, TestResult
from app.utils.datetime_utils import today_local
from tests.factories import (
    auth_headers,
    make_appointment,
    make_availability,
    make_doctor,
    make_patient,
    make_room,
    make_specialization,
    tomorrow,
)


@pytest.fixture
def doctor_ctx(db_session):
    specialization = make_specialization(db_session)
    doctor = make_doctor(db_session, specialization)
    return doctor, auth_headers(db_session, doctor.user), specialization


def _visit_payload(**overrides):
    body = {
        "visitGoal": "Kontrola",
        "symptoms": "Kaszel",
        "diagnosisDescription": "Przeziębienie",
        "prescribedMedications": "Syrop 3x dziennie\n\nWitamina C",
        "recommendations": "Odpoczynek",
        "proceduresPerformed": None,
        "examResultCodes": ["MORF", "CRP", "MORF", " "],
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_doctor_sees_only_own_appointments(async_client, db_session, doctor_ctx):
    doctor, headers, _ = doctor_ctx
    patient = make_patient(db_session)
    own = make_appointment(db_session, patient, doctor, datetime.combine(tomorrow(), time(9)))
    foreign = make_appointment(db_session, patient, make_doctor(db_session), datetime.combine(tomorrow(), time(9)))

    r = await async_client.get(f"/api/doctor/appointments/{own.appointment_id}", headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["patientName"] == "Marta Pacjent"

    r = await async_client.get(f"/api/doctor/appointments/{foreign.appointment_id}", headers=headers)
    assert r.status_code == 403, r.text
    assert r.json()["detail"] == "Brak dostępu"

    r = await async_client.get("/api/doctor/appointments/999999", headers=headers)
    assert r.status_code == 404, r.text


@pytest.mark.asyncio
async def test_complete_visit_requires_checkin(async_client, db_session, doctor_ctx):
    doctor, headers, _ = doctor_ctx
    appointment = make_appointment(db_session, make_patient(db_session), doctor, datetime.combine(tomorrow(), time(9)))

    r = await async_client.patch(f"/api/doctor/appointments/{appointment.appointment_id}", json=_visit_payload(), headers=headers)
    assert r.status_code == 400, r.text
    assert r.json()["detail"] == "Wizyta nie została zameldowana przez recepcję"


@pytest.mark.asyncio
async def test_complete_visit_writes_everything_in_one_go(async_client, db_session, doctor_ctx):
    doctor, headers, _ = doctor_ctx
    patient = make_patient(db_session)
    appointment = make_appointment(
        db_session, patient, doctor, datetime.combine(tomorrow(), time(9)), status="checked_in"
    )

    r = await async_client.patch(f"/api/doctor/appointments/{appointment.appointment_id}", json=_visit_payload(), headers=headers)
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["status"] == "completed"
    assert data["recommendationId"] is not None
    assert data["prescriptionId"] is not None

    db_session.expire_all()
    stored = db_session.get(Appointment, appointment.appointment_id)
    assert [m.description for m in stored.prescription.medications] == ["Syrop 3x dziennie", "Witamina C"]
    assert stored.notes.startswith("Cel wizyty: Kontrola")
    assert "Diagnoza: Przeziębienie" in stored.notes

    record = db_session.query(MedicalRecord).filter(MedicalRecord.patient_id == patient.user_id).first()
    codes = [t.result for t in db_session.query(TestResult).filter(TestResult.record_id == record.record_id)]
    assert codes == ["MORF", "CRP"]


@pytest.mark.asyncio
async def test_complete_visit_requires_goal(async_client, db_session, doctor_ctx):
    doctor, headers, _ = doctor_ctx
    appointment = make_appointment(
        db_session, make_patient(db_session), doctor, datetime.combine(tomorrow(), time(11)), status="checked_in"
    )
    r = await async_client.patch(
        f"/api/doctor/appointments/{appointment.appointment_id}", json=_visit_payload(visitGoal=""), headers=headers
    )
    assert r.status_code == 400, r.text
    assert r.json()["detail"] == "Cel wizyty jest wymagany"


@pytest.mark.asyncio
async def test_save_dispositions_replaces_listed_days(async_client, db_session, doctor_ctx):
    doctor, headers, _ = doctor_ctx
    day = tomorrow()
    make_availability(db_session, doctor, day=day, start_hour=6, end_hour=7)
    body = {
        "periodStart": day.isoformat(),
        "periodEnd": (day + timedelta(days=6)).isoformat(),
        "days": [
            {"date": day.isoformat(), "startHour": 8, "endHour": 12},
            {"date": (day + timedelta(days=1)).isoformat(), "startHour": 13, "endHour": 17},
        ],
    }

    r = await async_client.post("/api/doctor/dispositions", json=body, headers=headers)
    assert r.status_code == 200, r.text
    assert r.json() == {"status": "ok", "count": 2}

    r = await async_client.get(
        "/api/doctor/dispositions",
        params={"startDate": day.isoformat(), "endDate": day.isoformat()},
        headers=headers,
    )
    assert r.status_code == 200, r.text
    rows = r.json()
    assert [(row["timeStart"], row["timeEnd"]) for row in rows] == [("08:00:00", "12:00:00")]

    assert db_session.query(Availability).filter(Availability.doctor_user_id == doctor.user_id).count() == 2


@pytest.mark.asyncio
async def test_save_dispositions_validation(async_client, doctor_ctx):
    _, headers, _ = doctor_ctx
    day = tomorrow()
    base = {"periodStart": day.isoformat(), "periodEnd": day.isoformat()}

    r = await async_client.post(
        "/api/doctor/dispositions",
        json={**base, "days": [{"date": day.isoformat(), "startHour": 12, "endHour": 12}]},
        headers=headers,
    )
    assert r.status_code == 400, r.text

    yesterday = (today_local() - timedelta(days=1)).isoformat()
    r = await async_client.post(
        "/api/doctor/dispositions",
        json={"periodStart": yesterday, "periodEnd": day.isoformat(),
              "days": [{"date": yesterday, "startHour": 8, "endHour": 10}]},
        headers=headers,
    )
    assert r.status_code == 400, r.text
    assert r.json()["detail"] == "Data nie może być w przeszłości"

    later = (day + timedelta(days=3)).isoformat()
    r = await async_client.post(
        "/api/doctor/dispositions",
        json={**base, "days": [{"date": later, "startHour": 8, "endHour": 10}]},
        headers=headers,
    )
    assert r.status_code == 400, r.text
    assert r.json()["detail"] == "Data musi być w zakresie wybranego okresu"

    r = await async_client.post(
        "/api/doctor/dispositions",
        json={**base, "days": [{"date": "01-01-2030", "startHour": 8, "endHour": 10}]},
        headers=headers,
    )
    assert r.status_code == 400, r.text
    assert r.json()["detail"] == "Data musi być w formacie YYYY-MM-DD"

    r = await async_client.post("/api/doctor/dispositions", json={**base, "days": []}, headers=headers)
    assert r.status_code == 400, r.text
    assert r.json()["detail"] == "Wybierz przynajmniej jeden dzień"


@pytest.mark.asyncio
async def test_today_merges_frames_and_picks_room(async_client, db_session, doctor_ctx):
    doctor, headers, specialization = doctor_ctx
    room = make_room(db_session, [specialization])
    today = today_local()
    make_availability(db_session, doctor, day=today, start_hour=8, end_hour=10)
    make_availability(db_session, doctor, day=today, start_hour=10, end_hour=12)
    make_availability(db_session, doctor, day=today, start_hour=14, end_hour=16)

    r = await async_client.get("/api/doctor/dispositions/today", headers=headers)
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["timeframes"] == [
        {"start": "08:00:00", "end": "12:00:00"},
        {"start": "14:00:00", "end": "16:00:00"},
    ]
    assert data["roomNumber"] == room.number


@pytest.mark.asyncio
async def test_visit_lists_and_stats(async_client, db_session, doctor_ctx):
    doctor, headers, _ = doctor_ctx
    first, second = make_patient(db_session), make_patient(db_session)
    today = today_local()
    make_appointment(db_session, first, doctor, datetime.combine(today, time(23, 40)))
    make_appointment(db_session, second, doctor, datetime.combine(today, time(0, 20)), status="completed", is_online=True)
    make_appointment(db_session, first, doctor, datetime.combine(today, time(1)), status="completed")
    make_appointment(db_session, second, doctor, datetime.combine(today, time(2)), status="canceled")

    r = await async_client.get("/api/doctor/visits/today", headers=headers)
    assert r.status_code == 200, r.text
    assert len(r.json()) == 1

    r = await async_client.get("/api/doctor/visits", params={"date": today.isoformat()}, headers=headers)
    assert r.status_code == 200, r.text
    assert len(r.json()) == 3

    r = await async_client.get("/api/doctor/visits", params={"date": "jutro"}, headers=headers)
    assert r.status_code == 400, r.text

    r = await async_client.get("/api/doctor/patients", headers=headers)
    assert r.status_code == 200, r.text
    assert [p["patientId"] for p in r.json()] == [first.user_id, second.user_id]

    r = await async_client.get("/api/doctor/stats/visitTypes", headers=headers)
    assert r.status_code == 200, r.text
    assert r.json() == {"onsite": 1, "remote": 1}

    r = await async_client.get("/api/doctor/stats/handledVisits", headers=headers)
    assert r.status_code == 200, r.text
    assert sum(w["count"] for w in r.json()) == 2


@pytest.mark.asyncio
async def test_doctor_routes_reject_patients(async_client, db_session):
    patient = make_patient(db_session)
    r = await async_client.get("/api/doctor/visits/today", headers=auth_headers(db_session, patient.user))
    assert r.status_code == 403, r.text
