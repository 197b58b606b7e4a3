import logging
from datetime import time
from typing import Dict, List, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from app.cache.cache_service import redis_cache
from app.core.constants import AppointmentStatus, PrescriptionStatus
from app.models.appointment import Appointment, Availability
from app.models.clinic import Room, room_specializations
from app.models.doctor import Doctor
from app.models.medical import MedicalRecord, Medication, Prescription, Recommendation, TestResult
from app.models.user import User
from app.services.audit_service import AuditService
from app.utils.datetime_utils import (
    day_range,
    iso_week_start,
    merge_frames,
    minutes_to_time,
    months_ago,
    now_local,
    parse_date,
    parse_day,
    time_to_minutes,
    today_local,
    today_range,
)
from app.utils.errors import BadRequest, Forbidden, NotFound
from app.utils.helpers import build_person_name, room_number_str, unique_preserving_order

logger = logging.getLogger(__name__)

EXAM_CODE_TEST_TYPE = "Kod badania"


def _medication_lines(text: Optional[str]) -> List[str]:
    if not text:
        return []
    return [line.strip() for line in text.splitlines() if line.strip()]


def _visit_notes(payload) -> str:
    chunks = [f"Cel wizyty: {payload.visitGoal}"]
    if payload.symptoms:
        chunks.append(f"Objawy: {payload.symptoms}")
    if payload.diagnosisDescription:
        chunks.append(f"Diagnoza: {payload.diagnosisDescription}")
    if payload.recommendations:
        chunks.append(f"Zalecenia: {payload.recommendations}")
    if payload.proceduresPerformed:
        chunks.append(f"Procedury: {payload.proceduresPerformed}")
    return "\n\n".join(chunks)


def _patient_name(appointment: Appointment) -> Optional[str]:
    patient = appointment.patient
    user = patient.user if patient else None
    return build_person_name(
        patient.first_name if patient else None,
        patient.last_name if patient else None,
        user.name if user else None,
    )


class DoctorService:
    """Doctor panel: own visits, visit completion, availability (dispositions) and stats."""

    @staticmethod
    def ensure_doctor(db: Session, user_id: str) -> Doctor:
        doctor = db.query(Doctor).filter(Doctor.user_id == user_id).first()
        if not doctor:
            raise NotFound("Nie znaleziono profilu lekarza.")
        return doctor

    @staticmethod
    def _own_appointment(db: Session, user_id: str, appointment_id: int) -> Appointment:
        appointment = db.query(Appointment).filter(Appointment.appointment_id == appointment_id).first()
        if not appointment:
            raise NotFound("Nie znaleziono wizyty")
        if appointment.doctor_id != user_id:
            raise Forbidden("Brak dostępu")
        return appointment

    @staticmethod
    def get_appointment(db: Session, user_id: str, appointment_id: int) -> Dict:
        appointment = DoctorService._own_appointment(db, user_id, appointment_id)
        patient = appointment.patient
        patient_user = patient.user if patient else None
        return {
            "appointmentId": appointment.appointment_id,
            "datetime": appointment.datetime,
            "status": appointment.status,
            "type": appointment.type,
            "isOnline": appointment.is_online,
            "notes": appointment.notes,
            "patientId": appointment.patient_id,
            "patientName": _patient_name(appointment),
            "patientEmail": patient_user.email if patient_user else None,
            "patientPhone": patient.phone if patient else None,
            "roomId": appointment.room_id,
            "roomNumber": room_number_str(appointment.room.number if appointment.room else None),
            "recommendation": appointment.recommendation.content if appointment.recommendation else None,
            "prescription": (
                [m.description for m in appointment.prescription.medications]
                if appointment.prescription else None
            ),
        }

    @staticmethod
    def complete_visit(db: Session, request: Request, user_id: str, appointment_id: int, payload) -> Dict:
        """
        Close a checked-in visit.

        Recommendation, prescription, notes and exam-code test results are
        written in a single transaction.
        """
        appointment = DoctorService._own_appointment(db, user_id, appointment_id)
        if appointment.status != AppointmentStatus.CHECKED_IN.value:
            raise BadRequest("Wizyta nie została zameldowana przez recepcję")

        medication_lines = _medication_lines(payload.prescribedMedications)
        exam_codes = unique_preserving_order(
            code.strip() for code in (payload.examResultCodes or []) if code and code.strip()
        )

        try:
            if payload.recommendations and payload.recommendations.strip():
                recommendation = Recommendation(content=payload.recommendations.strip())
                db.add(recommendation)
                db.flush()
                appointment.recommendation_id = recommendation.recommendation_id

            if medication_lines:
                prescription = Prescription(status=PrescriptionStatus.ACTIVE.value)
                prescription.medications = [Medication(description=line) for line in medication_lines]
                db.add(prescription)
                db.flush()
                appointment.prescription_id = prescription.prescription_id

            appointment.status = AppointmentStatus.COMPLETED.value
            appointment.notes = _visit_notes(payload)

            if exam_codes:
                record = db.query(MedicalRecord).filter(MedicalRecord.patient_id == appointment.patient_id).first()
                if not record:
                    record = MedicalRecord(patient_id=appointment.patient_id)
                    db.add(record)
                    db.flush()
                test_date = today_local()
                for code in exam_codes:
                    db.add(TestResult(
                        record_id=record.record_id,
                        test_type=EXAM_CODE_TEST_TYPE,
                        result=code,
                        test_date=test_date,
                    ))

            AuditService.record(
                db, request, user_id, f"Zakończono wizytę #{appointment.appointment_id}.", commit=False
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(appointment)
        logger.info(f"Doctor {user_id} completed appointment {appointment.appointment_id}")
        return {
            "appointmentId": appointment.appointment_id,
            "status": appointment.status,
            "recommendationId": appointment.recommendation_id,
            "prescriptionId": appointment.prescription_id,
        }

    @staticmethod
    def dispositions(db: Session, user_id: str, start_date: Optional[str] = None, end_date: Optional[str] = None) -> List[Dict]:
        query = db.query(Availability).filter(Availability.doctor_user_id == user_id)
        if start_date is not None:
            query = query.filter(Availability.day >= parse_day(start_date))
        if end_date is not None:
            query = query.filter(Availability.day <= parse_day(end_date))

        return [
            {
                "scheduleId": slot.schedule_id,
                "day": slot.day.isoformat(),
                "timeStart": slot.time_start.strftime("%H:%M:%S"),
                "timeEnd": slot.time_end.strftime("%H:%M:%S"),
                "doctorUserId": slot.doctor_user_id,
            }
            for slot in query.order_by(Availability.day.asc(), Availability.time_start.asc()).all()
        ]

    @staticmethod
    async def save_dispositions(db: Session, request: Request, user_id: str, payload) -> Dict:
        """Replace the doctor's availability on every date listed in the payload."""
        DoctorService.ensure_doctor(db, user_id)
        today = today_local()
        days = []
        for item in payload.days:
            try:
                day = parse_date(item.date)
            except ValueError:
                raise BadRequest("Data jest nieprawidłowa")
            if day < today:
                raise BadRequest("Data nie może być w przeszłości")
            if item.date < payload.periodStart or item.date > payload.periodEnd:
                raise BadRequest("Data musi być w zakresie wybranego okresu")
            days.append((day, item))

        try:
            for day in unique_preserving_order(day for day, _ in days):
                db.query(Availability).filter(
                    Availability.doctor_user_id == user_id,
                    Availability.day == day,
                ).delete(synchronize_session=False)

            for day, item in days:
                db.add(Availability(
                    day=day,
                    time_start=time(item.startHour),
                    time_end=time(item.endHour),
                    doctor_user_id=user_id,
                ))
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(
                f"Saving dispositions failed doctor={user_id} period={payload.periodStart}..{payload.periodEnd}: {e}"
            )
            raise

        count = len(days)
        AuditService.record(
            db, request, user_id,
            f"Zapisano dyspozycje na okres {payload.periodStart} - {payload.periodEnd} ({count} slotów)",
        )
        await redis_cache.invalidate_slots()
        return {"status": "ok", "count": count}

    @staticmethod
    def today(db: Session, user_id: str) -> Dict:
        doctor = DoctorService.ensure_doctor(db, user_id)

        room_number = None
        if doctor.specialization_id:
            room = (
                db.query(Room)
                .join(room_specializations, room_specializations.c.room_id == Room.room_id)
                .filter(room_specializations.c.specialization_id == doctor.specialization_id)
                .first()
            )
            room_number = room.number if room else None

        day = today_local()
        slots = (
            db.query(Availability)
            .filter(Availability.doctor_user_id == doctor.user_id, Availability.day == day)
            .order_by(Availability.time_start.asc())
            .all()
        )
        merged = merge_frames((time_to_minutes(s.time_start), time_to_minutes(s.time_end)) for s in slots)
        return {
            "day": day.isoformat(),
            "timeframes": [
                {"start": f"{minutes_to_time(start)}:00", "end": f"{minutes_to_time(end)}:00"}
                for start, end in merged
            ],
            "roomNumber": room_number,
        }

    @staticmethod
    def patients(db: Session, user_id: str) -> List[Dict]:
        doctor = DoctorService.ensure_doctor(db, user_id)
        rows = (
            db.query(Appointment, User)
            .outerjoin(User, Appointment.patient_id == User.id)
            .filter(Appointment.doctor_id == doctor.user_id)
            .order_by(Appointment.datetime.desc())
            .all()
        )
        seen = set()
        result = []
        for appointment, patient_user in rows:
            if appointment.patient_id in seen:
                continue
            seen.add(appointment.patient_id)
            result.append({
                "patientId": appointment.patient_id,
                "lastAppointmentId": appointment.appointment_id,
                "lastAppointmentDatetime": appointment.datetime,
                "lastAppointmentStatus": appointment.status,
                "patientName": patient_user.name if patient_user else None,
                "patientEmail": patient_user.email if patient_user else None,
            })
        return result

    @staticmethod
    def handled_visits(db: Session, user_id: str) -> List[Dict]:
        doctor = DoctorService.ensure_doctor(db, user_id)
        since = months_ago(now_local(), 2)
        rows = (
            db.query(Appointment.datetime)
            .filter(
                Appointment.doctor_id == doctor.user_id,
                Appointment.status == AppointmentStatus.COMPLETED.value,
                Appointment.datetime >= since,
            )
            .all()
        )
        weeks: Dict = {}
        for (visit_at,) in rows:
            week = iso_week_start(visit_at)
            weeks[week] = weeks.get(week, 0) + 1
        return [{"weekStart": week.isoformat(), "count": count} for week, count in sorted(weeks.items())]

    @staticmethod
    def visit_types(db: Session, user_id: str) -> Dict:
        doctor = DoctorService.ensure_doctor(db, user_id)
        rows = (
            db.query(Appointment.is_online)
            .filter(
                Appointment.doctor_id == doctor.user_id,
                Appointment.status == AppointmentStatus.COMPLETED.value,
            )
            .all()
        )
        remote = sum(1 for (is_online,) in rows if is_online)
        return {"onsite": len(rows) - remote, "remote": remote}

    @staticmethod
    def visits(db: Session, user_id: str, date: Optional[str] = None) -> List[Dict]:
        doctor = DoctorService.ensure_doctor(db, user_id)
        query = db.query(Appointment).filter(
            Appointment.doctor_id == doctor.user_id,
            Appointment.status != AppointmentStatus.CANCELED.value,
        )
        if date is not None:
            start, end = day_range(parse_day(date))
            query = query.filter(Appointment.datetime >= start, Appointment.datetime < end)
            query = query.order_by(Appointment.datetime.asc())
        else:
            query = query.order_by(Appointment.datetime.desc())

        result = []
        for appointment in query.all():
            patient = appointment.patient
            patient_user = patient.user if patient else None
            result.append({
                "appointmentId": appointment.appointment_id,
                "datetime": appointment.datetime,
                "status": appointment.status,
                "notes": appointment.notes,
                "patientId": appointment.patient_id,
                "patientName": _patient_name(appointment),
                "patientEmail": patient_user.email if patient_user else None,
                "roomId": appointment.room_id,
                "roomNumber": room_number_str(appointment.room.number if appointment.room else None),
            })
        return result

    @staticmethod
    def visits_today(db: Session, user_id: str) -> List[Dict]:
        doctor = DoctorService.ensure_doctor(db, user_id)
        start, end = today_range()
        rows = (
            db.query(Appointment, User, Room)
            .outerjoin(User, Appointment.patient_id == User.id)
            .outerjoin(Room, Appointment.room_id == Room.room_id)
            .filter(
                Appointment.doctor_id == doctor.user_id,
                Appointment.status == AppointmentStatus.SCHEDULED.value,
                Appointment.datetime >= start,
                Appointment.datetime < end,
            )
            .order_by(Appointment.datetime.desc())
            .all()
        )
        return [
            {
                "appointmentId": a.appointment_id,
                "datetime": a.datetime,
                "status": a.status,
                "notes": a.notes,
                "patientId": a.patient_id,
                "patientName": u.name if u else None,
                "patientEmail": u.email if u else None,
                "roomId": room.room_id if room else None,
                "roomNumber": room.number if room else None,
            }
            for a, u, room in rows
        ]
