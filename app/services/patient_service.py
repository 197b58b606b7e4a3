from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.constants import AppointmentStatus, AppointmentType, BLOCKING_STATUSES, PrescriptionStatus
from app.models.appointment import Appointment
from app.models.clinic import Specialization
from app.models.medical import MedicalRecord, Prescription, Recommendation, TestResult
from app.models.patient import Patient
from app.models.user import User
from app.services.appointment_service import AppointmentService
from app.utils.datetime_utils import now_local
from app.utils.errors import BadRequest, Forbidden, NotFound
from app.utils.helpers import room_number_str


def _doctor_fields(appointment: Appointment) -> Dict:
    doctor_user = appointment.doctor.user if appointment.doctor else None
    return {
        "doctorId": appointment.doctor_id,
        "doctorName": doctor_user.name if doctor_user else None,
        "doctorEmail": doctor_user.email if doctor_user else None,
    }


def _visit_row(appointment: Appointment) -> Dict:
    return {
        "appointmentId": appointment.appointment_id,
        "datetime": appointment.datetime,
        "status": appointment.status,
        "notes": appointment.notes,
        **_doctor_fields(appointment),
        "roomId": appointment.room_id,
        "roomNumber": appointment.room.number if appointment.room else None,
    }


def _result_row(result: TestResult) -> Dict:
    return {
        "testId": result.test_id,
        "testType": result.test_type,
        "result": result.result,
        "testDate": result.test_date,
        "filePath": result.file_path,
    }


class PatientService:
    @staticmethod
    def ensure_patient(db: Session, user_id: str) -> Patient:
        patient = db.query(Patient).filter(Patient.user_id == user_id).first()
        if not patient:
            raise NotFound("Patient profile not found")
        return patient

    @staticmethod
    def _prescription_rows(db: Session, patient_id: str, active_only: bool = False) -> List[Dict]:
        """One row per prescription, newest first, with its medication descriptions."""
        query = (
            db.query(Appointment, Prescription)
            .join(Prescription, Appointment.prescription_id == Prescription.prescription_id)
            .filter(Appointment.patient_id == patient_id)
        )
        if active_only:
            query = query.filter(Prescription.status == PrescriptionStatus.ACTIVE.value)

        rows = []
        seen = set()
        for appointment, prescription in query.order_by(Prescription.issued_at.desc()).all():
            if prescription.prescription_id in seen:
                continue
            seen.add(prescription.prescription_id)
            rows.append({
                "prescriptionId": prescription.prescription_id,
                "issuedAt": prescription.issued_at,
                "status": prescription.status,
                "appointmentId": appointment.appointment_id,
                "appointmentDatetime": appointment.datetime,
                **_doctor_fields(appointment),
                "medications": [m.description for m in prescription.medications],
            })
        return rows

    @staticmethod
    def _results(db: Session, patient_id: str, limit: Optional[int] = None) -> List[Dict]:
        record = db.query(MedicalRecord).filter(MedicalRecord.patient_id == patient_id).first()
        if not record:
            return []
        query = (
            db.query(TestResult)
            .filter(TestResult.record_id == record.record_id)
            .order_by(TestResult.test_date.desc(), TestResult.test_id.desc())
        )
        if limit:
            query = query.limit(limit)
        return [_result_row(r) for r in query.all()]

    @staticmethod
    def _upcoming(db: Session, patient_id: str, limit: Optional[int] = None, statuses=BLOCKING_STATUSES) -> List[Appointment]:
        query = (
            db.query(Appointment)
            .filter(
                Appointment.patient_id == patient_id,
                Appointment.datetime >= now_local(),
                Appointment.status.in_(statuses),
            )
            .order_by(Appointment.datetime.asc())
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def active_prescriptions(db: Session, user_id: str) -> List[Dict]:
        patient = PatientService.ensure_patient(db, user_id)
        return PatientService._prescription_rows(db, patient.user_id, active_only=True)

    @staticmethod
    def prescriptions(db: Session, user_id: str) -> List[Dict]:
        patient = PatientService.ensure_patient(db, user_id)
        return PatientService._prescription_rows(db, patient.user_id)

    @staticmethod
    def fulfil_prescription(db: Session, user_id: str, prescription_id: int) -> Dict:
        patient = PatientService.ensure_patient(db, user_id)
        prescription = (
            db.query(Prescription)
            .join(Appointment, Appointment.prescription_id == Prescription.prescription_id)
            .filter(
                Appointment.patient_id == patient.user_id,
                Prescription.prescription_id == prescription_id,
            )
            .first()
        )
        if not prescription:
            raise NotFound("Nie znaleziono recepty.")
        if prescription.status != PrescriptionStatus.ACTIVE.value:
            raise BadRequest("Można zrealizować tylko aktywną receptę.")

        prescription.status = PrescriptionStatus.FULFILLED.value
        db.commit()
        return {"prescriptionId": prescription.prescription_id, "status": prescription.status}

    @staticmethod
    def get_appointment(db: Session, user_id: str, appointment_id: int) -> Dict:
        appointment = db.query(Appointment).filter(Appointment.appointment_id == appointment_id).first()
        if not appointment:
            raise NotFound("Nie znaleziono wizyty")
        if appointment.patient_id != user_id:
            raise Forbidden("Brak dostępu")

        doctor_user = appointment.doctor.user if appointment.doctor else None
        return {
            "appointmentId": appointment.appointment_id,
            "datetime": appointment.datetime,
            "status": appointment.status,
            "type": appointment.type,
            "isOnline": appointment.is_online,
            "notes": appointment.notes,
            "doctorName": doctor_user.name if doctor_user else None,
            "roomId": appointment.room_id,
            "roomNumber": room_number_str(appointment.room.number if appointment.room else None),
            "recommendation": appointment.recommendation.content if appointment.recommendation else None,
            "prescription": (
                [m.description for m in appointment.prescription.medications]
                if appointment.prescription else None
            ),
        }

    @staticmethod
    async def cancel_appointment(db: Session, user_id: str, appointment_id: int) -> Dict:
        patient = PatientService.ensure_patient(db, user_id)
        appointment = db.query(Appointment).filter(
            Appointment.appointment_id == appointment_id,
            Appointment.patient_id == patient.user_id,
        ).first()
        if not appointment:
            raise NotFound("Nie znaleziono wizyty")
        if appointment.status != AppointmentStatus.SCHEDULED.value:
            raise BadRequest("Można anulować tylko zaplanowane wizyty.")

        appointment = await AppointmentService.cancel(db, appointment)
        return {"appointmentId": appointment.appointment_id, "status": appointment.status}

    @staticmethod
    async def book(db: Session, user_id: str, payload) -> Dict:
        patient = PatientService.ensure_patient(db, user_id)
        appointment = await AppointmentService.book(
            db,
            patient_id=patient.user_id,
            doctor_id=payload.doctorId,
            start=payload.datetime,
            kind=AppointmentType.CONSULTATION.value,
            is_online=payload.isOnline,
            notes=payload.notes,
            room_id=payload.roomId,
        )
        return {"appointmentId": appointment.appointment_id, "status": appointment.status}

    @staticmethod
    def dashboard(db: Session, user_id: str) -> Dict:
        patient = PatientService.ensure_patient(db, user_id)
        upcoming = PatientService._upcoming(
            db, patient.user_id, limit=2, statuses=(AppointmentStatus.SCHEDULED.value,)
        )
        return {
            "upcomingVisits": [_visit_row(a) for a in upcoming],
            "recentResults": [
                {k: v for k, v in row.items() if k != "filePath"}
                for row in PatientService._results(db, patient.user_id, limit=2)
            ],
            "activePrescriptions": PatientService._prescription_rows(db, patient.user_id, active_only=True)[:4],
        }

    @staticmethod
    def overview(db: Session, user_id: str) -> Dict:
        patient = PatientService.ensure_patient(db, user_id)
        user = db.query(User).filter(User.id == patient.user_id).first()

        upcoming = (
            db.query(Appointment)
            .filter(
                Appointment.patient_id == patient.user_id,
                Appointment.datetime >= now_local(),
                Appointment.status == AppointmentStatus.SCHEDULED.value,
            )
            .order_by(Appointment.datetime.desc())
            .all()
        )
        visits_count = db.query(Appointment).filter(Appointment.patient_id == patient.user_id).count()
        active = PatientService._prescription_rows(db, patient.user_id, active_only=True)
        results = PatientService._results(db, patient.user_id)

        return {
            "user": {
                "id": user.id,
                "email": user.email,
                "name": user.name,
                "role": user.role,
                "emailVerified": user.email_verified,
                "createdAt": user.created_at,
            },
            "overview": {
                "upcomingAppointmentsCount": len(upcoming),
                "activePrescriptionsCount": len(active),
                "testResultsCount": len(results),
                "visitsCount": visits_count,
            },
            "nextAppointments": [
                {
                    "appointmentId": a.appointment_id,
                    "datetime": a.datetime,
                    "status": a.status,
                    "doctorId": a.doctor_id,
                }
                for a in upcoming[:3]
            ],
            "activePrescriptions": active[:5],
            "latestResults": results[:5],
        }

    @staticmethod
    def recent_results(db: Session, user_id: str) -> List[Dict]:
        patient = PatientService.ensure_patient(db, user_id)
        return PatientService._results(db, patient.user_id, limit=3)

    @staticmethod
    def results(db: Session, user_id: str) -> List[Dict]:
        patient = PatientService.ensure_patient(db, user_id)
        return PatientService._results(db, patient.user_id)

    @staticmethod
    def recommendations(db: Session, user_id: str) -> List[Dict]:
        patient = PatientService.ensure_patient(db, user_id)
        rows = (
            db.query(Appointment, Recommendation)
            .join(Recommendation, Appointment.recommendation_id == Recommendation.recommendation_id)
            .filter(Appointment.patient_id == patient.user_id)
            .order_by(Recommendation.created_at.desc())
            .all()
        )
        result = []
        seen = set()
        for appointment, recommendation in rows:
            if recommendation.recommendation_id in seen:
                continue
            seen.add(recommendation.recommendation_id)
            result.append({
                "recommendationId": recommendation.recommendation_id,
                "content": recommendation.content,
                "createdAt": recommendation.created_at,
                "appointmentId": appointment.appointment_id,
                "appointmentDatetime": appointment.datetime,
                **_doctor_fields(appointment),
            })
        return result

    @staticmethod
    def specializations(db: Session) -> List[Dict]:
        return [
            {"id": s.id, "name": s.name}
            for s in db.query(Specialization).order_by(Specialization.name.asc()).all()
        ]

    @staticmethod
    def upcoming_visits(db: Session, user_id: str) -> List[Dict]:
        patient = PatientService.ensure_patient(db, user_id)
        return [_visit_row(a) for a in PatientService._upcoming(db, patient.user_id, limit=2)]

    @staticmethod
    def visits(db: Session, user_id: str) -> List[Dict]:
        patient = PatientService.ensure_patient(db, user_id)
        rows = (
            db.query(Appointment)
            .filter(Appointment.patient_id == patient.user_id)
            .order_by(Appointment.datetime.asc())
            .all()
        )
        return [_visit_row(a) for a in rows]
