"""Front desk operations: booking on behalf of patients, room assignment, check-in."""
import logging
import re
from typing import Dict, List, Optional

from fastapi import Request
from sqlalchemy.orm import Session, aliased

from app.cache.cache_service import redis_cache
from app.core.constants import AppointmentStatus, BLOCKING_STATUSES, UserRole
from app.models.appointment import Appointment, Availability
from app.models.clinic import Room
from app.models.patient import Patient
from app.models.user import User
from app.services.appointment_service import AppointmentService
from app.services.audit_service import AuditService
from app.utils.datetime_utils import (
    minutes_to_time,
    overlaps,
    parse_day,
    time_to_minutes,
    today_local,
    today_range,
)
from app.utils.errors import BadRequest, Conflict, NotFound
from app.utils.pesel import pesel_matches

logger = logging.getLogger(__name__)

TIME_RE = re.compile(r"^\d{2}:\d{2}$")


def _time_str(value) -> Optional[str]:
    return value.strftime("%H:%M:%S") if value is not None else None


class ReceptionistService:

    @staticmethod
    async def cancel_appointment(db: Session, request: Request, user_id: str, appointment_id: int) -> Dict:
        appointment = db.query(Appointment).filter(Appointment.appointment_id == appointment_id).first()
        if not appointment:
            raise NotFound("Wizyta nie została znaleziona")
        if appointment.status not in BLOCKING_STATUSES:
            raise BadRequest("Można anulować tylko zaplanowane lub potwierdzone wizyty")

        appointment = await AppointmentService.cancel(db, appointment, notify=True)
        AuditService.record(db, request, user_id, f"Anulowano wizytę #{appointment.appointment_id}.")
        return {"appointmentId": appointment.appointment_id, "status": appointment.status}

    @staticmethod
    async def book(db: Session, request: Request, user_id: str, payload) -> Dict:
        patient_user = db.query(User).filter(User.id == payload.patientId).first()
        if not patient_user:
            raise NotFound("Nie znaleziono pacjenta.")
        if patient_user.role != UserRole.PATIENT.value:
            raise BadRequest("Wybrany użytkownik nie jest pacjentem.")
        if not db.query(Patient.user_id).filter(Patient.user_id == payload.patientId).first():
            raise NotFound("Patient profile not found")

        appointment = await AppointmentService.book(
            db,
            patient_id=payload.patientId,
            doctor_id=payload.doctorId,
            start=payload.datetime,
            kind=payload.type,
            is_online=payload.isOnline,
            notes=payload.notes,
        )
        AuditService.record(
            db, request, user_id,
            f"Umówiono wizytę #{appointment.appointment_id} dla pacjenta {patient_user.email}.",
        )
        return {
            "appointmentId": appointment.appointment_id,
            "status": appointment.status,
            "type": appointment.type,
        }

    @staticmethod
    def _rooms_with_specializations(db: Session) -> List[Dict]:
        rooms = db.query(Room).order_by(Room.number.asc(), Room.room_id.asc()).all()
        return [
            {
                "roomId": room.room_id,
                "number": room.number,
                "specializationIds": [s.id for s in room.specializations],
                "specializationNames": [s.name for s in room.specializations],
            }
            for room in rooms
        ]

    @staticmethod
    def assign_room_overview(db: Session, day: Optional[str]) -> Dict:
        target = parse_day(day, default=today_local())
        rooms = ReceptionistService._rooms_with_specializations(db)

        frames = (
            db.query(Availability)
            .filter(Availability.day == target)
            .order_by(Availability.time_start.asc())
            .all()
        )
        timeframes = []
        for frame in frames:
            doctor = frame.doctor
            specialization_id = doctor.specialization_id if doctor else None
            compatible = [
                {"roomId": r["roomId"], "number": r["number"]}
                for r in rooms
                if specialization_id and specialization_id in r["specializationIds"]
            ]
            timeframes.append({
                "scheduleId": frame.schedule_id,
                "day": frame.day.isoformat(),
                "start": _time_str(frame.time_start),
                "end": _time_str(frame.time_end),
                "doctorId": frame.doctor_user_id,
                "doctorName": doctor.user.name if doctor and doctor.user else "Lekarz",
                "doctorEmail": doctor.user.email if doctor and doctor.user else "",
                "specializationId": specialization_id,
                "specializationName": (
                    doctor.specialization.name if doctor and doctor.specialization else "Brak specjalizacji"
                ),
                "roomId": frame.room_id,
                "roomNumber": frame.room.number if frame.room else None,
                "compatibleRooms": compatible,
            })

        return {"day": target.isoformat(), "timeframes": timeframes, "rooms": rooms}

    @staticmethod
    async def assign_room(db: Session, request: Request, user_id: str, payload) -> Dict:
        frame = db.query(Availability).filter(Availability.schedule_id == payload.scheduleId).first()
        if not frame:
            raise NotFound("Nie znaleziono dyspozycji.")

        doctor = frame.doctor
        if not doctor or not doctor.specialization_id:
            raise BadRequest("Lekarz nie ma przypisanej specjalizacji")

        if payload.roomId is None:
            frame.room_id = None
            db.commit()
            AuditService.record(db, request, user_id, f"Usunięto przypisanie gabinetu z dyspozycji {frame.schedule_id}.")
            await redis_cache.invalidate_slots()
            return {"status": "ok", "roomId": None}

        room = db.query(Room).filter(Room.room_id == payload.roomId).first()
        if not room:
            raise NotFound("Nie znaleziono gabinetu.")

        if doctor.specialization_id not in [s.id for s in room.specializations]:
            raise BadRequest("Pokój nie jest przypisany do specjalizacji lekarza i nie może być wybrany")

        frame_start = time_to_minutes(frame.time_start)
        frame_end = time_to_minutes(frame.time_end)
        taken = (
            db.query(Availability)
            .filter(
                Availability.room_id == room.room_id,
                Availability.day == frame.day,
                Availability.schedule_id != frame.schedule_id,
            )
            .all()
        )
        if any(
            overlaps(frame_start, frame_end, time_to_minutes(o.time_start), time_to_minutes(o.time_end))
            for o in taken
        ):
            raise Conflict("Pokój jest już przypisany do innego lekarza w tym czasie")

        frame.room_id = room.room_id
        db.commit()
        AuditService.record(
            db, request, user_id,
            f"Przypisano gabinet {room.number} do dyspozycji {frame.schedule_id} ({frame.day.isoformat()}).",
        )
        await redis_cache.invalidate_slots()
        return {"status": "ok", "roomId": room.room_id}

    @staticmethod
    async def available_slots(
        db: Session,
        start_date: Optional[str],
        end_date: Optional[str] = None,
        specialization_id: Optional[int] = None,
        doctor_id: Optional[str] = None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
        kind: str = "consultation",
    ) -> Dict:
        start = parse_day(start_date)
        end = parse_day(end_date, default=start)
        if end < start:
            raise BadRequest("Data zakończenia musi być późniejsza lub równa dacie rozpoczęcia")
        if not specialization_id and not doctor_id:
            raise BadRequest("Podaj specializationId lub doctorId")
        for value in (start_time, end_time):
            if value is not None and not TIME_RE.match(value):
                raise BadRequest("Godzina musi być w formacie HH:MM")
        if start_time or end_time:
            if not start_time or not end_time or time_to_minutes(start_time) >= time_to_minutes(end_time):
                raise BadRequest("Podaj poprawny przedział godzin (od < do)")
        if kind not in ("consultation", "procedure"):
            raise BadRequest("Nieprawidłowy typ wizyty.")

        return await AppointmentService.available_slots(
            db,
            start_date=start,
            end_date=end,
            specialization_id=specialization_id,
            doctor_id=doctor_id,
            start_time=start_time,
            end_time=end_time,
            kind=kind,
        )

    @staticmethod
    def patient_appointments(db: Session, patient_id: str) -> List[Dict]:
        rows = (
            db.query(Appointment)
            .filter(Appointment.patient_id == patient_id)
            .order_by(Appointment.datetime.desc())
            .all()
        )
        result = []
        for a in rows:
            doctor = a.doctor
            result.append({
                "appointmentId": a.appointment_id,
                "datetime": a.datetime,
                "status": a.status,
                "type": a.type,
                "isOnline": a.is_online,
                "notes": a.notes,
                "doctorId": a.doctor_id,
                "doctorName": doctor.user.name if doctor and doctor.user else None,
                "doctorEmail": doctor.user.email if doctor and doctor.user else None,
                "specializationId": doctor.specialization_id if doctor else None,
                "specializationName": doctor.specialization.name if doctor and doctor.specialization else None,
                "roomId": a.room_id,
                "roomNumber": a.room.number if a.room else None,
            })
        return result

    @staticmethod
    def visits_today_stats(db: Session) -> Dict:
        start, end = today_range()
        rows = (
            db.query(Appointment.datetime, Appointment.is_online)
            .filter(
                Appointment.status.in_((
                    AppointmentStatus.SCHEDULED.value,
                    AppointmentStatus.CHECKED_IN.value,
                    AppointmentStatus.COMPLETED.value,
                )),
                Appointment.datetime >= start,
                Appointment.datetime < end,
            )
            .all()
        )

        buckets: Dict[int, Dict[str, int]] = {}
        for visit_at, is_online in rows:
            bucket = buckets.setdefault(visit_at.hour, {"onsite": 0, "remote": 0})
            bucket["remote" if is_online else "onsite"] += 1

        ordered = [
            {
                "hour": hour,
                "label": minutes_to_time(hour * 60),
                "onsite": counts["onsite"],
                "remote": counts["remote"],
            }
            for hour, counts in sorted(buckets.items())
        ]
        return {
            "day": start.date().isoformat(),
            "buckets": ordered,
            "totals": {
                "onsite": sum(b["onsite"] for b in ordered),
                "remote": sum(b["remote"] for b in ordered),
            },
        }

    @staticmethod
    def users(db: Session) -> List[Dict]:
        rows = (
            db.query(User)
            .filter(User.banned == False)  # noqa: E712
            .order_by(User.name.asc())
            .all()
        )
        return [
            {
                "userId": u.id,
                "name": u.name,
                "email": u.email,
                "role": u.role,
                "createdAt": u.created_at,
                "isDoctor": u.doctor is not None,
                "licenseNumber": u.doctor.license_number if u.doctor else None,
                "specializationName": (
                    u.doctor.specialization.name if u.doctor and u.doctor.specialization else None
                ),
            }
            for u in rows
        ]

    @staticmethod
    def checkin(db: Session, request: Request, user_id: str, payload) -> Dict:
        appointment = db.query(Appointment).filter(Appointment.appointment_id == payload.appointmentId).first()
        if not appointment:
            raise NotFound("Wizyta nie została znaleziona")

        patient = appointment.patient
        if not patient or not patient.pesel_hmac:
            raise BadRequest("Brak danych pacjenta dla wizyty")

        if appointment.status not in BLOCKING_STATUSES:
            raise BadRequest("Wizyta nie może zostać zameldowana")

        # Telemedicine visits skip identity verification
        if not appointment.is_online:
            if not payload.pesel:
                raise BadRequest("PESEL jest wymagany dla wizyt stacjonarnych")
            if not pesel_matches(payload.pesel, patient.pesel_hmac):
                raise BadRequest("PESEL niezgodny z danymi pacjenta")

        if appointment.status == AppointmentStatus.CHECKED_IN.value:
            return {"status": "ok", "appointmentId": appointment.appointment_id, "visitStatus": appointment.status}

        appointment.status = AppointmentStatus.CHECKED_IN.value
        db.commit()
        AuditService.record(db, request, user_id, f"Zameldowano pacjenta na wizytę #{appointment.appointment_id}.")
        return {"status": "ok", "appointmentId": appointment.appointment_id, "visitStatus": appointment.status}

    @staticmethod
    def visits_today(db: Session) -> List[Dict]:
        start, end = today_range()
        patient_user = aliased(User)
        doctor_user = aliased(User)
        rows = (
            db.query(Appointment, patient_user, doctor_user, Room)
            .outerjoin(patient_user, Appointment.patient_id == patient_user.id)
            .outerjoin(doctor_user, Appointment.doctor_id == doctor_user.id)
            .outerjoin(Room, Appointment.room_id == Room.room_id)
            .filter(
                Appointment.status.in_(BLOCKING_STATUSES),
                Appointment.datetime >= start,
                Appointment.datetime < end,
            )
            .order_by(Appointment.datetime.asc())
            .all()
        )
        return [
            {
                "appointmentId": a.appointment_id,
                "datetime": a.datetime,
                "status": a.status,
                "isOnline": bool(a.is_online),
                "type": a.type,
                "patientName": p.name if p else "Pacjent",
                "patientEmail": p.email if p else None,
                "doctorName": d.name if d else "Lekarz",
                "doctorEmail": d.email if d else None,
                "roomNumber": room.number if room else None,
            }
            for a, p, d, room in rows
        ]

