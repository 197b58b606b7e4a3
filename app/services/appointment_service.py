from datetime import datetime, timedelta, date as date_type
from typing import Dict, Iterable, List, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from app.cache.cache_service import redis_cache, available_slots_key
from app.core.config import settings
from app.core.constants import (
    APPOINTMENT_DURATION_MINUTES,
    AppointmentStatus,
    AppointmentType,
    BLOCKING_STATUSES,
    SLOT_MINUTES,
)
from app.models.appointment import Appointment, Availability
from app.models.clinic import Room
from app.models.doctor import Doctor
from app.models.user import User
from app.services.notification_service import NotificationService
from app.utils.datetime_utils import (
    build_date_range,
    day_range,
    format_date_long,
    format_slot,
    format_time,
    merge_frames,
    minutes_of_day,
    now_local,
    overlaps,
    time_to_minutes,
    to_local_naive,
)
from app.utils.errors import BadRequest, Conflict, NotFound
from app.utils.helpers import build_person_name

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

SLOT_OUTSIDE_AVAILABILITY = "Wybrany termin jest poza godzinami przyjęć lekarza."
SLOT_TAKEN = "Wybrany termin jest już zajęty."
ROOM_TAKEN = "Gabinet jest zajęty w wybranym terminie."
DOCTOR_NOT_FOUND = "Nie znaleziono lekarza."
ROOM_NOT_FOUND = "Nie znaleziono gabinetu."
NO_ROOMS = "Brak skonfigurowanych gabinetów."
PAST_SLOT = "Nie można umówić wizyty w przeszłości."


def duration_minutes(kind: Optional[str]) -> int:
    return APPOINTMENT_DURATION_MINUTES.get(kind or "", SLOT_MINUTES)


def appointment_window(appointment: Appointment) -> Tuple[datetime, datetime]:
    start = appointment.datetime
    return start, start + timedelta(minutes=duration_minutes(appointment.type))


def free_slots(
    day: date_type,
    frames: Iterable[Tuple[int, int]],
    busy: Iterable[Tuple[int, int]],
    duration: int,
    window_start: int = 0,
    window_end: int = MINUTES_PER_DAY,
) -> List[Dict[str, str]]:
    """
    Step through merged availability frames at ``duration`` and keep the
    candidates that do not overlap a busy ``(start, end)`` minute range.
    """
    busy = list(busy)
    slots = []
    for frame_start, frame_end in merge_frames(frames):
        start = max(frame_start, window_start)
        end = min(frame_end, window_end)
        while start + duration <= end:
            candidate_end = start + duration
            if not any(overlaps(start, candidate_end, b_start, b_end) for b_start, b_end in busy):
                slots.append({
                    "start": format_slot(day, start),
                    "end": format_slot(day, candidate_end),
                })
            start += duration
    return slots


class AppointmentService:
    """
    Booking rules shared by the patient and receptionist endpoints:
    - available slot listing (cached in Redis)
    - availability and overlap checks for doctor and room
    - cancellation
    """

    @staticmethod
    def blocking_appointments(
        db: Session,
        day: date_type,
        doctor_id: Optional[str] = None,
        room_id: Optional[int] = None,
        until: Optional[date_type] = None,
    ) -> List[Appointment]:
        start, _ = day_range(day)
        _, end = day_range(until or day)
        query = db.query(Appointment).filter(
            Appointment.datetime >= start,
            Appointment.datetime < end,
            Appointment.status.in_(BLOCKING_STATUSES),
        )
        if doctor_id is not None:
            query = query.filter(Appointment.doctor_id == doctor_id)
        if room_id is not None:
            query = query.filter(Appointment.room_id == room_id)
        return query.all()

    @staticmethod
    def has_overlap(appointments: Iterable[Appointment], start: datetime, end: datetime) -> bool:
        for existing in appointments:
            existing_start, existing_end = appointment_window(existing)
            if overlaps(existing_start, existing_end, start, end):
                return True
        return False

    @staticmethod
    def frames_for(db: Session, doctor_id: str, day: date_type) -> List[Availability]:
        return (
            db.query(Availability)
            .filter(Availability.doctor_user_id == doctor_id, Availability.day == day)
            .order_by(Availability.time_start.asc())
            .all()
        )

    @staticmethod
    def _resolve_room(db: Session, doctor: Doctor, frames: List[Availability], start_min: int, room_id: Optional[int]) -> Room:
        if room_id is not None:
            room = db.query(Room).filter(Room.room_id == room_id).first()
            if not room:
                raise NotFound(ROOM_NOT_FOUND)
            return room

        # Room the receptionist assigned to the covering frame
        for frame in frames:
            if frame.room_id and time_to_minutes(frame.time_start) <= start_min < time_to_minutes(frame.time_end):
                return frame.room

        rooms = db.query(Room).order_by(Room.number.asc()).all()
        if not rooms:
            raise BadRequest(NO_ROOMS)
        for room in rooms:
            if doctor.specialization_id and any(s.id == doctor.specialization_id for s in room.specializations):
                return room
        return rooms[0]

    @staticmethod
    async def book(
        db: Session,
        patient_id: str,
        doctor_id: str,
        start: datetime,
        kind: str = AppointmentType.CONSULTATION.value,
        is_online: bool = False,
        notes: Optional[str] = None,
        room_id: Optional[int] = None,
    ) -> Appointment:
        """
        Insert a scheduled appointment.

        The doctor row is locked for the duration of the checks so two
        concurrent bookings for the same doctor serialize.
        """
        start = to_local_naive(start).replace(second=0, microsecond=0)
        end = start + timedelta(minutes=duration_minutes(kind))
        if start < now_local():
            raise BadRequest(PAST_SLOT)

        try:
            doctor = (
                db.query(Doctor)
                .filter(Doctor.user_id == doctor_id)
                .with_for_update()
                .first()
            )
            if not doctor or doctor.user.is_banned():
                raise NotFound(DOCTOR_NOT_FOUND)

            day = start.date()
            frames = AppointmentService.frames_for(db, doctor_id, day)
            start_min = minutes_of_day(start)
            end_min = start_min + duration_minutes(kind)
            merged = merge_frames(
                (time_to_minutes(f.time_start), time_to_minutes(f.time_end)) for f in frames
            )
            if end.date() != day or not any(f_start <= start_min and end_min <= f_end for f_start, f_end in merged):
                raise BadRequest(SLOT_OUTSIDE_AVAILABILITY)

            doctor_busy = AppointmentService.blocking_appointments(db, day, doctor_id=doctor_id)
            if AppointmentService.has_overlap(doctor_busy, start, end):
                raise Conflict(SLOT_TAKEN)

            room = None
            if not is_online:
                room = AppointmentService._resolve_room(db, doctor, frames, start_min, room_id)
                room_busy = AppointmentService.blocking_appointments(db, day, room_id=room.room_id)
                if AppointmentService.has_overlap(room_busy, start, end):
                    raise Conflict(ROOM_TAKEN)

            appointment = Appointment(
                patient_id=patient_id,
                doctor_id=doctor_id,
                datetime=start,
                status=AppointmentStatus.SCHEDULED.value,
                type=kind,
                is_online=is_online,
                notes=notes,
                room_id=room.room_id if room else None,
            )
            db.add(appointment)
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(appointment)
        logger.info(
            f"Booked appointment {appointment.appointment_id} doctor={doctor_id} patient={patient_id} at {start.isoformat()}"
        )
        await redis_cache.invalidate_slots()
        return appointment

    @staticmethod
    async def cancel(db: Session, appointment: Appointment, notify: bool = False) -> Appointment:
        appointment.status = AppointmentStatus.CANCELED.value
        db.commit()
        db.refresh(appointment)
        await redis_cache.invalidate_slots()

        if notify:
            AppointmentService.notify_cancelled(db, appointment)
        return appointment

    @staticmethod
    def notify_cancelled(
        db: Session,
        appointment: Appointment,
        subject: str = "Wizyta została anulowana",
        reason: Optional[str] = None,
    ) -> None:
        patient_user = db.query(User).filter(User.id == appointment.patient_id).first()
        doctor_user = db.query(User).filter(User.id == appointment.doctor_id).first()
        if not patient_user or not doctor_user:
            return
        patient = appointment.patient
        NotificationService.send_appointment_cancelled(
            email=patient_user.email,
            patient_name=build_person_name(
                patient.first_name if patient else None,
                patient.last_name if patient else None,
                patient_user.name,
                "Pacjent",
            ),
            doctor_name=doctor_user.name,
            appointment_datetime=f"{format_date_long(appointment.datetime)} {format_time(appointment.datetime)}",
            is_online=appointment.is_online,
            appointment_type=appointment.type,
            subject=subject,
            reason=reason,
        )

    @staticmethod
    async def available_slots(
        db: Session,
        start_date: date_type,
        end_date: Optional[date_type] = None,
        specialization_id: Optional[int] = None,
        doctor_id: Optional[str] = None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
        kind: str = AppointmentType.CONSULTATION.value,
    ) -> dict:
        """Free slots per doctor between two dates. Uses Redis caching."""
        end_date = end_date or start_date
        cache_key = available_slots_key(
            doctor_id or f"specialization-{specialization_id}",
            start_date.isoformat(),
            end_date.isoformat(),
            start_time or "",
            end_time or "",
            kind,
        )
        cached = await redis_cache.get_json(cache_key)
        if cached is not None:
            return cached

        duration = duration_minutes(kind)
        window_start = time_to_minutes(start_time) if start_time else 0
        window_end = time_to_minutes(end_time) if end_time else MINUTES_PER_DAY
        days = build_date_range(start_date, end_date)

        query = (
            db.query(Doctor)
            .join(User, Doctor.user_id == User.id)
            .filter(User.banned == False)  # noqa: E712
        )
        if doctor_id:
            query = query.filter(Doctor.user_id == doctor_id)
        else:
            query = query.filter(Doctor.specialization_id == specialization_id)
        doctors = query.all()

        results = []
        for doctor in doctors:
            frames_by_day: Dict[date_type, List[Tuple[int, int]]] = {}
            for row in (
                db.query(Availability)
                .filter(
                    Availability.doctor_user_id == doctor.user_id,
                    Availability.day >= start_date,
                    Availability.day <= end_date,
                )
                .order_by(Availability.day.asc(), Availability.time_start.asc())
            ):
                frames_by_day.setdefault(row.day, []).append(
                    (time_to_minutes(row.time_start), time_to_minutes(row.time_end))
                )

            busy_by_day: Dict[date_type, List[Tuple[int, int]]] = {}
            for appointment in AppointmentService.blocking_appointments(
                db, start_date, doctor_id=doctor.user_id, until=end_date
            ):
                begin = minutes_of_day(appointment.datetime)
                busy_by_day.setdefault(appointment.datetime.date(), []).append(
                    (begin, begin + duration_minutes(appointment.type))
                )

            slots = []
            for day in days:
                if day not in frames_by_day:
                    continue
                slots.extend(free_slots(
                    day,
                    frames_by_day[day],
                    busy_by_day.get(day, []),
                    duration,
                    window_start,
                    window_end,
                ))

            results.append({
                "doctorId": doctor.user_id,
                "specializationId": doctor.specialization_id,
                "specializationName": doctor.specialization.name if doctor.specialization else None,
                "doctorName": doctor.user.name if doctor.user else None,
                "doctorEmail": doctor.user.email if doctor.user else None,
                "slots": slots,
            })

        payload = {
            "startDate": start_date.isoformat(),
            "endDate": end_date.isoformat(),
            "slots": results,
            "type": kind,
        }
        await redis_cache.set_json(cache_key, payload, ttl=settings.SLOTS_CACHE_TTL)
        return payload
