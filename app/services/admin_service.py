"""Administration of staff accounts, rooms and specializations."""
import logging
from typing import Dict, List, Optional

from fastapi import Request
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased

from app.cache.cache_service import redis_cache
from app.core.constants import (
    BLOCKING_STATUSES,
    DOCTOR_DISABLED_REASON,
    NOOP_MESSAGE,
    AppointmentStatus,
    UserRole,
)
from app.core.security import generate_random_password, hash_password
from app.models.appointment import Appointment
from app.models.audit import Log
from app.models.clinic import Room, Specialization
from app.models.doctor import Doctor, Receptionist
from app.models.patient import Patient
from app.models.user import User
from app.services.appointment_service import AppointmentService
from app.services.audit_service import AuditService
from app.services.auth_service import AuthService
from app.services.notification_service import NotificationService, QueueService
from app.utils.db_errors import is_foreign_key_violation, is_unique_violation
from app.utils.errors import BadRequest, Conflict, Forbidden, NotFound, UserAlreadyExistsError
from app.utils.pesel import decrypt_pesel

logger = logging.getLogger(__name__)

NOOP = {"status": "noop", "message": NOOP_MESSAGE}
DOCTOR_REMOVED_SUBJECT = "Potwierdzenie odwołania wizyty"

ADMIN_NOT_FOUND = "Administrator nie został znaleziony."
DOCTOR_NOT_FOUND = "Lekarz nie został znaleziony."
RECEPTIONIST_NOT_FOUND = "Rejestrator nie został znaleziony."
ROOM_NOT_FOUND = "Gabinet nie został znaleziony."
SPECIALIZATION_NOT_FOUND = "Specjalizacja nie została znaleziona."
ROOM_EXISTS = "Gabinet o tym numerze już istnieje."
SPECIALIZATION_EXISTS = "Specjalizacja o takiej nazwie już istnieje."
UNKNOWN_SPECIALIZATIONS = "Jedna lub więcej specjalizacji nie istnieje."


def _admin_row(user: User) -> Dict:
    return {"id": user.id, "name": user.name, "email": user.email, "createdAt": user.created_at}


def _doctor_row(doctor: Doctor) -> Dict:
    return {
        "userId": doctor.user_id,
        "userName": doctor.user.name if doctor.user else None,
        "userEmail": doctor.user.email if doctor.user else None,
        "specializationId": doctor.specialization_id,
        "specializationName": doctor.specialization.name if doctor.specialization else None,
        "licenseNumber": doctor.license_number,
    }


def _receptionist_row(receptionist: Receptionist) -> Dict:
    return {
        "userId": receptionist.user_id,
        "userName": receptionist.user.name if receptionist.user else None,
        "userEmail": receptionist.user.email if receptionist.user else None,
    }


class AdminService:

    # Shared helpers

    @staticmethod
    def _create_account(db: Session, email: str, name: str, role: str) -> User:
        """Insert a verified staff account with an unusable random password. The caller commits."""
        if db.query(User.id).filter(User.email == email).first():
            raise UserAlreadyExistsError()
        user = User(
            name=name,
            email=email,
            role=role,
            email_verified=True,
            password_hash=hash_password(generate_random_password()),
        )
        db.add(user)
        db.flush()
        return user

    @staticmethod
    def _commit_or_conflict(db: Session, conflict_message: str, operation: str) -> None:
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.error(f"{operation} failed: {e}")
            if is_unique_violation(e):
                raise Conflict(conflict_message)
            if is_foreign_key_violation(e):
                raise BadRequest("Nieprawidłowy identyfikator specjalizacji.")
            raise

    @staticmethod
    def _specializations_by_ids(db: Session, ids: List[int]) -> List[Specialization]:
        if not ids:
            return []
        found = db.query(Specialization).filter(Specialization.id.in_(ids)).all()
        if len(found) != len(ids):
            raise BadRequest(UNKNOWN_SPECIALIZATIONS)
        return found

    # Admins

    @staticmethod
    def list_admins(db: Session) -> List[Dict]:
        rows = db.query(User).filter(User.role == UserRole.ADMIN.value).order_by(User.name.asc()).all()
        return [_admin_row(u) for u in rows]

    @staticmethod
    def create_admin(db: Session, request: Request, actor_id: str, payload) -> Dict:
        try:
            user = AdminService._create_account(db, payload.email, payload.name, UserRole.ADMIN.value)
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.error(f"Creating admin {payload.email} failed: {e}")
            raise UserAlreadyExistsError()

        db.refresh(user)
        NotificationService.send_account_setup(user.email, user.name, user.id, "administrator")
        AuditService.record(
            db, request, actor_id,
            f'Utworzono konto administratora "{user.name}" i wysłano link do ustawienia hasła.',
        )
        return {"status": "ok", "admin": _admin_row(user)}

    @staticmethod
    def _get_admin(db: Session, user_id: str) -> User:
        user = db.query(User).filter(User.id == user_id, User.role == UserRole.ADMIN.value).first()
        if not user:
            raise NotFound(ADMIN_NOT_FOUND)
        return user

    @staticmethod
    def update_admin(db: Session, request: Request, actor_id: str, user_id: str, payload) -> Dict:
        user = AdminService._get_admin(db, user_id)
        if not payload.name or payload.name == user.name:
            return NOOP

        previous = user.name
        user.name = payload.name
        db.commit()
        db.refresh(user)
        AuditService.record(
            db, request, actor_id,
            f'Zaktualizowano administratora "{previous}": zmieniono imię i nazwisko na "{payload.name}"',
        )
        return {"status": "ok", "admin": _admin_row(user)}

    @staticmethod
    def delete_admin(db: Session, request: Request, actor_id: str, user_id: str) -> Dict:
        """Demote an admin to a regular user; the last admin and the caller are protected."""
        user = AdminService._get_admin(db, user_id)
        if user.id == actor_id:
            raise Forbidden("Nie możesz usunąć własnego konta administratora.")

        total_admins = db.query(func.count(User.id)).filter(User.role == UserRole.ADMIN.value).scalar() or 0
        if total_admins <= 1:
            raise Forbidden(
                "Nie można usunąć ostatniego administratora. Musi istnieć co najmniej jeden administrator."
            )

        user.role = UserRole.PATIENT.value
        AuthService.revoke_all_sessions(db, user.id, "role_changed")
        db.commit()
        AuditService.record(
            db, request, actor_id,
            f'Usunięto administratora "{user.name}" i zmieniono rolę na użytkownika.',
        )
        return {"status": "ok"}

    # Doctors

    @staticmethod
    def list_doctors(db: Session) -> List[Dict]:
        rows = (
            db.query(Doctor)
            .join(User, Doctor.user_id == User.id)
            .filter(User.banned == False)  # noqa: E712
            .order_by(User.name.asc())
            .all()
        )
        return [_doctor_row(d) for d in rows]

    @staticmethod
    def _get_doctor(db: Session, user_id: str) -> Doctor:
        doctor = db.query(Doctor).filter(Doctor.user_id == user_id).first()
        if not doctor:
            raise NotFound(DOCTOR_NOT_FOUND)
        return doctor

    @staticmethod
    def _ensure_specialization(db: Session, specialization_id: Optional[int]) -> None:
        if specialization_id is None:
            return
        if not db.query(Specialization.id).filter(Specialization.id == specialization_id).first():
            raise NotFound(SPECIALIZATION_NOT_FOUND)

    @staticmethod
    def create_doctor(db: Session, request: Request, actor_id: str, payload) -> Dict:
        AdminService._ensure_specialization(db, payload.specializationId)
        if db.query(Doctor.user_id).filter(Doctor.license_number == payload.licenseNumber).first():
            raise Conflict("Lekarz o takim numerze licencji już istnieje.")

        try:
            user = AdminService._create_account(db, payload.email, payload.name, UserRole.DOCTOR.value)
            db.add(Doctor(
                user_id=user.id,
                specialization_id=payload.specializationId,
                license_number=payload.licenseNumber,
            ))
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.error(f"Creating doctor {payload.email} failed: {e}")
            raise UserAlreadyExistsError()

        doctor = AdminService._get_doctor(db, user.id)
        NotificationService.send_account_setup(user.email, user.name, user.id, "lekarz")
        AuditService.record(
            db, request, actor_id,
            f'Utworzono konto lekarza "{user.name}", licencja: {payload.licenseNumber}) '
            f"i wysłano link do ustawienia hasła.",
        )
        return {"status": "ok", "doctor": _doctor_row(doctor)}

    @staticmethod
    async def update_doctor(db: Session, request: Request, actor_id: str, user_id: str, payload) -> Dict:
        doctor = AdminService._get_doctor(db, user_id)
        AdminService._ensure_specialization(db, payload.specializationId)

        changes = []
        if "specializationId" in payload.model_fields_set and payload.specializationId != doctor.specialization_id:
            doctor.specialization_id = payload.specializationId
            changes.append("zmieniono specjalizację")
        if payload.licenseNumber and payload.licenseNumber != doctor.license_number:
            doctor.license_number = payload.licenseNumber
            changes.append(f'zmieniono numer licencji na "{payload.licenseNumber}"')

        if not changes:
            return NOOP

        AdminService._commit_or_conflict(db, "Lekarz o takim numerze licencji już istnieje.", "AdminUpdateDoctor")
        db.refresh(doctor)
        AuditService.record(
            db, request, actor_id,
            f'Zaktualizowano lekarza "{doctor.user.name}": {", ".join(changes)}',
        )
        await redis_cache.invalidate_slots()
        return {"status": "ok", "doctor": _doctor_row(doctor)}

    @staticmethod
    async def delete_doctor(db: Session, request: Request, actor_id: str, user_id: str) -> Dict:
        """
        Disable a doctor account.

        The account is banned rather than removed so visit history stays
        intact. Every active visit is canceled and its patient notified.
        """
        doctor = AdminService._get_doctor(db, user_id)
        user = doctor.user

        try:
            active = (
                db.query(Appointment)
                .filter(Appointment.doctor_id == user_id, Appointment.status.in_(BLOCKING_STATUSES))
                .all()
            )
            for appointment in active:
                appointment.status = AppointmentStatus.CANCELED.value
            user.banned = True
            user.ban_reason = DOCTOR_DISABLED_REASON
            AuthService.revoke_all_sessions(db, user.id, "doctor_disabled")
            db.commit()
        except Exception:
            db.rollback()
            raise

        AuditService.record(db, request, actor_id, f'Usunięto lekarza "{user.name}" i odwołano jego wizyty.')
        for appointment in active:
            AppointmentService.notify_cancelled(db, appointment, subject=DOCTOR_REMOVED_SUBJECT)
        logger.info(f"Doctor {user_id} disabled, {len(active)} visits canceled")
        await redis_cache.invalidate_slots()
        return {"status": "ok"}

    # Receptionists

    @staticmethod
    def list_receptionists(db: Session) -> List[Dict]:
        rows = (
            db.query(Receptionist)
            .outerjoin(User, Receptionist.user_id == User.id)
            .order_by(User.name.asc())
            .all()
        )
        return [_receptionist_row(r) for r in rows]

    @staticmethod
    def get_receptionist(db: Session, user_id: str) -> Dict:
        receptionist = db.query(Receptionist).filter(Receptionist.user_id == user_id).first()
        if not receptionist:
            raise NotFound(RECEPTIONIST_NOT_FOUND)
        return _receptionist_row(receptionist)

    @staticmethod
    def create_receptionist(db: Session, request: Request, actor_id: str, payload) -> Dict:
        try:
            user = AdminService._create_account(db, payload.email, payload.name, UserRole.RECEPTIONIST.value)
            db.add(Receptionist(user_id=user.id))
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.error(f"Creating receptionist {payload.email} failed: {e}")
            raise UserAlreadyExistsError()

        receptionist = db.query(Receptionist).filter(Receptionist.user_id == user.id).first()
        NotificationService.send_account_setup(user.email, user.name, user.id, "rejestrator")
        AuditService.record(
            db, request, actor_id,
            f'Utworzono konto rejestratora "{user.name}" i wysłano link do ustawienia hasła.',
        )
        return {"status": "ok", "receptionist": _receptionist_row(receptionist)}

    @staticmethod
    def update_receptionist(db: Session, user_id: str) -> Dict:
        AdminService.get_receptionist(db, user_id)
        return NOOP

    @staticmethod
    def delete_receptionist(db: Session, request: Request, actor_id: str, user_id: str) -> Dict:
        receptionist = db.query(Receptionist).filter(Receptionist.user_id == user_id).first()
        if not receptionist:
            raise NotFound(RECEPTIONIST_NOT_FOUND)

        user = receptionist.user
        name = user.name if user else None
        db.delete(receptionist)
        if user:
            user.role = UserRole.PATIENT.value
            AuthService.revoke_all_sessions(db, user.id, "role_changed")
        db.commit()
        AuditService.record(db, request, actor_id, f'Usunięto rejestratora "{name}".')
        return {"status": "ok"}

    # Rooms

    @staticmethod
    def _room_row(db: Session, room: Room) -> Dict:
        appointment_count = (
            db.query(func.count(Appointment.appointment_id)).filter(Appointment.room_id == room.room_id).scalar()
        )
        return {
            "roomId": room.room_id,
            "number": room.number,
            "appointmentCount": int(appointment_count or 0),
            "specializationIds": [s.id for s in room.specializations],
            "specializationNames": [s.name for s in room.specializations],
        }

    @staticmethod
    def list_rooms(db: Session) -> List[Dict]:
        rooms = db.query(Room).order_by(Room.number.asc()).all()
        return [AdminService._room_row(db, r) for r in rooms]

    @staticmethod
    def _get_room(db: Session, room_id: int) -> Room:
        room = db.query(Room).filter(Room.room_id == room_id).first()
        if not room:
            raise NotFound(ROOM_NOT_FOUND)
        return room

    @staticmethod
    def get_room(db: Session, room_id: int) -> Dict:
        room = AdminService._get_room(db, room_id)
        return {"roomId": room.room_id, "number": room.number}

    @staticmethod
    def create_room(db: Session, request: Request, actor_id: str, payload) -> Dict:
        ids = list(dict.fromkeys(payload.specializations or []))
        specializations = AdminService._specializations_by_ids(db, ids)

        room = Room(number=payload.number)
        room.specializations = specializations
        db.add(room)
        AdminService._commit_or_conflict(db, ROOM_EXISTS, "AdminCreateRoom")
        db.refresh(room)

        names = [s.name for s in specializations]
        AuditService.record(
            db, request, actor_id,
            f"Dodano gabinet numer {room.number} (specjalizacje: {', '.join(names)})."
            if names else f"Dodano gabinet numer {room.number}.",
        )
        return {"status": "ok", "room": AdminService._room_row(db, room)}

    @staticmethod
    def update_room(db: Session, request: Request, actor_id: str, room_id: int, payload) -> Dict:
        room = AdminService._get_room(db, room_id)

        changes = []
        new_number = None
        if payload.number is not None and payload.number != room.number:
            new_number = payload.number
            changes.append(f"zmieniono numer na {payload.number}")

        new_specializations = None
        if payload.specializations is not None:
            ids = list(dict.fromkeys(payload.specializations))
            found = AdminService._specializations_by_ids(db, ids)
            if sorted(ids) != sorted(s.id for s in room.specializations):
                new_specializations = found
                changes.append(
                    f"zaktualizowano specjalizacje: {', '.join(s.name for s in found)}"
                    if found else "usunięto wszystkie specjalizacje"
                )

        if not changes:
            return NOOP

        if new_number is not None:
            room.number = new_number
        if new_specializations is not None:
            room.specializations = new_specializations
        AdminService._commit_or_conflict(db, ROOM_EXISTS, "AdminUpdateRoom")
        db.refresh(room)

        AuditService.record(db, request, actor_id, f"Zaktualizowano gabinet {room.number}: {', '.join(changes)}")
        return {"status": "ok", "room": AdminService._room_row(db, room)}

    @staticmethod
    def delete_room(db: Session, request: Request, actor_id: str, room_id: int) -> Dict:
        room = AdminService._get_room(db, room_id)
        assigned = db.query(func.count(Appointment.appointment_id)).filter(Appointment.room_id == room_id).scalar()
        if assigned:
            raise BadRequest("Nie można usunąć gabinetu, do którego przypisane są wizyty.")

        number = room.number
        db.delete(room)
        db.commit()
        AuditService.record(db, request, actor_id, f"Usunięto gabinet numer {number}.")
        return {"status": "ok"}

    # Specializations

    @staticmethod
    def _specialization_row(db: Session, specialization: Specialization) -> Dict:
        doctor_count = (
            db.query(func.count(Doctor.user_id)).filter(Doctor.specialization_id == specialization.id).scalar()
        )
        return {"id": specialization.id, "name": specialization.name, "doctorCount": int(doctor_count or 0)}

    @staticmethod
    def list_specializations(db: Session) -> List[Dict]:
        rows = db.query(Specialization).order_by(Specialization.name.asc()).all()
        return [AdminService._specialization_row(db, s) for s in rows]

    @staticmethod
    def _get_specialization(db: Session, specialization_id: int) -> Specialization:
        specialization = db.query(Specialization).filter(Specialization.id == specialization_id).first()
        if not specialization:
            raise NotFound(SPECIALIZATION_NOT_FOUND)
        return specialization

    @staticmethod
    async def create_specialization(db: Session, request: Request, actor_id: str, payload) -> Dict:
        specialization = Specialization(name=payload.name)
        db.add(specialization)
        AdminService._commit_or_conflict(db, SPECIALIZATION_EXISTS, "AdminCreateSpecialization")
        db.refresh(specialization)
        AuditService.record(db, request, actor_id, f'Dodano specjalizację "{specialization.name}".')
        await redis_cache.invalidate_slots()
        return {"status": "ok", "specialization": {"id": specialization.id, "name": specialization.name, "doctorCount": 0}}

    @staticmethod
    async def update_specialization(db: Session, request: Request, actor_id: str, specialization_id: int, payload) -> Dict:
        specialization = AdminService._get_specialization(db, specialization_id)
        if not payload.name or payload.name == specialization.name:
            return NOOP

        previous = specialization.name
        specialization.name = payload.name
        AdminService._commit_or_conflict(db, SPECIALIZATION_EXISTS, "AdminUpdateSpecialization")
        db.refresh(specialization)
        AuditService.record(
            db, request, actor_id,
            f'Zaktualizowano specjalizację "{previous}": zmieniono nazwę na "{payload.name}"',
        )
        await redis_cache.invalidate_slots()
        return {"status": "ok", "specialization": AdminService._specialization_row(db, specialization)}

    @staticmethod
    async def delete_specialization(db: Session, request: Request, actor_id: str, specialization_id: int) -> Dict:
        specialization = AdminService._get_specialization(db, specialization_id)
        assigned = (
            db.query(func.count(Doctor.user_id)).filter(Doctor.specialization_id == specialization_id).scalar()
        )
        if assigned:
            raise BadRequest("Nie można usunąć specjalizacji, do której przypisani są lekarze.")

        name = specialization.name
        db.delete(specialization)
        db.commit()
        AuditService.record(db, request, actor_id, f'Usunięto specjalizację "{name}".')
        await redis_cache.invalidate_slots()
        return {"status": "ok"}

    # Read-only views

    @staticmethod
    def list_patients(db: Session) -> List[Dict]:
        rows = (
            db.query(Patient, User)
            .outerjoin(User, Patient.user_id == User.id)
            .order_by(Patient.last_name.asc())
            .all()
        )
        return [
            {
                "userId": p.user_id,
                "firstName": p.first_name,
                "lastName": p.last_name,
                "pesel": decrypt_pesel(p.pesel),
                "phone": p.phone,
                "address": p.address,
                "email": u.email if u else None,
                "createdAt": u.created_at if u else None,
            }
            for p, u in rows
        ]

    @staticmethod
    def list_appointments(db: Session) -> List[Dict]:
        doctor_user = aliased(User)
        rows = (
            db.query(Appointment, Patient, doctor_user, Room)
            .outerjoin(Patient, Appointment.patient_id == Patient.user_id)
            .outerjoin(doctor_user, Appointment.doctor_id == doctor_user.id)
            .outerjoin(Room, Appointment.room_id == Room.room_id)
            .order_by(Appointment.datetime.asc())
            .all()
        )
        return [
            {
                "appointmentId": a.appointment_id,
                "datetime": a.datetime,
                "status": a.status,
                "notes": a.notes,
                "patientId": a.patient_id,
                "patientFirstName": p.first_name if p else None,
                "patientLastName": p.last_name if p else None,
                "patientPesel": decrypt_pesel(p.pesel) if p else None,
                "doctorId": a.doctor_id,
                "doctorName": d.name if d else None,
                "roomId": room.room_id if room else None,
                "roomNumber": room.number if room else None,
            }
            for a, p, d, room in rows
        ]

    @staticmethod
    def list_logs(db: Session) -> List[Dict]:
        rows = (
            db.query(Log, User)
            .outerjoin(User, Log.user_id == User.id)
            .order_by(Log.timestamp.desc(), Log.log_id.desc())
            .all()
        )
        return [
            {
                "logId": log.log_id,
                "action": log.action,
                "timestamp": log.timestamp,
                "ipAddress": log.ip_address,
                "userId": log.user_id,
                "userName": u.name if u else None,
                "userEmail": u.email if u else None,
            }
            for log, u in rows
        ]

    @staticmethod
    def queues() -> List[Dict]:
        return QueueService.summaries()

    @staticmethod
    def statistics(db: Session) -> Dict:
        return {
            "totalAdmins": db.query(func.count(User.id)).filter(User.role == UserRole.ADMIN.value).scalar() or 0,
            "totalDoctors": (
                db.query(func.count(Doctor.user_id))
                .join(User, Doctor.user_id == User.id)
                .filter(User.banned == False)  # noqa: E712
                .scalar() or 0
            ),
            "totalPatients": db.query(func.count(Patient.user_id)).scalar() or 0,
            "totalLogs": db.query(func.count(Log.log_id)).scalar() or 0,
        }
