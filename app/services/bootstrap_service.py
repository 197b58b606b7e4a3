"""Startup provisioning: the first administrator and optional demo data."""
import logging
import secrets
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.constants import UserRole
from app.core.security import hash_password
from app.models.clinic import Specialization
from app.models.doctor import Doctor, Receptionist
from app.models.user import User

logger = logging.getLogger(__name__)

DEMO_SPECIALIZATIONS = (
    ("Pediatria", "Opieka medyczna dla dzieci i młodzieży", "lucide:baby"),
    ("Kardiologia", "Diagnostyka i leczenie chorób serca i układu krążenia", "lucide:heart-pulse"),
    ("Dermatologia", "Leczenie chorób skóry, włosów i paznokci", "lucide:scan-face"),
)


class BootstrapService:

    @staticmethod
    def ensure_admin(db: Session, email: Optional[str] = None) -> Optional[str]:
        """
        Create the ``Administrator`` account when no admin exists yet.

        Returns the generated password (also logged once) or None when
        nothing was created.
        """
        email = (email or settings.ADMIN_EMAIL or "").strip().lower()
        if not email:
            logger.warning("ADMIN_EMAIL is not set, skipping admin bootstrap")
            return None
        if db.query(User.id).filter(User.role == UserRole.ADMIN.value).first():
            return None

        password = secrets.token_hex(16)
        user = db.query(User).filter(User.email == email).first()
        if user:
            user.role = UserRole.ADMIN.value
            user.password_hash = hash_password(password)
            user.email_verified = True
        else:
            db.add(User(
                name="Administrator",
                email=email,
                role=UserRole.ADMIN.value,
                email_verified=True,
                password_hash=hash_password(password),
            ))
        db.commit()
        logger.info(f"Stworzono {email}, hasło: {password}")
        return password

    @staticmethod
    def _upsert_user(db: Session, email: str, name: str, role: str, password: str) -> User:
        user = db.query(User).filter(User.email == email).first()
        if not user:
            user = User(name=name, email=email, password_hash=hash_password(password))
            db.add(user)
        user.role = role
        user.email_verified = True
        db.flush()
        return user

    @staticmethod
    def seed_demo(db: Session) -> None:
        """Idempotent demo accounts (admin, doctor, receptionist) and specializations."""
        password = settings.DEMO_PASSWORD
        BootstrapService._upsert_user(
            db, settings.DEMO_ADMIN_EMAIL, "Demo Administrator", UserRole.ADMIN.value, password
        )

        for name, description, icon in DEMO_SPECIALIZATIONS:
            if not db.query(Specialization.id).filter(Specialization.name == name).first():
                db.add(Specialization(name=name, description=description, icon=icon))
        db.flush()

        doctor_user = BootstrapService._upsert_user(
            db, settings.DEMO_DOCTOR_EMAIL, "Demo Lekarz", UserRole.DOCTOR.value, password
        )
        if not db.query(Doctor.user_id).filter(Doctor.user_id == doctor_user.id).first():
            first = db.query(Specialization).filter(Specialization.name == DEMO_SPECIALIZATIONS[0][0]).first()
            db.add(Doctor(
                user_id=doctor_user.id,
                license_number=settings.DEMO_DOCTOR_LICENSE,
                specialization_id=first.id if first else None,
            ))

        receptionist_user = BootstrapService._upsert_user(
            db, settings.DEMO_RECEPTIONIST_EMAIL, "Demo Recepcjonista", UserRole.RECEPTIONIST.value, password
        )
        if not db.query(Receptionist.user_id).filter(Receptionist.user_id == receptionist_user.id).first():
            db.add(Receptionist(user_id=receptionist_user.id))

        db.commit()
        logger.info("DEMO data inserted.")

    @staticmethod
    def run(db: Session) -> None:
        if settings.DEMO_MODE:
            BootstrapService.seed_demo(db)
        BootstrapService.ensure_admin(db)
