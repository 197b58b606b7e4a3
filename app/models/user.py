from datetime import date
from sqlalchemy import Column, String, Boolean, Date, Text
from sqlalchemy.orm import relationship, validates
from app.core.database import Base
from app.core.constants import UserRole
from app.models.base import TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "user"

    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    email_verified = Column(Boolean, default=False, nullable=False)
    image = Column(Text, nullable=True)
    password_hash = Column(String(255), nullable=True)

    role = Column(String(32), default=UserRole.PATIENT.value, nullable=False, index=True)

    banned = Column(Boolean, default=False, nullable=False)
    ban_reason = Column(Text, nullable=True)
    ban_expires = Column(Date, nullable=True)

    # Relationships
    patient = relationship("Patient", back_populates="user", uselist=False, cascade="all, delete-orphan")
    doctor = relationship("Doctor", back_populates="user", uselist=False, cascade="all, delete-orphan")
    receptionist = relationship("Receptionist", back_populates="user", uselist=False, cascade="all, delete-orphan")
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User {self.email}>"

    @validates("email")
    def normalize_email(self, key, value):
        return value.strip().lower() if value else value

    def is_banned(self, today: date | None = None) -> bool:
        """A ban without an expiry date is permanent."""
        if not self.banned:
            return False
        if self.ban_expires is None:
            return True
        return self.ban_expires >= (today or date.today())
