from sqlalchemy import Column, String, Date, ForeignKey, Text
from sqlalchemy.orm import relationship
from app.core.database import Base


class Patient(Base):
    __tablename__ = "patients"

    user_id = Column(String(36), ForeignKey("user.id", ondelete="CASCADE"), primary_key=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    pesel = Column(Text, unique=True, nullable=False)
    # Keyed digest used for check-in lookups
    pesel_hmac = Column(String(64), nullable=True, index=True)
    date_of_birth = Column(Date, nullable=True)
    phone = Column(String(20), nullable=True)
    address = Column(Text, nullable=False)

    user = relationship("User", back_populates="patient")
    medical_record = relationship("MedicalRecord", back_populates="patient", uselist=False, cascade="all, delete-orphan")
