from sqlalchemy import Column, Integer, String, DateTime, Date, Time, Boolean, Text, ForeignKey
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.core.constants import AppointmentStatus, AppointmentType
from app.models.base import new_uuid


class Availability(Base):
    """A doctor's declared working window on a single day."""
    __tablename__ = "availability"

    schedule_id = Column(String(36), primary_key=True, default=new_uuid)
    day = Column(Date, nullable=False, index=True)
    time_start = Column(Time, nullable=False)
    time_end = Column(Time, nullable=False)
    doctor_user_id = Column("doctors_user_id", String(36), ForeignKey("doctors.user_id", ondelete="CASCADE"), nullable=False, index=True)
    room_id = Column("room_room_id", Integer, ForeignKey("room.room_id", ondelete="SET NULL"), nullable=True)

    doctor = relationship("Doctor", back_populates="availability")
    room = relationship("Room")


class Appointment(Base):
    __tablename__ = "appointments"

    appointment_id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(String(36), ForeignKey("patients.user_id", ondelete="CASCADE"), nullable=False, index=True)
    doctor_id = Column(String(36), ForeignKey("doctors.user_id", ondelete="CASCADE"), nullable=False, index=True)

    # Naive clinic-local wall clock
    datetime = Column(DateTime, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=AppointmentStatus.SCHEDULED.value, index=True)
    type = Column(String(20), nullable=False, default=AppointmentType.CONSULTATION.value)
    is_online = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    recommendation_id = Column(Integer, ForeignKey("recommendations.recommendation_id"), nullable=True)
    prescription_id = Column(Integer, ForeignKey("prescriptions.prescription_id"), nullable=True)
    room_id = Column("room_room_id", Integer, ForeignKey("room.room_id"), nullable=True)

    patient = relationship("Patient")
    doctor = relationship("Doctor")
    room = relationship("Room")
    recommendation = relationship("Recommendation")
    prescription = relationship("Prescription")
