from sqlalchemy import Column, String, Integer, ForeignKey
from sqlalchemy.orm import relationship
from app.core.database import Base


class Doctor(Base):
    __tablename__ = "doctors"

    user_id = Column(String(36), ForeignKey("user.id", ondelete="CASCADE"), primary_key=True)
    specialization_id = Column(Integer, ForeignKey("specializations.id", ondelete="SET NULL"), nullable=True, index=True)
    license_number = Column(String(50), unique=True, nullable=False)

    user = relationship("User", back_populates="doctor")
    specialization = relationship("Specialization", back_populates="doctors")
    availability = relationship("Availability", back_populates="doctor", cascade="all, delete-orphan")


class Receptionist(Base):
    __tablename__ = "receptionists"

    user_id = Column(String(36), ForeignKey("user.id", ondelete="CASCADE"), primary_key=True)

    user = relationship("User", back_populates="receptionist")
