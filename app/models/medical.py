"""Visit outcomes: prescriptions, medications, recommendations and test results."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Date, Text, ForeignKey
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.core.constants import PrescriptionStatus


class Prescription(Base):
    __tablename__ = "prescriptions"

    prescription_id = Column(Integer, primary_key=True, index=True)
    issued_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    status = Column(String(20), default=PrescriptionStatus.ACTIVE.value, nullable=False)

    medications = relationship(
        "Medication",
        back_populates="prescription",
        cascade="all, delete-orphan",
        order_by="Medication.created_at",
    )


class Medication(Base):
    __tablename__ = "medications"

    medication_id = Column(Integer, primary_key=True, index=True)
    prescription_id = Column(Integer, ForeignKey("prescriptions.prescription_id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    prescription = relationship("Prescription", back_populates="medications")


class Recommendation(Base):
    __tablename__ = "recommendations"

    recommendation_id = Column(Integer, primary_key=True, index=True)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class MedicalRecord(Base):
    __tablename__ = "medical_records"

    record_id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(String(36), ForeignKey("patients.user_id", ondelete="CASCADE"), unique=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    patient = relationship("Patient", back_populates="medical_record")
    test_results = relationship("TestResult", back_populates="record", cascade="all, delete-orphan")


class TestResult(Base):
    __tablename__ = "test_results"
    __test__ = False  # not a pytest class

    test_id = Column(Integer, primary_key=True, index=True)
    record_id = Column(Integer, ForeignKey("medical_records.record_id", ondelete="CASCADE"), nullable=False, index=True)
    test_type = Column(String(255), nullable=False)
    result = Column(Text, nullable=False)
    test_date = Column(Date, nullable=False)
    file_path = Column(Text, nullable=False, default="")

    record = relationship("MedicalRecord", back_populates="test_results")
