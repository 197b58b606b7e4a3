"""Receptionist desk schemas."""
import datetime as dt
import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.constants import AppointmentType


class ReceptionistBookingRequest(BaseModel):
    patientId: str = Field(..., min_length=1)
    doctorId: str = Field(..., min_length=1)
    datetime: dt.datetime
    type: str = AppointmentType.CONSULTATION.value
    isOnline: bool = False
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("type")
    def validate_type(cls, v):
        if v not in (AppointmentType.CONSULTATION.value, AppointmentType.PROCEDURE.value):
            raise ValueError("Nieprawidłowy typ wizyty.")
        return v


class AssignRoomRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    scheduleId: str = Field(..., min_length=1)
    roomId: Optional[int]

    @field_validator("roomId")
    def positive_room(cls, v):
        if v is not None and v <= 0:
            raise ValueError("Nieprawidłowy identyfikator gabinetu.")
        return v


class CheckinRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    appointmentId: int
    pesel: Optional[str] = None

    @field_validator("appointmentId")
    def positive_id(cls, v):
        if v <= 0:
            raise ValueError("Nieprawidłowy identyfikator wizyty")
        return v

    @field_validator("pesel")
    def validate_pesel(cls, v):
        if v is not None and not re.fullmatch(r"\d{11}", v):
            raise ValueError("PESEL musi mieć 11 cyfr")
        return v
