"""Patient schemas."""
import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class PatientBookingRequest(BaseModel):
    doctorId: str = Field(..., min_length=1)
    datetime: dt.datetime
    isOnline: bool = False
    roomId: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=500)


class AppointmentCancelRequest(BaseModel):
    status: str

    @field_validator("status")
    def only_cancel(cls, v):
        if v != "canceled":
            raise ValueError("Dozwolony jest tylko status 'canceled'.")
        return v


class PrescriptionFulfilRequest(BaseModel):
    status: str

    @field_validator("status")
    def only_fulfil(cls, v):
        if v != "fulfilled":
            raise ValueError("Dozwolony jest tylko status 'fulfilled'.")
        return v
