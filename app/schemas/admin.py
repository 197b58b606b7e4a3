"""Admin panel payloads. Unknown fields are rejected everywhere."""
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

NO_UPDATE_DATA = "Brak danych do aktualizacji."
NAME_TOO_SHORT = "Imię i nazwisko musi zawierać co najmniej 2 znaki."


def check_email(v: str) -> str:
    if not v:
        raise ValueError("Adres email jest wymagany.")
    try:
        return validate_email(v, check_deliverability=False).normalized.lower()
    except EmailNotValidError:
        raise ValueError("Adres email jest nieprawidłowy.")


def check_person_name(v: str) -> str:
    v = v.strip()
    if len(v) < 2:
        raise ValueError(NAME_TOO_SHORT)
    return v


def check_license_number(v: str) -> str:
    v = v.strip()
    if len(v) < 3:
        raise ValueError("Numer licencji musi zawierać co najmniej 3 znaki.")
    if len(v) > 50:
        raise ValueError("Numer licencji może mieć maksymalnie 50 znaków.")
    return v


def check_room_number(v: int) -> int:
    if not 1 <= v <= 9999:
        raise ValueError("Numer gabinetu musi być liczbą od 1 do 9999.")
    return v


def check_specialization_ids(v: Optional[List[int]]) -> Optional[List[int]]:
    for item in v or []:
        if item <= 0:
            raise ValueError("ID specjalizacji musi być liczbą dodatnią.")
    return v


def check_specialization_name(v: str) -> str:
    v = v.strip()
    if len(v) < 2:
        raise ValueError("Nazwa specjalizacji musi zawierać co najmniej 2 znaki.")
    if len(v) > 120:
        raise ValueError("Nazwa specjalizacji może mieć maksymalnie 120 znaków.")
    return v


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class PartialUpdate(StrictModel):
    """PATCH bodies must carry at least one field."""

    @model_validator(mode="before")
    @classmethod
    def not_empty(cls, data):
        if isinstance(data, dict) and not data:
            raise ValueError(NO_UPDATE_DATA)
        return data


class StaffCreateRequest(StrictModel):
    """Admin and receptionist accounts."""
    email: str
    name: str

    @field_validator("email")
    def email_format(cls, v):
        return check_email(v)

    @field_validator("name")
    def validate_name(cls, v):
        return check_person_name(v)


class AdminUpdateRequest(PartialUpdate):
    name: Optional[str] = None

    @field_validator("name")
    def validate_name(cls, v):
        return check_person_name(v) if v is not None else v


class DoctorCreateRequest(StaffCreateRequest):
    specializationId: Optional[int]
    licenseNumber: str

    @field_validator("specializationId")
    def positive_specialization(cls, v):
        if v is not None and v <= 0:
            raise ValueError("ID specjalizacji musi być liczbą dodatnią.")
        return v

    @field_validator("licenseNumber")
    def validate_license(cls, v):
        return check_license_number(v)


class DoctorUpdateRequest(PartialUpdate):
    specializationId: Optional[int] = None
    licenseNumber: Optional[str] = None

    @field_validator("specializationId")
    def positive_specialization(cls, v):
        if v is not None and v <= 0:
            raise ValueError("ID specjalizacji musi być liczbą dodatnią.")
        return v

    @field_validator("licenseNumber")
    def validate_license(cls, v):
        return check_license_number(v) if v is not None else v


class ReceptionistUpdateRequest(StrictModel):
    """Receptionists carry no editable fields yet."""


class RoomCreateRequest(StrictModel):
    number: int
    specializations: Optional[List[int]] = None

    @field_validator("number")
    def validate_number(cls, v):
        return check_room_number(v)

    @field_validator("specializations")
    def validate_specializations(cls, v):
        return check_specialization_ids(v)


class RoomUpdateRequest(PartialUpdate):
    number: Optional[int] = None
    specializations: Optional[List[int]] = None

    @field_validator("number")
    def validate_number(cls, v):
        return check_room_number(v) if v is not None else v

    @field_validator("specializations")
    def validate_specializations(cls, v):
        return check_specialization_ids(v)


class SpecializationCreateRequest(StrictModel):
    name: str

    @field_validator("name")
    def validate_name(cls, v):
        return check_specialization_name(v)


class SpecializationUpdateRequest(PartialUpdate):
    name: Optional[str] = None

    @field_validator("name")
    def validate_name(cls, v):
        return check_specialization_name(v) if v is not None else v
