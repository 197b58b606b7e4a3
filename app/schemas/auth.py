import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


def check_password_strength(v: str) -> str:
    if len(v) < 12:
        raise ValueError("Hasło musi zawierać co najmniej 12 znaków.")
    if not re.search(r"[A-Z]", v):
        raise ValueError("Hasło musi zawierać co najmniej jedną wielką literę.")
    if not re.search(r"[a-z]", v):
        raise ValueError("Hasło musi zawierać co najmniej jedną małą literę.")
    if not re.search(r"\d", v):
        raise ValueError("Hasło musi zawierać co najmniej jedną cyfrę.")
    if not re.search(r"[^A-Za-z0-9]", v):
        raise ValueError("Hasło musi zawierać co najmniej jeden znak specjalny.")
    return v


class PatientRegisterRequest(BaseModel):
    """Self-service patient registration"""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=False)

    email: EmailStr
    name: str
    surname: str
    pesel: str
    phone: str
    password: str
    address: str

    @field_validator("name")
    def validate_name(cls, v):
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Imię musi zawierać co najmniej 2 znaki.")
        return v

    @field_validator("surname")
    def validate_surname(cls, v):
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Nazwisko musi zawierać co najmniej 2 znaki.")
        return v

    @field_validator("pesel")
    def validate_pesel(cls, v):
        if len(v) != 11:
            raise ValueError("PESEL musi mieć dokładnie 11 znaków")
        if not v.isdigit():
            raise ValueError("PESEL musi składać się tylko z cyfr")
        return v

    @field_validator("phone")
    def validate_phone(cls, v):
        if len(v) < 9:
            raise ValueError("Numer telefonu musi zawierać co najmniej 9 znaków.")
        if len(v) > 15:
            raise ValueError("Numer telefonu może mieć maksymalnie 15 znaków.")
        if not re.fullmatch(r"\+?\d+", v):
            raise ValueError("Numer telefonu może zawierać tylko cyfry i opcjonalny znak + na początku.")
        return v

    @field_validator("password")
    def password_strength(cls, v):
        return check_password_strength(v)

    @field_validator("address")
    def validate_address(cls, v):
        v = v.strip()
        if len(v) < 5:
            raise ValueError("Adres musi zawierać co najmniej 5 znaków.")
        return v


class LoginRequest(BaseModel):
    """Email/password login request"""
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(BaseModel):
    refreshToken: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: str

    @field_validator("password")
    def password_strength(cls, v):
        return check_password_strength(v)
