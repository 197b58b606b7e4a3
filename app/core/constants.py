"""Application constants such as user roles and visit states."""
from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    RECEPTIONIST = "receptionist"
    PATIENT = "user"


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    CHECKED_IN = "checked_in"
    COMPLETED = "completed"
    CANCELED = "canceled"


class AppointmentType(str, Enum):
    CONSULTATION = "consultation"
    PROCEDURE = "procedure"


class PrescriptionStatus(str, Enum):
    ACTIVE = "active"
    FULFILLED = "fulfilled"


# Statuses that occupy a doctor's (or room's) time
BLOCKING_STATUSES = (AppointmentStatus.SCHEDULED.value, AppointmentStatus.CHECKED_IN.value)

SLOT_MINUTES = 20

APPOINTMENT_DURATION_MINUTES = {
    AppointmentType.CONSULTATION.value: 20,
    AppointmentType.PROCEDURE.value: 60,
}

DEFAULT_SPECIALIZATION_ICON = "lucide:stethoscope"
UNKNOWN_IP = "nieznany"
INVALID_INPUT_MESSAGE = "Nieprawidłowe dane wejściowe."
NOOP_MESSAGE = "Brak zmian do zapisania."
DOCTOR_DISABLED_REASON = "Konto wyłączone przez administratora"
