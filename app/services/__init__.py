"""Service layer package."""

__all__ = [
    "admin_service",
    "appointment_service",
    "audit_service",
    "auth_service",
    "bootstrap_service",
    "doctor_service",
    "email_service",
    "notification_service",
    "patient_service",
    "public_service",
    "receptionist_service",
]
