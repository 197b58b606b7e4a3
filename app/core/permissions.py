"""Role based access statements.

Each role maps resources to the actions it may perform. Route dependencies ask
for a subset (for example ``{"appointments": ["read"], "users": ["read"]}``)
and the request passes only if every requested action is granted.
"""
from typing import Dict, Iterable, Mapping

from app.core.constants import UserRole

STATEMENTS: Dict[str, tuple] = {
    "appointments": ("read", "list", "create", "update", "delete"),
    "testResults": ("read", "list", "create", "update", "delete"),
    "medicalRecords": ("read", "list", "create", "update", "delete"),
    "availability": ("read", "list", "create", "update", "delete"),
    "prescriptions": ("read", "list", "create", "update", "delete"),
    "recommendations": ("read", "list", "create", "update", "delete"),
    "users": ("read", "list", "create", "update", "delete"),
    "doctors": ("read", "list", "create", "update", "delete"),
    "patients": ("read", "list", "create", "update", "delete"),
    "rooms": ("read", "list", "create", "update", "delete"),
    "specializations": ("read", "list", "create", "update", "delete"),
    "receptionists": ("read", "list", "create", "update", "delete"),
    "logs": ("list",),
    "queues": ("list",),
    "statistics": ("view",),
}

ROLE_PERMISSIONS: Dict[str, Dict[str, tuple]] = {
    UserRole.PATIENT.value: {
        "appointments": ("read", "list", "create", "update"),
        "testResults": ("read", "list"),
        "medicalRecords": ("read", "list"),
        "prescriptions": ("read", "list", "update"),
        "recommendations": ("read", "list"),
        "specializations": ("read", "list"),
    },
    UserRole.DOCTOR.value: {
        "appointments": ("read", "list", "update"),
        "users": ("read", "list"),
        "availability": ("read", "list", "create", "update"),
        "prescriptions": ("read", "list", "create"),
        "recommendations": ("read", "list", "create"),
        "testResults": ("read", "list", "create"),
        "medicalRecords": ("read", "list", "create"),
    },
    UserRole.RECEPTIONIST.value: {
        "appointments": ("read", "list", "create", "update"),
        "availability": ("read", "list", "update"),
        "users": ("read", "list"),
        "patients": ("read", "list"),
        "doctors": ("read", "list"),
        "rooms": ("read", "list"),
    },
    UserRole.ADMIN.value: STATEMENTS,
}


def has_permissions(role: str, requested: Mapping[str, Iterable[str]]) -> bool:
    granted = ROLE_PERMISSIONS.get(role)
    if not granted:
        return False
    for resource, actions in requested.items():
        allowed = granted.get(resource, ())
        if any(action not in allowed for action in actions):
            return False
    return True
