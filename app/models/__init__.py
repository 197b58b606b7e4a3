"""SQLAlchemy models."""

__all__ = [
    "base",
    "user",
    "session",
    "clinic",
    "patient",
    "doctor",
    "appointment",
    "medical",
    "audit",
]
