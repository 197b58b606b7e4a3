"""Base SQLAlchemy model utilities."""
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String


def new_uuid() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class UUIDMixin:
    id = Column(String(36), primary_key=True, default=new_uuid)
