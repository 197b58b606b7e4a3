"""Specializations, rooms and the room/specialization link table."""
from sqlalchemy import Column, String, Integer, ForeignKey, Table, Text
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.core.constants import DEFAULT_SPECIALIZATION_ICON


room_specializations = Table(
    "room_specializations",
    Base.metadata,
    Column("room_id", Integer, ForeignKey("room.room_id", ondelete="CASCADE"), primary_key=True),
    Column("specialization_id", Integer, ForeignKey("specializations.id", ondelete="CASCADE"), primary_key=True),
)


class Specialization(Base):
    __tablename__ = "specializations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), unique=True, nullable=False)
    description = Column(Text, nullable=False, default="")
    icon = Column(String(120), nullable=False, default=DEFAULT_SPECIALIZATION_ICON)

    doctors = relationship("Doctor", back_populates="specialization")
    rooms = relationship("Room", secondary=room_specializations, back_populates="specializations")


class Room(Base):
    __tablename__ = "room"

    room_id = Column(Integer, primary_key=True, index=True)
    number = Column(Integer, unique=True, nullable=False)

    specializations = relationship(
        "Specialization",
        secondary=room_specializations,
        back_populates="rooms",
        order_by="Specialization.name",
    )
