from datetime import timedelta
from typing import Dict

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.cache.cache_service import LANDING_KEY, redis_cache
from app.core.config import settings
from app.models.appointment import Appointment, Availability
from app.models.clinic import Specialization
from app.models.doctor import Doctor
from app.models.patient import Patient
from app.models.user import User
from app.utils.datetime_utils import today_local, today_range

LOOKAHEAD_DAYS = 30


class PublicService:

    @staticmethod
    async def landing(db: Session) -> Dict:
        """Patient count, today's visits and specializations with their next free day."""
        cached = await redis_cache.get_json(LANDING_KEY)
        if cached:
            return cached

        start, end = today_range()
        today = today_local()
        patients_count = db.query(func.count(Patient.user_id)).scalar() or 0
        visits_today = (
            db.query(func.count(Appointment.appointment_id))
            .filter(Appointment.datetime >= start, Appointment.datetime < end)
            .scalar() or 0
        )

        first_days = dict(
            db.query(Doctor.specialization_id, func.min(Availability.day))
            .join(Doctor, Availability.doctor_user_id == Doctor.user_id)
            .join(User, Doctor.user_id == User.id)
            .filter(
                User.banned == False,  # noqa: E712
                Availability.day >= today,
                Availability.day <= today + timedelta(days=LOOKAHEAD_DAYS),
                Doctor.specialization_id.isnot(None),
            )
            .group_by(Doctor.specialization_id)
            .all()
        )

        payload = {
            "patientsCount": int(patients_count),
            "visitsToday": int(visits_today),
            "specializations": [
                {
                    "id": s.id,
                    "name": s.name,
                    "description": s.description,
                    "icon": s.icon,
                    "nextAvailableDate": first_days[s.id].isoformat() if first_days.get(s.id) else None,
                }
                for s in db.query(Specialization).order_by(Specialization.name.asc()).all()
            ],
        }
        await redis_cache.set_json(LANDING_KEY, payload, ttl=settings.LANDING_CACHE_TTL)
        return payload
