from celery import shared_task
import logging

from sqlalchemy import and_
from sqlalchemy.orm import aliased

from app.core.constants import AppointmentStatus
from app.core.database import SessionLocal
from app.models.appointment import Appointment
from app.models.patient import Patient
from app.models.user import User
from app.services.notification_service import NotificationService
from app.utils.datetime_utils import today_range, format_date_long, format_time
from app.utils.helpers import build_person_name

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3)
def send_daily_reminders(self):
    """
    Queue "Przypomnienie o wizycie" emails for today's scheduled visits.
    Scheduled every morning via Celery Beat.
    """
    db = SessionLocal()
    try:
        start, end = today_range()
        patient_user = aliased(User)
        doctor_user = aliased(User)

        rows = (
            db.query(Appointment, Patient, patient_user, doctor_user)
            .outerjoin(Patient, Patient.user_id == Appointment.patient_id)
            .outerjoin(patient_user, patient_user.id == Appointment.patient_id)
            .outerjoin(doctor_user, doctor_user.id == Appointment.doctor_id)
            .filter(
                and_(
                    Appointment.status == AppointmentStatus.SCHEDULED.value,
                    Appointment.datetime >= start,
                    Appointment.datetime < end,
                )
            )
            .all()
        )

        logger.info(f"Found {len(rows)} appointments for today's reminders")

        queued = 0
        for appt, patient, p_user, d_user in rows:
            if not p_user or not p_user.email:
                continue
            NotificationService.send_appointment_reminder(
                email=p_user.email,
                patient_name=build_person_name(
                    patient.first_name if patient else None,
                    patient.last_name if patient else None,
                    p_user.name,
                    default="Pacjent",
                ),
                doctor_name=d_user.name if d_user else "Lekarz",
                appointment_datetime=f"{format_date_long(appt.datetime)}, {format_time(appt.datetime)}",
                is_online=appt.is_online,
                appointment_type=appt.type,
            )
            queued += 1

        return {"result": "Success", "queued": queued, "total": len(rows)}
    except Exception as e:
        logger.error(f"Error in send_daily_reminders: {e}")
        raise self.retry(exc=e, countdown=60)
    finally:
        db.close()
