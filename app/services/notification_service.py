"""Queue transactional emails and report on the email queue."""
import logging
from typing import Any, Dict, List, Optional

from celery.result import AsyncResult

from app.cache import job_registry
from app.core.celery_app import celery_app
from app.core.config import settings
from app.core.security import create_email_verification_token, create_password_reset_token
from app.services import email_service
from app.utils.datetime_utils import format_appointment_type, format_visit_mode

logger = logging.getLogger(__name__)

# Celery state -> admin panel state
_STATE_MAP = {
    "PENDING": "waiting",
    "RECEIVED": "waiting",
    "STARTED": "active",
    "SUCCESS": "completed",
    "FAILURE": "failed",
    "RETRY": "delayed",
    "REVOKED": "failed",
}

RECENT_JOBS_LIMIT = 25


class NotificationService:

    @staticmethod
    def enqueue_email(to: str, subject: str, html: str, job_name: str = "email") -> Optional[str]:
        """Put an email on the queue. Failures are logged, never raised."""
        from app.tasks.email_tasks import send_email_task, SEND_EMAIL_QUEUE

        try:
            result = send_email_task.delay(to, subject, html)
        except Exception as e:
            logger.error(f"Failed to enqueue email {job_name!r} to {to}: {e}")
            return None

        job_id = getattr(result, "id", None)
        if job_id:
            job_registry.record_job(
                SEND_EMAIL_QUEUE,
                str(job_id),
                job_name,
                {"to": to, "subject": subject},
            )
        return job_id

    @staticmethod
    def send_account_setup(email: str, name: str, user_id: str, role_label: str) -> Optional[str]:
        token, _ = create_password_reset_token(user_id)
        link = f"{settings.FRONTEND_URL.rstrip('/')}/reset-password?token={token}"
        html = email_service.render_account_setup(name, link, role_label)
        return NotificationService.enqueue_email(email, "Ustaw hasło do konta", html, "account setup")

    @staticmethod
    def send_password_reset(email: str, name: str, user_id: str) -> Optional[str]:
        token, _ = create_password_reset_token(user_id)
        link = f"{settings.FRONTEND_URL.rstrip('/')}/reset-password?token={token}"
        html = email_service.render_password_reset(name, link)
        return NotificationService.enqueue_email(email, "Resetowanie hasła", html, "password reset")

    @staticmethod
    def send_email_verification(email: str, name: str) -> Optional[str]:
        token = create_email_verification_token(email)
        link = f"{settings.FRONTEND_URL.rstrip('/')}/api/auth/verify-email?token={token}"
        html = email_service.render_email_verification(name, link)
        return NotificationService.enqueue_email(email, "Potwierdź adres e-mail", html, "email verification")

    @staticmethod
    def send_appointment_cancelled(
        email: str,
        patient_name: str,
        doctor_name: str,
        appointment_datetime: str,
        is_online: bool,
        appointment_type: str,
        subject: str = "Wizyta została anulowana",
        reason: Optional[str] = None,
    ) -> Optional[str]:
        html = email_service.render_appointment_cancelled(
            patient_name=patient_name,
            doctor_name=doctor_name,
            appointment_datetime=appointment_datetime,
            visit_mode=format_visit_mode(is_online),
            appointment_type=format_appointment_type(appointment_type),
            reason=reason,
        )
        return NotificationService.enqueue_email(email, subject, html, "appointment canceled")

    @staticmethod
    def send_appointment_reminder(
        email: str,
        patient_name: str,
        doctor_name: str,
        appointment_datetime: str,
        is_online: bool,
        appointment_type: str,
    ) -> Optional[str]:
        html = email_service.render_appointment_reminder(
            patient_name=patient_name,
            doctor_name=doctor_name,
            appointment_datetime=appointment_datetime,
            visit_mode=format_visit_mode(is_online),
            appointment_type=format_appointment_type(appointment_type),
        )
        return NotificationService.enqueue_email(email, "Przypomnienie o wizycie", html, "appointment reminder")


class QueueService:

    @staticmethod
    def _job_view(entry: Dict[str, Any]) -> Dict[str, Any]:
        result = AsyncResult(entry["id"], app=celery_app)
        state = _STATE_MAP.get(result.state, "waiting")
        info = result.info
        failed_reason = str(info) if state == "failed" and info is not None else None
        return_value = info if state == "completed" and isinstance(info, dict) else None
        date_done = getattr(result, "date_done", None)
        return {
            "id": entry["id"],
            "name": entry.get("name", "email"),
            "state": state,
            "attemptsMade": getattr(result, "retries", None) or 0,
            "timestamp": entry.get("timestamp"),
            "processedOn": None,
            "finishedOn": int(date_done.timestamp() * 1000) if date_done else None,
            "failedReason": failed_reason,
            "data": entry.get("data", {}),
            "returnValue": return_value,
            "stacktrace": [result.traceback] if state == "failed" and result.traceback else [],
            "opts": {"attempts": 3, "backoff": {"type": "exponential", "delay": 30000}},
        }

    @staticmethod
    def summaries() -> List[Dict[str, Any]]:
        from app.tasks.email_tasks import SEND_EMAIL_QUEUE, SEND_EMAIL_LABEL

        entries = job_registry.recent_jobs(SEND_EMAIL_QUEUE)
        counts = {"waiting": 0, "active": 0, "completed": 0, "failed": 0, "delayed": 0, "paused": 0}
        jobs = []
        for index, entry in enumerate(entries):
            view = QueueService._job_view(entry)
            counts[view["state"]] += 1
            if index < RECENT_JOBS_LIMIT:
                jobs.append(view)

        return [{
            "name": SEND_EMAIL_QUEUE,
            "label": SEND_EMAIL_LABEL,
            "counts": counts,
            "jobs": jobs,
        }]
