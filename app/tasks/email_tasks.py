from celery import shared_task
import logging
import time

from app.services.email_service import send_email, html_to_text

logger = logging.getLogger(__name__)

SEND_EMAIL_QUEUE = "send-email"
SEND_EMAIL_LABEL = "Wysylka e-maili"
BACKOFF_SECONDS = 30


@shared_task(bind=True, max_retries=3, name="send-email")
def send_email_task(self, to: str, subject: str, html: str):
    """Deliver a rendered email; retried with exponential backoff (30s, 60s, 120s)."""
    try:
        receipt = send_email(to_email=to, subject=subject, body=html_to_text(html), html=html)
    except Exception as e:
        logger.error(f"Error sending email to {to} ({subject!r}): {e}")
        raise self.retry(exc=e, countdown=BACKOFF_SECONDS * 2 ** self.request.retries)

    return {
        **receipt,
        "sentAt": int(time.time() * 1000),
    }
