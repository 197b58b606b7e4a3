"""Celery application used for transactional email and daily reminders."""
from celery import Celery
from celery.schedules import crontab

from app.core.config import settings

celery_app = Celery(
    "clinic",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["app.tasks.email_tasks", "app.tasks.reminder_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_track_started=True,
    result_extended=True,
    timezone=settings.TIMEZONE,
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    beat_schedule={
        "daily-visit-reminders": {
            "task": "app.tasks.reminder_tasks.send_daily_reminders",
            "schedule": crontab(hour=7, minute=0),
        },
    },
)
