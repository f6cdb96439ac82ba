"""Celery configuration."""
import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault(
    "DJANGO_SETTINGS_MODULE",
    os.getenv("DJANGO_SETTINGS_MODULE", "config.settings.prod"),
)

app = Celery("pipeline")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

# Beat schedule
app.conf.beat_schedule = {
    "estimates-warn-declining-soon": {
        "task": "estimates.tasks.warn_declining_soon",
        "schedule": crontab(minute=0, hour=7),  # Daily at 7am
    },
    "estimates-auto-decline": {
        "task": "estimates.tasks.auto_decline_expired_estimates",
        "schedule": crontab(minute=0, hour=8),  # Daily at 8am
    },
}
