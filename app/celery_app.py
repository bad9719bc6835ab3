"""
Sanprinon Lite - Celery Configuration

Celery configuration for background task processing.
Uses Redis as the message broker and result backend.
"""

from celery import Celery
from celery.schedules import crontab

from app.config import get_settings


settings = get_settings()

# Create Celery app
celery_app = Celery(
    'sanprinon_lite',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['app.tasks.celery_tasks'],
)

# Celery configuration
celery_app.conf.update(
    # Serialization
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',

    # Timezone
    timezone=settings.scheduler_timezone,
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=600,  # 10 minutes
    task_soft_time_limit=540,

    # Worker settings
    worker_prefetch_multiplier=1,

    # Result backend settings
    result_expires=86400,  # 24 hours

    # Retry settings
    task_default_retry_delay=60,  # 1 minute
    task_max_retries=3,

    # Beat schedule for periodic tasks
    beat_schedule={
        # Post due scheduled charges once a day
        'daily-charges': {
            'task': 'sanprinon.daily_charges',
            'schedule': crontab(hour=settings.daily_charges_hour, minute=0),
        },
        # Post or park due scheduled expenses
        'daily-expenses': {
            'task': 'sanprinon.daily_expenses',
            'schedule': crontab(hour=settings.daily_expenses_hour, minute=0),
        },
    },
)
