"""
Sanprinon Lite - Background Tasks Package

Celery background tasks.
"""

from app.tasks.celery_tasks import daily_charges_task, run_async

__all__ = [
    "daily_charges_task",
    "run_async",
]
