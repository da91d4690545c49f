"""Celery application configuration."""

from celery import Celery
from celery.schedules import crontab

from app.core.config import settings

celery_app = Celery(
    "taskboard",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.tasks.maintenance_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    worker_prefetch_multiplier=4,
    worker_max_tasks_per_child=1000,
)

celery_app.conf.beat_schedule = {
    "cleanup-old-audit-logs": {
        "task": "app.tasks.maintenance_tasks.cleanup_old_audit_logs_task",
        "schedule": crontab(hour=3, minute=0),
        "options": {"expires": 3600},
    },
    "expire-stale-invitations": {
        "task": "app.tasks.maintenance_tasks.expire_stale_invitations_task",
        "schedule": crontab(minute=0),
        "options": {"expires": 1800},
    },
}

celery_app.conf.task_routes = {
    "app.tasks.maintenance_tasks.*": {"queue": "maintenance"},
}
