"""
Celery Application Configuration
"""

from celery import Celery
from celery.schedules import crontab

from core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "hsseops",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["workers.scheduler", "workers.sla_escalation"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "workers.sla_escalation.*": {"queue": "sla"},
        "workers.scheduler.*": {"queue": "sla"},
    },
    # ── Celery Beat Schedule ─────────────────────────────────────────
    # Jobs fan out across active tenants via workers.scheduler.dispatch_active_tenants.
    beat_schedule={
        "screening-sla-sweep-15m": {
            "task": "workers.scheduler.dispatch_active_tenants",
            "schedule": crontab(minute="*/15"),
            "kwargs": {"task_name": "workers.sla_escalation.run_screening_sla_sweep"},
            "options": {"queue": "sla"},
        },
        "action-sla-sweep-hourly": {
            "task": "workers.scheduler.dispatch_active_tenants",
            "schedule": crontab(minute=5),
            "kwargs": {"task_name": "workers.sla_escalation.run_action_sla_sweep"},
            "options": {"queue": "sla"},
        },
    },
)
