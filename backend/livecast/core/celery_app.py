"""Celery application configuration."""

from celery import Celery

from livecast.core.config import settings

celery_app = Celery(
    "livecast",
    broker=settings.CELERY_BROKER_URL or settings.REDIS_URL,
    backend=settings.CELERY_RESULT_BACKEND or settings.REDIS_URL,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=900,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)


def build_beat_schedule(interval_minutes: int) -> dict:
    """Periodic reconciliation sweep; empty when the interval is not positive."""
    if interval_minutes <= 0:
        return {}
    return {
        "reconcile-recordings": {
            "task": "livecast.modules.stream.tasks.reconcile_recordings",
            "schedule": interval_minutes * 60.0,
        },
    }


celery_app.conf.beat_schedule = build_beat_schedule(
    settings.RECORDING_RECONCILE_INTERVAL_MINUTES
)

celery_app.autodiscover_tasks(["livecast.modules.stream"])
