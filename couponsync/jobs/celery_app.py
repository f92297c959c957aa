"""Celery configuration for scheduled jobs."""

from __future__ import annotations

import os

from celery import Celery
from celery.schedules import crontab

from couponsync.utils.dates import timezone_name

broker_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")
backend_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")

celery_app = Celery(
    "couponsync",
    broker=broker_url,
    backend=backend_url,
    include=["couponsync.jobs.sync", "couponsync.jobs.cleanup"],
)
celery_app.conf.timezone = timezone_name()
celery_app.conf.beat_schedule = {
    "daily-sync": {
        "task": "couponsync.jobs.sync.run_scheduled_sync",
        "schedule": crontab(hour=int(os.environ.get("SYNC_HOUR", "2")), minute=int(os.environ.get("SYNC_MINUTE", "0"))),
    },
    "weekly-cleanup": {
        "task": "couponsync.jobs.cleanup.run_cleanup",
        "schedule": crontab(day_of_week="sun", hour=3, minute=0),
    },
}


@celery_app.task(name="couponsync.jobs.sync.run_scheduled_sync")
def run_scheduled_sync_task() -> dict:  # pragma: no cover - executed by worker
    import asyncio

    from couponsync.jobs.sync import run_sync

    return asyncio.run(run_sync("scheduled"))


@celery_app.task(name="couponsync.jobs.cleanup.run_cleanup")
def run_cleanup_task() -> dict:  # pragma: no cover - executed by worker
    from couponsync.jobs.cleanup import run_cleanup

    return run_cleanup()
