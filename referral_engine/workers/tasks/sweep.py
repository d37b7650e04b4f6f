from __future__ import annotations

import structlog
from celery.schedules import crontab

from referral_engine.core.config import get_settings
from referral_engine.factory import build_engine
from referral_engine.workers.asyncio_runner import run_async_job
from referral_engine.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)


async def run_referral_sweep_async() -> dict[str, int]:
    engine = build_engine()
    result = await engine.run_sweep()
    logger.info("referral_sweep_task_finished", **result)
    return result


@celery_app.task(name="referral_engine.workers.tasks.sweep.run_referral_sweep")
def run_referral_sweep() -> dict[str, int]:
    return run_async_job(run_referral_sweep_async(), job_name="referral_sweep")


settings = get_settings()
celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "referral-sweep-daily": {
            "task": "referral_engine.workers.tasks.sweep.run_referral_sweep",
            "schedule": crontab(hour=settings.sweep_hour, minute=settings.sweep_minute),
            "options": {"queue": "q_normal"},
        },
    }
)
