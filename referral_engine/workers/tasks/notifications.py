from __future__ import annotations

import structlog

from referral_engine.core.config import get_settings
from referral_engine.factory import build_engine
from referral_engine.workers.asyncio_runner import run_async_job
from referral_engine.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)
FLUSH_BATCH_SIZE = 200


async def flush_pending_notifications_async(*, batch_size: int = FLUSH_BATCH_SIZE) -> dict[str, int]:
    engine = build_engine(deliver_in_background=False)
    result = await engine.flush_pending(limit=batch_size)
    if result["channel_failures"] > 0:
        logger.warning("pending_notifications_flushed_with_failures", **result)
    else:
        logger.info("pending_notifications_flushed", **result)
    return result


@celery_app.task(name="referral_engine.workers.tasks.notifications.flush_pending_notifications")
def flush_pending_notifications(batch_size: int = FLUSH_BATCH_SIZE) -> dict[str, int]:
    return run_async_job(
        flush_pending_notifications_async(batch_size=batch_size),
        job_name="notification_flush",
    )


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "notification-flush": {
            "task": "referral_engine.workers.tasks.notifications.flush_pending_notifications",
            "schedule": float(get_settings().notification_flush_interval_seconds),
            "options": {"queue": "q_normal"},
        },
    }
)
