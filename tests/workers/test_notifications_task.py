import asyncio

from referral_engine.workers.celery_app import celery_app
from referral_engine.workers.tasks import notifications


def test_flush_pending_notifications_task_wrapper(monkeypatch) -> None:
    async def fake_async(*, batch_size: int) -> dict[str, int]:
        return {
            "examined": batch_size,
            "dispatched": 4,
            "skipped": 1,
            "channel_failures": 0,
        }

    monkeypatch.setattr(notifications, "flush_pending_notifications_async", fake_async)

    result = notifications.flush_pending_notifications(batch_size=5)
    assert result["examined"] == 5
    assert result["dispatched"] == 4


def test_flush_pending_notifications_async_disables_background_delivery(monkeypatch) -> None:
    captured: dict[str, object] = {}

    class _Engine:
        async def flush_pending(self, *, limit: int | None = None) -> dict[str, int]:
            captured["limit"] = limit
            return {
                "examined": 2,
                "dispatched": 2,
                "skipped": 0,
                "channel_failures": 1,
            }

    def fake_build_engine(*, deliver_in_background: bool = True) -> _Engine:
        captured["deliver_in_background"] = deliver_in_background
        return _Engine()

    monkeypatch.setattr(notifications, "build_engine", fake_build_engine)

    result = asyncio.run(notifications.flush_pending_notifications_async(batch_size=11))
    assert captured == {"deliver_in_background": False, "limit": 11}
    assert result["channel_failures"] == 1


def test_notification_flush_is_scheduled() -> None:
    entry = celery_app.conf.beat_schedule["notification-flush"]
    assert entry["task"] == "referral_engine.workers.tasks.notifications.flush_pending_notifications"
    assert entry["schedule"] == 60.0
