import asyncio

from referral_engine.workers.celery_app import celery_app
from referral_engine.workers.tasks import sweep


def test_run_referral_sweep_task_wrapper(monkeypatch) -> None:
    async def fake_async() -> dict[str, int]:
        return {
            "follow_ups_queued": 3,
            "reps_reconciled": 2,
            "tax_thresholds_crossed": 1,
            "notifications_flushed": 0,
        }

    monkeypatch.setattr(sweep, "run_referral_sweep_async", fake_async)

    result = sweep.run_referral_sweep()
    assert result["follow_ups_queued"] == 3
    assert result["tax_thresholds_crossed"] == 1


def test_run_referral_sweep_async_uses_engine(monkeypatch) -> None:
    calls: list[str] = []

    class _Engine:
        async def run_sweep(self) -> dict[str, int]:
            calls.append("run_sweep")
            return {
                "follow_ups_queued": 1,
                "reps_reconciled": 4,
                "tax_thresholds_crossed": 0,
                "notifications_flushed": 2,
            }

    monkeypatch.setattr(sweep, "build_engine", lambda: _Engine())

    result = asyncio.run(sweep.run_referral_sweep_async())
    assert calls == ["run_sweep"]
    assert result["reps_reconciled"] == 4


def test_referral_sweep_is_scheduled_daily() -> None:
    entry = celery_app.conf.beat_schedule["referral-sweep-daily"]
    assert entry["task"] == "referral_engine.workers.tasks.sweep.run_referral_sweep"
    assert entry["options"] == {"queue": "q_normal"}
