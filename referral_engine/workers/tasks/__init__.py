from referral_engine.workers.tasks.notifications import flush_pending_notifications
from referral_engine.workers.tasks.sweep import run_referral_sweep

__all__ = [
    "flush_pending_notifications",
    "run_referral_sweep",
]
