from referral_engine.db.models.base import Base
from referral_engine.db.models.notifications import (
    Notification,
    NotificationDedupeKey,
    NotificationRecipient,
)
from referral_engine.db.models.referrals import Referral
from referral_engine.db.models.reps import Rep
from referral_engine.db.models.tax_records import YearlyTaxRecord

__all__ = [
    "Base",
    "Notification",
    "NotificationDedupeKey",
    "NotificationRecipient",
    "Referral",
    "Rep",
    "YearlyTaxRecord",
]
