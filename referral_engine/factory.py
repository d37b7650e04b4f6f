from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from referral_engine.core.clock import Clock
from referral_engine.core.config import Settings, get_settings
from referral_engine.core.rules import DEFAULT_RULES, EngineRules
from referral_engine.engine import ReferralEngine
from referral_engine.notifications.providers import build_email_provider, build_sms_provider
from referral_engine.stores.sql import (
    SqlNotificationStore,
    SqlReferralStore,
    SqlRepDirectory,
    SqlTaxRecordStore,
)


def build_engine(
    *,
    settings: Settings | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    clock: Clock | None = None,
    rules: EngineRules = DEFAULT_RULES,
    deliver_in_background: bool = True,
) -> ReferralEngine:
    resolved = settings or get_settings()
    if session_factory is None:
        from referral_engine.db.session import SessionLocal

        session_factory = SessionLocal

    return ReferralEngine(
        referrals=SqlReferralStore(session_factory),
        reps=SqlRepDirectory(session_factory),
        notifications=SqlNotificationStore(session_factory),
        tax_records=SqlTaxRecordStore(session_factory),
        email_provider=build_email_provider(resolved),
        sms_provider=build_sms_provider(resolved),
        clock=clock,
        rules=rules,
        base_url=resolved.app_base_url,
        reporting_timezone=resolved.reporting_timezone,
        max_concurrency=resolved.notification_max_concurrency,
        deliver_in_background=deliver_in_background,
    )
