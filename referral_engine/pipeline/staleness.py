from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from referral_engine.core.rules import DEFAULT_RULES, EngineRules
from referral_engine.domain.types import Referral, ReferralStatus


def is_follow_up_needed(
    referral: Referral,
    now: datetime,
    *,
    rules: EngineRules = DEFAULT_RULES,
) -> bool:
    if referral.status != ReferralStatus.SUBMITTED:
        return False
    return now - referral.created_at >= rules.follow_up_after


def scan_for_stale(
    referrals: Iterable[Referral],
    now: datetime,
    *,
    rules: EngineRules = DEFAULT_RULES,
) -> list[Referral]:
    stale = [referral for referral in referrals if is_follow_up_needed(referral, now, rules=rules)]
    stale.sort(key=lambda referral: (referral.created_at, referral.id))
    return stale
