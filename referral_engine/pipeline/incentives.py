from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from referral_engine.core.rules import DEFAULT_RULES, EngineRules
from referral_engine.domain.types import (
    ProgramStats,
    Referral,
    ReferralStatus,
    Rep,
    RepIncentiveState,
    TierProgress,
)

ONE_DECIMAL = Decimal("0.1")


def round_half_up(value: Decimal) -> Decimal:
    return value.quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP)


def percentage(part: int, whole: int) -> Decimal:
    if whole <= 0:
        return Decimal("0.0")
    return round_half_up(Decimal(part) * 100 / Decimal(whole))


def count_by_status(referrals: Iterable[Referral]) -> dict[ReferralStatus, int]:
    counts = {status: 0 for status in ReferralStatus}
    for referral in referrals:
        counts[referral.status] += 1
    return counts


def tiers_unlock_reached(
    *,
    contacted_or_beyond: int,
    sold: int,
    rules: EngineRules = DEFAULT_RULES,
) -> bool:
    return contacted_or_beyond >= rules.contacted_required and sold >= rules.closed_required


def payout_for_sale(
    referral: Referral,
    *,
    tiers_unlocked_at: datetime | None,
    rules: EngineRules = DEFAULT_RULES,
) -> int:
    if referral.status != ReferralStatus.SOLD:
        return 0
    if referral.depth == 1:
        return rules.tier1_amount
    # Downstream sales keep the tier state they were sold under.
    if tiers_unlocked_at is None or referral.updated_at < tiers_unlocked_at:
        return 0
    return rules.tier_amount(referral.depth)


def compute_rep_incentive_state(
    rep: Rep,
    referrals: Iterable[Referral],
    *,
    rules: EngineRules = DEFAULT_RULES,
) -> RepIncentiveState:
    attributed = [referral for referral in referrals if referral.rep_id == rep.id]
    direct = [referral for referral in attributed if referral.depth == 1]

    direct_sold = sum(1 for referral in direct if referral.status == ReferralStatus.SOLD)
    direct_contacted = sum(
        1 for referral in direct if referral.status.order >= ReferralStatus.CONTACTED.order
    )

    reached = tiers_unlock_reached(
        contacted_or_beyond=direct_contacted,
        sold=direct_sold,
        rules=rules,
    )
    unlocked = rep.tiers_unlocked_at is not None or reached

    total_earnings = sum(
        payout_for_sale(referral, tiers_unlocked_at=rep.tiers_unlocked_at, rules=rules)
        for referral in attributed
    )

    # Pending referrals are always quoted at the tier-1 rate.
    not_sold = sum(1 for referral in attributed if referral.status != ReferralStatus.SOLD)
    pending_earnings = not_sold * rules.tier1_amount

    status_counts = count_by_status(attributed)
    return RepIncentiveState(
        rep_id=rep.id,
        tier1_active=bool(attributed),
        tier2_unlocked=unlocked,
        tier3_unlocked=unlocked,
        total_earnings=total_earnings,
        pending_earnings=pending_earnings,
        progress=TierProgress(
            contacted=direct_contacted,
            contacted_required=rules.contacted_required,
            closed=direct_sold,
            closed_required=rules.closed_required,
        ),
        total_referrals=len(attributed),
        status_counts=status_counts,
        conversion_rate=percentage(status_counts[ReferralStatus.SOLD], len(attributed)),
        newly_unlocked=reached and rep.tiers_unlocked_at is None,
    )


def compute_program_stats(
    reps: Sequence[Rep],
    referrals: Sequence[Referral],
    *,
    rules: EngineRules = DEFAULT_RULES,
) -> ProgramStats:
    total_earnings = 0
    pending_earnings = 0
    for rep in reps:
        state = compute_rep_incentive_state(rep, referrals, rules=rules)
        total_earnings += state.total_earnings
        pending_earnings += state.pending_earnings

    status_counts = count_by_status(referrals)
    return ProgramStats(
        total_referrals=len(referrals),
        status_counts=status_counts,
        total_earnings=total_earnings,
        pending_earnings=pending_earnings,
        total_reps=len(reps),
        active_reps=sum(1 for rep in reps if rep.active),
        conversion_rate=percentage(status_counts[ReferralStatus.SOLD], len(referrals)),
        total_paid_out=total_earnings,
    )
