from __future__ import annotations

from datetime import timedelta

import pytest

from referral_engine.core.rules import EngineRules
from referral_engine.domain.types import ReferralStatus
from referral_engine.pipeline.staleness import is_follow_up_needed, scan_for_stale
from tests.referral_fixtures import T0, make_referral

THREE_DAYS = timedelta(days=3)


def test_follow_up_boundary_is_exactly_three_days() -> None:
    referral = make_referral("ref-1", created_at=T0)

    assert not is_follow_up_needed(referral, T0 + THREE_DAYS - timedelta(seconds=1))
    assert is_follow_up_needed(referral, T0 + THREE_DAYS)
    assert is_follow_up_needed(referral, T0 + THREE_DAYS + timedelta(seconds=1))
    assert is_follow_up_needed(referral, T0 + timedelta(days=30))


@pytest.mark.parametrize(
    "status",
    [ReferralStatus.CONTACTED, ReferralStatus.QUOTED, ReferralStatus.SOLD],
)
def test_only_submitted_referrals_need_follow_up(status: ReferralStatus) -> None:
    referral = make_referral("ref-1", status=status, created_at=T0 - timedelta(days=10))

    assert not is_follow_up_needed(referral, T0)


def test_detector_is_pure() -> None:
    referral = make_referral("ref-1", created_at=T0 - THREE_DAYS)

    results = {is_follow_up_needed(referral, T0) for _ in range(3)}

    assert results == {True}
    assert referral.status == ReferralStatus.SUBMITTED
    assert referral.updated_at == referral.created_at


def test_scan_for_stale_returns_oldest_first() -> None:
    referrals = [
        make_referral("ref-new", created_at=T0 - timedelta(days=1)),
        make_referral("ref-b", created_at=T0 - timedelta(days=4)),
        make_referral("ref-a", created_at=T0 - timedelta(days=4)),
        make_referral("ref-old", created_at=T0 - timedelta(days=9)),
        make_referral("ref-sold", status=ReferralStatus.SOLD, created_at=T0 - timedelta(days=9)),
    ]

    stale = scan_for_stale(referrals, T0)

    assert [referral.id for referral in stale] == ["ref-old", "ref-a", "ref-b"]


def test_scan_honors_configured_threshold() -> None:
    rules = EngineRules(follow_up_after=timedelta(days=1))
    referral = make_referral("ref-1", created_at=T0 - timedelta(days=1))

    assert scan_for_stale([referral], T0, rules=rules) == [referral]
    assert scan_for_stale([referral], T0) == []
