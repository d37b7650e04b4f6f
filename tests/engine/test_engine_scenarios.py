from __future__ import annotations

from datetime import timedelta

import pytest

from referral_engine.domain.errors import TaxInfoNotAllowedError
from referral_engine.domain.types import (
    NotificationChannel,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
    ReferralStatus,
    TaxInfo,
    TaxState,
    YearlyTaxRecord,
)
from tests.referral_fixtures import T0, build_harness, make_referral, make_rep

TAX_INFO = TaxInfo(
    legal_name="Mike Johnson",
    address_line="100 Main St",
    city="Austin",
    state="TX",
    postal_code="78701",
)


async def _of_type(harness, notification_type: NotificationType) -> list:
    notifications = await harness.engine.list_notifications("rep-1", limit=100)
    return [item for item in notifications if item.type == notification_type]


@pytest.mark.asyncio
async def test_scenario_a_sweep_creates_one_follow_up() -> None:
    harness = build_harness(
        referrals=[make_referral("ref-1", created_at=T0 - timedelta(days=3))],
    )

    first = await harness.engine.run_follow_up_scan()
    second = await harness.engine.run_follow_up_scan()
    await harness.engine.wait_for_deliveries()

    assert len(first) == 1
    assert second == []
    follow_ups = await _of_type(harness, NotificationType.FOLLOW_UP)
    assert len(follow_ups) == 1
    follow_up = follow_ups[0]
    assert follow_up.priority == NotificationPriority.HIGH
    assert [recipient.id for recipient in follow_up.recipients] == ["rep-1"]
    assert follow_up.action_url == "https://referrals.example.com/refer/rep-1"
    assert follow_up.status == NotificationStatus.SENT
    assert len(harness.email.calls) == 1
    assert len(harness.sms.calls) == 1


@pytest.mark.asyncio
async def test_follow_up_not_created_before_three_days() -> None:
    harness = build_harness(
        referrals=[make_referral("ref-1", created_at=T0 - timedelta(days=3) + timedelta(seconds=1))],
    )

    assert await harness.engine.run_follow_up_scan() == []

    harness.clock.advance(timedelta(seconds=1))
    assert len(await harness.engine.run_follow_up_scan()) == 1


@pytest.mark.asyncio
async def test_scenario_b_single_milestone_on_unlock() -> None:
    history = (
        [make_referral(f"sold-{i}", status=ReferralStatus.SOLD) for i in range(4)]
        + [make_referral(f"contacted-{i}", status=ReferralStatus.CONTACTED) for i in range(5)]
        + [make_referral("quoted-1", status=ReferralStatus.QUOTED)]
    )
    harness = build_harness(referrals=history)

    await harness.engine.transition_status("quoted-1", "sold")
    state = await harness.engine.compute_rep_incentive_state("rep-1")
    again = await harness.engine.compute_rep_incentive_state("rep-1")
    await harness.engine.wait_for_deliveries()

    assert state.tier2_unlocked and state.tier3_unlocked
    assert again.tier2_unlocked and again.tier3_unlocked
    milestones = await _of_type(harness, NotificationType.MILESTONE)
    assert len(milestones) == 1
    assert milestones[0].channels == (NotificationChannel.IN_APP, NotificationChannel.EMAIL)
    rep = await harness.reps.get_rep("rep-1")
    assert rep is not None and rep.tiers_unlocked_at == T0

    await harness.engine.transition_status("sold-0", "submitted")
    after_regression = await harness.engine.compute_rep_incentive_state("rep-1")
    assert after_regression.tier2_unlocked is True
    assert len(await _of_type(harness, NotificationType.MILESTONE)) == 1


@pytest.mark.asyncio
async def test_scenario_c_crossing_threshold_emits_one_tax_notification() -> None:
    harness = build_harness(
        reps=[make_rep(tiers_unlocked_at=T0 - timedelta(days=30))],
        referrals=[
            make_referral("down-1", status=ReferralStatus.QUOTED, depth=2),
            make_referral("down-2", status=ReferralStatus.QUOTED, depth=2),
        ],
    )
    await harness.tax_records.save_record(
        YearlyTaxRecord(rep_id="rep-1", year=2026, earnings=580, state=TaxState.APPROACHING)
    )

    await harness.engine.transition_status("down-1", "sold")
    status = await harness.engine.get_tax_status("rep-1", 2026)

    assert status.earnings == 630
    assert status.state == TaxState.OVER_THRESHOLD_PENDING_INFO
    tax_notifications = await _of_type(harness, NotificationType.TAX_THRESHOLD)
    assert len(tax_notifications) == 1
    assert tax_notifications[0].priority == NotificationPriority.HIGH
    assert tax_notifications[0].action_url == "https://referrals.example.com/dashboard/earnings"

    await harness.engine.transition_status("down-2", "sold")
    assert (await harness.engine.get_tax_status("rep-1", 2026)).earnings == 680
    assert len(await _of_type(harness, NotificationType.TAX_THRESHOLD)) == 1
    await harness.engine.wait_for_deliveries()


@pytest.mark.asyncio
async def test_scenario_d_tax_info_rejected_below_warning() -> None:
    harness = build_harness()

    with pytest.raises(TaxInfoNotAllowedError):
        await harness.engine.provide_tax_info("rep-1", 2026, TAX_INFO)

    status = await harness.engine.get_tax_status("rep-1", 2026)
    assert status.state == TaxState.BELOW_WARNING
    rep = await harness.reps.get_rep("rep-1")
    assert rep is not None and rep.tax_info_on_file is False


@pytest.mark.asyncio
async def test_scenario_e_missing_email_still_reaches_sent() -> None:
    harness = build_harness(
        reps=[make_rep(email=None)],
        referrals=[make_referral("ref-1", status=ReferralStatus.QUOTED)],
    )

    await harness.engine.transition_status("ref-1", "sold")
    await harness.engine.wait_for_deliveries()

    status_changes = await _of_type(harness, NotificationType.STATUS_CHANGE)
    assert len(status_changes) == 1
    assert status_changes[0].channels == (
        NotificationChannel.IN_APP,
        NotificationChannel.EMAIL,
        NotificationChannel.SMS,
    )
    assert status_changes[0].status == NotificationStatus.SENT
    assert harness.email.calls == []
    assert len(harness.sms.calls) == 1


@pytest.mark.asyncio
async def test_compliant_rep_crosses_next_year_with_normal_priority() -> None:
    harness = build_harness(
        referrals=[make_referral(f"q-{i}", status=ReferralStatus.QUOTED) for i in range(10)],
    )
    for index in range(5):
        await harness.engine.transition_status(f"q-{index}", "sold")
    assert (await harness.engine.get_tax_status("rep-1", 2026)).state == TaxState.OVER_THRESHOLD_PENDING_INFO

    compliant = await harness.engine.provide_tax_info("rep-1", 2026, TAX_INFO)
    assert compliant.state == TaxState.COMPLIANT
    assert compliant.backup_withholding is True

    harness.clock.set(T0.replace(year=2027))
    for index in range(5, 10):
        await harness.engine.transition_status(f"q-{index}", "sold")
    await harness.engine.wait_for_deliveries()

    next_year = await harness.engine.get_tax_status("rep-1", 2027)
    assert next_year.state == TaxState.COMPLIANT
    tax_notifications = await _of_type(harness, NotificationType.TAX_THRESHOLD)
    assert sorted(item.priority for item in tax_notifications) == [
        NotificationPriority.HIGH,
        NotificationPriority.NORMAL,
    ]
