from __future__ import annotations

import json
from datetime import timedelta

from referral_engine.api.models import as_notification_response, as_referral_response
from referral_engine.domain.serialization import (
    notification_from_payload,
    notification_to_payload,
    referral_from_payload,
    referral_to_payload,
)
from referral_engine.domain.types import ReferralStatus
from referral_engine.notifications.builders import build_follow_up_notification, rep_recipient
from referral_engine.pipeline.incentives import compute_rep_incentive_state
from referral_engine.pipeline.staleness import is_follow_up_needed
from tests.referral_fixtures import T0, make_referral, make_rep


def test_referral_round_trip_preserves_derived_results() -> None:
    referrals = [
        make_referral("ref-1", status=ReferralStatus.SOLD, depth=2),
        make_referral("ref-2", created_at=T0 - timedelta(days=3)),
    ]

    restored = [
        referral_from_payload(json.loads(json.dumps(referral_to_payload(referral))))
        for referral in referrals
    ]

    assert restored == referrals
    assert compute_rep_incentive_state(make_rep(), restored) == compute_rep_incentive_state(
        make_rep(),
        referrals,
    )
    assert [is_follow_up_needed(item, T0) for item in restored] == [False, True]


def test_notification_round_trip_keeps_recipients_and_channels() -> None:
    notification = build_follow_up_notification(
        make_referral("ref-1"),
        recipients=(rep_recipient(make_rep()),),
        action_url="https://referrals.example.com/refer/rep-1",
        now=T0,
    )
    notification.read_at = T0 + timedelta(hours=1)

    restored = notification_from_payload(json.loads(json.dumps(notification_to_payload(notification))))

    assert restored == notification
    assert restored.is_read
    assert restored.is_addressed_to("rep-1")


def test_api_responses_are_built_from_payloads() -> None:
    referral = make_referral("ref-1", status=ReferralStatus.QUOTED, depth=2)
    notification = build_follow_up_notification(
        make_referral("ref-2"),
        recipients=(rep_recipient(make_rep()),),
        action_url="https://referrals.example.com/refer/rep-1",
        now=T0,
    )

    referral_response = as_referral_response(referral)
    notification_response = as_notification_response(notification)

    assert referral_response.status == "quoted"
    assert referral_response.created_at == referral.created_at
    assert referral_response.model_dump(exclude={"created_at", "updated_at"}) == {
        key: value for key, value in referral_to_payload(referral).items() if not key.endswith("_at")
    }
    assert notification_response.type == "follow-up"
    assert notification_response.recipients[0].id == "rep-1"
    assert notification_response.created_at == T0
    assert notification_response.read_at is None
