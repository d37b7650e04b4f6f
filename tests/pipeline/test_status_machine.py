from __future__ import annotations

from datetime import timedelta

import pytest

from referral_engine.domain.errors import InvalidStatusError
from referral_engine.domain.types import NotificationPriority, ReferralStatus
from referral_engine.pipeline.status_machine import (
    VALID_STATUSES,
    is_forward_move,
    parse_status,
    status_change_priority,
    transition,
)
from tests.referral_fixtures import T0, make_referral


def test_valid_statuses_follow_pipeline_order() -> None:
    assert VALID_STATUSES == ("submitted", "contacted", "quoted", "sold")
    assert [ReferralStatus(value).order for value in VALID_STATUSES] == [0, 1, 2, 3]


@pytest.mark.parametrize("raw", ["sold", " SOLD ", "Sold", ReferralStatus.SOLD])
def test_parse_status_accepts_known_values(raw: object) -> None:
    assert parse_status(raw) == ReferralStatus.SOLD


@pytest.mark.parametrize("raw", ["closed", "", None, 3, "pending"])
def test_parse_status_rejects_unknown_values(raw: object) -> None:
    with pytest.raises(InvalidStatusError):
        parse_status(raw)


def test_transition_moves_forward_and_stamps_updated_at() -> None:
    referral = make_referral("ref-1", created_at=T0 - timedelta(days=2))

    updated = transition(referral, "contacted", now=T0)

    assert updated.status == ReferralStatus.CONTACTED
    assert updated.updated_at == T0
    assert updated.created_at == referral.created_at
    assert referral.status == ReferralStatus.SUBMITTED


def test_transition_allows_backward_administrative_moves() -> None:
    referral = make_referral("ref-1", status=ReferralStatus.QUOTED)

    updated = transition(referral, ReferralStatus.SUBMITTED, now=T0)

    assert updated.status == ReferralStatus.SUBMITTED
    assert not is_forward_move(ReferralStatus.QUOTED, ReferralStatus.SUBMITTED)
    assert is_forward_move(ReferralStatus.SUBMITTED, ReferralStatus.SOLD)


def test_transition_to_same_status_is_noop() -> None:
    referral = make_referral("ref-1", status=ReferralStatus.CONTACTED)

    assert transition(referral, "contacted", now=T0) is referral


def test_transition_never_moves_updated_at_before_created_at() -> None:
    referral = make_referral("ref-1", created_at=T0)

    updated = transition(referral, "contacted", now=T0 - timedelta(minutes=5))

    assert updated.updated_at == T0


def test_transition_rejects_unknown_status_without_mutation() -> None:
    referral = make_referral("ref-1")

    with pytest.raises(InvalidStatusError):
        transition(referral, "archived", now=T0)
    assert referral.status == ReferralStatus.SUBMITTED
    assert referral.updated_at == referral.created_at


def test_status_change_priority_is_high_only_for_sold() -> None:
    assert status_change_priority(ReferralStatus.SOLD) == NotificationPriority.HIGH
    assert status_change_priority(ReferralStatus.QUOTED) == NotificationPriority.NORMAL
    assert status_change_priority(ReferralStatus.CONTACTED) == NotificationPriority.NORMAL
