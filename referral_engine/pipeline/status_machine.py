from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from referral_engine.domain.errors import InvalidStatusError
from referral_engine.domain.types import (
    NotificationPriority,
    Referral,
    ReferralStatus,
)

VALID_STATUSES = tuple(status.value for status in ReferralStatus)


def parse_status(raw_status: object) -> ReferralStatus:
    if isinstance(raw_status, ReferralStatus):
        return raw_status
    if not isinstance(raw_status, str):
        raise InvalidStatusError(f"Unsupported referral status: {raw_status!r}")
    try:
        return ReferralStatus(raw_status.strip().lower())
    except ValueError as exc:
        raise InvalidStatusError(f"Unsupported referral status: {raw_status!r}") from exc


def is_forward_move(current: ReferralStatus, new_status: ReferralStatus) -> bool:
    return new_status.order > current.order


def status_change_priority(new_status: ReferralStatus) -> NotificationPriority:
    if new_status == ReferralStatus.SOLD:
        return NotificationPriority.HIGH
    return NotificationPriority.NORMAL


def transition(referral: Referral, new_status: object, *, now: datetime) -> Referral:
    # Backward and skipping moves are administrative overrides and stay allowed.
    status = parse_status(new_status)
    if status == referral.status:
        return referral
    return replace(
        referral,
        status=status,
        updated_at=max(now, referral.created_at),
    )
