from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from referral_engine.domain.types import (
    Notification,
    NotificationStatus,
    NotificationType,
    Referral,
    ReferralStatus,
    Rep,
    YearlyTaxRecord,
)


@dataclass(frozen=True, slots=True)
class ReferralFilter:
    rep_id: str | None = None
    referrer_id: str | None = None
    statuses: tuple[ReferralStatus, ...] | None = None
    created_before: datetime | None = None
    updated_from: datetime | None = None
    updated_to: datetime | None = None

    def matches(self, referral: Referral) -> bool:
        if self.rep_id is not None and referral.rep_id != self.rep_id:
            return False
        if self.referrer_id is not None and referral.referrer_id != self.referrer_id:
            return False
        if self.statuses is not None and referral.status not in self.statuses:
            return False
        if self.created_before is not None and referral.created_at > self.created_before:
            return False
        if self.updated_from is not None and referral.updated_at < self.updated_from:
            return False
        if self.updated_to is not None and referral.updated_at >= self.updated_to:
            return False
        return True


class ReferralStore(Protocol):
    async def list_referrals(self, referral_filter: ReferralFilter | None = None) -> list[Referral]: ...

    async def get_referral(self, referral_id: str) -> Referral | None: ...

    async def save_referral(self, referral: Referral) -> None: ...


class RepDirectory(Protocol):
    async def get_rep(self, rep_id: str) -> Rep | None: ...

    async def list_reps(self, *, active_only: bool = False) -> list[Rep]: ...

    async def save_rep(self, rep: Rep) -> None: ...


class NotificationStore(Protocol):
    async def add(self, notification: Notification) -> None: ...

    async def get(self, notification_id: str) -> Notification | None: ...

    async def list_for(self, user_id: str, *, limit: int) -> list[Notification]: ...

    async def list_pending(self, *, user_id: str | None = None, limit: int | None = None) -> list[Notification]: ...

    async def delete(self, notification_id: str) -> bool: ...

    async def count_unread(self, user_id: str) -> int: ...

    async def mark_read_for(self, user_id: str, *, read_at: datetime) -> int: ...

    async def mark_dispatched(
        self,
        notification_id: str,
        *,
        status: NotificationStatus,
        sent_at: datetime,
    ) -> bool: ...

    async def has_unread(self, *, notification_type: NotificationType, referral_id: str) -> bool: ...

    async def claim_key(self, key: str, *, claimed_at: datetime) -> bool: ...


class TaxRecordStore(Protocol):
    async def get_record(self, *, rep_id: str, year: int) -> YearlyTaxRecord | None: ...

    async def save_record(self, record: YearlyTaxRecord) -> None: ...
