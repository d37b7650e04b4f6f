from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from referral_engine.domain.types import (
    Notification,
    NotificationStatus,
    NotificationType,
    Referral,
    Rep,
    YearlyTaxRecord,
)
from referral_engine.stores.base import ReferralFilter


class InMemoryReferralStore:
    def __init__(self, referrals: list[Referral] | None = None) -> None:
        self._referrals: dict[str, Referral] = {}
        for referral in referrals or []:
            self._referrals[referral.id] = replace(referral)

    async def list_referrals(self, referral_filter: ReferralFilter | None = None) -> list[Referral]:
        selected = [
            replace(referral)
            for referral in self._referrals.values()
            if referral_filter is None or referral_filter.matches(referral)
        ]
        selected.sort(key=lambda referral: referral.created_at, reverse=True)
        return selected

    async def get_referral(self, referral_id: str) -> Referral | None:
        referral = self._referrals.get(referral_id)
        return replace(referral) if referral is not None else None

    async def save_referral(self, referral: Referral) -> None:
        self._referrals[referral.id] = replace(referral)


class InMemoryRepDirectory:
    def __init__(self, reps: list[Rep] | None = None) -> None:
        self._reps: dict[str, Rep] = {rep.id: replace(rep) for rep in reps or []}

    async def get_rep(self, rep_id: str) -> Rep | None:
        rep = self._reps.get(rep_id)
        return replace(rep) if rep is not None else None

    async def list_reps(self, *, active_only: bool = False) -> list[Rep]:
        reps = [replace(rep) for rep in self._reps.values() if rep.active or not active_only]
        reps.sort(key=lambda rep: rep.created_at, reverse=True)
        return reps

    async def save_rep(self, rep: Rep) -> None:
        self._reps[rep.id] = replace(rep)


class InMemoryNotificationStore:
    def __init__(self) -> None:
        self._notifications: dict[str, Notification] = {}
        self._claimed_keys: dict[str, datetime] = {}

    async def add(self, notification: Notification) -> None:
        self._notifications[notification.id] = replace(notification)

    async def get(self, notification_id: str) -> Notification | None:
        notification = self._notifications.get(notification_id)
        return replace(notification) if notification is not None else None

    async def list_for(self, user_id: str, *, limit: int) -> list[Notification]:
        selected = [
            replace(notification)
            for notification in self._notifications.values()
            if notification.is_addressed_to(user_id)
        ]
        selected.sort(key=lambda notification: notification.created_at, reverse=True)
        return selected[:limit]

    async def list_pending(self, *, user_id: str | None = None, limit: int | None = None) -> list[Notification]:
        selected = [
            replace(notification)
            for notification in self._notifications.values()
            if notification.status == NotificationStatus.PENDING
            and (user_id is None or notification.is_addressed_to(user_id))
        ]
        selected.sort(key=lambda notification: notification.created_at)
        return selected if limit is None else selected[:limit]

    async def count_unread(self, user_id: str) -> int:
        return sum(
            1
            for notification in self._notifications.values()
            if notification.is_addressed_to(user_id) and notification.read_at is None
        )

    async def delete(self, notification_id: str) -> bool:
        return self._notifications.pop(notification_id, None) is not None

    async def mark_read_for(self, user_id: str, *, read_at: datetime) -> int:
        updated = 0
        for notification in self._notifications.values():
            if notification.is_addressed_to(user_id) and notification.read_at is None:
                notification.read_at = read_at
                updated += 1
        return updated

    async def mark_dispatched(
        self,
        notification_id: str,
        *,
        status: NotificationStatus,
        sent_at: datetime,
    ) -> bool:
        notification = self._notifications.get(notification_id)
        if notification is None:
            return False
        notification.status = status
        notification.sent_at = sent_at
        return True

    async def has_unread(self, *, notification_type: NotificationType, referral_id: str) -> bool:
        return any(
            notification.type == notification_type
            and notification.referral_id == referral_id
            and notification.read_at is None
            for notification in self._notifications.values()
        )

    async def claim_key(self, key: str, *, claimed_at: datetime) -> bool:
        if key in self._claimed_keys:
            return False
        self._claimed_keys[key] = claimed_at
        return True


class InMemoryTaxRecordStore:
    def __init__(self) -> None:
        self._records: dict[tuple[str, int], YearlyTaxRecord] = {}

    async def get_record(self, *, rep_id: str, year: int) -> YearlyTaxRecord | None:
        record = self._records.get((rep_id, year))
        if record is None:
            return None
        return replace(record, counted_referral_ids=set(record.counted_referral_ids))

    async def save_record(self, record: YearlyTaxRecord) -> None:
        self._records[(record.rep_id, record.year)] = replace(
            record,
            counted_referral_ids=set(record.counted_referral_ids),
        )
