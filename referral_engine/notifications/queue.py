from __future__ import annotations

from datetime import datetime

import structlog

from referral_engine.core.clock import Clock, SystemClock
from referral_engine.domain.types import Notification, NotificationStatus, NotificationType
from referral_engine.stores.base import NotificationStore

logger = structlog.get_logger(__name__)
DEFAULT_LIST_LIMIT = 10


class NotificationQueue:
    """Pending and delivered notifications over a pluggable store.

    `dismiss` hard-deletes a notification. `mark_all_read` only stamps
    `read_at` and keeps every entry retrievable.
    """

    def __init__(self, store: NotificationStore, *, clock: Clock | None = None) -> None:
        self._store = store
        self._clock = clock or SystemClock()

    async def enqueue(self, notification: Notification) -> Notification | None:
        if notification.type == NotificationType.FOLLOW_UP and notification.referral_id:
            if await self._store.has_unread(
                notification_type=NotificationType.FOLLOW_UP,
                referral_id=notification.referral_id,
            ):
                logger.info(
                    "notification_suppressed_duplicate",
                    notification_type=notification.type.value,
                    referral_id=notification.referral_id,
                )
                return None

        if notification.dedupe_key is not None:
            claimed = await self._store.claim_key(
                notification.dedupe_key,
                claimed_at=self._clock.now(),
            )
            if not claimed:
                logger.info(
                    "notification_suppressed_duplicate",
                    notification_type=notification.type.value,
                    dedupe_key=notification.dedupe_key,
                )
                return None

        await self._store.add(notification)
        logger.info(
            "notification_enqueued",
            notification_id=notification.id,
            notification_type=notification.type.value,
            priority=notification.priority.value,
            recipients=[recipient.id for recipient in notification.recipients],
        )
        return notification

    async def get(self, notification_id: str) -> Notification | None:
        return await self._store.get(notification_id)

    async def list_for(self, user_id: str, *, limit: int = DEFAULT_LIST_LIMIT) -> list[Notification]:
        if limit <= 0:
            return []
        return await self._store.list_for(user_id, limit=limit)

    async def list_pending(
        self,
        *,
        user_id: str | None = None,
        limit: int | None = None,
    ) -> list[Notification]:
        return await self._store.list_pending(user_id=user_id, limit=limit)

    async def unread_count(self, user_id: str) -> int:
        return await self._store.count_unread(user_id)

    async def dismiss(self, notification_id: str) -> bool:
        removed = await self._store.delete(notification_id)
        logger.info("notification_dismissed", notification_id=notification_id, removed=removed)
        return removed

    async def mark_all_read(self, user_id: str) -> int:
        updated = await self._store.mark_read_for(user_id, read_at=self._clock.now())
        logger.info("notifications_marked_read", user_id=user_id, updated=updated)
        return updated

    async def mark_dispatched(
        self,
        notification_id: str,
        *,
        status: NotificationStatus,
        sent_at: datetime,
    ) -> bool:
        return await self._store.mark_dispatched(notification_id, status=status, sent_at=sent_at)
