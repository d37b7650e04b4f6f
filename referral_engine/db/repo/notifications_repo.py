from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.models.notifications import (
    Notification,
    NotificationDedupeKey,
    NotificationRecipient,
)


def _addressed_to(user_id: str):
    return select(NotificationRecipient.notification_id).where(
        NotificationRecipient.recipient_id == user_id
    )


class NotificationsRepo:
    @staticmethod
    async def create(session: AsyncSession, *, notification: Notification) -> Notification:
        session.add(notification)
        await session.flush()
        return notification

    @staticmethod
    async def get_by_id(session: AsyncSession, notification_id: str) -> Notification | None:
        return await session.get(Notification, notification_id)

    @staticmethod
    async def list_for_recipient(
        session: AsyncSession,
        *,
        user_id: str,
        limit: int,
    ) -> list[Notification]:
        stmt = (
            select(Notification)
            .where(Notification.id.in_(_addressed_to(user_id)))
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_by_status(
        session: AsyncSession,
        *,
        status: str,
        user_id: str | None = None,
        limit: int | None = None,
    ) -> list[Notification]:
        stmt = select(Notification).where(Notification.status == status)
        if user_id is not None:
            stmt = stmt.where(Notification.id.in_(_addressed_to(user_id)))
        stmt = stmt.order_by(Notification.created_at.asc(), Notification.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def count_unread(session: AsyncSession, *, user_id: str) -> int:
        stmt = select(func.count(Notification.id)).where(
            Notification.id.in_(_addressed_to(user_id)),
            Notification.read_at.is_(None),
        )
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)

    @staticmethod
    async def delete_by_id(session: AsyncSession, notification_id: str) -> bool:
        notification = await session.get(Notification, notification_id)
        if notification is None:
            return False
        await session.delete(notification)
        await session.flush()
        return True

    @staticmethod
    async def mark_read_for_recipient(
        session: AsyncSession,
        *,
        user_id: str,
        read_at: datetime,
    ) -> int:
        stmt = (
            update(Notification)
            .where(
                Notification.id.in_(_addressed_to(user_id)),
                Notification.read_at.is_(None),
            )
            .values(read_at=read_at)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return int(result.rowcount or 0)

    @staticmethod
    async def mark_dispatched(
        session: AsyncSession,
        *,
        notification_id: str,
        status: str,
        sent_at: datetime,
    ) -> bool:
        stmt = (
            update(Notification)
            .where(Notification.id == notification_id)
            .values(status=status, sent_at=sent_at)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return bool(result.rowcount)

    @staticmethod
    async def has_unread_for_referral(
        session: AsyncSession,
        *,
        notification_type: str,
        referral_id: str,
    ) -> bool:
        stmt = (
            select(Notification.id)
            .where(
                Notification.type == notification_type,
                Notification.referral_id == referral_id,
                Notification.read_at.is_(None),
            )
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def claim_dedupe_key(session: AsyncSession, *, key: str, claimed_at: datetime) -> bool:
        existing = await session.get(NotificationDedupeKey, key)
        if existing is not None:
            return False
        session.add(NotificationDedupeKey(key=key, claimed_at=claimed_at))
        await session.flush()
        return True
