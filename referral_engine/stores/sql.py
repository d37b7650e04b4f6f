from __future__ import annotations

from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from referral_engine.db.models import notifications as notification_models
from referral_engine.db.models import referrals as referral_models
from referral_engine.db.models import reps as rep_models
from referral_engine.db.models import tax_records as tax_models
from referral_engine.db.repo.notifications_repo import NotificationsRepo
from referral_engine.db.repo.referrals_repo import ReferralsRepo
from referral_engine.db.repo.reps_repo import RepsRepo
from referral_engine.db.repo.tax_records_repo import TaxRecordsRepo
from referral_engine.domain.types import (
    Notification,
    NotificationChannel,
    NotificationPriority,
    NotificationRecipient,
    NotificationStatus,
    NotificationType,
    RecipientRole,
    Referral,
    ReferralStatus,
    Rep,
    RepRole,
    TaxState,
    YearlyTaxRecord,
)
from referral_engine.stores.base import ReferralFilter

SessionFactory = async_sessionmaker[AsyncSession]


def _referral_from_row(row: referral_models.Referral) -> Referral:
    return Referral(
        id=row.id,
        referrer_id=row.referrer_id,
        rep_id=row.rep_id,
        referee_name=row.referee_name,
        referee_phone=row.referee_phone,
        referee_email=row.referee_email,
        status=ReferralStatus(row.status),
        value=int(row.value),
        notes=row.notes,
        created_at=row.created_at,
        updated_at=row.updated_at,
        depth=int(row.depth),
    )


def _referral_to_row(referral: Referral) -> referral_models.Referral:
    return referral_models.Referral(
        id=referral.id,
        referrer_id=referral.referrer_id,
        rep_id=referral.rep_id,
        referee_name=referral.referee_name,
        referee_phone=referral.referee_phone,
        referee_email=referral.referee_email,
        status=referral.status.value,
        value=referral.value,
        notes=referral.notes,
        depth=referral.depth,
        created_at=referral.created_at,
        updated_at=referral.updated_at,
    )


def _rep_from_row(row: rep_models.Rep) -> Rep:
    return Rep(
        id=row.id,
        name=row.name,
        email=row.email,
        phone=row.phone,
        role=RepRole(row.role),
        active=bool(row.active),
        created_at=row.created_at,
        tax_info_on_file=bool(row.tax_info_on_file),
        tiers_unlocked_at=row.tiers_unlocked_at,
    )


def _rep_to_row(rep: Rep) -> rep_models.Rep:
    return rep_models.Rep(
        id=rep.id,
        name=rep.name,
        email=rep.email,
        phone=rep.phone,
        role=rep.role.value,
        active=rep.active,
        tax_info_on_file=rep.tax_info_on_file,
        tiers_unlocked_at=rep.tiers_unlocked_at,
        created_at=rep.created_at,
    )


def _notification_from_row(row: notification_models.Notification) -> Notification:
    return Notification(
        id=row.id,
        type=NotificationType(row.type),
        title=row.title,
        message=row.message,
        recipients=tuple(
            NotificationRecipient(
                id=recipient.recipient_id,
                name=recipient.name,
                role=RecipientRole(recipient.role),
                email=recipient.email,
                phone=recipient.phone,
            )
            for recipient in row.recipients
        ),
        channels=tuple(NotificationChannel(channel) for channel in row.channels),
        priority=NotificationPriority(row.priority),
        created_at=row.created_at,
        status=NotificationStatus(row.status),
        action_url=row.action_url,
        action_label=row.action_label,
        referral_id=row.referral_id,
        referral_name=row.referral_name,
        scheduled_for=row.scheduled_for,
        sent_at=row.sent_at,
        read_at=row.read_at,
        dedupe_key=row.dedupe_key,
    )


def _notification_to_row(notification: Notification) -> notification_models.Notification:
    return notification_models.Notification(
        id=notification.id,
        type=notification.type.value,
        title=notification.title,
        message=notification.message,
        channels=[channel.value for channel in notification.channels],
        priority=notification.priority.value,
        status=notification.status.value,
        action_url=notification.action_url,
        action_label=notification.action_label,
        referral_id=notification.referral_id,
        referral_name=notification.referral_name,
        dedupe_key=notification.dedupe_key,
        created_at=notification.created_at,
        scheduled_for=notification.scheduled_for,
        sent_at=notification.sent_at,
        read_at=notification.read_at,
        recipients=[
            notification_models.NotificationRecipient(
                position=position,
                recipient_id=recipient.id,
                name=recipient.name,
                role=recipient.role.value,
                email=recipient.email,
                phone=recipient.phone,
            )
            for position, recipient in enumerate(notification.recipients)
        ],
    )


def _tax_record_from_row(row: tax_models.YearlyTaxRecord) -> YearlyTaxRecord:
    return YearlyTaxRecord(
        rep_id=row.rep_id,
        year=int(row.year),
        earnings=int(row.earnings),
        state=TaxState(row.state),
        tax_info_on_file=bool(row.tax_info_on_file),
        backup_withholding=bool(row.backup_withholding),
        counted_referral_ids=set(row.counted_referral_ids or []),
        crossed_at=row.crossed_at,
        compliant_at=row.compliant_at,
    )


def _tax_record_to_row(record: YearlyTaxRecord) -> tax_models.YearlyTaxRecord:
    return tax_models.YearlyTaxRecord(
        rep_id=record.rep_id,
        year=record.year,
        earnings=record.earnings,
        state=record.state.value,
        tax_info_on_file=record.tax_info_on_file,
        backup_withholding=record.backup_withholding,
        counted_referral_ids=sorted(record.counted_referral_ids),
        crossed_at=record.crossed_at,
        compliant_at=record.compliant_at,
    )


class SqlReferralStore:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def list_referrals(self, referral_filter: ReferralFilter | None = None) -> list[Referral]:
        criteria = referral_filter or ReferralFilter()
        async with self._session_factory() as session:
            rows = await ReferralsRepo.list_filtered(
                session,
                rep_id=criteria.rep_id,
                referrer_id=criteria.referrer_id,
                statuses=(
                    tuple(status.value for status in criteria.statuses)
                    if criteria.statuses is not None
                    else None
                ),
                created_before=criteria.created_before,
                updated_from=criteria.updated_from,
                updated_to=criteria.updated_to,
            )
            return [_referral_from_row(row) for row in rows]

    async def get_referral(self, referral_id: str) -> Referral | None:
        async with self._session_factory() as session:
            row = await ReferralsRepo.get_by_id(session, referral_id)
            return _referral_from_row(row) if row is not None else None

    async def save_referral(self, referral: Referral) -> None:
        async with self._session_factory.begin() as session:
            await ReferralsRepo.upsert(session, referral=_referral_to_row(referral))


class SqlRepDirectory:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def get_rep(self, rep_id: str) -> Rep | None:
        async with self._session_factory() as session:
            row = await RepsRepo.get_by_id(session, rep_id)
            return _rep_from_row(row) if row is not None else None

    async def list_reps(self, *, active_only: bool = False) -> list[Rep]:
        async with self._session_factory() as session:
            rows = await RepsRepo.list_all(session, active_only=active_only)
            return [_rep_from_row(row) for row in rows]

    async def save_rep(self, rep: Rep) -> None:
        async with self._session_factory.begin() as session:
            await RepsRepo.upsert(session, rep=_rep_to_row(rep))


class SqlNotificationStore:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def add(self, notification: Notification) -> None:
        async with self._session_factory.begin() as session:
            await NotificationsRepo.create(session, notification=_notification_to_row(notification))

    async def get(self, notification_id: str) -> Notification | None:
        async with self._session_factory() as session:
            row = await NotificationsRepo.get_by_id(session, notification_id)
            return _notification_from_row(row) if row is not None else None

    async def list_for(self, user_id: str, *, limit: int) -> list[Notification]:
        async with self._session_factory() as session:
            rows = await NotificationsRepo.list_for_recipient(session, user_id=user_id, limit=limit)
            return [_notification_from_row(row) for row in rows]

    async def list_pending(self, *, user_id: str | None = None, limit: int | None = None) -> list[Notification]:
        async with self._session_factory() as session:
            rows = await NotificationsRepo.list_by_status(
                session,
                status=NotificationStatus.PENDING.value,
                user_id=user_id,
                limit=limit,
            )
            return [_notification_from_row(row) for row in rows]

    async def count_unread(self, user_id: str) -> int:
        async with self._session_factory() as session:
            return await NotificationsRepo.count_unread(session, user_id=user_id)

    async def delete(self, notification_id: str) -> bool:
        async with self._session_factory.begin() as session:
            return await NotificationsRepo.delete_by_id(session, notification_id)

    async def mark_read_for(self, user_id: str, *, read_at: datetime) -> int:
        async with self._session_factory.begin() as session:
            return await NotificationsRepo.mark_read_for_recipient(
                session,
                user_id=user_id,
                read_at=read_at,
            )

    async def mark_dispatched(
        self,
        notification_id: str,
        *,
        status: NotificationStatus,
        sent_at: datetime,
    ) -> bool:
        async with self._session_factory.begin() as session:
            return await NotificationsRepo.mark_dispatched(
                session,
                notification_id=notification_id,
                status=status.value,
                sent_at=sent_at,
            )

    async def has_unread(self, *, notification_type: NotificationType, referral_id: str) -> bool:
        async with self._session_factory() as session:
            return await NotificationsRepo.has_unread_for_referral(
                session,
                notification_type=notification_type.value,
                referral_id=referral_id,
            )

    async def claim_key(self, key: str, *, claimed_at: datetime) -> bool:
        try:
            async with self._session_factory.begin() as session:
                return await NotificationsRepo.claim_dedupe_key(
                    session,
                    key=key,
                    claimed_at=claimed_at,
                )
        except IntegrityError:
            # Lost a concurrent claim for the same key.
            return False


class SqlTaxRecordStore:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def get_record(self, *, rep_id: str, year: int) -> YearlyTaxRecord | None:
        async with self._session_factory() as session:
            row = await TaxRecordsRepo.get(session, rep_id=rep_id, year=year)
            return _tax_record_from_row(row) if row is not None else None

    async def save_record(self, record: YearlyTaxRecord) -> None:
        async with self._session_factory.begin() as session:
            await TaxRecordsRepo.upsert(session, record=_tax_record_to_row(record))
