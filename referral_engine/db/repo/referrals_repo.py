from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.models.referrals import Referral


class ReferralsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, referral_id: str) -> Referral | None:
        return await session.get(Referral, referral_id)

    @staticmethod
    async def list_filtered(
        session: AsyncSession,
        *,
        rep_id: str | None = None,
        referrer_id: str | None = None,
        statuses: tuple[str, ...] | None = None,
        created_before: datetime | None = None,
        updated_from: datetime | None = None,
        updated_to: datetime | None = None,
    ) -> list[Referral]:
        stmt = select(Referral)
        if rep_id is not None:
            stmt = stmt.where(Referral.rep_id == rep_id)
        if referrer_id is not None:
            stmt = stmt.where(Referral.referrer_id == referrer_id)
        if statuses is not None:
            stmt = stmt.where(Referral.status.in_(statuses))
        if created_before is not None:
            stmt = stmt.where(Referral.created_at <= created_before)
        if updated_from is not None:
            stmt = stmt.where(Referral.updated_at >= updated_from)
        if updated_to is not None:
            stmt = stmt.where(Referral.updated_at < updated_to)
        stmt = stmt.order_by(Referral.created_at.desc(), Referral.id.desc())
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def upsert(session: AsyncSession, *, referral: Referral) -> Referral:
        merged = await session.merge(referral)
        await session.flush()
        return merged
