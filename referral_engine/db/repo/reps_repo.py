from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.models.reps import Rep


class RepsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, rep_id: str) -> Rep | None:
        return await session.get(Rep, rep_id)

    @staticmethod
    async def list_all(session: AsyncSession, *, active_only: bool = False) -> list[Rep]:
        stmt = select(Rep)
        if active_only:
            stmt = stmt.where(Rep.active.is_(True))
        stmt = stmt.order_by(Rep.created_at.desc(), Rep.id.desc())
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def upsert(session: AsyncSession, *, rep: Rep) -> Rep:
        merged = await session.merge(rep)
        await session.flush()
        return merged
