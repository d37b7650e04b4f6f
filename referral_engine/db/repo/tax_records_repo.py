from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.models.tax_records import YearlyTaxRecord


class TaxRecordsRepo:
    @staticmethod
    async def get(session: AsyncSession, *, rep_id: str, year: int) -> YearlyTaxRecord | None:
        return await session.get(YearlyTaxRecord, (rep_id, year))

    @staticmethod
    async def upsert(session: AsyncSession, *, record: YearlyTaxRecord) -> YearlyTaxRecord:
        merged = await session.merge(record)
        await session.flush()
        return merged
