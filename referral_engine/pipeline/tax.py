from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import structlog

from referral_engine.core.rules import DEFAULT_RULES, EngineRules
from referral_engine.domain.errors import TaxInfoNotAllowedError, TaxInfoValidationError
from referral_engine.domain.types import (
    Referral,
    Rep,
    TaxInfo,
    TaxState,
    TaxStatus,
    YearlyTaxRecord,
)
from referral_engine.pipeline.incentives import round_half_up
from referral_engine.stores.base import TaxRecordStore

logger = structlog.get_logger(__name__)
TAXPAYER_ID_DIGITS = 9
TAX_INFO_REQUIRED_FIELDS = ("legal_name", "address_line", "city", "state", "postal_code")


def sale_year(moment: datetime, timezone_name: str) -> int:
    return moment.astimezone(ZoneInfo(timezone_name)).year


def _state_below_threshold(earnings: int, rules: EngineRules) -> TaxState:
    if earnings >= rules.tax_warning:
        return TaxState.APPROACHING
    return TaxState.BELOW_WARNING


def apply_sale(
    record: YearlyTaxRecord,
    *,
    referral_id: str,
    amount: int,
    now: datetime,
    rules: EngineRules = DEFAULT_RULES,
) -> tuple[YearlyTaxRecord, bool]:
    if amount < 0:
        raise ValueError("sale amount must be non-negative")
    if referral_id in record.counted_referral_ids:
        return record, False

    updated = replace(
        record,
        earnings=record.earnings + amount,
        counted_referral_ids={*record.counted_referral_ids, referral_id},
    )
    if updated.state in {TaxState.OVER_THRESHOLD_PENDING_INFO, TaxState.COMPLIANT}:
        return updated, False

    if updated.earnings < rules.tax_threshold:
        return replace(updated, state=_state_below_threshold(updated.earnings, rules)), False

    if updated.tax_info_on_file:
        return replace(updated, state=TaxState.COMPLIANT, crossed_at=now, compliant_at=now), True
    return replace(updated, state=TaxState.OVER_THRESHOLD_PENDING_INFO, crossed_at=now), True


def validate_tax_info(info: TaxInfo) -> TaxInfo:
    missing = [name for name in TAX_INFO_REQUIRED_FIELDS if not str(getattr(info, name) or "").strip()]
    if missing:
        raise TaxInfoValidationError(f"missing tax info fields: {', '.join(missing)}")

    taxpayer_id = (info.taxpayer_id or "").strip() or None
    if taxpayer_id is not None:
        digits = re.sub(r"\D", "", taxpayer_id)
        if len(digits) != TAXPAYER_ID_DIGITS:
            raise TaxInfoValidationError("taxpayer id must contain exactly 9 digits")
        taxpayer_id = digits

    return TaxInfo(
        legal_name=info.legal_name.strip(),
        address_line=info.address_line.strip(),
        city=info.city.strip(),
        state=info.state.strip(),
        postal_code=info.postal_code.strip(),
        taxpayer_id=taxpayer_id,
    )


def apply_tax_info(
    record: YearlyTaxRecord,
    info: TaxInfo,
    *,
    now: datetime,
) -> YearlyTaxRecord:
    if record.state != TaxState.OVER_THRESHOLD_PENDING_INFO:
        raise TaxInfoNotAllowedError(
            f"tax info is only accepted over the threshold, current state: {record.state.value}"
        )
    cleaned = validate_tax_info(info)
    return replace(
        record,
        state=TaxState.COMPLIANT,
        tax_info_on_file=True,
        backup_withholding=cleaned.taxpayer_id is None,
        compliant_at=now,
    )


def build_tax_status(
    record: YearlyTaxRecord,
    *,
    rules: EngineRules = DEFAULT_RULES,
    threshold_crossed_now: bool = False,
) -> TaxStatus:
    percent = min(
        Decimal(record.earnings) * 100 / Decimal(rules.tax_threshold),
        Decimal(100),
    )
    return TaxStatus(
        rep_id=record.rep_id,
        year=record.year,
        state=record.state,
        earnings=record.earnings,
        threshold=rules.tax_threshold,
        warning=rules.tax_warning,
        remaining_before_threshold=max(0, rules.tax_threshold - record.earnings),
        percent_to_threshold=round_half_up(percent),
        tax_info_on_file=record.tax_info_on_file,
        backup_withholding=record.backup_withholding,
        backup_withholding_rate=rules.backup_withholding_rate,
        threshold_crossed_now=threshold_crossed_now,
    )


class TaxTracker:
    def __init__(self, store: TaxRecordStore, *, rules: EngineRules = DEFAULT_RULES) -> None:
        self._store = store
        self._rules = rules

    async def _load(self, rep: Rep, year: int) -> YearlyTaxRecord:
        record = await self._store.get_record(rep_id=rep.id, year=year)
        if record is None:
            record = YearlyTaxRecord(rep_id=rep.id, year=year, tax_info_on_file=rep.tax_info_on_file)
        return record

    async def get_status(self, rep: Rep, year: int) -> TaxStatus:
        record = await self._load(rep, year)
        return build_tax_status(record, rules=self._rules)

    async def update_yearly_earnings(
        self,
        rep: Rep,
        year: int,
        sold_referral: Referral,
        *,
        now: datetime,
        amount: int | None = None,
    ) -> TaxStatus:
        record = await self._load(rep, year)
        sale_amount = sold_referral.value if amount is None else amount
        updated, crossed = apply_sale(
            record,
            referral_id=sold_referral.id,
            amount=sale_amount,
            now=now,
            rules=self._rules,
        )
        if updated is not record:
            await self._store.save_record(updated)
        if crossed:
            logger.info(
                "tax_threshold_crossed",
                rep_id=rep.id,
                year=year,
                earnings=updated.earnings,
                state=updated.state.value,
            )
        return build_tax_status(updated, rules=self._rules, threshold_crossed_now=crossed)

    async def provide_tax_info(
        self,
        rep: Rep,
        year: int,
        info: TaxInfo,
        *,
        now: datetime,
    ) -> TaxStatus:
        record = await self._load(rep, year)
        updated = apply_tax_info(record, info, now=now)
        await self._store.save_record(updated)
        logger.info(
            "tax_info_recorded",
            rep_id=rep.id,
            year=year,
            backup_withholding=updated.backup_withholding,
        )
        return build_tax_status(updated, rules=self._rules)
