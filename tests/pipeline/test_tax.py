from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

from referral_engine.domain.errors import TaxInfoNotAllowedError, TaxInfoValidationError
from referral_engine.domain.types import ReferralStatus, TaxInfo, TaxState, YearlyTaxRecord
from referral_engine.pipeline.tax import (
    TaxTracker,
    apply_sale,
    apply_tax_info,
    build_tax_status,
    sale_year,
    validate_tax_info,
)
from referral_engine.stores.memory import InMemoryTaxRecordStore
from tests.referral_fixtures import T0, UTC, make_referral, make_rep

FULL_INFO = TaxInfo(
    legal_name="Mike Johnson",
    address_line="100 Main St",
    city="Austin",
    state="TX",
    postal_code="78701",
    taxpayer_id="123-45-6789",
)


def _record(earnings: int = 0, state: TaxState = TaxState.BELOW_WARNING, **kwargs: object) -> YearlyTaxRecord:
    return YearlyTaxRecord(rep_id="rep-1", year=2026, earnings=earnings, state=state, **kwargs)  # type: ignore[arg-type]


def test_scenario_c_crossing_threshold_requires_tax_info() -> None:
    record = _record(580, TaxState.APPROACHING)

    updated, crossed = apply_sale(record, referral_id="ref-50", amount=50, now=T0)

    assert crossed is True
    assert updated.earnings == 630
    assert updated.state == TaxState.OVER_THRESHOLD_PENDING_INFO
    assert updated.crossed_at == T0


def test_sales_after_crossing_do_not_cross_again() -> None:
    record, _ = apply_sale(_record(580, TaxState.APPROACHING), referral_id="a", amount=50, now=T0)

    updated, crossed = apply_sale(record, referral_id="b", amount=125, now=T0)

    assert crossed is False
    assert updated.earnings == 755
    assert updated.state == TaxState.OVER_THRESHOLD_PENDING_INFO


def test_same_referral_is_counted_once() -> None:
    record, _ = apply_sale(_record(), referral_id="a", amount=125, now=T0)

    again, crossed = apply_sale(record, referral_id="a", amount=125, now=T0)

    assert again is record
    assert crossed is False
    assert again.earnings == 125


def test_warning_watermark_enters_approaching() -> None:
    record, crossed = apply_sale(_record(450, TaxState.BELOW_WARNING), referral_id="a", amount=50, now=T0)

    assert crossed is False
    assert record.state == TaxState.APPROACHING


def test_crossing_with_info_on_file_is_compliant_directly() -> None:
    record, crossed = apply_sale(
        _record(500, TaxState.APPROACHING, tax_info_on_file=True),
        referral_id="a",
        amount=125,
        now=T0,
    )

    assert crossed is True
    assert record.state == TaxState.COMPLIANT
    assert record.compliant_at == T0


def test_scenario_d_tax_info_rejected_below_threshold() -> None:
    with pytest.raises(TaxInfoNotAllowedError):
        apply_tax_info(_record(100), FULL_INFO, now=T0)


def test_tax_info_moves_pending_record_to_compliant() -> None:
    pending = _record(630, TaxState.OVER_THRESHOLD_PENDING_INFO)

    compliant = apply_tax_info(pending, FULL_INFO, now=T0)

    assert compliant.state == TaxState.COMPLIANT
    assert compliant.tax_info_on_file is True
    assert compliant.backup_withholding is False


def test_missing_taxpayer_id_flags_backup_withholding() -> None:
    pending = _record(630, TaxState.OVER_THRESHOLD_PENDING_INFO)
    info = TaxInfo(
        legal_name="Mike Johnson",
        address_line="100 Main St",
        city="Austin",
        state="TX",
        postal_code="78701",
    )

    compliant = apply_tax_info(pending, info, now=T0)

    assert compliant.backup_withholding is True


def test_compliant_is_never_revisited() -> None:
    compliant = apply_tax_info(_record(630, TaxState.OVER_THRESHOLD_PENDING_INFO), FULL_INFO, now=T0)

    after_sale, crossed = apply_sale(compliant, referral_id="late", amount=125, now=T0)

    assert crossed is False
    assert after_sale.state == TaxState.COMPLIANT
    with pytest.raises(TaxInfoNotAllowedError):
        apply_tax_info(after_sale, FULL_INFO, now=T0)


@pytest.mark.parametrize(
    "info",
    [
        TaxInfo(legal_name=" ", address_line="1 Main", city="Austin", state="TX", postal_code="78701"),
        TaxInfo(legal_name="Mike", address_line="", city="Austin", state="TX", postal_code="78701"),
        TaxInfo(legal_name="Mike", address_line="1 Main", city="Austin", state="TX", postal_code=""),
        TaxInfo(
            legal_name="Mike",
            address_line="1 Main",
            city="Austin",
            state="TX",
            postal_code="78701",
            taxpayer_id="12-345",
        ),
    ],
)
def test_incomplete_tax_info_is_rejected(info: TaxInfo) -> None:
    with pytest.raises(TaxInfoValidationError):
        validate_tax_info(info)


def test_tax_status_display_fields() -> None:
    status = build_tax_status(_record(450, TaxState.BELOW_WARNING))
    capped = build_tax_status(_record(900, TaxState.OVER_THRESHOLD_PENDING_INFO))

    assert status.remaining_before_threshold == 149
    assert status.percent_to_threshold == Decimal("75.1")
    assert capped.remaining_before_threshold == 0
    assert capped.percent_to_threshold == Decimal("100.0")
    assert capped.backup_withholding_rate == Decimal("0.24")


def test_sale_year_uses_reporting_timezone() -> None:
    new_year_utc = datetime(2027, 1, 1, 3, 0, tzinfo=UTC)

    assert sale_year(new_year_utc, "America/Chicago") == 2026
    assert sale_year(new_year_utc, "UTC") == 2027


@pytest.mark.asyncio
async def test_tracker_persists_records_and_reports_crossing() -> None:
    store = InMemoryTaxRecordStore()
    await store.save_record(_record(580, TaxState.APPROACHING))
    tracker = TaxTracker(store)
    sold = make_referral("ref-50", status=ReferralStatus.SOLD, value=50)

    status = await tracker.update_yearly_earnings(make_rep(), 2026, sold, now=T0)
    replay = await tracker.update_yearly_earnings(make_rep(), 2026, sold, now=T0)

    assert status.threshold_crossed_now is True
    assert status.state == TaxState.OVER_THRESHOLD_PENDING_INFO
    assert replay.threshold_crossed_now is False
    assert replay.earnings == 630

    compliant = await tracker.provide_tax_info(make_rep(), 2026, FULL_INFO, now=T0)
    assert compliant.state == TaxState.COMPLIANT
    assert (await tracker.get_status(make_rep(), 2026)).state == TaxState.COMPLIANT


@pytest.mark.asyncio
async def test_tracker_starts_new_year_from_rep_info_flag() -> None:
    tracker = TaxTracker(InMemoryTaxRecordStore())

    status = await tracker.get_status(make_rep(tax_info_on_file=True), 2027)

    assert status.state == TaxState.BELOW_WARNING
    assert status.tax_info_on_file is True
    assert status.earnings == 0
