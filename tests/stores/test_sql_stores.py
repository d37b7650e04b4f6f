from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import replace
from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from referral_engine.domain.types import (
    NotificationStatus,
    NotificationType,
    ReferralStatus,
    TaxState,
    YearlyTaxRecord,
)
from referral_engine.notifications.builders import (
    build_follow_up_notification,
    build_milestone_notification,
    rep_recipient,
)
from referral_engine.stores.base import ReferralFilter
from referral_engine.stores.sql import (
    SqlNotificationStore,
    SqlReferralStore,
    SqlRepDirectory,
    SqlTaxRecordStore,
)
from tests.referral_fixtures import T0, make_referral, make_rep
from tests.stores.sql_fixtures import build_sqlite_session_factory


@pytest_asyncio.fixture
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine, factory = await build_sqlite_session_factory()
    try:
        yield factory
    finally:
        await engine.dispose()


def _follow_up(referral_id: str, *, now=T0):
    return build_follow_up_notification(
        make_referral(referral_id),
        recipients=(rep_recipient(make_rep()),),
        action_url="https://referrals.example.com/refer/rep-1",
        now=now,
    )


@pytest.mark.asyncio
async def test_rep_directory_round_trip(session_factory) -> None:
    reps = SqlRepDirectory(session_factory)
    await reps.save_rep(make_rep("rep-1"))
    await reps.save_rep(make_rep("rep-2", active=False, created_at=T0))

    loaded = await reps.get_rep("rep-1")
    assert loaded == make_rep("rep-1")
    assert loaded.created_at.tzinfo is not None

    await reps.save_rep(replace(make_rep("rep-1"), tiers_unlocked_at=T0, tax_info_on_file=True))
    updated = await reps.get_rep("rep-1")
    assert updated is not None
    assert updated.tiers_unlocked_at == T0
    assert updated.tax_info_on_file is True

    assert [rep.id for rep in await reps.list_reps()] == ["rep-2", "rep-1"]
    assert [rep.id for rep in await reps.list_reps(active_only=True)] == ["rep-1"]
    assert await reps.get_rep("missing") is None


@pytest.mark.asyncio
async def test_referral_store_filters_and_upserts(session_factory) -> None:
    await SqlRepDirectory(session_factory).save_rep(make_rep())
    store = SqlReferralStore(session_factory)
    old = make_referral("ref-old", created_at=T0 - timedelta(days=5))
    new = make_referral("ref-new", created_at=T0 - timedelta(days=1))
    await store.save_referral(old)
    await store.save_referral(new)

    assert await store.get_referral("ref-old") == old
    assert [item.id for item in await store.list_referrals()] == ["ref-new", "ref-old"]

    stale = await store.list_referrals(
        ReferralFilter(statuses=(ReferralStatus.SUBMITTED,), created_before=T0 - timedelta(days=3))
    )
    assert [item.id for item in stale] == ["ref-old"]

    sold = replace(old, status=ReferralStatus.SOLD, updated_at=T0)
    await store.save_referral(sold)
    assert await store.get_referral("ref-old") == sold
    assert await store.list_referrals(ReferralFilter(rep_id="rep-2")) == []
    assert await store.get_referral("missing") is None


@pytest.mark.asyncio
async def test_notification_store_lifecycle(session_factory) -> None:
    store = SqlNotificationStore(session_factory)
    first = _follow_up("ref-1")
    second = _follow_up("ref-2", now=T0 + timedelta(minutes=1))
    await store.add(first)
    await store.add(second)

    assert await store.get(first.id) == first
    assert [item.id for item in await store.list_for("rep-1", limit=10)] == [second.id, first.id]
    assert [item.id for item in await store.list_for("rep-1", limit=1)] == [second.id]
    assert [item.id for item in await store.list_pending()] == [first.id, second.id]
    assert await store.has_unread(notification_type=NotificationType.FOLLOW_UP, referral_id="ref-1")
    assert await store.count_unread("rep-1") == 2

    assert await store.mark_dispatched(first.id, status=NotificationStatus.SENT, sent_at=T0) is True
    assert [item.id for item in await store.list_pending(user_id="rep-1")] == [second.id]

    assert await store.mark_read_for("rep-1", read_at=T0) == 2
    assert await store.count_unread("rep-1") == 0
    assert not await store.has_unread(notification_type=NotificationType.FOLLOW_UP, referral_id="ref-1")

    assert await store.delete(second.id) is True
    assert await store.delete(second.id) is False
    assert await store.get(second.id) is None
    assert await store.mark_dispatched(second.id, status=NotificationStatus.SENT, sent_at=T0) is False
    assert [item.id for item in await store.list_for("rep-1", limit=10)] == [first.id]


@pytest.mark.asyncio
async def test_notification_store_claims_keys_once(session_factory) -> None:
    store = SqlNotificationStore(session_factory)
    milestone = build_milestone_notification(rep_recipient(make_rep()), now=T0)
    assert milestone.dedupe_key is not None

    assert await store.claim_key(milestone.dedupe_key, claimed_at=T0) is True
    assert await store.claim_key(milestone.dedupe_key, claimed_at=T0) is False


@pytest.mark.asyncio
async def test_tax_record_store_round_trip(session_factory) -> None:
    await SqlRepDirectory(session_factory).save_rep(make_rep())
    store = SqlTaxRecordStore(session_factory)
    record = YearlyTaxRecord(
        rep_id="rep-1",
        year=2026,
        earnings=630,
        state=TaxState.OVER_THRESHOLD_PENDING_INFO,
        counted_referral_ids={"ref-1", "ref-2"},
        crossed_at=T0,
    )

    await store.save_record(record)
    loaded = await store.get_record(rep_id="rep-1", year=2026)
    assert loaded == record

    await store.save_record(replace(record, state=TaxState.COMPLIANT, compliant_at=T0))
    updated = await store.get_record(rep_id="rep-1", year=2026)
    assert updated is not None and updated.state == TaxState.COMPLIANT
    assert await store.get_record(rep_id="rep-1", year=2027) is None
