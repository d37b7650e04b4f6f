from __future__ import annotations

import asyncio
import weakref
from dataclasses import replace
from datetime import datetime

import structlog

from referral_engine.core.clock import Clock, SystemClock
from referral_engine.core.rules import DEFAULT_RULES, EngineRules
from referral_engine.domain.errors import ReferralNotFoundError, RepNotFoundError
from referral_engine.domain.types import (
    Notification,
    ProgramStats,
    Referral,
    ReferralStatus,
    Rep,
    RepIncentiveState,
    TaxInfo,
    TaxStatus,
)
from referral_engine.notifications.builders import (
    build_follow_up_notification,
    build_milestone_notification,
    build_status_change_notification,
    build_tax_threshold_notification,
    earnings_url,
    referral_intake_url,
    rep_recipient,
)
from referral_engine.notifications.dispatcher import DEFAULT_MAX_CONCURRENCY, NotificationDispatcher
from referral_engine.notifications.providers import EmailProvider, SmsProvider
from referral_engine.notifications.queue import DEFAULT_LIST_LIMIT, NotificationQueue
from referral_engine.pipeline.incentives import (
    compute_program_stats,
    compute_rep_incentive_state,
    payout_for_sale,
)
from referral_engine.pipeline.intake import ReferralIntake, build_referral
from referral_engine.pipeline.staleness import scan_for_stale
from referral_engine.pipeline.status_machine import parse_status, transition
from referral_engine.pipeline.tax import TaxTracker, sale_year
from referral_engine.stores.base import (
    NotificationStore,
    ReferralFilter,
    ReferralStore,
    RepDirectory,
    TaxRecordStore,
)

logger = structlog.get_logger(__name__)
DEFAULT_REPORTING_TIMEZONE = "America/Chicago"


class RepLocks:
    """One asyncio lock per rep id; reps never wait on each other.

    Locks are held weakly: an entry lives only while some caller holds or
    awaits it.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._locks)

    def for_rep(self, rep_id: str) -> asyncio.Lock:
        lock = self._locks.get(rep_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[rep_id] = lock
        return lock


class ReferralEngine:
    """Referral lifecycle, incentives, tax tracking and notification fan-out.

    Derived state for a rep (tier unlock, yearly tax record) is only written
    while holding that rep's lock. Notification delivery runs as background
    tasks bounded by the dispatcher's worker pool, so callers never wait on
    email or SMS providers.
    """

    def __init__(
        self,
        *,
        referrals: ReferralStore,
        reps: RepDirectory,
        notifications: NotificationStore,
        tax_records: TaxRecordStore,
        email_provider: EmailProvider,
        sms_provider: SmsProvider,
        clock: Clock | None = None,
        rules: EngineRules = DEFAULT_RULES,
        base_url: str = "",
        reporting_timezone: str = DEFAULT_REPORTING_TIMEZONE,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        deliver_in_background: bool = True,
    ) -> None:
        self._referrals = referrals
        self._reps = reps
        self._clock = clock or SystemClock()
        self._rules = rules
        self._base_url = base_url
        self._reporting_timezone = reporting_timezone
        self._deliver_in_background = deliver_in_background
        self._locks = RepLocks()
        self._deliveries: set[asyncio.Task[None]] = set()

        self.queue = NotificationQueue(notifications, clock=self._clock)
        self.dispatcher = NotificationDispatcher(
            self.queue,
            email_provider=email_provider,
            sms_provider=sms_provider,
            max_concurrency=max_concurrency,
            clock=self._clock,
        )
        self.tax_tracker = TaxTracker(tax_records, rules=rules)

    @property
    def rules(self) -> EngineRules:
        return self._rules

    def now(self) -> datetime:
        return self._clock.now()

    def current_year(self) -> int:
        return sale_year(self._clock.now(), self._reporting_timezone)

    async def register_rep(self, rep: Rep) -> Rep:
        await self._reps.save_rep(rep)
        logger.info("rep_registered", rep_id=rep.id, role=rep.role.value)
        return rep

    async def get_rep(self, rep_id: str) -> Rep:
        rep = await self._reps.get_rep(rep_id)
        if rep is None:
            raise RepNotFoundError(f"rep {rep_id} not found")
        return rep

    async def get_referral(self, referral_id: str) -> Referral:
        referral = await self._referrals.get_referral(referral_id)
        if referral is None:
            raise ReferralNotFoundError(f"referral {referral_id} not found")
        return referral

    async def list_referrals(self, referral_filter: ReferralFilter | None = None) -> list[Referral]:
        return await self._referrals.list_referrals(referral_filter)

    async def submit_referral(self, intake: ReferralIntake) -> Referral:
        referral = build_referral(intake, now=self._clock.now(), rules=self._rules)
        await self.get_rep(referral.rep_id)
        await self._referrals.save_referral(referral)
        logger.info(
            "referral_submitted",
            referral_id=referral.id,
            rep_id=referral.rep_id,
            referrer_id=referral.referrer_id,
            depth=referral.depth,
        )
        return referral

    async def transition_status(self, referral_id: str, new_status: object) -> Referral:
        status = parse_status(new_status)
        snapshot = await self.get_referral(referral_id)

        async with self._locks.for_rep(snapshot.rep_id):
            current = await self.get_referral(referral_id)
            rep = await self.get_rep(current.rep_id)
            now = self._clock.now()
            updated = transition(current, status, now=now)
            if updated is current:
                logger.info(
                    "referral_transition_noop",
                    referral_id=referral_id,
                    status=status.value,
                )
                return current

            await self._referrals.save_referral(updated)
            logger.info(
                "referral_status_changed",
                referral_id=updated.id,
                rep_id=rep.id,
                previous_status=current.status.value,
                status=updated.status.value,
            )

            _, rep = await self._refresh_incentives(rep, now=now)
            payout = payout_for_sale(updated, tiers_unlocked_at=rep.tiers_unlocked_at, rules=self._rules)
            await self._publish(
                build_status_change_notification(
                    updated,
                    previous=current.status,
                    recipients=(rep_recipient(rep),),
                    now=now,
                    payout=payout,
                )
            )
            if updated.status == ReferralStatus.SOLD:
                await self._record_sale(rep, updated, amount=payout, now=now)
        return updated

    async def compute_rep_incentive_state(self, rep_id: str) -> RepIncentiveState:
        async with self._locks.for_rep(rep_id):
            rep = await self.get_rep(rep_id)
            state, _ = await self._refresh_incentives(rep, now=self._clock.now())
        return state

    async def get_program_stats(self) -> ProgramStats:
        reps = await self._reps.list_reps()
        referrals = await self._referrals.list_referrals()
        return compute_program_stats(reps, referrals, rules=self._rules)

    async def get_tax_status(self, rep_id: str, year: int | None = None) -> TaxStatus:
        rep = await self.get_rep(rep_id)
        return await self.tax_tracker.get_status(rep, self.current_year() if year is None else year)

    async def provide_tax_info(self, rep_id: str, year: int, info: TaxInfo) -> TaxStatus:
        async with self._locks.for_rep(rep_id):
            rep = await self.get_rep(rep_id)
            status = await self.tax_tracker.provide_tax_info(rep, year, info, now=self._clock.now())
            if not rep.tax_info_on_file:
                await self._reps.save_rep(replace(rep, tax_info_on_file=True))
        return status

    async def run_follow_up_scan(self) -> list[Notification]:
        now = self._clock.now()
        # Snapshot read, no rep locks: a referral that moves on meanwhile only
        # costs one redundant reminder.
        candidates = await self._referrals.list_referrals(
            ReferralFilter(
                statuses=(ReferralStatus.SUBMITTED,),
                created_before=now - self._rules.follow_up_after,
            )
        )
        stale = scan_for_stale(candidates, now, rules=self._rules)

        reps: dict[str, Rep | None] = {}
        queued: list[Notification] = []
        for referral in stale:
            if referral.rep_id not in reps:
                reps[referral.rep_id] = await self._reps.get_rep(referral.rep_id)
            rep = reps[referral.rep_id]
            if rep is None:
                logger.warning(
                    "follow_up_rep_missing",
                    referral_id=referral.id,
                    rep_id=referral.rep_id,
                )
                continue
            notification = await self._publish(
                build_follow_up_notification(
                    referral,
                    recipients=(rep_recipient(rep),),
                    action_url=referral_intake_url(self._base_url, rep.id),
                    now=now,
                )
            )
            if notification is not None:
                queued.append(notification)

        logger.info(
            "follow_up_sweep_finished",
            stale_referrals=len(stale),
            follow_ups_queued=len(queued),
        )
        return queued

    async def run_tax_reconciliation(self, year: int | None = None) -> list[TaxStatus]:
        target_year = self.current_year() if year is None else year
        statuses: list[TaxStatus] = []
        for rep in await self._reps.list_reps(active_only=True):
            async with self._locks.for_rep(rep.id):
                current_rep = await self._reps.get_rep(rep.id)
                if current_rep is None:
                    continue
                statuses.append(await self._reconcile_rep(current_rep, target_year))

        logger.info(
            "tax_reconciliation_finished",
            year=target_year,
            reps=len(statuses),
            crossed=sum(1 for status in statuses if status.threshold_crossed_now),
        )
        return statuses

    async def run_sweep(self) -> dict[str, int]:
        follow_ups = await self.run_follow_up_scan()
        tax_statuses = await self.run_tax_reconciliation()
        await self.wait_for_deliveries()
        flushed = await self.dispatcher.flush_pending()
        result = {
            "follow_ups_queued": len(follow_ups),
            "reps_reconciled": len(tax_statuses),
            "tax_thresholds_crossed": sum(1 for status in tax_statuses if status.threshold_crossed_now),
            "notifications_flushed": flushed["dispatched"],
        }
        logger.info("referral_sweep_finished", **result)
        return result

    async def list_notifications(self, user_id: str, *, limit: int = DEFAULT_LIST_LIMIT) -> list[Notification]:
        return await self.queue.list_for(user_id, limit=limit)

    async def list_pending(self, *, user_id: str | None = None, limit: int | None = None) -> list[Notification]:
        return await self.queue.list_pending(user_id=user_id, limit=limit)

    async def unread_count(self, user_id: str) -> int:
        return await self.queue.unread_count(user_id)

    async def dismiss(self, notification_id: str) -> bool:
        return await self.queue.dismiss(notification_id)

    async def mark_all_read(self, user_id: str) -> int:
        return await self.queue.mark_all_read(user_id)

    async def flush_pending(self, *, limit: int | None = None) -> dict[str, int]:
        await self.wait_for_deliveries()
        return await self.dispatcher.flush_pending(limit=limit)

    async def wait_for_deliveries(self) -> None:
        while self._deliveries:
            await asyncio.gather(*list(self._deliveries))

    async def _refresh_incentives(self, rep: Rep, *, now: datetime) -> tuple[RepIncentiveState, Rep]:
        referrals = await self._referrals.list_referrals(ReferralFilter(rep_id=rep.id))
        state = compute_rep_incentive_state(rep, referrals, rules=self._rules)
        if not state.newly_unlocked:
            return state, rep

        rep = replace(rep, tiers_unlocked_at=now)
        await self._reps.save_rep(rep)
        logger.info(
            "incentive_tiers_unlocked",
            rep_id=rep.id,
            contacted=state.progress.contacted,
            closed=state.progress.closed,
        )
        await self._publish(build_milestone_notification(rep_recipient(rep), now=now, rules=self._rules))
        return state, rep

    async def _record_sale(
        self,
        rep: Rep,
        referral: Referral,
        *,
        amount: int,
        now: datetime,
        year: int | None = None,
    ) -> TaxStatus:
        if year is None:
            year = sale_year(now, self._reporting_timezone)
        status = await self.tax_tracker.update_yearly_earnings(rep, year, referral, now=now, amount=amount)
        if status.threshold_crossed_now:
            await self._publish(
                build_tax_threshold_notification(
                    rep_recipient(rep),
                    status,
                    now=now,
                    action_url=earnings_url(self._base_url),
                )
            )
        return status

    async def _reconcile_rep(self, rep: Rep, year: int) -> TaxStatus:
        now = self._clock.now()
        _, rep = await self._refresh_incentives(rep, now=now)
        status = await self.tax_tracker.get_status(rep, year)
        referrals = await self._referrals.list_referrals(
            ReferralFilter(rep_id=rep.id, statuses=(ReferralStatus.SOLD,))
        )
        sold = sorted(
            (
                referral
                for referral in referrals
                if sale_year(referral.updated_at, self._reporting_timezone) == year
            ),
            key=lambda referral: (referral.updated_at, referral.id),
        )
        crossed = False
        for referral in sold:
            payout = payout_for_sale(referral, tiers_unlocked_at=rep.tiers_unlocked_at, rules=self._rules)
            status = await self._record_sale(rep, referral, amount=payout, now=now, year=year)
            crossed = crossed or status.threshold_crossed_now
        return replace(status, threshold_crossed_now=crossed)

    async def _publish(self, notification: Notification) -> Notification | None:
        queued = await self.queue.enqueue(notification)
        if queued is not None and self._deliver_in_background:
            task = asyncio.create_task(self._deliver(queued))
            self._deliveries.add(task)
            task.add_done_callback(self._deliveries.discard)
        return queued

    async def _deliver(self, notification: Notification) -> None:
        try:
            await self.dispatcher.dispatch(notification)
        except Exception:
            logger.exception("notification_delivery_failed", notification_id=notification.id)
