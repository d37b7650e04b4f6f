from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Sequence
from html import escape

import structlog

from referral_engine.core.clock import Clock, SystemClock
from referral_engine.domain.types import (
    ChannelDelivery,
    DispatchReport,
    Notification,
    NotificationChannel,
    NotificationRecipient,
    NotificationStatus,
)
from referral_engine.notifications.providers import EmailProvider, SmsProvider
from referral_engine.notifications.queue import NotificationQueue

logger = structlog.get_logger(__name__)
DEFAULT_MAX_CONCURRENCY = 8


def render_email_html(notification: Notification) -> str:
    parts = [f"<h2>{escape(notification.title)}</h2>", f"<p>{escape(notification.message)}</p>"]
    if notification.action_url:
        label = escape(notification.action_label or "Open")
        parts.append(f'<p><a href="{escape(notification.action_url, quote=True)}">{label}</a></p>')
    return "".join(parts)


def render_sms_text(notification: Notification) -> str:
    if notification.action_url:
        return f"{notification.message} {notification.action_url}"
    return notification.message


class NotificationDispatcher:
    def __init__(
        self,
        queue: NotificationQueue,
        *,
        email_provider: EmailProvider,
        sms_provider: SmsProvider,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        clock: Clock | None = None,
    ) -> None:
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive")
        self._queue = queue
        self._email_provider = email_provider
        self._sms_provider = sms_provider
        self._clock = clock or SystemClock()
        self._max_concurrency = max_concurrency
        self._semaphore: asyncio.Semaphore | None = None

    def _pool(self) -> asyncio.Semaphore:
        # Created lazily so the semaphore binds to the running loop.
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self._max_concurrency)
        return self._semaphore

    async def dispatch(self, notification: Notification) -> DispatchReport:
        async with self._pool():
            return await self._dispatch(notification)

    async def dispatch_many(self, notifications: Sequence[Notification]) -> list[DispatchReport]:
        if not notifications:
            return []
        return list(await asyncio.gather(*(self.dispatch(item) for item in notifications)))

    async def flush_pending(self, *, limit: int | None = None) -> dict[str, int]:
        pending = await self._queue.list_pending(limit=limit)
        reports = await self.dispatch_many(pending)
        result = {
            "examined": len(pending),
            "dispatched": sum(1 for report in reports if not report.skipped),
            "skipped": sum(1 for report in reports if report.skipped),
            "channel_failures": sum(len(report.failed_channels) for report in reports),
        }
        logger.info("notification_flush_finished", **result)
        return result

    async def _still_queued(self, notification_id: str) -> bool:
        return await self._queue.get(notification_id) is not None

    async def _dispatch(self, notification: Notification) -> DispatchReport:
        current = await self._queue.get(notification.id)
        if current is None or current.status != NotificationStatus.PENDING:
            logger.info(
                "notification_dispatch_skipped",
                notification_id=notification.id,
                reason="dismissed" if current is None else "already_dispatched",
            )
            return DispatchReport(
                notification_id=notification.id,
                status=current.status if current is not None else NotificationStatus.PENDING,
                deliveries=(),
                skipped=True,
            )

        attempts: list[Awaitable[ChannelDelivery]] = []
        for channel in current.channels:
            if channel == NotificationChannel.IN_APP:
                attempts.append(self._deliver_in_app(current))
                continue
            for recipient in current.recipients:
                attempts.append(self._deliver(current, channel, recipient))

        deliveries = tuple(await asyncio.gather(*attempts))
        sent_at = self._clock.now()
        await self._queue.mark_dispatched(
            current.id,
            status=NotificationStatus.SENT,
            sent_at=sent_at,
        )
        failed = [delivery.channel.value for delivery in deliveries if not delivery.success]
        logger.info(
            "notification_dispatched",
            notification_id=current.id,
            notification_type=current.type.value,
            delivered=[delivery.channel.value for delivery in deliveries if delivery.success],
            failed=failed,
        )
        return DispatchReport(
            notification_id=current.id,
            status=NotificationStatus.SENT,
            deliveries=deliveries,
        )

    async def _deliver_in_app(self, notification: Notification) -> ChannelDelivery:
        # In-app delivery is the queued notification itself.
        return ChannelDelivery(
            channel=NotificationChannel.IN_APP,
            recipient_id=None,
            success=True,
            message_id=notification.id,
        )

    async def _deliver(
        self,
        notification: Notification,
        channel: NotificationChannel,
        recipient: NotificationRecipient,
    ) -> ChannelDelivery:
        address = recipient.email if channel == NotificationChannel.EMAIL else recipient.phone
        if not address:
            logger.warning(
                "notification_channel_skipped",
                notification_id=notification.id,
                channel=channel.value,
                recipient_id=recipient.id,
                reason="missing_contact",
            )
            return ChannelDelivery(
                channel=channel,
                recipient_id=recipient.id,
                success=False,
                error=f"recipient has no {channel.value} contact",
            )

        if not await self._still_queued(notification.id):
            return ChannelDelivery(
                channel=channel,
                recipient_id=recipient.id,
                success=False,
                error="notification dismissed",
            )

        try:
            if channel == NotificationChannel.EMAIL:
                result = await self._email_provider.send_email(
                    to=address,
                    subject=notification.title,
                    body_html=render_email_html(notification),
                    action_url=notification.action_url,
                )
            else:
                result = await self._sms_provider.send_sms(
                    to=address,
                    message=render_sms_text(notification),
                )
        except Exception as exc:
            logger.exception(
                "notification_channel_failed",
                notification_id=notification.id,
                channel=channel.value,
                recipient_id=recipient.id,
            )
            return ChannelDelivery(
                channel=channel,
                recipient_id=recipient.id,
                success=False,
                error=str(exc) or exc.__class__.__name__,
            )

        if not result.success:
            logger.warning(
                "notification_channel_failed",
                notification_id=notification.id,
                channel=channel.value,
                recipient_id=recipient.id,
                error=result.error,
            )
        return ChannelDelivery(
            channel=channel,
            recipient_id=recipient.id,
            success=result.success,
            message_id=result.message_id,
            error=result.error,
        )
