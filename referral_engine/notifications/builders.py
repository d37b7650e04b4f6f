from __future__ import annotations

import uuid
from datetime import datetime

from referral_engine.core.rules import DEFAULT_RULES, EngineRules
from referral_engine.domain.types import (
    Notification,
    NotificationChannel,
    NotificationPriority,
    NotificationRecipient,
    NotificationType,
    RecipientRole,
    Referral,
    ReferralStatus,
    Rep,
    TaxState,
    TaxStatus,
)
from referral_engine.pipeline.status_machine import status_change_priority

ALL_CHANNELS = (NotificationChannel.IN_APP, NotificationChannel.EMAIL, NotificationChannel.SMS)
MILESTONE_BONUS_TIERS = "bonus-tiers"
FOLLOW_UP_ACTION_LABEL = "Book Inspection"
TAX_ACTION_LABEL = "Provide Tax Info"


def new_notification_id() -> str:
    return f"notif-{uuid.uuid4().hex}"


def referral_intake_url(base_url: str, rep_id: str) -> str:
    return f"{base_url.rstrip('/')}/refer/{rep_id}"


def earnings_url(base_url: str) -> str:
    return f"{base_url.rstrip('/')}/dashboard/earnings"


def rep_recipient(rep: Rep) -> NotificationRecipient:
    return NotificationRecipient(
        id=rep.id,
        name=rep.name,
        role=RecipientRole.REP,
        email=rep.email,
        phone=rep.phone,
    )


def milestone_dedupe_key(rep_id: str, milestone: str = MILESTONE_BONUS_TIERS) -> str:
    return f"milestone:{rep_id}:{milestone}"


def tax_threshold_dedupe_key(rep_id: str, year: int) -> str:
    return f"tax-threshold:{rep_id}:{year}"


def build_follow_up_notification(
    referral: Referral,
    *,
    recipients: tuple[NotificationRecipient, ...],
    action_url: str,
    now: datetime,
) -> Notification:
    return Notification(
        id=new_notification_id(),
        type=NotificationType.FOLLOW_UP,
        title="Referral Follow-Up Needed",
        message=(
            f"Following up on {referral.referee_name}'s inspection request submitted 3 days ago. "
            "They're waiting to hear from us!"
        ),
        recipients=recipients,
        channels=ALL_CHANNELS,
        priority=NotificationPriority.HIGH,
        created_at=now,
        action_url=action_url,
        action_label=FOLLOW_UP_ACTION_LABEL,
        referral_id=referral.id,
        referral_name=referral.referee_name,
    )


def _status_change_copy(
    referral: Referral,
    previous: ReferralStatus,
    *,
    payout: int,
) -> tuple[str, str]:
    name = referral.referee_name
    if referral.status == ReferralStatus.SOLD:
        earned = f" You've earned ${payout}!" if payout > 0 else ""
        return (
            "Congratulations! Referral Closed!",
            f"Great news! {name}'s referral has been closed.{earned}",
        )
    if referral.status == ReferralStatus.CONTACTED:
        return (
            "Referral Contacted",
            f"{name} has been contacted. The inspection is being scheduled.",
        )
    if referral.status == ReferralStatus.QUOTED:
        return ("Quote Sent", f"A quote has been sent to {name}. Fingers crossed!")
    return (
        "Referral Status Updated",
        f"{name}'s referral status changed from {previous.value} to {referral.status.value}.",
    )


def build_status_change_notification(
    referral: Referral,
    *,
    previous: ReferralStatus,
    recipients: tuple[NotificationRecipient, ...],
    now: datetime,
    payout: int,
) -> Notification:
    title, message = _status_change_copy(referral, previous, payout=payout)
    sold = referral.status == ReferralStatus.SOLD
    return Notification(
        id=new_notification_id(),
        type=NotificationType.STATUS_CHANGE,
        title=title,
        message=message,
        recipients=recipients,
        channels=ALL_CHANNELS if sold else (NotificationChannel.IN_APP,),
        priority=status_change_priority(referral.status),
        created_at=now,
        referral_id=referral.id,
        referral_name=referral.referee_name,
    )


def build_milestone_notification(
    recipient: NotificationRecipient,
    *,
    now: datetime,
    rules: EngineRules = DEFAULT_RULES,
) -> Notification:
    return Notification(
        id=new_notification_id(),
        type=NotificationType.MILESTONE,
        title="Milestone Achieved: Bonus Tiers Unlocked",
        message=(
            f"You've unlocked Level 2 and Level 3 bonuses! You now earn ${rules.tier2_amount} "
            f"for every second-level referral and ${rules.tier3_amount} for every "
            "third-level referral that closes."
        ),
        recipients=(recipient,),
        channels=(NotificationChannel.IN_APP, NotificationChannel.EMAIL),
        priority=NotificationPriority.HIGH,
        created_at=now,
        dedupe_key=milestone_dedupe_key(recipient.id),
    )


def build_tax_threshold_notification(
    recipient: NotificationRecipient,
    status: TaxStatus,
    *,
    now: datetime,
    action_url: str | None = None,
) -> Notification:
    compliant = status.state == TaxState.COMPLIANT
    if compliant:
        title = "1099 Threshold Reached"
        message = (
            f"Your referral earnings for {status.year} reached ${status.earnings}. "
            "Your tax information is on file, no action is needed."
        )
    else:
        title = "Tax Information Required"
        message = (
            f"Your referral earnings for {status.year} reached ${status.earnings}, "
            f"over the ${status.threshold} 1099 threshold. Please provide your legal name and "
            "mailing address. Without a taxpayer ID, "
            f"{int(status.backup_withholding_rate * 100)}% backup withholding applies."
        )
    return Notification(
        id=new_notification_id(),
        type=NotificationType.TAX_THRESHOLD,
        title=title,
        message=message,
        recipients=(recipient,),
        channels=(NotificationChannel.IN_APP, NotificationChannel.EMAIL),
        priority=NotificationPriority.NORMAL if compliant else NotificationPriority.HIGH,
        created_at=now,
        action_url=None if compliant else action_url,
        action_label=None if compliant else TAX_ACTION_LABEL,
        dedupe_key=tax_threshold_dedupe_key(recipient.id, status.year),
    )
