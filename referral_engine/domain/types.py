from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum


class ReferralStatus(str, Enum):
    SUBMITTED = "submitted"
    CONTACTED = "contacted"
    QUOTED = "quoted"
    SOLD = "sold"

    @property
    def order(self) -> int:
        return STATUS_ORDER[self]


STATUS_ORDER = {
    ReferralStatus.SUBMITTED: 0,
    ReferralStatus.CONTACTED: 1,
    ReferralStatus.QUOTED: 2,
    ReferralStatus.SOLD: 3,
}


class RepRole(str, Enum):
    REP = "rep"
    ADMIN = "admin"


class NotificationType(str, Enum):
    FOLLOW_UP = "follow-up"
    STATUS_CHANGE = "status-change"
    MILESTONE = "milestone"
    TAX_THRESHOLD = "tax-threshold"


class NotificationChannel(str, Enum):
    IN_APP = "in-app"
    EMAIL = "email"
    SMS = "sms"


class NotificationPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class RecipientRole(str, Enum):
    REP = "rep"
    REFERRER = "referrer"
    REFEREE = "referee"


class TaxState(str, Enum):
    BELOW_WARNING = "below_warning"
    APPROACHING = "approaching"
    OVER_THRESHOLD_PENDING_INFO = "over_threshold_pending_info"
    COMPLIANT = "compliant"


@dataclass(slots=True)
class Referral:
    id: str
    referrer_id: str
    rep_id: str
    referee_name: str
    referee_phone: str | None
    referee_email: str | None
    status: ReferralStatus
    value: int
    notes: str | None
    created_at: datetime
    updated_at: datetime
    depth: int = 1


@dataclass(slots=True)
class Rep:
    id: str
    name: str
    email: str | None
    phone: str | None
    role: RepRole
    active: bool
    created_at: datetime
    tax_info_on_file: bool = False
    tiers_unlocked_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class NotificationRecipient:
    id: str
    name: str
    role: RecipientRole
    email: str | None = None
    phone: str | None = None


@dataclass(slots=True)
class Notification:
    id: str
    type: NotificationType
    title: str
    message: str
    recipients: tuple[NotificationRecipient, ...]
    channels: tuple[NotificationChannel, ...]
    priority: NotificationPriority
    created_at: datetime
    status: NotificationStatus = NotificationStatus.PENDING
    action_url: str | None = None
    action_label: str | None = None
    referral_id: str | None = None
    referral_name: str | None = None
    scheduled_for: datetime | None = None
    sent_at: datetime | None = None
    read_at: datetime | None = None
    dedupe_key: str | None = None

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    def is_addressed_to(self, user_id: str) -> bool:
        return any(recipient.id == user_id for recipient in self.recipients)


@dataclass(frozen=True, slots=True)
class ChannelDelivery:
    channel: NotificationChannel
    recipient_id: str | None
    success: bool
    message_id: str | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class DispatchReport:
    notification_id: str
    status: NotificationStatus
    deliveries: tuple[ChannelDelivery, ...]
    skipped: bool = False

    @property
    def failed_channels(self) -> tuple[NotificationChannel, ...]:
        return tuple(delivery.channel for delivery in self.deliveries if not delivery.success)


@dataclass(frozen=True, slots=True)
class TierProgress:
    contacted: int
    contacted_required: int
    closed: int
    closed_required: int


@dataclass(frozen=True, slots=True)
class RepIncentiveState:
    rep_id: str
    tier1_active: bool
    tier2_unlocked: bool
    tier3_unlocked: bool
    total_earnings: int
    pending_earnings: int
    progress: TierProgress
    total_referrals: int
    status_counts: dict[ReferralStatus, int]
    conversion_rate: Decimal
    newly_unlocked: bool = False


@dataclass(frozen=True, slots=True)
class ProgramStats:
    total_referrals: int
    status_counts: dict[ReferralStatus, int]
    total_earnings: int
    pending_earnings: int
    total_reps: int
    active_reps: int
    conversion_rate: Decimal
    total_paid_out: int


@dataclass(frozen=True, slots=True)
class TaxInfo:
    legal_name: str
    address_line: str
    city: str
    state: str
    postal_code: str
    taxpayer_id: str | None = None


@dataclass(slots=True)
class YearlyTaxRecord:
    rep_id: str
    year: int
    earnings: int = 0
    state: TaxState = TaxState.BELOW_WARNING
    tax_info_on_file: bool = False
    backup_withholding: bool = False
    counted_referral_ids: set[str] = field(default_factory=set)
    crossed_at: datetime | None = None
    compliant_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class TaxStatus:
    rep_id: str
    year: int
    state: TaxState
    earnings: int
    threshold: int
    warning: int
    remaining_before_threshold: int
    percent_to_threshold: Decimal
    tax_info_on_file: bool
    backup_withholding: bool
    backup_withholding_rate: Decimal
    threshold_crossed_now: bool = False
