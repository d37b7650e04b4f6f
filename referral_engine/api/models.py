from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from referral_engine.domain.serialization import notification_to_payload, referral_to_payload
from referral_engine.domain.types import (
    Notification,
    ProgramStats,
    Referral,
    RepIncentiveState,
    TaxStatus,
)


class ReferralCreateRequest(BaseModel):
    referrer_id: str = Field(min_length=1, max_length=36)
    rep_id: str = Field(min_length=1, max_length=36)
    referee_name: str = Field(max_length=200)
    referee_phone: str | None = Field(default=None, max_length=32)
    referee_email: str | None = Field(default=None, max_length=320)
    notes: str | None = None
    depth: int = 1
    value: int | None = None


class ReferralStatusRequest(BaseModel):
    status: str = Field(min_length=1, max_length=32)


class ReferralResponse(BaseModel):
    id: str
    referrer_id: str
    rep_id: str
    referee_name: str
    referee_phone: str | None
    referee_email: str | None
    status: str
    value: int = Field(ge=0)
    notes: str | None
    depth: int = Field(ge=1, le=3)
    created_at: datetime
    updated_at: datetime


class TierProgressResponse(BaseModel):
    contacted: int = Field(ge=0)
    contacted_required: int = Field(ge=0)
    closed: int = Field(ge=0)
    closed_required: int = Field(ge=0)


class RepIncentivesResponse(BaseModel):
    rep_id: str
    tier1_active: bool
    tier2_unlocked: bool
    tier3_unlocked: bool
    total_earnings: int = Field(ge=0)
    pending_earnings: int = Field(ge=0)
    progress: TierProgressResponse
    total_referrals: int = Field(ge=0)
    status_counts: dict[str, int]
    conversion_rate: float = Field(ge=0.0, le=100.0)


class ProgramStatsResponse(BaseModel):
    total_referrals: int = Field(ge=0)
    status_counts: dict[str, int]
    total_earnings: int = Field(ge=0)
    pending_earnings: int = Field(ge=0)
    total_reps: int = Field(ge=0)
    active_reps: int = Field(ge=0)
    conversion_rate: float = Field(ge=0.0, le=100.0)
    total_paid_out: int = Field(ge=0)


class TaxStatusResponse(BaseModel):
    rep_id: str
    year: int
    state: str
    earnings: int = Field(ge=0)
    threshold: int
    warning: int
    remaining_before_threshold: int = Field(ge=0)
    percent_to_threshold: float = Field(ge=0.0, le=100.0)
    tax_info_on_file: bool
    backup_withholding: bool
    backup_withholding_rate: float


class TaxInfoRequest(BaseModel):
    legal_name: str = Field(max_length=200)
    address_line: str = Field(max_length=300)
    city: str = Field(max_length=120)
    state: str = Field(max_length=64)
    postal_code: str = Field(max_length=16)
    taxpayer_id: str | None = Field(default=None, max_length=16)


class NotificationRecipientResponse(BaseModel):
    id: str
    name: str
    role: str
    email: str | None
    phone: str | None


class NotificationResponse(BaseModel):
    id: str
    type: str
    title: str
    message: str
    recipients: list[NotificationRecipientResponse]
    channels: list[str]
    priority: str
    status: str
    action_url: str | None
    action_label: str | None
    referral_id: str | None
    referral_name: str | None
    created_at: datetime
    scheduled_for: datetime | None
    sent_at: datetime | None
    read_at: datetime | None


class NotificationsListResponse(BaseModel):
    user_id: str
    unread_count: int = Field(ge=0)
    items: list[NotificationResponse]


class MarkAllReadRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=36)


class MarkAllReadResponse(BaseModel):
    user_id: str
    updated: int = Field(ge=0)


def as_referral_response(referral: Referral) -> ReferralResponse:
    return ReferralResponse.model_validate(referral_to_payload(referral))


def as_incentives_response(state: RepIncentiveState) -> RepIncentivesResponse:
    return RepIncentivesResponse(
        rep_id=state.rep_id,
        tier1_active=state.tier1_active,
        tier2_unlocked=state.tier2_unlocked,
        tier3_unlocked=state.tier3_unlocked,
        total_earnings=state.total_earnings,
        pending_earnings=state.pending_earnings,
        progress=TierProgressResponse(
            contacted=state.progress.contacted,
            contacted_required=state.progress.contacted_required,
            closed=state.progress.closed,
            closed_required=state.progress.closed_required,
        ),
        total_referrals=state.total_referrals,
        status_counts={status.value: count for status, count in state.status_counts.items()},
        conversion_rate=float(state.conversion_rate),
    )


def as_tax_status_response(status: TaxStatus) -> TaxStatusResponse:
    return TaxStatusResponse(
        rep_id=status.rep_id,
        year=status.year,
        state=status.state.value,
        earnings=status.earnings,
        threshold=status.threshold,
        warning=status.warning,
        remaining_before_threshold=status.remaining_before_threshold,
        percent_to_threshold=float(status.percent_to_threshold),
        tax_info_on_file=status.tax_info_on_file,
        backup_withholding=status.backup_withholding,
        backup_withholding_rate=float(status.backup_withholding_rate),
    )


def as_notification_response(notification: Notification) -> NotificationResponse:
    return NotificationResponse.model_validate(notification_to_payload(notification))


def as_program_stats_response(stats: ProgramStats) -> ProgramStatsResponse:
    return ProgramStatsResponse(
        total_referrals=stats.total_referrals,
        status_counts={status.value: count for status, count in stats.status_counts.items()},
        total_earnings=stats.total_earnings,
        pending_earnings=stats.pending_earnings,
        total_reps=stats.total_reps,
        active_reps=stats.active_reps,
        conversion_rate=float(stats.conversion_rate),
        total_paid_out=stats.total_paid_out,
    )
