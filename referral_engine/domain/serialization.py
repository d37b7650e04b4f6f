from __future__ import annotations

from datetime import datetime
from typing import Any

from referral_engine.domain.types import (
    Notification,
    NotificationChannel,
    NotificationPriority,
    NotificationRecipient,
    NotificationStatus,
    NotificationType,
    RecipientRole,
    Referral,
)
from referral_engine.pipeline.status_machine import parse_status


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_datetime(value: object) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    raise ValueError(f"Unsupported datetime value: {value!r}")


def _required_datetime(payload: dict[str, Any], key: str) -> datetime:
    value = _parse_datetime(payload.get(key))
    if value is None:
        raise ValueError(f"{key} is required")
    return value


def referral_to_payload(referral: Referral) -> dict[str, Any]:
    return {
        "id": referral.id,
        "referrer_id": referral.referrer_id,
        "rep_id": referral.rep_id,
        "referee_name": referral.referee_name,
        "referee_phone": referral.referee_phone,
        "referee_email": referral.referee_email,
        "status": referral.status.value,
        "value": referral.value,
        "notes": referral.notes,
        "created_at": _iso(referral.created_at),
        "updated_at": _iso(referral.updated_at),
        "depth": referral.depth,
    }


def referral_from_payload(payload: dict[str, Any]) -> Referral:
    return Referral(
        id=str(payload["id"]),
        referrer_id=str(payload["referrer_id"]),
        rep_id=str(payload["rep_id"]),
        referee_name=str(payload["referee_name"]),
        referee_phone=payload.get("referee_phone"),
        referee_email=payload.get("referee_email"),
        status=parse_status(payload["status"]),
        value=int(payload["value"]),
        notes=payload.get("notes"),
        created_at=_required_datetime(payload, "created_at"),
        updated_at=_required_datetime(payload, "updated_at"),
        depth=int(payload.get("depth", 1)),
    )


def recipient_to_payload(recipient: NotificationRecipient) -> dict[str, Any]:
    return {
        "id": recipient.id,
        "name": recipient.name,
        "role": recipient.role.value,
        "email": recipient.email,
        "phone": recipient.phone,
    }


def recipient_from_payload(payload: dict[str, Any]) -> NotificationRecipient:
    return NotificationRecipient(
        id=str(payload["id"]),
        name=str(payload["name"]),
        role=RecipientRole(payload["role"]),
        email=payload.get("email"),
        phone=payload.get("phone"),
    )


def notification_to_payload(notification: Notification) -> dict[str, Any]:
    return {
        "id": notification.id,
        "type": notification.type.value,
        "title": notification.title,
        "message": notification.message,
        "recipients": [recipient_to_payload(recipient) for recipient in notification.recipients],
        "channels": [channel.value for channel in notification.channels],
        "priority": notification.priority.value,
        "created_at": _iso(notification.created_at),
        "status": notification.status.value,
        "action_url": notification.action_url,
        "action_label": notification.action_label,
        "referral_id": notification.referral_id,
        "referral_name": notification.referral_name,
        "scheduled_for": _iso(notification.scheduled_for),
        "sent_at": _iso(notification.sent_at),
        "read_at": _iso(notification.read_at),
        "dedupe_key": notification.dedupe_key,
    }


def notification_from_payload(payload: dict[str, Any]) -> Notification:
    return Notification(
        id=str(payload["id"]),
        type=NotificationType(payload["type"]),
        title=str(payload["title"]),
        message=str(payload["message"]),
        recipients=tuple(recipient_from_payload(item) for item in payload.get("recipients", [])),
        channels=tuple(NotificationChannel(item) for item in payload.get("channels", [])),
        priority=NotificationPriority(payload["priority"]),
        created_at=_required_datetime(payload, "created_at"),
        status=NotificationStatus(payload.get("status", NotificationStatus.PENDING.value)),
        action_url=payload.get("action_url"),
        action_label=payload.get("action_label"),
        referral_id=payload.get("referral_id"),
        referral_name=payload.get("referral_name"),
        scheduled_for=_parse_datetime(payload.get("scheduled_for")),
        sent_at=_parse_datetime(payload.get("sent_at")),
        read_at=_parse_datetime(payload.get("read_at")),
        dedupe_key=payload.get("dedupe_key"),
    )
