from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ProviderResult:
    success: bool
    message_id: str | None = None
    error: str | None = None


class EmailProvider(Protocol):
    async def send_email(
        self,
        *,
        to: str,
        subject: str,
        body_html: str,
        action_url: str | None = None,
    ) -> ProviderResult: ...


class SmsProvider(Protocol):
    async def send_sms(self, *, to: str, message: str) -> ProviderResult: ...


async def post_json(
    *,
    client: httpx.AsyncClient,
    url: str,
    body: dict[str, Any],
    token: str,
    channel: str,
) -> ProviderResult:
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    try:
        response = await client.post(url, json=body, headers=headers)
        response.raise_for_status()
    except Exception as exc:
        logger.exception("notification_provider_request_failed", provider=channel)
        return ProviderResult(success=False, error=str(exc) or exc.__class__.__name__)

    message_id: str | None = None
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        raw_id = payload.get("message_id") or payload.get("id")
        message_id = str(raw_id) if raw_id is not None else None
    return ProviderResult(success=True, message_id=message_id)


class WebhookEmailProvider:
    def __init__(
        self,
        *,
        url: str,
        token: str,
        from_address: str,
        timeout: float = 5.0,
    ) -> None:
        self._url = url
        self._token = token
        self._from_address = from_address
        self._timeout = timeout

    async def send_email(
        self,
        *,
        to: str,
        subject: str,
        body_html: str,
        action_url: str | None = None,
    ) -> ProviderResult:
        body: dict[str, Any] = {
            "from": self._from_address,
            "to": to,
            "subject": subject,
            "html": body_html,
        }
        if action_url:
            body["action_url"] = action_url
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await post_json(
                client=client,
                url=self._url,
                body=body,
                token=self._token,
                channel="email",
            )


class WebhookSmsProvider:
    def __init__(
        self,
        *,
        url: str,
        token: str,
        from_number: str,
        timeout: float = 5.0,
    ) -> None:
        self._url = url
        self._token = token
        self._from_number = from_number
        self._timeout = timeout

    async def send_sms(self, *, to: str, message: str) -> ProviderResult:
        body = {"from": self._from_number, "to": to, "body": message}
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await post_json(
                client=client,
                url=self._url,
                body=body,
                token=self._token,
                channel="sms",
            )


class LoggingEmailProvider:
    async def send_email(
        self,
        *,
        to: str,
        subject: str,
        body_html: str,
        action_url: str | None = None,
    ) -> ProviderResult:
        logger.info(
            "email_stub_sent",
            to=to,
            subject=subject,
            body_preview=body_html[:100],
            action_url=action_url,
        )
        return ProviderResult(success=True, message_id=f"email-{uuid.uuid4().hex[:12]}")


class LoggingSmsProvider:
    async def send_sms(self, *, to: str, message: str) -> ProviderResult:
        logger.info("sms_stub_sent", to=to, message_preview=message[:50])
        return ProviderResult(success=True, message_id=f"sms-{uuid.uuid4().hex[:12]}")


def _setting_str(settings: object, attr: str) -> str:
    value = getattr(settings, attr, "")
    return value.strip() if isinstance(value, str) else ""


def build_email_provider(settings: object) -> EmailProvider:
    url = _setting_str(settings, "email_webhook_url")
    if not url:
        return LoggingEmailProvider()
    return WebhookEmailProvider(
        url=url,
        token=_setting_str(settings, "email_api_token"),
        from_address=_setting_str(settings, "email_from_address"),
        timeout=float(getattr(settings, "notification_provider_timeout_seconds", 5.0)),
    )


def build_sms_provider(settings: object) -> SmsProvider:
    url = _setting_str(settings, "sms_webhook_url")
    if not url:
        return LoggingSmsProvider()
    return WebhookSmsProvider(
        url=url,
        token=_setting_str(settings, "sms_api_token"),
        from_number=_setting_str(settings, "sms_from_number"),
        timeout=float(getattr(settings, "notification_provider_timeout_seconds", 5.0)),
    )
