from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy import text

from referral_engine.api.deps import get_engine
from referral_engine.core.config import get_settings
from referral_engine.workers.celery_app import celery_app

router = APIRouter(tags=["health"])
PENDING_BACKLOG_MAX_AGE = timedelta(minutes=15)


def _ok_check(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"status": "ok"}
    if extra:
        payload.update(extra)
    return payload


def _failed_check(error: str) -> dict[str, str]:
    return {"status": "failed", "error": error}


async def _check_database(request: Request) -> dict[str, Any]:
    try:
        async with request.app.state.session_factory() as session:
            await session.execute(text("SELECT 1"))
        return _ok_check()
    except Exception as exc:
        return _failed_check(str(exc))


async def _check_broker() -> dict[str, Any]:
    redis_client: Redis | None = None
    try:
        redis_client = Redis.from_url(get_settings().celery_broker_url)
        pong = await redis_client.ping()
        if pong is not True:
            return _failed_check(f"unexpected redis ping response: {pong!r}")
        return _ok_check()
    except Exception as exc:
        return _failed_check(str(exc))
    finally:
        if redis_client is not None:
            await redis_client.aclose()


def _check_celery_worker_sync() -> dict[str, Any]:
    try:
        inspector = celery_app.control.inspect(timeout=1.0)
        if inspector is None:
            return _failed_check("celery inspector is unavailable")

        replies = inspector.ping() or {}
        if not replies:
            return _failed_check("no celery workers responded to ping")

        return _ok_check({"workers": len(replies)})
    except Exception as exc:
        return _failed_check(str(exc))


async def _check_celery_worker() -> dict[str, Any]:
    return await asyncio.to_thread(_check_celery_worker_sync)


async def _check_notification_backlog(request: Request) -> dict[str, Any]:
    try:
        engine = get_engine(request)
        pending = await engine.list_pending()
    except Exception as exc:
        return _failed_check(str(exc))

    if pending:
        oldest_age = engine.now() - pending[0].created_at
        if oldest_age > PENDING_BACKLOG_MAX_AGE:
            return _failed_check(f"oldest pending notification is {int(oldest_age.total_seconds())}s old")
    return _ok_check({"pending": len(pending)})


async def _collect_checks(request: Request) -> dict[str, dict[str, Any]]:
    checks = await asyncio.gather(
        _check_database(request),
        _check_broker(),
        _check_celery_worker(),
        _check_notification_backlog(request),
    )
    return {
        "database": checks[0],
        "broker": checks[1],
        "celery": checks[2],
        "notifications": checks[3],
    }


def _all_checks_ok(checks: dict[str, dict[str, Any]]) -> bool:
    return all(check.get("status") == "ok" for check in checks.values())


@router.get("/health")
async def health(request: Request) -> JSONResponse:
    checks = await _collect_checks(request)
    is_healthy = _all_checks_ok(checks)
    return JSONResponse(
        status_code=status.HTTP_200_OK if is_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ok" if is_healthy else "degraded",
            "checks": checks,
        },
    )
