from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from typing import TypeVar

import structlog

from referral_engine.db.session import dispose_engine

T = TypeVar("T")
logger = structlog.get_logger(__name__)


async def _run_with_fresh_db_pool(awaitable: Awaitable[T], job_name: str) -> T:
    # Pooled connections are bound to the loop that opened them.
    await dispose_engine()
    started = time.monotonic()
    try:
        return await awaitable
    finally:
        await dispose_engine()
        logger.info(
            "async_job_finished",
            job=job_name,
            elapsed_ms=round((time.monotonic() - started) * 1000),
        )


def run_async_job(awaitable: Awaitable[T], *, job_name: str = "job") -> T:
    return asyncio.run(_run_with_fresh_db_pool(awaitable, job_name))
