from __future__ import annotations

import structlog
from fastapi import APIRouter, Request, status

from referral_engine.api.deps import get_engine
from referral_engine.api.errors import as_http_exception
from referral_engine.api.models import (
    ReferralCreateRequest,
    ReferralResponse,
    ReferralStatusRequest,
    as_referral_response,
)
from referral_engine.domain.errors import ReferralEngineError
from referral_engine.pipeline.intake import ReferralIntake

router = APIRouter(tags=["referrals"])
logger = structlog.get_logger(__name__)


@router.post("/referrals", response_model=ReferralResponse, status_code=status.HTTP_201_CREATED)
async def submit_referral(payload: ReferralCreateRequest, request: Request) -> ReferralResponse:
    engine = get_engine(request)
    try:
        referral = await engine.submit_referral(
            ReferralIntake(
                referrer_id=payload.referrer_id,
                rep_id=payload.rep_id,
                referee_name=payload.referee_name,
                referee_phone=payload.referee_phone,
                referee_email=payload.referee_email,
                notes=payload.notes,
                depth=payload.depth,
                value=payload.value,
            )
        )
    except ReferralEngineError as exc:
        logger.info("referral_submit_rejected", rep_id=payload.rep_id, error=str(exc))
        raise as_http_exception(exc) from exc
    return as_referral_response(referral)


@router.get("/referrals/{referral_id}", response_model=ReferralResponse)
async def get_referral(referral_id: str, request: Request) -> ReferralResponse:
    try:
        referral = await get_engine(request).get_referral(referral_id)
    except ReferralEngineError as exc:
        raise as_http_exception(exc) from exc
    return as_referral_response(referral)


@router.post("/referrals/{referral_id}/status", response_model=ReferralResponse)
async def transition_referral_status(
    referral_id: str,
    payload: ReferralStatusRequest,
    request: Request,
) -> ReferralResponse:
    try:
        referral = await get_engine(request).transition_status(referral_id, payload.status)
    except ReferralEngineError as exc:
        raise as_http_exception(exc) from exc
    return as_referral_response(referral)
