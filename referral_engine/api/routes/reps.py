from __future__ import annotations

from fastapi import APIRouter, Path, Request

from referral_engine.api.deps import get_engine
from referral_engine.api.errors import as_http_exception
from referral_engine.api.models import (
    ProgramStatsResponse,
    RepIncentivesResponse,
    TaxInfoRequest,
    TaxStatusResponse,
    as_incentives_response,
    as_program_stats_response,
    as_tax_status_response,
)
from referral_engine.domain.errors import ReferralEngineError
from referral_engine.domain.types import TaxInfo

router = APIRouter(tags=["reps"])


@router.get("/program/stats", response_model=ProgramStatsResponse)
async def get_program_stats(request: Request) -> ProgramStatsResponse:
    stats = await get_engine(request).get_program_stats()
    return as_program_stats_response(stats)


@router.get("/reps/{rep_id}/incentives", response_model=RepIncentivesResponse)
async def get_rep_incentives(rep_id: str, request: Request) -> RepIncentivesResponse:
    try:
        state = await get_engine(request).compute_rep_incentive_state(rep_id)
    except ReferralEngineError as exc:
        raise as_http_exception(exc) from exc
    return as_incentives_response(state)


@router.get("/reps/{rep_id}/tax/{year}", response_model=TaxStatusResponse)
async def get_rep_tax_status(
    rep_id: str,
    request: Request,
    year: int = Path(ge=2000, le=2100),
) -> TaxStatusResponse:
    try:
        tax_status = await get_engine(request).get_tax_status(rep_id, year)
    except ReferralEngineError as exc:
        raise as_http_exception(exc) from exc
    return as_tax_status_response(tax_status)


@router.post("/reps/{rep_id}/tax/{year}/info", response_model=TaxStatusResponse)
async def provide_rep_tax_info(
    rep_id: str,
    payload: TaxInfoRequest,
    request: Request,
    year: int = Path(ge=2000, le=2100),
) -> TaxStatusResponse:
    info = TaxInfo(
        legal_name=payload.legal_name,
        address_line=payload.address_line,
        city=payload.city,
        state=payload.state,
        postal_code=payload.postal_code,
        taxpayer_id=payload.taxpayer_id,
    )
    try:
        tax_status = await get_engine(request).provide_tax_info(rep_id, year, info)
    except ReferralEngineError as exc:
        raise as_http_exception(exc) from exc
    return as_tax_status_response(tax_status)
