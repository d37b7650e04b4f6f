from __future__ import annotations

from fastapi import HTTPException

from referral_engine.domain.errors import (
    InvalidStatusError,
    ReferralEngineError,
    ReferralNotFoundError,
    ReferralValidationError,
    RepNotFoundError,
    TaxInfoNotAllowedError,
    TaxInfoValidationError,
)

ERROR_RESPONSES: tuple[tuple[type[ReferralEngineError], int, str], ...] = (
    (ReferralValidationError, 400, "E_REFERRAL_INVALID"),
    (InvalidStatusError, 400, "E_REFERRAL_STATUS_INVALID"),
    (TaxInfoValidationError, 400, "E_TAX_INFO_INVALID"),
    (ReferralNotFoundError, 404, "E_REFERRAL_NOT_FOUND"),
    (RepNotFoundError, 404, "E_REP_NOT_FOUND"),
    (TaxInfoNotAllowedError, 409, "E_TAX_INFO_NOT_ALLOWED"),
)


def as_http_exception(exc: ReferralEngineError) -> HTTPException:
    for error_type, status_code, code in ERROR_RESPONSES:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail={"code": code, "message": str(exc)})
    return HTTPException(status_code=400, detail={"code": "E_REFERRAL_ENGINE", "message": str(exc)})
