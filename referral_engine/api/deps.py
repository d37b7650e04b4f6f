from __future__ import annotations

from fastapi import Request

from referral_engine.engine import ReferralEngine


def get_engine(request: Request) -> ReferralEngine:
    return request.app.state.engine
