from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from datetime import datetime

from referral_engine.core.rules import DEFAULT_RULES, EngineRules
from referral_engine.domain.errors import ReferralValidationError
from referral_engine.domain.types import Referral, ReferralStatus

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_DIGITS = 10
MAX_DEPTH = 3


@dataclass(frozen=True, slots=True)
class ReferralIntake:
    referrer_id: str
    rep_id: str
    referee_name: str
    referee_phone: str | None = None
    referee_email: str | None = None
    notes: str | None = None
    depth: int = 1
    value: int | None = None


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def normalize_phone(phone: str) -> str:
    return re.sub(r"\D", "", phone)


def is_valid_phone(phone: str) -> bool:
    return len(normalize_phone(phone)) == PHONE_DIGITS


def is_valid_email(email: str) -> bool:
    return EMAIL_RE.match(email) is not None


def new_referral_id() -> str:
    return str(uuid.uuid4())


def build_referral(
    intake: ReferralIntake,
    *,
    now: datetime,
    rules: EngineRules = DEFAULT_RULES,
    referral_id: str | None = None,
) -> Referral:
    name = _clean(intake.referee_name)
    phone = _clean(intake.referee_phone)
    email = _clean(intake.referee_email)

    if name is None:
        raise ReferralValidationError("referee name is required")
    if phone is None and email is None:
        raise ReferralValidationError("phone or email is required")
    if phone is not None and not is_valid_phone(phone):
        raise ReferralValidationError("phone must contain exactly 10 digits")
    if email is not None and not is_valid_email(email):
        raise ReferralValidationError("email address is malformed")
    if not _clean(intake.referrer_id) or not _clean(intake.rep_id):
        raise ReferralValidationError("referrer and rep are required")
    if not 1 <= intake.depth <= MAX_DEPTH:
        raise ReferralValidationError(f"depth must be between 1 and {MAX_DEPTH}")

    value = rules.tier_amount(intake.depth) if intake.value is None else intake.value
    if value < 0:
        raise ReferralValidationError("referral value must be non-negative")

    return Referral(
        id=referral_id or new_referral_id(),
        referrer_id=intake.referrer_id.strip(),
        rep_id=intake.rep_id.strip(),
        referee_name=name,
        referee_phone=phone,
        referee_email=email,
        status=ReferralStatus.SUBMITTED,
        value=int(value),
        notes=_clean(intake.notes),
        created_at=now,
        updated_at=now,
        depth=intake.depth,
    )
