from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal


@dataclass(frozen=True, slots=True)
class EngineRules:
    follow_up_after: timedelta = timedelta(days=3)

    tier1_amount: int = 125
    tier2_amount: int = 50
    tier3_amount: int = 10
    contacted_required: int = 10
    closed_required: int = 5

    tax_threshold: int = 599
    tax_warning: int = 500
    backup_withholding_rate: Decimal = Decimal("0.24")

    def __post_init__(self) -> None:
        if not (self.tier1_amount > self.tier2_amount > self.tier3_amount >= 0):
            raise ValueError("tier amounts must be strictly decreasing and non-negative")
        if self.contacted_required < 0 or self.closed_required < 0:
            raise ValueError("tier unlock requirements must be non-negative")
        if not (0 <= self.tax_warning < self.tax_threshold):
            raise ValueError("tax warning watermark must sit below the threshold")
        if self.follow_up_after <= timedelta(0):
            raise ValueError("follow_up_after must be positive")

    def tier_amount(self, depth: int) -> int:
        if depth == 1:
            return self.tier1_amount
        if depth == 2:
            return self.tier2_amount
        if depth == 3:
            return self.tier3_amount
        raise ValueError(f"Unsupported referral depth: {depth}")


DEFAULT_RULES = EngineRules()
