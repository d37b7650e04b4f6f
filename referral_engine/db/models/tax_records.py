from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, CheckConstraint, ForeignKey, Integer, String, false, text
from sqlalchemy.orm import Mapped, mapped_column

from referral_engine.db.models.base import Base, UTCDateTime


class YearlyTaxRecord(Base):
    __tablename__ = "yearly_tax_records"
    __table_args__ = (
        CheckConstraint(
            "state IN ('below_warning','approaching','over_threshold_pending_info','compliant')",
            name="ck_yearly_tax_records_state",
        ),
        CheckConstraint("earnings >= 0", name="ck_yearly_tax_records_earnings_non_negative"),
    )

    rep_id: Mapped[str] = mapped_column(String(36), ForeignKey("reps.id"), primary_key=True)
    year: Mapped[int] = mapped_column(Integer, primary_key=True)
    earnings: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    state: Mapped[str] = mapped_column(String(32), nullable=False)
    tax_info_on_file: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=false()
    )
    backup_withholding: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=false()
    )
    counted_referral_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    crossed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    compliant_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
