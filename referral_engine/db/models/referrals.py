from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, SmallInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from referral_engine.db.models.base import Base, UTCDateTime


class Referral(Base):
    __tablename__ = "referrals"
    __table_args__ = (
        CheckConstraint(
            "status IN ('submitted','contacted','quoted','sold')",
            name="ck_referrals_status",
        ),
        CheckConstraint("value >= 0", name="ck_referrals_value_non_negative"),
        CheckConstraint("depth BETWEEN 1 AND 3", name="ck_referrals_depth_range"),
        CheckConstraint("updated_at >= created_at", name="ck_referrals_updated_after_created"),
        Index("idx_referrals_rep", "rep_id"),
        Index("idx_referrals_referrer", "referrer_id"),
        Index("idx_referrals_status_created", "status", "created_at"),
        Index("idx_referrals_rep_status_updated", "rep_id", "status", "updated_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    referrer_id: Mapped[str] = mapped_column(String(36), nullable=False)
    rep_id: Mapped[str] = mapped_column(String(36), ForeignKey("reps.id"), nullable=False)
    referee_name: Mapped[str] = mapped_column(String(200), nullable=False)
    referee_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    referee_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    value: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    depth: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
