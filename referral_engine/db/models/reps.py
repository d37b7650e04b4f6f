from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, String, false, true
from sqlalchemy.orm import Mapped, mapped_column

from referral_engine.db.models.base import Base, UTCDateTime


class Rep(Base):
    __tablename__ = "reps"
    __table_args__ = (
        CheckConstraint("role IN ('rep','admin')", name="ck_reps_role"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=true())
    tax_info_on_file: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=false()
    )
    tiers_unlocked_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
