"""referral_engine_initial_schema

Revision ID: 3b9e2f7a1c04
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "3b9e2f7a1c04"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "reps",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("tax_info_on_file", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("tiers_unlocked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("role IN ('rep','admin')", name="ck_reps_role"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "referrals",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("referrer_id", sa.String(36), nullable=False),
        sa.Column("rep_id", sa.String(36), nullable=False),
        sa.Column("referee_name", sa.String(200), nullable=False),
        sa.Column("referee_phone", sa.String(32), nullable=True),
        sa.Column("referee_email", sa.String(320), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("value", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("depth", sa.SmallInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('submitted','contacted','quoted','sold')",
            name="ck_referrals_status",
        ),
        sa.CheckConstraint("value >= 0", name="ck_referrals_value_non_negative"),
        sa.CheckConstraint("depth BETWEEN 1 AND 3", name="ck_referrals_depth_range"),
        sa.CheckConstraint("updated_at >= created_at", name="ck_referrals_updated_after_created"),
        sa.ForeignKeyConstraint(["rep_id"], ["reps.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_referrals_rep", "referrals", ["rep_id"])
    op.create_index("idx_referrals_referrer", "referrals", ["referrer_id"])
    op.create_index("idx_referrals_status_created", "referrals", ["status", "created_at"])
    op.create_index(
        "idx_referrals_rep_status_updated",
        "referrals",
        ["rep_id", "status", "updated_at"],
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("type", sa.String(24), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("channels", sa.JSON(), nullable=False),
        sa.Column("priority", sa.String(8), nullable=False),
        sa.Column("status", sa.String(8), nullable=False),
        sa.Column("action_url", sa.Text(), nullable=True),
        sa.Column("action_label", sa.String(64), nullable=True),
        sa.Column("referral_id", sa.String(36), nullable=True),
        sa.Column("referral_name", sa.String(200), nullable=True),
        sa.Column("dedupe_key", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "type IN ('follow-up','status-change','milestone','tax-threshold')",
            name="ck_notifications_type",
        ),
        sa.CheckConstraint("priority IN ('low','normal','high')", name="ck_notifications_priority"),
        sa.CheckConstraint("status IN ('pending','sent','failed')", name="ck_notifications_status"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_notifications_status_created", "notifications", ["status", "created_at"])
    op.create_index("idx_notifications_type_referral", "notifications", ["type", "referral_id"])

    op.create_table(
        "notification_recipients",
        sa.Column("notification_id", sa.String(64), nullable=False),
        sa.Column("position", sa.SmallInteger(), nullable=False),
        sa.Column("recipient_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.ForeignKeyConstraint(["notification_id"], ["notifications.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("notification_id", "position"),
    )
    op.create_index(
        "idx_notification_recipients_recipient",
        "notification_recipients",
        ["recipient_id"],
    )

    op.create_table(
        "notification_dedupe_keys",
        sa.Column("key", sa.String(128), nullable=False),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("key"),
    )

    op.create_table(
        "yearly_tax_records",
        sa.Column("rep_id", sa.String(36), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("earnings", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("state", sa.String(32), nullable=False),
        sa.Column("tax_info_on_file", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("backup_withholding", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("counted_referral_ids", sa.JSON(), nullable=False),
        sa.Column("crossed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("compliant_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "state IN ('below_warning','approaching','over_threshold_pending_info','compliant')",
            name="ck_yearly_tax_records_state",
        ),
        sa.CheckConstraint("earnings >= 0", name="ck_yearly_tax_records_earnings_non_negative"),
        sa.ForeignKeyConstraint(["rep_id"], ["reps.id"]),
        sa.PrimaryKeyConstraint("rep_id", "year"),
    )


def downgrade() -> None:
    op.drop_table("yearly_tax_records")
    op.drop_table("notification_dedupe_keys")
    op.drop_index("idx_notification_recipients_recipient", table_name="notification_recipients")
    op.drop_table("notification_recipients")
    op.drop_index("idx_notifications_type_referral", table_name="notifications")
    op.drop_index("idx_notifications_status_created", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("idx_referrals_rep_status_updated", table_name="referrals")
    op.drop_index("idx_referrals_status_created", table_name="referrals")
    op.drop_index("idx_referrals_referrer", table_name="referrals")
    op.drop_index("idx_referrals_rep", table_name="referrals")
    op.drop_table("referrals")
    op.drop_table("reps")
