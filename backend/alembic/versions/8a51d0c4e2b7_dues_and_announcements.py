"""dues cycles and announcements

Revision ID: 8a51d0c4e2b7
Revises: 3f2b9c1d7a10
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "8a51d0c4e2b7"
down_revision = "3f2b9c1d7a10"
branch_labels = None
depends_on = None


def _timestamps(updated: bool = True) -> list:
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False))
    return cols


def upgrade() -> None:
    op.create_table(
        "dues_cycles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("chapter_id", sa.Uuid(), sa.ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("base_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("close_date", sa.Date(), nullable=True),
        sa.Column("allow_payment_plans", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("plan_options", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("late_fee_policy", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("created_by", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_dues_cycles_chapter_id", "dues_cycles", ["chapter_id"])

    op.create_table(
        "dues_assignments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("dues_cycle_id", sa.Uuid(), sa.ForeignKey("dues_cycles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="required"),
        sa.Column("amount_assessed", sa.Numeric(10, 2), nullable=False),
        sa.Column("amount_due", sa.Numeric(10, 2), nullable=False),
        sa.Column("amount_paid", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("dues_cycle_id", "user_id", name="uq_dues_assignments_cycle_user"),
    )
    op.create_index("ix_dues_assignments_dues_cycle_id", "dues_assignments", ["dues_cycle_id"])
    op.create_index("ix_dues_assignments_user_id", "dues_assignments", ["user_id"])

    op.create_table(
        "announcements",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("chapter_id", sa.Uuid(), sa.ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sender_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("announcement_type", sa.String(length=20), nullable=False, server_default="general"),
        sa.Column("is_scheduled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_sent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False, server_default="{}"),
        *_timestamps(),
    )
    op.create_index("ix_announcements_chapter_id", "announcements", ["chapter_id"])
    op.create_index("ix_announcements_created_at", "announcements", ["created_at"])

    op.create_table(
        "announcement_recipients",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "announcement_id", sa.Uuid(), sa.ForeignKey("announcements.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("recipient_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint(
            "announcement_id", "recipient_id", name="uq_announcement_recipients_announcement_user"
        ),
    )
    op.create_index(
        "ix_announcement_recipients_announcement_id", "announcement_recipients", ["announcement_id"]
    )
    op.create_index("ix_announcement_recipients_recipient_id", "announcement_recipients", ["recipient_id"])


def downgrade() -> None:
    for table in ("announcement_recipients", "announcements", "dues_assignments", "dues_cycles"):
        op.drop_table(table)
