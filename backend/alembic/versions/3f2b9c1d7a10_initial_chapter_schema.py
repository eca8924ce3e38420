"""initial chapter schema

Revision ID: 3f2b9c1d7a10
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "3f2b9c1d7a10"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated: bool = True) -> list:
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False))
    return cols


def _user_fk(name: str, ondelete: str = "SET NULL", nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.Uuid(), sa.ForeignKey("users.id", ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("magic_code", sa.String(length=64), nullable=True),
        sa.Column("magic_code_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("full_name", sa.String(length=200), nullable=True),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("avatar_url", sa.String(length=1024), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "developer_access",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("access_level", sa.String(length=16), nullable=False, server_default="standard"),
        sa.Column("permissions", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(updated=False),
    )
    op.create_index("ix_developer_access_user_id", "developer_access", ["user_id"], unique=True)

    op.create_table(
        "chapters",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("chapter_name", sa.String(length=200), nullable=True),
        sa.Column("university", sa.String(length=200), nullable=True),
        sa.Column("national_fraternity", sa.String(length=200), nullable=True),
        sa.Column("location", sa.String(length=200), nullable=True),
        sa.Column("founded_year", sa.Integer(), nullable=True),
        sa.Column("chapter_status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("starting_budget", sa.Numeric(12, 2), nullable=True),
        sa.Column("feature_flags", sa.JSON(), nullable=False, server_default="{}"),
        *_timestamps(),
    )
    op.create_index("ix_chapters_name", "chapters", ["name"])

    op.create_table(
        "chapter_memberships",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("chapter_id", sa.Uuid(), sa.ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False),
        _user_fk("user_id", ondelete="CASCADE", nullable=False),
        sa.Column("role", sa.String(length=30), nullable=False, server_default="ACTIVE_MEMBER"),
        sa.Column("chapter_role", sa.String(length=50), nullable=True),
        sa.Column("member_status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("permissions", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint("chapter_id", "user_id", name="uq_chapter_memberships_chapter_user"),
    )
    op.create_index("ix_chapter_memberships_chapter_id", "chapter_memberships", ["chapter_id"])
    op.create_index("ix_chapter_memberships_user_id", "chapter_memberships", ["user_id"])

    op.create_table(
        "chapter_branding",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("chapter_id", sa.Uuid(), sa.ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False),
        sa.Column("primary_logo_url", sa.String(length=1024), nullable=True),
        sa.Column("secondary_logo_url", sa.String(length=1024), nullable=True),
        sa.Column("logo_alt_text", sa.String(length=200), nullable=False, server_default="Chapter Logo"),
        sa.Column("primary_color", sa.String(length=7), nullable=True),
        sa.Column("accent_color", sa.String(length=7), nullable=True),
        sa.Column("organization_id", sa.Uuid(), nullable=True),
        _user_fk("created_by"),
        _user_fk("updated_by"),
        *_timestamps(),
    )
    op.create_index("ix_chapter_branding_chapter_id", "chapter_branding", ["chapter_id"], unique=True)

    op.create_table(
        "invitations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("chapter_id", sa.Uuid(), sa.ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False),
        _user_fk("created_by"),
        sa.Column("token", sa.String(length=64), nullable=False),
        sa.Column("invitation_type", sa.String(length=20), nullable=False, server_default="active_member"),
        sa.Column("email_domain_allowlist", sa.JSON(), nullable=True),
        sa.Column("approval_mode", sa.String(length=20), nullable=False, server_default="auto"),
        sa.Column("single_use", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("max_uses", sa.Integer(), nullable=True),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_invitations_chapter_id", "invitations", ["chapter_id"])
    op.create_index("ix_invitations_token", "invitations", ["token"], unique=True)

    op.create_table(
        "invitation_usage",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("invitation_id", sa.Uuid(), sa.ForeignKey("invitations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        _user_fk("user_id"),
        sa.Column("used_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("invitation_id", "email", name="uq_invitation_usage_invitation_email"),
    )
    op.create_index("ix_invitation_usage_invitation_id", "invitation_usage", ["invitation_id"])

    op.create_table(
        "tasks",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("chapter_id", sa.Uuid(), sa.ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False),
        _user_fk("assignee_id"),
        _user_fk("assigned_by"),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("priority", sa.String(length=20), nullable=False, server_default="medium"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        *_timestamps(),
    )
    op.create_index("ix_tasks_chapter_id", "tasks", ["chapter_id"])
    op.create_index("ix_tasks_assignee_id", "tasks", ["assignee_id"])

    op.create_table(
        "events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("chapter_id", sa.Uuid(), sa.ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="published"),
        sa.Column("budget_label", sa.String(length=100), nullable=True),
        sa.Column("budget_amount", sa.Numeric(12, 2), nullable=True),
        _user_fk("created_by"),
        _user_fk("updated_by"),
        *_timestamps(),
    )
    op.create_index("ix_events_chapter_id", "events", ["chapter_id"])
    op.create_index("ix_events_start_time", "events", ["start_time"])

    op.create_table(
        "event_rsvps",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("event_id", sa.Uuid(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        _user_fk("user_id", ondelete="CASCADE", nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("responded_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("event_id", "user_id", name="uq_event_rsvps_event_user"),
    )
    op.create_index("ix_event_rsvps_event_id", "event_rsvps", ["event_id"])
    op.create_index("ix_event_rsvps_user_id", "event_rsvps", ["user_id"])

    op.create_table(
        "vendor_contacts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("chapter_id", sa.Uuid(), sa.ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("contact_person", sa.String(length=200), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("website", sa.String(length=500), nullable=True),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column("rating", sa.Numeric(2, 1), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _user_fk("created_by"),
        _user_fk("updated_by"),
        *_timestamps(),
    )
    op.create_index("ix_vendor_contacts_chapter_id", "vendor_contacts", ["chapter_id"])

    op.create_table(
        "recruits",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("chapter_id", sa.Uuid(), sa.ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("hometown", sa.String(length=200), nullable=False),
        sa.Column("phone_number", sa.String(length=32), nullable=True),
        sa.Column("instagram_handle", sa.String(length=100), nullable=True),
        sa.Column("stage", sa.String(length=30), nullable=False, server_default="New"),
        sa.Column("notes", sa.Text(), nullable=True),
        _user_fk("submitted_by"),
        *_timestamps(),
    )
    op.create_index("ix_recruits_chapter_id", "recruits", ["chapter_id"])
    op.create_index("ix_recruits_stage", "recruits", ["stage"])

    op.create_table(
        "posts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("chapter_id", sa.Uuid(), sa.ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False),
        _user_fk("author_id", ondelete="CASCADE", nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("post_type", sa.String(length=20), nullable=False, server_default="text"),
        sa.Column("image_url", sa.String(length=1024), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False, server_default="{}"),
        *_timestamps(),
    )
    op.create_index("ix_posts_chapter_id", "posts", ["chapter_id"])
    op.create_index("ix_posts_author_id", "posts", ["author_id"])
    op.create_index("ix_posts_created_at", "posts", ["created_at"])

    op.create_table(
        "post_likes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("post_id", sa.Uuid(), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        _user_fk("user_id", ondelete="CASCADE", nullable=False),
        *_timestamps(updated=False),
        sa.UniqueConstraint("post_id", "user_id", name="uq_post_likes_post_user"),
    )
    op.create_index("ix_post_likes_post_id", "post_likes", ["post_id"])

    op.create_table(
        "post_comments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("post_id", sa.Uuid(), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        _user_fk("author_id", ondelete="CASCADE", nullable=False),
        sa.Column(
            "parent_comment_id",
            sa.Uuid(),
            sa.ForeignKey("post_comments.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_post_comments_post_id", "post_comments", ["post_id"])
    op.create_index("ix_post_comments_parent_comment_id", "post_comments", ["parent_comment_id"])

    op.create_table(
        "comment_likes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("comment_id", sa.Uuid(), sa.ForeignKey("post_comments.id", ondelete="CASCADE"), nullable=False),
        _user_fk("user_id", ondelete="CASCADE", nullable=False),
        *_timestamps(updated=False),
        sa.UniqueConstraint("comment_id", "user_id", name="uq_comment_likes_comment_user"),
    )
    op.create_index("ix_comment_likes_comment_id", "comment_likes", ["comment_id"])


def downgrade() -> None:
    for table in (
        "comment_likes",
        "post_comments",
        "post_likes",
        "posts",
        "recruits",
        "vendor_contacts",
        "event_rsvps",
        "events",
        "tasks",
        "invitation_usage",
        "invitations",
        "chapter_branding",
        "chapter_memberships",
        "chapters",
        "developer_access",
        "users",
    ):
        op.drop_table(table)
