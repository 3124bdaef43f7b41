"""Brand Hub schema: brands, membership, conversations, sharing, guidelines, quotas, notifications.

Revision ID: 0001_brand_hub_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_brand_hub_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

UUID = postgresql.UUID(as_uuid=True)
JSONB = postgresql.JSONB()


def _ts(name: str, nullable: bool = True, default: bool = False) -> sa.Column:
    if default:
        return sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()"))
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _timestamps() -> list[sa.Column]:
    return [_ts("created_at", default=True), _ts("updated_at", default=True)]


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # -----------------------------------------------------------------------
    # 1. Tenants & identity
    # -----------------------------------------------------------------------

    op.create_table(
        "brands",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_brands_slug", "brands", ["slug"], unique=True)
    op.create_index("idx_brands_name", "brands", ["name"])

    op.create_table(
        "users",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("password_hash", sa.Text(), nullable=True),
        _ts("created_at", default=True),
    )
    op.create_index("idx_users_email", "users", ["email"], unique=True)

    op.create_table(
        "brand_users",
        sa.Column("user_id", UUID, sa.ForeignKey("users.id"), primary_key=True),
        sa.Column("brand_id", UUID, sa.ForeignKey("brands.id"), primary_key=True),
        sa.Column("role", sa.Text(), nullable=False, server_default="user"),
        _ts("created_at", default=True),
        sa.CheckConstraint(
            "role IN ('owner', 'admin', 'editor', 'reviewer', 'user')",
            name="ck_brand_users_role",
        ),
    )
    op.create_index("idx_brand_users_brand", "brand_users", ["brand_id"])
    op.create_index("idx_brand_users_brand_role", "brand_users", ["brand_id", "role"])

    # -----------------------------------------------------------------------
    # 2. Projects & conversations
    # -----------------------------------------------------------------------

    op.create_table(
        "projects",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("brand_id", UUID, sa.ForeignKey("brands.id"), nullable=False),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_projects_brand", "projects", ["brand_id"])
    op.create_index("idx_projects_user", "projects", ["user_id"])

    op.create_table(
        "project_shares",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("project_id", UUID, sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("brand_id", UUID, sa.ForeignKey("brands.id"), nullable=False),
        sa.Column("shared_by", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("shared_with", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("message", sa.Text(), nullable=True),
        _ts("accepted_at"),
        _ts("declined_at"),
        _ts("created_at", default=True),
        sa.UniqueConstraint("project_id", "shared_with", name="uq_project_shares_recipient"),
    )
    op.create_index("idx_project_shares_project", "project_shares", ["project_id"])
    op.create_index("idx_project_shares_shared_with", "project_shares", ["shared_with"])

    op.create_table(
        "conversations",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("brand_id", UUID, sa.ForeignKey("brands.id"), nullable=False),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("project_id", UUID, sa.ForeignKey("projects.id"), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _ts("last_message_at"),
        *_timestamps(),
    )
    op.create_index("idx_conversations_brand", "conversations", ["brand_id"])
    op.create_index("idx_conversations_user", "conversations", ["user_id"])
    op.create_index("idx_conversations_project", "conversations", ["project_id"])
    op.create_index(
        "idx_conversations_last_message",
        "conversations",
        [sa.text("last_message_at DESC NULLS LAST")],
    )

    op.create_table(
        "conversation_shares",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("conversation_id", UUID, sa.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("brand_id", UUID, sa.ForeignKey("brands.id"), nullable=False),
        sa.Column("shared_by", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("shared_with", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("permission", sa.Text(), nullable=False, server_default="read"),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("message", sa.Text(), nullable=True),
        _ts("accepted_at"),
        _ts("declined_at"),
        _ts("created_at", default=True),
        sa.UniqueConstraint("conversation_id", "shared_with", name="uq_conversation_shares_recipient"),
        sa.CheckConstraint("permission IN ('read', 'write')", name="ck_conversation_shares_permission"),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'declined')", name="ck_conversation_shares_status"
        ),
    )
    op.create_index("idx_conversation_shares_conversation", "conversation_shares", ["conversation_id"])
    op.create_index(
        "idx_conversation_shares_recipient_status", "conversation_shares", ["shared_with", "status"]
    )
    op.create_index("idx_conversation_shares_shared_by", "conversation_shares", ["shared_by"])

    op.create_table(
        "conversation_invite_links",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("conversation_id", UUID, sa.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_by", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("token", sa.Text(), nullable=False),
        sa.Column("permission", sa.Text(), nullable=False, server_default="write"),
        sa.Column("max_uses", sa.Integer(), nullable=True),
        sa.Column("use_count", sa.Integer(), nullable=False, server_default="0"),
        _ts("expires_at"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _ts("created_at", default=True),
    )
    op.create_index("idx_invite_links_token", "conversation_invite_links", ["token"], unique=True)
    op.create_index("idx_invite_links_conversation", "conversation_invite_links", ["conversation_id"])

    op.create_table(
        "messages",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("conversation_id", UUID, sa.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("model", sa.Text(), nullable=True),
        sa.Column("tokens_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("metadata", JSONB, nullable=False, server_default="{}"),
        _ts("created_at", default=True),
        sa.CheckConstraint("role IN ('user', 'assistant', 'system')", name="ck_messages_role"),
    )
    op.create_index("idx_messages_conversation_created", "messages", ["conversation_id", "created_at"])
    op.create_index("idx_messages_user", "messages", ["user_id"])

    # -----------------------------------------------------------------------
    # 3. Guidelines & quotas
    # -----------------------------------------------------------------------

    op.create_table(
        "brand_guidelines",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("brand_id", UUID, sa.ForeignKey("brands.id"), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="draft"),
        sa.Column("source_document_path", sa.Text(), nullable=True),
        sa.Column("voice", JSONB, nullable=False, server_default="{}"),
        sa.Column("copy_guidelines", JSONB, nullable=False, server_default="{}"),
        sa.Column("visual_guidelines", JSONB, nullable=False, server_default="{}"),
        sa.Column("messaging", JSONB, nullable=False, server_default="{}"),
        sa.Column("raw_extraction", JSONB, nullable=True),
        sa.Column("extracted_by", UUID, sa.ForeignKey("users.id"), nullable=True),
        _ts("extracted_at"),
        sa.Column("approved_by", UUID, sa.ForeignKey("users.id"), nullable=True),
        _ts("approved_at"),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('draft', 'pending_review', 'approved', 'archived')",
            name="ck_brand_guidelines_status",
        ),
    )
    op.create_index("idx_brand_guidelines_brand", "brand_guidelines", ["brand_id"], unique=True)
    op.create_index("idx_brand_guidelines_status", "brand_guidelines", ["status"])

    op.create_table(
        "brand_quotas",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("brand_id", UUID, sa.ForeignKey("brands.id"), nullable=False),
        sa.Column("prompt_tokens_limit", sa.Integer(), nullable=False, server_default="100000"),
        sa.Column("prompt_tokens_used", sa.Integer(), nullable=False, server_default="0"),
        _ts("prompt_tokens_reset_at"),
        sa.Column("image_generation_limit", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("image_generation_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("workflow_executions_limit", sa.Integer(), nullable=False, server_default="1000"),
        sa.Column("workflow_executions_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("storage_limit_mb", sa.Integer(), nullable=False, server_default="1024"),
        _ts("last_topped_up_at"),
        sa.Column("last_topped_up_by", UUID, sa.ForeignKey("users.id"), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("prompt_tokens_used >= 0", name="ck_brand_quotas_prompt_used"),
        sa.CheckConstraint("image_generation_used >= 0", name="ck_brand_quotas_image_used"),
        sa.CheckConstraint("workflow_executions_used >= 0", name="ck_brand_quotas_workflow_used"),
    )
    op.create_index("idx_brand_quotas_brand", "brand_quotas", ["brand_id"], unique=True)

    op.create_table(
        "quota_transactions",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("brand_id", UUID, sa.ForeignKey("brands.id"), nullable=False),
        sa.Column("transaction_type", sa.Text(), nullable=False),
        sa.Column("quota_type", sa.Text(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("previous_value", sa.Integer(), nullable=False),
        sa.Column("new_value", sa.Integer(), nullable=False),
        sa.Column("performed_by", UUID, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("metadata", JSONB, nullable=False, server_default="{}"),
        _ts("created_at", default=True),
    )
    op.create_index(
        "idx_quota_transactions_brand_created", "quota_transactions", ["brand_id", "created_at"]
    )

    # -----------------------------------------------------------------------
    # 4. Notifications
    # -----------------------------------------------------------------------

    op.create_table(
        "notifications",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("brand_id", UUID, sa.ForeignKey("brands.id"), nullable=True),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("metadata", JSONB, nullable=False, server_default="{}"),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _ts("read_at"),
        sa.Column("conversation_id", UUID, nullable=True),
        sa.Column("project_id", UUID, nullable=True),
        sa.Column("share_id", UUID, nullable=True),
        sa.Column("actor_id", UUID, sa.ForeignKey("users.id"), nullable=True),
        _ts("created_at", default=True),
    )
    op.create_index("idx_notifications_user_created", "notifications", ["user_id", "created_at"])
    op.create_index(
        "idx_notifications_unread",
        "notifications",
        ["user_id"],
        postgresql_where=sa.text("read = false"),
    )


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    for table in (
        "notifications",
        "quota_transactions",
        "brand_quotas",
        "brand_guidelines",
        "messages",
        "conversation_invite_links",
        "conversation_shares",
        "conversations",
        "project_shares",
        "projects",
        "brand_users",
        "users",
        "brands",
    ):
        op.drop_table(table)
