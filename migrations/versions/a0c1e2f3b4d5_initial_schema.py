"""initial schema

Revision ID: a0c1e2f3b4d5
Revises:
Create Date: 2026-10-19 09:12:40.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = 'a0c1e2f3b4d5'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=False), nullable=False)


def upgrade() -> None:
    """Upgrade schema."""
    bind = op.get_bind()
    insp = inspect(bind)
    existing_tables = set(insp.get_table_names())

    if "subscription_plans" not in existing_tables:
        op.create_table(
            "subscription_plans",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("name", sa.String(length=128), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("price", sa.Integer(), nullable=False),
            sa.Column("interval", sa.String(length=8), nullable=False),
            sa.Column("features", sa.JSON(), nullable=False),
            sa.Column("max_clients", sa.Integer(), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("stripe_price_id", sa.String(length=128), nullable=True),
            _created_at(),
        )
        op.create_index("idx_subscription_plans_active_price", "subscription_plans", ["is_active", "price"])

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("username", sa.String(length=64), nullable=False, unique=True),
            sa.Column("email", sa.String(length=320), nullable=False, unique=True),
            sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
            sa.Column("password_hash", sa.String(length=255), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("therapist_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column(
                "subscription_plan_id",
                sa.Integer(),
                sa.ForeignKey("subscription_plans.id", ondelete="SET NULL"),
                nullable=True,
            ),
            sa.Column("subscription_status", sa.String(length=16), nullable=True),
            sa.Column("subscription_end_date", sa.Date(), nullable=True),
            _created_at(),
        )

    if "roles" not in existing_tables:
        op.create_table(
            "roles",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("key", sa.String(length=64), nullable=False, unique=True),
            sa.Column("name", sa.String(length=128), nullable=False),
            _created_at(),
        )

    if "permissions" not in existing_tables:
        op.create_table(
            "permissions",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("key", sa.String(length=128), nullable=False, unique=True),
            sa.Column("name", sa.String(length=128), nullable=False),
            _created_at(),
        )

    if "user_roles" not in existing_tables:
        op.create_table(
            "user_roles",
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        )

    if "role_permissions" not in existing_tables:
        op.create_table(
            "role_permissions",
            sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
            sa.Column(
                "permission_id",
                sa.Integer(),
                sa.ForeignKey("permissions.id", ondelete="CASCADE"),
                primary_key=True,
            ),
        )

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            _created_at(),
            sa.Column("request_id", sa.String(length=64), nullable=True),
            sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("actor_user_email", sa.String(length=320), nullable=True),
            sa.Column("action", sa.String(length=128), nullable=False),
            sa.Column("entity_type", sa.String(length=128), nullable=True),
            sa.Column("entity_id", sa.String(length=128), nullable=True),
            sa.Column("reason", sa.String(length=512), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.Column("client_ip", sa.String(length=64), nullable=True),
        )

    if "journal_entries" not in existing_tables:
        op.create_table(
            "journal_entries",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("title", sa.Text(), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("mood", sa.Integer(), nullable=True),
            sa.Column("ai_suggested_tags", sa.JSON(), nullable=True),
            sa.Column("initial_ai_tags", sa.JSON(), nullable=True),
            sa.Column("user_selected_tags", sa.JSON(), nullable=True),
            sa.Column("ai_analysis", sa.Text(), nullable=True),
            sa.Column("emotions", sa.JSON(), nullable=True),
            sa.Column("topics", sa.JSON(), nullable=True),
            sa.Column("sentiment_positive", sa.Float(), nullable=True),
            sa.Column("sentiment_negative", sa.Float(), nullable=True),
            sa.Column("sentiment_neutral", sa.Float(), nullable=True),
            sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.false()),
            _created_at(),
            sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False),
        )
        op.create_index("idx_journal_entries_user_created", "journal_entries", ["user_id", "created_at"])

    if "journal_comments" not in existing_tables:
        op.create_table(
            "journal_comments",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column(
                "journal_entry_id",
                sa.Integer(),
                sa.ForeignKey("journal_entries.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("therapist_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("comment", sa.Text(), nullable=False),
            _created_at(),
            sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False),
        )

    if "goals" not in existing_tables:
        op.create_table(
            "goals",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("specific", sa.Text(), nullable=False),
            sa.Column("measurable", sa.Text(), nullable=False),
            sa.Column("achievable", sa.Text(), nullable=False),
            sa.Column("relevant", sa.Text(), nullable=False),
            sa.Column("timebound", sa.Text(), nullable=False),
            sa.Column("deadline", sa.Date(), nullable=True),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
            sa.Column("therapist_comments", sa.Text(), nullable=True),
            _created_at(),
            sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False),
        )
        op.create_index("idx_goals_user_created", "goals", ["user_id", "created_at"])

    if "goal_milestones" not in existing_tables:
        op.create_table(
            "goal_milestones",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("goal_id", sa.Integer(), sa.ForeignKey("goals.id", ondelete="CASCADE"), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("due_date", sa.Date(), nullable=True),
            sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
            _created_at(),
        )
        op.create_index("ix_goal_milestones_goal_id", "goal_milestones", ["goal_id"])

    for table in ("protective_factors", "coping_strategies"):
        if table not in existing_tables:
            op.create_table(
                table,
                sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
                sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
                sa.Column("name", sa.String(length=255), nullable=False),
                sa.Column("description", sa.Text(), nullable=True),
                sa.Column("is_global", sa.Boolean(), nullable=False, server_default=sa.false()),
                _created_at(),
            )
            op.create_index(f"ix_{table}_user_id", table, ["user_id"])

    if "resources" not in existing_tables:
        op.create_table(
            "resources",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=False, server_default=""),
            sa.Column("content", sa.Text(), nullable=False, server_default=""),
            sa.Column("category", sa.String(length=64), nullable=False),
            sa.Column("tags", sa.JSON(), nullable=False),
            sa.Column("type", sa.String(length=16), nullable=False, server_default="article"),
            sa.Column("storage_key", sa.Text(), nullable=True),
            sa.Column("original_filename", sa.Text(), nullable=True),
            sa.Column("content_type", sa.String(length=128), nullable=True),
            sa.Column("sha256", sa.String(length=64), nullable=True),
            sa.Column("size_bytes", sa.Integer(), nullable=True),
            sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column(
                "parent_resource_id",
                sa.Integer(),
                sa.ForeignKey("resources.id", ondelete="SET NULL"),
                nullable=True,
            ),
            sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.true()),
            _created_at(),
            sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False),
        )
        op.create_index("idx_resources_category", "resources", ["category"])
        op.create_index("idx_resources_published", "resources", ["is_published"])

    if "resource_assignments" not in existing_tables:
        op.create_table(
            "resource_assignments",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("resource_id", sa.Integer(), sa.ForeignKey("resources.id", ondelete="CASCADE"), nullable=False),
            sa.Column("assigned_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("assigned_to", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("is_priority", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="assigned"),
            sa.Column("assigned_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("completed_at", sa.DateTime(timezone=False), nullable=True),
        )
        op.create_index("idx_resource_assignments_assigned_to", "resource_assignments", ["assigned_to"])
        op.create_index("idx_resource_assignments_assigned_by", "resource_assignments", ["assigned_by"])


def downgrade() -> None:
    """Downgrade schema."""
    for table in (
        "resource_assignments",
        "resources",
        "coping_strategies",
        "protective_factors",
        "goal_milestones",
        "goals",
        "journal_comments",
        "journal_entries",
        "audit_events",
        "role_permissions",
        "user_roles",
        "permissions",
        "roles",
        "users",
        "subscription_plans",
    ):
        op.drop_table(table)
