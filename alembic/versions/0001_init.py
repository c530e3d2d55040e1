"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  op.create_table(
    "tasks",
    sa.Column("id", sa.String(), primary_key=True),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("task_type", sa.String(), nullable=False),
    sa.Column("priority", sa.String(), nullable=False),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("story_points", sa.Integer(), nullable=True),
    sa.Column("sprint", sa.String(), nullable=True),
    sa.Column("epic", sa.String(), nullable=True),
    sa.Column("description", sa.Text(), nullable=False),
    sa.Column("assignee", sa.String(), nullable=True),
    sa.Column("is_favorite", sa.Boolean(), nullable=True),
    sa.Column("thumbnail", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("idx_tasks_status", "tasks", ["status"], unique=False)
  op.create_index("idx_tasks_epic", "tasks", ["epic"], unique=False)
  op.create_index("idx_tasks_sprint", "tasks", ["sprint"], unique=False)
  op.create_index("idx_tasks_assignee", "tasks", ["assignee"], unique=False)

  op.create_table(
    "checklist_items",
    sa.Column("task_id", sa.String(), sa.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False),
    sa.Column("id", sa.String(), nullable=False),
    sa.Column("item_type", sa.String(), nullable=False),
    sa.Column("text", sa.Text(), nullable=False),
    sa.Column("completed", sa.Boolean(), nullable=False),
    sa.Column("sort_order", sa.Integer(), nullable=False),
    sa.CheckConstraint("item_type IN ('acceptance_criteria', 'technical_tasks')", name="ck_checklist_items_item_type"),
    sa.PrimaryKeyConstraint("task_id", "id", name="pk_checklist_items"),
  )
  op.create_index("idx_checklist_items_task_id", "checklist_items", ["task_id"], unique=False)

  op.create_table(
    "task_dependencies",
    sa.Column("id", sa.String(), primary_key=True),
    sa.Column("task_id", sa.String(), sa.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False),
    sa.Column("depends_on_task_id", sa.String(), sa.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False),
    sa.UniqueConstraint("task_id", "depends_on_task_id", name="ux_task_dependencies_task_depends_on"),
  )
  op.create_index("ix_task_dependencies_task_id", "task_dependencies", ["task_id"], unique=False)
  op.create_index("ix_task_dependencies_depends_on_task_id", "task_dependencies", ["depends_on_task_id"], unique=False)

  op.create_table(
    "task_blocks",
    sa.Column("id", sa.String(), primary_key=True),
    sa.Column("task_id", sa.String(), sa.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False),
    sa.Column("blocks_task_id", sa.String(), sa.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False),
    sa.UniqueConstraint("task_id", "blocks_task_id", name="ux_task_blocks_task_blocks"),
  )
  op.create_index("ix_task_blocks_task_id", "task_blocks", ["task_id"], unique=False)
  op.create_index("ix_task_blocks_blocks_task_id", "task_blocks", ["blocks_task_id"], unique=False)

  op.create_table(
    "users",
    sa.Column("id", sa.String(), primary_key=True),
    sa.Column("username", sa.String(), nullable=False, unique=True),
    sa.Column("display_name", sa.String(), nullable=False),
    sa.Column("email", sa.String(), nullable=False, unique=True),
    sa.Column("role", sa.String(), nullable=False),
    sa.Column("avatar", sa.String(), nullable=True),
    sa.Column("is_active", sa.Boolean(), nullable=False),
    sa.Column("last_seen", sa.DateTime(timezone=True), nullable=False),
    sa.Column("password_hash", sa.String(), nullable=False),
  )

  op.create_table(
    "activities",
    sa.Column("id", sa.String(), primary_key=True),
    sa.Column("user_id", sa.String(), nullable=False),
    sa.Column("user_name", sa.String(), nullable=False),
    sa.Column("action", sa.String(), nullable=False),
    sa.Column("target_type", sa.String(), nullable=False),
    sa.Column("target_id", sa.String(), nullable=False),
    sa.Column("target_name", sa.String(), nullable=False),
    sa.Column("details", sa.JSON(), nullable=True),
    sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("idx_activities_user_id", "activities", ["user_id"], unique=False)
  op.create_index("idx_activities_target_id", "activities", ["target_id"], unique=False)

  op.create_table(
    "workspace_config",
    sa.Column("id", sa.Integer(), primary_key=True),
    sa.Column("workspace_name", sa.String(), nullable=False),
    sa.Column("timezone", sa.String(), nullable=False),
    sa.Column("date_format", sa.String(), nullable=False),
    sa.Column("features", sa.JSON(), nullable=False),
    sa.Column("limits", sa.JSON(), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    sa.CheckConstraint("id = 1", name="ck_workspace_config_singleton"),
  )


def downgrade() -> None:
  op.drop_table("workspace_config")
  op.drop_table("activities")
  op.drop_table("users")
  op.drop_table("task_blocks")
  op.drop_table("task_dependencies")
  op.drop_table("checklist_items")
  op.drop_table("tasks")
