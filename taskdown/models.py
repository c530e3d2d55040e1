from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

CHECKLIST_ACCEPTANCE = "acceptance_criteria"
CHECKLIST_TECHNICAL = "technical_tasks"


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


def new_id() -> str:
  return str(uuid.uuid4())


class UTCDateTime(TypeDecorator):
  """Timezone-aware timestamp that also reads back aware from SQLite."""

  impl = DateTime(timezone=True)
  cache_ok = True

  def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
    if value is None:
      return None
    if value.tzinfo is None:
      return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

  def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
    if value is None:
      return None
    if value.tzinfo is None:
      return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
  pass


class Task(Base):
  __tablename__ = "tasks"
  __table_args__ = (
    Index("idx_tasks_status", "status"),
    Index("idx_tasks_epic", "epic"),
    Index("idx_tasks_sprint", "sprint"),
    Index("idx_tasks_assignee", "assignee"),
  )

  id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
  title: Mapped[str] = mapped_column(String, nullable=False)
  task_type: Mapped[str] = mapped_column(String, nullable=False)
  priority: Mapped[str] = mapped_column(String, nullable=False)
  status: Mapped[str] = mapped_column(String, nullable=False)
  story_points: Mapped[int | None] = mapped_column(Integer, nullable=True)
  sprint: Mapped[str | None] = mapped_column(String, nullable=True)
  epic: Mapped[str | None] = mapped_column(String, nullable=True)
  description: Mapped[str] = mapped_column(Text, nullable=False, default="")
  assignee: Mapped[str | None] = mapped_column(String, nullable=True)
  is_favorite: Mapped[bool | None] = mapped_column(Boolean, nullable=True, default=False)
  thumbnail: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)


class ChecklistItem(Base):
  __tablename__ = "checklist_items"
  __table_args__ = (
    CheckConstraint(f"item_type IN ('{CHECKLIST_ACCEPTANCE}', '{CHECKLIST_TECHNICAL}')", name="ck_checklist_items_item_type"),
    Index("idx_checklist_items_task_id", "task_id"),
  )

  # Item ids are client-chosen and only unique within their task.
  task_id: Mapped[str] = mapped_column(String, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True)
  id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
  item_type: Mapped[str] = mapped_column(String, nullable=False)
  text: Mapped[str] = mapped_column(Text, nullable=False)
  completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class TaskDependency(Base):
  __tablename__ = "task_dependencies"
  __table_args__ = (UniqueConstraint("task_id", "depends_on_task_id", name="ux_task_dependencies_task_depends_on"),)

  id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
  task_id: Mapped[str] = mapped_column(String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
  depends_on_task_id: Mapped[str] = mapped_column(String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)


class TaskBlock(Base):
  __tablename__ = "task_blocks"
  __table_args__ = (UniqueConstraint("task_id", "blocks_task_id", name="ux_task_blocks_task_blocks"),)

  id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
  task_id: Mapped[str] = mapped_column(String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
  blocks_task_id: Mapped[str] = mapped_column(String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)


class User(Base):
  __tablename__ = "users"

  id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
  username: Mapped[str] = mapped_column(String, nullable=False, unique=True)
  display_name: Mapped[str] = mapped_column(String, nullable=False)
  email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
  role: Mapped[str] = mapped_column(String, nullable=False, default="user")
  avatar: Mapped[str | None] = mapped_column(String, nullable=True)
  is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
  last_seen: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
  password_hash: Mapped[str] = mapped_column(String, nullable=False)


class Activity(Base):
  __tablename__ = "activities"
  __table_args__ = (
    Index("idx_activities_user_id", "user_id"),
    Index("idx_activities_target_id", "target_id"),
  )

  id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
  user_id: Mapped[str] = mapped_column(String, nullable=False)
  user_name: Mapped[str] = mapped_column(String, nullable=False)
  action: Mapped[str] = mapped_column(String, nullable=False)
  target_type: Mapped[str] = mapped_column(String, nullable=False)
  target_id: Mapped[str] = mapped_column(String, nullable=False)
  target_name: Mapped[str] = mapped_column(String, nullable=False)
  details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
  timestamp: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)


class WorkspaceConfigRow(Base):
  __tablename__ = "workspace_config"
  __table_args__ = (CheckConstraint("id = 1", name="ck_workspace_config_singleton"),)

  id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
  workspace_name: Mapped[str] = mapped_column(String, nullable=False)
  timezone: Mapped[str] = mapped_column(String, nullable=False)
  date_format: Mapped[str] = mapped_column(String, nullable=False)
  features: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
  limits: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
  updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False)
