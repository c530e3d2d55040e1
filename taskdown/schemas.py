from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, Field
from pydantic import field_validator, model_validator

TaskType = Literal["Epic", "Story", "Task", "Bug"]
Priority = Literal["Critical", "High", "Medium", "Low"]
TaskStatus = Literal["Todo", "InProgress", "InReview", "Done"]
UserRole = Literal["admin", "user", "viewer"]

TASK_TYPES: tuple[str, ...] = ("Epic", "Story", "Task", "Bug")
PRIORITIES: tuple[str, ...] = ("Critical", "High", "Medium", "Low")
STATUSES: tuple[str, ...] = ("Todo", "InProgress", "InReview", "Done")

# Display spellings used by the board UI and markdown exports.
STATUS_ALIASES = {"In Progress": "InProgress", "In Review": "InReview"}


def normalize_status(value: object) -> object:
  if isinstance(value, str):
    s = value.strip()
    return STATUS_ALIASES.get(s, s)
  return value


T = TypeVar("T")


class ErrorOut(BaseModel):
  code: str
  message: str


class ApiResponse(BaseModel, Generic[T]):
  success: bool = True
  data: T | None = None
  error: ErrorOut | None = None


def ok(data: T) -> ApiResponse[T]:
  return ApiResponse(success=True, data=data)


class ChecklistItemIn(BaseModel):
  id: str | None = Field(default=None, min_length=1, max_length=64)
  text: str = Field(min_length=1, max_length=2000)
  completed: bool = False


class ChecklistItemOut(BaseModel):
  id: str
  text: str
  completed: bool


class TaskCreateIn(BaseModel):
  title: str = Field(min_length=1, max_length=500)
  type: TaskType = "Task"
  priority: Priority = "Medium"
  status: TaskStatus = "Todo"
  storyPoints: int | None = Field(default=None, ge=0)
  sprint: str | None = Field(default=None, max_length=200)
  epic: str | None = Field(default=None, max_length=200)
  description: str = Field(default="", max_length=50000)
  acceptanceCriteria: list[ChecklistItemIn] = []
  technicalTasks: list[ChecklistItemIn] = []
  dependencies: list[str] = []
  blocks: list[str] = []
  assignee: str | None = None
  isFavorite: bool | None = None
  thumbnail: str | None = None

  @field_validator("status", mode="before")
  @classmethod
  def _status_alias(cls, v: object) -> object:
    return normalize_status(v)


class TaskUpdateIn(BaseModel):
  title: str | None = Field(default=None, min_length=1, max_length=500)
  type: TaskType | None = None
  priority: Priority | None = None
  status: TaskStatus | None = None
  storyPoints: int | None = Field(default=None, ge=0)
  sprint: str | None = Field(default=None, max_length=200)
  epic: str | None = Field(default=None, max_length=200)
  description: str | None = Field(default=None, max_length=50000)
  acceptanceCriteria: list[ChecklistItemIn] | None = None
  technicalTasks: list[ChecklistItemIn] | None = None
  dependencies: list[str] | None = None
  blocks: list[str] | None = None
  assignee: str | None = None
  isFavorite: bool | None = None
  thumbnail: str | None = None

  @field_validator("status", mode="before")
  @classmethod
  def _status_alias(cls, v: object) -> object:
    return normalize_status(v)

  @model_validator(mode="after")
  def _required_fields_not_null(self) -> "TaskUpdateIn":
    # These columns are NOT NULL; an explicit null cannot be applied.
    for name in ("title", "type", "priority", "status", "description", "acceptanceCriteria", "technicalTasks", "dependencies", "blocks"):
      if name in self.model_fields_set and getattr(self, name) is None:
        raise ValueError(f"{name} cannot be null")
    return self


class TaskOut(BaseModel):
  id: str
  title: str
  type: str
  priority: str
  status: str
  storyPoints: int | None = None
  sprint: str | None = None
  epic: str | None = None
  description: str
  acceptanceCriteria: list[ChecklistItemOut]
  technicalTasks: list[ChecklistItemOut]
  dependencies: list[str]
  blocks: list[str]
  assignee: str | None = None
  isFavorite: bool | None = None
  thumbnail: str | None = None
  createdAt: datetime
  updatedAt: datetime


class TaskFilters(BaseModel):
  epic: str | None = None
  status: str | None = None
  assignee: str | None = None
  search: str | None = None
  sort: str | None = None
  limit: int | None = None
  offset: int | None = None


class TaskListOut(BaseModel):
  tasks: list[TaskOut]
  lastSync: datetime
  totalCount: int
  hasMore: bool


class TaskCreatedOut(BaseModel):
  id: str
  createdAt: datetime
  updatedAt: datetime


class TaskUpdatedOut(BaseModel):
  updatedAt: datetime


class TaskDeletedOut(BaseModel):
  deleted: bool = True


class BulkOperationIn(BaseModel):
  type: str = Field(min_length=1, max_length=32)
  taskId: str | None = None
  data: dict[str, Any] | None = None


class BulkOperationsIn(BaseModel):
  operations: list[BulkOperationIn] = Field(min_length=1, max_length=500)


class BulkOperationResultOut(BaseModel):
  operation: str
  taskId: str | None = None
  success: bool
  errorCode: str | None = None
  error: str | None = None


class BulkOperationsOut(BaseModel):
  results: list[BulkOperationResultOut]


class AnalyticsSummaryOut(BaseModel):
  totalTasks: int
  tasksByStatus: dict[str, int]
  tasksByType: dict[str, int]
  tasksByPriority: dict[str, int]
  averageStoryPoints: float
  completionRate: float
  activeSprints: list[str]
  lastUpdated: datetime


class SprintProgressOut(BaseModel):
  sprint: str
  totalTasks: int
  completedTasks: int
  totalStoryPoints: int
  completedStoryPoints: int
  remainingStoryPoints: int


class WorkspaceFeatures(BaseModel):
  realtime: bool = False
  analytics: bool = True
  webhooks: bool = False
  customFields: bool = False


class WorkspaceLimits(BaseModel):
  maxTasks: int = Field(default=10000, ge=1)
  maxUsers: int = Field(default=100, ge=1)
  apiRateLimit: int = Field(default=1000, ge=1)


class WorkspaceConfigOut(BaseModel):
  workspaceName: str
  timezone: str
  dateFormat: str
  features: WorkspaceFeatures
  limits: WorkspaceLimits
  updatedAt: datetime | None = None


class WorkspaceFeaturesUpdateIn(BaseModel):
  realtime: bool | None = None
  analytics: bool | None = None
  webhooks: bool | None = None
  customFields: bool | None = None


class WorkspaceLimitsUpdateIn(BaseModel):
  maxTasks: int | None = Field(default=None, ge=1)
  maxUsers: int | None = Field(default=None, ge=1)
  apiRateLimit: int | None = Field(default=None, ge=1)


class WorkspaceConfigUpdateIn(BaseModel):
  workspaceName: str | None = Field(default=None, min_length=1, max_length=200)
  timezone: str | None = Field(default=None, min_length=1, max_length=64)
  dateFormat: str | None = Field(default=None, min_length=1, max_length=64)
  features: WorkspaceFeaturesUpdateIn | None = None
  limits: WorkspaceLimitsUpdateIn | None = None


class WorkspaceOwnerOut(BaseModel):
  id: str
  username: str
  displayName: str


class WorkspacePermissionsOut(BaseModel):
  canManageUsers: bool
  canModifySettings: bool
  canViewAnalytics: bool


class WorkspaceInfoOut(BaseModel):
  id: str
  name: str
  description: str | None = None
  serverVersion: str
  capabilities: list[str]
  lastUpdated: datetime
  owner: WorkspaceOwnerOut
  permissions: WorkspacePermissionsOut


class UserOut(BaseModel):
  id: str
  username: str
  displayName: str
  email: str
  role: str
  avatar: str | None = None
  isActive: bool
  lastSeen: datetime


class UserListOut(BaseModel):
  users: list[UserOut]


class ActivityOut(BaseModel):
  id: str
  userId: str
  userName: str
  action: str
  targetType: str
  targetId: str
  targetName: str
  details: dict[str, Any] | None = None
  timestamp: datetime


class ActivityListOut(BaseModel):
  activities: list[ActivityOut]
  totalCount: int
  hasMore: bool


class ExportOut(BaseModel):
  markdown: str
  filename: str
  exportedAt: datetime


class DatabaseStatusOut(BaseModel):
  status: Literal["connected", "unavailable"]
  responseTimeMs: float


class HealthOut(BaseModel):
  status: Literal["healthy", "degraded"]
  version: str
  buildSha: str
  uptime: int
  database: DatabaseStatusOut
  requests: dict[str, Any]
