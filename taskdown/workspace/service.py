from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskdown.audit import SYSTEM_ACTOR_ID, SYSTEM_ACTOR_NAME, write_activity
from taskdown.config import settings
from taskdown.errors import StorageError
from taskdown.logging import get_logger, log_extra
from taskdown.models import User, WorkspaceConfigRow, utcnow
from taskdown.schemas import (
  WorkspaceConfigOut,
  WorkspaceConfigUpdateIn,
  WorkspaceFeatures,
  WorkspaceInfoOut,
  WorkspaceLimits,
  WorkspaceOwnerOut,
  WorkspacePermissionsOut,
)

logger = get_logger(__name__)

CONFIG_ROW_ID = 1
DEFAULT_WORKSPACE_NAME = "Taskdown Workspace"
DEFAULT_TIMEZONE = "UTC"
DEFAULT_DATE_FORMAT = "YYYY-MM-DD"
DEFAULT_FEATURES: dict[str, bool] = {"realtime": False, "analytics": True, "webhooks": False, "custom_fields": False}
DEFAULT_LIMITS: dict[str, int] = {"max_tasks": 10000, "max_users": 100, "api_rate_limit": 1000}
WORKSPACE_ID = "default"
BASE_CAPABILITIES = ("tasks", "checklists", "dependencies", "bulk", "export:markdown")

# wire name -> stored JSON key
_FEATURE_KEYS = {"realtime": "realtime", "analytics": "analytics", "webhooks": "webhooks", "customFields": "custom_fields"}
_LIMIT_KEYS = {"maxTasks": "max_tasks", "maxUsers": "max_users", "apiRateLimit": "api_rate_limit"}


def _default_row() -> WorkspaceConfigRow:
  return WorkspaceConfigRow(
    id=CONFIG_ROW_ID,
    workspace_name=DEFAULT_WORKSPACE_NAME,
    timezone=DEFAULT_TIMEZONE,
    date_format=DEFAULT_DATE_FORMAT,
    features=dict(DEFAULT_FEATURES),
    limits=dict(DEFAULT_LIMITS),
    updated_at=utcnow(),
  )


def config_out(row: WorkspaceConfigRow) -> WorkspaceConfigOut:
  features = {**DEFAULT_FEATURES, **(row.features or {})}
  limits = {**DEFAULT_LIMITS, **(row.limits or {})}
  return WorkspaceConfigOut(
    workspaceName=row.workspace_name,
    timezone=row.timezone,
    dateFormat=row.date_format,
    features=WorkspaceFeatures(**{wire: bool(features[key]) for wire, key in _FEATURE_KEYS.items()}),
    limits=WorkspaceLimits(**{wire: int(limits[key]) for wire, key in _LIMIT_KEYS.items()}),
    updatedAt=row.updated_at,
  )


async def _load_row(db: AsyncSession) -> WorkspaceConfigRow | None:
  res = await db.execute(select(WorkspaceConfigRow).where(WorkspaceConfigRow.id == CONFIG_ROW_ID))
  return res.scalar_one_or_none()


async def ensure_config_row(db: AsyncSession) -> WorkspaceConfigRow:
  """Return the singleton row, inserting the defaults on first access."""
  try:
    row = await _load_row(db)
    if row is not None:
      return row
    db.add(_default_row())
    try:
      await db.commit()
    except IntegrityError:
      # Another request created it first.
      await db.rollback()
    row = await _load_row(db)
  except SQLAlchemyError as exc:
    await db.rollback()
    logger.error("workspace config read failed", extra=log_extra(operation="config.get", error=str(exc)))
    raise StorageError("Failed to load workspace config", operation="config.get") from exc
  if row is None:
    raise StorageError("Workspace config row is missing", operation="config.get")
  return row


async def get_config(db: AsyncSession) -> WorkspaceConfigOut:
  return config_out(await ensure_config_row(db))


def _merge(current: dict[str, Any] | None, defaults: dict[str, Any], patch: dict[str, Any], keys: dict[str, str]) -> dict[str, Any]:
  out = {**defaults, **(current or {})}
  for wire, value in patch.items():
    if value is not None:
      out[keys[wire]] = value
  return out


async def update_config(db: AsyncSession, payload: WorkspaceConfigUpdateIn) -> WorkspaceConfigOut:
  row = await ensure_config_row(db)
  fields_set = payload.model_fields_set
  changed: list[str] = []
  if "workspaceName" in fields_set and payload.workspaceName is not None:
    row.workspace_name = payload.workspaceName
    changed.append("workspaceName")
  if "timezone" in fields_set and payload.timezone is not None:
    row.timezone = payload.timezone
    changed.append("timezone")
  if "dateFormat" in fields_set and payload.dateFormat is not None:
    row.date_format = payload.dateFormat
    changed.append("dateFormat")
  if payload.features is not None:
    # Reassign so the JSON column is flagged dirty.
    row.features = _merge(row.features, DEFAULT_FEATURES, payload.features.model_dump(exclude_unset=True), _FEATURE_KEYS)
    changed.append("features")
  if payload.limits is not None:
    row.limits = _merge(row.limits, DEFAULT_LIMITS, payload.limits.model_dump(exclude_unset=True), _LIMIT_KEYS)
    changed.append("limits")
  row.updated_at = utcnow()

  try:
    await write_activity(
      db,
      action="config.updated",
      target_type="WorkspaceConfig",
      target_id=str(CONFIG_ROW_ID),
      target_name=row.workspace_name,
      details={"changed": changed},
    )
    await db.commit()
  except SQLAlchemyError as exc:
    await db.rollback()
    logger.error("workspace config update failed", extra=log_extra(operation="config.update", error=str(exc)))
    raise StorageError("Failed to update workspace config", operation="config.update") from exc
  return config_out(row)


def capabilities(cfg: WorkspaceConfigOut) -> list[str]:
  caps = list(BASE_CAPABILITIES)
  if cfg.features.analytics:
    caps.append("analytics")
  if cfg.features.realtime:
    caps.append("realtime")
  if cfg.features.webhooks:
    caps.append("webhooks")
  if cfg.features.customFields:
    caps.append("custom_fields")
  return caps


async def workspace_info(db: AsyncSession) -> WorkspaceInfoOut:
  cfg = await get_config(db)
  try:
    res = await db.execute(
      select(User).where(User.role == "admin", User.is_active.is_(True)).order_by(User.username.asc()).limit(1)
    )
    admin = res.scalar_one_or_none()
  except SQLAlchemyError as exc:
    logger.error("workspace owner lookup failed", extra=log_extra(operation="workspace.info", error=str(exc)))
    raise StorageError("Failed to load workspace info", operation="workspace.info") from exc

  if admin is not None:
    owner = WorkspaceOwnerOut(id=admin.id, username=admin.username, displayName=admin.display_name)
  else:
    owner = WorkspaceOwnerOut(id=SYSTEM_ACTOR_ID, username=SYSTEM_ACTOR_ID, displayName=SYSTEM_ACTOR_NAME)
  # No authentication yet: every caller acts with full rights.
  permissions = WorkspacePermissionsOut(canManageUsers=True, canModifySettings=True, canViewAnalytics=cfg.features.analytics)
  return WorkspaceInfoOut(
    id=WORKSPACE_ID,
    name=cfg.workspaceName,
    description=None,
    serverVersion=settings.app_version,
    capabilities=capabilities(cfg),
    lastUpdated=cfg.updatedAt or utcnow(),
    owner=owner,
    permissions=permissions,
  )
