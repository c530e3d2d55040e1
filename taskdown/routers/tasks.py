from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from taskdown.deps import enforce_rate_limit, get_db
from taskdown.errors import InvalidQueryError, NotFoundError, TaskdownError
from taskdown.logging import get_logger, log_extra
from taskdown.models import utcnow
from taskdown.schemas import (
  ApiResponse,
  BulkOperationIn,
  BulkOperationResultOut,
  BulkOperationsIn,
  BulkOperationsOut,
  TaskCreateIn,
  TaskCreatedOut,
  TaskDeletedOut,
  TaskFilters,
  TaskListOut,
  TaskOut,
  TaskUpdateIn,
  TaskUpdatedOut,
  ok,
)
from taskdown.tasks.repository import count_tasks, create_task, delete_task, get_task, list_tasks, update_task

logger = get_logger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["tasks"], dependencies=[Depends(enforce_rate_limit)])

BULK_OPERATIONS = ("create", "update", "delete")


def _page_value(name: str, raw: str | None) -> int | None:
  if raw is None or raw.strip() == "":
    return None
  try:
    value = int(raw.strip())
  except ValueError:
    raise InvalidQueryError(f"{name} must be a non-negative integer", metadata={name: raw}) from None
  if value < 0:
    raise InvalidQueryError(f"{name} must be a non-negative integer", metadata={name: raw})
  return value


@router.get("", response_model=ApiResponse[TaskListOut])
async def list_tasks_route(
  epic: str | None = None,
  status: str | None = None,
  assignee: str | None = None,
  search: str | None = None,
  sort: str | None = None,
  limit: str | None = None,
  offset: str | None = None,
  db: AsyncSession = Depends(get_db),
) -> ApiResponse[TaskListOut]:
  filters = TaskFilters(
    epic=epic or None,
    status=status or None,
    assignee=assignee or None,
    search=search or None,
    sort=sort or None,
    limit=_page_value("limit", limit),
    offset=_page_value("offset", offset),
  )
  tasks = await list_tasks(db, filters)
  total = await count_tasks(db, filters)
  start = (filters.offset or 0) if filters.limit is not None else 0
  return ok(
    TaskListOut(
      tasks=tasks,
      lastSync=utcnow(),
      totalCount=total,
      hasMore=start + len(tasks) < total,
    )
  )


@router.post("", response_model=ApiResponse[TaskCreatedOut])
async def create_task_route(payload: TaskCreateIn, db: AsyncSession = Depends(get_db)) -> ApiResponse[TaskCreatedOut]:
  t = await create_task(db, payload)
  return ok(TaskCreatedOut(id=t.id, createdAt=t.createdAt, updatedAt=t.updatedAt))


async def _run_bulk_operation(db: AsyncSession, op: BulkOperationIn) -> BulkOperationResultOut:
  kind = op.type.strip().lower()
  if kind not in BULK_OPERATIONS:
    return BulkOperationResultOut(
      operation=op.type, taskId=op.taskId, success=False, errorCode="VALIDATION_ERROR", error=f"Unsupported operation: {op.type}"
    )
  if kind != "create" and not op.taskId:
    return BulkOperationResultOut(
      operation=kind, taskId=None, success=False, errorCode="VALIDATION_ERROR", error="taskId is required"
    )

  try:
    if kind == "create":
      created = await create_task(db, TaskCreateIn.model_validate(op.data or {}))
      return BulkOperationResultOut(operation=kind, taskId=created.id, success=True)
    if kind == "update":
      await update_task(db, op.taskId, TaskUpdateIn.model_validate(op.data or {}))
      return BulkOperationResultOut(operation=kind, taskId=op.taskId, success=True)
    await delete_task(db, op.taskId)
    return BulkOperationResultOut(operation=kind, taskId=op.taskId, success=True)
  except PydanticValidationError as exc:
    await db.rollback()
    return BulkOperationResultOut(
      operation=kind, taskId=op.taskId, success=False, errorCode="VALIDATION_ERROR", error=str(exc.errors()[0].get("msg", "Invalid data"))
    )
  except TaskdownError as exc:
    await db.rollback()
    logger.info(
      "bulk operation rejected",
      extra=log_extra(task_id=op.taskId, operation=f"bulk.{kind}", error=exc.message, error_code=exc.code),
    )
    return BulkOperationResultOut(operation=kind, taskId=op.taskId, success=False, errorCode=exc.code, error=exc.message)


@router.post("/bulk", response_model=ApiResponse[BulkOperationsOut])
async def bulk_tasks_route(payload: BulkOperationsIn, db: AsyncSession = Depends(get_db)) -> ApiResponse[BulkOperationsOut]:
  # Each operation commits on its own; a failure does not undo earlier ones.
  results = [await _run_bulk_operation(db, op) for op in payload.operations]
  return ok(BulkOperationsOut(results=results))


@router.get("/{task_id}", response_model=ApiResponse[TaskOut])
async def get_task_route(task_id: str, db: AsyncSession = Depends(get_db)) -> ApiResponse[TaskOut]:
  t = await get_task(db, task_id)
  if t is None:
    raise NotFoundError("Task not found", metadata={"taskId": task_id})
  return ok(t)


@router.put("/{task_id}", response_model=ApiResponse[TaskUpdatedOut])
@router.patch("/{task_id}", response_model=ApiResponse[TaskUpdatedOut])
async def update_task_route(task_id: str, payload: TaskUpdateIn, db: AsyncSession = Depends(get_db)) -> ApiResponse[TaskUpdatedOut]:
  t = await update_task(db, task_id, payload)
  return ok(TaskUpdatedOut(updatedAt=t.updatedAt))


@router.delete("/{task_id}", response_model=ApiResponse[TaskDeletedOut])
async def delete_task_route(task_id: str, db: AsyncSession = Depends(get_db)) -> ApiResponse[TaskDeletedOut]:
  await delete_task(db, task_id)
  return ok(TaskDeletedOut())
