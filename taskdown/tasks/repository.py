"""
Task aggregate storage.

A task is read and written as one unit: the `tasks` row plus its two checklists
and its two relationship lists. Child collections are replaced wholesale
(delete-all-then-reinsert) whenever they appear in a write, and every write
runs in a single transaction on the caller's session.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import timedelta

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskdown.audit import write_activity
from taskdown.errors import NotFoundError, StorageError, ValidationError
from taskdown.logging import get_logger, log_extra
from taskdown.models import CHECKLIST_ACCEPTANCE, CHECKLIST_TECHNICAL, ChecklistItem, Task, TaskBlock, TaskDependency, new_id, utcnow
from taskdown.schemas import ChecklistItemIn, ChecklistItemOut, TaskCreateIn, TaskFilters, TaskOut, TaskUpdateIn
from taskdown.tasks.query import build_task_count_query, build_task_query
from taskdown.workspace.service import get_config

logger = get_logger(__name__)

# Relationship kind -> (edge model, related-id column). Table names never come from input.
_RELATIONS = {
  "dependencies": (TaskDependency, TaskDependency.depends_on_task_id),
  "blocks": (TaskBlock, TaskBlock.blocks_task_id),
}
_CHECKLISTS = {
  "acceptanceCriteria": CHECKLIST_ACCEPTANCE,
  "technicalTasks": CHECKLIST_TECHNICAL,
}
# model attribute, request field
_SCALAR_FIELDS = [
  ("title", "title"),
  ("task_type", "type"),
  ("priority", "priority"),
  ("status", "status"),
  ("story_points", "storyPoints"),
  ("sprint", "sprint"),
  ("epic", "epic"),
  ("description", "description"),
  ("assignee", "assignee"),
  ("is_favorite", "isFavorite"),
  ("thumbnail", "thumbnail"),
]


@dataclass
class _Children:
  checklists: dict[str, dict[str, list[ChecklistItemOut]]] = field(default_factory=dict)
  relations: dict[str, dict[str, list[str]]] = field(default_factory=dict)


@asynccontextmanager
async def _storage_guard(db: AsyncSession, operation: str, task_id: str | None = None) -> AsyncIterator[None]:
  try:
    yield
  except SQLAlchemyError as exc:
    await db.rollback()
    logger.error(
      "task storage operation failed",
      extra=log_extra(task_id=task_id, operation=operation, error=str(exc), error_type=type(exc).__name__),
    )
    raise StorageError(f"Storage failure during {operation}", operation=operation, entity_id=task_id) from exc


async def _load_children(db: AsyncSession, task_ids: list[str]) -> _Children:
  children = _Children(
    checklists={tid: {CHECKLIST_ACCEPTANCE: [], CHECKLIST_TECHNICAL: []} for tid in task_ids},
    relations={tid: {kind: [] for kind in _RELATIONS} for tid in task_ids},
  )
  if not task_ids:
    return children

  # Column selects only: no child entities enter the identity map.
  cres = await db.execute(
    select(ChecklistItem.task_id, ChecklistItem.item_type, ChecklistItem.id, ChecklistItem.text, ChecklistItem.completed)
    .where(ChecklistItem.task_id.in_(task_ids))
    .order_by(ChecklistItem.sort_order.asc())
  )
  for row in cres.all():
    bucket = children.checklists[row.task_id].get(row.item_type)
    if bucket is not None:
      bucket.append(ChecklistItemOut(id=row.id, text=row.text, completed=bool(row.completed)))

  for kind, (model, related_col) in _RELATIONS.items():
    rres = await db.execute(select(model.task_id, related_col).where(model.task_id.in_(task_ids)))
    for task_id, related_id in rres.all():
      children.relations[task_id][kind].append(related_id)
  return children


def _task_out(t: Task, children: _Children) -> TaskOut:
  checklists = children.checklists.get(t.id, {})
  relations = children.relations.get(t.id, {})
  return TaskOut(
    id=t.id,
    title=t.title,
    type=t.task_type,
    priority=t.priority,
    status=t.status,
    storyPoints=t.story_points,
    sprint=t.sprint,
    epic=t.epic,
    description=t.description,
    acceptanceCriteria=list(checklists.get(CHECKLIST_ACCEPTANCE, [])),
    technicalTasks=list(checklists.get(CHECKLIST_TECHNICAL, [])),
    dependencies=list(relations.get("dependencies", [])),
    blocks=list(relations.get("blocks", [])),
    assignee=t.assignee,
    isFavorite=t.is_favorite,
    thumbnail=t.thumbnail,
    createdAt=t.created_at,
    updatedAt=t.updated_at,
  )


async def _aggregate(db: AsyncSession, tasks: list[Task]) -> list[TaskOut]:
  children = await _load_children(db, [t.id for t in tasks])
  return [_task_out(t, children) for t in tasks]


async def list_tasks(db: AsyncSession, filters: TaskFilters) -> list[TaskOut]:
  q = build_task_query(filters)
  async with _storage_guard(db, "task.list"):
    res = await db.execute(q)
    tasks = list(res.scalars().all())
    return await _aggregate(db, tasks)


async def count_tasks(db: AsyncSession, filters: TaskFilters) -> int:
  q = build_task_count_query(filters)
  async with _storage_guard(db, "task.count"):
    res = await db.execute(q)
    return int(res.scalar_one())


async def get_task(db: AsyncSession, task_id: str) -> TaskOut | None:
  async with _storage_guard(db, "task.get", task_id):
    res = await db.execute(select(Task).where(Task.id == task_id))
    t = res.scalar_one_or_none()
    if t is None:
      return None
    out = await _aggregate(db, [t])
    return out[0]


async def _validate_related_ids(db: AsyncSession, task_id: str, kind: str, ids: list[str]) -> list[str]:
  unique = list(dict.fromkeys(i.strip() for i in ids if i and i.strip()))
  if task_id in unique:
    raise ValidationError(f"A task cannot reference itself in {kind}", metadata={"taskId": task_id, "field": kind})
  if not unique:
    return unique
  res = await db.execute(select(Task.id).where(Task.id.in_(unique)))
  found = set(res.scalars().all())
  missing = [i for i in unique if i not in found]
  if missing:
    raise ValidationError(f"Unknown task ids in {kind}: {', '.join(missing)}", metadata={"field": kind, "missing": missing})
  return unique


async def _check_dependency_cycle(db: AsyncSession, task_id: str, depends_on: list[str]) -> None:
  """Reject `task_id -> depends_on` edges that would close a cycle."""
  if not depends_on:
    return
  res = await db.execute(
    select(TaskDependency.task_id, TaskDependency.depends_on_task_id).where(TaskDependency.task_id != task_id)
  )
  graph: dict[str, list[str]] = {}
  for src, dst in res.all():
    graph.setdefault(src, []).append(dst)

  stack = list(depends_on)
  seen: set[str] = set()
  while stack:
    node = stack.pop()
    if node == task_id:
      raise ValidationError("Dependency cycle detected", metadata={"taskId": task_id, "dependencies": depends_on})
    if node in seen:
      continue
    seen.add(node)
    stack.extend(graph.get(node, ()))


def _validate_checklist_ids(task_id: str, lists: dict[str, list[ChecklistItemIn]]) -> list[str]:
  ids = [item.id for items in lists.values() for item in items if item.id]
  counts = Counter(ids)
  duplicates = sorted(i for i, n in counts.items() if n > 1)
  if duplicates:
    raise ValidationError(
      f"Duplicate checklist item ids: {', '.join(duplicates)}",
      metadata={"taskId": task_id, "duplicates": duplicates},
    )
  return ids


async def _check_untouched_checklist_ids(db: AsyncSession, task_id: str, lists: dict[str, list[ChecklistItemIn]]) -> None:
  """An item id may not be reused while the checklist holding it is left as is."""
  ids = _validate_checklist_ids(task_id, lists)
  untouched = [item_type for item_type in _CHECKLISTS.values() if item_type not in lists]
  if not ids or not untouched:
    return
  res = await db.execute(
    select(ChecklistItem.id).where(
      ChecklistItem.task_id == task_id,
      ChecklistItem.item_type.in_(untouched),
      ChecklistItem.id.in_(ids),
    )
  )
  clashes = sorted(set(res.scalars().all()))
  if clashes:
    raise ValidationError(
      f"Checklist item ids already used by this task: {', '.join(clashes)}",
      metadata={"taskId": task_id, "duplicates": clashes},
    )


async def _replace_checklists(db: AsyncSession, task_id: str, lists: dict[str, list[ChecklistItemIn]]) -> None:
  if not lists:
    return
  # All affected categories go before any insert, so an id may move between them.
  await db.execute(delete(ChecklistItem).where(ChecklistItem.task_id == task_id, ChecklistItem.item_type.in_(list(lists))))
  for item_type, items in lists.items():
    for index, item in enumerate(items):
      db.add(
        ChecklistItem(
          id=item.id or new_id(),
          task_id=task_id,
          item_type=item_type,
          text=item.text,
          completed=item.completed,
          sort_order=index,
        )
      )


async def _replace_relations(db: AsyncSession, task_id: str, kind: str, related_ids: list[str]) -> None:
  model, related_col = _RELATIONS[kind]
  await db.execute(delete(model).where(model.task_id == task_id))
  for related_id in related_ids:
    db.add(model(**{"id": new_id(), "task_id": task_id, related_col.key: related_id}))


async def create_task(db: AsyncSession, payload: TaskCreateIn) -> TaskOut:
  cfg = await get_config(db)
  task_id = new_id()
  async with _storage_guard(db, "task.create", task_id):
    total = (await db.execute(select(func.count()).select_from(Task))).scalar_one()
    if total >= cfg.limits.maxTasks:
      raise ValidationError("Workspace task limit reached", metadata={"maxTasks": cfg.limits.maxTasks})
    dependencies = await _validate_related_ids(db, task_id, "dependencies", payload.dependencies)
    blocks = await _validate_related_ids(db, task_id, "blocks", payload.blocks)
    checklists = {item_type: getattr(payload, field_name) for field_name, item_type in _CHECKLISTS.items()}
    _validate_checklist_ids(task_id, checklists)

    now = utcnow()
    t = Task(
      id=task_id,
      title=payload.title,
      task_type=payload.type,
      priority=payload.priority,
      status=payload.status,
      story_points=payload.storyPoints,
      sprint=payload.sprint,
      epic=payload.epic,
      description=payload.description,
      assignee=payload.assignee,
      is_favorite=payload.isFavorite if payload.isFavorite is not None else False,
      thumbnail=payload.thumbnail,
      created_at=now,
      updated_at=now,
    )
    db.add(t)
    # Parent row must exist before any child row references it.
    await db.flush()

    await _replace_checklists(db, task_id, checklists)
    await _replace_relations(db, task_id, "dependencies", dependencies)
    await _replace_relations(db, task_id, "blocks", blocks)
    await write_activity(db, action="task.created", target_type="Task", target_id=task_id, target_name=t.title)
    await db.commit()

  logger.info("task created", extra=log_extra(task_id=task_id, operation="task.create"))
  created = await get_task(db, task_id)
  if created is None:
    raise StorageError("Created task could not be read back", operation="task.create", entity_id=task_id)
  return created


async def update_task(db: AsyncSession, task_id: str, payload: TaskUpdateIn) -> TaskOut:
  fields_set = payload.model_fields_set
  async with _storage_guard(db, "task.update", task_id):
    res = await db.execute(select(Task).where(Task.id == task_id))
    t = res.scalar_one_or_none()
    if t is None:
      raise NotFoundError("Task not found", metadata={"taskId": task_id})

    relations: dict[str, list[str]] = {}
    for kind in _RELATIONS:
      if kind in fields_set:
        relations[kind] = await _validate_related_ids(db, task_id, kind, getattr(payload, kind))
    if "dependencies" in relations:
      await _check_dependency_cycle(db, task_id, relations["dependencies"])
    checklists = {
      item_type: getattr(payload, field_name) for field_name, item_type in _CHECKLISTS.items() if field_name in fields_set
    }
    await _check_untouched_checklist_ids(db, task_id, checklists)

    changed: list[str] = []
    for model_attr, field_name in _SCALAR_FIELDS:
      if field_name in fields_set:
        setattr(t, model_attr, getattr(payload, field_name))
        changed.append(field_name)

    # Strictly increasing, even when the clock has not advanced.
    now = utcnow()
    if now <= t.updated_at:
      now = t.updated_at + timedelta(microseconds=1)
    t.updated_at = now
    await db.flush()

    await _replace_checklists(db, task_id, checklists)
    changed.extend(field_name for field_name, item_type in _CHECKLISTS.items() if item_type in checklists)
    for kind, related_ids in relations.items():
      await _replace_relations(db, task_id, kind, related_ids)
      changed.append(kind)

    await write_activity(
      db,
      action="task.updated",
      target_type="Task",
      target_id=task_id,
      target_name=t.title,
      details={"changed": changed},
    )
    await db.commit()

  logger.info("task updated", extra=log_extra(task_id=task_id, operation="task.update"))
  updated = await get_task(db, task_id)
  if updated is None:
    raise NotFoundError("Task not found", metadata={"taskId": task_id})
  return updated


async def delete_task(db: AsyncSession, task_id: str) -> None:
  async with _storage_guard(db, "task.delete", task_id):
    res = await db.execute(select(Task.id, Task.title).where(Task.id == task_id))
    row = res.one_or_none()
    if row is None:
      raise NotFoundError("Task not found", metadata={"taskId": task_id})

    # Explicit child cleanup; foreign-key cascades are not relied upon.
    await db.execute(delete(ChecklistItem).where(ChecklistItem.task_id == task_id))
    for model, related_col in _RELATIONS.values():
      await db.execute(delete(model).where(or_(model.task_id == task_id, related_col == task_id)))
    await db.execute(delete(Task).where(Task.id == task_id))
    await write_activity(db, action="task.deleted", target_type="Task", target_id=task_id, target_name=row.title)
    await db.commit()

  logger.info("task deleted", extra=log_extra(task_id=task_id, operation="task.delete"))
