from __future__ import annotations

from sqlalchemy import Select, case, func, or_, select
from sqlalchemy.orm import InstrumentedAttribute

from taskdown.errors import InvalidQueryError
from taskdown.models import Task
from taskdown.schemas import PRIORITIES, STATUSES, TaskFilters, normalize_status

DEFAULT_SORT = ("updated_at", "desc")

# Request spelling -> mapped column. Nothing outside this table can reach ORDER BY.
SORTABLE_COLUMNS: dict[str, InstrumentedAttribute] = {
  "title": Task.title,
  "created_at": Task.created_at,
  "createdAt": Task.created_at,
  "updated_at": Task.updated_at,
  "updatedAt": Task.updated_at,
  "priority": Task.priority,
  "status": Task.status,
  "type": Task.task_type,
  "task_type": Task.task_type,
  "story_points": Task.story_points,
  "storyPoints": Task.story_points,
}
SORT_DIRECTIONS = ("asc", "desc")
# Enum columns sort by declared order, not alphabetically.
RANKED_COLUMNS: dict[str, tuple[str, ...]] = {
  "priority": PRIORITIES,
  "status": STATUSES,
}


def parse_sort(sort: str | None) -> tuple[InstrumentedAttribute, str]:
  if sort is None or not sort.strip():
    column_name, direction = DEFAULT_SORT
    return SORTABLE_COLUMNS[column_name], direction
  raw = sort.strip()
  column_name, sep, direction = raw.partition(":")
  column_name = column_name.strip()
  direction = (direction.strip().lower() if sep else DEFAULT_SORT[1])
  column = SORTABLE_COLUMNS.get(column_name)
  if column is None:
    raise InvalidQueryError(f"Unsupported sort column: {column_name!r}", metadata={"sort": raw})
  if direction not in SORT_DIRECTIONS:
    raise InvalidQueryError(f"Unsupported sort direction: {direction!r}", metadata={"sort": raw})
  return column, direction


def sort_expression(column: InstrumentedAttribute):
  ranks = RANKED_COLUMNS.get(column.key)
  if ranks is None:
    return column
  return case({value: rank for rank, value in enumerate(ranks)}, value=column, else_=len(ranks))


def _check_page_value(name: str, value: int | None) -> None:
  if value is not None and value < 0:
    raise InvalidQueryError(f"{name} must be a non-negative integer", metadata={name: value})


def _apply_filters(q: Select, filters: TaskFilters) -> Select:
  if filters.epic:
    q = q.where(Task.epic == filters.epic)
  if filters.status:
    status_key = normalize_status(filters.status)
    if status_key not in STATUSES:
      raise InvalidQueryError(f"Unknown status: {filters.status!r}", metadata={"status": filters.status})
    q = q.where(Task.status == status_key)
  if filters.assignee:
    q = q.where(Task.assignee == filters.assignee)
  if filters.search:
    like = f"%{filters.search}%"
    q = q.where(or_(Task.title.like(like), Task.description.like(like)))
  return q


def build_task_query(filters: TaskFilters) -> Select:
  """
  Compose the SELECT over `tasks` for a listing request.

  Filter values are bound parameters; the ORDER BY column and direction come
  from fixed allow-lists and anything else raises InvalidQueryError.
  """
  _check_page_value("limit", filters.limit)
  _check_page_value("offset", filters.offset)
  column, direction = parse_sort(filters.sort)

  q = _apply_filters(select(Task), filters)
  expr = sort_expression(column)
  order = expr.asc() if direction == "asc" else expr.desc()
  tiebreak = Task.id.asc() if direction == "asc" else Task.id.desc()
  q = q.order_by(order, tiebreak)

  if filters.limit is not None:
    q = q.limit(filters.limit)
    # offset without limit is ignored
    if filters.offset is not None:
      q = q.offset(filters.offset)
  return q


def build_task_count_query(filters: TaskFilters) -> Select:
  return _apply_filters(select(func.count()).select_from(Task), filters)
