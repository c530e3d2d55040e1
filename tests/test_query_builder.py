from __future__ import annotations

import pytest
from sqlalchemy.dialects import sqlite

from taskdown.errors import InvalidQueryError
from taskdown.schemas import TaskFilters
from taskdown.tasks.query import build_task_count_query, build_task_query, parse_sort


def _compile(q):
  return q.compile(dialect=sqlite.dialect())


def test_default_order_is_updated_at_desc_with_id_tiebreak() -> None:
  sql = str(_compile(build_task_query(TaskFilters())))
  assert "ORDER BY tasks.updated_at DESC, tasks.id DESC" in sql
  assert "LIMIT" not in sql
  assert "WHERE" not in sql


def test_camel_case_sort_column_and_direction_case() -> None:
  sql = str(_compile(build_task_query(TaskFilters(sort="storyPoints:ASC"))))
  assert "ORDER BY tasks.story_points ASC, tasks.id ASC" in sql


def test_sort_without_direction_defaults_to_desc() -> None:
  column, direction = parse_sort("title")
  assert column.key == "title"
  assert direction == "desc"


@pytest.mark.parametrize(
  "sort",
  [
    "id; DROP TABLE tasks",
    "title; DROP TABLE tasks",
    "title:sideways",
    "password_hash:asc",
    "title:asc; DELETE FROM tasks",
  ],
)
def test_sort_outside_allow_list_is_rejected(sort: str) -> None:
  with pytest.raises(InvalidQueryError) as exc:
    build_task_query(TaskFilters(sort=sort))
  assert exc.value.code == "INVALID_QUERY"
  assert exc.value.status_code == 400


def test_filter_values_are_bound_parameters() -> None:
  hostile = "E1'; DROP TABLE tasks; --"
  compiled = _compile(build_task_query(TaskFilters(epic=hostile, assignee="bob", search="login")))
  sql = str(compiled)
  assert "DROP TABLE" not in sql
  values = list(compiled.params.values())
  assert hostile in values
  assert "bob" in values
  assert "%login%" in values
  assert "tasks.title LIKE" in sql
  assert "tasks.description LIKE" in sql


def test_status_alias_is_normalized() -> None:
  compiled = _compile(build_task_query(TaskFilters(status="In Progress")))
  assert "InProgress" in compiled.params.values()


def test_unknown_status_is_rejected() -> None:
  with pytest.raises(InvalidQueryError):
    build_task_query(TaskFilters(status="Blocked"))


def test_limit_and_offset_are_bound() -> None:
  compiled = _compile(build_task_query(TaskFilters(limit=10, offset=20)))
  sql = str(compiled)
  assert "LIMIT ? OFFSET ?" in sql
  values = list(compiled.params.values())
  assert 10 in values
  assert 20 in values


def test_offset_without_limit_is_ignored() -> None:
  sql = str(_compile(build_task_query(TaskFilters(offset=5))))
  assert "OFFSET" not in sql


@pytest.mark.parametrize("field", ["limit", "offset"])
def test_negative_page_values_are_rejected(field: str) -> None:
  with pytest.raises(InvalidQueryError):
    build_task_query(TaskFilters(**{field: -1}))


def test_count_query_shares_filters_without_ordering() -> None:
  compiled = _compile(build_task_count_query(TaskFilters(epic="E1", status="Done")))
  sql = str(compiled)
  assert "count(*)" in sql.lower()
  assert "ORDER BY" not in sql
  assert "E1" in compiled.params.values()
  assert "Done" in compiled.params.values()


def test_priority_sort_ranks_by_declared_order() -> None:
  compiled = _compile(build_task_query(TaskFilters(sort="priority:asc")))
  sql = str(compiled)
  assert "ORDER BY CASE tasks.priority WHEN" in sql
  assert "tasks.id ASC" in sql
  values = list(compiled.params.values())
  assert {"Critical", "High", "Medium", "Low"} <= set(values)


def test_plain_columns_sort_without_ranking() -> None:
  sql = str(_compile(build_task_query(TaskFilters(sort="title:asc"))))
  assert "CASE" not in sql
