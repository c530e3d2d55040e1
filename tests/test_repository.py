from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from taskdown.errors import NotFoundError, StorageError, ValidationError
from taskdown.models import ChecklistItem, Task
from taskdown.schemas import ChecklistItemIn, TaskCreateIn, TaskFilters, TaskUpdateIn
from taskdown.tasks import repository


@pytest.mark.anyio
async def test_updated_at_is_strictly_increasing_with_frozen_clock(db: AsyncSession, monkeypatch) -> None:
  frozen = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
  monkeypatch.setattr(repository, "utcnow", lambda: frozen)

  created = await repository.create_task(db, TaskCreateIn(title="Clock"))
  assert created.createdAt == frozen
  assert created.updatedAt == frozen

  first = await repository.update_task(db, created.id, TaskUpdateIn(status="InProgress"))
  second = await repository.update_task(db, created.id, TaskUpdateIn(status="Done"))
  assert first.updatedAt == frozen + timedelta(microseconds=1)
  assert second.updatedAt > first.updatedAt
  assert second.createdAt == frozen


@pytest.mark.anyio
async def test_checklist_replacement_reorders_and_drops_items(db: AsyncSession) -> None:
  created = await repository.create_task(
    db,
    TaskCreateIn(title="Order", acceptanceCriteria=[ChecklistItemIn(id="c1", text="one"), ChecklistItemIn(id="c2", text="two")]),
  )
  updated = await repository.update_task(
    db,
    created.id,
    TaskUpdateIn(acceptanceCriteria=[ChecklistItemIn(id="c2", text="two", completed=True), ChecklistItemIn(text="three")]),
  )
  assert [i.text for i in updated.acceptanceCriteria] == ["two", "three"]
  assert updated.acceptanceCriteria[0].id == "c2"
  assert updated.acceptanceCriteria[0].completed is True

  res = await db.execute(select(func.count()).select_from(ChecklistItem).where(ChecklistItem.task_id == created.id))
  assert res.scalar_one() == 2


@pytest.mark.anyio
async def test_delete_missing_task_raises_not_found(db: AsyncSession) -> None:
  with pytest.raises(NotFoundError):
    await repository.delete_task(db, "missing")


@pytest.mark.anyio
async def test_get_missing_task_returns_none(db: AsyncSession) -> None:
  assert await repository.get_task(db, "missing") is None


@pytest.mark.anyio
async def test_storage_failure_is_wrapped(db: AsyncSession, monkeypatch) -> None:
  await repository.create_task(db, TaskCreateIn(title="Exists"))

  async def _boom(*_args, **_kwargs):
    raise OperationalError("SELECT", None, Exception("disk I/O error"))

  monkeypatch.setattr(repository, "_load_children", _boom)
  with pytest.raises(StorageError) as exc:
    await repository.list_tasks(db, TaskFilters())
  assert exc.value.operation == "task.list"
  assert exc.value.code == "STORAGE_ERROR"


async def _task_rows(db: AsyncSession) -> int:
  return (await db.execute(select(func.count()).select_from(Task))).scalar_one()


@pytest.mark.anyio
async def test_failed_child_write_leaves_no_task_row(db: AsyncSession, monkeypatch) -> None:
  async def _boom(*_args, **_kwargs):
    raise OperationalError("INSERT", None, Exception("database is locked"))

  monkeypatch.setattr(repository, "_replace_relations", _boom)
  with pytest.raises(StorageError) as exc:
    await repository.create_task(
      db, TaskCreateIn(title="Half written", acceptanceCriteria=[ChecklistItemIn(id="ac1", text="kept?")])
    )
  assert exc.value.operation == "task.create"
  assert await _task_rows(db) == 0
  res = await db.execute(select(func.count()).select_from(ChecklistItem))
  assert res.scalar_one() == 0


@pytest.mark.anyio
async def test_duplicate_checklist_ids_fail_before_any_write(db: AsyncSession) -> None:
  with pytest.raises(ValidationError):
    await repository.create_task(
      db,
      TaskCreateIn(title="Dupes", technicalTasks=[ChecklistItemIn(id="d", text="one"), ChecklistItemIn(id="d", text="two")]),
    )
  assert await _task_rows(db) == 0


@pytest.mark.anyio
async def test_same_checklist_ids_on_two_tasks(db: AsyncSession) -> None:
  payload = TaskCreateIn(title="Twin", acceptanceCriteria=[ChecklistItemIn(id="ac1", text="a")])
  first = await repository.create_task(db, payload)
  second = await repository.create_task(db, payload)
  assert first.id != second.id
  assert second.acceptanceCriteria[0].id == "ac1"
  assert await _task_rows(db) == 2
