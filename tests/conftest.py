from __future__ import annotations

import os
import sys
import tempfile
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

# Settings are read at import time; point them at a throwaway database first.
_TMP_DIR = Path(tempfile.mkdtemp(prefix="taskdown_test_"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR / 'taskdown_test.db'}"
os.environ["REDIS_URL"] = ""

from sqlalchemy import delete  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from taskdown.db import SessionLocal, engine, init_models  # noqa: E402
from taskdown.deps import RATE_LIMIT_PREFIX  # noqa: E402
from taskdown.main import app  # noqa: E402
from taskdown.models import Activity, ChecklistItem, Task, TaskBlock, TaskDependency, User, WorkspaceConfigRow  # noqa: E402
from taskdown.rate_limit import limiter  # noqa: E402


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


async def _reset_db() -> None:
  limiter.reset_prefix(RATE_LIMIT_PREFIX)
  await init_models()
  async with SessionLocal() as db:
    await db.execute(delete(ChecklistItem))
    await db.execute(delete(TaskDependency))
    await db.execute(delete(TaskBlock))
    await db.execute(delete(Task))
    await db.execute(delete(Activity))
    await db.execute(delete(User))
    await db.execute(delete(WorkspaceConfigRow))
    await db.commit()
  await engine.dispose()


@pytest.fixture
async def clean_db() -> AsyncIterator[None]:
  await _reset_db()
  yield
  await _reset_db()


@pytest.fixture
async def client(clean_db: None) -> AsyncIterator[AsyncClient]:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


@pytest.fixture
async def db(clean_db: None) -> AsyncIterator[AsyncSession]:
  async with SessionLocal() as session:
    yield session


async def make_task(client: AsyncClient, title: str = "Task", **fields) -> str:
  res = await client.post("/api/tasks", json={"title": title, **fields})
  assert res.status_code == 200, res.text
  body = res.json()
  assert body["success"] is True
  return body["data"]["id"]


async def fetch_task(client: AsyncClient, task_id: str) -> dict:
  res = await client.get(f"/api/tasks/{task_id}")
  assert res.status_code == 200, res.text
  return res.json()["data"]
