from __future__ import annotations

import re

import pytest
from httpx import AsyncClient

from conftest import fetch_task, make_task


@pytest.mark.anyio
async def test_bulk_operations_report_per_operation_results(client: AsyncClient) -> None:
  existing = await make_task(client, "Existing")
  res = await client.post(
    "/api/tasks/bulk",
    json={
      "operations": [
        {"type": "create", "data": {"title": "Bulk created", "priority": "Low"}},
        {"type": "update", "taskId": existing, "data": {"status": "Done"}},
        {"type": "delete", "taskId": "missing"},
        {"type": "create", "data": {"priority": "Low"}},
        {"type": "archive", "taskId": existing},
      ]
    },
  )
  assert res.status_code == 200, res.text
  results = res.json()["data"]["results"]
  assert [r["success"] for r in results] == [True, True, False, False, False]
  assert results[2]["errorCode"] == "NOT_FOUND"
  assert results[3]["errorCode"] == "VALIDATION_ERROR"
  assert results[4]["errorCode"] == "VALIDATION_ERROR"

  created = await fetch_task(client, results[0]["taskId"])
  assert created["title"] == "Bulk created"
  assert (await fetch_task(client, existing))["status"] == "Done"


@pytest.mark.anyio
async def test_bulk_requires_operations(client: AsyncClient) -> None:
  res = await client.post("/api/tasks/bulk", json={"operations": []})
  assert res.status_code == 422


@pytest.mark.anyio
async def test_markdown_export_groups_by_epic(client: AsyncClient) -> None:
  await client.patch("/api/config", json={"workspaceName": "Roadmap"})
  a = await make_task(
    client,
    "Sign in",
    epic="Auth",
    type="Story",
    storyPoints=3,
    description="Users sign in",
    acceptanceCriteria=[{"text": "works", "completed": True}, {"text": "fails nicely"}],
  )
  await make_task(client, "Sign out", epic="Auth", dependencies=[a])
  await make_task(client, "Loose end")

  res = await client.get("/api/export/markdown")
  assert res.status_code == 200, res.text
  data = res.json()["data"]
  assert re.fullmatch(r"taskdown-export-\d{8}\.md", data["filename"])

  md = data["markdown"]
  assert md.startswith("# Roadmap\n")
  assert "## Epic: Auth" in md
  assert "## Epic: Unassigned" in md
  assert md.index("## Epic: Auth") < md.index("## Epic: Unassigned")
  assert f"### {a}: Sign in" in md
  assert "**Type**: Story  " in md
  assert "**Story Points**: 3  " in md
  assert "**Description**: Users sign in" in md
  assert "- [x] works" in md
  assert "- [ ] fails nicely" in md
  assert f"**Dependencies**: {a}  " in md
  assert "**Blocks**: None" in md
