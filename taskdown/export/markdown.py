from __future__ import annotations

from datetime import datetime

from taskdown.schemas import ChecklistItemOut, TaskOut

NO_EPIC = "Unassigned"


def export_filename(at: datetime) -> str:
  return f"taskdown-export-{at.strftime('%Y%m%d')}.md"


def _checklist(lines: list[str], items: list[ChecklistItemOut]) -> None:
  for item in items:
    box = "[x]" if item.completed else "[ ]"
    lines.append(f"- {box} {item.text}")
    lines.append("")


def _metadata(lines: list[str], task: TaskOut) -> None:
  # Trailing double space is a markdown line break.
  lines.append(f"**Type**: {task.type}  ")
  lines.append("")
  lines.append(f"**Priority**: {task.priority}  ")
  lines.append("")
  lines.append(f"**Status**: {task.status}  ")
  lines.append("")
  if task.storyPoints is not None:
    lines.append(f"**Story Points**: {task.storyPoints}  ")
    lines.append("")
  if task.sprint:
    lines.append(f"**Sprint**: {task.sprint}  ")
    lines.append("")
  if task.assignee:
    lines.append(f"**Assignee**: {task.assignee}  ")
    lines.append("")


def _task(lines: list[str], task: TaskOut) -> None:
  lines.append(f"### {task.id}: {task.title}")
  lines.append("")
  _metadata(lines, task)

  if task.description:
    lines.append("")
    lines.append(f"**Description**: {task.description}")
    lines.append("")

  if task.acceptanceCriteria:
    lines.append("")
    lines.append("**Acceptance Criteria**:")
    lines.append("")
    _checklist(lines, task.acceptanceCriteria)

  if task.technicalTasks:
    lines.append("")
    lines.append("**Technical Tasks**:")
    lines.append("")
    _checklist(lines, task.technicalTasks)

  lines.append("")
  lines.append(f"**Dependencies**: {', '.join(task.dependencies) if task.dependencies else 'None'}  ")
  lines.append(f"**Blocks**: {', '.join(task.blocks) if task.blocks else 'None'}")
  lines.append("")


def group_by_epic(tasks: list[TaskOut]) -> dict[str, list[TaskOut]]:
  """Group tasks by epic label, keeping first-seen order; tasks without an epic go last."""
  groups: dict[str, list[TaskOut]] = {}
  orphans: list[TaskOut] = []
  for t in tasks:
    if t.epic and t.epic.strip():
      groups.setdefault(t.epic.strip(), []).append(t)
    else:
      orphans.append(t)
  if orphans:
    groups.setdefault(NO_EPIC, []).extend(orphans)
  return groups


def render_markdown(title: str, tasks: list[TaskOut]) -> str:
  lines: list[str] = []
  if title:
    lines.append(f"# {title}")
    lines.append("")

  for epic_index, (epic, epic_tasks) in enumerate(group_by_epic(tasks).items()):
    if epic_index > 0:
      lines.append("")
      lines.append("")
    lines.append(f"## Epic: {epic}")
    lines.append("")
    for task_index, task in enumerate(epic_tasks):
      if task_index > 0:
        lines.append("")
        lines.append("---")
      lines.append("")
      _task(lines, task)

  return "\n".join(lines)
