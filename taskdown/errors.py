from __future__ import annotations

from typing import Any


class TaskdownError(RuntimeError):
  """
  Base error for the task store. Carries a stable code and metadata so the
  HTTP layer can answer with the error envelope and log consistently.
  """

  code: str = "INTERNAL_ERROR"
  status_code: int = 500

  def __init__(self, message: str, *, metadata: dict[str, Any] | None = None) -> None:
    super().__init__(message)
    self.message = message
    self.metadata = metadata or {}


class NotFoundError(TaskdownError):
  """Raised when no task (or other entity) matches the given id."""

  code = "NOT_FOUND"
  status_code = 404


class InvalidQueryError(TaskdownError):
  """Raised for malformed or unsafe filter, sort or pagination input."""

  code = "INVALID_QUERY"
  status_code = 400


class ValidationError(TaskdownError):
  """Raised when a create/update payload is rejected."""

  code = "VALIDATION_ERROR"
  status_code = 422


class StorageError(TaskdownError):
  """Raised when the storage engine fails underneath an operation."""

  code = "STORAGE_ERROR"
  status_code = 500

  def __init__(self, message: str, *, operation: str, entity_id: str | None = None, metadata: dict[str, Any] | None = None) -> None:
    meta = {"operation": operation, "entity_id": entity_id}
    meta.update(metadata or {})
    super().__init__(message, metadata=meta)
    self.operation = operation
    self.entity_id = entity_id


class RateLimitedError(TaskdownError):
  """Raised when a client exceeds the workspace request budget."""

  code = "RATE_LIMITED"
  status_code = 429

  def __init__(self, message: str, *, retry_after: int, metadata: dict[str, Any] | None = None) -> None:
    super().__init__(message, metadata=metadata)
    self.retry_after = retry_after
