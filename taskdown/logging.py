import json
import logging
from typing import Any, Dict, Optional

STANDARD_FIELDS = ("request_id", "task_id")


class RequestIdFilter(logging.Filter):
  """
  Ensure the standard context fields exist on every log record so formatters
  can rely on them.
  """

  def __init__(self, defaults: Optional[Dict[str, Any]] = None):
    super().__init__()
    self.defaults = {"request_id": "-", "task_id": "-"}
    if defaults:
      self.defaults.update({k: v for k, v in defaults.items() if v is not None})

  def filter(self, record: logging.LogRecord) -> bool:
    for key, default in self.defaults.items():
      if not hasattr(record, key):
        setattr(record, key, default)
    return True


class JsonFormatter(logging.Formatter):
  def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - formatting
    data = {
      "timestamp": self.formatTime(record, self.datefmt),
      "level": record.levelname,
      "logger": record.name,
      "message": record.getMessage(),
    }
    for field in STANDARD_FIELDS:
      data[field] = getattr(record, field, "-")
    for extra_key in ("path", "method", "status_code", "duration_ms", "client", "operation", "error", "error_type", "error_code"):
      if hasattr(record, extra_key):
        data[extra_key] = getattr(record, extra_key)
    if record.exc_info:
      data["exception"] = self.formatException(record.exc_info)
    return json.dumps(data)


def setup_logging(level: str = "INFO", json_output: bool = False) -> logging.Logger:
  handler = logging.StreamHandler()
  handler.addFilter(RequestIdFilter())
  if json_output:
    handler.setFormatter(JsonFormatter())
  else:
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s req=%(request_id)s task=%(task_id)s"))
  root = logging.getLogger()
  root.handlers = []
  root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
  root.addHandler(handler)
  return logging.getLogger("taskdown")


def get_logger(name: str = "taskdown") -> logging.Logger:
  return logging.getLogger(name)


def log_extra(*, request_id: Optional[str] = None, task_id: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
  """
  Build the `extra` dict for structured logging. Only non-None values are
  included so defaults from RequestIdFilter still apply.
  """
  payload: Dict[str, Any] = {}
  if request_id is not None:
    payload["request_id"] = request_id
  if task_id is not None:
    payload["task_id"] = task_id
  payload.update({k: v for k, v in extra.items() if v is not None})
  return payload
