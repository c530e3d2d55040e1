from __future__ import annotations

from time import monotonic
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskdown.config import settings
from taskdown.db import SessionLocal, init_models
from taskdown.deadline import DeadlineMiddleware
from taskdown.errors import RateLimitedError, TaskdownError
from taskdown.logging import get_logger, log_extra, setup_logging
from taskdown.metrics import runtime_metrics
from taskdown.routers.activity import router as activity_router
from taskdown.routers.analytics import router as analytics_router
from taskdown.routers.config import router as config_router
from taskdown.routers.export import router as export_router
from taskdown.routers.system import router as system_router
from taskdown.routers.tasks import router as tasks_router
from taskdown.routers.users import router as users_router
from taskdown.routers.workspace import router as workspace_router
from taskdown.workspace.service import ensure_config_row

logger = get_logger("taskdown.api")

REQUEST_ID_HEADER = "X-Request-ID"

app = FastAPI(
  title="Taskdown API",
  version=settings.app_version,
  docs_url="/docs" if settings.api_docs_enabled else None,
  redoc_url="/redoc" if settings.api_docs_enabled else None,
  openapi_url="/openapi.json" if settings.api_docs_enabled else None,
)


def error_response(status_code: int, code: str, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
  return JSONResponse(
    status_code=status_code,
    content={"success": False, "error": {"code": code, "message": message}},
    headers=headers,
  )


@app.exception_handler(TaskdownError)
async def _taskdown_error_handler(request: Request, exc: TaskdownError) -> JSONResponse:
  extra = log_extra(
    request_id=getattr(request.state, "request_id", None),
    task_id=exc.metadata.get("taskId") or exc.metadata.get("entity_id"),
    path=request.url.path,
    error=exc.message,
    error_code=exc.code,
  )
  if exc.status_code >= 500:
    logger.error("request failed", extra=extra)
  else:
    logger.info("request rejected", extra=extra)
  headers = {"Retry-After": str(exc.retry_after)} if isinstance(exc, RateLimitedError) else None
  return error_response(exc.status_code, exc.code, exc.message, headers)


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
  errors = exc.errors()
  if errors:
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))
  else:
    message = "Invalid request"
  return error_response(422, "VALIDATION_ERROR", message)


@app.exception_handler(StarletteHTTPException)
async def _http_exception_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
  code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
  return error_response(exc.status_code, code, str(exc.detail), getattr(exc, "headers", None))


# Innermost: a timed-out request still passes through CORS and request logging.
app.add_middleware(DeadlineMiddleware, timeout_seconds=settings.request_timeout_seconds)
app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)

app.include_router(system_router)
app.include_router(workspace_router)
app.include_router(tasks_router)
app.include_router(analytics_router)
app.include_router(config_router)
app.include_router(export_router)
app.include_router(users_router)
app.include_router(activity_router)


@app.middleware("http")
async def _request_context_middleware(request: Request, call_next):
  request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
  request.state.request_id = request_id
  start = monotonic()
  response = await call_next(request)
  elapsed_ms = (monotonic() - start) * 1000.0
  runtime_metrics.observe_request(request.method, response.status_code, elapsed_ms)
  response.headers[REQUEST_ID_HEADER] = request_id
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  logger.info(
    "request",
    extra=log_extra(
      request_id=request_id,
      path=request.url.path,
      method=request.method,
      status_code=response.status_code,
      duration_ms=round(elapsed_ms, 2),
      client=request.client.host if request.client else None,
    ),
  )
  return response


@app.on_event("startup")
async def _startup() -> None:
  setup_logging(settings.log_level, settings.log_json)
  await init_models()
  async with SessionLocal() as db:
    await ensure_config_row(db)
  logger.info("taskdown api started", extra=log_extra(operation="startup"))
