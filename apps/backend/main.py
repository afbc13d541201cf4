"""Точка входа FastAPI."""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from apps.backend.config import get_settings
from apps.backend.middleware.trace_id import HEADER, TraceIdMiddleware, ensure_trace_id
from apps.backend.routers import admin_auth, health, launch
from apps.backend.utils.api_errors import error_envelope

logger = logging.getLogger(__name__)

_api = get_settings().api_prefix

app = FastAPI(
    title="Tendo Market API",
    description="Launch status and admin authentication",
    version="0.1.0",
)

app.add_middleware(TraceIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["System"])
app.include_router(launch.router, prefix=f"{_api}/launch", tags=["Launch"])
app.include_router(admin_auth.router, prefix=f"{_api}/auth", tags=["Admin Auth"])


def _error_response(request: Request, status_code: int, code: str, message: str, detail: str | None = None):
    trace_id = ensure_trace_id(request.scope)
    resp = JSONResponse(
        content=error_envelope(code=code, message=message, trace_id=trace_id, detail=detail),
        status_code=status_code,
    )
    resp.headers[HEADER] = trace_id
    return resp


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    if not isinstance(detail, str):
        detail = str(detail) if detail else "Ошибка"
    return _error_response(request, exc.status_code, "http_error", detail)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    fields = ", ".join(".".join(str(p) for p in e.get("loc", ())) for e in exc.errors())
    return _error_response(request, 400, "validation_error", "Ошибки валидации", fields or None)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    trace_id = ensure_trace_id(request.scope)
    logger.exception("Unhandled exception trace_id=%s path=%s", trace_id, request.url.path)
    return _error_response(request, 500, "internal_error", "Внутренняя ошибка сервера")
