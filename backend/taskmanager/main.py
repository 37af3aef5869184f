"""FastAPI application for the Task Manager authentication API"""

import logging
import time
import traceback
import uuid
from datetime import datetime
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from taskmanager.api.v1 import auth
from taskmanager.config import settings
from taskmanager.core.database import SessionLocal, init_db
from taskmanager.core.exceptions import BaseAPIException
from taskmanager.schemas.response import ErrorResponse, HealthResponse
from taskmanager.services.token_sweeper import token_sweeper


def configure_logging() -> None:
    log_file = Path(settings.get_log_file())
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.FileHandler(log_file), logging.StreamHandler()],
    )


configure_logging()
logger = logging.getLogger(__name__)

REQUEST_COUNT = Counter(
    "taskmanager_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "taskmanager_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
SWEEPER_UP_GAUGE = Gauge("taskmanager_token_sweeper_up", "Token sweeper liveness (1 running, 0 stopped)")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}
SLOW_REQUEST_SECONDS = 1.0

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
)

app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Tag each request with an id, set security headers and record metrics"""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request.state.request_id = request_id

    started = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - started

    response.headers.update(SECURITY_HEADERS)
    response.headers["X-Request-ID"] = request_id

    # Label by route template so /sessions/{session_id} stays one series
    route = request.scope.get("route")
    path = getattr(route, "path", request.url.path)
    REQUEST_COUNT.labels(request.method, path, str(response.status_code)).inc()
    REQUEST_LATENCY.labels(request.method, path).observe(elapsed)

    if elapsed > SLOW_REQUEST_SECONDS:
        logger.warning("Slow request %s %s took %.2fs (request_id=%s)", request.method, path, elapsed, request_id)
    return response


def _error_response(request: Request, status_code: int, error: str, details=None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details or None, path=request.url.path)
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(BaseAPIException)
async def api_exception_handler(request: Request, exc: BaseAPIException):
    if exc.status_code >= 500:
        # Server-side detail (e.g. which secret is missing) stays in the log
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error_response(request, exc.status_code, "Internal server error")
    logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
    return _error_response(request, exc.status_code, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed input is reported as 400 with one entry per offending field"""
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning("Validation failed on %s %s: %s", request.method, request.url.path, errors)
    return _error_response(request, status.HTTP_400_BAD_REQUEST, "Validation errors", errors)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(
        "Database error on %s %s: %s\n%s",
        request.method,
        request.url.path,
        exc,
        traceback.format_exc(),
    )
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "A database error occurred. Please try again later.",
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.critical(
        "Unhandled %s on %s %s\n%s",
        type(exc).__name__,
        request.method,
        request.url.path,
        traceback.format_exc(),
    )
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


@app.on_event("startup")
async def on_startup():
    settings.validate_security_settings()
    logger.info("Starting %s v%s (%s)", settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT)

    try:
        init_db()
    except Exception:
        logger.exception("Database initialization failed")
        raise

    if settings.RUN_TOKEN_SWEEPER:
        token_sweeper.start()
    SWEEPER_UP_GAUGE.set(1 if token_sweeper.is_running() else 0)


@app.on_event("shutdown")
async def on_shutdown():
    if token_sweeper.is_running():
        token_sweeper.stop()
    SWEEPER_UP_GAUGE.set(0)
    logger.info("%s stopped", settings.APP_NAME)


def _database_ready() -> dict:
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return {"ok": True, "error": None}
    except SQLAlchemyError as exc:
        return {"ok": False, "error": str(exc)}
    finally:
        db.close()


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Liveness plus database and sweeper readiness"""
    database = _database_ready()
    sweeper = token_sweeper.status()
    SWEEPER_UP_GAUGE.set(1 if sweeper["running"] else 0)
    return HealthResponse(
        status="healthy" if database["ok"] else "degraded",
        version=settings.APP_VERSION,
        timestamp=datetime.utcnow().isoformat(),
        readiness={"database": database, "token_sweeper": sweeper},
    )


@app.get("/metrics")
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "environment": settings.ENVIRONMENT,
        "docs": "/api/docs" if settings.DEBUG else "disabled",
    }


app.include_router(auth.router, prefix="/api/v1/auth", tags=["Authentication"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "taskmanager.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1 if settings.DEBUG else settings.WORKERS,
    )
