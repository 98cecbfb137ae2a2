import logging
import time
import uuid
from typing import Dict, Optional

from fastapi import Request
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.core.logging import request_id_var
from app.database import SessionLocal
from app.models.audit_log import ApiLog

logger = logging.getLogger(__name__)

# Request headers worth keeping in the API log
LOGGED_HEADERS = ("content-type", "accept", "user-agent", "origin", "referer")

SKIPPED_PATHS = {"/", "/health", "/readiness", "/liveness", "/docs", "/redoc", "/openapi.json"}


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds a request id to the logging context and echoes it back."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(settings.request_id_header) or str(uuid.uuid4())
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[settings.request_id_header] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000
        response.headers["X-Process-Time"] = f"{duration_ms:.2f}ms"

        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return response


def should_log_path(path: str) -> bool:
    if path in SKIPPED_PATHS:
        return False
    return not path.startswith(f"{settings.api_prefix}/audit")


def sanitize_headers(headers) -> Dict[str, str]:
    return {k: v for k, v in headers.items() if k.lower() in LOGGED_HEADERS}


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else None


class ApiLoggingMiddleware(BaseHTTPMiddleware):
    """
    Records one ApiLog row per API request.

    Rows are written in their own session after the response is produced.
    A failed write is logged and never affects the response.
    """

    async def dispatch(self, request: Request, call_next):
        if not settings.enable_api_logging or not should_log_path(request.url.path):
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = int((time.perf_counter() - start_time) * 1000)

        await run_in_threadpool(self.record, request, response.status_code, elapsed_ms)
        return response

    def record(self, request: Request, status_code: int, elapsed_ms: int) -> None:
        query = dict(request.query_params)
        entry = ApiLog(
            user_id=getattr(request.state, "user_id", None),
            method=request.method,
            path=request.url.path,
            query=query or None,
            headers=sanitize_headers(request.headers),
            status_code=status_code,
            response_time_ms=elapsed_ms,
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent"),
            is_error=status_code >= 400,
        )
        db = SessionLocal()
        try:
            db.add(entry)
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to write API log for {request.method} {request.url.path}: {e}")
        finally:
            db.close()
