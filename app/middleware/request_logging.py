"""
Access logging for the student API.

Every request gets a correlation id (the caller's X-Request-ID when it is
usable, a fresh one otherwise) that is echoed back and attached to all log
records emitted while the request is handled. Request bodies are never
logged because they carry student answers.
"""
import logging
import re
import time
import uuid
from typing import Callable, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.config import settings
from app.core.logging_config import request_id_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

# Liveness probes hit these every few seconds
QUIET_PATH_SUFFIXES = ("/health", "/ping")

_RESOURCE_PATTERN = re.compile(r"/student/(attempts|practice)/(\d+)(?:/|$)")


def resolve_request_id(header_value: Optional[str]) -> str:
    """Use the caller's request id if it is sane, else mint one."""
    if header_value:
        header_value = header_value.strip()
        if 0 < len(header_value) <= MAX_REQUEST_ID_LENGTH and header_value.isprintable():
            return header_value
    return uuid.uuid4().hex


def resource_fields(path: str) -> Dict[str, int]:
    """Pull the attempt or practice session id out of a student path."""
    match = _RESOURCE_PATTERN.search(path)
    if not match:
        return {}
    key = "attempt_id" if match.group(1) == "attempts" else "session_id"
    return {key: int(match.group(2))}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log one line per response, at a level chosen by its status code."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        token = request_id_context.set(request_id)
        started = time.perf_counter()
        path = request.url.path

        try:
            response = await call_next(request)
        finally:
            request_id_context.reset(token)

        response.headers[REQUEST_ID_HEADER] = request_id

        fields = {
            "request_id": request_id,
            "method": request.method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            "student_id": request.headers.get(settings.STUDENT_ID_HEADER)
            or "anonymous",
            **resource_fields(path),
        }

        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        elif path.endswith(QUIET_PATH_SUFFIXES):
            level = logging.DEBUG
        else:
            level = logging.INFO
        logger.log(
            level,
            f"{request.method} {path} -> {response.status_code}",
            extra=fields,
        )

        return response
