"""Logging setup and per-request access logging."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("account_service.http")

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger."""
    root = logging.getLogger()
    if not any(getattr(handler, "_account_service", False) for handler in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        handler._account_service = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(level)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log one line per request with status and latency.

    Headers and bodies are not logged, so bearer tokens and passwords never
    reach the log stream.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        client = request.client.host if request.client else "-"

        try:
            response: Response = await call_next(request)
        except Exception:
            duration_ms = int((time.perf_counter() - start) * 1000)
            logger.exception(
                "request.failed method=%s path=%s client=%s duration_ms=%d request_id=%s",
                request.method,
                request.url.path,
                client,
                duration_ms,
                request_id,
            )
            raise

        duration_ms = int((time.perf_counter() - start) * 1000)
        response.headers["x-request-id"] = request_id
        log = logger.error if response.status_code >= 500 else logger.info
        log(
            "request.completed method=%s path=%s status=%d client=%s duration_ms=%d request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            client,
            duration_ms,
            request_id,
        )
        return response
