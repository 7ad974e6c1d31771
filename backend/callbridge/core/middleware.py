"""Middlewares personalizados."""

from __future__ import annotations

import time
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from callbridge.core.config import settings
from callbridge.core.logging import get_logger

logger = get_logger("callbridge.request")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Registra inicio y fin de cada request, incluyendo los callbacks de Twilio."""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path.startswith(tuple(settings.request_log_skip_prefixes)):
            return await call_next(request)

        request_id = uuid4().hex
        start = time.perf_counter()
        context = {
            "request_id": request_id,
            "method": request.method,
            "path": path,
            "client_ip": _client_ip(request),
        }
        # Twilio identifica sus webhooks con este encabezado.
        if "x-twilio-signature" in request.headers:
            context["provider"] = "twilio"

        logger.info("request.started", extra=context)

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request.failed",
                extra={**context, "duration_ms": _elapsed_ms(start)},
            )
            raise

        response.headers["x-request-id"] = request_id
        logger.info(
            "request.completed",
            extra={
                **context,
                "status_code": response.status_code,
                "duration_ms": _elapsed_ms(start),
            },
        )
        return response


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)
