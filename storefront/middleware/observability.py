from __future__ import annotations

import time
import uuid
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from storefront.core.logging import get_logger

REQUEST_ID_HEADER = "X-Request-ID"


def normalize_path(request: Request) -> str:
    """Route template (``/api/cart/items/{item_id}``) instead of the raw path."""
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or request.url.path


def cart_identity(request: Request) -> str:
    """Which kind of cart owner the request speaks for; never the credential itself."""
    if request.headers.get("authorization", "").lower().startswith("bearer "):
        return "account"
    if request.headers.get("x-session-id") or request.query_params.get("session_id"):
        return "guest"
    return "anonymous"


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Tag every response with a request id and log failed cart calls with their latency."""

    def __init__(self, app, *, log_4xx: bool = True, log_5xx: bool = True) -> None:
        super().__init__(app)
        self.logger = get_logger("storefront.requests")
        self.log_4xx = log_4xx
        self.log_5xx = log_5xx

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration = time.perf_counter() - start
            self._log_error(request, 500, duration, "Unhandled server error", "error")
            raise

        duration = time.perf_counter() - start
        status_code = response.status_code

        if status_code >= 500 and self.log_5xx:
            self._log_error(request, status_code, duration, "Server error response", "error")
        elif status_code >= 400 and self.log_4xx:
            self._log_error(request, status_code, duration, "Client error response", "warning")

        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    def _log_error(
        self,
        request: Request,
        status_code: int,
        duration: float,
        message: str,
        level: str,
    ) -> None:
        payload: dict[str, Any] = {
            "method": request.method,
            "path": normalize_path(request),
            "status_code": status_code,
            "duration_ms": round(duration * 1000, 3),
            "client_ip": self._client_ip(request),
            "owner": cart_identity(request),
            "session_id": request.headers.get("x-session-id"),
            "request_id": getattr(request.state, "request_id", None),
        }
        log_func = getattr(self.logger, level, self.logger.error)
        log_func(message, extra=payload)

    @staticmethod
    def _client_ip(request: Request) -> str | None:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        client = request.client
        return client.host if client else None
