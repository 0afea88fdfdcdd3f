from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from storefront.core.logging import get_logger
from storefront.services.exceptions import CouponError, ServiceError

logger = get_logger("storefront.api.errors")


def _error_response(request: Request, exc: ServiceError, **fields) -> JSONResponse:
    logger.info(
        "Cart operation rejected",
        extra={
            "path": request.url.path,
            "status_code": exc.status_code,
            "code": exc.code,
            "detail": exc.detail,
            "session_id": request.headers.get("x-session-id"),
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code, **fields},
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CouponError)
    async def handle_coupon_error(request: Request, exc: CouponError) -> JSONResponse:
        return _error_response(request, exc, coupon=exc.coupon_code)

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
        return _error_response(request, exc)
