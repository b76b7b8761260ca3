from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.exceptions import LifecycleError

logger = logging.getLogger(__name__)

_STATUS_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    422: "unprocessable_entity",
    429: "rate_limited",
}
_REQUEST_SECTIONS = {"body", "query", "path", "header"}


def _phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Request failed"


def _as_details(details: Any) -> dict:
    if details is None:
        return {}
    if isinstance(details, dict):
        return details
    if isinstance(details, list):
        return {"errors": details}
    return {"detail": str(details)}


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: Any | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Error envelope: same keys as a success body with ``data`` left null."""
    content = {
        "code": code,
        "message": message,
        "data": None,
        "details": _as_details(details),
    }
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content), headers=headers)


def _unpack_http_detail(detail: Any, status_code: int) -> tuple[str, str, dict]:
    code = _STATUS_CODES.get(status_code, "http_error")
    if isinstance(detail, str):
        return code, detail, {"detail": detail}
    if not isinstance(detail, dict):
        return code, _phrase(status_code), _as_details(detail)

    # Routers raise HTTPException(detail={"code": ..., "message": ...}) for guard failures.
    message = detail.get("message") or detail.get("detail") or _phrase(status_code)
    code = detail.get("code") or code
    if "details" in detail:
        return code, message, _as_details(detail["details"])
    extra = {key: value for key, value in detail.items() if key not in {"code", "message", "detail"}}
    return code, message, extra or {"detail": message}


def _validation_message(errors: list[dict]) -> str:
    if not errors:
        return "Validation failed"
    first = errors[0] or {}
    msg = first.get("msg") or "Validation failed"
    where = ".".join(str(part) for part in first.get("loc") or () if part not in _REQUEST_SECTIONS)
    return f"{where}: {msg}" if where else str(msg)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code, message, details = _unpack_http_detail(exc.detail, exc.status_code)
    return error_response(exc.status_code, code, message, details, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    return error_response(422, "validation_error", _validation_message(errors), {"errors": errors})


async def lifecycle_exception_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    logger.info("Lifecycle request rejected code=%s path=%s", exc.code, request.url.path)
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def stale_data_exception_handler(request: Request, exc: StaleDataError) -> JSONResponse:
    logger.warning("Concurrent update detected path=%s", request.url.path)
    return error_response(
        409,
        "concurrent_update",
        "The record was modified by another request; reload and retry",
    )


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.info("Rate limit hit path=%s limit=%s", request.url.path, getattr(exc, "detail", "-"))
    return error_response(
        429,
        "rate_limited",
        _phrase(429),
        getattr(exc, "detail", None),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error path=%s", request.url.path, exc_info=exc)
    return error_response(500, "internal_server_error", "Internal server error")


def register_exception_handlers(app) -> None:
    handlers = (
        (StarletteHTTPException, http_exception_handler),
        (RequestValidationError, validation_exception_handler),
        (LifecycleError, lifecycle_exception_handler),
        (StaleDataError, stale_data_exception_handler),
        (RateLimitExceeded, rate_limit_exception_handler),
        (Exception, unhandled_exception_handler),
    )
    for exc_class, handler in handlers:
        app.add_exception_handler(exc_class, handler)
