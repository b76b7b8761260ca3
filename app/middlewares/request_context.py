import logging
import re
import time
from uuid import uuid4

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.core import context
from app.core.logging import ACCESS_LOGGER
from app.core.settings import settings

logger = logging.getLogger(ACCESS_LOGGER)

# Inbound ids are echoed into logs and audit rows, so only short opaque tokens are trusted.
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _resolve_request_id(scope: Scope) -> str:
    for name, value in scope.get("headers", []):
        if name == b"x-request-id":
            candidate = value.decode("latin-1").strip()
            if _REQUEST_ID_PATTERN.match(candidate):
                return candidate
            break
    return uuid4().hex


class RequestContextMiddleware:
    """Bind a request id for logs and audit rows, echo it back, and write one access line."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = _resolve_request_id(scope)
        context.clear_context()
        context.set_request_id(request_id)
        started = time.perf_counter()
        status_holder = {"status": 500}

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                status_holder["status"] = message["status"]
                headers_list = list(message.get("headers", []))
                headers_list.append((b"x-request-id", request_id.encode()))
                message["headers"] = headers_list
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            if settings.access_log_enabled:
                logger.info(
                    "%s %s -> %s in %.1fms",
                    scope.get("method", "-"),
                    scope.get("path", "-"),
                    status_holder["status"],
                    (time.perf_counter() - started) * 1000,
                )
