from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

_DROPPED_HEADERS = frozenset({"content-length", "content-type"})
_SUCCESS_CODES = {200: "ok", 201: "created", 202: "accepted"}
_ENVELOPE_KEYS = frozenset({"code", "message"})


def success_envelope(data: Any, status_code: int = 200) -> dict[str, Any]:
    try:
        message = HTTPStatus(status_code).phrase
    except ValueError:
        message = "Success"
    return {
        "code": _SUCCESS_CODES.get(status_code, "ok"),
        "message": message,
        "data": data,
        "details": {},
    }


def _already_enveloped(payload: Any) -> bool:
    return (
        isinstance(payload, dict)
        and _ENVELOPE_KEYS <= payload.keys()
        and ("data" in payload or "details" in payload)
    )


def _json_response(source: Response, status_code: int, content: dict[str, Any]) -> JSONResponse:
    wrapped = JSONResponse(status_code=status_code, content=content)
    for key, value in source.headers.items():
        if key.lower() not in _DROPPED_HEADERS:
            wrapped.headers[key] = value
    return wrapped


async def _read_body(response: Response) -> bytes:
    chunks = []
    async for chunk in response.body_iterator:
        chunks.append(chunk if isinstance(chunk, bytes) else chunk.encode("utf-8"))
    return b"".join(chunks)


class ResponseEnvelopeMiddleware(BaseHTTPMiddleware):
    """Wrap 2xx JSON bodies in ``{code, message, data, details}``.

    Error bodies are built in that shape by the exception handlers, so only
    successes pass through here. A 204 becomes a 200 with ``data: null``.
    """

    async def dispatch(self, request, call_next) -> Response:
        response = await call_next(request)
        if not 200 <= response.status_code < 300:
            return response
        if response.status_code == 204:
            return _json_response(response, 200, success_envelope(None))

        media_type = response.headers.get("content-type", "").split(";")[0].strip()
        if media_type != "application/json":
            return response

        body = await _read_body(response)
        try:
            payload = json.loads(body) if body else None
        except (UnicodeDecodeError, json.JSONDecodeError):
            # The iterator is consumed, so hand back the raw bytes unchanged.
            return Response(
                content=body,
                status_code=response.status_code,
                headers=dict(response.headers),
                media_type=response.media_type,
            )

        if _already_enveloped(payload):
            payload = {"data": None, "details": {}, **payload}
            return _json_response(response, response.status_code, payload)
        return _json_response(response, response.status_code, success_envelope(payload, response.status_code))


def register_response_envelope(app) -> None:
    app.add_middleware(ResponseEnvelopeMiddleware)
