import contextvars

_UNSET = "-"

_request_id: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default=_UNSET)
_actor_id: contextvars.ContextVar[str] = contextvars.ContextVar("actor_id", default=_UNSET)


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id or _UNSET)


def get_request_id() -> str:
    return _request_id.get()


def set_actor_id(actor_id: str) -> None:
    _actor_id.set(actor_id or _UNSET)


def get_actor_id() -> str:
    return _actor_id.get()


def snapshot() -> dict[str, str | None]:
    """Bound ids for audit rows; unset values come back as None."""
    return {
        "request_id": None if _request_id.get() == _UNSET else _request_id.get(),
        "actor_id": None if _actor_id.get() == _UNSET else _actor_id.get(),
    }


def clear_context() -> None:
    _request_id.set(_UNSET)
    _actor_id.set(_UNSET)
