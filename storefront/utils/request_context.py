"""Request-scoped correlation id shared by middleware, handlers, and logs.

Each HTTP request to the favorites API gets an identifier stored in a
``ContextVar`` so error envelopes and log lines can be tied back to the
``X-Request-ID`` header without threading the value through every call.
"""

from __future__ import annotations

from contextvars import ContextVar, Token

__all__ = [
    "REQUEST_ID_CONTEXT",
    "REQUEST_ID_HEADER",
    "clear_request_id",
    "get_request_id",
    "set_request_id",
]

REQUEST_ID_HEADER = "X-Request-ID"
REQUEST_ID_CONTEXT: ContextVar[str] = ContextVar("request_id", default="")


def set_request_id(request_id: str) -> Token[str]:
    """Store ``request_id`` for the running task; the token undoes it."""

    return REQUEST_ID_CONTEXT.set(request_id)


def get_request_id() -> str:
    """Return the active request id, or an empty string outside a request."""

    return REQUEST_ID_CONTEXT.get()


def clear_request_id(token: Token[str] | None = None) -> None:
    """Restore the previous id when ``token`` is given, otherwise blank it."""

    if token is not None:
        REQUEST_ID_CONTEXT.reset(token)
    else:
        REQUEST_ID_CONTEXT.set("")
