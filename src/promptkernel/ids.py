"""Request ids shared by the log context and the X-Request-Id header."""

from uuid import uuid4

import structlog

REQUEST_ID_PREFIX = "req"


def new_request_id() -> str:
    return f"{REQUEST_ID_PREFIX}_{uuid4().hex}"


def current_request_id() -> str:
    """The request id bound into the log context, or a fresh one outside a request."""
    bound = structlog.contextvars.get_contextvars().get("request_id")
    if isinstance(bound, str) and bound:
        return bound
    return new_request_id()
