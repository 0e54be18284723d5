"""
VetPintar Backend — Request ID Middleware
===========================================

Every request carries a correlation ID: the caller's X-Request-ID when it
is a sane token, otherwise a fresh 8-character hex ID. The ID lives in
`request_id_var` for the duration of the request, so the access log and the
exception handlers in main.py can stamp it on their output, and it is echoed
back in the X-Request-ID response header.
"""

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# Proxies and frontends send UUIDs or short hex IDs; anything else is replaced
_VALID_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


def resolve_request_id(inbound: str) -> str:
    if inbound and _VALID_ID.match(inbound):
        return inbound
    return new_request_id()


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = resolve_request_id(request.headers.get(REQUEST_ID_HEADER, ""))
        request.state.request_id = rid

        # Left set after call_next: the fallback 500 handler runs outside it
        request_id_var.set(rid)

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
