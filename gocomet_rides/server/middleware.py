from __future__ import annotations

import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Propagates X-Request-ID and sets conservative response headers."""

    header = "X-Request-ID"

    async def dispatch(self, request: Request, call_next):
        rid = (request.headers.get(self.header) or "").strip()[:64] or uuid.uuid4().hex
        request.state.request_id = rid
        resp: Response = await call_next(request)
        resp.headers.setdefault(self.header, rid)
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        if request.method.upper() in ("POST", "PUT", "PATCH", "DELETE"):
            resp.headers.setdefault("Cache-Control", "no-store")
        else:
            resp.headers.setdefault("Cache-Control", "no-cache, max-age=0")
        return resp
