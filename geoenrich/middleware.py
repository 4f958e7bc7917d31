import uuid
from typing import Callable, Optional
from fastapi import Request, Response
from starlette.datastructures import MutableHeaders
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
from .config import MaxMindConfig
from .filter import GeoIpRequestFilter
from .logging_config import trace_id_var


class GeoIpMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that adds GeoIP headers before the request is routed"""

    def __init__(self, app: ASGIApp, config: Optional[MaxMindConfig] = None,
                 request_filter: Optional[GeoIpRequestFilter] = None):
        super().__init__(app)
        if request_filter is None:
            if config is None:
                raise ValueError("GeoIpMiddleware needs a config or a request_filter")
            request_filter = GeoIpRequestFilter(config)
        self.request_filter = request_filter

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = trace_id_var.set(trace_id)
        try:
            # bound to the scope, so downstream handlers see the new headers
            headers = MutableHeaders(scope=request.scope)
            self.request_filter.filter(headers)
            response = await call_next(request)
            response.headers["X-Request-ID"] = trace_id
            return response
        finally:
            trace_id_var.reset(token)
