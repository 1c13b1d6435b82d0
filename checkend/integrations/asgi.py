"""Starlette / FastAPI middleware for capturing exceptions and request context."""

from typing import Any, Dict, Optional

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ..dispatcher import Dispatcher, get_dispatcher
from ..filters.sanitize import SanitizeFilter

# Sensitive headers, never reported
FILTERED_HEADERS = ("cookie", "authorization", "x-api-key", "x-auth-token")

# Headers with no debugging value
EXCLUDED_HEADERS = ("host", "connection", "accept-encoding", "content-length")

FORWARDED_HEADERS = ("x-forwarded-for", "x-real-ip", "client-ip")


class CheckendMiddleware(BaseHTTPMiddleware):
    """
    Report unhandled exceptions raised while serving a request.

    Sets the request context before the handler runs and clears ambient
    state once the request is done.

    Usage:
        app.add_middleware(CheckendMiddleware)
    """

    def __init__(self, app, dispatcher: Optional[Dispatcher] = None):
        super().__init__(app)
        self._dispatcher = dispatcher

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher or get_dispatcher()

    async def dispatch(self, request: Request, call_next):
        dispatcher = self.dispatcher
        self._set_request_context(dispatcher, request)

        try:
            return await call_next(request)
        except Exception as exc:
            # notify may send inline; keep it off the event loop
            await run_in_threadpool(dispatcher.notify, exc)
            raise
        finally:
            dispatcher.clear()

    def _set_request_context(self, dispatcher: Dispatcher, request: Request) -> None:
        settings = dispatcher.settings
        if settings is None or not settings.send_request_data:
            return

        sanitize = SanitizeFilter(settings.filter_keys)
        url = request.url

        request_data: Dict[str, Any] = {
            "url": str(url),
            "method": request.method,
            "path": url.path,
        }

        if url.query:
            request_data["query_string"] = url.query

        headers = self._extract_headers(request, sanitize)
        if headers:
            request_data["headers"] = headers

        if request.query_params:
            request_data["params"] = sanitize.filter(dict(request.query_params))

        client_ip = self._get_client_ip(request)
        if client_ip:
            request_data["remote_ip"] = client_ip

        for header, key in (
            ("user-agent", "user_agent"),
            ("referer", "referer"),
            ("content-type", "content_type"),
        ):
            value = request.headers.get(header)
            if value:
                request_data[key] = value

        dispatcher.set_request(request_data)

    def _extract_headers(self, request: Request, sanitize: SanitizeFilter) -> Dict[str, Any]:
        headers = {}
        for name, value in request.headers.items():
            lower_name = name.lower()
            if lower_name in FILTERED_HEADERS or lower_name in EXCLUDED_HEADERS:
                continue
            headers.setdefault(name, value)
        return sanitize.filter(headers)

    def _get_client_ip(self, request: Request) -> Optional[str]:
        """Get client IP, preferring proxy headers."""
        for header in FORWARDED_HEADERS:
            forwarded = request.headers.get(header)
            if forwarded:
                ip = forwarded.split(",")[0].strip()
                if ip:
                    return ip

        if request.client:
            return request.client.host

        return None
