"""
Request middleware: request logging and permissive CORS.

Both are Starlette BaseHTTPMiddleware subclasses and take the logger they
write to as a constructor argument.
"""

import logging

from fastapi import Request
from fastapi.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware

PREFLIGHT_ALLOW_HEADERS = ["*"]
PREFLIGHT_ALLOW_METHODS = ["GET", "HEAD", "POST", "PUT", "DELETE"]


def request_target(request: Request) -> str:
    """Path plus query string, as sent on the request line."""
    query = request.url.query
    if query:
        return f"{request.url.path}?{query}"
    return request.url.path


def is_preflight(request: Request) -> bool:
    return (
        request.method == "OPTIONS"
        and bool(request.headers.get("Access-Control-Request-Method"))
    )


def handle_preflight(request: Request, logger: logging.Logger) -> Response:
    """
    Answer a CORS preflight.

    The allow-origin header is the wildcard here, even though the CORS
    middleware reflects the Origin for every other request.
    """
    response = Response(status_code=200)
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Headers"] = ",".join(PREFLIGHT_ALLOW_HEADERS)
    response.headers["Access-Control-Allow-Methods"] = ",".join(PREFLIGHT_ALLOW_METHODS)

    path = request.url.path
    logger.info(f"preflight request http_path={path}", extra={"http_path": path})
    return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method and URL of every request before passing it on."""

    def __init__(self, app, logger: logging.Logger):
        super().__init__(app)
        self.logger = logger

    async def dispatch(self, request: Request, call_next):
        method = request.method
        url = request_target(request)
        self.logger.info(
            f"Run request http_method={method} http_url={url}",
            extra={"http_method": method, "http_url": url}
        )
        return await call_next(request)


class CORSReflectMiddleware(BaseHTTPMiddleware):
    """
    Reflects any Origin back in Access-Control-Allow-Origin.

    Every origin is accepted verbatim; there is no allow-list. Preflight
    requests (OPTIONS with Access-Control-Request-Method) are answered here
    and never reach the application.
    """

    def __init__(self, app, logger: logging.Logger):
        super().__init__(app)
        self.logger = logger

    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("Origin")
        if not origin:
            return await call_next(request)

        if is_preflight(request):
            return handle_preflight(request, self.logger)

        response = await call_next(request)
        response.headers["Access-Control-Allow-Origin"] = origin
        return response
