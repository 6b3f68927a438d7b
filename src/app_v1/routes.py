"""
Route table for the app-v1 service.
"""

import logging

from fastapi import APIRouter, Request

from .responses import json_response

APP_PATH = "/app-v1"
APP_PAYLOAD = {"message": "app-v1"}

# Every method is served on the one path
ROUTE_METHODS = ["GET", "HEAD", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "TRACE"]


def create_router(logger: logging.Logger) -> APIRouter:
    """
    Create the router holding the /app-v1 endpoint.

    Any other path falls through to FastAPI's default 404.
    """
    router = APIRouter(redirect_slashes=False)

    @router.api_route(APP_PATH, methods=ROUTE_METHODS, include_in_schema=False)
    async def app_v1(request: Request):
        path = request.url.path
        logger.debug(f"serving app-v1 http_path={path}", extra={"http_path": path})
        return json_response(200, APP_PAYLOAD, logger)

    return router
