"""
FastAPI application factory.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from starlette.middleware import Middleware

from . import __version__
from .core import Config
from .middleware import RequestLoggingMiddleware, CORSReflectMiddleware
from .routes import create_router


def create_app(config: Optional[Config] = None, logger: Optional[logging.Logger] = None) -> FastAPI:
    """
    Build the application.

    Middleware runs in list order, outermost first: every request is logged,
    including preflights the CORS layer answers on its own.
    """
    config = config or Config()
    logger = logger or logging.getLogger("app_v1")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting app-v1 on {config.address}")
        yield
        logger.info("Shutting down app-v1")

    middleware = [
        Middleware(RequestLoggingMiddleware, logger=logger),
        Middleware(CORSReflectMiddleware, logger=logger),
    ]

    app = FastAPI(
        title="app-v1",
        version=__version__,
        lifespan=lifespan,
        middleware=middleware,
        redirect_slashes=False,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.config = config
    app.state.logger = logger

    app.include_router(create_router(logger))
    return app


# For `uvicorn app_v1.app:app`
app = create_app()
