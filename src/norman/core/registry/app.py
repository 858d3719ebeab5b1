"""
FastAPI application for the local registry proxy.

Local failures (packaging, missing manifests, unreachable upstream) are
logged and answered with a generic 500; HTTP errors from upstream
registries are forwarded by the routes as they are.
"""

from __future__ import annotations

import logging

import httpx
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from norman import __version__
from norman.core.context import ServiceContext
from norman.core.exceptions import NormanError
from norman.core.registry import routes
from norman.core.registry.cache import TarballCache
from norman.core.registry.upstream import UpstreamClient

logger = logging.getLogger(__name__)


async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Error while serving %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_error", "message": "An internal server error occurred"},
    )


def create_app(
    ctx: ServiceContext,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """
    Create the registry proxy app.

    Args:
        ctx: Service context providing modules, npm config and the packager
        transport: Transport for upstream requests (tests pass a MockTransport)
    """
    app = FastAPI(
        title="norman registry proxy",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.ctx = ctx
    app.state.upstream = UpstreamClient(ctx.npm_config, transport)
    app.state.tarball_cache = TarballCache(ctx.cache_dir)

    app.include_router(routes.router)

    for exc_class in (NormanError, httpx.HTTPError, OSError):
        app.add_exception_handler(exc_class, internal_error_handler)

    return app
