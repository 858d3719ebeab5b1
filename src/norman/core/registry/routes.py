"""
npm registry protocol routes.

- GET /tarballs/{package}, /tarballs/{org}/{package} - tarball downloads
- GET /{package}, /{org}/{package} - packuments

Tarball routes are registered first so ``/tarballs/x`` is never taken for
the packument of a scoped package.
"""

from __future__ import annotations

import json
import logging

import httpx
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse, JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from norman.core.context import ServiceContext
from norman.core.registry.cache import TarballCache
from norman.core.registry.packument import (
    PACKUMENT_MEDIA_TYPES,
    local_packument,
    media_type,
    negotiate_packument_type,
    rewrite_tarball_urls,
)
from norman.core.registry.paths import registry_for_package
from norman.core.registry.upstream import SKIPPED_RESPONSE_HEADERS, UpstreamClient, filter_headers

logger = logging.getLogger(__name__)

router = APIRouter()

TARBALL_MEDIA_TYPE = "application/octet-stream"


def _ctx(request: Request) -> ServiceContext:
    return request.app.state.ctx


def _upstream(request: Request) -> UpstreamClient:
    return request.app.state.upstream


def _cache(request: Request) -> TarballCache:
    return request.app.state.tarball_cache


def proxy_address(request: Request) -> str:
    """Base URL clients reached this proxy at, without a trailing slash."""
    return str(request.base_url).rstrip("/")


def _forward(upstream: httpx.Response, content: bytes | None = None) -> Response:
    headers = dict(filter_headers(upstream.headers.multi_items(), SKIPPED_RESPONSE_HEADERS))
    return Response(
        content=upstream.content if content is None else content,
        status_code=upstream.status_code,
        headers=headers,
    )


async def serve_packument(package_name: str, request: Request) -> Response:
    ctx = _ctx(request)
    address = proxy_address(request)

    module = ctx.modules.get(package_name)
    if module is not None:
        content_type = negotiate_packument_type(request.headers.get("accept"))
        packument = await run_in_threadpool(local_packument, module, address)
        return JSONResponse(packument, media_type=content_type)

    registry = registry_for_package(package_name, ctx.npm_config)
    url = f"{registry.rstrip('/')}/{package_name}"
    upstream = await _upstream(request).get(url, request.headers.items())

    if not upstream.is_success:
        logger.info("Upstream answered %d for %s", upstream.status_code, url)
        return _forward(upstream)

    if media_type(upstream.headers.get("content-type", "")) not in PACKUMENT_MEDIA_TYPES:
        return _forward(upstream)

    packument = rewrite_tarball_urls(upstream.json(), package_name, address)
    return _forward(upstream, content=json.dumps(packument).encode("utf-8"))


async def serve_tarball(package_name: str, request: Request) -> Response:
    ctx = _ctx(request)

    module = ctx.modules.get(package_name)
    if module is not None:
        tarball = await run_in_threadpool(ctx.packager.pack, module)
        return FileResponse(tarball, media_type=TARBALL_MEDIA_TYPE)

    url = request.query_params.get("url")
    if not url:
        raise HTTPException(status_code=404, detail=f"Unknown package {package_name}")

    cache = _cache(request)
    cached = cache.get(url)
    if cached is not None:
        logger.debug("Serving %s from cache", url)
        return FileResponse(cached, media_type=TARBALL_MEDIA_TYPE)

    upstream = await _upstream(request).get(url, request.headers.items())
    if upstream.status_code == 200:
        await run_in_threadpool(cache.put, url, upstream.content)
    else:
        logger.info("Upstream answered %d for %s", upstream.status_code, url)
    return _forward(upstream)


@router.get("/tarballs/{package}")
async def get_tarball(package: str, request: Request) -> Response:
    return await serve_tarball(package, request)


@router.get("/tarballs/{org}/{package}")
async def get_scoped_tarball(org: str, package: str, request: Request) -> Response:
    return await serve_tarball(f"{org}/{package}", request)


@router.get("/{package}")
async def get_packument(package: str, request: Request) -> Response:
    return await serve_packument(package, request)


@router.get("/{org}/{package}")
async def get_scoped_packument(org: str, package: str, request: Request) -> Response:
    return await serve_packument(f"{org}/{package}", request)
