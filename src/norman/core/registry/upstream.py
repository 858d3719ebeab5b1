"""
HTTP client for upstream npm registries.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

import httpx

from norman.core.npmrc import NpmConfig

logger = logging.getLogger(__name__)

# Request headers that describe the client's connection to the proxy
SKIPPED_REQUEST_HEADERS = frozenset(
    {"host", "accept-encoding", "connection", "content-length"}
)

# Response headers invalidated once the body has been decoded or rewritten
SKIPPED_RESPONSE_HEADERS = frozenset(
    {"content-encoding", "transfer-encoding", "content-length", "connection"}
)

UPSTREAM_TIMEOUT = httpx.Timeout(60.0, connect=10.0)


def filter_headers(headers: Iterable[tuple[str, str]], skipped: frozenset[str]) -> list[tuple[str, str]]:
    return [(k, v) for k, v in headers if k.lower() not in skipped]


class UpstreamClient:
    """
    Fetches packuments and tarballs from upstream registries.

    Request headers from npm are forwarded; a bearer token is attached when
    .npmrc configures one for the target host.
    """

    def __init__(self, npm_config: NpmConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.npm_config = npm_config
        self.transport = transport

    def request_headers(self, url: str, incoming: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
        headers = filter_headers(incoming, SKIPPED_REQUEST_HEADERS)
        token = self.npm_config.token_for_url(url)
        if token:
            headers = [(k, v) for k, v in headers if k.lower() != "authorization"]
            headers.append(("authorization", f"Bearer {token}"))
        return headers

    async def get(self, url: str, incoming: Iterable[tuple[str, str]] = ()) -> httpx.Response:
        """
        GET ``url`` and read the whole body.

        Raises:
            httpx.HTTPError: On transport failures (HTTP error statuses are returned)
        """
        logger.debug("GET %s", url)
        async with httpx.AsyncClient(
            transport=self.transport,
            follow_redirects=True,
            timeout=UPSTREAM_TIMEOUT,
        ) as client:
            response = await client.get(url, headers=self.request_headers(url, incoming))
        logger.debug("GET %s -> %d", url, response.status_code)
        return response
