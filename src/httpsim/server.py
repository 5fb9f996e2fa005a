# src/httpsim/server.py
"""Starlette application wrapping an upstream (or echo endpoint) in the simulator.

Usage:
    from httpsim.config import load_file
    from httpsim.server import SimulatorServer

    server = SimulatorServer(load_file("httpsim.yaml"), upstream="http://127.0.0.1:8080")
    app = server.app

    # Republish after editing the file
    server.reload("httpsim.yaml")
"""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import httpx
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from httpsim.config import Config, load_file
from httpsim.durations import format_duration
from httpsim.effects import Sleeper
from httpsim.logging import get_logger
from httpsim.middleware import HTTPSimMiddleware, outcome_from_request
from httpsim.randomness import RandProvider

logger = get_logger(__name__)

_ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE", "CONNECT"]

# RFC 9110 section 7.6.1 connection-specific headers, never forwarded.
_HOP_BY_HOP = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "proxy-connection",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)


def _forwardable(headers: Any) -> list[tuple[str, str]]:
    return [(name, value) for name, value in headers.multi_items() if name.lower() not in _HOP_BY_HOP]


class SimulatorServer:
    """HTTP simulator in front of an upstream service.

    Without an upstream, requests reaching the inner app are answered with a
    JSON echo of the request and the simulator's outcome.
    """

    def __init__(
        self,
        config: Config,
        *,
        upstream: str | None = None,
        sleeper: Sleeper | None = None,
        rand: RandProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the server.

        Args:
            config: Initial configuration snapshot.
            upstream: Base URL requests are proxied to; None serves the echo endpoint.
            sleeper: Delay implementation passed to the middleware.
            rand: Randomness provider passed to the middleware.
            transport: httpx transport override (tests use httpx.MockTransport).
            timeout: Upstream request timeout in seconds.
        """
        self._upstream = upstream.rstrip("/") if upstream is not None else None
        self._transport = transport
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None
        self._inner = self._create_inner_app()
        self._middleware = HTTPSimMiddleware(self._inner, config, sleeper=sleeper, rand=rand)

    def _create_inner_app(self) -> Starlette:
        endpoint = self._proxy_endpoint if self._upstream is not None else self._echo_endpoint
        routes = [Route("/{path:path}", endpoint, methods=_ALL_METHODS)]
        lifespan = self._lifespan if self._upstream is not None else None
        return Starlette(debug=False, routes=routes, lifespan=lifespan)

    @contextlib.asynccontextmanager
    async def _lifespan(self, app: Starlette) -> AsyncIterator[None]:
        async with self._open_client():
            yield

    @contextlib.asynccontextmanager
    async def _open_client(self) -> AsyncIterator[httpx.AsyncClient]:
        client = httpx.AsyncClient(transport=self._transport, timeout=self._timeout, follow_redirects=False)
        self._client = client
        try:
            yield client
        finally:
            self._client = None
            await client.aclose()

    @property
    def app(self) -> HTTPSimMiddleware:
        """The ASGI application (simulator wrapping the inner app)."""
        return self._middleware

    @property
    def middleware(self) -> HTTPSimMiddleware:
        return self._middleware

    @property
    def config(self) -> Config:
        return self._middleware.config

    def set_config(self, config: Config) -> None:
        """Publish a new configuration snapshot."""
        self._middleware.set_config(config)

    def reload(self, path: str | Path) -> Config:
        """Load a config file and publish it.

        The current snapshot stays in place if loading fails.

        Raises:
            ConfigError: If the file cannot be loaded.
        """
        config = load_file(path)
        self.set_config(config)
        return config

    # === Endpoint handlers ===

    async def _echo_endpoint(self, request: Request) -> JSONResponse:
        """Describe the request and what the simulator did to it."""
        outcome = outcome_from_request(request)
        return JSONResponse(
            {
                "method": request.method,
                "path": request.url.path,
                "query": [list(item) for item in request.query_params.multi_items()],
                "headers": [list(item) for item in request.headers.items()],
                "httpsim": {
                    "matched_index": outcome.matched_index,
                    "delay": format_duration(outcome.delay_ns),
                    "replaced": outcome.replaced,
                },
            }
        )

    async def _proxy_endpoint(self, request: Request) -> Response:
        """Forward the request to the upstream and relay its response."""
        if self._client is None:
            async with self._open_client() as client:
                return await self._forward(client, request)
        return await self._forward(self._client, request)

    async def _forward(self, client: httpx.AsyncClient, request: Request) -> Response:
        url = f"{self._upstream}{request.url.path}"
        if request.url.query:
            url = f"{url}?{request.url.query}"
        headers = [(name, value) for name, value in _forwardable(request.headers) if name.lower() != "host"]
        try:
            upstream_response = await client.request(
                request.method,
                url,
                headers=headers,
                content=await request.body(),
            )
        except httpx.RequestError as e:
            logger.warning("upstream request failed", url=url, error=str(e))
            return Response(f"upstream request failed: {e}", status_code=502, media_type="text/plain")

        response = Response(content=upstream_response.content, status_code=upstream_response.status_code)
        # Body is already decoded by httpx.
        skip = _HOP_BY_HOP | {"content-length", "content-encoding"}
        for name, value in upstream_response.headers.multi_items():
            if name.lower() not in skip:
                response.headers.append(name, value)
        return response


def create_app(config: Config, **kwargs: Any) -> HTTPSimMiddleware:
    """Create the simulator ASGI application.

    Keyword arguments are passed to SimulatorServer.
    """
    return SimulatorServer(config, **kwargs).app
