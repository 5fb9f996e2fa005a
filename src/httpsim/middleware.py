# src/httpsim/middleware.py
"""ASGI middleware that delays or replaces matching requests.

Usage:
    from httpsim import HTTPSimMiddleware, load_file

    app = HTTPSimMiddleware(app, load_file("httpsim.yaml"))

    # Later, from any thread or task:
    app.set_config(load_file("httpsim.yaml"))

Downstream handlers read what happened from the scope:

    outcome = outcome_from_request(request)
    outcome.matched_index, outcome.delay_ns, outcome.replaced
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import structlog
from starlette.requests import Request
from starlette.types import ASGIApp, Receive, Scope, Send

from httpsim.config import Config
from httpsim.durations import format_duration
from httpsim.effects import AsyncioSleeper, Sleeper, apply_effect
from httpsim.matching import RequestDescriptor, match
from httpsim.randomness import DEFAULT_RAND, RandProvider

logger = structlog.get_logger(__name__)

OUTCOME_SCOPE_KEY = "httpsim.outcome"


@dataclass(frozen=True, slots=True)
class MatchOutcome:
    """What the middleware did to one request.

    Attributes:
        matched_index: Index of the matched resource, or None.
        delay_ns: Applied delay in nanoseconds.
        replaced: Whether the response was written by the middleware.
    """

    matched_index: int | None = None
    delay_ns: int = 0
    replaced: bool = False


NO_MATCH = MatchOutcome()


def outcome_from_scope(scope: Mapping[str, Any]) -> MatchOutcome:
    """Return the outcome attached to a scope, or the no-match default."""
    outcome = scope.get(OUTCOME_SCOPE_KEY)
    if outcome is None:
        return NO_MATCH
    return outcome


def outcome_from_request(request: Request) -> MatchOutcome:
    """Return the outcome attached to a Starlette request."""
    return outcome_from_scope(request.scope)


class HTTPSimMiddleware:
    """Pure ASGI middleware evaluating resources against each HTTP request.

    The config is read once per request, so a concurrent ``set_config``
    never affects a request that already started.
    """

    def __init__(
        self,
        app: ASGIApp,
        config: Config,
        *,
        sleeper: Sleeper | None = None,
        rand: RandProvider | None = None,
    ) -> None:
        """Initialize the middleware.

        Args:
            app: Next ASGI application.
            config: Initial configuration snapshot.
            sleeper: Delay implementation (default: AsyncioSleeper).
            rand: Randomness provider (default: DEFAULT_RAND).
        """
        self.app = app
        self._config = config
        self._sleeper = sleeper if sleeper is not None else AsyncioSleeper()
        self._rand = rand if rand is not None else DEFAULT_RAND

    @property
    def config(self) -> Config:
        """Current configuration snapshot."""
        return self._config

    def set_config(self, config: Config) -> None:
        """Publish a new configuration snapshot.

        Safe to call while requests are in flight.
        """
        self._config = config
        logger.info("httpsim config published", resources=len(config.resources))

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        config = self._config
        index = match(RequestDescriptor.from_scope(scope), config)
        if index is None:
            await self.app(scope, receive, send)
            return

        outcome = MatchOutcome(matched_index=index)
        effect = config.resources[index].effect
        if effect is not None:
            delay_ns, replaced = await apply_effect(
                effect,
                scope,
                receive,
                send,
                rand=self._rand,
                sleeper=self._sleeper,
            )
            outcome = MatchOutcome(matched_index=index, delay_ns=delay_ns, replaced=replaced)

        logger.debug(
            "httpsim request matched",
            method=scope["method"],
            path=scope["path"],
            resource=index,
            delay=format_duration(outcome.delay_ns),
            replaced=outcome.replaced,
        )
        if outcome.replaced:
            return

        await self.app({**scope, OUTCOME_SCOPE_KEY: outcome}, receive, send)
