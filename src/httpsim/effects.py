# src/httpsim/effects.py
"""Applying a matched resource's effect to a request.

The delay runs first and suspends only the current request. A replacement
is then written as one complete response and the request is not forwarded.

Production code uses AsyncioSleeper (the default). Tests inject
RecordingSleeper to observe delays without waiting for them.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from httpsim.config import Effect, Replace
from httpsim.durations import SECOND
from httpsim.randomness import RandProvider


class Sleeper(Protocol):
    """Suspends the calling request for a duration."""

    async def sleep(self, delay_ns: int) -> None:
        """Suspend for delay_ns nanoseconds."""
        ...


class AsyncioSleeper:
    """Production sleeper using asyncio.sleep()."""

    async def sleep(self, delay_ns: int) -> None:
        await asyncio.sleep(delay_ns / SECOND)


class RecordingSleeper:
    """Sleeper that records delays instead of waiting.

    Example:
        sleeper = RecordingSleeper()
        await sleeper.sleep(SECOND)
        assert sleeper.total_ns == SECOND
    """

    def __init__(self) -> None:
        self.calls: list[int] = []

    @property
    def total_ns(self) -> int:
        return sum(self.calls)

    async def sleep(self, delay_ns: int) -> None:
        self.calls.append(delay_ns)


def build_replacement(replace: Replace) -> Response:
    """Build the literal response for a replacement.

    Configured headers overwrite any header Starlette would set itself.
    """
    response = Response(
        content=replace.body.encode("utf-8") if replace.body is not None else None,
        status_code=replace.status_code,
    )
    for name, value in replace.headers.items():
        response.headers[name] = value
    return response


async def apply_effect(
    effect: Effect,
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    rand: RandProvider,
    sleeper: Sleeper,
) -> tuple[int, bool]:
    """Apply an effect to the current request.

    Args:
        effect: Effect of the matched resource.
        scope: ASGI scope of the request.
        receive: ASGI receive channel.
        send: ASGI send channel, written only when a replacement is configured.
        rand: Source for the delay sample.
        sleeper: Suspends the request for the sampled delay.

    Returns:
        Tuple of (sampled delay in nanoseconds, whether the response was replaced).
    """
    delay_ns = 0
    if effect.delay is not None:
        delay_ns = rand.sample_duration(effect.delay.min, effect.delay.max)
        await sleeper.sleep(delay_ns)

    if effect.replace is None:
        return delay_ns, False

    response = build_replacement(effect.replace)
    await response(scope, receive, send)
    return delay_ns, True
