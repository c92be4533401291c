"""
Sans-IO flows and the drivers that run them.

Token requests and the resilient request loop are written once, as generators that
yield the I/O they need (an httpx.Request to send, or a Sleep) and receive the
result. The async driver runs them on an httpx.AsyncClient, the blocking driver on
an httpx.Client, so both execution modes share the same state machine and retry
semantics.
"""

import logging
from collections.abc import Awaitable, Callable, Generator
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, TypeVar

import httpx

from tonearm.errors import HttpError, InternalError, RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Sleep:
    """Effect asking the driver to wait before the flow continues."""

    seconds: int


Effect = httpx.Request | Sleep
Flow = Generator[Effect, httpx.Response | None, T]

AsyncSleep = Callable[[float], Awaitable[Any]]
SyncSleep = Callable[[float], Any]


class RefreshResult(Enum):
    """Outcome of asking a client to refresh its access token."""

    REFRESHED = auto()
    # the client has no way of refreshing its token
    INAPPLICABLE = auto()


def expect_response(response: httpx.Response | None) -> httpx.Response:
    """Check that the driver resumed a flow with the response to the request it yielded."""
    if response is None:
        raise InternalError("Flow was resumed without a response")
    return response


async def run_async(flow: Flow[T], http_client: httpx.AsyncClient, sleep: AsyncSleep | None) -> T:
    """
    Drive a flow to completion with an async HTTP client.

    Args:
        flow: The flow to run.
        http_client: Client used to send every request the flow yields.
        sleep: Awaitable sleep used for Sleep effects. If None, a Sleep effect
            raises RateLimitError instead.

    Returns:
        The flow's return value.
    """
    try:
        effect = next(flow)
        while True:
            if isinstance(effect, Sleep):
                if sleep is None:
                    raise RateLimitError(effect.seconds)
                await sleep(effect.seconds)
                effect = flow.send(None)
            elif isinstance(effect, httpx.Request):
                try:
                    response = await http_client.send(effect)
                except httpx.HTTPError as e:
                    raise HttpError(str(e)) from e
                effect = flow.send(response)
            else:
                raise InternalError(f"Flow yielded an unknown effect: {effect!r}")
    except StopIteration as stop:
        return stop.value
    finally:
        flow.close()


def run_sync(flow: Flow[T], http_client: httpx.Client, sleep: SyncSleep | None) -> T:
    """Drive a flow to completion with a blocking HTTP client. See run_async."""
    try:
        effect = next(flow)
        while True:
            if isinstance(effect, Sleep):
                if sleep is None:
                    raise RateLimitError(effect.seconds)
                sleep(effect.seconds)
                effect = flow.send(None)
            elif isinstance(effect, httpx.Request):
                try:
                    response = http_client.send(effect)
                except httpx.HTTPError as e:
                    raise HttpError(str(e)) from e
                effect = flow.send(response)
            else:
                raise InternalError(f"Flow yielded an unknown effect: {effect!r}")
    except StopIteration as stop:
        return stop.value
    finally:
        flow.close()
