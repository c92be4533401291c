"""Factories for the HTTP clients the library creates when the caller supplies none."""

from typing import Any

import httpx

from tonearm.settings import ClientSettings


def _client_kwargs(settings: ClientSettings) -> dict[str, Any]:
    return {
        "follow_redirects": True,
        "timeout": httpx.Timeout(settings.timeout),
        "headers": {"Accept": "application/json"},
    }


def create_async_http_client(settings: ClientSettings) -> httpx.AsyncClient:
    """Create an httpx.AsyncClient with the library's defaults."""
    return httpx.AsyncClient(**_client_kwargs(settings))


def create_sync_http_client(settings: ClientSettings) -> httpx.Client:
    """Create a blocking httpx.Client with the library's defaults."""
    return httpx.Client(**_client_kwargs(settings))
