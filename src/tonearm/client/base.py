"""
Entry points of the library.

A SpotifyClientBuilder with only a client ID builds a base client that can start the
user flows that need no secret (implicit grant, authorization code with PKCE). With
a client secret it authenticates through the client credentials flow and builds a
ready client that can also start the authorization code flow without PKCE.
"""

import time

import anyio
import httpx

from tonearm.client._flow import AsyncSleep, SyncSleep
from tonearm.client.authorization_code import (
    AsyncAuthorizationCodeUserClient,
    AuthorizationCodeUserClientBuilder,
    SyncAuthorizationCodeUserClient,
)
from tonearm.client.client_credentials import AsyncSpotifyClientWithSecret, SyncSpotifyClientWithSecret
from tonearm.client.implicit_grant import ImplicitGrantUserClientBuilder
from tonearm.client.oauth import ClientContext, Credentials
from tonearm.settings import ClientSettings
from tonearm.shared._httpx_utils import create_async_http_client, create_sync_http_client

__all__ = [
    "AsyncSpotifyClient",
    "Credentials",
    "SpotifyClientBuilder",
    "SpotifyClientWithSecretBuilder",
    "SyncSpotifyClient",
]


def _async_context(
    credentials: Credentials,
    settings: ClientSettings,
    http_client: httpx.AsyncClient | None,
    sleep: AsyncSleep | None,
) -> ClientContext:
    owns_http_client = http_client is None
    if http_client is None:
        http_client = create_async_http_client(settings)
    return ClientContext(credentials, settings, http_client, sleep, owns_http_client)


def _sync_context(
    credentials: Credentials,
    settings: ClientSettings,
    http_client: httpx.Client | None,
    sleep: SyncSleep | None,
) -> ClientContext:
    owns_http_client = http_client is None
    if http_client is None:
        http_client = create_sync_http_client(settings)
    return ClientContext(credentials, settings, http_client, sleep, owns_http_client)


class SpotifyClient:
    """Client holding only the application's client ID. It cannot call the API by itself."""

    def __init__(self, context: ClientContext):
        self._context = context

    @property
    def context(self) -> ClientContext:
        return self._context

    def implicit_grant_client(self, redirect_uri: str) -> ImplicitGrantUserClientBuilder:
        """
        Return a builder for a user client authorized with the implicit grant flow.

        The implicit grant is not recommended: the access token travels in the
        redirect URI and cannot be refreshed. Prefer authorization_code_client_with_pkce.
        """
        return ImplicitGrantUserClientBuilder(self._context, redirect_uri)

    def authorization_code_client_with_pkce(self, redirect_uri: str) -> AuthorizationCodeUserClientBuilder:
        """Return a builder for a user client authorized with the authorization code flow with PKCE."""
        return AuthorizationCodeUserClientBuilder(self._context, redirect_uri, pkce=True)


class AsyncSpotifyClient(SpotifyClient):
    async def authorization_code_client_with_refresh_token_and_pkce(
        self, refresh_token: str
    ) -> AsyncAuthorizationCodeUserClient:
        """
        Return a PKCE user client for an existing session. The refresh token is used
        to get a new access token before the client is returned.
        """
        return await AsyncAuthorizationCodeUserClient.new_with_refresh_token(
            self._context, refresh_token, self._context.credentials.client_id
        )

    async def aclose(self) -> None:
        if self._context.owns_http_client:
            await self._context.async_http_client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()


class SyncSpotifyClient(SpotifyClient):
    def authorization_code_client_with_refresh_token_and_pkce(
        self, refresh_token: str
    ) -> SyncAuthorizationCodeUserClient:
        return SyncAuthorizationCodeUserClient.new_with_refresh_token(
            self._context, refresh_token, self._context.credentials.client_id
        )

    def close(self) -> None:
        if self._context.owns_http_client:
            self._context.sync_http_client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class SpotifyClientBuilder:
    """
    Builder for the base clients.

    Args:
        client_id: The application's client ID.
        settings: Endpoint and timeout settings. Defaults to Spotify's public endpoints.
    """

    def __init__(self, client_id: str, settings: ClientSettings | None = None):
        self._client_id = client_id
        self._settings = settings or ClientSettings()

    def client_secret(self, client_secret: str) -> "SpotifyClientWithSecretBuilder":
        return SpotifyClientWithSecretBuilder(Credentials(self._client_id, client_secret), self._settings)

    def build_async(
        self, http_client: httpx.AsyncClient | None = None, sleep: AsyncSleep | None = anyio.sleep
    ) -> AsyncSpotifyClient:
        """
        Build an async client.

        Args:
            http_client: HTTP client to send requests with. A new one is created, and
                closed with the client, if not given.
            sleep: Used to wait out rate limits. With None, rate limits raise
                RateLimitError.
        """
        context = _async_context(Credentials(self._client_id), self._settings, http_client, sleep)
        return AsyncSpotifyClient(context)

    def build_sync(
        self, http_client: httpx.Client | None = None, sleep: SyncSleep | None = time.sleep
    ) -> SyncSpotifyClient:
        context = _sync_context(Credentials(self._client_id), self._settings, http_client, sleep)
        return SyncSpotifyClient(context)


class SpotifyClientWithSecretBuilder:
    """Builder for the clients authenticated with the client credentials flow."""

    def __init__(self, credentials: Credentials, settings: ClientSettings):
        self._credentials = credentials
        self._settings = settings

    async def build_async(
        self, http_client: httpx.AsyncClient | None = None, sleep: AsyncSleep | None = anyio.sleep
    ) -> AsyncSpotifyClientWithSecret:
        """
        Authenticate with the client credentials and build an async client.

        Raises:
            InvalidClientError: If the client ID or secret was rejected.
        """
        context = _async_context(self._credentials, self._settings, http_client, sleep)
        try:
            return await AsyncSpotifyClientWithSecret.authenticate(context)
        except Exception:
            if context.owns_http_client:
                await context.async_http_client.aclose()
            raise

    def build_sync(
        self, http_client: httpx.Client | None = None, sleep: SyncSleep | None = time.sleep
    ) -> SyncSpotifyClientWithSecret:
        context = _sync_context(self._credentials, self._settings, http_client, sleep)
        try:
            return SyncSpotifyClientWithSecret.authenticate(context)
        except Exception:
            if context.owns_http_client:
                context.sync_http_client.close()
            raise
