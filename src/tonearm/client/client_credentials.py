"""
Client credentials grant.

The application authenticates as itself with its client ID and secret. The resulting
client can call every endpoint that does not need user authorization, and is the
entry point for the authorization code flow without PKCE.
See https://developer.spotify.com/documentation/web-api/tutorials/client-credentials-flow
"""

import logging

from tonearm.client._flow import Flow, RefreshResult, expect_response, run_async, run_sync
from tonearm.client.authorization_code import (
    AsyncAuthorizationCodeUserClient,
    AuthorizationCodeUserClientBuilder,
    SyncAuthorizationCodeUserClient,
)
from tonearm.client.oauth import ClientContext, build_token_request, parse_token_response, token_form
from tonearm.client.request import AsyncClientMixin, BearerClient, SyncClientMixin
from tonearm.errors import InvalidRefreshTokenError, SpotifyError
from tonearm.shared.auth import OAuthToken
from tonearm.shared.token_store import TokenPair, TokenStore

logger = logging.getLogger(__name__)


def client_credentials_token_flow(
    context: ClientContext, invalid_grant_error: type[SpotifyError] | None = None
) -> Flow[OAuthToken]:
    logger.debug("Requesting client credentials access token")
    request = build_token_request(context, token_form(grant_type="client_credentials"), basic_auth=True)
    response = expect_response((yield request))
    return parse_token_response(response, invalid_grant_error)


class ClientCredentialsClient(BearerClient):
    """Client authenticated with the application's own credentials."""

    def refresh_flow(self) -> Flow[RefreshResult]:
        token = yield from client_credentials_token_flow(self._context, InvalidRefreshTokenError)
        self._token_store.update(token)
        return RefreshResult.REFRESHED


class AsyncSpotifyClientWithSecret(AsyncClientMixin, ClientCredentialsClient):
    @classmethod
    async def authenticate(cls, context: ClientContext) -> "AsyncSpotifyClientWithSecret":
        """Request an access token with the client credentials and return a ready client."""
        token = await run_async(client_credentials_token_flow(context), context.async_http_client, None)
        return cls(context, TokenStore(TokenPair.from_response(token)))

    def authorization_code_client(self, redirect_uri: str) -> AuthorizationCodeUserClientBuilder:
        """Return a builder for a user client authorized with the authorization code flow."""
        return AuthorizationCodeUserClientBuilder(self._context, redirect_uri)

    async def authorization_code_client_with_refresh_token(
        self, refresh_token: str
    ) -> AsyncAuthorizationCodeUserClient:
        """
        Return a user client for an existing session. The refresh token is used to
        get a new access token before the client is returned.
        """
        return await AsyncAuthorizationCodeUserClient.new_with_refresh_token(self._context, refresh_token)


class SyncSpotifyClientWithSecret(SyncClientMixin, ClientCredentialsClient):
    @classmethod
    def authenticate(cls, context: ClientContext) -> "SyncSpotifyClientWithSecret":
        token = run_sync(client_credentials_token_flow(context), context.sync_http_client, None)
        return cls(context, TokenStore(TokenPair.from_response(token)))

    def authorization_code_client(self, redirect_uri: str) -> AuthorizationCodeUserClientBuilder:
        return AuthorizationCodeUserClientBuilder(self._context, redirect_uri)

    def authorization_code_client_with_refresh_token(self, refresh_token: str) -> SyncAuthorizationCodeUserClient:
        return SyncAuthorizationCodeUserClient.new_with_refresh_token(self._context, refresh_token)
