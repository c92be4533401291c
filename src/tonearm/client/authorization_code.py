"""
Authorization code grant, with or without PKCE.

The user authorizes the application in the browser and comes back through the
redirect URI with an authorization code, which is exchanged for an access token and
a refresh token. Without PKCE the token requests are authenticated with the client
secret; with PKCE the client ID and a code verifier are sent instead, so the secret
never needs to be present.
See https://developer.spotify.com/documentation/web-api/tutorials/code-flow
and https://developer.spotify.com/documentation/web-api/tutorials/code-pkce-flow
"""

import logging

from tonearm.client._flow import Flow, RefreshResult, expect_response, run_async, run_sync
from tonearm.client.oauth import (
    ClientContext,
    PendingAuthorization,
    UserClientBuilder,
    build_token_request,
    parse_token_response,
    token_form,
)
from tonearm.client.pkce import PKCEParameters
from tonearm.client.request import AsyncClientMixin, BearerClient, SyncClientMixin
from tonearm.errors import InternalError, InvalidAuthorizationCodeError, InvalidRefreshTokenError, ResponseDecodeError
from tonearm.shared.auth import OAuthToken
from tonearm.shared.token_store import TokenPair, TokenStore

logger = logging.getLogger(__name__)


def refresh_token_flow(context: ClientContext, refresh_token: str, client_id: str | None) -> Flow[OAuthToken]:
    """
    Exchange a refresh token for a new access token.

    Args:
        context: The client context.
        refresh_token: The refresh token.
        client_id: Sent in the form when PKCE is used. The request is authenticated
            with the client secret if None.
    """
    logger.debug("Refreshing authorization code access token")
    form = token_form(grant_type="refresh_token", refresh_token=refresh_token, client_id=client_id)
    request = build_token_request(context, form, basic_auth=client_id is None)
    response = expect_response((yield request))
    return parse_token_response(response, InvalidRefreshTokenError)


class AuthorizationCodeUserClient(BearerClient):
    """Client authorized by a user through the authorization code flow."""

    def __init__(self, context: ClientContext, token_store: TokenStore, client_id_for_refresh: str | None = None):
        super().__init__(context, token_store)
        # only set when PKCE is used
        self._client_id_for_refresh = client_id_for_refresh

    def get_refresh_token(self) -> str:
        """Return the current refresh token, e.g. to resume the session later."""
        refresh_token = self._token_store.refresh_token
        if refresh_token is None:
            raise InternalError("Authorization code client has no refresh token")
        return refresh_token

    def refresh_flow(self) -> Flow[RefreshResult]:
        token = yield from refresh_token_flow(self._context, self.get_refresh_token(), self._client_id_for_refresh)
        self._token_store.update(token)
        return RefreshResult.REFRESHED


class AsyncAuthorizationCodeUserClient(AsyncClientMixin, AuthorizationCodeUserClient):
    @classmethod
    async def new_with_refresh_token(
        cls, context: ClientContext, refresh_token: str, client_id: str | None = None
    ) -> "AsyncAuthorizationCodeUserClient":
        """
        Resume a session from a refresh token. A new access token is requested before
        the client is returned.

        Args:
            context: The client context.
            refresh_token: A refresh token from an earlier session.
            client_id: The client ID if the session was authorized with PKCE.
        """
        token = await run_async(
            refresh_token_flow(context, refresh_token, client_id), context.async_http_client, None
        )
        return cls(context, TokenStore(TokenPair.from_response(token, refresh_token)), client_id)


class SyncAuthorizationCodeUserClient(SyncClientMixin, AuthorizationCodeUserClient):
    @classmethod
    def new_with_refresh_token(
        cls, context: ClientContext, refresh_token: str, client_id: str | None = None
    ) -> "SyncAuthorizationCodeUserClient":
        token = run_sync(refresh_token_flow(context, refresh_token, client_id), context.sync_http_client, None)
        return cls(context, TokenStore(TokenPair.from_response(token, refresh_token)), client_id)


class IncompleteAuthorizationCodeUserClient:
    """Authorization code flow waiting for the user to authorize the application."""

    def __init__(self, context: ClientContext, authorization: PendingAuthorization, pkce: PKCEParameters | None):
        self._context = context
        self._authorization = authorization
        self._pkce = pkce

    @property
    def state(self) -> str:
        return self._authorization.state

    @property
    def _client_id_for_refresh(self) -> str | None:
        return self._context.credentials.client_id if self._pkce else None

    def get_authorize_url(self) -> str:
        """Return the URL the user should be sent to in order to authorize the application."""
        extra_params = []
        if self._pkce:
            extra_params = [
                ("code_challenge_method", self._pkce.code_challenge_method),
                ("code_challenge", self._pkce.code_challenge),
            ]
        return self._authorization.authorize_url(self._context, "code", extra_params)

    def _finalize_flow(self, code: str, state: str) -> Flow[TokenPair]:
        self._authorization.consume(state)

        logger.debug("Exchanging authorization code for tokens")
        form = token_form(
            grant_type="authorization_code",
            redirect_uri=self._authorization.redirect_uri,
            code=code,
            client_id=self._client_id_for_refresh,
            code_verifier=self._pkce.code_verifier if self._pkce else None,
        )
        request = build_token_request(self._context, form, basic_auth=self._pkce is None)
        response = expect_response((yield request))
        token = parse_token_response(response, InvalidAuthorizationCodeError)

        if token.refresh_token is None:
            raise ResponseDecodeError("Authorization code token response is missing the refresh token")
        return TokenPair.from_response(token)


class AsyncIncompleteAuthorizationCodeUserClient(IncompleteAuthorizationCodeUserClient):
    async def finalize(self, code: str, state: str) -> AsyncAuthorizationCodeUserClient:
        """
        Finalize the flow with the code and state from the redirect URI callback.

        Raises:
            StateMismatchError: If the state differs from the original state. No
                request is made.
            StateTransitionError: If the client was already finalized.
            InvalidAuthorizationCodeError: If the code was rejected.
        """
        tokens = await run_async(self._finalize_flow(code, state), self._context.async_http_client, None)
        return AsyncAuthorizationCodeUserClient(self._context, TokenStore(tokens), self._client_id_for_refresh)


class SyncIncompleteAuthorizationCodeUserClient(IncompleteAuthorizationCodeUserClient):
    def finalize(self, code: str, state: str) -> SyncAuthorizationCodeUserClient:
        tokens = run_sync(self._finalize_flow(code, state), self._context.sync_http_client, None)
        return SyncAuthorizationCodeUserClient(self._context, TokenStore(tokens), self._client_id_for_refresh)


class AuthorizationCodeUserClientBuilder(UserClientBuilder):
    """Builder for an incomplete authorization code client."""

    def __init__(self, context: ClientContext, redirect_uri: str, *, pkce: bool = False):
        super().__init__(context, redirect_uri)
        self._pkce = pkce

    def build(self) -> AsyncIncompleteAuthorizationCodeUserClient | SyncIncompleteAuthorizationCodeUserClient:
        authorization = self._pending_authorization()
        pkce = PKCEParameters.generate() if self._pkce else None
        logger.debug(f"Starting authorization code flow (PKCE: {self._pkce})")

        if self._context.is_async:
            return AsyncIncompleteAuthorizationCodeUserClient(self._context, authorization, pkce)
        return SyncIncompleteAuthorizationCodeUserClient(self._context, authorization, pkce)
