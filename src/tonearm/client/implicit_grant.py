"""
Implicit grant.

The access token is handed to the application directly in the redirect URI
fragment, so finalizing needs no request. The token cannot be refreshed; once it
expires the user has to authorize the application again. Prefer the authorization
code flow with PKCE.
See https://developer.spotify.com/documentation/web-api/tutorials/implicit-flow
"""

import logging

from tonearm.client._flow import Flow, RefreshResult
from tonearm.client.oauth import ClientContext, PendingAuthorization, UserClientBuilder
from tonearm.client.request import AsyncClientMixin, BearerClient, SyncClientMixin
from tonearm.shared.token_store import TokenPair, TokenStore

logger = logging.getLogger(__name__)


class ImplicitGrantUserClient(BearerClient):
    def refresh_flow(self) -> Flow[RefreshResult]:
        logger.debug("Implicit grant access tokens cannot be refreshed")
        yield from ()
        return RefreshResult.INAPPLICABLE


class AsyncImplicitGrantUserClient(AsyncClientMixin, ImplicitGrantUserClient):
    pass


class SyncImplicitGrantUserClient(SyncClientMixin, ImplicitGrantUserClient):
    pass


class IncompleteImplicitGrantUserClient:
    """Implicit grant flow waiting for the user to authorize the application."""

    def __init__(self, context: ClientContext, authorization: PendingAuthorization):
        self._context = context
        self._authorization = authorization

    @property
    def state(self) -> str:
        return self._authorization.state

    def get_authorize_url(self) -> str:
        return self._authorization.authorize_url(self._context, "token")

    def finalize(self, access_token: str, state: str) -> AsyncImplicitGrantUserClient | SyncImplicitGrantUserClient:
        """
        Finalize the flow with the access token and state from the redirect URI fragment.

        Raises:
            StateMismatchError: If the state differs from the original state.
            StateTransitionError: If the client was already finalized.
        """
        self._authorization.consume(state)

        token_store = TokenStore(TokenPair(access_token=access_token))
        if self._context.is_async:
            return AsyncImplicitGrantUserClient(self._context, token_store)
        return SyncImplicitGrantUserClient(self._context, token_store)


class ImplicitGrantUserClientBuilder(UserClientBuilder):
    def build(self) -> IncompleteImplicitGrantUserClient:
        logger.debug("Starting implicit grant flow")
        return IncompleteImplicitGrantUserClient(self._context, self._pending_authorization())
