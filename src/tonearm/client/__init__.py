from tonearm.client._flow import RefreshResult
from tonearm.client.authorization_code import (
    AsyncAuthorizationCodeUserClient,
    AsyncIncompleteAuthorizationCodeUserClient,
    AuthorizationCodeUserClientBuilder,
    SyncAuthorizationCodeUserClient,
    SyncIncompleteAuthorizationCodeUserClient,
)
from tonearm.client.base import (
    AsyncSpotifyClient,
    Credentials,
    SpotifyClientBuilder,
    SpotifyClientWithSecretBuilder,
    SyncSpotifyClient,
)
from tonearm.client.client_credentials import AsyncSpotifyClientWithSecret, SyncSpotifyClientWithSecret
from tonearm.client.implicit_grant import (
    AsyncImplicitGrantUserClient,
    ImplicitGrantUserClientBuilder,
    IncompleteImplicitGrantUserClient,
    SyncImplicitGrantUserClient,
)
from tonearm.client.oauth import ClientContext
from tonearm.client.request import RequestSigner, decode_response

# every client that can make authenticated API requests
AuthenticatedClient = (
    AsyncSpotifyClientWithSecret
    | SyncSpotifyClientWithSecret
    | AsyncAuthorizationCodeUserClient
    | SyncAuthorizationCodeUserClient
    | AsyncImplicitGrantUserClient
    | SyncImplicitGrantUserClient
)

__all__ = [
    "AsyncAuthorizationCodeUserClient",
    "AsyncImplicitGrantUserClient",
    "AsyncIncompleteAuthorizationCodeUserClient",
    "AsyncSpotifyClient",
    "AsyncSpotifyClientWithSecret",
    "AuthenticatedClient",
    "AuthorizationCodeUserClientBuilder",
    "ClientContext",
    "Credentials",
    "ImplicitGrantUserClientBuilder",
    "IncompleteImplicitGrantUserClient",
    "RefreshResult",
    "RequestSigner",
    "SpotifyClientBuilder",
    "SpotifyClientWithSecretBuilder",
    "SyncAuthorizationCodeUserClient",
    "SyncImplicitGrantUserClient",
    "SyncIncompleteAuthorizationCodeUserClient",
    "SyncSpotifyClient",
    "SyncSpotifyClientWithSecret",
    "decode_response",
]
