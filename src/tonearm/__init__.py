from tonearm.client import (
    AsyncSpotifyClient,
    AsyncSpotifyClientWithSecret,
    AuthenticatedClient,
    Credentials,
    RefreshResult,
    SpotifyClientBuilder,
    SyncSpotifyClient,
    SyncSpotifyClientWithSecret,
)
from tonearm.errors import SpotifyError
from tonearm.model import narrow
from tonearm.scope import Scope
from tonearm.settings import ClientSettings

__all__ = [
    "AsyncSpotifyClient",
    "AsyncSpotifyClientWithSecret",
    "AuthenticatedClient",
    "ClientSettings",
    "Credentials",
    "RefreshResult",
    "Scope",
    "SpotifyClientBuilder",
    "SpotifyError",
    "SyncSpotifyClient",
    "SyncSpotifyClientWithSecret",
    "narrow",
]
