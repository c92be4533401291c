"""
Shared token storage for ready clients.

A TokenStore is owned by a ready client and shared by all of its clones. Reads
and writes go through a lock so a request never signs with a half-updated token
pair; the lock is never held across network I/O.
"""

import logging
import threading
import time
from dataclasses import dataclass

from tonearm.shared.auth import OAuthToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    """Access token with its optional refresh token."""

    access_token: str
    refresh_token: str | None = None
    expires_at: float | None = None  # Unix timestamp

    @classmethod
    def from_response(cls, token: OAuthToken, fallback_refresh_token: str | None = None) -> "TokenPair":
        """Build a pair from a token response, keeping the old refresh token if none was returned."""
        expires_at = time.time() + token.expires_in if token.expires_in is not None else None
        return cls(
            access_token=token.access_token,
            refresh_token=token.refresh_token or fallback_refresh_token,
            expires_at=expires_at,
        )


class TokenStore:
    """Internally synchronized holder of a TokenPair."""

    def __init__(self, tokens: TokenPair):
        self._tokens = tokens
        self._lock = threading.Lock()

    @property
    def tokens(self) -> TokenPair:
        with self._lock:
            return self._tokens

    @property
    def access_token(self) -> str:
        return self.tokens.access_token

    @property
    def refresh_token(self) -> str | None:
        return self.tokens.refresh_token

    def update(self, token: OAuthToken) -> TokenPair:
        """
        Replace the stored pair with the given token response.

        The access token is always replaced. The refresh token is replaced only when
        the response carries a new one.
        """
        with self._lock:
            self._tokens = TokenPair.from_response(token, fallback_refresh_token=self._tokens.refresh_token)
            tokens = self._tokens

        logger.debug(f"Stored new access token (refresh token returned: {token.refresh_token is not None})")
        return tokens
