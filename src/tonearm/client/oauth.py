"""
Building blocks shared by the OAuth2 grant flows: client credentials, the client
context handed from builders to ready clients, token endpoint requests and the
mapping of token endpoint errors onto the library's error types.
"""

import base64
import logging
import secrets
import string
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, TypeVar, cast
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from tonearm.client._flow import AsyncSleep, SyncSleep
from tonearm.errors import (
    InternalError,
    InvalidClientError,
    ResponseDecodeError,
    SpotifyError,
    StateMismatchError,
    StateTransitionError,
    UnhandledAuthenticationError,
    UnhandledResponseError,
    stringify_pydantic_error,
)
from tonearm.scope import Scope, to_scopes_string
from tonearm.settings import ClientSettings
from tonearm.shared.auth import AuthenticationErrorResponse, OAuthToken

logger = logging.getLogger(__name__)

RANDOM_STATE_LENGTH = 16
# maximum length Spotify allows
PKCE_VERIFIER_LENGTH = 128


@dataclass(frozen=True)
class Credentials:
    """Application credentials. The secret is only present for confidential clients."""

    client_id: str
    client_secret: str | None = field(default=None, repr=False)

    def basic_auth_header(self) -> str:
        if self.client_secret is None:
            raise InternalError("HTTP Basic authentication requires a client secret")
        auth = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode()).decode()
        return f"Basic {auth}"


@dataclass
class ClientContext:
    """Everything a client needs to talk to Spotify, shared from a base client to the clients it creates."""

    credentials: Credentials
    settings: ClientSettings
    http_client: httpx.AsyncClient | httpx.Client
    sleep: AsyncSleep | SyncSleep | None
    # the library created the HTTP client and closes it with the client
    owns_http_client: bool = False

    @property
    def is_async(self) -> bool:
        return isinstance(self.http_client, httpx.AsyncClient)

    @property
    def async_http_client(self) -> httpx.AsyncClient:
        if not isinstance(self.http_client, httpx.AsyncClient):
            raise InternalError("Async client was created with a blocking HTTP client")
        return self.http_client

    @property
    def sync_http_client(self) -> httpx.Client:
        if not isinstance(self.http_client, httpx.Client):
            raise InternalError("Blocking client was created with an async HTTP client")
        return self.http_client

    @property
    def async_sleep(self) -> AsyncSleep | None:
        return cast(AsyncSleep | None, self.sleep)

    @property
    def sync_sleep(self) -> SyncSleep | None:
        return cast(SyncSleep | None, self.sleep)


def generate_random_string(length: int) -> str:
    """Generate a random alphanumeric string."""
    return "".join(secrets.choice(string.ascii_letters + string.digits) for _ in range(length))


def build_authorize_url(authorize_url: str, params: list[tuple[str, str]]) -> str:
    if "?" in authorize_url:
        raise InternalError(f"Authorize endpoint must not carry a query string: {authorize_url}")
    return f"{authorize_url}?{urlencode(params)}"


@dataclass
class PendingAuthorization:
    """Authorization request waiting for the user to come back through the redirect URI."""

    redirect_uri: str
    state: str
    scopes: str | None = None
    show_dialog: bool = False
    consumed: bool = False

    def authorize_url(
        self, context: ClientContext, response_type: str, extra_params: Iterable[tuple[str, str]] = ()
    ) -> str:
        params = [
            ("response_type", response_type),
            ("redirect_uri", self.redirect_uri),
            ("client_id", context.credentials.client_id),
            ("state", self.state),
        ]
        if self.scopes:
            params.append(("scope", self.scopes))
        if self.show_dialog:
            params.append(("show_dialog", "true"))
        params.extend(extra_params)

        return build_authorize_url(context.settings.authorize_url, params)

    def consume(self, state: str) -> None:
        """
        Mark the authorization as used and check the callback state.

        Raises:
            StateTransitionError: If the authorization was already consumed.
            StateMismatchError: If the callback state differs from the original one.
        """
        if self.consumed:
            raise StateTransitionError("The authorization was already finalized")
        self.consumed = True

        if not secrets.compare_digest(state.encode(), self.state.encode()):
            logger.error("Authorization callback state does not match the original state")
            raise StateMismatchError()


UserClientBuilderT = TypeVar("UserClientBuilderT", bound="UserClientBuilder")


class UserClientBuilder:
    """Fluent options shared by the builders of user-authorized clients."""

    def __init__(self, context: ClientContext, redirect_uri: str):
        self._context = context
        self._redirect_uri = redirect_uri
        self._state: str | None = None
        self._scopes: str | None = None
        self._show_dialog = False

    def state(self: UserClientBuilderT, state: str) -> UserClientBuilderT:
        """Use the given state instead of a random one."""
        self._state = state
        return self

    def scopes(self: UserClientBuilderT, scopes: Iterable[Scope | str]) -> UserClientBuilderT:
        self._scopes = to_scopes_string(scopes) or None
        return self

    def show_dialog(self: UserClientBuilderT, show_dialog: bool = True) -> UserClientBuilderT:
        """Force the user to approve the application again even if they already did."""
        self._show_dialog = show_dialog
        return self

    def _pending_authorization(self) -> PendingAuthorization:
        return PendingAuthorization(
            redirect_uri=self._redirect_uri,
            state=self._state if self._state is not None else generate_random_string(RANDOM_STATE_LENGTH),
            scopes=self._scopes,
            show_dialog=self._show_dialog,
        )


def build_token_request(context: ClientContext, form: dict[str, str], *, basic_auth: bool) -> httpx.Request:
    """Build a form-encoded POST to the token endpoint."""
    headers = {"Content-Type": "application/x-www-form-urlencoded"}
    if basic_auth:
        headers["Authorization"] = context.credentials.basic_auth_header()

    return context.http_client.build_request("POST", context.settings.token_url, data=form, headers=headers)


def extract_authentication_error(response: httpx.Response) -> SpotifyError | None:
    """
    Return the error described by an unsuccessful token endpoint response, or None
    if the response is successful.
    """
    if response.is_success:
        return None

    try:
        error_response = AuthenticationErrorResponse.model_validate_json(response.content)
    except ValidationError:
        logger.error(f"Token endpoint returned {response.status_code}: {response.text}")
        return UnhandledResponseError(response.status_code, response.text)

    logger.error(f"Token endpoint returned {error_response.error}: {error_response.error_description}")
    if error_response.error == "invalid_client":
        return InvalidClientError(error_response.error_description)
    return UnhandledAuthenticationError(error_response.error, error_response.error_description)


def parse_token_response(
    response: httpx.Response,
    invalid_grant_error: Callable[[str], SpotifyError] | None = None,
) -> OAuthToken:
    """
    Parse a token endpoint response.

    Args:
        response: The token endpoint response.
        invalid_grant_error: Builds the error raised when the endpoint rejects the
            grant (code or refresh token) with invalid_grant. The unhandled
            authentication error is raised if not given.

    Raises:
        InvalidClientError: If the client credentials were rejected.
        UnhandledAuthenticationError: For any other authentication error.
        UnhandledResponseError: If the error body was not an authentication error.
        ResponseDecodeError: If a successful response is not a token response.
    """
    error = extract_authentication_error(response)
    if isinstance(error, UnhandledAuthenticationError) and error.error == "invalid_grant" and invalid_grant_error:
        raise invalid_grant_error(error.error_description) from error
    if error is not None:
        raise error

    try:
        token = OAuthToken.model_validate_json(response.content)
    except ValidationError as e:
        raise ResponseDecodeError(f"Invalid token response: {stringify_pydantic_error(e)}") from e

    logger.debug(
        f"Got token response: token_type={token.token_type} expires_in={token.expires_in} scope={token.scope}"
    )
    return token


def token_form(**fields: Any) -> dict[str, str]:
    """Build a token request form, leaving out fields that are None."""
    return {key: str(value) for key, value in fields.items() if value is not None}
