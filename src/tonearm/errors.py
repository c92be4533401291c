"""
Errors raised by the Spotify client.

Every error the library raises derives from SpotifyError, so callers can catch the
whole family at once. Recoverable conditions (an expired access token, a rate
limit) are handled inside the request loop and only show up here once they became
terminal.
"""

from typing import Literal

from pydantic import ValidationError

AuthenticationErrorKind = Literal[
    "invalid_request",
    "invalid_client",
    "invalid_grant",
    "unauthorized_client",
    "unsupported_grant_type",
    "invalid_scope",
]


class SpotifyError(Exception):
    """Base exception for all errors raised by the library."""

    pass


class StateTransitionError(SpotifyError):
    """Raised when an invalid state transition is attempted, e.g. finalizing a flow twice."""

    pass


class InternalError(SpotifyError):
    """
    Raised when an internal invariant is violated.

    This signals a bug in the library, not a condition the caller can recover from.
    Shared client state is left untouched when it is raised.
    """

    pass


class StateMismatchError(SpotifyError):
    """The state returned in the authorization callback does not match the original state."""

    def __init__(self) -> None:
        super().__init__("The given state does not match the original state")


class InvalidAuthorizationCodeError(SpotifyError):
    """The authorization code given to finalize is invalid."""

    def __init__(self, error_description: str = ""):
        super().__init__(f"The authorization code is invalid: {error_description}")
        self.error_description = error_description


class AccessTokenExpiredError(SpotifyError):
    """
    The access token expired and was not refreshed, either because the client cannot
    refresh it (implicit grant) or because refreshing was disabled for the request.
    """

    def __init__(self) -> None:
        super().__init__("The access token expired")


class InvalidRefreshTokenError(SpotifyError):
    """
    The refresh token cannot be used to retrieve an access token. This is likely due to
    the user removing the application's access to their account; the user should be
    reauthorized.
    """

    def __init__(self, error_description: str):
        super().__init__(f"The refresh token is invalid: {error_description}. The user should be reauthorized")
        self.error_description = error_description


class InvalidClientError(SpotifyError):
    """The client ID and/or secret is invalid."""

    def __init__(self, error_description: str = ""):
        super().__init__(f"The client ID and/or secret is invalid: {error_description}")
        self.error_description = error_description


class RateLimitError(SpotifyError):
    """
    The request rate limit was hit and the client was not allowed to wait it out.
    """

    def __init__(self, retry_after: int):
        super().__init__(f"Request rate limit hit; retry after {retry_after} seconds")
        self.retry_after = retry_after


class InvalidRateLimitResponseError(SpotifyError):
    """A 429 response had a missing or non-integer Retry-After header."""

    def __init__(self) -> None:
        super().__init__("Missing or invalid Retry-After header in 429 rate-limit response")


class MissingScopeError(SpotifyError):
    """The scope required by the endpoint has not been granted by the user."""

    def __init__(self) -> None:
        super().__init__("The required scope for the endpoint has not been granted by the user")


class ForbiddenError(SpotifyError):
    """The action is not allowed in the current context. This is not a scope problem."""

    def __init__(self, message: str | None = None):
        super().__init__(message or "The endpoint is forbidden")
        self.message = message


class PremiumRequiredError(ForbiddenError):
    """The action requires the user to have a premium subscription."""

    pass


class RestrictedError(ForbiddenError):
    """The action is restricted by the current playback context."""

    pass


class NoActiveDeviceError(SpotifyError):
    """No device is active in the user's account, or the given device could not be activated."""

    def __init__(self) -> None:
        super().__init__("No device is currently active in the user's account")


class UnhandledAuthenticationError(SpotifyError):
    """The token endpoint returned an authentication error we did not expect."""

    def __init__(self, error: AuthenticationErrorKind, error_description: str):
        super().__init__(f"Unhandled authentication error: {error}: {error_description}")
        self.error = error
        self.error_description = error_description


class UnhandledProviderError(SpotifyError):
    """The API returned a well-formed error message we did not expect."""

    def __init__(self, status: int, message: str):
        super().__init__(f"Unhandled API error {status}: {message}")
        self.status = status
        self.message = message


class UnhandledResponseError(SpotifyError):
    """The API returned a status code we did not expect."""

    def __init__(self, status: int, body: str | None = None):
        super().__init__(f"Unhandled response status code {status}")
        self.status = status
        self.body = body


class EmptyResponseError(SpotifyError):
    """The API returned an empty response where a body was expected."""

    def __init__(self) -> None:
        super().__init__("Expected a response body but the response was empty")


class ResponseDecodeError(SpotifyError):
    """A response body could not be decoded into the requested type."""

    pass


class ConversionError(SpotifyError):
    """A decoded object could not be narrowed into the requested subtype."""

    def __init__(self, expected: type, actual: type):
        super().__init__(f"Cannot convert {actual.__name__} into {expected.__name__}")
        self.expected = expected
        self.actual = actual


class HttpError(SpotifyError):
    """Sending a request or receiving a response failed in the HTTP layer."""

    pass


def stringify_pydantic_error(validation_error: ValidationError) -> str:
    return "\n".join(f"{'.'.join(str(loc) for loc in e['loc'])}: {e['msg']}" for e in validation_error.errors())
