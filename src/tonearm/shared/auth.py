from enum import Enum

from pydantic import BaseModel, ConfigDict

from tonearm.errors import AuthenticationErrorKind


class OAuthToken(BaseModel):
    """
    Token endpoint response.
    See https://datatracker.ietf.org/doc/html/rfc6749#section-5.1
    """

    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None
    scope: str | None = None
    refresh_token: str | None = None

    model_config = ConfigDict(extra="allow")


class AuthenticationErrorResponse(BaseModel):
    """
    Error body returned by the token endpoint.
    See https://datatracker.ietf.org/doc/html/rfc6749#section-5.2
    """

    error: AuthenticationErrorKind
    error_description: str = ""


class ApiErrorMessage(str, Enum):
    """API error messages the client reacts to."""

    PERMISSIONS_MISSING = "Permissions missing"
    TOKEN_EXPIRED = "The access token expired"
    NO_ACTIVE_DEVICE = "Player command failed: No active device found"
    PREMIUM_REQUIRED = "Player command failed: Premium required"
    RESTRICTION_VIOLATED = "Player command failed: Restriction violated"


class ApiError(BaseModel):
    status: int
    message: str
    # only present in some player errors
    reason: str | None = None

    @property
    def known_message(self) -> ApiErrorMessage | None:
        try:
            return ApiErrorMessage(self.message)
        except ValueError:
            return None


class ApiErrorResponse(BaseModel):
    """Error body returned by the resource API."""

    error: ApiError
