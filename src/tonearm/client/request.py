"""
The resilient request loop shared by every ready client.

execute() sends an authenticated request and reacts to what comes back: an expired
access token is refreshed and the request retried, a rate limit is waited out and
the request retried, and every other failure is translated into a SpotifyError.
"""

import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Protocol, TypeVar, runtime_checkable

import httpx
from pydantic import TypeAdapter, ValidationError

from tonearm.client._flow import Flow, RefreshResult, Sleep, expect_response, run_async, run_sync
from tonearm.client.oauth import ClientContext
from tonearm.errors import (
    AccessTokenExpiredError,
    EmptyResponseError,
    ForbiddenError,
    InvalidRateLimitResponseError,
    MissingScopeError,
    NoActiveDeviceError,
    PremiumRequiredError,
    RateLimitError,
    ResponseDecodeError,
    RestrictedError,
    UnhandledProviderError,
    UnhandledResponseError,
    stringify_pydantic_error,
)
from tonearm.shared.auth import ApiError, ApiErrorMessage, ApiErrorResponse
from tonearm.shared.token_store import TokenStore

logger = logging.getLogger(__name__)

ClientT = TypeVar("ClientT", bound="BearerClient")


@runtime_checkable
class RequestSigner(Protocol):
    """What the request loop needs from a client: signed requests and a way to refresh."""

    def build_http_request(
        self, method: str, url: str, *, params: dict[str, Any] | None = None, json: Any = None
    ) -> httpx.Request: ...

    def refresh_flow(self) -> Flow[RefreshResult]: ...


def extract_retry_after(headers: httpx.Headers) -> int:
    """
    Read the number of seconds to wait from a 429 response.

    Raises:
        InvalidRateLimitResponseError: If the header is missing or not a non-negative
            integer made of ASCII digits only.
    """
    value = headers.get("Retry-After")
    if value is None or not (value.isascii() and value.isdigit()):
        raise InvalidRateLimitResponseError()
    return int(value)


def _api_error(response: httpx.Response) -> ApiError | None:
    try:
        return ApiErrorResponse.model_validate_json(response.content).error
    except ValidationError:
        return None


def _forbidden_error(response: httpx.Response) -> ForbiddenError:
    api_error = _api_error(response)
    if api_error is None:
        return ForbiddenError()

    match api_error.known_message:
        case ApiErrorMessage.PREMIUM_REQUIRED:
            return PremiumRequiredError(api_error.message)
        case ApiErrorMessage.RESTRICTION_VIOLATED:
            return RestrictedError(api_error.message)
        case _:
            return ForbiddenError(api_error.message)


def execute(
    client: RequestSigner,
    method: str,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    json: Any = None,
    react_to_rate_limit: bool = True,
    auto_refresh_access_token: bool = True,
) -> Flow[httpx.Response]:
    """
    Send a request until it produces a final response.

    The request is rebuilt on every attempt so a retry after a refresh is signed with
    the new access token. Rate limits are retried without a ceiling.

    Returns:
        The successful response, with its body read.
    """
    while True:
        request = client.build_http_request(method, url, params=params, json=json)
        logger.debug(f"Sending {request.method} {request.url}")
        response = expect_response((yield request))
        status = response.status_code

        if status == 400:
            logger.error(f"Got 400 Bad Request: {response.text}")
            raise UnhandledResponseError(400, response.text)

        elif status == 403:
            error = _forbidden_error(response)
            logger.error(f"Got 403 Forbidden: {error}")
            raise error

        elif status == 401:
            api_error = _api_error(response)
            if api_error is None:
                raise UnhandledResponseError(401, response.text)

            match api_error.known_message:
                case ApiErrorMessage.PERMISSIONS_MISSING:
                    raise MissingScopeError()
                case ApiErrorMessage.TOKEN_EXPIRED:
                    if not auto_refresh_access_token:
                        raise AccessTokenExpiredError()

                    logger.warning("Access token expired, refreshing")
                    result = yield from client.refresh_flow()
                    if result is RefreshResult.INAPPLICABLE:
                        raise AccessTokenExpiredError()

                    logger.debug("Access token refreshed, retrying request")
                case _:
                    logger.error(f"Got 401 Unauthorized: {api_error.message}")
                    raise UnhandledProviderError(401, api_error.message)

        elif status == 429:
            retry_after = extract_retry_after(response.headers)
            if not react_to_rate_limit:
                raise RateLimitError(retry_after)

            logger.warning(f"Rate limit hit, retrying after {retry_after} seconds")
            yield Sleep(retry_after)

        else:
            if status == 404:
                api_error = _api_error(response)
                if api_error is not None and api_error.known_message is ApiErrorMessage.NO_ACTIVE_DEVICE:
                    raise NoActiveDeviceError()

            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error(f"Got unexpected status {status}: {response.text}")
                raise UnhandledResponseError(status, response.text) from e

            return response


def decode_response(response: httpx.Response, response_model: Any) -> Any:
    """
    Decode a response body into the given type.

    A 204 or an empty body decodes to None when the type admits it.

    Raises:
        EmptyResponseError: If the body is empty and the type does not admit None.
        ResponseDecodeError: If the body does not match the type.
    """
    adapter: TypeAdapter[Any] = TypeAdapter(response_model)

    if response.status_code == 204 or not response.content:
        try:
            return adapter.validate_python(None)
        except ValidationError as e:
            raise EmptyResponseError() from e

    try:
        return adapter.validate_json(response.content)
    except ValidationError as e:
        raise ResponseDecodeError(f"Invalid response body: {stringify_pydantic_error(e)}") from e


class BearerClient(ABC):
    """Base of the ready clients: holds the shared context and token store and signs requests."""

    def __init__(self, context: ClientContext, token_store: TokenStore):
        self._context = context
        self._token_store = token_store

    @property
    def context(self) -> ClientContext:
        return self._context

    @property
    def access_token(self) -> str:
        return self._token_store.access_token

    def build_http_request(
        self, method: str, url: str, *, params: dict[str, Any] | None = None, json: Any = None
    ) -> httpx.Request:
        headers = {"Authorization": f"Bearer {self._token_store.access_token}"}
        if json is None and method.upper() in ("POST", "PUT"):
            headers["Content-Length"] = "0"

        return self._context.http_client.build_request(
            method, self._context.settings.api_url(url), params=params, json=json, headers=headers
        )

    @abstractmethod
    def refresh_flow(self) -> Flow[RefreshResult]:
        """Refresh the access token, reporting whether the client is able to."""

    def clone(self: ClientT) -> ClientT:
        """Return a client sharing this client's tokens and HTTP client."""
        return copy.copy(self)


class AsyncClientMixin:
    """Async request surface of a ready client."""

    _context: ClientContext

    async def send(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        react_to_rate_limit: bool = True,
        auto_refresh_access_token: bool = True,
    ) -> httpx.Response:
        """Send an authenticated request and return the successful response."""
        flow = execute(
            self,  # type: ignore[arg-type]
            method,
            url,
            params=params,
            json=json,
            react_to_rate_limit=react_to_rate_limit,
            auto_refresh_access_token=auto_refresh_access_token,
        )
        return await run_async(flow, self._context.async_http_client, self._context.async_sleep)

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        response_model: Any = None,
        react_to_rate_limit: bool = True,
        auto_refresh_access_token: bool = True,
    ) -> Any:
        """
        Send an authenticated request and decode the response.

        Args:
            method: HTTP method.
            url: Path relative to the API base URL, or an absolute URL.
            params: Query parameters.
            json: JSON body.
            response_model: Type to decode the body into. The body is ignored if None.
            react_to_rate_limit: Wait out rate limits instead of raising RateLimitError.
            auto_refresh_access_token: Refresh an expired access token and retry
                instead of raising AccessTokenExpiredError.
        """
        response = await self.send(
            method,
            url,
            params=params,
            json=json,
            react_to_rate_limit=react_to_rate_limit,
            auto_refresh_access_token=auto_refresh_access_token,
        )
        if response_model is None:
            return None
        return decode_response(response, response_model)

    async def refresh_access_token(self) -> RefreshResult:
        flow = self.refresh_flow()  # type: ignore[attr-defined]
        return await run_async(flow, self._context.async_http_client, self._context.async_sleep)

    async def aclose(self) -> None:
        """Close the HTTP client if the library created it. Clones share it."""
        if self._context.owns_http_client:
            await self._context.async_http_client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()


class SyncClientMixin:
    """Blocking request surface of a ready client. See AsyncClientMixin."""

    _context: ClientContext

    def send(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        react_to_rate_limit: bool = True,
        auto_refresh_access_token: bool = True,
    ) -> httpx.Response:
        flow = execute(
            self,  # type: ignore[arg-type]
            method,
            url,
            params=params,
            json=json,
            react_to_rate_limit=react_to_rate_limit,
            auto_refresh_access_token=auto_refresh_access_token,
        )
        return run_sync(flow, self._context.sync_http_client, self._context.sync_sleep)

    def request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        response_model: Any = None,
        react_to_rate_limit: bool = True,
        auto_refresh_access_token: bool = True,
    ) -> Any:
        response = self.send(
            method,
            url,
            params=params,
            json=json,
            react_to_rate_limit=react_to_rate_limit,
            auto_refresh_access_token=auto_refresh_access_token,
        )
        if response_model is None:
            return None
        return decode_response(response, response_model)

    def refresh_access_token(self) -> RefreshResult:
        flow = self.refresh_flow()  # type: ignore[attr-defined]
        return run_sync(flow, self._context.sync_http_client, self._context.sync_sleep)

    def close(self) -> None:
        if self._context.owns_http_client:
            self._context.sync_http_client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
