"""
Tests for the resilient request loop.
"""

import json

import anyio
import httpx
import pytest
from pydantic import BaseModel

from tonearm.client import (
    AsyncSpotifyClientWithSecret,
    AuthenticatedClient,
    RequestSigner,
    SyncSpotifyClientWithSecret,
)
from tonearm.client.oauth import ClientContext
from tonearm.client.request import BearerClient
from tonearm.errors import (
    AccessTokenExpiredError,
    EmptyResponseError,
    ForbiddenError,
    HttpError,
    InvalidRateLimitResponseError,
    MissingScopeError,
    NoActiveDeviceError,
    PremiumRequiredError,
    RateLimitError,
    ResponseDecodeError,
    RestrictedError,
    UnhandledProviderError,
    UnhandledResponseError,
)
from tonearm.settings import ClientSettings
from tonearm.shared.token_store import TokenPair, TokenStore

ME_PATH = "/v1/me"
PLAY_PATH = "/v1/me/player/play"


class User(BaseModel):
    id: str
    display_name: str | None = None


def user_response() -> httpx.Response:
    return httpx.Response(200, json={"id": "user_id", "display_name": "User"})


@pytest.fixture
def async_client(async_context):
    return AsyncSpotifyClientWithSecret(async_context, TokenStore(TokenPair("old_access_token")))


@pytest.fixture
def sync_client(sync_context):
    return SyncSpotifyClientWithSecret(sync_context, TokenStore(TokenPair("old_access_token")))


class TestAsyncRequest:
    @pytest.mark.anyio
    async def test_decodes_response(self, async_client, fake_spotify):
        """Test a successful response is decoded into the requested model."""
        fake_spotify.queue(ME_PATH, user_response())

        user = await async_client.request("GET", "me", response_model=User)

        assert user == User(id="user_id", display_name="User")
        [request] = fake_spotify.requests
        assert request.url == "https://api.spotify.com/v1/me"
        assert request.headers["Authorization"] == "Bearer old_access_token"

    @pytest.mark.anyio
    async def test_params_and_json_body(self, async_client, fake_spotify):
        fake_spotify.queue(PLAY_PATH, httpx.Response(204))

        result = await async_client.request(
            "PUT", "me/player/play", params={"device_id": "abc"}, json={"uris": ["spotify:track:1"]}
        )

        assert result is None
        [request] = fake_spotify.requests
        assert request.url.params["device_id"] == "abc"
        assert json.loads(request.content) == {"uris": ["spotify:track:1"]}

    @pytest.mark.anyio
    async def test_bodiless_put_sends_zero_content_length(self, async_client, fake_spotify):
        fake_spotify.queue(PLAY_PATH, httpx.Response(204))

        await async_client.send("PUT", "me/player/play")

        [request] = fake_spotify.requests
        assert request.headers["Content-Length"] == "0"

    @pytest.mark.anyio
    async def test_absolute_url_is_used_as_is(self, async_client, fake_spotify):
        fake_spotify.queue("/v1/next", user_response())

        await async_client.send("GET", "https://api.spotify.com/v1/next?offset=20")

        [request] = fake_spotify.requests
        assert request.url == "https://api.spotify.com/v1/next?offset=20"

    @pytest.mark.anyio
    async def test_refreshes_expired_token_and_retries(self, async_client, fake_spotify):
        """Test an expired token is refreshed once and the request retried with the new token."""
        fake_spotify.queue(ME_PATH, fake_spotify.api_error(401, "The access token expired"), user_response())
        fake_spotify.queue_token("new_access_token")

        user = await async_client.request("GET", "me", response_model=User)

        assert user.id == "user_id"
        attempts = fake_spotify.requests_to(ME_PATH)
        assert len(attempts) == 2
        assert len(fake_spotify.token_requests) == 1
        assert attempts[0].headers["Authorization"] == "Bearer old_access_token"
        assert attempts[1].headers["Authorization"] == "Bearer new_access_token"
        assert async_client.access_token == "new_access_token"

    @pytest.mark.anyio
    async def test_expired_token_without_auto_refresh(self, async_client, fake_spotify):
        fake_spotify.queue(ME_PATH, fake_spotify.api_error(401, "The access token expired"))

        with pytest.raises(AccessTokenExpiredError):
            await async_client.request("GET", "me", auto_refresh_access_token=False)

        assert fake_spotify.token_requests == []

    @pytest.mark.anyio
    async def test_missing_scope(self, async_client, fake_spotify):
        fake_spotify.queue(ME_PATH, fake_spotify.api_error(401, "Permissions missing"))

        with pytest.raises(MissingScopeError):
            await async_client.request("GET", "me")

    @pytest.mark.anyio
    async def test_unknown_401_message(self, async_client, fake_spotify):
        fake_spotify.queue(ME_PATH, fake_spotify.api_error(401, "Invalid access token"))

        with pytest.raises(UnhandledProviderError) as exc_info:
            await async_client.request("GET", "me")

        assert exc_info.value.status == 401
        assert exc_info.value.message == "Invalid access token"

    @pytest.mark.anyio
    async def test_401_without_error_body(self, async_client, fake_spotify):
        fake_spotify.queue(ME_PATH, httpx.Response(401, text="nope"))

        with pytest.raises(UnhandledResponseError) as exc_info:
            await async_client.request("GET", "me")

        assert exc_info.value.status == 401

    @pytest.mark.anyio
    async def test_waits_out_rate_limit(self, async_client, fake_spotify, sleeps):
        """Test a 429 sleeps for Retry-After seconds and retries with the same token."""
        fake_spotify.queue(ME_PATH, httpx.Response(429, headers={"Retry-After": "3"}), user_response())

        user = await async_client.request("GET", "me", response_model=User)

        assert user.id == "user_id"
        assert sleeps.calls == [3]
        attempts = fake_spotify.requests_to(ME_PATH)
        assert len(attempts) == 2
        assert attempts[1].headers["Authorization"] == "Bearer old_access_token"

    @pytest.mark.anyio
    async def test_rate_limit_after_refresh(self, async_client, fake_spotify, sleeps):
        fake_spotify.queue(
            ME_PATH,
            fake_spotify.api_error(401, "The access token expired"),
            httpx.Response(429, headers={"Retry-After": "1"}),
            user_response(),
        )
        fake_spotify.queue_token("new_access_token")

        await async_client.request("GET", "me", response_model=User)

        assert sleeps.calls == [1]
        assert len(fake_spotify.requests_to(ME_PATH)) == 3
        assert len(fake_spotify.token_requests) == 1

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "headers",
        [
            {},
            {"Retry-After": "soon"},
            {"Retry-After": "1.5"},
            {"Retry-After": "-5"},
            {"Retry-After": "+3"},
            {"Retry-After": "1_0"},
            {"Retry-After": " 2 "},
        ],
    )
    async def test_malformed_rate_limit_response(self, async_client, fake_spotify, sleeps, headers):
        fake_spotify.queue(ME_PATH, httpx.Response(429, headers=headers))

        with pytest.raises(InvalidRateLimitResponseError):
            await async_client.request("GET", "me")

        assert sleeps.calls == []

    @pytest.mark.anyio
    async def test_rate_limit_without_reacting(self, async_client, fake_spotify, sleeps):
        fake_spotify.queue(ME_PATH, httpx.Response(429, headers={"Retry-After": "7"}))

        with pytest.raises(RateLimitError) as exc_info:
            await async_client.request("GET", "me", react_to_rate_limit=False)

        assert exc_info.value.retry_after == 7
        assert sleeps.calls == []

    @pytest.mark.anyio
    async def test_rate_limit_without_sleep(self, credentials, async_http_client, fake_spotify):
        context = ClientContext(credentials, ClientSettings(), async_http_client, None)
        client = AsyncSpotifyClientWithSecret(context, TokenStore(TokenPair("old_access_token")))
        fake_spotify.queue(ME_PATH, httpx.Response(429, headers={"Retry-After": "2"}))

        with pytest.raises(RateLimitError) as exc_info:
            await client.request("GET", "me")

        assert exc_info.value.retry_after == 2

    @pytest.mark.anyio
    async def test_bad_request(self, async_client, fake_spotify):
        fake_spotify.queue(ME_PATH, fake_spotify.api_error(400, "Bad request"))

        with pytest.raises(UnhandledResponseError) as exc_info:
            await async_client.request("GET", "me")

        assert exc_info.value.status == 400

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "message,error_type",
        [
            ("Player command failed: Premium required", PremiumRequiredError),
            ("Player command failed: Restriction violated", RestrictedError),
            ("User not registered in the Developer Dashboard", ForbiddenError),
        ],
    )
    async def test_forbidden(self, async_client, fake_spotify, message, error_type):
        fake_spotify.queue(PLAY_PATH, fake_spotify.api_error(403, message))

        with pytest.raises(ForbiddenError) as exc_info:
            await async_client.send("PUT", "me/player/play")

        assert type(exc_info.value) is error_type
        assert exc_info.value.message == message

    @pytest.mark.anyio
    async def test_no_active_device(self, async_client, fake_spotify):
        fake_spotify.queue(
            PLAY_PATH,
            fake_spotify.api_error(404, "Player command failed: No active device found", reason="NO_ACTIVE_DEVICE"),
        )

        with pytest.raises(NoActiveDeviceError):
            await async_client.send("PUT", "me/player/play")

    @pytest.mark.anyio
    async def test_not_found(self, async_client, fake_spotify):
        fake_spotify.queue(ME_PATH, fake_spotify.api_error(404, "Non existing id"))

        with pytest.raises(UnhandledResponseError) as exc_info:
            await async_client.request("GET", "me")

        assert exc_info.value.status == 404

    @pytest.mark.anyio
    async def test_server_error_is_not_retried(self, async_client, fake_spotify):
        fake_spotify.queue(ME_PATH, httpx.Response(503))

        with pytest.raises(UnhandledResponseError) as exc_info:
            await async_client.request("GET", "me")

        assert exc_info.value.status == 503
        assert len(fake_spotify.requests) == 1

    @pytest.mark.anyio
    async def test_decode_error(self, async_client, fake_spotify):
        fake_spotify.queue(ME_PATH, httpx.Response(200, json={"display_name": "User"}))

        with pytest.raises(ResponseDecodeError):
            await async_client.request("GET", "me", response_model=User)

        assert len(fake_spotify.requests) == 1

    @pytest.mark.anyio
    async def test_empty_response(self, async_client, fake_spotify):
        fake_spotify.queue(ME_PATH, httpx.Response(204), httpx.Response(204))

        assert await async_client.request("GET", "me", response_model=User | None) is None
        with pytest.raises(EmptyResponseError):
            await async_client.request("GET", "me", response_model=User)

    @pytest.mark.anyio
    async def test_transport_error(self, async_client, fake_spotify):
        fake_spotify.queue(ME_PATH, httpx.ConnectError("connection refused"))

        with pytest.raises(HttpError) as exc_info:
            await async_client.request("GET", "me")

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.anyio
    async def test_clone_shares_tokens(self, async_client, fake_spotify):
        """Test a refresh through a clone is visible to the original client."""
        clone = async_client.clone()
        fake_spotify.queue_token("new_access_token")

        await clone.refresh_access_token()

        assert clone is not async_client
        assert async_client.access_token == "new_access_token"

    @pytest.mark.anyio
    async def test_concurrent_clones_each_refresh(self, credentials, sleeps):
        """Test clones that both see the stale token each refresh, and share the resulting token."""
        stale_requests = 0
        both_stale = anyio.Event()
        token_requests: list[httpx.Request] = []

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal stale_requests
            if request.url.path == "/api/token":
                token_requests.append(request)
                return httpx.Response(
                    200, json={"access_token": f"token_{len(token_requests)}", "token_type": "Bearer"}
                )

            if request.headers["Authorization"] == "Bearer old_access_token":
                # hold the first attempts until both clones have sent theirs with the stale token
                stale_requests += 1
                if stale_requests == 2:
                    both_stale.set()
                await both_stale.wait()
                return httpx.Response(401, json={"error": {"status": 401, "message": "The access token expired"}})

            return user_response()

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        context = ClientContext(credentials, ClientSettings(), http_client, sleeps.async_sleep)
        client = AsyncSpotifyClientWithSecret(context, TokenStore(TokenPair("old_access_token")))
        clone = client.clone()
        users: list[User] = []

        async def fetch_user(ready_client: AsyncSpotifyClientWithSecret) -> None:
            users.append(await ready_client.request("GET", "me", response_model=User))

        async with anyio.create_task_group() as tg:
            tg.start_soon(fetch_user, client)
            tg.start_soon(fetch_user, clone)

        assert [user.id for user in users] == ["user_id", "user_id"]
        assert len(token_requests) == 2
        assert client.access_token == clone.access_token
        assert client.access_token in ("token_1", "token_2")
        assert stale_requests == 2

    def test_ready_clients_are_authenticated_clients(self, async_client, sync_client):
        assert isinstance(async_client, AuthenticatedClient)
        assert isinstance(sync_client, AuthenticatedClient)
        assert isinstance(async_client, RequestSigner)

    def test_bearer_client_requires_refresh_flow(self, async_context):
        with pytest.raises(TypeError):
            BearerClient(async_context, TokenStore(TokenPair("old_access_token")))  # type: ignore[abstract]


class TestSyncRequest:
    def test_decodes_response(self, sync_client, fake_spotify):
        fake_spotify.queue(ME_PATH, user_response())

        user = sync_client.request("GET", "me", response_model=User)

        assert user.id == "user_id"

    def test_refreshes_expired_token_and_retries(self, sync_client, fake_spotify):
        """Test the blocking client follows the same refresh and retry path."""
        fake_spotify.queue(ME_PATH, fake_spotify.api_error(401, "The access token expired"), user_response())
        fake_spotify.queue_token("new_access_token")

        sync_client.request("GET", "me", response_model=User)

        attempts = fake_spotify.requests_to(ME_PATH)
        assert len(attempts) == 2
        assert len(fake_spotify.token_requests) == 1
        assert attempts[1].headers["Authorization"] == "Bearer new_access_token"

    def test_waits_out_rate_limit(self, sync_client, fake_spotify, sleeps):
        fake_spotify.queue(ME_PATH, httpx.Response(429, headers={"Retry-After": "5"}), user_response())

        sync_client.request("GET", "me", response_model=User)

        assert sleeps.calls == [5]

    def test_missing_scope(self, sync_client, fake_spotify):
        fake_spotify.queue(ME_PATH, fake_spotify.api_error(401, "Permissions missing"))

        with pytest.raises(MissingScopeError):
            sync_client.request("GET", "me")

    @pytest.mark.parametrize("retry_after", ["-5", "+3", "1_0", " 2 "])
    def test_malformed_rate_limit_response(self, sync_client, fake_spotify, sleeps, retry_after):
        """Test the blocking client rejects Retry-After values that are not plain digits before sleeping."""
        fake_spotify.queue(ME_PATH, httpx.Response(429, headers={"Retry-After": retry_after}), user_response())

        with pytest.raises(InvalidRateLimitResponseError):
            sync_client.request("GET", "me", response_model=User)

        assert sleeps.calls == []
        assert len(fake_spotify.requests) == 1
