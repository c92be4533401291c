from collections import defaultdict
from urllib.parse import parse_qsl

import httpx
import pytest

from tonearm.client.oauth import ClientContext, Credentials
from tonearm.settings import ClientSettings

TOKEN_PATH = "/api/token"


class FakeSpotify:
    """Scripted accounts and API endpoints. Responses queued for a path are served in order."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._responses: dict[str, list[httpx.Response | Exception]] = defaultdict(list)

    def queue(self, path: str, *responses: httpx.Response | Exception) -> None:
        self._responses[path].extend(responses)

    def queue_token(self, access_token: str = "new_access_token", refresh_token: str | None = None) -> None:
        body = {"access_token": access_token, "token_type": "Bearer", "expires_in": 3600}
        if refresh_token is not None:
            body["refresh_token"] = refresh_token
        self.queue(TOKEN_PATH, httpx.Response(200, json=body))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responses = self._responses[request.url.path]
        assert responses, f"Unexpected request: {request.method} {request.url}"

        response = responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.url.path == path]

    @property
    def token_requests(self) -> list[httpx.Request]:
        return self.requests_to(TOKEN_PATH)

    @staticmethod
    def form(request: httpx.Request) -> dict[str, str]:
        return dict(parse_qsl(request.content.decode()))

    @staticmethod
    def api_error(status: int, message: str, **fields) -> httpx.Response:
        return httpx.Response(status, json={"error": {"status": status, "message": message, **fields}})

    @staticmethod
    def auth_error(error: str, error_description: str = "", status: int = 400) -> httpx.Response:
        return httpx.Response(status, json={"error": error, "error_description": error_description})


class SleepRecorder:
    def __init__(self):
        self.calls: list[float] = []

    async def async_sleep(self, seconds: float) -> None:
        self.calls.append(seconds)

    def sync_sleep(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def fake_spotify():
    return FakeSpotify()


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def async_http_client(fake_spotify):
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_spotify.handler))


@pytest.fixture
def sync_http_client(fake_spotify):
    return httpx.Client(transport=httpx.MockTransport(fake_spotify.handler))


@pytest.fixture
def credentials():
    return Credentials("client_id", "client_secret")


@pytest.fixture
def async_context(credentials, async_http_client, sleeps):
    return ClientContext(credentials, ClientSettings(), async_http_client, sleeps.async_sleep)


@pytest.fixture
def sync_context(credentials, sync_http_client, sleeps):
    return ClientContext(credentials, ClientSettings(), sync_http_client, sleeps.sync_sleep)
