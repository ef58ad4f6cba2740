# ABOUTME: Pytest fixtures for halopsa tests
# ABOUTME: Provides valid options and a fake HaloPSA server behind httpx.MockTransport

import uuid
from collections.abc import Callable
from urllib.parse import parse_qsl

import httpx
import pytest

from halopsa.client import HaloClient
from halopsa.options import HaloClientOptions

CLIENT_ID = "0f8fad5b-d9cb-469f-a165-70867728950e"
CLIENT_SECRET = "7c9e6679-7425-40de-944b-e07fc1f90ae7-16fd2706-8baf-433b-82eb-8c7fada847da"


def make_options(**overrides) -> HaloClientOptions:
    values = {
        "account": "acme",
        "client_id": CLIENT_ID,
        "client_secret": CLIENT_SECRET,
    }
    values.update(overrides)
    return HaloClientOptions(**values)


class FakeHalo:
    """
    A scripted HaloPSA server.

    Token requests are answered automatically. API requests are answered
    by ``api``, a callable taking the request, or by queued responses.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.token_requests: list[httpx.Request] = []
        self.token_responses: list[httpx.Response] = []
        self.queue: list[httpx.Response | Exception] = []
        self.api: Callable[[httpx.Request], httpx.Response] | None = None
        self.tokens_issued = 0
        self.expires_in = 3600

    @property
    def api_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path != "/auth/token"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/auth/token":
            self.token_requests.append(request)
            if self.token_responses:
                return self.token_responses.pop(0)
            self.tokens_issued += 1
            return httpx.Response(
                200,
                json={
                    "access_token": f"token-{self.tokens_issued}",
                    "token_type": "Bearer",
                    "expires_in": self.expires_in,
                },
            )

        if self.queue:
            item = self.queue.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        if self.api is not None:
            return self.api(request)
        return httpx.Response(200, json={})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class RecordingSleep:
    """Stands in for asyncio.sleep and records the requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_halo() -> FakeHalo:
    return FakeHalo()


@pytest.fixture
def recorded_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
async def make_client(fake_halo, recorded_sleep):
    """Factory for clients wired to the fake server. Closes them afterwards."""
    created: list[HaloClient] = []

    def _make_client(**overrides) -> HaloClient:
        client = HaloClient(
            make_options(**overrides),
            transport=fake_halo.transport(),
            sleep=recorded_sleep,
        )
        created.append(client)
        return client

    yield _make_client

    for client in created:
        await client.aclose()


@pytest.fixture
def random_guid() -> Callable[[], str]:
    return lambda: str(uuid.uuid4())


def form_fields(request: httpx.Request) -> dict[str, str]:
    """Decode a form-encoded request body."""
    return dict(parse_qsl(request.content.decode()))
