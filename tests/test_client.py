# ABOUTME: Tests for the HaloClient facade and its composed pipeline
# ABOUTME: Covers construction, stage ordering, error mapping, cancellation and disposal

import asyncio
import logging

import httpx
import pytest

from conftest import RecordingSleep, make_options
from halopsa import __version__
from halopsa.client import HaloClient
from halopsa.exceptions import (
    ConfigurationError,
    HaloApiError,
    HaloBadRequestError,
    HaloError,
    HaloNotFoundError,
    HaloRateLimitError,
    HaloServerError,
    OptionFormatError,
)


class CountingTransport(httpx.AsyncBaseTransport):
    """Wraps a transport and counts aclose() calls."""

    def __init__(self, inner: httpx.AsyncBaseTransport) -> None:
        self.inner = inner
        self.close_count = 0

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self.inner.handle_async_request(request)

    async def aclose(self) -> None:
        self.close_count += 1


class TestConstruction:
    """Options are validated and URLs derived."""

    async def test_default_base_url(self, make_client):
        client = make_client(account="acme")
        assert client.base_url == "https://acme.halopsa.com"
        assert client.account == "acme"

    async def test_base_url_override(self, make_client):
        client = make_client(base_url="https://custom.example.com")
        assert client.base_url == "https://custom.example.com"

    async def test_invalid_options_fail_before_any_request(self, fake_halo):
        with pytest.raises(ConfigurationError):
            HaloClient(make_options(account="  "), transport=fake_halo.transport())
        with pytest.raises(OptionFormatError):
            HaloClient(make_options(client_id="nope"), transport=fake_halo.transport())
        assert fake_halo.requests == []

    async def test_resource_groups_share_the_client(self, make_client):
        client = make_client()
        assert client.tickets is client.psa.tickets
        assert client.ticket_types is client.psa.ticket_types
        assert client.users is client.psa.users
        assert client.clients is client.psa.clients
        assert client.assets is client.psa.assets
        assert client.projects is client.psa.projects
        assert client.teams is client.psa.teams
        assert client.psa.tickets._client is client

    async def test_sends_default_headers(self, make_client, fake_halo):
        client = make_client(default_headers={"X-Integration": "tests"})

        await client.request("GET", "/api/Tickets")

        headers = fake_halo.api_requests[0].headers
        assert headers["X-Integration"] == "tests"
        assert headers["User-Agent"] == f"halopsa-python/{__version__}"
        assert headers["Accept"] == "application/json"


class TestPipelineOrder:
    """logging -> retry -> authentication -> transport."""

    async def test_logging_sees_only_the_final_outcome(self, make_client, fake_halo, caplog):
        caplog.set_level(logging.INFO, logger="halopsa.http")
        fake_halo.api = lambda request: httpx.Response(503)
        client = make_client(max_retry_attempts=2, enable_request_logging=True, enable_response_logging=True)

        with pytest.raises(HaloServerError):
            await client.request("GET", "/api/Tickets")

        messages = [r.getMessage() for r in caplog.records if r.name == "halopsa.http"]
        request_lines = [m for m in messages if "HTTP GET" in m]
        response_lines = [m for m in messages if "HTTP 503 Service Unavailable" in m]
        retry_lines = [m for m in messages if "retry" in m]
        assert len(request_lines) == 1
        assert len(response_lines) == 1
        assert len(retry_lines) == 2
        assert len(fake_halo.api_requests) == 3

    async def test_token_exchange_is_not_logged_as_a_request(self, make_client, caplog):
        caplog.set_level(logging.INFO, logger="halopsa.http")
        client = make_client(enable_request_logging=True)

        await client.request("GET", "/api/Tickets")

        messages = [r.getMessage() for r in caplog.records if r.name == "halopsa.http"]
        assert not any("/auth/token" in m for m in messages)

    async def test_all_stages_share_one_correlation_id(self, make_client, fake_halo, caplog):
        caplog.set_level(logging.INFO, logger="halopsa.http")
        fake_halo.queue.append(httpx.Response(500))
        client = make_client(enable_request_logging=True)

        await client.request("GET", "/api/Tickets")

        ids = {r.getMessage().split("]")[0] for r in caplog.records if r.name == "halopsa.http"}
        assert len(ids) == 1


class TestErrorMapping:
    """Callers get typed results or one concrete error."""

    async def test_503_exhausts_retries(self, make_client, fake_halo, recorded_sleep):
        fake_halo.api = lambda request: httpx.Response(503)
        client = make_client(max_retry_attempts=3, retry_delay=0.5, max_retry_delay=1.5)

        with pytest.raises(HaloServerError) as exc:
            await client.request("GET", "/api/Tickets")

        assert exc.value.status_code == 503
        assert len(fake_halo.api_requests) == 4
        assert recorded_sleep.delays == [0.5, 1.0, 1.5]

    @pytest.mark.parametrize("status,error", [(400, HaloBadRequestError), (404, HaloNotFoundError)])
    async def test_terminal_errors_make_one_attempt(self, make_client, fake_halo, recorded_sleep, status, error):
        fake_halo.api = lambda request: httpx.Response(status, json={"message": "no"})
        client = make_client(max_retry_attempts=3)

        with pytest.raises(error):
            await client.request("GET", "/api/Tickets/1")

        assert len(fake_halo.api_requests) == 1
        assert recorded_sleep.delays == []

    async def test_rate_limit_error_after_retries(self, make_client, fake_halo):
        fake_halo.api = lambda request: httpx.Response(429, headers={"Retry-After": "900"})
        client = make_client(max_retry_attempts=1)

        with pytest.raises(HaloRateLimitError) as exc:
            await client.request("GET", "/api/Tickets")

        assert exc.value.retry_after_seconds == 900
        assert len(fake_halo.api_requests) == 2

    async def test_network_errors_are_wrapped_after_retries(self, make_client, fake_halo):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        fake_halo.api = refuse
        client = make_client(max_retry_attempts=2)

        with pytest.raises(HaloApiError) as exc:
            await client.request("GET", "/api/Tickets")

        assert isinstance(exc.value.cause, httpx.ConnectError)
        assert exc.value.status_code is None
        assert exc.value.request_method == "GET"
        assert len(fake_halo.api_requests) == 3

    async def test_invalid_json_body(self, make_client, fake_halo):
        fake_halo.api = lambda request: httpx.Response(200, text="<html>login</html>")
        client = make_client()

        with pytest.raises(HaloApiError, match="Failed to decode JSON"):
            await client.request("GET", "/api/Tickets")

    async def test_empty_body_returns_none(self, make_client, fake_halo):
        fake_halo.api = lambda request: httpx.Response(204)
        client = make_client()

        assert await client.request("DELETE", "/api/Tickets/1") is None

    async def test_redirect_is_an_error_and_not_retried(self, make_client, fake_halo, recorded_sleep):
        fake_halo.api = lambda request: httpx.Response(302, headers={"Location": "https://login.halopsa.com/"})
        client = make_client(max_retry_attempts=3)

        with pytest.raises(HaloApiError) as exc:
            await client.request("GET", "/api/Tickets/1")

        assert exc.value.status_code == 302
        assert exc.value.details == {"body": ""}
        assert len(fake_halo.api_requests) == 1
        assert recorded_sleep.delays == []

    async def test_undecodable_body_is_wrapped(self, make_client, fake_halo):
        fake_halo.api = lambda request: httpx.Response(
            200,
            headers={"Content-Encoding": "gzip"},
            stream=httpx.ByteStream(b"not gzip"),
        )
        client = make_client()

        with pytest.raises(HaloApiError, match="Failed to decode response body") as exc:
            await client.request("GET", "/api/Tickets")

        assert isinstance(exc.value.cause, httpx.DecodingError)


class TestCancellation:
    """Cancellation aborts in-flight calls and is never retried."""

    async def test_cancel_mid_request(self, fake_halo):
        started = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/auth/token":
                return fake_halo.handler(request)
            fake_halo.requests.append(request)
            started.set()
            await asyncio.sleep(30)
            return httpx.Response(200, json={})

        sleep = RecordingSleep()
        client = HaloClient(
            make_options(max_retry_attempts=5),
            transport=httpx.MockTransport(handler),
            sleep=sleep,
        )
        task = asyncio.create_task(client.request("GET", "/api/Tickets"))
        await asyncio.wait_for(started.wait(), timeout=1)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(fake_halo.api_requests) == 1
        assert sleep.delays == []
        await client.aclose()


class TestDisposal:
    """The transport is released exactly once."""

    async def test_double_close_is_a_no_op(self, fake_halo):
        transport = CountingTransport(fake_halo.transport())
        client = HaloClient(make_options(), transport=transport)

        await client.aclose()
        await client.aclose()

        assert transport.close_count == 1
        assert client.closed

    async def test_context_manager_closes(self, fake_halo):
        transport = CountingTransport(fake_halo.transport())

        async with HaloClient(make_options(), transport=transport) as client:
            await client.request("GET", "/api/Tickets")

        assert transport.close_count == 1

    async def test_requests_after_close_fail(self, fake_halo):
        client = HaloClient(make_options(), transport=fake_halo.transport())
        await client.aclose()

        with pytest.raises(HaloError, match="closed"):
            await client.request("GET", "/api/Tickets")
