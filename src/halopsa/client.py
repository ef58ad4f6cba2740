# ABOUTME: HaloPSA client facade
# ABOUTME: Composes the request pipeline and exposes resource groups over one transport

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from halopsa import __version__
from halopsa.auth import TokenAuthenticator
from halopsa.exceptions import HaloApiError, HaloError, error_from_transport, raise_for_response
from halopsa.options import HaloClientOptions
from halopsa.pipeline import PipelineTransport
from halopsa.request_logging import RequestLogger
from halopsa.resources.assets import AssetsApi
from halopsa.resources.directory import ClientsApi, TeamsApi, UsersApi
from halopsa.resources.projects import ProjectsApi
from halopsa.resources.tickets import TicketsApi, TicketTypesApi
from halopsa.retry import RetryPolicy, RetryStage

logger = logging.getLogger(__name__)

USER_AGENT = f"halopsa-python/{__version__}"


class PsaApi:
    """The PSA resource groups. All of them share the client's transport."""

    def __init__(self, client: "HaloClient") -> None:
        self.tickets = TicketsApi(client)
        self.ticket_types = TicketTypesApi(client)
        self.users = UsersApi(client)
        self.clients = ClientsApi(client)
        self.assets = AssetsApi(client)
        self.projects = ProjectsApi(client)
        self.teams = TeamsApi(client)


class HaloClient:
    """
    Async client for the HaloPSA REST API.

    Requests pass through a fixed pipeline: logging (outermost), retry,
    authentication, then the network transport.

    Usage:
        async with HaloClient(options) as halo:
            tickets = await halo.psa.tickets.get_all()
    """

    def __init__(
        self,
        options: HaloClientOptions,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """
        Validate the options and build the HTTP pipeline.

        Args:
            options: Client configuration
            transport: Network transport to send through (default: a real
                HTTP transport). Tests pass an ``httpx.MockTransport``.
            sleep: Override for the retry stage's backoff sleep

        Raises:
            ConfigurationError: The options are invalid
        """
        options.validate()
        self._options = options

        self.authenticator = TokenAuthenticator(options)
        retry_kwargs = {"sleep": sleep} if sleep is not None else {}
        self.retry = RetryStage(RetryPolicy.from_options(options), logger=options.logger, **retry_kwargs)
        self.request_logger = RequestLogger(
            options.logger,
            log_requests=options.enable_request_logging,
            log_responses=options.enable_response_logging,
        )

        pipeline = PipelineTransport(
            transport or httpx.AsyncHTTPTransport(),
            [self.request_logger, self.retry, self.authenticator],
        )
        headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        headers.update(options.default_headers)

        self._http = httpx.AsyncClient(
            base_url=options.effective_base_url,
            timeout=options.request_timeout,
            headers=headers,
            transport=pipeline,
        )
        self._closed = False

        self.psa = PsaApi(self)
        logger.debug(f"Created HaloPSA client for {self.base_url}")

    @property
    def account(self) -> str:
        return self._options.account

    @property
    def base_url(self) -> str:
        return self._options.effective_base_url

    @property
    def options(self) -> HaloClientOptions:
        return self._options

    @property
    def closed(self) -> bool:
        return self._closed

    # Shortcuts to the PSA groups
    @property
    def tickets(self) -> TicketsApi:
        return self.psa.tickets

    @property
    def ticket_types(self) -> TicketTypesApi:
        return self.psa.ticket_types

    @property
    def users(self) -> UsersApi:
        return self.psa.users

    @property
    def clients(self) -> ClientsApi:
        return self.psa.clients

    @property
    def assets(self) -> AssetsApi:
        return self.psa.assets

    @property
    def projects(self) -> ProjectsApi:
        return self.psa.projects

    @property
    def teams(self) -> TeamsApi:
        return self.psa.teams

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        resource_type: str | None = None,
        resource_id: Any = None,
    ) -> Any:
        """
        Send a request through the pipeline and decode the JSON result.

        Raises:
            HaloApiError: (or a subclass) for any failed request
            HaloError: The client has been closed
        """
        if self._closed:
            raise HaloError("client is closed")

        try:
            response = await self._http.request(method, path, params=params, json=json_body)
        except httpx.RequestError as exc:
            raise error_from_transport(exc) from exc

        raise_for_response(response, resource_type=resource_type, resource_id=resource_id)

        if not response.content:
            return None
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise HaloApiError(
                f"Failed to decode JSON response: {exc}",
                status_code=response.status_code,
                details={"body": response.text[:1000]},
                request_url=str(response.request.url),
                request_method=response.request.method,
                cause=exc,
            ) from exc

    async def aclose(self) -> None:
        """Release the transport. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        await self._http.aclose()
        logger.debug("Closed HaloPSA client")

    async def __aenter__(self) -> "HaloClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
