# ABOUTME: User, client and team endpoints for HaloPSA
# ABOUTME: Each returns an envelope with a named list and record_count

from typing import TYPE_CHECKING

from halopsa.types import (
    Client,
    ClientsResponse,
    Team,
    TeamsResponse,
    User,
    UsersResponse,
    parse_record,
)

if TYPE_CHECKING:
    from halopsa.client import HaloClient


class UsersApi:
    """User management operations."""

    path = "/api/Users"

    def __init__(self, client: "HaloClient") -> None:
        self._client = client

    async def get_all(self) -> list[User]:
        """Get all users, unwrapped from the envelope."""
        response = await self.get_response()
        return response.users

    async def get_response(self) -> UsersResponse:
        data = await self._client.request("GET", self.path)
        return parse_record(UsersResponse, data or {})


class ClientsApi:
    """Customer (client) operations."""

    path = "/api/Client"

    def __init__(self, client: "HaloClient") -> None:
        self._client = client

    async def get_all(self) -> list[Client]:
        response = await self.get_response()
        return response.clients

    async def get_response(self) -> ClientsResponse:
        data = await self._client.request("GET", self.path)
        return parse_record(ClientsResponse, data or {})

    async def get_by_id(self, client_id: int) -> Client:
        data = await self._client.request(
            "GET",
            f"{self.path}/{client_id}",
            resource_type="Client",
            resource_id=client_id,
        )
        return parse_record(Client, data)


class TeamsApi:
    """Agent team lookups."""

    path = "/api/Team"

    def __init__(self, client: "HaloClient") -> None:
        self._client = client

    async def get_all(self) -> list[Team]:
        response = await self.get_response()
        return response.teams

    async def get_response(self) -> TeamsResponse:
        data = await self._client.request("GET", self.path)
        return parse_record(TeamsResponse, data or {})
