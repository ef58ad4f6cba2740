# ABOUTME: Ticket endpoints for HaloPSA
# ABOUTME: Lists tickets (envelope response) and ticket types (bare array)

from typing import TYPE_CHECKING

from halopsa.types import (
    Ticket,
    TicketFilter,
    TicketsResponse,
    TicketType,
    parse_record,
    parse_records,
)

if TYPE_CHECKING:
    from halopsa.client import HaloClient


class TicketsApi:
    """Ticket management operations."""

    path = "/api/Tickets"

    def __init__(self, client: "HaloClient") -> None:
        self._client = client

    async def get_all(self, filter: TicketFilter | None = None) -> TicketsResponse:
        """
        List tickets.

        Args:
            filter: Optional count, client, search and pagination options

        Returns:
            The ticket envelope, including record_count and paging fields
        """
        params = filter.to_params() if filter else None
        data = await self._client.request("GET", self.path, params=params)
        return parse_record(TicketsResponse, data or {})

    async def get_by_id(self, ticket_id: int) -> Ticket:
        """Get one ticket. Raises HaloNotFoundError if it does not exist."""
        data = await self._client.request(
            "GET",
            f"{self.path}/{ticket_id}",
            resource_type="Ticket",
            resource_id=ticket_id,
        )
        return parse_record(Ticket, data)


class TicketTypesApi:
    """Ticket type lookups. This endpoint returns a bare array."""

    path = "/api/TicketType"

    def __init__(self, client: "HaloClient") -> None:
        self._client = client

    async def get_all(self) -> list[TicketType]:
        data = await self._client.request("GET", self.path)
        return parse_records(TicketType, data)
