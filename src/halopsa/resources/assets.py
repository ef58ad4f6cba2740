# ABOUTME: Asset endpoints for HaloPSA
# ABOUTME: Lists configuration items from the assets envelope

from typing import TYPE_CHECKING

from halopsa.types import Asset, AssetsResponse, parse_record

if TYPE_CHECKING:
    from halopsa.client import HaloClient


class AssetsApi:
    """Asset management operations."""

    path = "/api/Asset"

    def __init__(self, client: "HaloClient") -> None:
        self._client = client

    async def get_all(self) -> list[Asset]:
        """Get all assets, unwrapped from the envelope."""
        response = await self.get_response()
        return response.assets

    async def get_response(self) -> AssetsResponse:
        data = await self._client.request("GET", self.path)
        return parse_record(AssetsResponse, data or {})
