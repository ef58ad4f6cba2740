# ABOUTME: Project endpoints for HaloPSA
# ABOUTME: Lists projects and fetches a single project by id

from typing import TYPE_CHECKING

from halopsa.types import Project, ProjectsResponse, parse_record

if TYPE_CHECKING:
    from halopsa.client import HaloClient


class ProjectsApi:
    """Project management operations."""

    path = "/api/Projects"

    def __init__(self, client: "HaloClient") -> None:
        self._client = client

    async def get_all(self) -> list[Project]:
        response = await self.get_response()
        return response.projects

    async def get_response(self) -> ProjectsResponse:
        data = await self._client.request("GET", self.path)
        return parse_record(ProjectsResponse, data or {})

    async def get_by_id(self, project_id: int) -> Project:
        """Get one project. Raises HaloNotFoundError if it does not exist."""
        data = await self._client.request(
            "GET",
            f"{self.path}/{project_id}",
            resource_type="Project",
            resource_id=project_id,
        )
        return parse_record(Project, data)
