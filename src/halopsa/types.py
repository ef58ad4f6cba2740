# ABOUTME: Pydantic models for HaloPSA API records
# ABOUTME: Defines Ticket, User, Client, Asset, Project, Team and list envelopes

from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from halopsa.exceptions import HaloApiError

M = TypeVar("M", bound=BaseModel)


class HaloModel(BaseModel):
    """Base for API records. Unknown fields are kept, not rejected."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class Ticket(HaloModel):
    """A PSA ticket."""

    id: int
    summary: str = ""
    details: str | None = None
    status_id: int | None = None
    status_name: str | None = None
    priority_id: int | None = None
    client_id: int | None = None
    client_name: str | None = None
    site_id: int | None = None
    site_name: str | None = None
    user_id: int | None = None
    user_name: str | None = None
    agent_id: int | None = None
    team: str | None = None
    tickettype_id: int | None = None
    category_1: str | None = None
    dateoccurred: datetime | None = None
    lastactiondate: datetime | None = None
    dateclosed: datetime | None = None
    onhold: bool = False
    customfields: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def is_closed(self) -> bool:
        return self.dateclosed is not None


class TicketType(HaloModel):
    """A ticket type (incident, request, change, ...)."""

    id: int
    name: str = ""
    group_id: int | None = None
    inactive: bool = False


class User(HaloModel):
    """An end user belonging to a client site."""

    id: int
    name: str = ""
    emailaddress: str | None = None
    client_id: int | None = None
    client_name: str | None = None
    site_id: int | None = None
    site_name: str | None = None
    inactive: bool = False


class Client(HaloModel):
    """A customer organisation."""

    id: int
    name: str = ""
    toplevel_id: int | None = None
    toplevel_name: str | None = None
    inactive: bool = False


class Asset(HaloModel):
    """A configuration item tracked against a client."""

    id: int
    inventory_number: str | None = None
    key_field: str | None = None
    client_id: int | None = None
    client_name: str | None = None
    site_id: int | None = None
    assettype_id: int | None = None
    assettype_name: str | None = None
    inactive: bool = False

    @property
    def name(self) -> str:
        return self.key_field or self.inventory_number or ""


class Project(HaloModel):
    """A project (a ticket flagged as a project in HaloPSA)."""

    id: int
    summary: str = ""
    client_id: int | None = None
    client_name: str | None = None
    status_id: int | None = None
    agent_id: int | None = None
    dateoccurred: datetime | None = None
    percentcomplete: float | None = None

    @property
    def name(self) -> str:
        return self.summary


class Team(HaloModel):
    """An agent team."""

    id: int
    name: str = ""
    department_id: int | None = None
    inactive: bool = False


class _ListEnvelope(HaloModel):
    record_count: int = 0
    page_no: int | None = None
    page_size: int | None = None

    @property
    def is_paginated(self) -> bool:
        return self.page_size is not None


class TicketsResponse(_ListEnvelope):
    tickets: list[Ticket] = Field(default_factory=list)


class UsersResponse(_ListEnvelope):
    users: list[User] = Field(default_factory=list)


class ClientsResponse(_ListEnvelope):
    clients: list[Client] = Field(default_factory=list)


class AssetsResponse(_ListEnvelope):
    assets: list[Asset] = Field(default_factory=list)


class ProjectsResponse(_ListEnvelope):
    projects: list[Project] = Field(default_factory=list)


class TeamsResponse(_ListEnvelope):
    teams: list[Team] = Field(default_factory=list)


class TicketFilter(BaseModel):
    """Query options for listing tickets."""

    count: int | None = None
    client_id: int | None = None
    search: str | None = None
    paginate: bool | None = None
    page_size: int | None = None
    page_no: int | None = None

    def to_params(self) -> dict[str, Any]:
        """Render the set fields as query parameters."""
        params: dict[str, Any] = {}
        for key, value in self.model_dump(exclude_none=True).items():
            params[key] = str(value).lower() if isinstance(value, bool) else value
        return params


def parse_record(model: type[M], data: Any) -> M:
    """
    Validate one decoded response body against a model.

    Raises:
        HaloApiError: The body does not have the model's shape
    """
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise HaloApiError(
            f"Unexpected {model.__name__} payload from HaloPSA: {exc.error_count()} validation error(s)",
            details={"errors": exc.errors(include_url=False)},
            cause=exc,
        ) from exc


def parse_records(model: type[M], data: Any) -> list[M]:
    """Validate a bare-array response body. A missing body is an empty list."""
    if data is None:
        return []
    if not isinstance(data, list):
        raise HaloApiError(
            f"Expected a list of {model.__name__} records from HaloPSA, got {type(data).__name__}",
            details={"body": data},
        )
    return [parse_record(model, item) for item in data]
