"""Pydantic request/response models for the dashboard API endpoints.

- Server config models: ServerConfigRequest, ServerConfigResponse,
  ServerConfigUpdateResponse
- Metadata models: MetadataUpdateRequest
- Health models: DashboardHealthResponse
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator, model_validator

from jlib_dashboard.config import is_valid_server_url, normalize_server_url

# NOTE: Update this list when adding new models to this module.
__all__: list[str] = [
    "ServerConfigRequest",
    "ServerConfigResponse",
    "ServerConfigUpdateResponse",
    "MetadataUpdateRequest",
    "DashboardHealthResponse",
]


class ServerConfigRequest(BaseModel):
    """Request model for changing the inspection server target."""

    model_config = ConfigDict(populate_by_name=True)

    jlib_server_url: StrictStr = Field(alias="jlibServerUrl")

    @field_validator("jlib_server_url")
    @classmethod
    def check_url(cls, value: str) -> str:
        value = normalize_server_url(value)
        if not is_valid_server_url(value):
            raise ValueError("must be an absolute http or https URL with a host")
        return value


class ServerConfigResponse(BaseModel):
    """Response model for reading the inspection server target."""

    model_config = ConfigDict(populate_by_name=True)

    jlib_server_url: str = Field(alias="jlibServerUrl")


class ServerConfigUpdateResponse(BaseModel):
    """Response model for a successful target change."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    jlib_server_url: str = Field(alias="jlibServerUrl")


class MetadataUpdateRequest(BaseModel):
    """Request model for editing an application's user metadata.

    At least one field must be given. Unknown fields are rejected. A null
    ``name`` or ``description`` clears it, as the inspection server does.
    """

    model_config = ConfigDict(extra="forbid")

    name: StrictStr | None = ""
    description: StrictStr | None = ""
    tags: list[StrictStr] = Field(default_factory=list)

    @field_validator("name", "description")
    @classmethod
    def null_as_empty(cls, value: str | None) -> str:
        return "" if value is None else value

    @model_validator(mode="after")
    def require_a_field(self) -> MetadataUpdateRequest:
        if not self.model_fields_set:
            raise ValueError("at least one of name, description or tags is required")
        return self

    def changed_fields(self) -> dict[str, Any]:
        """The fields the client actually sent."""
        return self.model_dump(include=self.model_fields_set)


class DashboardHealthResponse(BaseModel):
    """Response model for the dashboard's own health summary."""

    model_config = ConfigDict(populate_by_name=True)

    status: str
    timestamp: str
    jlib_server_status: str = Field(alias="jlibServerStatus")
    applications_count: int = Field(alias="applicationsCount")
    subscribers: int
