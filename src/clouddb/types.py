"""Response types for the Cloud Databases API.

Pydantic models for the JSON returned by the management endpoint. Fields
the API does not always send default to empty values, and unknown keys are
kept (with normalized names) so nothing the service returns is lost.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .utils import normalize_keys


class ApiModel(BaseModel):
    """Base for API records; extra keys are kept in identifier form."""

    model_config = ConfigDict(extra="allow")

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        return normalize_keys(data)


class Link(ApiModel):
    href: str = ""
    rel: str = ""


class FlavorRef(ApiModel):
    """Flavor reference embedded in instance records."""

    id: str | int | None = None
    links: list[Link] = Field(default_factory=list)


class Volume(ApiModel):
    """Volume attached to an instance; size is in GB."""

    size: int | None = None
    used: float | None = None


class InstanceSummary(ApiModel):
    """Entry of the instance listing."""

    id: str = ""
    name: str = ""
    status: str = ""
    links: list[Link] = Field(default_factory=list)
    flavor: FlavorRef | None = None
    volume: Volume | None = None


class InstanceDetail(InstanceSummary):
    """Full instance record as returned by a fetch or create.

    Status is one of BUILD, ACTIVE, BLOCKED, RESIZE, SHUTDOWN or FAILED.
    """

    hostname: str | None = None
    created: str | None = None
    updated: str | None = None

    @property
    def flavor_id(self) -> str | int | None:
        return self.flavor.id if self.flavor else None

    @property
    def volume_size(self) -> int | None:
        return self.volume.size if self.volume else None


class Database(ApiModel):
    """Database hosted on an instance."""

    name: str = ""
    character_set: str | None = None
    collate: str | None = None


class DatabaseUser(ApiModel):
    """User account on an instance."""

    name: str = ""
    databases: list[dict[str, Any]] = Field(default_factory=list)
