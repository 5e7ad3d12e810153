"""
Shared building blocks for resource and request models.

Every resource the panel returns arrives wrapped as
``{"object": <tag>, "attributes": {...}}``. Each attribute model declares the
tag it answers to in ``OBJECT_KIND`` so the codec can reject a response whose
tag does not match what the calling method expects.
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Resource(BaseModel):
    """
    Base class for decoded resource attributes.

    Unknown attribute keys are kept (``extra="allow"``) so decoding and
    re-encoding a resource never loses data the panel sent.

    Attributes:
        relationships: Decoded ``include`` relationships, keyed by relation
            name. Values are a Resource, a list of Resources, or None.
    """

    OBJECT_KIND: ClassVar[str] = ""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    relationships: dict[str, Any] = Field(default_factory=dict, exclude=True)

    def related(self, name: str) -> Any:
        """Return an included relationship, or None if it was not included."""
        return self.relationships.get(name)


class NullResource(Resource):
    """
    An untyped relationship payload.

    The panel tags some relationships (an egg's ``config`` and ``script``) as
    ``null_resource`` while still sending attributes; they are kept as-is.
    An empty ``null_resource`` decodes to None instead.
    """

    OBJECT_KIND = "null_resource"


class RequestBody(BaseModel):
    """Base class for typed request bodies."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    def to_json(self) -> dict[str, Any]:
        """Serialize for the wire: aliases applied, unset optionals dropped."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Limits(BaseModel):
    """Resource limits of a server (MiB for memory/swap/disk, percent for cpu)."""

    memory: int
    swap: int
    disk: int
    io: int
    cpu: int
    threads: int | str | None = None
    oom_disabled: bool | None = None


class FeatureLimits(BaseModel):
    """How many databases, allocations and backups a server may create."""

    databases: int
    allocations: int = 0
    backups: int


def coerce_installed(value: Any) -> Any:
    """
    Accept the ``installed`` flag as a boolean or an integer.

    Older panels report ``installed`` as 0/1, newer ones as a boolean.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value < 0:
            raise ValueError("installed must be a non-negative integer or a boolean")
        return value != 0
    return value


class ServerContainer(BaseModel):
    """Container settings of a server as seen by the Application API."""

    startup_command: str
    image: str
    installed: bool
    environment: dict[str, Any] = Field(default_factory=dict)

    @field_validator("installed", mode="before")
    @classmethod
    def installed_as_bool(cls, value: Any) -> Any:
        return coerce_installed(value)
