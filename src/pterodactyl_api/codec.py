"""
Envelope codec for Pterodactyl API responses.

The panel wraps every entity in the same envelope::

    {"object": "server", "attributes": {..., "relationships": {...}}}

and every collection in a list envelope::

    {"object": "list", "data": [<envelope>, ...],
     "meta": {"pagination": {"total": 2, "count": 2, "per_page": 50,
                             "current_page": 1, "total_pages": 1}}}

This module turns those bodies into typed models. It is pure: it reads an
already-received ``httpx.Response`` and never touches the network.

Decoding rules:
    - A non-2xx status is never decoded as success; it goes to ``map_error``.
    - The ``object`` tag must match the model the caller asked for.
    - Relationships are decoded by dispatching on their own ``object`` tag
      through a ``KindRegistry``; a tag the registry does not know is a
      shape mismatch, not a silently untyped dict.
    - A single bad list element fails the whole decode.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import httpx
import pydantic

from pterodactyl_api.errors import (
    MalformedResponseError,
    ShapeMismatchError,
    map_error,
    snippet,
)
from pterodactyl_api.models.common import Resource

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Resource)
M = TypeVar("M", bound=pydantic.BaseModel)

LIST_OBJECT = "list"
NULL_OBJECT = "null_resource"

Location = tuple[str | int, ...]


# =============================================================================
# KIND REGISTRY
# =============================================================================


class KindRegistry:
    """
    Maps ``object`` tags to the attribute model that decodes them.

    Each API surface has its own registry because both surfaces reuse tags
    such as ``server`` with different attribute shapes.

    Example:
        registry = KindRegistry(ClientServer, ClientAllocation)
        registry.model_for("allocation")  # ClientAllocation
    """

    def __init__(self, *models: type[Resource]) -> None:
        self._models: dict[str, type[Resource]] = {}
        for model in models:
            if not model.OBJECT_KIND:
                raise ValueError(f"{model.__name__} does not declare OBJECT_KIND")
            self._models[model.OBJECT_KIND] = model

    def model_for(self, tag: str) -> type[Resource] | None:
        return self._models.get(tag)

    def __contains__(self, tag: object) -> bool:
        return tag in self._models

    def __iter__(self) -> Iterator[str]:
        return iter(self._models)


EMPTY_REGISTRY = KindRegistry()


# =============================================================================
# PAGINATION
# =============================================================================


def _dotted(location: Location) -> str:
    return ".".join(str(part) for part in location)


def _mismatch(location: Location, detail: str) -> ShapeMismatchError:
    field = _dotted(location)
    return ShapeMismatchError(
        message=f"Unexpected value at '{field}'",
        detail=detail,
        field=field,
    )


@dataclass(frozen=True)
class Pagination:
    """
    Pagination metadata of a list envelope.

    Attributes:
        total: Number of items across all pages.
        count: Number of items on this page.
        per_page: Page size.
        current_page: 1-based page number.
        total_pages: Number of pages.
    """

    total: int
    count: int
    per_page: int
    current_page: int
    total_pages: int

    @property
    def offset(self) -> int:
        """Index of this page's first item within the whole collection."""
        return (self.current_page - 1) * self.per_page

    @property
    def has_more(self) -> bool:
        return self.current_page < self.total_pages

    @classmethod
    def from_payload(cls, raw: Any) -> Pagination:
        """Build from ``meta.pagination``, requiring every field to be an int."""
        location: Location = ("meta", "pagination")
        if not isinstance(raw, dict):
            raise _mismatch(location, "pagination metadata must be an object")

        values: dict[str, int] = {}
        for name in ("total", "count", "per_page", "current_page", "total_pages"):
            value = raw.get(name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise _mismatch(location + (name,), "expected a non-negative integer")
            values[name] = value

        pagination = cls(**values)
        if pagination.per_page == 0:
            raise _mismatch(location + ("per_page",), "page size must be positive")
        if pagination.current_page == 0:
            raise _mismatch(location + ("current_page",), "pages are numbered from 1")
        return pagination

    def check(self, item_count: int) -> None:
        """
        Verify the metadata agrees with itself and with the decoded items.

        Raises:
            ShapeMismatchError: Naming the first inconsistent field.
        """
        location: Location = ("meta", "pagination")
        if item_count != self.count:
            raise _mismatch(
                location + ("count",),
                f"count is {self.count} but the page holds {item_count} items",
            )

        expected = min(self.per_page, max(self.total - self.offset, 0))
        if item_count != expected:
            raise _mismatch(
                location + ("total",),
                f"expected {expected} items on page {self.current_page}, got {item_count}",
            )

        pages = math.ceil(self.total / self.per_page)
        # An empty collection is reported as a single empty page by the panel.
        if self.total_pages != pages and not (pages == 0 and self.total_pages == 1):
            raise _mismatch(
                location + ("total_pages",),
                f"total_pages is {self.total_pages}, expected {pages}",
            )


@dataclass(frozen=True)
class Page(Generic[T]):
    """
    One decoded page of a list endpoint.

    ``pagination`` is None for endpoints that return the whole collection at
    once (directory listings, egg variables).
    """

    items: list[T]
    pagination: Pagination | None = None

    @property
    def has_more(self) -> bool:
        """True if a later page exists."""
        return self.pagination is not None and self.pagination.has_more

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __getitem__(self, index: int) -> T:
        return self.items[index]


# =============================================================================
# DECODING
# =============================================================================


def load_json(response: httpx.Response) -> Any:
    """
    Return the parsed JSON body of a successful response.

    Raises:
        PterodactylError: The mapped error for any non-2xx status.
        MalformedResponseError: If the body is not JSON.
    """
    status = response.status_code
    if not response.is_success:
        raise map_error(status, response.content)

    content_type = response.headers.get("content-type", "")
    if "json" not in content_type.lower():
        logger.warning("Expected a JSON body, got content type %r", content_type)
        raise MalformedResponseError(
            message="Unexpected content type",
            status_code=status,
            detail=f"Expected a JSON body, got '{content_type or 'none'}'",
            body_snippet=snippet(response.content),
        )

    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponseError(
            message="Invalid JSON body",
            status_code=status,
            detail=str(e),
            body_snippet=snippet(response.content),
        ) from e


def validate_model(model: type[M], data: Any, location: Location = ()) -> M:
    """
    Validate ``data`` against ``model``.

    Raises:
        ShapeMismatchError: Naming the dotted location of the first bad field.
    """
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        raise _mismatch(location + tuple(first["loc"]), first["msg"]) from e


def decode_envelope(
    payload: Any,
    registry: KindRegistry = EMPTY_REGISTRY,
    *,
    expected: type[Resource] | None = None,
    location: Location = (),
) -> Any:
    """
    Decode one envelope.

    With ``expected`` set, the envelope must carry that model's tag. Without
    it, the tag selects the model from ``registry``: list envelopes decode to
    a list, an empty ``null_resource`` to None.

    Returns:
        A Resource, a list of Resources, or None.
    """
    if not isinstance(payload, dict):
        raise _mismatch(location or ("object",), "expected an envelope object")

    tag = payload.get("object")

    if expected is None:
        if tag == NULL_OBJECT and not payload.get("attributes"):
            return None
        if tag == LIST_OBJECT:
            data = payload.get("data")
            if not isinstance(data, list):
                raise _mismatch(location + ("data",), "list envelope without data")
            return [
                decode_envelope(item, registry, location=location + ("data", index))
                for index, item in enumerate(data)
            ]
        model = registry.model_for(tag) if isinstance(tag, str) else None
        if model is None:
            raise _mismatch(location + ("object",), f"unknown object kind {tag!r}")
    else:
        model = expected
        if tag != model.OBJECT_KIND:
            raise _mismatch(
                location + ("object",),
                f"expected object kind '{model.OBJECT_KIND}', got {tag!r}",
            )

    attributes = payload.get("attributes")
    if not isinstance(attributes, dict):
        raise _mismatch(location + ("attributes",), "expected an attributes object")

    attributes = dict(attributes)
    raw_relationships = attributes.pop("relationships", None) or payload.get("relationships")
    relationships: dict[str, Any] = {}
    if raw_relationships:
        if not isinstance(raw_relationships, dict):
            raise _mismatch(location + ("relationships",), "expected a mapping")
        for name, value in raw_relationships.items():
            relationships[name] = decode_envelope(
                value, registry, location=location + ("relationships", name)
            )

    resource = validate_model(model, attributes, location + ("attributes",))
    resource.relationships = relationships
    return resource


def decode_resource(
    response: httpx.Response,
    model: type[T],
    registry: KindRegistry = EMPTY_REGISTRY,
) -> T:
    """Decode a single-resource response into ``model``."""
    payload = load_json(response)
    resource: T = decode_envelope(payload, registry, expected=model)
    return resource


def decode_list(
    response: httpx.Response,
    model: type[T],
    registry: KindRegistry = EMPTY_REGISTRY,
) -> Page[T]:
    """
    Decode a list response into a ``Page`` of ``model``.

    Every element must carry ``model``'s tag. Pagination metadata, when
    present, must be consistent with the decoded items.
    """
    payload = load_json(response)
    if not isinstance(payload, dict) or payload.get("object") != LIST_OBJECT:
        tag = payload.get("object") if isinstance(payload, dict) else None
        raise _mismatch(("object",), f"expected a list envelope, got {tag!r}")

    data = payload.get("data")
    if not isinstance(data, Sequence) or isinstance(data, str):
        raise _mismatch(("data",), "list envelope without data")

    items: list[T] = [
        decode_envelope(item, registry, expected=model, location=("data", index))
        for index, item in enumerate(data)
    ]

    pagination = None
    meta = payload.get("meta")
    if isinstance(meta, dict) and "pagination" in meta:
        pagination = Pagination.from_payload(meta["pagination"])
        pagination.check(len(items))

    return Page(items=items, pagination=pagination)


def decode_data(response: httpx.Response, model: type[M]) -> M:
    """Decode a bare ``{"data": {...}}`` body (used by the console handshake)."""
    payload = load_json(response)
    if not isinstance(payload, dict) or "data" not in payload:
        raise _mismatch(("data",), "expected a data object")
    return validate_model(model, payload["data"], ("data",))


def decode_empty(response: httpx.Response) -> None:
    """Accept any successful response, discarding its body."""
    if not response.is_success:
        raise map_error(response.status_code, response.content)
