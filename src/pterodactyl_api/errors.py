"""
Error taxonomy for the Pterodactyl API client.

Every failure a facade call can produce is one of the exception classes
defined here. Callers branch on the class to decide remediation:

    try:
        await api.delete_server(12)
    except ValidationError as e:
        # Caller-correctable (bad input, dependent resources, state conflict)
        for field_error in e.fields:
            print(field_error.field, field_error.detail)
    except (ServerError, TransportError):
        # Retry-worthy; the library never retries on its own
        ...

``map_error`` is the single place that turns a non-2xx status plus its body
into one of these exceptions.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# Upper bound on raw body text carried inside an exception.
BODY_SNIPPET_LIMIT = 512


# =============================================================================
# ERROR PAYLOAD TYPES
# =============================================================================


@dataclass(frozen=True)
class ErrorEntry:
    """
    One entry of the API error payload.

    The panel answers failed requests with::

        {"errors": [{"code": "ValidationException", "status": "422",
                     "detail": "The name field is required.",
                     "meta": {"source_field": "name", "rule": "required"}}]}

    Attributes:
        code: Exception class name reported by the panel.
        status: HTTP status as a string.
        detail: Human-readable description.
        source_field: Request field the entry refers to, if any.
        rule: Validation rule that failed, if any.
    """

    code: str
    status: str
    detail: str
    source_field: str | None = None
    rule: str | None = None


@dataclass(frozen=True)
class FieldError:
    """A caller-actionable validation detail attributed to a request field."""

    field: str | None
    detail: str
    rule: str | None = None


# =============================================================================
# EXCEPTIONS
# =============================================================================


@dataclass(eq=False)
class PterodactylError(Exception):
    """
    Base class for every error raised by this library.

    Attributes:
        message: Short summary of what failed.
        status_code: HTTP status code, or 0 when no response was received.
        detail: Additional detail from the panel or the underlying cause.
        entries: Parsed error payload entries, empty when the body had none.
    """

    message: str
    status_code: int = 0
    detail: str = ""
    entries: list[ErrorEntry] = field(default_factory=list)

    def __str__(self) -> str:
        """Return a formatted error message."""
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


@dataclass(eq=False)
class TransportError(PterodactylError):
    """The request never produced a response (DNS, connect, timeout, protocol)."""

    cause: BaseException | None = None


@dataclass(eq=False)
class MalformedResponseError(PterodactylError):
    """The body did not match the expected envelope or error payload shape."""

    body_snippet: str = ""


class UnauthorizedError(PterodactylError):
    """The API key is missing, invalid, or lacks permission (401/403)."""


class NotFoundError(PterodactylError):
    """The addressed resource does not exist or is not visible to the key (404)."""


class RateLimitedError(PterodactylError):
    """The panel throttled the key (429). No backoff is applied."""


@dataclass(eq=False)
class ValidationError(PterodactylError):
    """
    The panel rejected the request as caller-correctable (422 and other 4xx).

    Attributes:
        fields: One ``FieldError`` per error payload entry, in payload order.
    """

    fields: list[FieldError] = field(default_factory=list)


class ServerError(PterodactylError):
    """The panel failed internally (5xx)."""


@dataclass(eq=False)
class ShapeMismatchError(PterodactylError):
    """
    A decoded value violates its declared type.

    Attributes:
        field: Dotted location of the offending value (e.g. ``"limits.memory"``).
    """

    field: str = ""


class ConsoleClosedError(PterodactylError):
    """A frame was sent on a console channel that is no longer connected."""


class ConsoleAuthError(PterodactylError):
    """The console socket rejected the session token during the handshake."""


class StreamConsumedError(PterodactylError):
    """A byte stream was iterated after being exhausted or closed."""


# =============================================================================
# ERROR MAPPER
# =============================================================================


def snippet(body: bytes | str) -> str:
    """Return at most ``BODY_SNIPPET_LIMIT`` characters of a response body."""
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    return body[:BODY_SNIPPET_LIMIT]


def parse_error_payload(body: bytes | str) -> list[ErrorEntry] | None:
    """
    Parse a panel error payload.

    Returns:
        The entries in payload order, or None if the body is not an error
        payload (not JSON, no ``errors`` list, or entries of the wrong shape).
    """
    try:
        data = json.loads(body)
    except (ValueError, TypeError):
        return None

    if not isinstance(data, dict) or not isinstance(data.get("errors"), list):
        return None

    entries: list[ErrorEntry] = []
    for raw in data["errors"]:
        if not isinstance(raw, dict) or not isinstance(raw.get("detail"), str):
            return None
        meta = raw.get("meta") or {}
        source = raw.get("source") or {}
        if not isinstance(meta, dict) or not isinstance(source, dict):
            return None
        entries.append(
            ErrorEntry(
                code=str(raw.get("code", "")),
                status=str(raw.get("status", "")),
                detail=raw["detail"],
                source_field=meta.get("source_field") or source.get("field"),
                rule=meta.get("rule"),
            )
        )
    return entries


def _joined_detail(entries: list[ErrorEntry] | None, fallback: str) -> str:
    if not entries:
        return fallback
    return "; ".join(entry.detail for entry in entries)


def map_error(status: int, body: bytes | str) -> PterodactylError:
    """
    Convert a non-2xx response into the matching exception.

    The mapping is total: every non-2xx status produces exactly one error.

    Args:
        status: HTTP status code of the response.
        body: Raw response body.

    Returns:
        The exception to raise. It is returned rather than raised so callers
        can chain it onto their own context.
    """
    entries = parse_error_payload(body)
    kwargs: dict[str, Any] = {"status_code": status, "entries": entries or []}

    # Redirects are not followed; a 3xx usually means a scheme or login redirect.
    if status < 400:
        logger.warning("Unexpected non-2xx status %d", status)
        return MalformedResponseError(
            message=f"Unexpected response (status {status})",
            detail="The panel answered with a non-success status that is not an error",
            body_snippet=snippet(body),
            **kwargs,
        )

    if status in (401, 403):
        return UnauthorizedError(
            message="Unauthorized",
            detail=_joined_detail(entries, "API key rejected or lacks permission"),
            **kwargs,
        )

    if status == 404:
        return NotFoundError(
            message="Resource not found",
            detail=_joined_detail(entries, "The requested resource does not exist"),
            **kwargs,
        )

    if status == 429:
        return RateLimitedError(
            message="Rate limited",
            detail=_joined_detail(entries, "Too many requests"),
            **kwargs,
        )

    if status >= 500:
        return ServerError(
            message=f"Panel error (status {status})",
            detail=_joined_detail(entries, snippet(body)),
            **kwargs,
        )

    if entries is None:
        logger.warning("Unparseable error body for status %d", status)
        return MalformedResponseError(
            message=f"Malformed error response (status {status})",
            detail="Body is not a Pterodactyl error payload",
            body_snippet=snippet(body),
            **kwargs,
        )

    return ValidationError(
        message="Request rejected" if status != 422 else "Validation failed",
        detail=_joined_detail(entries, f"Request failed with status {status}"),
        fields=[FieldError(e.source_field, e.detail, e.rule) for e in entries],
        **kwargs,
    )
