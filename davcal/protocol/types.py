"""
Core protocol types for the Sans-I/O CalDAV implementation.

DAVRequest and DAVResponse represent HTTP requests and responses at the
protocol level, independent of any I/O implementation.  Calendar and
Event are the typed results the parsers produce from multistatus
bodies.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class DAVMethod(Enum):
    """WebDAV/CalDAV HTTP methods used by the client."""

    PUT = "PUT"
    DELETE = "DELETE"
    PROPFIND = "PROPFIND"
    REPORT = "REPORT"


@dataclass(frozen=True)
class DAVRequest:
    """
    Represents an HTTP request to be made.

    This is a pure data structure with no I/O. It describes what request
    should be made, but does not make it.

    Attributes:
        method: HTTP method (PUT, PROPFIND, etc.)
        url: Full URL for the request
        headers: HTTP headers as dict
        body: Request body as bytes (optional)
    """

    method: DAVMethod
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None

    def __repr__(self) -> str:
        ## Never leak the Authorization header into logs or tracebacks
        return "DAVRequest(%s %s)" % (self.method.value, self.url)


@dataclass(frozen=True)
class DAVResponse:
    """
    Represents an HTTP response received.

    Attributes:
        status: HTTP status code
        headers: HTTP headers as dict
        body: Response body as bytes
    """

    status: int
    headers: dict[str, str]
    body: bytes

    @property
    def reason(self) -> str:
        """Return a reason phrase for the status code."""
        reasons = {
            200: "OK",
            201: "Created",
            204: "No Content",
            207: "Multi-Status",
            400: "Bad Request",
            401: "Unauthorized",
            403: "Forbidden",
            404: "Not Found",
            409: "Conflict",
            412: "Precondition Failed",
            500: "Internal Server Error",
            502: "Bad Gateway",
            503: "Service Unavailable",
        }
        return reasons.get(self.status, "Unknown")

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        name = name.lower()
        for key, value in self.headers.items():
            if key.lower() == name:
                return value
        return None


@dataclass(frozen=True)
class Calendar:
    """
    A calendar collection as found by discovery.

    Attributes:
        id: Calendar identifier, the last path segment of the href
        href: Server-relative path, e.g. /1234567/calendars/home/
        url: Absolute URL of the collection
        display_name: Human-readable calendar name
        color: Hex color normalized to #RRGGBB, or None
        ctag: Change tag of the collection, or None
        is_read_only: True if the current user lacks the write privilege
    """

    id: str
    href: str
    url: str
    display_name: str
    color: Optional[str] = None
    ctag: Optional[str] = None
    is_read_only: bool = False


@dataclass(frozen=True)
class Event:
    """
    A calendar object resource holding one VCALENDAR.

    Attributes:
        uid: UID of the VEVENT
        href: Path of the .ics resource
        url: Absolute URL of the .ics resource
        etag: ETag for If-Match preconditions, None if unknown
        ical_data: Raw ICS content
    """

    uid: str
    href: str
    url: str
    etag: Optional[str]
    ical_data: str

    @property
    def has_etag(self) -> bool:
        """True if this event has a usable etag for conditional updates"""
        return bool(self.etag and self.etag.strip())


@dataclass
class SyncCollectionResult:
    """
    Parsed result of a sync-collection REPORT.

    Attributes:
        changed: Changed/new resources
        deleted: Hrefs of deleted resources
        sync_token: New sync token for next sync
    """

    changed: list[Event] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    sync_token: Optional[str] = None
