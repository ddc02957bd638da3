"""
Sans-I/O CalDAV protocol implementation.

This module provides protocol-level operations without any I/O.
It builds requests and parses responses as pure data transformations.

The protocol layer is organized into:
- types: Core data structures (DAVRequest, DAVResponse, Calendar, Event)
- xml_builders: Pure functions to build XML request bodies
- xml_parsers: Pure functions to parse XML response bodies
- operations: CalDAVProtocol class turning each discovery and event
  step into a DAVRequest

Example usage:

    from davcal.protocol import CalDAVProtocol, parse_current_user_principal

    protocol = CalDAVProtocol(base_url="https://caldav.icloud.com")

    # Build a request (no I/O)
    request = protocol.principal_request()

    # Execute via your preferred I/O (sync or mock)
    response = your_http_client.execute(request)

    # Parse response (no I/O)
    principal = parse_current_user_principal(response.body)
"""

from .types import (
    # Enums
    DAVMethod,
    # Request/Response
    DAVRequest,
    DAVResponse,
    # Domain types
    Calendar,
    Event,
    SyncCollectionResult,
)
from .xml_builders import (
    build_calendar_list_propfind_body,
    build_calendar_query_body,
    build_home_set_propfind_body,
    build_principal_propfind_body,
)
from .xml_parsers import (
    normalize_color,
    parse_calendar_home_set,
    parse_calendars,
    parse_current_user_principal,
    parse_deleted_hrefs,
    parse_etag,
    parse_events,
    parse_sync_collection,
    parse_sync_token,
)
from .operations import CalDAVProtocol

__all__ = [
    # Enums
    "DAVMethod",
    # Request/Response
    "DAVRequest",
    "DAVResponse",
    # Domain types
    "Calendar",
    "Event",
    "SyncCollectionResult",
    # XML Builders
    "build_calendar_list_propfind_body",
    "build_calendar_query_body",
    "build_home_set_propfind_body",
    "build_principal_propfind_body",
    # XML Parsers
    "normalize_color",
    "parse_calendar_home_set",
    "parse_calendars",
    "parse_current_user_principal",
    "parse_deleted_hrefs",
    "parse_etag",
    "parse_events",
    "parse_sync_collection",
    "parse_sync_token",
    # Protocol
    "CalDAVProtocol",
]
