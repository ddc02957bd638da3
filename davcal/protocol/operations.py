"""
CalDAV protocol operations: request building without any I/O.

``CalDAVProtocol`` knows the server root and the credentials and turns
each step of the CalDAV conversation into a ``DAVRequest``.  Executing
the request and interpreting the response is up to the caller.
"""

import base64
import uuid
from typing import Dict, Optional

from davcal.lib import url as urllib_

from .types import DAVMethod, DAVRequest
from .xml_builders import (
    build_calendar_list_propfind_body,
    build_calendar_query_body,
    build_home_set_propfind_body,
    build_principal_propfind_body,
)

XML_CONTENT_TYPE = "application/xml; charset=utf-8"
ICS_CONTENT_TYPE = "text/calendar; charset=utf-8"


class CalDAVProtocol:
    """
    Sans-I/O CalDAV protocol handler.

    Example:
        protocol = CalDAVProtocol(
            base_url="https://caldav.icloud.com",
            username="user@icloud.com",
            password="app-specific-password",
        )

        # Build request
        request = protocol.principal_request()

        # Execute with your I/O (not shown)
        response = io.execute(request)
    """

    def __init__(
        self,
        base_url: str = "",
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        """
        Initialize the protocol handler.

        Args:
            base_url: Base URL for the CalDAV server
            username: Username for Basic authentication
            password: Password for Basic authentication
        """
        self.base_url = base_url.rstrip("/") if base_url else ""
        self._auth_header = self._build_auth_header(username, password)

    def _build_auth_header(
        self,
        username: Optional[str],
        password: Optional[str],
    ) -> Optional[str]:
        """Build Basic auth header if credentials provided."""
        if username and password:
            credentials = f"{username}:{password}"
            encoded = base64.b64encode(credentials.encode("utf-8")).decode("ascii")
            return f"Basic {encoded}"
        return None

    def _base_headers(self, content_type: Optional[str] = XML_CONTENT_TYPE) -> Dict[str, str]:
        """Return base headers for all requests."""
        headers = {}
        if content_type:
            headers["Content-Type"] = content_type
        if self._auth_header:
            headers["Authorization"] = self._auth_header
        return headers

    def resolve_url(self, href: str) -> str:
        """
        Resolve an href to a full URL.

        Args:
            href: Path relative to the server root, or absolute URL

        Returns:
            Full URL
        """
        if not href:
            return self.base_url
        return urllib_.join(self.base_url, href)

    # =========================================================================
    # Discovery
    # =========================================================================

    def principal_request(self) -> DAVRequest:
        """PROPFIND on the service root for current-user-principal, Depth 0."""
        return self._propfind(self.base_url, build_principal_propfind_body(), depth=0)

    def home_set_request(self, principal_href: str) -> DAVRequest:
        """PROPFIND on the principal for calendar-home-set, Depth 0."""
        return self._propfind(
            self.resolve_url(principal_href), build_home_set_propfind_body(), depth=0
        )

    def calendar_list_request(self, home_set_href: str) -> DAVRequest:
        """PROPFIND on the home set for the calendar collections, Depth 1."""
        return self._propfind(
            self.resolve_url(home_set_href),
            build_calendar_list_propfind_body(),
            depth=1,
        )

    def _propfind(self, target: str, body: bytes, depth: int) -> DAVRequest:
        headers = {
            **self._base_headers(),
            "Depth": str(depth),
        }
        return DAVRequest(
            method=DAVMethod.PROPFIND,
            url=target,
            headers=headers,
            body=body,
        )

    # =========================================================================
    # Events
    # =========================================================================

    def calendar_query_request(
        self,
        calendar_url: str,
        start_date: str,
        end_date: str,
    ) -> DAVRequest:
        """
        Build a calendar-query REPORT for the VEVENTs between two days.

        Args:
            calendar_url: Calendar collection URL
            start_date: First day, YYYY-MM-DD
            end_date: Last day (inclusive), YYYY-MM-DD

        Returns:
            DAVRequest ready for execution
        """
        headers = {
            **self._base_headers(),
            "Depth": "1",
        }
        return DAVRequest(
            method=DAVMethod.REPORT,
            url=self.resolve_url(calendar_url),
            headers=headers,
            body=build_calendar_query_body(start_date, end_date),
        )

    def new_event_url(self, calendar_url: str) -> str:
        """A fresh resource URL inside the calendar collection."""
        return "%s/%s.ics" % (self.resolve_url(calendar_url).rstrip("/"), uuid.uuid4())

    def create_request(self, event_url: str, data: bytes) -> DAVRequest:
        """
        Build a PUT that only succeeds if nothing exists at ``event_url``
        yet (If-None-Match: *).
        """
        headers = self._base_headers(ICS_CONTENT_TYPE)
        headers["If-None-Match"] = "*"
        return DAVRequest(
            method=DAVMethod.PUT,
            url=self.resolve_url(event_url),
            headers=headers,
            body=data,
        )

    def put_request(
        self,
        href: str,
        data: bytes,
        etag: Optional[str] = None,
    ) -> DAVRequest:
        """
        Build a PUT to overwrite a resource.

        Args:
            href: Resource path or URL
            data: Resource content
            etag: If-Match precondition.  None means an unconditional
                overwrite.

        Returns:
            DAVRequest ready for execution
        """
        headers = self._base_headers(ICS_CONTENT_TYPE)
        if etag is not None:
            headers["If-Match"] = etag

        return DAVRequest(
            method=DAVMethod.PUT,
            url=self.resolve_url(href),
            headers=headers,
            body=data,
        )

    def delete_request(
        self,
        href: str,
        etag: Optional[str] = None,
    ) -> DAVRequest:
        """
        Build a DELETE request.

        Args:
            href: Resource path or URL
            etag: If-Match precondition.  None means an unconditional
                delete.

        Returns:
            DAVRequest ready for execution
        """
        headers = self._base_headers(content_type=None)
        if etag is not None:
            headers["If-Match"] = etag

        return DAVRequest(
            method=DAVMethod.DELETE,
            url=self.resolve_url(href),
            headers=headers,
        )
