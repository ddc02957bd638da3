"""
Synchronous I/O implementation using the requests library.
"""

import logging
from typing import Optional

import requests

from davcal.protocol.types import DAVRequest, DAVResponse

log = logging.getLogger(__name__)


class SyncIO:
    """
    Synchronous I/O shell using the requests library.

    This is a thin wrapper that executes DAVRequest objects via HTTP
    and returns DAVResponse objects.  Redirects are followed, which is
    how iCloud moves a client over to its per-user pNN host.

    Example:
        io = SyncIO()
        request = protocol.principal_request()
        response = io.execute(request)
        principal = parse_current_user_principal(response.body)
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        verify: bool = True,
    ):
        """
        Initialize the sync I/O handler.

        Args:
            session: Existing requests Session to use (creates new if None)
            timeout: Request timeout in seconds, for connect and read
            verify: Verify SSL certificates
        """
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.timeout = timeout
        self.verify = verify

    def execute(self, request: DAVRequest) -> DAVResponse:
        """
        Execute a DAVRequest and return DAVResponse.

        Args:
            request: The request to execute

        Returns:
            DAVResponse with status, headers, and body

        Raises:
            requests.exceptions.RequestException on transport failure
        """
        log.debug("%s %s", request.method.value, request.url)
        response = self.session.request(
            method=request.method.value,
            url=request.url,
            headers=request.headers,
            data=request.body,
            timeout=self.timeout,
            verify=self.verify,
        )
        log.debug("%s %s -> %s", request.method.value, request.url, response.status_code)

        return DAVResponse(
            status=response.status_code,
            headers=dict(response.headers),
            body=response.content,
        )

    def close(self) -> None:
        """Close the session if we created it."""
        if self._owns_session and self.session:
            self.session.close()

    def __enter__(self) -> "SyncIO":
        """Context manager entry."""
        return self

    def __exit__(self, *args) -> None:
        """Context manager exit."""
        self.close()
