"""
Abstract I/O protocol definition.

This module defines the interface that an I/O implementation must follow.
Anything with a matching ``execute`` and ``close`` can be handed to
``DAVClient``, which is how the tests run without a network.
"""

from typing import Protocol, runtime_checkable

from davcal.protocol.types import DAVRequest, DAVResponse


@runtime_checkable
class SyncIOProtocol(Protocol):
    """
    Protocol defining the synchronous I/O interface.

    Implementations execute DAVRequest objects and return DAVResponse
    objects.  Transport failures (connection refused, timeouts, TLS
    errors) propagate as ``requests.exceptions.RequestException``.
    """

    def execute(self, request: DAVRequest) -> DAVResponse:
        """
        Execute a request and return the response.

        Args:
            request: The DAVRequest to execute

        Returns:
            DAVResponse with status, headers, and body
        """
        ...

    def close(self) -> None:
        """Close any resources (e.g., HTTP session)."""
        ...
