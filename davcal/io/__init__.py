"""
I/O layer for the CalDAV protocol.

The I/O layer is intentionally thin - it only handles HTTP transport.
All protocol logic (XML building/parsing) is in davcal.protocol.

Example:
    from davcal.protocol import CalDAVProtocol
    from davcal.io import SyncIO

    protocol = CalDAVProtocol(base_url="https://caldav.icloud.com")
    with SyncIO() as io:
        response = io.execute(protocol.principal_request())
"""

from .base import SyncIOProtocol
from .sync import SyncIO

__all__ = [
    # Protocols
    "SyncIOProtocol",
    # Implementations
    "SyncIO",
]
