#!/usr/bin/env python
import logging
import os
from typing import Optional

from davcal import __version__

## Environmental variables prepended with "PYTHON_DAVCAL" are used for debug purposes,
## environmental variables prepended with "DAVCAL_" are for connection parameters.
debug_dump_communication = os.environ.get("PYTHON_DAVCAL_COMMDUMP", False)
## debugmode is one of DEBUG, DEVELOPMENT, PRODUCTION
debugmode = os.environ.get("PYTHON_DAVCAL_DEBUGMODE")
if not debugmode:
    if "dev" in __version__:
        debugmode = "DEVELOPMENT"
    else:
        debugmode = "PRODUCTION"

log = logging.getLogger("davcal")
if debugmode.startswith("DEBUG"):
    log.setLevel(logging.DEBUG)
else:
    log.setLevel(logging.WARNING)


def errmsg(r) -> str:
    """Utility for formatting an error response to an error string"""
    return "%s %s\n\n%s" % (r.status, r.reason, r.body[:500])


class DAVError(Exception):
    url: Optional[str] = None
    reason: str = "no reason"

    def __init__(self, url: Optional[str] = None, reason: Optional[str] = None) -> None:
        if url:
            self.url = url
        if reason:
            self.reason = reason

    def __str__(self) -> str:
        return "%s at '%s', reason %s" % (
            self.__class__.__name__,
            self.url,
            self.reason,
        )


class IcsBuildError(DAVError, ValueError):
    """
    The ICS builder was given input it can't turn into a valid
    VEVENT (unparseable dates or times, missing start/end).  This is
    a caller input problem; the message is safe to hand back.
    """

    def __str__(self) -> str:
        return self.reason


class ConfigurationError(DAVError):
    """No usable url or credentials could be found."""

    def __str__(self) -> str:
        return self.reason
