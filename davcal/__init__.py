#!/usr/bin/env python
import logging

__version__ = "1.0.0"

from .davclient import DAVClient
from .service import CalendarService

## Silence notification of no default logging handler
log = logging.getLogger("davcal")


class NullHandler(logging.Handler):
    def emit(self, record) -> None:
        pass


log.addHandler(NullHandler())

__all__ = ["__version__", "CalendarService", "DAVClient"]
