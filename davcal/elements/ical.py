#!/usr/bin/env python
from typing import ClassVar

from .base import BaseElement
from .base import ValuedBaseElement
from davcal.lib.namespace import ns


# Properties
class CalendarColor(ValuedBaseElement):
    tag: ClassVar[str] = ns("I", "calendar-color")


## CalendarServer extension, the collection-level change tag
class GetCtag(BaseElement):
    tag: ClassVar[str] = ns("CS", "getctag")
