#!/usr/bin/env python
from typing import Dict
from typing import Optional

nsmap: Dict[str, str] = {
    "D": "DAV:",
    "C": "urn:ietf:params:xml:ns:caldav",
}

## The CalendarServer and Apple namespaces carry getctag and
## calendar-color.  Neither is described in any RFC, so they are only
## declared on the requests that actually ask for those properties.
nsmap2: Dict[str, str] = nsmap.copy()
nsmap2["CS"] = "http://calendarserver.org/ns/"
nsmap2["I"] = "http://apple.com/ns/ical/"


def ns(prefix: str, tag: Optional[str] = None) -> str:
    name = "{%s}" % nsmap2[prefix]
    if tag is not None:
        name = "%s%s" % (name, tag)
    return name
