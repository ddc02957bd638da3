"""
Pure functions for parsing CalDAV XML responses.

All functions in this module are pure - they take XML text in and return
structured data out, with no side effects or I/O.

Servers disagree on namespace prefixes (iCloud happily mixes D:, C:,
CS:, ICAL: and ME:), so elements are matched on their local name in any
namespace.  Malformed or empty XML is never an error here: the
functions return an empty list or None and the caller carries on.
"""

import logging
import re
from typing import Iterator
from typing import Optional
from typing import Union

from lxml import etree
from lxml.etree import _Element

from davcal.lib import url
from davcal.lib.vcal import extract_uid

from .types import Calendar, Event, SyncCollectionResult

log = logging.getLogger(__name__)

_COLOR_RE = re.compile(r"^#?([0-9A-Fa-f]{3}|[0-9A-Fa-f]{6}|[0-9A-Fa-f]{8})$")

## privileges that imply the right to write into a collection, RFC 3744 sec. 3
_WRITE_PRIVILEGES = ("write", "all")


def parse_calendars(
    xml: Union[str, bytes], base_url: str, huge_tree: bool = False
) -> list[Calendar]:
    """
    Parse the calendar collections out of a Depth 1 PROPFIND on the
    calendar home set.

    Args:
        xml: Multistatus response body
        base_url: URL the hrefs are relative to
        huge_tree: Allow parsing very large XML documents

    Returns:
        List of Calendar; plain collections, inbox/outbox and the home
        set itself are left out.
    """
    tree = _parse_xml(xml, huge_tree)
    if tree is None:
        return []

    calendars: list[Calendar] = []
    for response in tree.iter("{*}response"):
        calendar = _parse_calendar_response(response, base_url)
        if calendar is not None:
            calendars.append(calendar)
    return calendars


def parse_current_user_principal(xml: Union[str, bytes]) -> Optional[str]:
    """Href of the current-user-principal, or None."""
    return _nested_href(xml, "current-user-principal")


def parse_calendar_home_set(xml: Union[str, bytes]) -> Optional[str]:
    """Href of the (first) calendar-home-set, or None."""
    return _nested_href(xml, "calendar-home-set")


def parse_events(
    xml: Union[str, bytes], base_url: str, huge_tree: bool = False
) -> list[Event]:
    """
    Parse a calendar-query (or calendar-multiget) REPORT response.

    Each response contributes its getetag and calendar-data.  Whether the
    calendar-data comes as plain text or wrapped in CDATA makes no
    difference.  Responses that failed (non-2xx status), carry no
    calendar-data, or whose data has no UID are skipped.
    """
    tree = _parse_xml(xml, huge_tree)
    if tree is None:
        return []

    events: list[Event] = []
    for response in tree.iter("{*}response"):
        event = _parse_event_response(response, base_url)
        if event is not None:
            events.append(event)
    return events


def parse_sync_token(xml: Union[str, bytes]) -> Optional[str]:
    """The sync-token of a sync-collection response, or None."""
    tree = _parse_xml(xml)
    if tree is None:
        return None
    for elem in tree.iter("{*}sync-token"):
        return _text(elem)
    return None


def parse_deleted_hrefs(xml: Union[str, bytes]) -> list[str]:
    """
    Hrefs of the resources a sync-collection response reports as gone,
    that is responses with a 404 status directly on the response.
    """
    tree = _parse_xml(xml)
    if tree is None:
        return []

    deleted: list[str] = []
    for response in tree.iter("{*}response"):
        status = _direct_child_text(response, "status")
        if status is not None and _status_to_code(status) == 404:
            href = _direct_child_text(response, "href")
            if href:
                deleted.append(href)
    return deleted


def parse_sync_collection(
    xml: Union[str, bytes], base_url: str
) -> SyncCollectionResult:
    """
    Parse a sync-collection REPORT response into changed events, deleted
    hrefs and the new sync token.
    """
    return SyncCollectionResult(
        changed=parse_events(xml, base_url),
        deleted=parse_deleted_hrefs(xml),
        sync_token=parse_sync_token(xml),
    )


def parse_etag(xml: Union[str, bytes]) -> Optional[str]:
    """The first getetag in a PUT or PROPFIND response, or None."""
    tree = _parse_xml(xml)
    if tree is None:
        return None
    for elem in tree.iter("{*}getetag"):
        return _text(elem)
    return None


def normalize_color(color: Optional[str]) -> Optional[str]:
    """
    Normalize a calendar-color to #RRGGBB.

    * #RRGGBB is returned as is
    * RRGGBB gets the hash prepended
    * #RRGGBBAA (what iCloud sends) loses the alpha channel
    * #RGB is expanded to #RRGGBB
    * anything else (named colors, rgb(...)) gives None
    """
    if not color or not color.strip():
        return None
    match = _COLOR_RE.match(color.strip())
    if match is None:
        return None
    hex_digits = match.group(1)
    if len(hex_digits) == 3:
        hex_digits = "".join(x * 2 for x in hex_digits)
    return "#" + hex_digits[:6]


# Helper functions


def _parse_xml(xml: Union[str, bytes, None], huge_tree: bool = False) -> Optional[_Element]:
    """
    Parse ``xml`` with entity resolution and network access disabled.
    Returns None for empty or malformed input.
    """
    if not xml:
        return None
    if isinstance(xml, str):
        ## lxml refuses str input carrying an encoding declaration
        xml = xml.encode("utf-8")
    parser = etree.XMLParser(
        resolve_entities=False, no_network=True, huge_tree=huge_tree
    )
    try:
        return etree.fromstring(xml, parser)
    except (etree.XMLSyntaxError, ValueError) as e:
        log.debug("ignoring malformed XML: %s", e)
        return None


def _text(elem: _Element) -> Optional[str]:
    """Trimmed text content of ``elem`` and its descendants"""
    text = "".join(elem.itertext()).strip()
    return text or None


def _local_name(elem: _Element) -> Optional[str]:
    if not isinstance(elem.tag, str):
        ## comments and processing instructions
        return None
    return etree.QName(elem).localname


def _direct_child_text(parent: _Element, name: str) -> Optional[str]:
    for child in parent:
        if _local_name(child) == name:
            return _text(child)
    return None


def _status_to_code(status: Optional[str]) -> int:
    """
    Extract status code from status string like "HTTP/1.1 200 OK".

    Returns 0 if the string can't be parsed.
    """
    if not status:
        return 0

    parts = status.split()
    if len(parts) >= 2:
        try:
            return int(parts[1])
        except ValueError:
            pass

    return 0


def _is_success(response: _Element) -> bool:
    """
    A response succeeded if it carries a 2xx status directly, or, in
    the propstat form, if at least one propstat has a 2xx status.
    """
    status = _direct_child_text(response, "status")
    if status is not None:
        return 200 <= _status_to_code(status) < 300
    for propstat in response.iter("{*}propstat"):
        code = _status_to_code(_direct_child_text(propstat, "status"))
        if 200 <= code < 300:
            return True
    return False


def _found_props(response: _Element) -> Iterator[_Element]:
    """
    The property elements from the successful propstats of a response.
    A property listed under a 404 propstat is a property the server
    doesn't have, and is not yielded.
    """
    for propstat in response.iter("{*}propstat"):
        status = _direct_child_text(propstat, "status")
        if status is not None and not 200 <= _status_to_code(status) < 300:
            continue
        for prop in propstat.iter("{*}prop"):
            for child in prop:
                if isinstance(child.tag, str):
                    yield child


def _find_prop(response: _Element, name: str) -> Optional[_Element]:
    for prop in _found_props(response):
        if _local_name(prop) == name:
            return prop
    return None


def _prop_text(response: _Element, name: str) -> Optional[str]:
    prop = _find_prop(response, name)
    if prop is None:
        return None
    return _text(prop)


def _split_href(href: str, base_url: str) -> tuple[str, str]:
    """(server-relative href, absolute url) for an href from the server"""
    if url.is_absolute(href):
        return url.to_path(href), href
    return href, url.join(base_url, href)


def _parse_calendar_response(response: _Element, base_url: str) -> Optional[Calendar]:
    href = _direct_child_text(response, "href")
    if not href:
        return None

    if not _is_calendar_collection(response):
        return None

    if not _is_success(response):
        return None

    href, abs_url = _split_href(href, base_url)
    calendar_id = url.calendar_id_from_href(href)

    return Calendar(
        id=calendar_id,
        href=href,
        url=abs_url,
        display_name=_prop_text(response, "displayname") or calendar_id,
        color=normalize_color(_prop_text(response, "calendar-color")),
        ctag=_prop_text(response, "getctag"),
        is_read_only=not _has_write_privilege(response),
    )


def _is_calendar_collection(response: _Element) -> bool:
    resourcetype = _find_prop(response, "resourcetype")
    if resourcetype is None:
        return False
    return any(_local_name(child) == "calendar" for child in resourcetype)


def _has_write_privilege(response: _Element) -> bool:
    privilege_set = _find_prop(response, "current-user-privilege-set")
    if privilege_set is None:
        ## Assume writable if no privilege info
        return True
    for privilege in privilege_set.iter("{*}privilege"):
        for child in privilege:
            if _local_name(child) in _WRITE_PRIVILEGES:
                return True
    return False


def _parse_event_response(response: _Element, base_url: str) -> Optional[Event]:
    if not _is_success(response):
        return None

    href = _direct_child_text(response, "href")
    if not href:
        return None

    calendar_data = _prop_text(response, "calendar-data")
    if not calendar_data:
        return None

    uid = extract_uid(calendar_data)
    if not uid:
        log.debug("skipping %s, calendar data without UID", href)
        return None

    href, abs_url = _split_href(href, base_url)
    return Event(
        uid=uid,
        href=href,
        url=abs_url,
        etag=_prop_text(response, "getetag"),
        ical_data=calendar_data,
    )


def _nested_href(xml: Union[str, bytes], property_name: str) -> Optional[str]:
    tree = _parse_xml(xml)
    if tree is None:
        return None
    for prop in tree.iter("{*}" + property_name):
        for href in prop.iter("{*}href"):
            return _text(href)
        return None
    return None
