"""
Pure functions for building CalDAV XML request bodies.

All functions in this module are pure - they take data in and return XML out,
with no side effects or I/O.
"""
from davcal.elements import cdav
from davcal.elements import dav
from davcal.elements import ical
from davcal.lib.namespace import nsmap2


def build_principal_propfind_body() -> bytes:
    """
    Build the PROPFIND body asking the service root for the
    current-user-principal (discovery step 1).

    Returns:
        UTF-8 encoded XML bytes
    """
    propfind = dav.Propfind() + (dav.Prop() + dav.CurrentUserPrincipal())
    return propfind.tostring()


def build_home_set_propfind_body() -> bytes:
    """
    Build the PROPFIND body asking a principal for its
    calendar-home-set (discovery step 2).

    Returns:
        UTF-8 encoded XML bytes
    """
    propfind = dav.Propfind() + (dav.Prop() + cdav.CalendarHomeSet())
    return propfind.tostring()


def build_calendar_list_propfind_body() -> bytes:
    """
    Build the Depth 1 PROPFIND body listing the calendars in a home set
    (discovery step 3).

    Asks for displayname, resourcetype, the CalendarServer getctag, the
    Apple calendar-color and the current-user-privilege-set.

    Returns:
        UTF-8 encoded XML bytes
    """
    prop = dav.Prop() + [
        dav.DisplayName(),
        dav.ResourceType(),
        ical.GetCtag(),
        ical.CalendarColor(),
        dav.CurrentUserPrivilegeSet(),
    ]
    propfind = dav.Propfind() + prop
    return propfind.tostring(nsmap2)


def build_calendar_query_body(start_date: str, end_date: str) -> bytes:
    """
    Build the calendar-query REPORT body for all VEVENTs overlapping a
    range of days.

    Args:
        start_date: First day, YYYY-MM-DD or YYYYMMDD
        end_date: Last day (inclusive), YYYY-MM-DD or YYYYMMDD

    Returns:
        UTF-8 encoded XML bytes
    """
    time_range = cdav.TimeRange(
        start=_to_query_date(start_date) + "T000000Z",
        end=_to_query_date(end_date) + "T235959Z",
    )
    vevent = cdav.CompFilter("VEVENT") + time_range
    vcalendar = cdav.CompFilter("VCALENDAR") + vevent
    prop = dav.Prop() + [dav.GetEtag(), cdav.CalendarData()]
    query = cdav.CalendarQuery() + [prop, cdav.Filter() + vcalendar]
    return query.tostring()


def _to_query_date(value: str) -> str:
    """2025-01-15 -> 20250115"""
    return value.strip().replace("-", "")
