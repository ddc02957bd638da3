#!/usr/bin/env python
"""
RFC 5545 codec for single-event calendars.

``build_ical`` writes a complete VCALENDAR with one VEVENT,
``parse_ical`` reads every usable VEVENT out of a VCALENDAR.  Neither
does any I/O.

Two conversions happen here and nowhere else:

* all-day events carry an exclusive DTEND on the wire, while
  ``end_date`` is inclusive in the model (a one day event on the 15th
  has DTEND on the 16th)
* timed events are surfaced in UTC, whatever TZID they were stored with

All-day dates are kept as YYYY-MM-DD strings the whole way through, they
are never turned into datetimes.
"""
import datetime
import logging
import re
import uuid
import zoneinfo
from dataclasses import dataclass
from typing import List
from typing import Optional
from typing import Tuple

import icalendar
from icalendar.parser import Contentline
from icalendar.parser import Contentlines

from davcal import __version__
from davcal.lib import error

log = logging.getLogger(__name__)

PRODID = "-//davcal//davcal %s//EN" % __version__
UID_DOMAIN = "davcal"

## RFC 5545 sec. 3.1: lines SHOULD NOT be longer than 75 octets
MAX_LINE_OCTETS = 75

DEFAULT_EVENT_DURATION = datetime.timedelta(hours=1)

_utc = datetime.timezone.utc
_UID_LINE_RE = re.compile(r"^UID[;:]", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedEvent:
    """
    One VEVENT as handed to the caller.  Timed events have start_time
    and end_time (UTC, ISO 8601 with Z), all-day events have start_date
    and end_date (YYYY-MM-DD, end inclusive).  Never both.
    """

    uid: str
    summary: str
    description: Optional[str] = None
    location: Optional[str] = None
    is_all_day: bool = False
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    rrule: Optional[str] = None


## Text values


def escape_text(text: str) -> str:
    """
    Escape a TEXT value, RFC 5545 sec. 3.3.11.  The backslash has to go
    first, or the backslashes added for ; and , get doubled.
    """
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
        .replace("\r", "\\n")
    )


def unescape_text(text: str) -> str:
    """
    Exact inverse of ``escape_text``.  This is a single left-to-right
    scan rather than a chain of replaces, so that an escaped backslash
    followed by an "n" stays a backslash and an "n".
    """
    out = []
    i = 0
    length = len(text)
    while i < length:
        char = text[i]
        if char == "\\" and i + 1 < length:
            nxt = text[i + 1]
            if nxt in "nN":
                out.append("\n")
            elif nxt in "\\;,":
                out.append(nxt)
            else:
                ## not a valid escape, keep it verbatim
                out.append(char + nxt)
            i += 2
        else:
            out.append(char)
            i += 1
    return "".join(out)


def fold_line(line: str) -> List[str]:
    """
    Split a content line into physical lines of at most 75 octets.
    Continuation lines start with a single space, which counts against
    the limit, so they carry at most 74 octets of content.  A multi-byte
    UTF-8 character is never split.
    """
    if len(line.encode("utf-8")) <= MAX_LINE_OCTETS:
        return [line]

    physical = []
    current = ""
    current_octets = 0
    limit = MAX_LINE_OCTETS
    for char in line:
        size = len(char.encode("utf-8"))
        if current_octets + size > limit:
            physical.append(current)
            current = ""
            current_octets = 0
            limit = MAX_LINE_OCTETS - 1
        current += char
        current_octets += size
    physical.append(current)
    return [physical[0]] + [" " + x for x in physical[1:]]


def _content_lines(ics: str) -> List[Contentline]:
    """Unfolded content lines, blank ones dropped"""
    return [x for x in Contentlines.from_ical(ics.lstrip("\ufeff")) if x.strip()]


def extract_uid(ics: Optional[str]) -> Optional[str]:
    """
    The first UID in ``ics``, or None.  Works on data that is not
    otherwise valid, as long as the UID line itself is.
    """
    if not ics or not ics.strip():
        return None
    for line in _content_lines(ics):
        line = line.strip()
        if _UID_LINE_RE.match(line) and ":" in line:
            uid = line.split(":", 1)[1].strip()
            return uid or None
    return None


## Building


def build_ical(
    summary: str,
    uid: Optional[str] = None,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    is_all_day: bool = False,
    description: Optional[str] = None,
    location: Optional[str] = None,
    timezone: Optional[str] = None,
    rrule: Optional[str] = None,
    now: Optional[datetime.datetime] = None,
) -> str:
    """
    Build a VCALENDAR holding one VEVENT.

    Args:
        summary: Event title
        uid: Unique identifier, generated if not given
        start_time: ISO 8601 start of a timed event, e.g. 2025-01-15T10:00:00Z
        end_time: ISO 8601 end of a timed event
        start_date: YYYY-MM-DD start of an all-day event
        end_date: YYYY-MM-DD inclusive end of an all-day event, defaults
            to start_date
        is_all_day: Use start_date/end_date rather than start_time/end_time
        description: Event description
        location: Event location
        timezone: IANA zone name for timed events given in local time.
            Ignored if both times are in UTC (Z suffix).
        rrule: Recurrence rule, written as is, e.g. FREQ=WEEKLY;BYDAY=MO
        now: Timestamp for DTSTAMP, defaults to the current time

    Returns:
        The ICS text, CRLF line endings, long lines folded

    Raises:
        IcsBuildError: if dates or times can't be parsed, or neither a
            start date nor start and end times are given
    """
    if uid is None:
        uid = "%s@%s" % (uuid.uuid4(), UID_DOMAIN)
    now = now or datetime.datetime.now(tz=_utc)

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:%s" % PRODID,
        "CALSCALE:GREGORIAN",
        "BEGIN:VEVENT",
        "UID:%s" % uid,
        "DTSTAMP:%s" % _format_utc(now),
    ]

    if is_all_day and start_date:
        lines.extend(_all_day_lines(start_date, end_date or start_date))
    elif start_time and end_time:
        lines.extend(_timed_lines(start_time, end_time, timezone))
    else:
        raise error.IcsBuildError(
            reason="either start_date (all-day) or start_time and end_time are required"
        )

    lines.append("SUMMARY:%s" % escape_text(summary))
    if description and description.strip():
        lines.append("DESCRIPTION:%s" % escape_text(description))
    if location and location.strip():
        lines.append("LOCATION:%s" % escape_text(location))
    if rrule and rrule.strip():
        lines.append("RRULE:%s" % rrule.strip())

    lines.append("END:VEVENT")
    lines.append("END:VCALENDAR")

    physical = []
    for line in lines:
        physical.extend(fold_line(line))
    return "\r\n".join(physical) + "\r\n"


def _all_day_lines(start_date: str, end_date: str) -> List[str]:
    start = _parse_iso_date(start_date)
    end = _parse_iso_date(end_date)
    if end < start:
        raise error.IcsBuildError(
            reason="end date %s is before start date %s" % (end_date, start_date)
        )
    exclusive_end = end + datetime.timedelta(days=1)
    return [
        "DTSTART;VALUE=DATE:%s" % start.strftime("%Y%m%d"),
        "DTEND;VALUE=DATE:%s" % exclusive_end.strftime("%Y%m%d"),
    ]


def _timed_lines(start_time: str, end_time: str, timezone: Optional[str]) -> List[str]:
    if _is_utc(start_time) and _is_utc(end_time):
        return [
            "DTSTART:%s" % _format_utc(_parse_iso_datetime(start_time)),
            "DTEND:%s" % _format_utc(_parse_iso_datetime(end_time)),
        ]

    if timezone:
        start = _parse_iso_datetime(start_time, local=True)
        end = _parse_iso_datetime(end_time, local=True)
        if start.tzinfo is None and end.tzinfo is None:
            ## wall clock digits written as given, the server knows the zone
            return [
                "DTSTART;TZID=%s:%s" % (timezone, start.strftime("%Y%m%dT%H%M%S")),
                "DTEND;TZID=%s:%s" % (timezone, end.strftime("%Y%m%dT%H%M%S")),
            ]
        return [
            "DTSTART:%s" % _format_utc(start),
            "DTEND:%s" % _format_utc(end),
        ]

    ## floating time, treated as UTC
    return [
        "DTSTART:%s" % _format_utc(_parse_iso_datetime(start_time, assume_utc=True)),
        "DTEND:%s" % _format_utc(_parse_iso_datetime(end_time, assume_utc=True)),
    ]


def _is_utc(value: str) -> bool:
    return value.strip().upper().endswith("Z")


def _format_utc(ts: datetime.datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=_utc)
    return ts.astimezone(_utc).strftime("%Y%m%dT%H%M%SZ")


def _parse_iso_date(value: str) -> datetime.date:
    try:
        return datetime.date.fromisoformat(value.strip())
    except (ValueError, AttributeError):
        raise error.IcsBuildError(reason="invalid date %r, expected YYYY-MM-DD" % value)


def _parse_iso_datetime(
    value: str, local: bool = False, assume_utc: bool = False
) -> datetime.datetime:
    """
    Parse an ISO 8601 date-time.  A trailing Z means UTC, except with
    ``local``, where the Z is dropped and the digits are read as wall
    clock time.  Naive results get UTC attached if ``assume_utc``.
    """
    text = value.strip()
    is_z = text.upper().endswith("Z")
    if is_z:
        text = text[:-1]
    try:
        ts = datetime.datetime.fromisoformat(text)
    except ValueError:
        raise error.IcsBuildError(
            reason="invalid date-time %r, expected ISO 8601" % value
        )
    if is_z and not local:
        ts = ts.replace(tzinfo=_utc)
    elif ts.tzinfo is None and assume_utc:
        ts = ts.replace(tzinfo=_utc)
    return ts


## Parsing

## TEXT properties are decoded here rather than by icalendar, whose
## decoding turns an escaped backslash followed by "n" into a newline
_RAW_PROPERTIES = ("SUMMARY", "DESCRIPTION", "LOCATION", "RRULE")


def parse_ical(ics: Optional[str]) -> List[ParsedEvent]:
    """
    Parse every VEVENT in ``ics``.

    Skipped, without failing the others:

    * events with STATUS:CANCELLED
    * events without a SUMMARY, or with a blank one
    * events without UID or a usable DTSTART

    Malformed data gives an empty list, this function does not raise.
    """
    if not ics or not ics.strip():
        return []

    try:
        calendar = icalendar.Calendar.from_ical(ics.lstrip("\ufeff"))
        raw_values = _raw_values(ics)
    except ValueError as e:
        log.debug("ignoring malformed ical data: %s", e)
        return []

    events = []
    for index, vevent in enumerate(calendar.walk("VEVENT")):
        raw = raw_values[index] if index < len(raw_values) else {}
        event = _parse_event(vevent, raw)
        if event is not None:
            events.append(event)
    return events


def _raw_values(ics: str) -> List[dict]:
    """
    The still escaped SUMMARY, DESCRIPTION, LOCATION and RRULE of each
    VEVENT, in document order, which is the order walk() yields them in.
    """
    found = []
    current = None
    for line in _content_lines(ics):
        try:
            name, _, value = line.parts()
        except ValueError:
            continue
        name = name.upper()
        if name == "BEGIN" and value.strip().upper() == "VEVENT":
            current = {}
            found.append(current)
        elif name == "END" and value.strip().upper() == "VEVENT":
            current = None
        elif current is not None and name in _RAW_PROPERTIES:
            current.setdefault(name, value)
    return found


def _parse_event(vevent: icalendar.Component, raw: dict) -> Optional[ParsedEvent]:
    status = vevent.get("STATUS")
    if status is not None and str(status).strip().upper() == "CANCELLED":
        return None

    summary = _text(vevent, raw, "SUMMARY")
    if summary is None or not summary.strip():
        return None

    uid = str(vevent.get("UID", "")).strip()
    if not uid:
        return None

    dtstart = vevent.get("DTSTART")
    start = getattr(dtstart, "dt", None)
    if not isinstance(start, datetime.date):
        return None

    description = _optional(_text(vevent, raw, "DESCRIPTION"))
    location = _optional(_text(vevent, raw, "LOCATION"))
    rrule = raw.get("RRULE")
    if rrule is None and vevent.get("RRULE") is not None:
        rrule = vevent["RRULE"].to_ical().decode("utf-8")
    rrule = rrule.strip() if rrule and rrule.strip() else None

    if not isinstance(start, datetime.datetime):
        start_date, end_date = _all_day_range(start, vevent.get("DTEND"))
        return ParsedEvent(
            uid=uid,
            summary=summary,
            description=description,
            location=location,
            is_all_day=True,
            start_date=start_date,
            end_date=end_date,
            rrule=rrule,
        )

    start = _to_utc(dtstart)
    dtend = vevent.get("DTEND")
    duration = vevent.get("DURATION")
    if isinstance(getattr(dtend, "dt", None), datetime.date):
        end = _to_utc(dtend)
    elif isinstance(getattr(duration, "dt", None), datetime.timedelta):
        end = start + duration.dt
    else:
        end = start + DEFAULT_EVENT_DURATION

    return ParsedEvent(
        uid=uid,
        summary=summary,
        description=description,
        location=location,
        is_all_day=False,
        start_time=_format_iso_utc(start),
        end_time=_format_iso_utc(end),
        rrule=rrule,
    )


def _text(vevent: icalendar.Component, raw: dict, name: str) -> Optional[str]:
    if name in raw:
        return unescape_text(raw[name])
    value = vevent.get(name)
    return None if value is None else str(value)


def _optional(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value


def _all_day_range(start: datetime.date, dtend) -> Tuple[str, str]:
    end = getattr(dtend, "dt", None)
    if isinstance(end, datetime.datetime):
        end = end.date()
    if isinstance(end, datetime.date):
        ## DTEND is exclusive on the wire, a zero length event ends on its start
        end = max(start, end - datetime.timedelta(days=1))
    else:
        end = start
    return start.isoformat(), end.isoformat()


def _resolve_zone(tzid: str) -> datetime.tzinfo:
    """IANA zone for ``tzid``, UTC if the name is unknown"""
    try:
        return zoneinfo.ZoneInfo(tzid.strip())
    except (zoneinfo.ZoneInfoNotFoundError, ValueError, OSError) as e:
        log.debug("unknown TZID %r (%s), falling back to UTC", tzid, e)
        return _utc


def _to_utc(prop) -> datetime.datetime:
    """
    DTSTART/DTEND to an aware UTC datetime.  icalendar resolves Z and
    known TZIDs.  A TZID it could not resolve leaves a naive value,
    which is tried once more against zoneinfo and else read as UTC, as
    is floating time.
    """
    ts = prop.dt
    if not isinstance(ts, datetime.datetime):
        ts = datetime.datetime.combine(ts, datetime.time())
    if ts.tzinfo is not None:
        return ts.astimezone(_utc)
    tzid = prop.params.get("TZID")
    if tzid:
        return ts.replace(tzinfo=_resolve_zone(tzid)).astimezone(_utc)
    return ts.replace(tzinfo=_utc)


def _format_iso_utc(ts: datetime.datetime) -> str:
    return ts.astimezone(_utc).strftime("%Y-%m-%dT%H:%M:%SZ")
