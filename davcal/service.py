#!/usr/bin/env python
"""
Calendar operations for a calling agent.

``CalendarService`` glues the CalDAV transport (``DAVClient``) to the
ICS codec (``davcal.lib.vcal``) and answers in plain records,
``CalendarInfo`` and ``EventInfo``.  Events are addressed by their UID;
a UID is only known to the service after it has been seen in a
``get_events`` (or ``create_event``) result, and only until the cache
entry expires.

No method raises.  Expected failures come back as ``Error`` values with
the HTTP-ish code of the underlying problem; anything unexpected is
logged and reported as ``Error(500, "Internal error")``.
"""
import functools
import logging
import time
from dataclasses import dataclass
from types import TracebackType
from typing import Callable
from typing import List
from typing import Optional

from davcal.davclient import DAVClient
from davcal.lib import error
from davcal.lib.cache import DEFAULT_MAX_SIZE
from davcal.lib.cache import DEFAULT_TTL
from davcal.lib.cache import EventCache
from davcal.lib.result import Error
from davcal.lib.result import Result
from davcal.lib.result import Success
from davcal.lib.vcal import ParsedEvent
from davcal.lib.vcal import build_ical
from davcal.lib.vcal import parse_ical
from davcal.protocol.types import Calendar
from davcal.protocol.types import Event

log = logging.getLogger("davcal")


@dataclass(frozen=True)
class CalendarInfo:
    id: str
    name: str
    color: Optional[str]
    read_only: bool

    @classmethod
    def from_calendar(cls, calendar: Calendar) -> "CalendarInfo":
        return cls(
            id=calendar.id,
            name=calendar.display_name,
            color=calendar.color,
            read_only=calendar.is_read_only,
        )


@dataclass(frozen=True)
class EventInfo:
    """
    A parsed event together with where it lives on the server.  Timed
    events have start_time/end_time in UTC, all-day events have
    start_date/end_date with the end date inclusive.
    """

    uid: str
    href: str
    etag: Optional[str]
    summary: str
    description: Optional[str] = None
    location: Optional[str] = None
    is_all_day: bool = False
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    rrule: Optional[str] = None

    @classmethod
    def from_parsed(cls, parsed: ParsedEvent, event: Event) -> "EventInfo":
        return cls(
            uid=parsed.uid,
            href=event.href,
            etag=event.etag,
            summary=parsed.summary,
            description=parsed.description,
            location=parsed.location,
            is_all_day=parsed.is_all_day,
            start_time=parsed.start_time,
            end_time=parsed.end_time,
            start_date=parsed.start_date,
            end_date=parsed.end_date,
            rrule=parsed.rrule,
        )


def _guarded(method):
    """
    Last line of defense: an exception escaping from the transport or
    the codec becomes an Error value instead of reaching the caller.
    """

    @functools.wraps(method)
    def wrapper(self, *largs, **kwargs):
        try:
            return method(self, *largs, **kwargs)
        except error.IcsBuildError as e:
            log.info("%s: %s", method.__name__, e)
            return Error(400, str(e))
        except Exception:
            log.error("unexpected error in %s", method.__name__, exc_info=True)
            return Error(500, "Internal error")

    return wrapper


class CalendarService:
    """
    Args:
      client: the CalDAV transport
      cache_ttl: seconds an event stays addressable by uid
      max_cache_size: cache size above which expired entries are swept
      clock: time source for the cache, for tests
      builder: ICS builder, ``build_ical`` by default
      parser: ICS parser, ``parse_ical`` by default
    """

    def __init__(
        self,
        client: DAVClient,
        cache_ttl: float = DEFAULT_TTL,
        max_cache_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], float] = time.monotonic,
        builder: Callable[..., str] = build_ical,
        parser: Callable[[str], List[ParsedEvent]] = parse_ical,
    ) -> None:
        self.client = client
        self.builder = builder
        self.parser = parser
        self._cache = EventCache(ttl=cache_ttl, max_size=max_cache_size, clock=clock)

    def __enter__(self) -> "CalendarService":
        return self

    def __exit__(
        self,
        exc_type: Optional[type] = None,
        exc_value: Optional[BaseException] = None,
        traceback: Optional[TracebackType] = None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self.client.close()

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_size(self) -> int:
        return len(self._cache)

    @_guarded
    def list_calendars(self) -> Result[List[CalendarInfo]]:
        return self.client.list_calendars().map(
            lambda calendars: [CalendarInfo.from_calendar(x) for x in calendars]
        )

    @_guarded
    def get_events(
        self, calendar_id: str, start_date: str, end_date: str
    ) -> Result[List[EventInfo]]:
        """
        Events of a calendar between two days (YYYY-MM-DD, both
        inclusive).  Every event returned is cached by uid.
        """
        result = self.client.get_events(calendar_id, start_date, end_date)
        if result.is_error:
            return result

        events = []
        for event in result.data:
            self._cache.put(event)
            for parsed in self.parser(event.ical_data):
                events.append(EventInfo.from_parsed(parsed, event))
        return Success(events)

    @_guarded
    def get_event_by_id(self, event_id: str) -> Result[EventInfo]:
        """
        Look up an event seen earlier.  There is no network fallback.
        """
        cached = self._cache.get(event_id)
        if cached is not None:
            parsed = self.parser(cached.ical_data)
            if parsed:
                return Success(EventInfo.from_parsed(parsed[0], cached))
        return Error(404, "Event not found: %s" % event_id)

    @_guarded
    def create_event(
        self,
        calendar_id: str,
        summary: str,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        is_all_day: bool = False,
        description: Optional[str] = None,
        location: Optional[str] = None,
        timezone: Optional[str] = None,
        rrule: Optional[str] = None,
    ) -> Result[EventInfo]:
        """
        Create an event.  Read-only calendars are refused with 403
        before anything is built or sent.
        """
        calendars = self.client.list_calendars()
        if calendars.is_error:
            return calendars

        calendar = next((x for x in calendars.data if x.id == calendar_id), None)
        if calendar is None:
            return Error(404, "Calendar not found: %s" % calendar_id)
        if calendar.is_read_only:
            return Error(403, "Calendar is read-only: %s" % calendar.display_name)

        ics = self.builder(
            summary=summary,
            start_time=start_time,
            end_time=end_time,
            start_date=start_date,
            end_date=end_date,
            is_all_day=is_all_day,
            description=description,
            location=location,
            timezone=timezone,
            rrule=rrule,
        )

        result = self.client.create_event(calendar_id, ics)
        if result.is_error:
            return result

        created = result.data
        self._cache.put(created)
        parsed = self.parser(created.ical_data)
        if parsed:
            return Success(EventInfo.from_parsed(parsed[0], created))
        return Success(
            EventInfo(
                uid=created.uid,
                href=created.href,
                etag=created.etag,
                summary=summary,
                description=description,
                location=location,
                is_all_day=is_all_day,
                start_time=start_time,
                end_time=end_time,
                start_date=start_date,
                end_date=end_date,
                rrule=rrule,
            )
        )

    @_guarded
    def update_event(
        self,
        event_id: str,
        summary: Optional[str] = None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        is_all_day: Optional[bool] = None,
        description: Optional[str] = None,
        location: Optional[str] = None,
        timezone: Optional[str] = None,
        rrule: Optional[str] = None,
    ) -> Result[EventInfo]:
        """
        Change an event seen earlier.  Fields left as None keep the
        value from the cached copy of the event (which may be older than
        what the server has).  The cached etag is sent as If-Match, so a
        concurrent change on the server gives a 412 conflict.
        """
        existing = self._cache.get(event_id)
        if existing is None:
            return Error(404, "Event not found: %s" % event_id)

        parsed = self.parser(existing.ical_data)
        if not parsed:
            return Error(500, "Could not parse existing event")
        current = parsed[0]

        if is_all_day is None:
            is_all_day = current.is_all_day
        if is_all_day:
            start_time = end_time = None
            start_date = start_date or current.start_date
            end_date = end_date or current.end_date
        else:
            start_date = end_date = None
            start_time = start_time or current.start_time
            end_time = end_time or current.end_time
        summary = summary if summary is not None else current.summary
        description = description if description is not None else current.description
        location = location if location is not None else current.location
        rrule = rrule if rrule is not None else current.rrule

        ics = self.builder(
            uid=event_id,
            summary=summary,
            start_time=start_time,
            end_time=end_time,
            start_date=start_date,
            end_date=end_date,
            is_all_day=is_all_day,
            description=description,
            location=location,
            timezone=timezone,
            rrule=rrule,
        )

        result = self.client.update_event(existing.href, ics, existing.etag)
        if result.is_error:
            log.info("update of %s failed: %s %s", event_id, result.code, result.message)
            return result

        updated = result.data
        self._cache.put(updated)
        parsed = self.parser(updated.ical_data)
        if parsed:
            return Success(EventInfo.from_parsed(parsed[0], updated))
        return Success(
            EventInfo(
                uid=updated.uid,
                href=updated.href,
                etag=updated.etag,
                summary=summary,
                description=description,
                location=location,
                is_all_day=is_all_day,
                start_time=start_time,
                end_time=end_time,
                start_date=start_date,
                end_date=end_date,
                rrule=rrule,
            )
        )

    @_guarded
    def delete_event(self, event_id: str) -> Result[None]:
        existing = self._cache.get(event_id)
        if existing is None:
            return Error(404, "Event not found: %s" % event_id)

        result = self.client.delete_event(existing.href, existing.etag)
        if result.is_error:
            return result
        self._cache.remove(event_id)
        return Success(None)
