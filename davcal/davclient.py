#!/usr/bin/env python
"""
The ``DAVClient`` class handles the communication with a CalDAV
server: the three step discovery of the calendars, the calendar-query
REPORT, and the PUT/DELETE requests on event resources.

Every operation returns a :class:`davcal.lib.result.Result`.  HTTP error
statuses and network trouble are classified into ``Error`` values, they
are never raised.

``DAVClient`` does not do any HTTP itself.  Requests are built by
:class:`davcal.protocol.CalDAVProtocol` and handed to an I/O object
(:class:`davcal.io.SyncIO` unless another one is given), so tests can
replace the network with a ``Mock``.
"""
import datetime
import logging
import threading
from tempfile import NamedTemporaryFile
from types import TracebackType
from typing import List
from typing import Optional
from typing import Union

import requests

from davcal.io import SyncIO
from davcal.io import SyncIOProtocol
from davcal.lib import error
from davcal.lib import url as urllib_
from davcal.lib.python_utilities import to_normal_str
from davcal.lib.python_utilities import to_wire
from davcal.lib.result import Error
from davcal.lib.result import Result
from davcal.lib.result import Success
from davcal.lib.vcal import extract_uid
from davcal.protocol import CalDAVProtocol
from davcal.protocol import parse_calendar_home_set
from davcal.protocol import parse_calendars
from davcal.protocol import parse_current_user_principal
from davcal.protocol import parse_events
from davcal.protocol.types import Calendar
from davcal.protocol.types import DAVRequest
from davcal.protocol.types import DAVResponse
from davcal.protocol.types import Event

log = logging.getLogger("davcal")

DEFAULT_URL = "https://caldav.icloud.com"


class DAVClient:
    """
    Basic CalDAV client on top of the requests lib.

    The calendar list is discovered on first use and kept for the
    lifetime of the client.  It is never refreshed; create a new client
    to see calendars that were added, renamed or removed on the server.
    """

    url: str = DEFAULT_URL
    huge_tree: bool = False

    def __init__(
        self,
        url: str = DEFAULT_URL,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: Optional[float] = 30.0,
        ssl_verify_cert: Union[bool, str] = True,
        huge_tree: bool = False,
        io: Optional[SyncIOProtocol] = None,
    ) -> None:
        """
        Args:
          url: The CalDAV service root, https://caldav.icloud.com for iCloud
          username: Basic auth username (the Apple ID for iCloud)
          password: Basic auth password (an app-specific password for iCloud)
          timeout: connect and read timeout, in seconds
          ssl_verify_cert: passed on to requests, may be the path of a CA-bundle
          huge_tree: enable the XMLParser huge_tree option for very large
            calendars, beware of security issues, see
            https://lxml.de/api/lxml.etree.XMLParser-class.html
          io: something providing ``execute(DAVRequest) -> DAVResponse``,
            by default a SyncIO owning its own requests session
        """
        self.url = (url or DEFAULT_URL).rstrip("/")
        log.debug("url: " + self.url)
        self.huge_tree = huge_tree
        self.protocol = CalDAVProtocol(self.url, username, password)
        self.io = io or SyncIO(timeout=timeout or 30.0, verify=ssl_verify_cert)

        self._calendars: Optional[List[Calendar]] = None
        self._home_set_url: Optional[str] = None
        self._lock = threading.Lock()

    def __enter__(self) -> "DAVClient":
        return self

    def __exit__(
        self,
        exc_type: Optional[type] = None,
        exc_value: Optional[BaseException] = None,
        traceback: Optional[TracebackType] = None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """
        Closes the I/O object, and with it the requests session
        """
        self.io.close()

    ## Discovery

    def list_calendars(self) -> Result[List[Calendar]]:
        """
        The calendars of the current user.

        On first call this runs the discovery:

        1) PROPFIND the service root for the current-user-principal
        2) PROPFIND the principal for the calendar-home-set
        3) PROPFIND (Depth 1) the home set for the calendar collections

        and caches the outcome.  A failed discovery is not cached.
        """
        with self._lock:
            if self._calendars is not None:
                return Success(list(self._calendars))

            result = self._discover()
            if result.is_success:
                self._calendars = result.data
                log.debug("discovered %i calendars", len(result.data))
                return Success(list(result.data))
            return result

    def _discover(self) -> Result[List[Calendar]]:
        response = self._execute(self.protocol.principal_request())
        if response.is_error:
            return response
        principal = parse_current_user_principal(response.data.body)
        if not principal:
            log.warning("no current-user-principal at %s", self.url)
            return Error(500, "Could not discover principal")
        principal_url = urllib_.join(self.url, principal)

        response = self._execute(self.protocol.home_set_request(principal_url))
        if response.is_error:
            return response
        home_set = parse_calendar_home_set(response.data.body)
        if not home_set:
            log.warning("no calendar-home-set at %s", principal_url)
            return Error(500, "Could not discover calendar-home-set")
        home_set_url = urllib_.join(principal_url, home_set)

        response = self._execute(self.protocol.calendar_list_request(home_set_url))
        if response.is_error:
            return response
        self._home_set_url = home_set_url
        return Success(
            parse_calendars(response.data.body, home_set_url, huge_tree=self.huge_tree)
        )

    def _find_calendar(self, calendar_id: str) -> Result[Calendar]:
        calendars = self.list_calendars()
        if calendars.is_error:
            return calendars
        for calendar in calendars.data:
            if calendar.id == calendar_id:
                return Success(calendar)
        return Error(404, "Calendar not found: %s" % calendar_id)

    ## Events

    def get_events(
        self, calendar_id: str, start_date: str, end_date: str
    ) -> Result[List[Event]]:
        """
        The events of a calendar overlapping the given days.

        Args:
          calendar_id: ``Calendar.id`` as given by list_calendars
          start_date: first day, YYYY-MM-DD
          end_date: last day (inclusive), YYYY-MM-DD
        """
        calendar = self._find_calendar(calendar_id)
        if calendar.is_error:
            return calendar
        calendar = calendar.data

        response = self._execute(
            self.protocol.calendar_query_request(calendar.url, start_date, end_date)
        )
        if response.is_error:
            return response
        return Success(
            parse_events(response.data.body, calendar.url, huge_tree=self.huge_tree)
        )

    def create_event(self, calendar_id: str, ical_data: str) -> Result[Event]:
        """
        Store a new event in a calendar.  The resource gets a fresh
        ``<uuid>.ics`` name and is PUT with ``If-None-Match: *`` so
        nothing existing is ever overwritten.
        """
        calendar = self._find_calendar(calendar_id)
        if calendar.is_error:
            return calendar
        calendar = calendar.data

        uid = extract_uid(ical_data)
        if not uid:
            return Error(400, "ICS data missing UID")

        event_url = self.protocol.new_event_url(calendar.url)
        response = self._execute(
            self.protocol.create_request(event_url, to_wire(ical_data))
        )
        if response.is_error:
            return response

        return Success(
            Event(
                uid=uid,
                href=urllib_.to_path(event_url),
                url=event_url,
                etag=response.data.header("ETag"),
                ical_data=ical_data,
            )
        )

    def update_event(
        self, href: str, ical_data: str, etag: Optional[str] = None
    ) -> Result[Event]:
        """
        Overwrite the event stored at ``href``.

        Args:
          href: absolute URL, or a path as found in ``Event.href``
          ical_data: the complete new VCALENDAR
          etag: sent as If-Match.  With None the PUT is unconditional.
        """
        uid = extract_uid(ical_data)
        if not uid:
            return Error(400, "ICS data missing UID")

        event_url = self._resolve(href)
        response = self._execute(
            self.protocol.put_request(event_url, to_wire(ical_data), etag)
        )
        if response.is_error:
            return response

        return Success(
            Event(
                uid=uid,
                href=urllib_.to_path(event_url),
                url=event_url,
                etag=response.data.header("ETag"),
                ical_data=ical_data,
            )
        )

    def delete_event(self, href: str, etag: Optional[str] = None) -> Result[None]:
        """
        Delete the event stored at ``href``.  If-Match is only sent when
        an etag is given.  An event that is already gone (404) counts as
        deleted.
        """
        response = self._execute(
            self.protocol.delete_request(self._resolve(href), etag),
            is_gone_ok=True,
        )
        if response.is_error:
            return response
        return Success(None)

    def _resolve(self, href: str) -> str:
        """
        Absolute paths belong to the host the home set lives on (a pNN
        host for iCloud), relative paths to the service root.
        """
        if href.startswith("/") and self._home_set_url:
            return urllib_.join(self._home_set_url, href)
        return urllib_.join(self.url, href)

    ## HTTP

    def _execute(
        self, request: DAVRequest, is_gone_ok: bool = False
    ) -> Result[DAVResponse]:
        """
        Send a request through the I/O object and classify the outcome.

        * 2xx (including 207 Multi-Status): Success(response)
        * 401/403: authentication error
        * 404: not found, unless ``is_gone_ok`` in which case Success
        * 412: precondition failed, the etag is stale
        * 5xx: retryable server error
        * anything raised by requests: retryable network error, code 0
        * anything else: generic error
        """
        log.debug("%s %s", request.method.value, request.url)
        try:
            response = self.io.execute(request)
        except requests.exceptions.RequestException as e:
            log.info("%s %s failed: %s", request.method.value, request.url, e)
            return Error(0, "Network error: %s" % e, retryable=True)

        if error.debug_dump_communication:
            self._dump_communication(request, response)

        status = response.status
        log.debug("server responded with %i %s", status, response.reason)
        if 200 <= status < 300:
            return Success(response)
        if status == 404 and is_gone_ok:
            return Success(response)

        log.info(
            "%s %s: %s", request.method.value, request.url, error.errmsg(response)
        )
        if status in (401, 403):
            return Error(status, "Authentication failed")
        if status == 404:
            return Error(status, "Resource not found")
        if status == 412:
            return Error(status, "Precondition failed (resource modified)")
        if 500 <= status < 600:
            return Error(status, "Server error", retryable=True)
        return Error(status, "Unexpected response: %i" % status)

    def _dump_communication(self, request: DAVRequest, response: DAVResponse) -> None:
        ## the Authorization header is left out of the dump
        with NamedTemporaryFile(prefix="davcalcomm", delete=False) as commlog:
            commlog.write(b"=" * 80 + b"\n")
            commlog.write(f"{datetime.datetime.now():%FT%H:%M:%S}".encode("utf-8"))
            commlog.write(b"\n====>\n")
            commlog.write(f"{request.method.value} {request.url}\n".encode("utf-8"))
            commlog.write(
                b"\n".join(
                    to_wire(f"{x}: {request.headers[x]}")
                    for x in request.headers
                    if x.lower() != "authorization"
                )
            )
            commlog.write(b"\n\n")
            if request.body:
                commlog.write(to_wire(request.body))
            commlog.write(b"<====\n")
            commlog.write(f"{response.status} {response.reason}\n".encode("utf-8"))
            commlog.write(
                b"\n".join(
                    to_wire(f"{x}: {response.headers[x]}") for x in response.headers
                )
            )
            commlog.write(b"\n\n")
            commlog.write(to_wire(to_normal_str(response.body) or ""))
            commlog.write(b"\n")
            log.debug("communication dumped to %s", commlog.name)


def get_davclient(**kwargs) -> DAVClient:
    """
    Shortcut for :func:`davcal.config.get_davclient`: a DAVClient
    configured from the arguments, ``DAVCAL_*`` environment variables or
    a config file.
    """
    ## late import, config imports this module
    from davcal import config

    return config.get_davclient(**kwargs)
