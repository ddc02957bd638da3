"""
Unit tests for the multistatus parsers.

All tests are pure - XML text in, typed data out, no I/O.
"""

import pytest

from davcal.protocol import (
    normalize_color,
    parse_calendar_home_set,
    parse_calendars,
    parse_current_user_principal,
    parse_deleted_hrefs,
    parse_etag,
    parse_events,
    parse_sync_collection,
    parse_sync_token,
)

BASE_URL = "https://p42-caldav.icloud.com/1234567/calendars/"

EVENT_ICS = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Example Corp.//CalDAV Client//EN
BEGIN:VEVENT
UID:event-1@example.com
DTSTAMP:20250101T000000Z
DTSTART:20250115T100000Z
DTEND:20250115T110000Z
SUMMARY:Standup
END:VEVENT
END:VCALENDAR
"""

CALENDAR_LIST_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<D:multistatus xmlns:D="DAV:" xmlns:C="urn:ietf:params:xml:ns:caldav"
    xmlns:CS="http://calendarserver.org/ns/" xmlns:ICAL="http://apple.com/ns/ical/">
  <D:response>
    <D:href>/1234567/calendars/</D:href>
    <D:propstat>
      <D:prop>
        <D:resourcetype><D:collection/></D:resourcetype>
      </D:prop>
      <D:status>HTTP/1.1 200 OK</D:status>
    </D:propstat>
  </D:response>
  <D:response>
    <D:href>/1234567/calendars/home/</D:href>
    <D:propstat>
      <D:prop>
        <D:displayname>Home</D:displayname>
        <D:resourcetype><D:collection/><C:calendar/></D:resourcetype>
        <CS:getctag>HwoQEgwAAAh</CS:getctag>
        <ICAL:calendar-color>#FF5733FF</ICAL:calendar-color>
        <D:current-user-privilege-set>
          <D:privilege><D:read/></D:privilege>
          <D:privilege><D:write/></D:privilege>
        </D:current-user-privilege-set>
      </D:prop>
      <D:status>HTTP/1.1 200 OK</D:status>
    </D:propstat>
  </D:response>
  <D:response>
    <D:href>/1234567/calendars/holidays/</D:href>
    <D:propstat>
      <D:prop>
        <D:displayname>Holidays</D:displayname>
        <D:resourcetype><D:collection/><C:calendar/></D:resourcetype>
        <D:current-user-privilege-set>
          <D:privilege><D:read/></D:privilege>
        </D:current-user-privilege-set>
      </D:prop>
      <D:status>HTTP/1.1 200 OK</D:status>
    </D:propstat>
  </D:response>
  <D:response>
    <D:href>/1234567/calendars/inbox/</D:href>
    <D:propstat>
      <D:prop>
        <D:resourcetype><D:collection/><C:schedule-inbox/></D:resourcetype>
      </D:prop>
      <D:status>HTTP/1.1 200 OK</D:status>
    </D:propstat>
  </D:response>
</D:multistatus>
"""


def _report(*responses: str) -> str:
    return (
        '<d:multistatus xmlns:d="DAV:" xmlns:cal="urn:ietf:params:xml:ns:caldav">'
        + "".join(responses)
        + "</d:multistatus>"
    )


def _event_response(href, calendar_data, etag='"etag-1"', status="HTTP/1.1 200 OK"):
    return (
        "<d:response>"
        "<d:href>%s</d:href>"
        "<d:propstat><d:prop>"
        "<d:getetag>%s</d:getetag>"
        "<cal:calendar-data>%s</cal:calendar-data>"
        "</d:prop><d:status>%s</d:status></d:propstat>"
        "</d:response>" % (href, etag, calendar_data, status)
    )


class TestParseCalendars:
    """Tests for the calendar list (Depth 1 PROPFIND on the home set)."""

    def test_only_calendar_collections(self):
        """The home set itself and the scheduling inbox are left out."""
        calendars = parse_calendars(CALENDAR_LIST_XML, BASE_URL)
        assert [x.id for x in calendars] == ["home", "holidays"]

    def test_calendar_properties(self):
        calendar = parse_calendars(CALENDAR_LIST_XML, BASE_URL)[0]
        assert calendar.href == "/1234567/calendars/home/"
        assert calendar.url == "https://p42-caldav.icloud.com/1234567/calendars/home/"
        assert calendar.display_name == "Home"
        assert calendar.ctag == "HwoQEgwAAAh"
        assert calendar.color == "#FF5733"
        assert not calendar.is_read_only

    def test_read_only_without_write_privilege(self):
        holidays = parse_calendars(CALENDAR_LIST_XML, BASE_URL)[1]
        assert holidays.is_read_only
        assert holidays.color is None
        assert holidays.ctag is None

    def test_missing_privilege_set_means_writable(self):
        xml = """<multistatus xmlns="DAV:" xmlns:C="urn:ietf:params:xml:ns:caldav">
          <response>
            <href>/cal/work/</href>
            <propstat>
              <prop>
                <displayname>Work</displayname>
                <resourcetype><collection/><C:calendar/></resourcetype>
              </prop>
              <status>HTTP/1.1 200 OK</status>
            </propstat>
          </response>
        </multistatus>"""
        calendars = parse_calendars(xml, "https://cal.example.com")
        assert len(calendars) == 1
        assert calendars[0].id == "work"
        assert not calendars[0].is_read_only

    def test_privilege_set_in_404_propstat_means_writable(self):
        """A property the server reports as not found is treated as absent."""
        xml = """<multistatus xmlns="DAV:" xmlns:C="urn:ietf:params:xml:ns:caldav">
          <response>
            <href>/cal/work/</href>
            <propstat>
              <prop>
                <resourcetype><collection/><C:calendar/></resourcetype>
              </prop>
              <status>HTTP/1.1 200 OK</status>
            </propstat>
            <propstat>
              <prop><current-user-privilege-set/><displayname/></prop>
              <status>HTTP/1.1 404 Not Found</status>
            </propstat>
          </response>
        </multistatus>"""
        calendar = parse_calendars(xml, "https://cal.example.com")[0]
        assert not calendar.is_read_only
        assert calendar.display_name == "work"

    def test_all_privilege_is_writable(self):
        xml = """<multistatus xmlns="DAV:" xmlns:C="urn:ietf:params:xml:ns:caldav">
          <response>
            <href>/cal/mine/</href>
            <propstat>
              <prop>
                <resourcetype><collection/><C:calendar/></resourcetype>
                <current-user-privilege-set><privilege><all/></privilege></current-user-privilege-set>
              </prop>
              <status>HTTP/1.1 200 OK</status>
            </propstat>
          </response>
        </multistatus>"""
        assert not parse_calendars(xml, "https://cal.example.com")[0].is_read_only

    def test_display_name_falls_back_to_id(self):
        xml = """<multistatus xmlns="DAV:" xmlns:C="urn:ietf:params:xml:ns:caldav">
          <response>
            <href>/cal/a1b2c3/</href>
            <propstat>
              <prop><resourcetype><collection/><C:calendar/></resourcetype></prop>
              <status>HTTP/1.1 200 OK</status>
            </propstat>
          </response>
        </multistatus>"""
        assert parse_calendars(xml, "https://cal.example.com")[0].display_name == "a1b2c3"

    def test_failed_response_is_skipped(self):
        xml = """<multistatus xmlns="DAV:" xmlns:C="urn:ietf:params:xml:ns:caldav">
          <response>
            <href>/cal/gone/</href>
            <propstat>
              <prop><resourcetype><collection/><C:calendar/></resourcetype></prop>
              <status>HTTP/1.1 403 Forbidden</status>
            </propstat>
          </response>
        </multistatus>"""
        assert parse_calendars(xml, "https://cal.example.com") == []

    def test_fully_qualified_href(self):
        xml = """<multistatus xmlns="DAV:" xmlns:C="urn:ietf:params:xml:ns:caldav">
          <response>
            <href>https://p07-caldav.icloud.com/99/calendars/work/</href>
            <propstat>
              <prop><resourcetype><collection/><C:calendar/></resourcetype></prop>
              <status>HTTP/1.1 200 OK</status>
            </propstat>
          </response>
        </multistatus>"""
        calendar = parse_calendars(xml, BASE_URL)[0]
        assert calendar.href == "/99/calendars/work/"
        assert calendar.url == "https://p07-caldav.icloud.com/99/calendars/work/"

    @pytest.mark.parametrize("xml", ["", "not xml at all", "<multistatus", b"\x00\x01"])
    def test_malformed_xml(self, xml):
        assert parse_calendars(xml, BASE_URL) == []


class TestNormalizeColor:
    """Tests for calendar-color normalization."""

    @pytest.mark.parametrize("color", ["#FF5733FF", "FF5733", "#FF5733", " #FF5733 "])
    def test_normalized_to_six_digits(self, color):
        assert normalize_color(color) == "#FF5733"

    def test_case_is_kept(self):
        assert normalize_color("#ff5733") == "#ff5733"

    def test_short_form_is_expanded(self):
        assert normalize_color("#F53") == "#FF5533"
        assert normalize_color("abc") == "#aabbcc"

    @pytest.mark.parametrize(
        "color", ["rgb(1,2,3)", "red", "#FF573", "#GG5733", "#FF5733F", "", None]
    )
    def test_rejected(self, color):
        assert normalize_color(color) is None


class TestDiscoveryHrefs:
    """Tests for current-user-principal and calendar-home-set lookups."""

    def test_current_user_principal(self):
        xml = """<multistatus xmlns="DAV:">
          <response>
            <href>/</href>
            <propstat>
              <prop>
                <current-user-principal><href>/1234567/principal/</href></current-user-principal>
              </prop>
              <status>HTTP/1.1 200 OK</status>
            </propstat>
          </response>
        </multistatus>"""
        assert parse_current_user_principal(xml) == "/1234567/principal/"

    def test_calendar_home_set(self):
        xml = """<multistatus xmlns="DAV:" xmlns:cal="urn:ietf:params:xml:ns:caldav">
          <response>
            <href>/1234567/principal/</href>
            <propstat>
              <prop>
                <cal:calendar-home-set>
                  <href xmlns="DAV:">https://p42-caldav.icloud.com:443/1234567/calendars/</href>
                </cal:calendar-home-set>
              </prop>
              <status>HTTP/1.1 200 OK</status>
            </propstat>
          </response>
        </multistatus>"""
        assert (
            parse_calendar_home_set(xml)
            == "https://p42-caldav.icloud.com:443/1234567/calendars/"
        )

    def test_absent(self):
        xml = """<multistatus xmlns="DAV:"><response><href>/</href></response></multistatus>"""
        assert parse_current_user_principal(xml) is None
        assert parse_calendar_home_set(xml) is None

    def test_malformed(self):
        assert parse_current_user_principal("<multistatus") is None
        assert parse_calendar_home_set("") is None


class TestParseEvents:
    """Tests for calendar-query REPORT responses."""

    def test_plain_calendar_data(self):
        xml = _report(_event_response("/cal/home/event-1.ics", EVENT_ICS))
        events = parse_events(xml, BASE_URL)
        assert len(events) == 1
        event = events[0]
        assert event.uid == "event-1@example.com"
        assert event.href == "/cal/home/event-1.ics"
        assert event.url == "https://p42-caldav.icloud.com/cal/home/event-1.ics"
        assert event.etag == '"etag-1"'
        assert "SUMMARY:Standup" in event.ical_data
        assert event.has_etag

    def test_cdata_is_equivalent(self):
        plain = parse_events(
            _report(_event_response("/cal/home/event-1.ics", EVENT_ICS)), BASE_URL
        )
        cdata = parse_events(
            _report(
                _event_response("/cal/home/event-1.ics", "<![CDATA[%s]]>" % EVENT_ICS)
            ),
            BASE_URL,
        )
        assert plain == cdata

    def test_failed_responses_are_skipped(self):
        xml = _report(
            _event_response("/cal/home/event-1.ics", EVENT_ICS),
            _event_response(
                "/cal/home/gone.ics", EVENT_ICS, status="HTTP/1.1 404 Not Found"
            ),
            "<d:response><d:href>/cal/home/other.ics</d:href>"
            "<d:status>HTTP/1.1 404 Not Found</d:status></d:response>",
        )
        assert [x.href for x in parse_events(xml, BASE_URL)] == ["/cal/home/event-1.ics"]

    def test_missing_calendar_data_is_skipped(self):
        xml = _report(
            "<d:response><d:href>/cal/home/x.ics</d:href>"
            "<d:propstat><d:prop><d:getetag>\"1\"</d:getetag></d:prop>"
            "<d:status>HTTP/1.1 200 OK</d:status></d:propstat></d:response>"
        )
        assert parse_events(xml, BASE_URL) == []

    def test_calendar_data_without_uid_is_skipped(self):
        ics = EVENT_ICS.replace("UID:event-1@example.com\n", "")
        xml = _report(_event_response("/cal/home/x.ics", ics))
        assert parse_events(xml, BASE_URL) == []

    def test_missing_etag(self):
        xml = _report(
            "<d:response><d:href>/cal/home/x.ics</d:href>"
            "<d:propstat><d:prop><cal:calendar-data>%s</cal:calendar-data></d:prop>"
            "<d:status>HTTP/1.1 200 OK</d:status></d:propstat></d:response>" % EVENT_ICS
        )
        event = parse_events(xml, BASE_URL)[0]
        assert event.etag is None
        assert not event.has_etag

    def test_empty_multistatus(self):
        assert parse_events(_report(), BASE_URL) == []

    def test_malformed(self):
        assert parse_events("<d:multistatus><d:response>", BASE_URL) == []


class TestSyncAndEtag:
    """Tests for sync-collection and single etag responses."""

    SYNC_XML = """<d:multistatus xmlns:d="DAV:" xmlns:cal="urn:ietf:params:xml:ns:caldav">
      <d:response>
        <d:href>/cal/home/new.ics</d:href>
        <d:propstat>
          <d:prop>
            <d:getetag>"2"</d:getetag>
            <cal:calendar-data>%s</cal:calendar-data>
          </d:prop>
          <d:status>HTTP/1.1 200 OK</d:status>
        </d:propstat>
      </d:response>
      <d:response>
        <d:href>/cal/home/removed.ics</d:href>
        <d:status>HTTP/1.1 404 Not Found</d:status>
      </d:response>
      <d:sync-token>http://example.com/ns/sync/1234</d:sync-token>
    </d:multistatus>""" % EVENT_ICS

    def test_sync_token(self):
        assert parse_sync_token(self.SYNC_XML) == "http://example.com/ns/sync/1234"

    def test_deleted_hrefs(self):
        assert parse_deleted_hrefs(self.SYNC_XML) == ["/cal/home/removed.ics"]

    def test_sync_collection(self):
        result = parse_sync_collection(self.SYNC_XML, BASE_URL)
        assert [x.href for x in result.changed] == ["/cal/home/new.ics"]
        assert result.deleted == ["/cal/home/removed.ics"]
        assert result.sync_token == "http://example.com/ns/sync/1234"

    def test_no_sync_token(self):
        assert parse_sync_token(_report()) is None
        assert parse_deleted_hrefs("garbage") == []

    def test_etag(self):
        xml = """<multistatus xmlns="DAV:"><response><href>/x.ics</href>
          <propstat><prop><getetag>"abc"</getetag></prop>
          <status>HTTP/1.1 200 OK</status></propstat></response></multistatus>"""
        assert parse_etag(xml) == '"abc"'
        assert parse_etag(_report()) is None
