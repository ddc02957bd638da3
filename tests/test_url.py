import pytest

from davcal.lib import url


class TestUrl:
    @pytest.mark.parametrize(
        "base,href,expected",
        [
            ("https://caldav.icloud.com", "", "https://caldav.icloud.com"),
            (
                "https://caldav.icloud.com",
                "/123/principal/",
                "https://caldav.icloud.com/123/principal/",
            ),
            (
                "https://cal.example.com/dav/",
                "/dav/cal/home/",
                "https://cal.example.com/dav/cal/home/",
            ),
            (
                "https://cal.example.com/dav/",
                "cal/home/",
                "https://cal.example.com/dav/cal/home/",
            ),
            (
                "https://caldav.icloud.com",
                "https://p42-caldav.icloud.com/123/calendars/",
                "https://p42-caldav.icloud.com/123/calendars/",
            ),
            (
                "https://p42-caldav.icloud.com:443/123/calendars/",
                "/123/calendars/home/",
                "https://p42-caldav.icloud.com:443/123/calendars/home/",
            ),
        ],
    )
    def test_join(self, base, href, expected):
        assert url.join(base, href) == expected

    def test_to_path(self):
        assert url.to_path("https://p42-caldav.icloud.com/123/x.ics") == "/123/x.ics"
        assert url.to_path("https://cal.example.com") == "/"
        assert url.to_path("/already/a/path") == "/already/a/path"

    def test_is_absolute(self):
        assert url.is_absolute("https://cal.example.com/")
        assert not url.is_absolute("/cal/")

    @pytest.mark.parametrize(
        "href,expected",
        [
            ("/1234567/calendars/home/", "home"),
            ("/calendars/work", "work"),
            ("https://p42-caldav.icloud.com/1/calendars/a1b2/", "a1b2"),
            ("//", "//"),
        ],
    )
    def test_calendar_id_from_href(self, href, expected):
        assert url.calendar_id_from_href(href) == expected
