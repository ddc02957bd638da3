#!/usr/bin/env python
"""
Small helpers for the three kinds of addresses a CalDAV server hands
out:

1) a path relative to the server root, i.e. "1234567/calendars/home/"

2) an absolute path, i.e. "/1234567/calendars/home/"

3) a fully qualified URL, i.e.
"https://p42-caldav.icloud.com/1234567/calendars/home/".

iCloud redirects principals and home sets to per-user "pNN" hosts and
then hands out hrefs of kind 2 or 3, so every href coming back from
the server goes through ``join`` before it's used as a request target.
"""
from urllib.parse import urlparse


def is_absolute(url: str) -> bool:
    return bool(urlparse(url).scheme)


def origin(url: str) -> str:
    """scheme://host[:port] part of a fully qualified URL"""
    parsed = urlparse(url)
    return "%s://%s" % (parsed.scheme, parsed.netloc)


def join(base_url: str, href: str) -> str:
    """
    Resolve ``href`` against ``base_url``.  Fully qualified URLs are
    returned as they are, absolute paths replace the path of the base,
    relative paths are appended to the base with exactly one slash in
    between.
    """
    if not href:
        return base_url
    if is_absolute(href):
        return href
    if href.startswith("/"):
        return origin(base_url) + href
    return base_url.rstrip("/") + "/" + href


def to_path(url: str) -> str:
    """
    Server-relative path of ``url``.  Paths are returned unchanged.
    """
    if not is_absolute(url):
        return url
    return urlparse(url).path or "/"


def calendar_id_from_href(href: str) -> str:
    """
    The calendar id is the last non-empty path segment:

    * /1234567/calendars/home/ -> home
    * /calendars/work -> work
    """
    segments = [x for x in href.strip("/").split("/") if x]
    if not segments:
        return href
    return segments[-1]
