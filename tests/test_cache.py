"""
Tests for the uid -> event TTL cache.  The clock is a fake, so expiry
is deterministic.
"""

import threading

import pytest

from davcal.lib.cache import EventCache
from davcal.protocol.types import Event


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def _event(uid, etag='"1"'):
    return Event(
        uid=uid,
        href="/cal/home/%s.ics" % uid,
        url="https://cal.example.com/cal/home/%s.ics" % uid,
        etag=etag,
        ical_data="BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n",
    )


@pytest.fixture
def clock():
    return FakeClock()


class TestEventCache:
    def test_put_and_get(self, clock):
        cache = EventCache(ttl=300, clock=clock)
        cache.put(_event("a"))
        assert cache.get("a").uid == "a"
        assert "a" in cache
        assert cache.get("b") is None
        assert len(cache) == 1

    def test_put_replaces(self, clock):
        cache = EventCache(clock=clock)
        cache.put(_event("a", etag='"1"'))
        cache.put(_event("a", etag='"2"'))
        assert cache.get("a").etag == '"2"'
        assert len(cache) == 1

    def test_expiry_is_lazy(self, clock):
        cache = EventCache(ttl=300, clock=clock)
        cache.put(_event("a"))
        clock.advance(300)
        assert cache.get("a") is not None
        clock.advance(1)
        assert len(cache) == 1
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_put_refreshes_timestamp(self, clock):
        cache = EventCache(ttl=300, clock=clock)
        cache.put(_event("a"))
        clock.advance(200)
        cache.put(_event("a"))
        clock.advance(200)
        assert cache.get("a") is not None

    def test_sweep_when_full(self, clock):
        cache = EventCache(ttl=300, max_size=3, clock=clock)
        cache.put(_event("a"))
        cache.put(_event("b"))
        clock.advance(301)
        cache.put(_event("c"))
        assert len(cache) == 3
        cache.put(_event("d"))
        ## a and b expired and were swept before d went in
        assert len(cache) == 2
        assert cache.get("c") is not None
        assert cache.get("d") is not None

    def test_capacity_is_a_hint(self, clock):
        cache = EventCache(ttl=300, max_size=2, clock=clock)
        for uid in "abcd":
            cache.put(_event(uid))
        assert len(cache) == 4

    def test_remove_and_clear(self, clock):
        cache = EventCache(clock=clock)
        cache.put(_event("a"))
        cache.put(_event("b"))
        cache.remove("a")
        cache.remove("does-not-exist")
        assert cache.get("a") is None
        assert len(cache) == 1
        cache.clear()
        assert len(cache) == 0

    def test_concurrent_access(self, clock):
        cache = EventCache(ttl=300, max_size=50, clock=clock)

        def worker(prefix):
            for i in range(200):
                uid = "%s-%i" % (prefix, i)
                cache.put(_event(uid))
                cache.get(uid)
                if i % 3 == 0:
                    cache.remove(uid)

        threads = [threading.Thread(target=worker, args=(x,)) for x in "abcd"]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(cache) == 4 * (200 - 67)
