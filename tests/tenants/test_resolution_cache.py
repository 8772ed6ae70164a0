"""
Tests for the tenant resolution cache.
"""
import threading

from clinic_api.tenants.cache import TenantResolutionCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class CountingLookup:
    def __init__(self, known):
        self.known = set(known)
        self.calls = []

    def __call__(self, slug):
        self.calls.append(slug)
        return slug in self.known


def test_positive_result_is_cached():
    lookup = CountingLookup({"acme"})
    cache = TenantResolutionCache(lookup, ttl_seconds=60, clock=FakeClock())
    assert cache.resolve("acme") is True
    assert cache.resolve("acme") is True
    assert lookup.calls == ["acme"]


def test_negative_result_is_cached():
    lookup = CountingLookup(set())
    cache = TenantResolutionCache(lookup, ttl_seconds=60, clock=FakeClock())
    for _ in range(5):
        assert cache.resolve("missing") is False
    assert lookup.calls == ["missing"]


def test_entries_expire_after_ttl():
    lookup = CountingLookup(set())
    clock = FakeClock()
    cache = TenantResolutionCache(lookup, ttl_seconds=60, clock=clock)
    assert cache.resolve("acme") is False

    lookup.known.add("acme")
    clock.now = 59
    assert cache.resolve("acme") is False
    clock.now = 60
    assert cache.resolve("acme") is True
    assert lookup.calls == ["acme", "acme"]


def test_invalidate_forces_fresh_lookup():
    lookup = CountingLookup(set())
    cache = TenantResolutionCache(lookup, ttl_seconds=60, clock=FakeClock())
    assert cache.resolve("acme") is False

    lookup.known.add("acme")
    cache.invalidate("acme")
    assert cache.resolve("acme") is True


def test_lookup_overlapping_invalidate_is_not_stored():
    known = set()
    calls = []

    def lookup(slug):
        calls.append(slug)
        answer = slug in known
        if len(calls) == 1:
            # Tenant gets created while the first lookup is in flight
            known.add(slug)
            cache.invalidate(slug)
        return answer

    cache = TenantResolutionCache(lookup, ttl_seconds=60, clock=FakeClock())
    assert cache.resolve("acme") is False
    assert len(cache) == 0
    assert cache.resolve("acme") is True
    assert cache.resolve("acme") is True
    assert calls == ["acme", "acme"]


def test_size_is_bounded():
    lookup = CountingLookup(set())
    clock = FakeClock()
    cache = TenantResolutionCache(lookup, ttl_seconds=60, max_entries=3, clock=clock)
    for index in range(10):
        clock.now = index
        cache.resolve(f"tenant_{index}")
    assert len(cache) == 3
    # Most recent entries survive
    cache.resolve("tenant_9")
    assert lookup.calls.count("tenant_9") == 1


def test_concurrent_resolution():
    lookup = CountingLookup({"acme"})
    cache = TenantResolutionCache(lookup, ttl_seconds=60)
    results = []

    def worker():
        for _ in range(200):
            results.append(cache.resolve("acme"))
            results.append(cache.resolve("other"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == results.count(False) == 8 * 200
    assert len(cache) == 2
